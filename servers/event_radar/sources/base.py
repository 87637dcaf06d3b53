"""
Uniform provider adapter interface.

Subclasses implement fetch(): one HTTP exchange against their provider,
translated into canonical Events. search() wraps it with the per-adapter
timeout, retry, circuit breaker and error mapping, and never raises
anything except task cancellation.
"""

import asyncio
import os
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import httpx
import structlog

from ..errors import ProviderError, ProviderErrorKind
from ..models import Event, ProviderQuery, ProviderResult
from ..resilience import CircuitBreaker, retry_with_backoff

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 10.0

# Failures inside a payload walk (missing keys, wrong shapes, bad JSON)
PAYLOAD_ERRORS = (ValueError, KeyError, TypeError, AttributeError, IndexError)


def dig(data: Any, *path: Any) -> Any:
    """Walk nested dicts/lists, returning None at the first missing step."""
    for step in path:
        if isinstance(step, int):
            if not isinstance(data, list) or not -len(data) <= step < len(data):
                return None
        elif not isinstance(data, dict):
            return None
        data = data[step] if isinstance(step, int) else data.get(step)
        if data is None:
            return None
    return data


class ProviderAdapter(ABC):
    """Base class for all event providers."""

    source: str = ""
    api_key_env: Optional[str] = None

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        breaker: Optional[CircuitBreaker] = None,
        retry_attempts: int = 2,
        retry_base_delay: float = 0.25,
    ):
        """
        Args:
            api_key: Explicit key; defaults to the adapter's environment variable
            timeout: Upper bound for the whole call, retries included
            transport: httpx transport override (tests use httpx.MockTransport)
            breaker: Circuit breaker for this provider
            retry_attempts: Attempts for transient failures
            retry_base_delay: First retry delay in seconds
        """
        if api_key is None and self.api_key_env:
            api_key = os.environ.get(self.api_key_env)
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport
        self.breaker = breaker
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay

    @abstractmethod
    async def fetch(self, query: ProviderQuery, client: httpx.AsyncClient) -> list[Event]:
        """Call the provider once and return canonical events."""

    # Helpers for subclasses

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ProviderError(
                self.source,
                ProviderErrorKind.MISSING_CREDENTIALS,
                f"{self.api_key_env} not configured",
            )
        return self.api_key

    def error(self, kind: ProviderErrorKind, message: str, status_code: Optional[int] = None) -> ProviderError:
        return ProviderError(self.source, kind, message, status_code=status_code)

    async def get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        """GET a JSON object. Non-2xx and non-object bodies become ProviderErrors."""
        response = await client.get(url, params=params, headers=headers)
        response.raise_for_status()

        try:
            data = response.json()
        except ValueError as e:
            raise self.error(ProviderErrorKind.MALFORMED_PAYLOAD, f"invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise self.error(
                ProviderErrorKind.MALFORMED_PAYLOAD,
                f"expected a JSON object, got {type(data).__name__}",
            )
        return data

    def parse_items(self, items: Any, parse: Callable[[dict], Optional[Event]]) -> list[Event]:
        """Parse a list of raw items, skipping ones that are unusable."""
        if items is None:
            return []
        if not isinstance(items, list):
            raise self.error(
                ProviderErrorKind.MALFORMED_PAYLOAD,
                f"expected a list of events, got {type(items).__name__}",
            )

        events = []
        skipped = 0
        for item in items:
            try:
                event = parse(item) if isinstance(item, dict) else None
            except PAYLOAD_ERRORS as e:
                logger.debug("provider_item_skipped", source=self.source, error=str(e))
                event = None
            if event is None:
                skipped += 1
                continue
            events.append(event)

        if skipped:
            logger.debug("provider_items_skipped", source=self.source, skipped=skipped)
        return events

    # Boundary

    async def _fetch_once(self, query: ProviderQuery) -> list[Event]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                return await self.fetch(query, client)
        except ProviderError:
            raise
        except httpx.HTTPStatusError as e:
            raise self.error(
                ProviderErrorKind.HTTP_STATUS,
                e.response.reason_phrase or "request failed",
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise self.error(ProviderErrorKind.TIMEOUT, f"HTTP timeout: {e}") from e
        except httpx.RequestError as e:
            raise self.error(ProviderErrorKind.TRANSPORT, str(e) or type(e).__name__) from e
        except PAYLOAD_ERRORS as e:
            raise self.error(ProviderErrorKind.MALFORMED_PAYLOAD, str(e) or type(e).__name__) from e

    async def _bounded_fetch(self, query: ProviderQuery) -> list[Event]:
        try:
            return await asyncio.wait_for(
                retry_with_backoff(
                    lambda: self._fetch_once(query),
                    max_attempts=self.retry_attempts,
                    base_delay=self.retry_base_delay,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise self.error(ProviderErrorKind.TIMEOUT, f"no response within {self.timeout}s") from e

    async def search(self, query: ProviderQuery) -> ProviderResult:
        """Fetch events, recording any failure instead of raising it."""
        start = time.monotonic()

        try:
            if self.breaker is not None:
                events = await self.breaker.call(lambda: self._bounded_fetch(query))
            else:
                events = await self._bounded_fetch(query)
        except ProviderError as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            logger.warning(
                "provider_failed",
                source=self.source,
                kind=e.kind.value,
                status_code=e.status_code,
                error=e.message,
                duration_ms=duration_ms,
            )
            return ProviderResult(source=self.source, error=e.describe(), duration_ms=duration_ms)

        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info("provider_succeeded", source=self.source, count=len(events), duration_ms=duration_ms)
        return ProviderResult(source=self.source, events=events, duration_ms=duration_ms)
