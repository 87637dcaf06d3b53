"""Error taxonomy for the aggregation server.

Only RequestValidationError ends a search early. Provider, cache and
classification failures are absorbed and reported through SourceStats
or safe defaults.
"""

from enum import Enum
from typing import Optional


class EventRadarError(Exception):
    """Base class for all errors raised by this package."""


class RequestValidationError(EventRadarError):
    """Raised when a search request is malformed, before any provider call."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors) or "Invalid request")
        self.errors = errors


class ProviderErrorKind(str, Enum):
    """Why a provider call failed."""

    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    MALFORMED_PAYLOAD = "malformed_payload"
    MISSING_CREDENTIALS = "missing_credentials"
    TRANSPORT = "transport"
    CIRCUIT_OPEN = "circuit_open"


TRANSIENT_KINDS = frozenset({ProviderErrorKind.TRANSPORT, ProviderErrorKind.HTTP_STATUS})


class ProviderError(EventRadarError):
    """Failure of a single provider adapter.

    Recorded into SourceStats by the adapter boundary, never raised to the
    pipeline caller.
    """

    def __init__(
        self,
        source: str,
        kind: ProviderErrorKind,
        message: str,
        status_code: Optional[int] = None,
    ):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.kind = kind
        self.message = message
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        """True for failures worth retrying (transport errors, 429 and 5xx)."""
        if self.kind == ProviderErrorKind.HTTP_STATUS:
            return self.status_code is not None and (
                self.status_code == 429 or self.status_code >= 500
            )
        return self.kind in TRANSIENT_KINDS

    def describe(self) -> str:
        """Message stored in SourceStats.error."""
        if self.status_code is not None:
            return f"{self.kind.value}: HTTP {self.status_code}: {self.message}"
        return f"{self.kind.value}: {self.message}"


class CacheError(EventRadarError):
    """Internal cache failure. Callers fall back to a live fetch."""


class ClassificationError(EventRadarError):
    """Malformed classifier input. Converted to the default classification."""


class StaleIndexError(EventRadarError):
    """A cluster id from a different (or no) spatial index build was used."""
