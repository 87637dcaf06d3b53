"""Circuit breaker guarding each provider adapter."""

import time
from enum import Enum
from typing import Any, Callable, Coroutine, Optional, TypeVar

import structlog

from ..errors import ProviderError, ProviderErrorKind

logger = structlog.get_logger()

T = TypeVar("T")


class CircuitState(Enum):
    """States for the circuit breaker."""

    CLOSED = "closed"  # Normal operation, calls allowed
    OPEN = "open"  # Provider failing, calls rejected
    HALF_OPEN = "half_open"  # Probing for recovery


class CircuitBreaker:
    """Stops calling a provider after repeated failures.

    After recovery_timeout seconds an open circuit lets probe calls through;
    two successful probes close it again, one failure reopens it.
    """

    def __init__(
        self,
        source: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        probe_successes: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize circuit breaker.

        Args:
            source: Provider name, used in errors and logs
            failure_threshold: Consecutive failures before opening
            recovery_timeout: Seconds to wait before probing
            probe_successes: Successful probes needed to close
            clock: Monotonic time source in seconds
        """
        self.source = source
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.probe_successes = probe_successes
        self._clock = clock
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.opened_at: Optional[float] = None
        self.success_count_in_half_open = 0

    async def call(self, coro_fn: Callable[[], Coroutine[Any, Any, T]]) -> T:
        """Run coro_fn() under circuit protection.

        Raises:
            ProviderError: kind CIRCUIT_OPEN while the circuit is open, or
                whatever the call itself raised (after recording it)
        """
        if self.state == CircuitState.OPEN:
            if self._should_attempt_reset():
                self._transition_to_half_open()
            else:
                raise ProviderError(
                    self.source,
                    ProviderErrorKind.CIRCUIT_OPEN,
                    f"circuit open after {self.failure_count} failures",
                )

        try:
            result = await coro_fn()
        except ProviderError as e:
            # Missing credentials is configuration, not provider health
            if e.kind != ProviderErrorKind.MISSING_CREDENTIALS:
                self._on_failure(e)
            raise

        self._on_success()
        return result

    def _should_attempt_reset(self) -> bool:
        if self.opened_at is None:
            return True
        return self._clock() - self.opened_at >= self.recovery_timeout

    def _transition_to_half_open(self) -> None:
        self.state = CircuitState.HALF_OPEN
        self.success_count_in_half_open = 0
        logger.info("circuit_half_open", source=self.source)

    def _on_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self.success_count_in_half_open += 1
            if self.success_count_in_half_open >= self.probe_successes:
                self._close_circuit()
        else:
            self.failure_count = 0

    def _close_circuit(self) -> None:
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.opened_at = None
        logger.info("circuit_closed", source=self.source)

    def _on_failure(self, error: ProviderError) -> None:
        self.failure_count += 1

        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self._open_circuit(error)

    def _open_circuit(self, error: ProviderError) -> None:
        self.state = CircuitState.OPEN
        self.opened_at = self._clock()
        logger.warning(
            "circuit_opened",
            source=self.source,
            failure_count=self.failure_count,
            recovery_timeout=self.recovery_timeout,
            error=str(error),
        )

    def reset(self) -> None:
        """Manually reset circuit breaker to closed state."""
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.opened_at = None
        self.success_count_in_half_open = 0

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    def get_status(self) -> dict[str, Any]:
        """Current breaker status for health reports."""
        return {
            "source": self.source,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
        }
