"""Tests for circuit breaker pattern."""

import pytest

from servers.event_radar.errors import ProviderError, ProviderErrorKind
from servers.event_radar.resilience import CircuitBreaker, CircuitState


def provider_error(kind=ProviderErrorKind.HTTP_STATUS, status_code=503):
    return ProviderError("predicthq", kind, "Service Unavailable", status_code=status_code)


async def success():
    return "ok"


async def fail():
    raise provider_error()


class TestCircuitBreaker:
    """Tests for CircuitBreaker class."""

    def test_starts_closed(self):
        """Circuit breaker should start in closed state."""
        cb = CircuitBreaker("predicthq", failure_threshold=3)
        assert cb.state == CircuitState.CLOSED
        assert cb.is_closed
        assert not cb.is_open

    @pytest.mark.asyncio
    async def test_stays_closed_on_success(self):
        """Circuit should stay closed on successful calls."""
        cb = CircuitBreaker("predicthq", failure_threshold=3)

        result = await cb.call(success)
        assert result == "ok"
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_opens_after_threshold_failures(self):
        """Circuit should open after reaching failure threshold."""
        cb = CircuitBreaker("predicthq", failure_threshold=3)

        for _ in range(3):
            with pytest.raises(ProviderError):
                await cb.call(fail)

        assert cb.state == CircuitState.OPEN
        assert cb.is_open

    @pytest.mark.asyncio
    async def test_rejects_calls_when_open(self):
        """Open circuit should fail fast without running the call."""
        cb = CircuitBreaker("predicthq", failure_threshold=1, recovery_timeout=60)
        calls = []

        async def tracked():
            calls.append(1)
            return "ok"

        with pytest.raises(ProviderError):
            await cb.call(fail)

        with pytest.raises(ProviderError) as exc_info:
            await cb.call(tracked)

        assert exc_info.value.kind == ProviderErrorKind.CIRCUIT_OPEN
        assert exc_info.value.source == "predicthq"
        assert calls == []

    @pytest.mark.asyncio
    async def test_resets_failure_count_on_success(self):
        """Successful call should reset failure count."""
        cb = CircuitBreaker("predicthq", failure_threshold=3)
        cb.failure_count = 2

        await cb.call(success)

        assert cb.failure_count == 0
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_missing_credentials_not_counted(self):
        """A missing API key is configuration, not an outage."""
        cb = CircuitBreaker("predicthq", failure_threshold=1)

        async def no_key():
            raise provider_error(ProviderErrorKind.MISSING_CREDENTIALS, None)

        with pytest.raises(ProviderError):
            await cb.call(no_key)

        assert cb.is_closed
        assert cb.failure_count == 0

    @pytest.mark.asyncio
    async def test_other_exceptions_pass_through(self):
        """Only provider errors are counted."""
        cb = CircuitBreaker("predicthq", failure_threshold=1)

        async def bug():
            raise KeyError("oops")

        with pytest.raises(KeyError):
            await cb.call(bug)
        assert cb.is_closed

    def test_reset_method(self, clock):
        """Manual reset should restore initial state."""
        cb = CircuitBreaker("predicthq", failure_threshold=3, clock=clock)
        cb.failure_count = 5
        cb.state = CircuitState.OPEN
        cb.opened_at = clock()

        cb.reset()

        assert cb.failure_count == 0
        assert cb.state == CircuitState.CLOSED
        assert cb.opened_at is None

    def test_get_status(self):
        """Status should include all relevant information."""
        cb = CircuitBreaker("ticketmaster", failure_threshold=5)

        status = cb.get_status()

        assert status["source"] == "ticketmaster"
        assert status["state"] == "closed"
        assert status["failure_count"] == 0
        assert status["failure_threshold"] == 5


class TestCircuitBreakerRecovery:
    """Tests for circuit breaker recovery behavior."""

    async def open_breaker(self, clock) -> CircuitBreaker:
        cb = CircuitBreaker("predicthq", failure_threshold=1, recovery_timeout=60, clock=clock)
        with pytest.raises(ProviderError):
            await cb.call(fail)
        assert cb.is_open
        return cb

    @pytest.mark.asyncio
    async def test_stays_open_before_timeout(self, clock):
        """Calls are rejected until the recovery timeout passes."""
        cb = await self.open_breaker(clock)
        clock.advance(59)

        with pytest.raises(ProviderError) as exc_info:
            await cb.call(success)
        assert exc_info.value.kind == ProviderErrorKind.CIRCUIT_OPEN

    @pytest.mark.asyncio
    async def test_transitions_to_half_open_after_timeout(self, clock):
        """Circuit should let a probe through after recovery timeout."""
        cb = await self.open_breaker(clock)
        clock.advance(60)

        result = await cb.call(success)

        assert result == "ok"
        assert cb.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_closes_after_successful_half_open_calls(self, clock):
        """Circuit should close after two successful probes."""
        cb = await self.open_breaker(clock)
        clock.advance(60)

        await cb.call(success)
        await cb.call(success)

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    @pytest.mark.asyncio
    async def test_reopens_on_failure_in_half_open(self, clock):
        """Circuit should reopen on failure during half-open state."""
        cb = await self.open_breaker(clock)
        clock.advance(60)

        with pytest.raises(ProviderError):
            await cb.call(fail)

        assert cb.state == CircuitState.OPEN
        assert cb.opened_at == clock()
