"""Resilience patterns for provider calls."""

from .circuit_breaker import CircuitBreaker, CircuitState
from .health import HealthMonitor, SourceHealth
from .retry import backoff_delay, retry_with_backoff

__all__ = [
    "retry_with_backoff",
    "backoff_delay",
    "CircuitBreaker",
    "CircuitState",
    "HealthMonitor",
    "SourceHealth",
]
