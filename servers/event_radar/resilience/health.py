"""Per-provider health tracking across searches."""

from datetime import datetime
from typing import Any, Optional

import structlog
from pydantic import BaseModel

from ..models import ProviderResult

logger = structlog.get_logger()


class SourceHealth(BaseModel):
    """Outcome of a provider's most recent call."""

    healthy: bool
    last_check: str
    event_count: int = 0
    duration_ms: Optional[int] = None
    consecutive_failures: int = 0
    last_error: Optional[str] = None


class HealthMonitor:
    """Remembers the outcome of each provider's most recent call.

    Fed by the pipeline after every fan-out; read by the server's
    health tool.
    """

    def __init__(self):
        self.sources: dict[str, SourceHealth] = {}

    def record(self, result: ProviderResult) -> SourceHealth:
        """Fold one adapter outcome into the source's health."""
        previous = self.sources.get(result.source)
        now = datetime.now().isoformat()

        if result.ok:
            health = SourceHealth(
                healthy=True,
                last_check=now,
                event_count=len(result.events),
                duration_ms=result.duration_ms,
            )
            logger.debug("source_healthy", source=result.source, event_count=health.event_count)
        else:
            health = SourceHealth(
                healthy=False,
                last_check=now,
                duration_ms=result.duration_ms,
                consecutive_failures=(previous.consecutive_failures if previous else 0) + 1,
                last_error=result.error or "unknown error",
            )
            logger.warning(
                "source_unhealthy",
                source=result.source,
                consecutive_failures=health.consecutive_failures,
                error=health.last_error,
            )

        self.sources[result.source] = health
        return health

    def is_healthy(self, source: str) -> bool:
        """Unknown sources count as healthy."""
        health = self.sources.get(source)
        return health is None or health.healthy

    def unhealthy_sources(self) -> list[str]:
        return [name for name, health in self.sources.items() if not health.healthy]

    def get_status(self) -> dict[str, Any]:
        """Full report: a summary, the failing sources, and every tracked source."""
        degraded = self.unhealthy_sources()
        total = len(self.sources)

        return {
            "timestamp": datetime.now().isoformat(),
            "summary": {
                "healthy": total - len(degraded),
                "unhealthy": len(degraded),
                "total": total,
            },
            "degraded": degraded,
            "sources": {name: health.model_dump() for name, health in self.sources.items()},
        }
