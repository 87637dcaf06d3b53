"""
Server entry point for Event Radar.

This server provides tools for:
- Searching events across all enabled providers
- Clustering the last search's events for a map viewport
- Resolving map clicks into zoom/select actions
- Reporting cache and provider health

Run with: python -m servers.event_radar [--test]
"""

import asyncio
import sys
from typing import Any, Optional

import httpx
import structlog

from .cache import CacheStore
from .classifier import PartyClassifier
from .config import AggregatorConfig
from .errors import RequestValidationError
from .loading import LoadingTracker
from .models import ClusterNode, Event, SearchRequest
from .pipeline import AggregationPipeline, CachedSearch
from .resilience import CircuitBreaker, HealthMonitor
from .sources import ADAPTERS, MockAdapter, ProviderAdapter
from .spatial import ClusterInteractionResolver, SpatialIndexer

logger = structlog.get_logger()


def build_adapters(
    config: AggregatorConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> list[ProviderAdapter]:
    """Instantiate every enabled provider with its own circuit breaker."""
    providers = config.providers
    adapters = []
    for name, adapter_cls in ADAPTERS.items():
        if not providers.is_enabled(name):
            continue
        adapters.append(adapter_cls(
            timeout=providers.timeout_seconds,
            transport=transport,
            breaker=CircuitBreaker(
                name,
                failure_threshold=providers.circuit_failure_threshold,
                recovery_timeout=providers.circuit_recovery_seconds,
            ),
            retry_attempts=providers.retry_attempts,
        ))
    return adapters


class EventRadarServer:
    """Tool surface over the aggregation pipeline and map clustering."""

    def __init__(
        self,
        config: Optional[AggregatorConfig] = None,
        adapters: Optional[list[ProviderAdapter]] = None,
    ):
        self.config = config or AggregatorConfig.from_env()
        self.adapters = adapters if adapters is not None else build_adapters(self.config)

        self.cache: CacheStore[CachedSearch] = CacheStore(
            default_ttl=self.config.cache.ttl_seconds,
            max_bytes=self.config.cache.max_bytes,
        )
        self.loading = LoadingTracker()
        self.health_monitor = HealthMonitor()
        self.pipeline = AggregationPipeline(
            self.adapters,
            cache=self.cache,
            classifier=PartyClassifier(),
            config=self.config,
            loading=self.loading,
            health=self.health_monitor,
        )

        clustering = self.config.clustering
        self.indexer = SpatialIndexer(
            radius=clustering.radius,
            extent=clustering.extent,
            min_zoom=clustering.min_zoom,
            max_zoom=clustering.max_zoom,
            min_points=clustering.min_points,
        )
        self.resolver = ClusterInteractionResolver(self.indexer, min_select_zoom=clustering.min_select_zoom)
        self.last_events: list[Event] = []

        self.tools = {
            "search_events": self.search_events,
            "get_clusters": self.get_clusters,
            "resolve_click": self.resolve_click,
            "cache_stats": self.cache_stats,
            "health": self.health,
        }

    async def start(self) -> None:
        """Start background cache maintenance."""
        self.cache.start(
            sweep_interval=self.config.cache.sweep_interval_seconds,
            stats_interval=self.config.cache.stats_interval_seconds,
        )

    async def close(self) -> None:
        await self.cache.stop()
        self.loading.close()

    async def search_events(self, **request: Any) -> dict:
        """
        Search all providers.

        Accepts the client request shape (location, latitude, longitude,
        radius, categories, keyword, priceRange, dateRange, sortBy, limit,
        page). Invalid requests get a 400-shaped body; everything else is
        a 200, even when every provider failed.
        """
        search = self.config.search
        try:
            parsed = SearchRequest.parse(
                request,
                default_radius=search.default_radius,
                default_limit=search.default_limit,
                max_limit=search.max_limit,
            )
        except RequestValidationError as e:
            return {"status": 400, "error": "validation_error", "errors": e.errors}

        response = await self.pipeline.search(parsed)
        self.last_events = response.events
        return {"status": 200, **response.model_dump(mode="json", by_alias=True)}

    async def get_clusters(self, bbox: list[float], zoom: float) -> dict:
        """Rebuild the index from the last search and return the viewport's features."""
        self.indexer.load(self.last_events)
        features = self.indexer.get_clusters(bbox, zoom)
        return {
            "buildId": self.indexer.build_id,
            "features": [f.model_dump(mode="json", by_alias=True) for f in features],
        }

    async def resolve_click(self, features: list[dict], zoom: float) -> dict:
        """Resolve the features under a click (topmost first) into an action."""
        nodes = [ClusterNode.model_validate(f) for f in features]
        action = self.resolver.resolve(nodes, zoom)
        if action is None:
            return {"action": "none"}
        return action.model_dump(mode="json", by_alias=True)

    async def cache_stats(self) -> dict:
        return self.cache.stats().model_dump(by_alias=True)

    async def health(self) -> dict:
        """Provider health plus circuit breaker states."""
        report = self.health_monitor.get_status()
        report["circuits"] = {
            adapter.source: adapter.breaker.get_status()
            for adapter in self.adapters
            if adapter.breaker is not None
        }
        report["loading"] = self.loading.is_loading
        return report


async def main():
    """Main entry point for the server."""
    if "--test" in sys.argv:
        server = EventRadarServer(config=AggregatorConfig(), adapters=[MockAdapter()])
    else:
        server = EventRadarServer()

    print("Event Radar Server")
    print("Available tools:", list(server.tools.keys()))
    print("Providers:", [a.source for a in server.adapters])

    await server.start()
    try:
        # For testing: run an offline search
        if "--test" in sys.argv:
            print("\n--- Running test search ---")
            result = await server.search_events(location="Miami", categories=["party"], limit=5)
            meta = result["meta"]
            print(f"Found {meta['totalEvents']} events ({meta['eventsWithCoordinates']} mappable)")
            for source, stats in result["sourceStats"].items():
                status = stats["error"] or "ok"
                print(f"  {source}: {stats['count']} events ({status})")
            for event in result["events"]:
                print(f"  - {event['date']} {event['time']} {event['title']} [{event['partySubcategory']}]")

            clusters = await server.get_clusters([-180, -85, 180, 85], 10)
            print(f"Clusters at zoom 10: {len(clusters['features'])} features")
    finally:
        await server.close()


if __name__ == "__main__":
    asyncio.run(main())
