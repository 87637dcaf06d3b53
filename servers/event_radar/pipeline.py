"""
Multi-source search aggregation.

One search runs: fingerprint -> cache lookup -> concurrent adapter fan-out
-> classify -> dedupe -> filter -> distance annotation -> sort -> cache
store -> paginate. Only request validation (done before this point) can
fail a search; provider and cache failures degrade to partial data.
"""

import asyncio
import hashlib
import itertools
import json
import time
from datetime import datetime, timezone
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from .cache import CacheStore
from .classifier import PartyClassifier
from .config import AggregatorConfig
from .dedup import deduplicate, format_audit_summary
from .errors import CacheError
from .filters import annotate_distances, apply_filters, paginate, sort_events
from .loading import LoadingTracker
from .models import Event, ProviderQuery, ProviderResult, SearchMeta, SearchRequest, SearchResponse, SourceStats
from .resilience import HealthMonitor
from .sources import ProviderAdapter

logger = structlog.get_logger()


class CachedSearch(BaseModel):
    """What the cache holds for one fingerprint."""

    events: list[Event] = Field(default_factory=list)
    source_stats: dict[str, SourceStats] = Field(default_factory=dict)
    total_events: int = 0
    events_with_coordinates: int = 0


def build_fingerprint(request: SearchRequest, policy: str = "full", precision: int = 3) -> str:
    """
    Cache key for a request.

    Keys are sorted, coordinates rounded and free text lowercased so
    equivalent requests share an entry. Under the "full" policy whole
    result lists are cached, so page and limit are left out.
    """
    data = request.model_dump(mode="json", exclude_none=True)

    for field in ("latitude", "longitude"):
        if field in data:
            data[field] = round(data[field], precision)
    if "location" in data:
        data["location"] = " ".join(data["location"].lower().split())
    if "keyword" in data:
        data["keyword"] = " ".join(data["keyword"].lower().split())
    data["categories"] = sorted(data.get("categories", []))

    if policy == "full":
        data.pop("page", None)
        data.pop("limit", None)

    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return "search:" + hashlib.sha256(canonical.encode()).hexdigest()


class AggregationPipeline:
    """Runs searches across all configured provider adapters."""

    def __init__(
        self,
        adapters: list[ProviderAdapter],
        cache: Optional[CacheStore[CachedSearch]] = None,
        classifier: Optional[PartyClassifier] = None,
        config: Optional[AggregatorConfig] = None,
        loading: Optional[LoadingTracker] = None,
        health: Optional[HealthMonitor] = None,
    ):
        self.adapters = adapters
        self.config = config or AggregatorConfig()
        self.cache = cache if cache is not None else CacheStore(
            default_ttl=self.config.cache.ttl_seconds,
            max_bytes=self.config.cache.max_bytes,
        )
        self.classifier = classifier or PartyClassifier()
        self.loading = loading
        self.health = health
        self._search_ids = itertools.count(1)

    @property
    def policy(self) -> str:
        return self.config.cache.policy

    @property
    def fetch_size(self) -> int:
        """Events asked of each provider, independent of the page requested."""
        return self.config.search.max_limit

    def fingerprint(self, request: SearchRequest) -> str:
        return build_fingerprint(request, self.policy, self.config.search.coordinate_precision)

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Aggregate, filter and page events for a validated request."""
        start = time.perf_counter()
        key = self.fingerprint(request)

        cached = self._cache_get(key)
        if cached is not None:
            logger.info("cache_hit", key=key[:19])
            return self._respond(cached, request, start, from_cache=True)
        logger.info("cache_miss", key=key[:19])

        results = await self._fan_out(request.provider_query(self.fetch_size))
        source_stats = {
            r.source: SourceStats(count=len(r.events), error=r.error) for r in results
        }

        merged = [self.classifier.classify_event(e) for r in results for e in r.events]
        deduped = deduplicate(merged)
        if deduped.duplicates_removed:
            logger.debug("dedup_audit", summary=format_audit_summary(deduped))
        filtered = apply_filters(deduped.events, request)
        if request.has_coordinates:
            filtered = annotate_distances(filtered, request.latitude, request.longitude)
        ordered = sort_events(filtered, request)

        result = CachedSearch(
            events=ordered,
            source_stats=source_stats,
            total_events=len(ordered),
            events_with_coordinates=sum(1 for e in ordered if e.has_coordinates),
        )
        if self.policy == "page":
            result.events, _ = paginate(ordered, request.page, request.limit)

        logger.info(
            "search_aggregated",
            merged=len(merged),
            after_dedup=len(deduped.events),
            after_filters=len(ordered),
            failed_sources=[s for s, stats in source_stats.items() if stats.error],
        )

        if any(r.ok for r in results):
            self._cache_set(key, result)
        else:
            logger.warning("all_providers_failed", sources=list(source_stats))

        return self._respond(result, request, start, from_cache=False)

    async def _fan_out(self, query: ProviderQuery) -> list[ProviderResult]:
        """Call every adapter concurrently and wait for all of them."""
        if not self.adapters:
            return []

        load_id = f"search-{next(self._search_ids)}"
        if self.loading is not None:
            with self.loading.track(load_id, f"Searching {len(self.adapters)} sources"):
                outcomes = await self._gather(query)
        else:
            outcomes = await self._gather(query)

        results = []
        for adapter, outcome in zip(self.adapters, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error("adapter_crashed", source=adapter.source, error=repr(outcome))
                outcome = ProviderResult(source=adapter.source, error=f"internal: {outcome!r}")
            if self.health is not None:
                self.health.record(outcome)
            results.append(outcome)
        return results

    async def _gather(self, query: ProviderQuery) -> list:
        return await asyncio.gather(
            *(adapter.search(query) for adapter in self.adapters),
            return_exceptions=True,
        )

    def _respond(
        self,
        result: CachedSearch,
        request: SearchRequest,
        start: float,
        from_cache: bool,
    ) -> SearchResponse:
        if self.policy == "full":
            page_events, total_pages = paginate(result.events, request.page, request.limit)
        else:
            page_events = result.events
            total_pages = -(-result.total_events // request.limit)

        meta = SearchMeta(
            execution_time=round((time.perf_counter() - start) * 1000, 2),
            total_events=result.total_events,
            events_with_coordinates=result.events_with_coordinates,
            current_page=request.page,
            page_size=request.limit,
            total_pages=total_pages,
            timestamp=datetime.now(timezone.utc).isoformat(),
            from_cache=from_cache,
        )
        return SearchResponse(events=page_events, source_stats=result.source_stats, meta=meta)

    def _cache_get(self, key: str) -> Optional[CachedSearch]:
        try:
            return self.cache.get(key)
        except CacheError as e:
            logger.warning("cache_read_failed", error=str(e))
            return None

    def _cache_set(self, key: str, result: CachedSearch) -> None:
        try:
            self.cache.set(key, result)
        except CacheError as e:
            logger.warning("cache_write_failed", error=str(e))
