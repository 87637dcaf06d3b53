"""
Pydantic models for event data structures.

These models define the core data types used throughout the server:
- Event: Canonical, provider-agnostic event
- ProviderQuery / ProviderResult: What adapters receive and return
- SearchRequest / SearchResponse: The search contract
- ClusterNode / ZoomAction / SelectAction: Map clustering and click handling

Wire models serialize with camelCase aliases (model_dump(by_alias=True)).
"""

from datetime import date
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from .normalize import coerce_coordinates, parse_price


class WireModel(BaseModel):
    """Base for models that cross the client boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PartySubcategory(str, Enum):
    """Closed set of party subcategories."""

    NIGHTCLUB = "nightclub"
    FESTIVAL = "festival"
    BRUNCH = "brunch"
    DAY_PARTY = "day-party"
    NETWORKING = "networking"
    CELEBRATION = "celebration"
    SOCIAL = "social"
    ROOFTOP = "rooftop"
    IMMERSIVE = "immersive"
    POPUP = "popup"
    GENERAL = "general"


class Event(WireModel):
    """Represents a single event from any provider."""

    # Identity
    id: str  # provider-prefixed, e.g. "ticketmaster:G5v0Z9"
    source: str  # ticketmaster, predicthq, rapidapi, serpapi, mock

    # Core event info
    title: str
    description: str = ""

    # Timing (display strings, raw value kept for fallback sorting)
    date: str = ""
    time: str = ""
    raw_date: Optional[str] = None

    # Location
    location: Optional[str] = None
    venue: Optional[str] = None
    coordinates: Optional[tuple[float, float]] = None  # (longitude, latitude)

    # Classification
    category: str = "other"
    is_party_event: bool = False
    party_subcategory: PartySubcategory = PartySubcategory.GENERAL

    # Details
    price: Optional[Union[float, str]] = None
    url: Optional[str] = None
    image: Optional[str] = None

    # Miles from the query point, set when the query has coordinates
    distance: Optional[float] = None

    @field_validator("coordinates", mode="before")
    @classmethod
    def _drop_invalid_coordinates(cls, value):
        return coerce_coordinates(value)

    @field_validator("description", mode="before")
    @classmethod
    def _empty_description(cls, value):
        return value or ""

    @property
    def has_coordinates(self) -> bool:
        return self.coordinates is not None

    @property
    def numeric_price(self) -> float:
        """Price as a number ("Free" -> 0, "$10-20" -> 10)."""
        return parse_price(self.price)


class PartyClassification(BaseModel):
    """Result of classifying one event."""

    is_party_event: bool = False
    subcategory: PartySubcategory = PartySubcategory.GENERAL


class DateRange(WireModel):
    """Inclusive date range filter."""

    from_: date = Field(alias="from")
    to: date


SortKey = Literal["date", "distance", "price"]


class SearchRequest(WireModel):
    """A validated search request. Build with SearchRequest.parse."""

    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius: Optional[float] = None
    categories: list[str] = Field(default_factory=list)
    keyword: Optional[str] = None
    price_range: Optional[tuple[float, float]] = None
    date_range: Optional[DateRange] = None
    sort_by: SortKey = "date"
    limit: int = 100
    page: int = 1

    @classmethod
    def parse(cls, raw: dict, **limits) -> "SearchRequest":
        """Validate a raw client request. See validation.parse_search_request."""
        from .validation import parse_search_request

        return parse_search_request(raw, **limits)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def provider_query(self, page_size: Optional[int] = None) -> "ProviderQuery":
        """Project the request onto what provider adapters need.

        page_size is how many events each provider is asked for; it defaults
        to the request limit.
        """
        return ProviderQuery(
            location=self.location,
            latitude=self.latitude,
            longitude=self.longitude,
            radius=self.radius,
            categories=list(self.categories),
            keyword=self.keyword,
            date_from=self.date_range.from_ if self.date_range else None,
            date_to=self.date_range.to if self.date_range else None,
            page_size=page_size or self.limit,
        )


class ProviderQuery(BaseModel):
    """Query handed to every provider adapter."""

    model_config = ConfigDict(frozen=True)

    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius: Optional[float] = None
    categories: list[str] = Field(default_factory=list)
    keyword: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    page_size: int = 100

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class ProviderResult(BaseModel):
    """Outcome of one adapter call: a list of events or a recorded error."""

    source: str
    events: list[Event] = Field(default_factory=list)
    error: Optional[str] = None
    duration_ms: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SourceStats(WireModel):
    """Per-provider statistics for one aggregation call."""

    count: int = 0
    error: Optional[str] = None


class SearchMeta(WireModel):
    """Response metadata."""

    execution_time: float  # milliseconds
    total_events: int
    events_with_coordinates: int
    current_page: int
    page_size: int
    total_pages: int
    timestamp: str
    from_cache: bool = False


class SearchResponse(WireModel):
    """Result of AggregationPipeline.search."""

    events: list[Event]
    source_stats: dict[str, SourceStats]
    meta: SearchMeta


class CacheStats(WireModel):
    """Read-only snapshot of cache counters."""

    entries: int
    bytes_used: int
    max_bytes: int
    hits: int
    misses: int
    hit_rate: float  # percent


class ClusterNode(WireModel):
    """A rendered map feature: either one event or an aggregate cluster."""

    id: int  # arena id, only meaningful within build_id
    build_id: int
    cluster: bool
    coordinates: tuple[float, float]  # (longitude, latitude)
    point_count: int = 1
    event_id: Optional[str] = None

    @computed_field(alias="pointCountAbbreviated")
    @property
    def point_count_abbreviated(self) -> str:
        """Marker label: 999, 1.2k, 15k."""
        if self.point_count >= 10000:
            return f"{round(self.point_count / 1000)}k"
        if self.point_count >= 1000:
            return f"{round(self.point_count / 100) / 10}k"
        return str(self.point_count)


class ZoomAction(WireModel):
    """Recenter on a cluster and zoom to its expansion zoom."""

    action: Literal["zoom"] = "zoom"
    center: tuple[float, float]
    zoom: float


class SelectAction(WireModel):
    """Select a single event, recentering on it."""

    action: Literal["select"] = "select"
    event_id: str
    center: Optional[tuple[float, float]] = None
    zoom: float


ClickAction = Annotated[Union[ZoomAction, SelectAction], Field(discriminator="action")]


class DuplicateMatch(BaseModel):
    """Records a dropped duplicate for the audit trail."""

    kept_event_id: str
    dropped_event_id: str
    key: str


class DedupeResult(BaseModel):
    """Result of deduplication with audit trail."""

    events: list[Event]
    original_count: int
    duplicates_removed: int
    audit_trail: list[DuplicateMatch] = Field(default_factory=list)

    @computed_field
    @property
    def dedup_rate(self) -> float:
        """Percentage of events that were duplicates."""
        if self.original_count == 0:
            return 0.0
        return self.duplicates_removed / self.original_count * 100
