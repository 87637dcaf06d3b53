"""
Filtering, sorting and pagination of merged events.

Filters run in a fixed order: price range, date range, categories, keyword.
Events missing the filtered field (no price, unparseable date) are kept.
"""

import math
from datetime import date, datetime
from typing import Optional

import structlog

from .models import Event, SearchRequest
from .normalize import KM_TO_MILES, haversine_km, parse_event_datetime


logger = structlog.get_logger()

PARTY_CATEGORY = "party"


def event_datetime(event: Event) -> Optional[datetime]:
    """Best-effort start datetime: display date/time first, then the raw value."""
    if event.date:
        parsed = parse_event_datetime(f"{event.date} {event.time}".strip())
        if parsed:
            return parsed
    return parse_event_datetime(event.raw_date)


def filter_by_price(events: list[Event], min_price: float, max_price: float) -> list[Event]:
    """Keep events priced within [min_price, max_price]; unpriced events pass."""
    return [
        e for e in events
        if e.price is None or e.price == "" or min_price <= e.numeric_price <= max_price
    ]


def filter_by_date(events: list[Event], date_from: date, date_to: date) -> list[Event]:
    """Keep events dated within the inclusive range; undated events pass."""
    filtered = []
    for event in events:
        start = event_datetime(event)
        if start is None or date_from <= start.date() <= date_to:
            filtered.append(event)
    return filtered


def filter_by_categories(events: list[Event], categories: list[str]) -> list[Event]:
    """
    Keep events whose category matches any requested category.

    Matching is case-insensitive and exact. The "party" category also
    matches any event classified as a party.
    """
    wanted = {c.strip().lower() for c in categories if c and c.strip()}
    if not wanted:
        return events

    party_requested = PARTY_CATEGORY in wanted
    return [
        e for e in events
        if (e.category or "").lower() in wanted or (party_requested and e.is_party_event)
    ]


def filter_by_keyword(events: list[Event], keyword: str) -> list[Event]:
    """Keep events where any keyword token appears in any searchable field."""
    tokens = [t for t in keyword.lower().split() if t]
    if not tokens:
        return events

    def matches(event: Event) -> bool:
        fields = [
            event.title.lower(),
            event.description.lower(),
            (event.venue or "").lower(),
            (event.location or "").lower(),
        ]
        return any(token in field for token in tokens for field in fields)

    return [e for e in events if matches(e)]


def apply_filters(events: list[Event], request: SearchRequest) -> list[Event]:
    """Apply all request filters in order."""
    before = len(events)
    filtered = list(events)

    if request.price_range:
        min_price, max_price = request.price_range
        filtered = filter_by_price(filtered, min_price, max_price)

    if request.date_range:
        filtered = filter_by_date(filtered, request.date_range.from_, request.date_range.to)

    if request.categories:
        filtered = filter_by_categories(filtered, request.categories)

    if request.keyword:
        filtered = filter_by_keyword(filtered, request.keyword)

    logger.debug("filters_applied", before=before, after=len(filtered))
    return filtered


def annotate_distances(events: list[Event], latitude: float, longitude: float) -> list[Event]:
    """Return copies of coordinate-bearing events with distance (miles) set."""
    annotated = []
    for event in events:
        if event.coordinates is None:
            annotated.append(event)
            continue
        lng, lat = event.coordinates
        miles = haversine_km(latitude, longitude, lat, lng) * KM_TO_MILES
        annotated.append(event.model_copy(update={"distance": round(miles, 3)}))
    return annotated


def sort_by_date(events: list[Event], now: Optional[datetime] = None) -> list[Event]:
    """Soonest first; events without a usable date sort as "now"."""
    now = now or datetime.now()
    return sorted(events, key=lambda e: event_datetime(e) or now)


def sort_by_distance(events: list[Event], latitude: float, longitude: float) -> list[Event]:
    """Nearest first; events without coordinates follow in their original order."""
    def key(event: Event) -> tuple[int, float]:
        if event.coordinates is None:
            return (1, 0.0)
        lng, lat = event.coordinates
        return (0, haversine_km(latitude, longitude, lat, lng))

    return sorted(events, key=key)


def sort_by_price(events: list[Event]) -> list[Event]:
    """Cheapest first."""
    return sorted(events, key=lambda e: e.numeric_price)


def sort_events(events: list[Event], request: SearchRequest) -> list[Event]:
    """Sort by the requested key. Distance without query coordinates sorts by date."""
    if request.sort_by == "distance":
        if request.has_coordinates:
            return sort_by_distance(events, request.latitude, request.longitude)
        logger.warning("distance_sort_without_coordinates", fallback="date")
        return sort_by_date(events)

    if request.sort_by == "price":
        return sort_by_price(events)

    return sort_by_date(events)


def paginate(events: list[Event], page: int, page_size: int) -> tuple[list[Event], int]:
    """Slice one page (1-based) and return it with the total page count."""
    total_pages = math.ceil(len(events) / page_size) if page_size else 0
    start = (page - 1) * page_size
    return events[start:start + page_size], total_pages
