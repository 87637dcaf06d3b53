"""
RapidAPI real-time-events-search adapter.

General web event search. The API takes a free-text query and has no
radius parameter, so results are trimmed to the query radius here.
"""

from typing import Any, Optional

import httpx

from ..models import Event, ProviderQuery
from ..normalize import (
    KM_TO_MILES,
    haversine_km,
    normalize_coordinates,
    parse_event_datetime,
    prefixed_id,
    split_date_time,
)
from .base import ProviderAdapter, dig


RAPIDAPI_HOST = "real-time-events-search.p.rapidapi.com"
RAPIDAPI_BASE = f"https://{RAPIDAPI_HOST}/search-events"
MAX_PAGE_SIZE = 200

NIGHTLIFE_SUBTYPES = ("night_club", "bar", "lounge", "dance_club")


class RapidApiEventsAdapter(ProviderAdapter):
    """Web-wide event search with venue coordinates."""

    source = "rapidapi"
    api_key_env = "RAPIDAPI_KEY"

    def build_query(self, query: ProviderQuery) -> str:
        """Free-text search string, e.g. "party jazz events in Miami"."""
        terms = [c for c in query.categories]
        if query.keyword:
            terms.append(query.keyword)
        prefix = " ".join(terms + ["events"])

        if query.location:
            return f"{prefix} in {query.location}"
        if query.has_coordinates:
            return f"{prefix} near {query.latitude:.4f},{query.longitude:.4f}"
        return prefix

    def build_params(self, query: ProviderQuery) -> dict[str, Any]:
        return {
            "query": self.build_query(query),
            "date": "any" if query.date_from else "month",
            "is_virtual": "false",
            "start": 0,
            "limit": min(query.page_size, MAX_PAGE_SIZE),
        }

    async def fetch(self, query: ProviderQuery, client: httpx.AsyncClient) -> list[Event]:
        headers = {
            "x-rapidapi-key": self.require_api_key(),
            "x-rapidapi-host": RAPIDAPI_HOST,
        }
        data = await self.get_json(client, RAPIDAPI_BASE, params=self.build_params(query), headers=headers)
        events = self.parse_items(data.get("data"), self.parse_event)

        if query.has_coordinates and query.radius:
            events = [e for e in events if _within_radius(e, query)]
        return events

    def parse_event(self, item: dict) -> Optional[Event]:
        """Translate one search result."""
        event_id = item.get("event_id")
        title = item.get("name")
        if not event_id or not title:
            return None

        raw_start = item.get("start_time") or item.get("start_time_utc") or item.get("date_human_readable")
        date_text, time_text = split_date_time(parse_event_datetime(raw_start))

        venue = item.get("venue") or {}
        location = venue.get("full_address") or ", ".join(
            part for part in (venue.get("city"), venue.get("state"), venue.get("country")) if part
        )

        return Event(
            id=prefixed_id(self.source, event_id),
            source=self.source,
            title=title,
            description=item.get("description") or "",
            date=date_text,
            time=time_text,
            raw_date=raw_start,
            location=location or None,
            venue=venue.get("name"),
            coordinates=normalize_coordinates(venue.get("longitude"), venue.get("latitude")),
            category=_category(venue.get("subtype") or dig(venue, "subtypes", 0)),
            url=dig(item, "ticket_links", 0, "link") or dig(item, "info_links", 0, "link") or item.get("link"),
            image=item.get("thumbnail"),
        )


def _category(subtype: Optional[str]) -> str:
    if not subtype:
        return "other"
    subtype = subtype.lower()
    if subtype in NIGHTLIFE_SUBTYPES:
        return "nightlife"
    return subtype.replace("_", " ")


def _within_radius(event: Event, query: ProviderQuery) -> bool:
    if event.coordinates is None:
        return False
    lng, lat = event.coordinates
    miles = haversine_km(query.latitude, query.longitude, lat, lng) * KM_TO_MILES
    return miles <= query.radius
