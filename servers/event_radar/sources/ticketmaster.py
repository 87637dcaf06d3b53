"""
Ticketmaster Discovery API v2 adapter.

Docs: https://developer.ticketmaster.com/products-and-docs/apis/discovery-api/v2/
Free tier: 5000 calls/day, 5 requests/second.
"""

import math
from typing import Any, Optional

import httpx

from ..models import Event, ProviderQuery
from ..normalize import normalize_coordinates, parse_event_datetime, prefixed_id, split_date_time
from .base import ProviderAdapter, dig


TICKETMASTER_BASE = "https://app.ticketmaster.com/discovery/v2/events.json"
MAX_PAGE_SIZE = 200

# Our categories -> Ticketmaster segment names
SEGMENTS = {
    "music": "Music",
    "concert": "Music",
    "party": "Music",
    "nightlife": "Music",
    "sports": "Sports",
    "arts": "Arts & Theatre",
    "theatre": "Arts & Theatre",
    "comedy": "Arts & Theatre",
    "family": "Family",
    "film": "Film",
}


class TicketmasterAdapter(ProviderAdapter):
    """Ticketing events with venue coordinates and price ranges."""

    source = "ticketmaster"
    api_key_env = "TICKETMASTER_API_KEY"

    def build_params(self, query: ProviderQuery) -> dict[str, Any]:
        params: dict[str, Any] = {
            "apikey": self.require_api_key(),
            "size": min(query.page_size, MAX_PAGE_SIZE),
            "sort": "date,asc",
        }

        if query.has_coordinates:
            params["latlong"] = f"{query.latitude},{query.longitude}"
            params["radius"] = math.ceil(query.radius or 25)
            params["unit"] = "miles"
        elif query.location:
            params["city"] = query.location.split(",")[0].strip()

        keywords = [query.keyword] if query.keyword else []
        segments = []
        for category in query.categories:
            segment = SEGMENTS.get(category)
            if segment and segment not in segments:
                segments.append(segment)
            if category == "party":
                keywords.append("party")
        if segments:
            params["classificationName"] = ",".join(segments)
        if keywords:
            params["keyword"] = " ".join(keywords)

        if query.date_from:
            params["startDateTime"] = f"{query.date_from.isoformat()}T00:00:00Z"
        if query.date_to:
            params["endDateTime"] = f"{query.date_to.isoformat()}T23:59:59Z"

        return params

    async def fetch(self, query: ProviderQuery, client: httpx.AsyncClient) -> list[Event]:
        data = await self.get_json(client, TICKETMASTER_BASE, params=self.build_params(query))
        return self.parse_items(dig(data, "_embedded", "events"), self.parse_event)

    def parse_event(self, item: dict) -> Optional[Event]:
        """Translate one Discovery API event."""
        event_id = item.get("id")
        title = item.get("name")
        if not event_id or not title:
            return None

        local_date = dig(item, "dates", "start", "localDate") or ""
        local_time = dig(item, "dates", "start", "localTime") or ""
        start = parse_event_datetime(f"{local_date} {local_time}".strip())
        date_text, time_text = split_date_time(start)
        if start is not None and not local_time:
            time_text = ""

        venue = dig(item, "_embedded", "venues", 0) or {}
        venue_name = venue.get("name")
        location = ", ".join(
            part for part in (
                venue_name,
                dig(venue, "city", "name"),
                dig(venue, "state", "stateCode"),
            ) if part
        )

        segment = dig(item, "classifications", 0, "segment", "name")

        return Event(
            id=prefixed_id(self.source, event_id),
            source=self.source,
            title=title,
            description=item.get("description") or item.get("info") or "",
            date=date_text or local_date,
            time=time_text,
            raw_date=dig(item, "dates", "start", "dateTime") or local_date or None,
            location=location or None,
            venue=venue_name,
            coordinates=normalize_coordinates(
                dig(venue, "location", "longitude"),
                dig(venue, "location", "latitude"),
            ),
            category=segment.lower() if segment else "other",
            price=_price_text(dig(item, "priceRanges", 0)),
            url=item.get("url"),
            image=dig(item, "images", 0, "url"),
        )


def _price_text(price_range: Optional[dict]) -> Optional[str]:
    """"25.0 - 80.0 USD" from a Ticketmaster price range."""
    if not price_range or price_range.get("min") is None:
        return None
    low = price_range["min"]
    high = price_range.get("max")
    currency = price_range.get("currency", "")
    if high is None or high == low:
        return f"{low} {currency}".strip()
    return f"{low} - {high} {currency}".strip()
