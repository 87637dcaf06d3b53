"""
SerpApi Google Events adapter.

Free tier: 100 searches/month
Paid: $50/month for 5000 searches

Broad coverage but no coordinates, so these events show in lists only.
"""

import hashlib
from typing import Any, Optional

import httpx

from ..models import Event, ProviderQuery
from ..normalize import parse_event_datetime, prefixed_id, split_date_time
from .base import ProviderAdapter, dig


SERPAPI_BASE = "https://serpapi.com/search"

# Map our categories to search terms
CATEGORY_TERMS = {
    "music": "live music concerts",
    "food": "food drink tastings",
    "arts": "art gallery theater",
    "nightlife": "nightlife clubs bars",
    "party": "parties nightlife",
    "community": "community festivals markets",
}


class SerpApiEventsAdapter(ProviderAdapter):
    """Google Events results via SerpApi."""

    source = "serpapi"
    api_key_env = "SERPAPI_KEY"

    def build_params(self, query: ProviderQuery) -> dict[str, Any]:
        query_parts = [CATEGORY_TERMS[c] for c in query.categories if c in CATEGORY_TERMS]
        if query.keyword:
            query_parts.append(query.keyword)
        query_parts.append("events")

        if query.location:
            place = query.location
        else:
            place = f"{query.latitude:.4f},{query.longitude:.4f}"

        params = {
            "engine": "google_events",
            "q": f"{' '.join(query_parts)} in {place}",
            "hl": "en",
            "api_key": self.require_api_key(),
        }
        if query.date_from:
            params["htichips"] = "date:week"
        return params

    async def fetch(self, query: ProviderQuery, client: httpx.AsyncClient) -> list[Event]:
        data = await self.get_json(client, SERPAPI_BASE, params=self.build_params(query))
        events = self.parse_items(data.get("events_results"), self.parse_event)
        return events[:query.page_size]

    def parse_event(self, item: dict) -> Optional[Event]:
        """Translate one Google Events result."""
        title = item.get("title", "")
        if not title:
            return None

        when = dig(item, "date", "when") or ""
        start_date = dig(item, "date", "start_date") or ""
        start = parse_event_datetime(when, fuzzy=True) or parse_event_datetime(start_date, fuzzy=True)
        date_text, time_text = split_date_time(start)

        address = item.get("address") or []
        venue_name = dig(item, "venue", "name") or (address[0] if address else None)

        ticket = dig(item, "ticket_info", 0) or {}

        return Event(
            id=prefixed_id(self.source, _stable_id(title, start_date, venue_name)),
            source=self.source,
            title=title,
            description=item.get("description") or "",
            date=date_text,
            time=time_text,
            raw_date=when or start_date or None,
            location=", ".join(address) or None,
            venue=venue_name,
            category="other",
            price=ticket.get("price"),
            url=item.get("link") or ticket.get("link"),
            image=item.get("thumbnail"),
        )


def _stable_id(title: str, start_date: str, venue: Optional[str]) -> str:
    """Google Events has no ids; derive one that is stable across calls."""
    digest = hashlib.sha1(f"{title}|{start_date}|{venue or ''}".encode()).hexdigest()
    return digest[:12]
