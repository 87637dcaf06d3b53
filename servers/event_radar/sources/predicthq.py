"""PredictHQ Events API adapter."""

from typing import Any, Optional

import httpx

from ..models import Event, ProviderQuery
from ..normalize import coerce_coordinates, parse_event_datetime, prefixed_id, split_date_time
from .base import ProviderAdapter, dig


PREDICTHQ_BASE = "https://api.predicthq.com/v1/events/"
MAX_PAGE_SIZE = 100

CATEGORY_TO_PHQ = {
    "music": ["concerts"],
    "concert": ["concerts"],
    "party": ["concerts", "festivals"],
    "festival": ["festivals"],
    "sports": ["sports"],
    "arts": ["performing-arts"],
    "theatre": ["performing-arts"],
    "community": ["community"],
    "conference": ["conferences"],
    "expo": ["expos"],
}

PHQ_TO_CATEGORY = {
    "concerts": "music",
    "festivals": "festival",
    "performing-arts": "arts",
    "sports": "sports",
    "community": "community",
    "conferences": "conference",
    "expos": "expo",
}


class PredictHQAdapter(ProviderAdapter):
    """Demand-intelligence events. Locations arrive as [lng, lat]."""

    source = "predicthq"
    api_key_env = "PREDICTHQ_API_KEY"

    def build_params(self, query: ProviderQuery) -> dict[str, Any]:
        params: dict[str, Any] = {
            "limit": min(query.page_size, MAX_PAGE_SIZE),
            "sort": "start",
        }

        terms = []
        if query.has_coordinates:
            radius = query.radius or 25
            params["within"] = f"{radius:g}mi@{query.latitude},{query.longitude}"
        elif query.location:
            terms.append(query.location)
        if query.keyword:
            terms.append(query.keyword)
        if terms:
            params["q"] = " ".join(terms)

        phq_categories: list[str] = []
        for category in query.categories:
            for phq in CATEGORY_TO_PHQ.get(category, []):
                if phq not in phq_categories:
                    phq_categories.append(phq)
        if phq_categories:
            params["category"] = ",".join(phq_categories)

        if query.date_from:
            params["active.gte"] = query.date_from.isoformat()
        if query.date_to:
            params["active.lte"] = query.date_to.isoformat()

        return params

    async def fetch(self, query: ProviderQuery, client: httpx.AsyncClient) -> list[Event]:
        headers = {
            "Authorization": f"Bearer {self.require_api_key()}",
            "Accept": "application/json",
        }
        data = await self.get_json(client, PREDICTHQ_BASE, params=self.build_params(query), headers=headers)
        return self.parse_items(data.get("results"), self.parse_event)

    def parse_event(self, item: dict) -> Optional[Event]:
        """Translate one PredictHQ result."""
        event_id = item.get("id")
        title = item.get("title")
        if not event_id or not title:
            return None

        raw_start = item.get("start_local") or item.get("start")
        date_text, time_text = split_date_time(parse_event_datetime(raw_start))

        venue = _venue_entity(item.get("entities"))
        venue_name = venue.get("name") if venue else None
        address = (venue or {}).get("formatted_address") or dig(item, "geo", "address", "formatted_address")

        phq_category = item.get("category") or ""

        return Event(
            id=prefixed_id(self.source, event_id),
            source=self.source,
            title=title,
            description=item.get("description") or "",
            date=date_text,
            time=time_text,
            raw_date=raw_start,
            location=address or venue_name,
            venue=venue_name,
            coordinates=coerce_coordinates(item.get("location")),
            category=PHQ_TO_CATEGORY.get(phq_category, phq_category or "other"),
        )


def _venue_entity(entities: Any) -> Optional[dict]:
    if not isinstance(entities, list):
        return None
    for entity in entities:
        if isinstance(entity, dict) and entity.get("type") == "venue":
            return entity
    return None
