"""Offline adapter returning a fixed event set, for --test runs and tests."""

import asyncio
from datetime import datetime, timedelta
from typing import Optional

import httpx

from ..models import Event, ProviderQuery
from ..normalize import split_date_time
from .base import ProviderAdapter


def sample_events(now: Optional[datetime] = None) -> list[Event]:
    """A small Miami event set relative to `now`."""
    now = (now or datetime.now()).replace(minute=0, second=0, microsecond=0)

    def when(days: int, hour: int) -> dict[str, str]:
        start = (now + timedelta(days=days)).replace(hour=hour)
        date_text, time_text = split_date_time(start)
        return {"date": date_text, "time": time_text, "raw_date": start.isoformat()}

    return [
        Event(
            id="mock:1",
            source="mock",
            title="Wynwood Rooftop Dance Party",
            description="Resident DJs spin house and disco under the stars.",
            **when(2, 22),
            location="Wynwood, Miami, FL",
            venue="Wynwood Rooftop",
            coordinates=(-80.1994, 25.8010),
            category="nightlife",
            price="$25",
        ),
        Event(
            id="mock:2",
            source="mock",
            title="Bayfront Bottomless Brunch Party",
            description="Mimosas, DJ sets and a birthday celebration on the bay.",
            **when(3, 11),
            location="Downtown Miami, FL",
            venue="Bayside Terrace",
            coordinates=(-80.1862, 25.7781),
            category="food",
            price="$45",
        ),
        Event(
            id="mock:3",
            source="mock",
            title="South Beach Pool Party",
            description="Day party with live percussion.",
            **when(4, 14),
            location="Miami Beach, FL",
            venue="Shore Club",
            category="nightlife",
            price="Free",
        ),
        Event(
            id="mock:4",
            source="mock",
            title="Little Havana Art Walk",
            description="Galleries open late along Calle Ocho.",
            **when(5, 18),
            location="Little Havana, Miami, FL",
            venue="Calle Ocho",
            coordinates=(-80.2196, 25.7654),
            category="arts",
            price="Free",
        ),
        Event(
            id="mock:5",
            source="mock",
            title="Founders Networking Mixer",
            description="Startup founders and investors meetup with cocktails.",
            **when(6, 19),
            location="Brickell, Miami, FL",
            venue="Brickell City Centre",
            category="business",
            price=15,
        ),
    ]


class MockAdapter(ProviderAdapter):
    """Serves a fixed list of events, optionally after a delay."""

    source = "mock"

    def __init__(
        self,
        events: Optional[list[Event]] = None,
        delay: float = 0.0,
        source: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        if source:
            self.source = source
        self.events = events
        self.delay = delay

    async def fetch(self, query: ProviderQuery, client: httpx.AsyncClient) -> list[Event]:
        if self.delay:
            await asyncio.sleep(self.delay)
        events = self.events if self.events is not None else sample_events()
        return list(events)[:query.page_size]
