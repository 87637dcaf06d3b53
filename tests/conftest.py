"""Shared pytest fixtures for event radar tests."""

import pytest

from servers.event_radar.models import Event


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake clock for cache and circuit breaker tests."""
    return FakeClock()


@pytest.fixture
def sample_event() -> Event:
    """Provide a single Miami nightlife event."""
    return Event(
        id="ticketmaster:G5v1",
        source="ticketmaster",
        title="Rave at Club Space",
        description="All-night techno with international DJs",
        date="2025-01-17",
        time="23:00",
        raw_date="2025-01-17T23:00:00",
        location="Downtown Miami, FL",
        venue="Club Space",
        coordinates=(-80.1918, 25.7839),
        category="music",
        price="$40",
    )


@pytest.fixture
def sample_events() -> list[Event]:
    """Provide events across providers, including one cross-provider duplicate."""
    return [
        Event(
            id="ticketmaster:1",
            source="ticketmaster",
            title="Jazz Night at The Corner",
            description="Live quartet",
            date="2025-01-17",
            time="21:00",
            venue="The Corner",
            coordinates=(-80.1950, 25.7750),
            category="music",
            price="$12",
        ),
        Event(
            id="rapidapi:abc",
            source="rapidapi",
            title="JAZZ NIGHT at the Corner!",
            description="",
            date="2025-01-17",
            time="21:00",
            venue="The Corner",
            category="music",
            price="12",
        ),
        Event(
            id="predicthq:9",
            source="predicthq",
            title="Art Basel Opening",
            description="Gallery openings across the district",
            date="2025-01-18",
            time="18:00",
            venue="Convention Center",
            coordinates=(-80.1340, 25.7950),
            category="arts",
            price="Free",
        ),
        Event(
            id="serpapi:x1",
            source="serpapi",
            title="Sunset Yoga",
            date="2025-01-19",
            time="07:00",
            venue="South Pointe Park",
            category="health",
        ),
    ]


def make_event(event_id: str, **overrides) -> Event:
    """Build an event with sensible defaults for the fields a test doesn't care about."""
    data = {
        "id": event_id,
        "source": event_id.split(":")[0] if ":" in event_id else "mock",
        "title": f"Event {event_id}",
        "date": "2025-01-17",
        "time": "20:00",
    }
    data.update(overrides)
    return Event(**data)


@pytest.fixture
def event_factory():
    """Provide make_event for tests that build their own event sets."""
    return make_event
