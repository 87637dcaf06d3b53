"""
Event provider adapters.

Each adapter implements:
- fetch(query, client) -> list[Event] for one provider call
- inherits search(query) -> ProviderResult, which never raises
"""

from .base import ProviderAdapter
from .mock import MockAdapter, sample_events
from .predicthq import PredictHQAdapter
from .rapidapi import RapidApiEventsAdapter
from .serpapi import SerpApiEventsAdapter
from .ticketmaster import TicketmasterAdapter

ADAPTERS: dict[str, type[ProviderAdapter]] = {
    "ticketmaster": TicketmasterAdapter,
    "predicthq": PredictHQAdapter,
    "rapidapi": RapidApiEventsAdapter,
    "serpapi": SerpApiEventsAdapter,
    "mock": MockAdapter,
}

__all__ = [
    "ADAPTERS",
    "ProviderAdapter",
    "MockAdapter",
    "PredictHQAdapter",
    "RapidApiEventsAdapter",
    "SerpApiEventsAdapter",
    "TicketmasterAdapter",
    "sample_events",
]
