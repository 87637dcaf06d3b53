"""
Event Radar aggregation server

This server provides:
- Fetching events from multiple providers (Ticketmaster, PredictHQ, RapidAPI, SerpApi)
- Deduplicating, filtering and sorting the merged result set
- Classifying party events by keyword and time of day
- Clustering events for map rendering and resolving map clicks

Results are cached in memory with TTL expiry and a size cap.
"""

__version__ = "1.0.0"
