"""
Exact-key deduplication for merged provider results.

Two events are duplicates when their normalized (title, date, venue)
triples are equal. The first occurrence wins; later duplicates are dropped.

Known trade-off: a recurring series at one venue collapses only when two
listings fall on the same date, but two distinct same-day shows with the
same title at the same venue will also collapse.
"""

import re
from typing import Optional

import structlog
from rapidfuzz.utils import default_process

from .models import DedupeResult, DuplicateMatch, Event


logger = structlog.get_logger()


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    if not text:
        return ""

    # default_process lowercases, replaces non-alphanumerics with spaces and trims
    text = default_process(text)

    return re.sub(r"\s+", " ", text)


def dedup_key(event: Event) -> str:
    """Build the (title, date, venue) key for an event."""
    return "|".join((
        normalize_text(event.title),
        (event.date or "").strip(),
        normalize_text(event.venue),
    ))


def deduplicate(events: list[Event]) -> DedupeResult:
    """
    Drop events whose dedup key was already seen.

    Args:
        events: Merged events in adapter order

    Returns:
        DedupeResult with surviving events (order preserved) and audit trail
    """
    seen: dict[str, Event] = {}
    result_events: list[Event] = []
    audit_trail: list[DuplicateMatch] = []

    for event in events:
        key = dedup_key(event)
        kept = seen.get(key)

        if kept is None:
            seen[key] = event
            result_events.append(event)
            continue

        audit_trail.append(DuplicateMatch(
            kept_event_id=kept.id,
            dropped_event_id=event.id,
            key=key,
        ))

    result = DedupeResult(
        events=result_events,
        original_count=len(events),
        duplicates_removed=len(events) - len(result_events),
        audit_trail=audit_trail,
    )

    if result.duplicates_removed:
        logger.debug(
            "duplicates_removed",
            original=result.original_count,
            removed=result.duplicates_removed,
        )

    return result


def format_audit_summary(result: DedupeResult) -> str:
    """Format audit trail as human-readable summary."""
    if not result.audit_trail:
        return "No duplicates found."

    lines = [
        "Deduplication Summary:",
        f"  Original events: {result.original_count}",
        f"  Duplicates removed: {result.duplicates_removed}",
        f"  Final events: {len(result.events)}",
        f"  Dedup rate: {result.dedup_rate:.1f}%",
        "",
        "Dropped events:",
    ]

    for match in result.audit_trail:
        lines.append(f"  - {match.dropped_event_id} (kept {match.kept_event_id})")

    return "\n".join(lines)
