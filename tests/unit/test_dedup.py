"""Tests for event deduplication logic."""

from servers.event_radar.dedup import dedup_key, deduplicate, format_audit_summary, normalize_text


class TestNormalization:
    """Tests for text normalization."""

    def test_collapses_whitespace(self):
        result = normalize_text("  Multiple   Spaces  ")
        assert result == "multiple spaces"

    def test_lowercase(self):
        assert normalize_text("UPPERCASE TEXT") == "uppercase text"

    def test_strips_punctuation(self):
        assert normalize_text("Jazz Night @ The Corner!") == "jazz night the corner"

    def test_empty_string(self):
        assert normalize_text("") == ""

    def test_none_handling(self):
        assert normalize_text(None) == ""


class TestDedupKey:
    """Tests for the (title, date, venue) key."""

    def test_formatting_differences_share_key(self, sample_events):
        assert dedup_key(sample_events[0]) == dedup_key(sample_events[1])

    def test_different_dates_differ(self, event_factory):
        a = event_factory("mock:1", title="Trivia", venue="Pub", date="2025-01-17")
        b = event_factory("mock:2", title="Trivia", venue="Pub", date="2025-01-24")
        assert dedup_key(a) != dedup_key(b)

    def test_missing_venue(self, event_factory):
        event = event_factory("mock:1", title="Trivia", venue=None)
        assert dedup_key(event) == "trivia|2025-01-17|"


class TestDeduplicate:
    """Tests for the deduplicate function."""

    def test_removes_cross_provider_duplicate(self, sample_events):
        result = deduplicate(sample_events)

        assert result.original_count == 4
        assert result.duplicates_removed == 1
        assert len(result.events) == 3
        assert [e.id for e in result.events] == ["ticketmaster:1", "predicthq:9", "serpapi:x1"]

    def test_first_occurrence_wins(self, sample_events):
        reordered = [sample_events[1], sample_events[0]] + sample_events[2:]
        result = deduplicate(reordered)

        assert len(result.events) == 3
        assert result.events[0].id == "rapidapi:abc"

    def test_collapses_regardless_of_order(self, sample_events):
        forward = deduplicate(sample_events)
        backward = deduplicate(list(reversed(sample_events)))
        assert len(forward.events) == len(backward.events) == 3

    def test_audit_trail(self, sample_events):
        result = deduplicate(sample_events)

        assert len(result.audit_trail) == 1
        match = result.audit_trail[0]
        assert match.kept_event_id == "ticketmaster:1"
        assert match.dropped_event_id == "rapidapi:abc"
        assert match.key == "jazz night at the corner|2025-01-17|the corner"

    def test_recurring_series_kept(self, event_factory):
        """Weekly events at the same venue on different dates are distinct."""
        events = [
            event_factory(f"mock:{i}", title="Salsa Tuesdays", venue="Ball & Chain", date=f"2025-01-{d}")
            for i, d in enumerate(("07", "14", "21"))
        ]
        assert len(deduplicate(events).events) == 3

    def test_empty_list(self):
        result = deduplicate([])
        assert result.events == []
        assert result.duplicates_removed == 0


class TestAuditSummary:
    """Tests for the human-readable summary."""

    def test_no_duplicates(self, event_factory):
        result = deduplicate([event_factory("mock:1")])
        assert format_audit_summary(result) == "No duplicates found."

    def test_lists_dropped_events(self, sample_events):
        summary = format_audit_summary(deduplicate(sample_events))
        assert "Duplicates removed: 1" in summary
        assert "rapidapi:abc (kept ticketmaster:1)" in summary
        assert "25.0%" in summary
