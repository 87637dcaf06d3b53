"""Tests for search request validation."""

from datetime import date

import pytest

from servers.event_radar.errors import RequestValidationError
from servers.event_radar.models import SearchRequest
from servers.event_radar.validation import parse_search_request


def errors_for(raw: dict) -> list[str]:
    with pytest.raises(RequestValidationError) as exc_info:
        parse_search_request(raw)
    return exc_info.value.errors


class TestLocation:
    """Tests for location/coordinate requirements."""

    def test_location_only(self):
        request = parse_search_request({"location": "  Miami  "})
        assert request.location == "Miami"
        assert request.radius is None
        assert not request.has_coordinates

    def test_coordinates_only_get_default_radius(self):
        request = parse_search_request({"latitude": 25.77, "longitude": -80.19})
        assert request.has_coordinates
        assert request.radius == 25

    def test_neither_location_nor_coordinates(self):
        errors = errors_for({"keyword": "jazz"})
        assert any("location" in e for e in errors)

    def test_blank_location_counts_as_missing(self):
        assert errors_for({"location": "   "})

    def test_half_coordinate_pair(self):
        errors = errors_for({"location": "Miami", "latitude": 25.77})
        assert any("together" in e for e in errors)

    @pytest.mark.parametrize(
        ("lat", "lng"),
        [(91, 0), (-90.5, 0), (0, 180.1), (0, -181), ("north", 0)],
    )
    def test_out_of_range_coordinates(self, lat, lng):
        assert errors_for({"latitude": lat, "longitude": lng})

    def test_string_coordinates_accepted(self):
        request = parse_search_request({"latitude": "25.77", "longitude": "-80.19"})
        assert request.latitude == 25.77


class TestRadius:
    """Tests for radius handling."""

    @pytest.mark.parametrize(("radius", "expected"), [(0.5, 1), (50, 50), (250, 100)])
    def test_clamped(self, radius, expected):
        request = parse_search_request({"latitude": 25.77, "longitude": -80.19, "radius": radius})
        assert request.radius == expected

    @pytest.mark.parametrize("radius", [0, -5, "far"])
    def test_must_be_positive(self, radius):
        assert errors_for({"location": "Miami", "radius": radius})


class TestFilters:
    """Tests for category, keyword, price and date parsing."""

    def test_categories_from_csv(self):
        request = parse_search_request({"location": "Miami", "categories": "Party, MUSIC,,party"})
        assert request.categories == ["party", "music"]

    def test_categories_from_list(self):
        request = parse_search_request({"location": "Miami", "categories": ["Arts", " food "]})
        assert request.categories == ["arts", "food"]

    def test_categories_wrong_type(self):
        assert errors_for({"location": "Miami", "categories": 5})

    def test_keyword_trimmed(self):
        assert parse_search_request({"location": "Miami", "keyword": "  salsa "}).keyword == "salsa"
        assert parse_search_request({"location": "Miami", "keyword": "   "}).keyword is None

    def test_price_range(self):
        request = parse_search_request({"location": "Miami", "priceRange": [0, 50]})
        assert request.price_range == (0, 50)

    @pytest.mark.parametrize("price_range", [[50, 10], [-1, 10], [1], "cheap", [0, "x"]])
    def test_bad_price_range(self, price_range):
        assert errors_for({"location": "Miami", "priceRange": price_range})

    def test_date_range(self):
        request = parse_search_request(
            {"location": "Miami", "dateRange": {"from": "2025-01-01", "to": "2025-01-31"}}
        )
        assert request.date_range.from_ == date(2025, 1, 1)
        assert request.date_range.to == date(2025, 1, 31)

    @pytest.mark.parametrize(
        "date_range",
        [
            {"from": "2025-02-01", "to": "2025-01-01"},
            {"from": "soon", "to": "2025-01-01"},
            {"from": "2025-01-01"},
            "next week",
        ],
    )
    def test_bad_date_range(self, date_range):
        assert errors_for({"location": "Miami", "dateRange": date_range})


class TestPaging:
    """Tests for limit, page and sortBy."""

    def test_defaults(self):
        request = parse_search_request({"location": "Miami"})
        assert request.limit == 100
        assert request.page == 1
        assert request.sort_by == "date"

    def test_limit_capped(self):
        assert parse_search_request({"location": "Miami", "limit": 500}).limit == 200

    @pytest.mark.parametrize("limit", [0, -1, 2.5, "many"])
    def test_bad_limit(self, limit):
        assert errors_for({"location": "Miami", "limit": limit})

    @pytest.mark.parametrize("page", [0, -2, "first"])
    def test_bad_page(self, page):
        assert errors_for({"location": "Miami", "page": page})

    def test_sort_by(self):
        assert parse_search_request({"location": "Miami", "sortBy": "price"}).sort_by == "price"
        assert errors_for({"location": "Miami", "sortBy": "popularity"})

    def test_custom_limits(self):
        request = parse_search_request({"location": "Miami", "limit": 80}, default_limit=20, max_limit=50)
        assert request.limit == 50
        assert parse_search_request({"location": "Miami"}, default_limit=20).limit == 20


class TestErrorCollection:
    """All problems are reported together."""

    def test_collects_every_error(self):
        errors = errors_for({"latitude": 100, "radius": -1, "limit": 0, "page": 0, "sortBy": "x"})
        assert len(errors) >= 5

    def test_non_dict_request(self):
        with pytest.raises(RequestValidationError):
            parse_search_request(["Miami"])

    def test_message_joins_errors(self):
        with pytest.raises(RequestValidationError) as exc_info:
            parse_search_request({})
        assert str(exc_info.value) == "; ".join(exc_info.value.errors)


def test_search_request_parse_delegates():
    request = SearchRequest.parse({"location": "Miami", "limit": 5})
    assert isinstance(request, SearchRequest)
    assert request.limit == 5
