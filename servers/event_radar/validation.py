"""
Search request validation.

parse_search_request turns a raw, client-shaped dict (camelCase keys) into
a SearchRequest. Every problem is collected before raising, so a client
sees all of its mistakes in one response.
"""

from datetime import date
from typing import Any, Optional

import structlog
from dateutil import parser

from .errors import RequestValidationError
from .models import DateRange, SearchRequest

logger = structlog.get_logger()

DEFAULT_RADIUS = 25.0
MIN_RADIUS = 1.0
MAX_RADIUS = 100.0
DEFAULT_LIMIT = 100
MAX_LIMIT = 200
SORT_KEYS = ("date", "distance", "price")


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def _integer(value: Any) -> Optional[int]:
    number = _number(value)
    if number is None or number != int(number):
        return None
    return int(number)


def _date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return parser.parse(value).date()
    except (ValueError, OverflowError):
        return None


def _present(raw: dict, key: str) -> bool:
    return raw.get(key) not in (None, "")


def _parse_coordinates(raw: dict, errors: list[str]) -> tuple[Optional[float], Optional[float]]:
    has_lat = _present(raw, "latitude")
    has_lng = _present(raw, "longitude")

    if has_lat != has_lng:
        errors.append("latitude and longitude must be provided together")
        return None, None
    if not has_lat:
        return None, None

    latitude = _number(raw["latitude"])
    longitude = _number(raw["longitude"])

    if latitude is None or not -90 <= latitude <= 90:
        errors.append("latitude must be a number between -90 and 90")
        latitude = None
    if longitude is None or not -180 <= longitude <= 180:
        errors.append("longitude must be a number between -180 and 180")
        longitude = None

    return latitude, longitude


def _parse_radius(raw: dict, has_coordinates: bool, default: float, errors: list[str]) -> Optional[float]:
    if not _present(raw, "radius"):
        return default if has_coordinates else None

    radius = _number(raw["radius"])
    if radius is None or radius <= 0:
        errors.append("radius must be a positive number")
        return None
    return min(max(radius, MIN_RADIUS), MAX_RADIUS)


def _parse_categories(value: Any, errors: list[str]) -> list[str]:
    if value in (None, ""):
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        errors.append("categories must be a list or a comma-separated string")
        return []

    categories = []
    for item in items:
        if not isinstance(item, str):
            errors.append("categories must contain only strings")
            return []
        item = item.strip().lower()
        if item and item not in categories:
            categories.append(item)
    return categories


def _parse_price_range(value: Any, errors: list[str]) -> Optional[tuple[float, float]]:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        errors.append("priceRange must be a [min, max] pair")
        return None

    low, high = _number(value[0]), _number(value[1])
    if low is None or high is None:
        errors.append("priceRange values must be numbers")
        return None
    if low < 0 or high < 0:
        errors.append("priceRange values must not be negative")
        return None
    if low > high:
        errors.append("priceRange minimum must not exceed maximum")
        return None
    return (low, high)


def _parse_date_range(value: Any, errors: list[str]) -> Optional[DateRange]:
    if value is None:
        return None
    if not isinstance(value, dict):
        errors.append("dateRange must be an object with from and to")
        return None

    date_from = _date(value.get("from"))
    date_to = _date(value.get("to"))
    if date_from is None or date_to is None:
        errors.append("dateRange.from and dateRange.to must be valid dates")
        return None
    if date_from > date_to:
        errors.append("dateRange.from must not be after dateRange.to")
        return None
    return DateRange(from_=date_from, to=date_to)


def _parse_limit(raw: dict, default: int, maximum: int, errors: list[str]) -> int:
    if not _present(raw, "limit"):
        return default
    limit = _integer(raw["limit"])
    if limit is None or limit <= 0:
        errors.append("limit must be a positive integer")
        return default
    return min(limit, maximum)


def _parse_page(raw: dict, errors: list[str]) -> int:
    if not _present(raw, "page"):
        return 1
    page = _integer(raw["page"])
    if page is None or page < 1:
        errors.append("page must be an integer >= 1")
        return 1
    return page


def parse_search_request(
    raw: dict[str, Any],
    default_radius: float = DEFAULT_RADIUS,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> SearchRequest:
    """
    Validate a raw search request.

    Args:
        raw: Client request with camelCase keys (priceRange, dateRange, sortBy)
        default_radius: Radius applied when coordinates come without one
        default_limit: Page size when none is given
        max_limit: Cap applied to the requested page size

    Returns:
        A normalized SearchRequest

    Raises:
        RequestValidationError: With every problem found
    """
    if not isinstance(raw, dict):
        raise RequestValidationError(["request must be an object"])

    errors: list[str] = []

    location = raw.get("location")
    if location is not None and not isinstance(location, str):
        errors.append("location must be a string")
        location = None
    location = location.strip() if location else None

    latitude, longitude = _parse_coordinates(raw, errors)
    has_coordinates = latitude is not None and longitude is not None

    if not location and not _present(raw, "latitude") and not _present(raw, "longitude"):
        errors.append("either location or latitude/longitude is required")

    radius = _parse_radius(raw, has_coordinates, default_radius, errors)
    categories = _parse_categories(raw.get("categories"), errors)

    keyword = raw.get("keyword")
    if keyword is not None and not isinstance(keyword, str):
        errors.append("keyword must be a string")
        keyword = None
    keyword = keyword.strip() if keyword else None

    price_range = _parse_price_range(raw.get("priceRange", raw.get("price_range")), errors)
    date_range = _parse_date_range(raw.get("dateRange", raw.get("date_range")), errors)

    sort_by = raw.get("sortBy", raw.get("sort_by")) or "date"
    if sort_by not in SORT_KEYS:
        errors.append(f"sortBy must be one of {', '.join(SORT_KEYS)}")
        sort_by = "date"

    limit = _parse_limit(raw, default_limit, max_limit, errors)
    page = _parse_page(raw, errors)

    if errors:
        logger.info("request_rejected", errors=errors)
        raise RequestValidationError(errors)

    return SearchRequest(
        location=location,
        latitude=latitude,
        longitude=longitude,
        radius=radius,
        categories=categories,
        keyword=keyword or None,
        price_range=price_range,
        date_range=date_range,
        sort_by=sort_by,
        limit=limit,
        page=page,
    )
