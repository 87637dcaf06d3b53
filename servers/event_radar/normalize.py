"""
Normalization helpers shared by the provider adapters and the pipeline.

Covers coordinates, prices, dates/times and great-circle distance. Every
helper is total: bad input yields None (or 0 for prices), never an exception.
"""

import math
import re
from datetime import datetime
from typing import Any, Optional

from dateutil import parser


EARTH_RADIUS_KM = 6371.0
KM_TO_MILES = 0.621371

_PRICE_TOKEN = re.compile(r"\d+(?:\.\d+)?")
_CLOCK = re.compile(r"^\s*(\d{1,2})(?::(\d{2}))?(?::\d{2})?\s*([ap]\.?m\.?)?", re.IGNORECASE)


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def normalize_coordinates(longitude: Any, latitude: Any) -> Optional[tuple[float, float]]:
    """
    Build a (longitude, latitude) pair or return None.

    Accepts numbers or numeric strings. NaN, infinities and out-of-range
    values are treated as absent.
    """
    lng = _to_float(longitude)
    lat = _to_float(latitude)

    if lng is None or lat is None:
        return None
    if not -180.0 <= lng <= 180.0 or not -90.0 <= lat <= 90.0:
        return None

    return (lng, lat)


def coerce_coordinates(value: Any) -> Optional[tuple[float, float]]:
    """Normalize any [lng, lat] sequence (or None) into a valid pair or None."""
    if value is None:
        return None
    if isinstance(value, dict):
        return normalize_coordinates(value.get("longitude", value.get("lng")),
                                     value.get("latitude", value.get("lat")))
    try:
        lng, lat = value
    except (TypeError, ValueError):
        return None
    return normalize_coordinates(lng, lat)


def parse_price(price: Any) -> float:
    """
    Convert a free-text or numeric price into an amount.

    "Free" (anywhere in the text) is 0; otherwise the first numeric token
    is used ("$10-20" -> 10.0). Anything unparseable is 0.
    """
    if price is None or isinstance(price, bool):
        return 0.0

    if isinstance(price, (int, float)):
        number = _to_float(price)
        return number if number is not None else 0.0

    if isinstance(price, str):
        text = price.lower()
        if "free" in text:
            return 0.0
        match = _PRICE_TOKEN.search(text.replace(",", ""))
        if match:
            return float(match.group(0))

    return 0.0


def parse_event_datetime(value: Any, fuzzy: bool = False) -> Optional[datetime]:
    """Parse a provider date/time string into a naive local datetime."""
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if not value or not isinstance(value, str):
        return None

    try:
        parsed = parser.parse(value, fuzzy=fuzzy)
    except (ValueError, TypeError, OverflowError):
        return None

    return parsed.replace(tzinfo=None)


def split_date_time(value: Optional[datetime]) -> tuple[str, str]:
    """Split a datetime into display strings ("2025-01-17", "21:00")."""
    if value is None:
        return "", ""
    return value.strftime("%Y-%m-%d"), value.strftime("%H:%M")


def parse_hour(time_text: Any) -> Optional[int]:
    """
    Extract the hour of day (0-23) from a display time.

    Handles "21:00", "9:30 PM", "9pm" and ISO times. Returns None when no
    hour can be read.
    """
    if not isinstance(time_text, str) or not time_text.strip():
        return None

    text = time_text.strip()
    if "T" in text:
        text = text.split("T", 1)[1]

    match = _CLOCK.match(text)
    if not match:
        return None

    hour = int(match.group(1))
    meridiem = (match.group(3) or "").replace(".", "").lower()

    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0

    if not 0 <= hour <= 23:
        return None
    return hour


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def prefixed_id(source: str, raw_id: Any) -> str:
    """Namespace a provider id so ids never collide across providers."""
    return f"{source}:{raw_id}"
