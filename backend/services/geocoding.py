"""Distance math and lightweight reverse geocoding using OpenStreetMap Nominatim.

Distances use the haversine great-circle formula on a spherical Earth of
3,959 miles. Callers convert to feet or meters as needed.
"""

from __future__ import annotations

import logging
import math
import os
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

NOMINATIM_BASE_URL = "https://nominatim.openstreetmap.org/reverse"
EARTH_RADIUS_MILES = 3959.0
FEET_PER_MILE = 5280.0
METERS_PER_MILE = 1609.34

logger = logging.getLogger(__name__)
_session = requests.Session()
_last_request_ts: float = 0.0
_lock = threading.Lock()
_MIN_INTERVAL_SEC = float(os.getenv("NOMINATIM_MIN_INTERVAL", "1.1"))
_logged_ua = False
NOMINATIM_USER_AGENT = os.getenv("NOMINATIM_USER_AGENT")
NOMINATIM_REFERER = os.getenv("NOMINATIM_REFERER")

FALLBACK_UA = "photo-poi-identifier/0.1 (contact: example@example.com)"
if NOMINATIM_USER_AGENT is None:
    logger.warning(
        "NOMINATIM_USER_AGENT not set in environment; using fallback UA. "
        "This may violate Nominatim usage policy."
    )


def _redact_email(ua: str) -> str:
    if "@" not in ua:
        return ua
    return re.sub(r"\S+@\S+", "<redacted>", ua)


_ua_value = NOMINATIM_USER_AGENT or FALLBACK_UA
NOMINATIM_HEADERS = {
    "User-Agent": _ua_value,
}
if NOMINATIM_REFERER:
    NOMINATIM_HEADERS["Referer"] = NOMINATIM_REFERER


@dataclass(frozen=True)
class ReverseGeocodeAddress:
    display_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    @property
    def short_label(self) -> Optional[str]:
        """Return a concise label, preferring city/state when available."""
        parts: list[str] = []
        if self.city and self.state:
            parts = [self.city, self.state]
        elif self.city and self.country:
            parts = [self.city, self.country]
        elif self.state and self.country:
            parts = [self.state, self.country]
        elif self.city:
            parts = [self.city]
        elif self.country:
            parts = [self.country]
        else:
            return None
        return ", ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "display_name": self.display_name,
            "city": self.city,
            "state": self.state,
            "country": self.country,
        }


def _finite(value: Any) -> float:
    """Coerce a coordinate to a finite float; anything else becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def haversine_miles(lat1: Any, lng1: Any, lat2: Any, lng2: Any) -> float:
    """Great-circle distance in miles. Non-finite inputs are treated as 0."""
    lat1, lng1, lat2, lng2 = (_finite(v) for v in (lat1, lng1, lat2, lng2))
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(dlng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


def haversine_feet(lat1: Any, lng1: Any, lat2: Any, lng2: Any) -> float:
    return haversine_miles(lat1, lng1, lat2, lng2) * FEET_PER_MILE


def miles_to_meters(miles: float) -> int:
    return max(1, int(round(miles * METERS_PER_MILE)))


def parse_gps_string(gps: Optional[str]) -> Optional[tuple[float, float]]:
    """Parse a "lat,lng" string. Returns None when either part is missing or not a number."""
    if not gps:
        return None
    parts = [p.strip() for p in gps.split(",") if p and p.strip()]
    if len(parts) < 2:
        return None
    try:
        lat = float(parts[0])
        lng = float(parts[1])
    except ValueError:
        return None
    if math.isnan(lat) or math.isnan(lng):
        return None
    return lat, lng


def _throttled_get(
    url: str,
    *,
    params: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
) -> requests.Response:
    """Perform a GET request with a simple global rate limit."""
    global _last_request_ts
    with _lock:
        now = time.time()
        delta = now - _last_request_ts
        if delta < _MIN_INTERVAL_SEC:
            time.sleep(_MIN_INTERVAL_SEC - delta)
        _last_request_ts = time.time()
    return _session.get(url, params=params, headers=headers, timeout=timeout)


def reverse_geocode_address(lat: float, lng: float, timeout: float = 5.0) -> Optional[ReverseGeocodeAddress]:
    """Reverse geocode a coordinate into a street-level address using Nominatim.

    Returns None on network or parsing errors, or when Nominatim has no address.
    """
    global _logged_ua
    if not _logged_ua:
        logger.debug("Nominatim User-Agent: %s", _redact_email(_ua_value))
        _logged_ua = True

    params = {
        "format": "jsonv2",
        "lat": str(lat),
        "lon": str(lng),
        "zoom": "18",
        "addressdetails": "1",
    }

    try:
        resp = _throttled_get(
            NOMINATIM_BASE_URL, params=params, headers=NOMINATIM_HEADERS, timeout=timeout
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.warning(
            "Nominatim reverse geocode error for lat=%s lon=%s: %s", lat, lng, exc
        )
        return None

    try:
        data = resp.json()
    except ValueError as exc:
        logger.warning(
            "Nominatim reverse geocode JSON error for lat=%s lon=%s: %s",
            lat,
            lng,
            exc,
        )
        return None

    if not isinstance(data, dict):
        return None
    address = data.get("address") or {}
    result = ReverseGeocodeAddress(
        display_name=data.get("display_name") or None,
        city=(
            address.get("city")
            or address.get("town")
            or address.get("village")
            or address.get("hamlet")
        ),
        state=address.get("state"),
        country=address.get("country"),
    )
    if not result.display_name and not result.short_label:
        return None
    return result
