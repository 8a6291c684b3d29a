"""
Location detective: GPS proximity, time-of-day and photo-content correlation.

Runs independently of the POI ranking pipeline. Proximity is checked against
the curated landmark set; photo text is only ever correlated with places that
are already GPS-proximate.
"""
from __future__ import annotations

import logging
import math
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from domain.models import DetectiveLocation, LandmarkRecord, LocationDetectiveResult, TimeContext
from services.geocoding import haversine_feet, parse_gps_string
from services.landmarks import LANDMARKS, region_label

logger = logging.getLogger(__name__)

PROXIMITY_RADIUS_FEET = 500
MAX_PROXIMATE_LANDMARKS = 5
GPS_CONFIDENCE = 0.9
CONTENT_CONFIDENCE = 0.8
ADDRESS_CONFIDENCE = 0.8
EXTERNAL_FEATURE_CONFIDENCE = 0.5
EXTERNAL_FEATURES_OVERALL_CONFIDENCE = 0.7
MIN_WORD_LENGTH = 4

_TIME_PATTERN = re.compile(r"(\d{1,2}):(\d{2})\s*(AM|PM)", re.IGNORECASE)


def find_nearby_landmarks(
    lat: float,
    lng: float,
    landmarks: Iterable[LandmarkRecord] = LANDMARKS,
    radius_feet: float = PROXIMITY_RADIUS_FEET,
    limit: int = MAX_PROXIMATE_LANDMARKS,
) -> List[Tuple[LandmarkRecord, float]]:
    """Landmarks within radius_feet, nearest first, at most `limit`."""
    hits = []
    for record in landmarks:
        distance = haversine_feet(lat, lng, record.lat, record.lng)
        if distance <= radius_feet:
            hits.append((record, distance))
    hits.sort(key=lambda pair: pair[1])
    return hits[:limit]


def parse_time_context(date_time_info: Optional[str]) -> Optional[TimeContext]:
    """Pull "H:MM AM/PM" out of a formatted date/time string."""
    if not date_time_info:
        return None
    match = _TIME_PATTERN.search(date_time_info)
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2))
    meridiem = match.group(3).upper()
    if meridiem == "PM" and hour != 12:
        hour += 12
    if meridiem == "AM" and hour == 12:
        hour = 0
    if hour < 6:
        time_of_day = "dawn"
    elif hour < 12:
        time_of_day = "morning"
    elif hour < 18:
        time_of_day = "afternoon"
    else:
        time_of_day = "evening"
    return TimeContext(time_of_day=time_of_day, hour=hour, minute=minute)


def correlate_content(
    description: str,
    keywords: str,
    candidates: Sequence[DetectiveLocation],
) -> List[DetectiveLocation]:
    """
    Candidates whose name shares a significant word (4+ chars) with the photo
    description or keywords.
    """
    text = f"{description or ''} {keywords or ''}".lower()
    matches = []
    for candidate in candidates:
        words = [w for w in candidate.name.lower().split(" ") if len(w) >= MIN_WORD_LENGTH]
        if not any(w in text for w in words):
            continue
        context = (
            f"Within {candidate.distance} feet based on GPS and content match"
            if candidate.distance is not None
            else "Strong textual match to nearby POI"
        )
        matches.append(
            DetectiveLocation(
                name=candidate.name,
                type=candidate.type,
                confidence=CONTENT_CONFIDENCE,
                distance=candidate.distance,
                context=context,
                tags=dict(candidate.tags),
            )
        )
    return matches


def _coerce_float(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _first_present(*values: Any) -> Any:
    return next((v for v in values if v is not None), None)


def external_features(
    features: Iterable[Dict[str, Any]], coords: Optional[Tuple[float, float]]
) -> List[DetectiveLocation]:
    """Named features supplied by the caller (e.g. from an Overpass lookup)."""
    out = []
    for feature in features or []:
        if not isinstance(feature, dict) or not feature.get("name"):
            continue
        center = feature.get("center")
        if not isinstance(center, dict):
            center = {}
        f_lat = _coerce_float(_first_present(feature.get("lat"), center.get("lat")))
        f_lng = _coerce_float(_first_present(feature.get("lon"), feature.get("lng"), center.get("lon")))
        distance = None
        if coords and f_lat is not None and f_lng is not None:
            distance = int(round(haversine_feet(coords[0], coords[1], f_lat, f_lng)))
        tags = feature.get("tags")
        if not isinstance(tags, dict):
            tags = {}
        out.append(
            DetectiveLocation(
                name=str(feature["name"]),
                type=str(feature.get("category") or tags.get("amenity") or tags.get("landuse") or "poi"),
                confidence=EXTERNAL_FEATURE_CONFIDENCE,
                distance=distance,
                context=(
                    f"{distance} feet from provided GPS coordinates"
                    if distance is not None
                    else "Distance unknown (missing geometry)"
                ),
                tags=dict(tags),
            )
        )
    return out


def dedupe_and_sort(locations: Iterable[DetectiveLocation]) -> List[DetectiveLocation]:
    """First occurrence of each exact name wins; unknown distance sorts last."""
    seen = set()
    unique = []
    for loc in locations:
        if loc.name in seen:
            continue
        seen.add(loc.name)
        unique.append(loc)
    unique.sort(key=lambda loc: loc.distance if loc.distance is not None else math.inf)
    return unique


def _resolve_coords(lat: Any, lng: Any, gps: Optional[str]) -> Optional[Tuple[float, float]]:
    f_lat = _coerce_float(lat)
    f_lng = _coerce_float(lng)
    if f_lat is not None and f_lng is not None:
        return f_lat, f_lng
    return parse_gps_string(gps)


def run_location_detective(
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    *,
    gps: Optional[str] = None,
    date_time_info: Optional[str] = None,
    description: str = "",
    keywords: Any = "",
    geo_context: Optional[Dict[str, Any]] = None,
    landmarks: Iterable[LandmarkRecord] = LANDMARKS,
) -> LocationDetectiveResult:
    """Correlate GPS, capture time and photo text into a LocationDetectiveResult."""
    result = LocationDetectiveResult()
    geo_context = geo_context or {}
    if not isinstance(keywords, str):
        keywords = " ".join(str(k) for k in keywords or [])

    coords = _resolve_coords(lat, lng, gps)
    gps_hits: List[DetectiveLocation] = []
    if coords:
        nearby = find_nearby_landmarks(coords[0], coords[1], landmarks)
        for record, distance in nearby:
            feet = int(round(distance))
            gps_hits.append(
                DetectiveLocation(
                    name=record.name,
                    type=record.type,
                    confidence=GPS_CONFIDENCE,
                    distance=feet,
                    context=f"Within {feet} feet of GPS location",
                )
            )
        if nearby:
            result.primary_location = region_label(nearby[0][0].region)
            result.confidence = GPS_CONFIDENCE

    result.time_context = parse_time_context(date_time_info)

    supplied = external_features(geo_context.get("nearby") or [], coords)
    if supplied:
        result.confidence = max(result.confidence, EXTERNAL_FEATURES_OVERALL_CONFIDENCE)

    proximate = gps_hits + [
        f for f in supplied if f.distance is not None and f.distance <= PROXIMITY_RADIUS_FEET
    ]
    content_hits = correlate_content(description, keywords, proximate)

    result.nearby_pois = dedupe_and_sort([*gps_hits, *content_hits, *supplied])

    best = geo_context.get("best_match_poi")
    if best:
        best_name = best if isinstance(best, str) else (best.get("name") if isinstance(best, dict) else None)
        best_conf = best.get("confidence") if isinstance(best, dict) else None
        if best_name:
            result.primary_location = best_name
            result.confidence = max(
                result.confidence,
                best_conf if isinstance(best_conf, (int, float)) else ADDRESS_CONFIDENCE,
            )

    address = geo_context.get("address") or {}
    display_name = address.get("display_name") if isinstance(address, dict) else address
    if display_name and not result.primary_location:
        result.primary_location = str(display_name)
        result.confidence = max(result.confidence, ADDRESS_CONFIDENCE)

    logger.debug(
        "Location detective: primary=%s nearby=%d confidence=%.2f",
        result.primary_location,
        len(result.nearby_pois),
        result.confidence,
    )
    return result
