"""
Normalize raw directory records into NormalizedPOI.

One normalization function per record variant; both converge on the same
shape. Distances are always recomputed from the query point.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from domain.models import NormalizedPOI, POICategory, POISource
from services.geocoding import haversine_miles
from services.places_types import CommercialPlaceRecord, OpenMapRecord, RawPOIRecord

logger = logging.getLogger(__name__)

RESTAURANT_AMENITIES = {"restaurant", "cafe", "fast_food", "bar", "pub"}
PARK_LEISURE = {"park", "nature_reserve", "playground", "garden", "fitness_centre"}
LANDMARK_TOURISM = {"hotel", "museum", "attraction", "viewpoint", "gallery"}
LANDMARK_HISTORIC = {"monument", "castle", "ruins", "memorial"}
NATURAL_LANDMARKS = {"peak", "volcano", "beach", "coastline", "geyser", "hot_spring"}

COMMERCIAL_RESTAURANT_TYPES = {
    "restaurant", "cafe", "bar", "food", "bakery", "meal_takeaway", "meal_delivery", "fast_food",
}
COMMERCIAL_STORE_TYPES = {
    "supermarket", "shopping_mall", "department_store", "store", "convenience_store",
    "grocery_or_supermarket", "clothing_store",
}
COMMERCIAL_PARK_TYPES = {"park", "campground", "tourist_attraction", "amusement_park", "rv_park"}
COMMERCIAL_FEATURE_TYPES = {"natural_feature", "establishment"}

# Tag values that never add anything to a keyword bag.
_SKIP_TAG_KEYS = {"name", "source", "website", "phone", "opening_hours", "wikidata", "wikipedia"}

OCEAN_WORDS = ("ocean", "beach", "bay", "coast", "harbor", "harbour", "pier", "seaside")
MOUNTAIN_WORDS = ("mountain", "peak", "summit", "ridge", "mount ", "volcano")
WATER_WORDS = ("lake", "river", "falls", "waterfall", "geyser", "spring", "fountain", "creek", "water")

ALL_CATEGORIES = {c.value for c in POICategory}


def normalize_osm_category(tags: Optional[Mapping[str, Any]]) -> str:
    """Map an OpenStreetMap tag bag onto the internal category enum."""
    if not tags:
        return POICategory.POI.value
    if tags.get("amenity") in RESTAURANT_AMENITIES:
        return POICategory.RESTAURANT.value
    if tags.get("shop"):
        return POICategory.STORE.value
    if tags.get("leisure") in PARK_LEISURE:
        return POICategory.PARK.value
    if tags.get("tourism") in LANDMARK_TOURISM or tags.get("historic") in LANDMARK_HISTORIC:
        return POICategory.LANDMARK.value
    if tags.get("natural") in NATURAL_LANDMARKS:
        return POICategory.NATURAL_LANDMARK.value
    return POICategory.POI.value


def normalize_commercial_category(types: Optional[Sequence[str]]) -> str:
    """Map a Google Places type list onto the internal category enum."""
    type_set = {str(t).lower() for t in (types or [])}
    if type_set & COMMERCIAL_RESTAURANT_TYPES:
        return POICategory.RESTAURANT.value
    if type_set & COMMERCIAL_STORE_TYPES:
        return POICategory.STORE.value
    if type_set & COMMERCIAL_PARK_TYPES:
        return POICategory.PARK.value
    if type_set & COMMERCIAL_FEATURE_TYPES:
        return POICategory.NATURAL_LANDMARK.value
    return POICategory.POI.value


def normalize_category(value: Any) -> str:
    """
    Normalize anything category-like: a tag bag, a type list, or a category
    that is already internal. Unknown input yields "poi".
    """
    if isinstance(value, str):
        return value if value in ALL_CATEGORIES else POICategory.POI.value
    if isinstance(value, Mapping):
        return normalize_osm_category(value)
    if isinstance(value, (list, tuple, set)):
        return normalize_commercial_category(list(value))
    return POICategory.POI.value


def _dedupe_lower(values: Iterable[str]) -> tuple:
    seen: List[str] = []
    for v in values:
        if not v:
            continue
        lowered = str(v).strip().lower()
        if lowered and lowered not in seen:
            seen.append(lowered)
    return tuple(seen)


def _view_flags(text: str) -> tuple:
    padded = f" {text} "
    return (
        any(w in padded for w in OCEAN_WORDS),
        any(w in padded for w in MOUNTAIN_WORDS),
        any(w in padded for w in WATER_WORDS),
    )


def normalize_open_map_record(record: OpenMapRecord, lat: float, lng: float) -> Optional[NormalizedPOI]:
    name = record.name
    if not name or record.lat is None or record.lon is None:
        return None
    category = normalize_osm_category(record.tags)
    tag_values = [v for k, v in record.tags.items() if k not in _SKIP_TAG_KEYS][:3]
    keywords = _dedupe_lower([name, category, *tag_values])
    ocean, mountain, water = _view_flags(" ".join(keywords))
    natural = record.tags.get("natural")
    return NormalizedPOI(
        name=name,
        category=category,
        lat=record.lat,
        lng=record.lon,
        distance_miles=haversine_miles(lat, lng, record.lat, record.lon),
        source=POISource.OPEN_MAP.value,
        visual_keywords=keywords,
        has_ocean_view=ocean or natural in ("beach", "coastline"),
        has_mountain_view=mountain or natural in ("peak", "volcano"),
        has_water_feature=water or natural in ("water", "geyser", "hot_spring") or bool(record.tags.get("waterway")),
    )


def normalize_commercial_record(
    record: CommercialPlaceRecord, lat: float, lng: float, type_limit: int = 5
) -> Optional[NormalizedPOI]:
    if not record.name or record.lat is None or record.lng is None:
        return None
    category = normalize_commercial_category(record.types)
    keywords = _dedupe_lower([record.name, category, *record.types[:type_limit]])
    ocean, mountain, water = _view_flags(" ".join(keywords))
    return NormalizedPOI(
        name=record.name,
        category=category,
        lat=record.lat,
        lng=record.lng,
        distance_miles=haversine_miles(lat, lng, record.lat, record.lng),
        source=POISource.COMMERCIAL_PLACES.value,
        visual_keywords=keywords,
        has_ocean_view=ocean,
        has_mountain_view=mountain,
        has_water_feature=water,
        rating=record.rating,
        user_ratings_total=record.user_ratings_total,
        place_id=record.place_id or None,
    )


def normalize_record(record: RawPOIRecord, lat: float, lng: float, type_limit: int = 5) -> Optional[NormalizedPOI]:
    if isinstance(record, OpenMapRecord):
        return normalize_open_map_record(record, lat, lng)
    if isinstance(record, CommercialPlaceRecord):
        return normalize_commercial_record(record, lat, lng, type_limit=type_limit)
    logger.debug("Skipping unknown record type %s", type(record).__name__)
    return None


def normalize_records(
    records: Iterable[RawPOIRecord], lat: float, lng: float, type_limit: int = 5
) -> List[NormalizedPOI]:
    """Normalize a batch, dropping records without a name or coordinates."""
    out: List[NormalizedPOI] = []
    for record in records:
        poi = normalize_record(record, lat, lng, type_limit=type_limit)
        if poi is not None:
            out.append(poi)
    return out


def merge_sources(
    commercial: Sequence[NormalizedPOI], open_map: Sequence[NormalizedPOI]
) -> List[NormalizedPOI]:
    """
    Commercial records win. An open-map record is kept only when no commercial
    record has the same name (case-insensitive).
    """
    merged = list(commercial)
    taken = {p.name.lower() for p in commercial}
    for poi in open_map:
        if poi.name.lower() in taken:
            continue
        merged.append(poi)
    return merged
