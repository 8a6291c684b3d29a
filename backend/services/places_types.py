"""
Raw directory records, one variant per provider.

Each variant is consumed only by the normalizer in services.poi_normalizer.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class OpenMapRecord:
    """An Overpass element: a tag bag plus either lat/lon or a computed center."""
    osm_type: str  # "node", "way", "relation"
    osm_id: str
    tags: Dict[str, str]
    lat: Optional[float] = None
    lon: Optional[float] = None
    kind: str = field(default="open-map", init=False)

    @property
    def name(self) -> Optional[str]:
        name = (self.tags or {}).get("name")
        return name.strip() if isinstance(name, str) and name.strip() else None

    @classmethod
    def from_element(cls, element: Dict[str, Any]) -> "OpenMapRecord":
        center = element.get("center") or {}
        lat = element.get("lat")
        lon = element.get("lon")
        if lat is None:
            lat = center.get("lat")
        if lon is None:
            lon = center.get("lon")
        tags = element.get("tags") or {}
        return cls(
            osm_type=str(element.get("type", "node")),
            osm_id=str(element.get("id", "")),
            tags={str(k): str(v) for k, v in tags.items()},
            lat=_as_float(lat),
            lon=_as_float(lon),
        )


@dataclass
class CommercialPlaceRecord:
    """A Google Places nearby-search result."""
    place_id: str
    name: Optional[str]
    types: List[str]
    lat: Optional[float] = None
    lng: Optional[float] = None
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    vicinity: Optional[str] = None
    kind: str = field(default="commercial-places", init=False)

    @classmethod
    def from_result(cls, result: Dict[str, Any]) -> "CommercialPlaceRecord":
        location = (result.get("geometry") or {}).get("location") or {}
        total = result.get("user_ratings_total")
        return cls(
            place_id=str(result.get("place_id", "")),
            name=(result.get("name") or "").strip() or None,
            types=[str(t) for t in (result.get("types") or [])],
            lat=_as_float(location.get("lat", result.get("lat"))),
            lng=_as_float(location.get("lng", result.get("lon"))),
            rating=_as_float(result.get("rating")),
            user_ratings_total=int(total) if isinstance(total, (int, float)) else None,
            vicinity=result.get("vicinity") or result.get("formatted_address"),
        )


RawPOIRecord = Union[OpenMapRecord, CommercialPlaceRecord]
