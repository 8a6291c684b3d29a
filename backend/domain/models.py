"""
Core domain models for photo POI identification.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class SceneType(str, Enum):
    """Scene classification produced by the vision analyzer."""
    RESTAURANT = "restaurant"
    STORE = "store"
    PARK = "park"
    NATURAL_LANDMARK = "natural_landmark"
    TRANSPORTATION = "transportation"
    RECREATION = "recreation"
    OTHER = "other"
    UNKNOWN = "unknown"


class Confidence(str, Enum):
    """Confidence band shared by scene analysis and ranked POIs."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class POICategory(str, Enum):
    """Fixed internal category every provider record is mapped onto."""
    RESTAURANT = "restaurant"
    STORE = "store"
    PARK = "park"
    LANDMARK = "landmark"
    NATURAL_LANDMARK = "natural_landmark"
    POI = "poi"


class POISource(str, Enum):
    """Directory a POI came from."""
    OPEN_MAP = "open-map"
    COMMERCIAL_PLACES = "commercial-places"


@dataclass(frozen=True)
class PipelineConfig:
    """
    Explicit configuration for one identification run.

    Radii are in miles. `provider_query_radius_miles` is the area requested from
    the directories; results are then filtered to the scene-specific radius.
    """
    default_search_radius_miles: float = 0.5
    max_pois_to_return: int = 10
    category_search_radius_miles: Dict[str, float] = field(
        default_factory=lambda: {
            "restaurant": 0.25,
            "natural_landmark": 1.0,
            "store": 0.25,
            "park": 0.75,
            "aerial_view": 50.0,
            "transportation": 0.5,
        }
    )
    provider_query_radius_miles: float = 1.0
    provider_timeout_seconds: float = 10.0
    fuzzy_threshold: float = 0.4
    commercial_type_keyword_limit: int = 5
    context_search_enabled: bool = True
    context_search_num_results: int = 4
    context_max_snippets: int = 2

    def search_radius_for(self, scene_type: str) -> float:
        return self.category_search_radius_miles.get(scene_type, self.default_search_radius_miles)

    @classmethod
    def from_settings(cls, settings: Any) -> "PipelineConfig":
        return cls(
            provider_timeout_seconds=settings.POI_PROVIDER_TIMEOUT_SECONDS,
            context_search_enabled=settings.POI_CONTEXT_SEARCH_ENABLED,
        )


@dataclass(frozen=True)
class SceneAnalysis:
    """
    Structured interpretation of a photo's visual content.

    Built once per request and never mutated; on analyzer failure a fallback
    instance replaces it wholesale.
    """
    scene_type: str = SceneType.OTHER.value
    confidence: str = Confidence.LOW.value
    visual_elements: Tuple[str, ...] = ()
    likely_categories: Tuple[str, ...] = ()
    distinctive_features: Tuple[str, ...] = ()
    has_ocean_view: bool = False
    has_mountain_view: bool = False
    has_water_feature: bool = False
    indoor_outdoor: str = "unknown"
    visible_text: Tuple[str, ...] = ()
    business_name: Optional[str] = None
    search_keywords: Tuple[str, ...] = ()
    time_of_day: str = "unknown"
    activity_indicators: Tuple[str, ...] = ()
    architectural_style: str = ""
    natural_features: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scene_type": self.scene_type,
            "confidence": self.confidence,
            "visual_elements": list(self.visual_elements),
            "likely_categories": list(self.likely_categories),
            "distinctive_features": list(self.distinctive_features),
            "has_ocean_view": self.has_ocean_view,
            "has_mountain_view": self.has_mountain_view,
            "has_water_feature": self.has_water_feature,
            "indoor_outdoor": self.indoor_outdoor,
            "visible_text": list(self.visible_text),
            "business_name": self.business_name,
            "search_keywords": list(self.search_keywords),
            "time_of_day": self.time_of_day,
            "activity_indicators": list(self.activity_indicators),
            "architectural_style": self.architectural_style,
            "natural_features": list(self.natural_features),
        }


@dataclass(frozen=True)
class NormalizedPOI:
    """
    Canonical POI record shared by both directories.

    The match flags stay None until the matcher computes them; None and False
    are distinct ("never computed" vs "computed, no match").
    """
    name: str
    category: str
    lat: float
    lng: float
    distance_miles: float
    source: str
    visual_keywords: Tuple[str, ...] = ()
    has_ocean_view: bool = False
    has_mountain_view: bool = False
    has_water_feature: bool = False
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    place_id: Optional[str] = None
    business_name_match: Optional[bool] = None
    keyword_match: Optional[bool] = None
    category_match: Optional[bool] = None


@dataclass(frozen=True)
class RankedPOI:
    """A matched POI with its score, confidence band and explanation."""
    poi: NormalizedPOI
    score: float
    confidence: str
    relevance_reason: str

    @property
    def name(self) -> str:
        return self.poi.name

    @property
    def distance_miles(self) -> float:
        return self.poi.distance_miles

    def to_dict(self) -> Dict[str, Any]:
        poi = self.poi
        data: Dict[str, Any] = {
            "name": poi.name,
            "type": poi.category,
            "source": poi.source,
            "distance_miles": round(poi.distance_miles, 2),
            "coordinates": {"lat": poi.lat, "lng": poi.lng},
            "score": self.score,
            "confidence": self.confidence,
            "relevance_reason": self.relevance_reason,
        }
        if poi.rating is not None:
            data["rating"] = poi.rating
        for flag in ("business_name_match", "keyword_match", "category_match"):
            value = getattr(poi, flag)
            if value is not None:
                data[flag] = value
        return data


@dataclass(frozen=True)
class BestMatch:
    name: str
    confidence: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "confidence": self.confidence}


@dataclass
class POIIdentificationResult:
    """Final answer returned by the identification pipeline."""
    scene_type: str
    scene_description: str
    search_radius_miles: float
    poi_list: List[RankedPOI]
    best_match: Optional[BestMatch]
    analysis_confidence: str
    timestamp: Optional[str]
    search_location: Dict[str, float]
    rich_search_context: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "scene_type": self.scene_type,
            "scene_description": self.scene_description,
            "search_radius_miles": self.search_radius_miles,
            "poi_list": [p.to_dict() for p in self.poi_list],
            "best_match": self.best_match.to_dict() if self.best_match else None,
            "analysis_confidence": self.analysis_confidence,
            "timestamp": self.timestamp,
            "search_location": dict(self.search_location),
            "rich_search_context": self.rich_search_context,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class LandmarkRecord:
    """Curated, read-only landmark used by the location detective."""
    name: str
    lat: float
    lng: float
    region: str
    type: str
    category: str = ""
    description: str = ""


@dataclass
class TimeContext:
    time_of_day: str  # "dawn", "morning", "afternoon", "evening"
    hour: int
    minute: int

    def to_dict(self) -> Dict[str, Any]:
        return {"timeOfDay": self.time_of_day, "hour": self.hour, "minute": self.minute}


@dataclass
class DetectiveLocation:
    """A nearby place reported by the location detective (distance in feet)."""
    name: str
    type: str
    confidence: float
    distance: Optional[int]
    context: str
    tags: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "confidence": self.confidence,
            "distance": self.distance,
            "context": self.context,
            "tags": dict(self.tags),
        }


@dataclass
class LocationDetectiveResult:
    primary_location: Optional[str] = None
    nearby_pois: List[DetectiveLocation] = field(default_factory=list)
    time_context: Optional[TimeContext] = None
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primaryLocation": self.primary_location,
            "nearbyPOIs": [p.to_dict() for p in self.nearby_pois],
            "timeContext": self.time_context.to_dict() if self.time_context else None,
            "confidence": self.confidence,
        }


@dataclass
class PhotoContext:
    """GPS and capture time pulled from a photo's EXIF block."""
    gps_lat: Optional[float] = None
    gps_lon: Optional[float] = None
    taken_at: Optional[datetime] = None

    @property
    def has_gps(self) -> bool:
        return self.gps_lat is not None and self.gps_lon is not None
