"""
POI identification API routes.

Handles photo-to-POI identification and the location detective.
"""
import base64
import binascii
import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from domain.models import PipelineConfig
from services.geocoding import parse_gps_string, reverse_geocode_address
from services.location_detective import run_location_detective
from services.photo_metadata import extract_photo_context, format_capture_time
from services.poi_identifier import POICollaborators, build_default_collaborators, identify_poi
from settings import settings

logger = logging.getLogger(__name__)

router = APIRouter()


class IdentifyRequest(BaseModel):
    image_base64: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    timestamp: Optional[str] = None


class BestMatchResponse(BaseModel):
    name: str
    confidence: str


class IdentifyResponse(BaseModel):
    scene_type: str
    scene_description: str
    search_radius_miles: float
    poi_list: List[dict]
    best_match: Optional[BestMatchResponse] = None
    analysis_confidence: str
    timestamp: Optional[str] = None
    search_location: Dict[str, float]
    rich_search_context: Optional[str] = None
    error: Optional[str] = None


class DetectiveRequest(BaseModel):
    gps: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    date_time_info: Optional[str] = None
    description: str = ""
    keywords: str = ""
    geo_context: Optional[Dict[str, Any]] = None
    resolve_address: bool = False


class DetectiveResponse(BaseModel):
    primaryLocation: Optional[str] = None
    nearbyPOIs: List[dict]
    timeContext: Optional[dict] = None
    confidence: float


@lru_cache(maxsize=1)
def get_collaborators() -> POICollaborators:
    return build_default_collaborators(settings)


def get_pipeline_config() -> PipelineConfig:
    return PipelineConfig.from_settings(settings)


def _decode_image(image_base64: str) -> bytes:
    payload = image_base64
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="image_base64 is not valid base64")


@router.post("/identify", response_model=IdentifyResponse)
def identify(
    body: IdentifyRequest,
    collaborators: POICollaborators = Depends(get_collaborators),
    config: PipelineConfig = Depends(get_pipeline_config),
):
    """
    Identify the POI a photo was taken at.

    Coordinates fall back to the photo's EXIF GPS when not supplied; so does
    the timestamp.
    """
    image = _decode_image(body.image_base64)
    lat, lng, timestamp = body.lat, body.lng, body.timestamp

    if lat is None or lng is None or timestamp is None:
        context = extract_photo_context(image)
        if (lat is None or lng is None) and context.has_gps:
            lat, lng = context.gps_lat, context.gps_lon
        if timestamp is None:
            timestamp = format_capture_time(context.taken_at)

    if lat is None or lng is None:
        raise HTTPException(status_code=400, detail="Photo has no GPS; lat and lng are required")

    result = identify_poi(
        image,
        lat,
        lng,
        timestamp,
        config=config,
        collaborators=collaborators,
    )
    return result.to_dict()


@router.post("/detective", response_model=DetectiveResponse)
def detective(body: DetectiveRequest):
    """Correlate GPS, capture time and photo text against nearby places."""
    if body.gps is None and (body.lat is None or body.lng is None):
        raise HTTPException(status_code=400, detail="gps or lat/lng is required")

    geo_context = dict(body.geo_context or {})
    if body.resolve_address and not geo_context.get("address"):
        coords = (body.lat, body.lng) if body.lat is not None and body.lng is not None else parse_gps_string(body.gps)
        if coords:
            address = reverse_geocode_address(coords[0], coords[1])
            if address:
                geo_context["address"] = address.to_dict()

    result = run_location_detective(
        body.lat,
        body.lng,
        gps=body.gps,
        date_time_info=body.date_time_info,
        description=body.description,
        keywords=body.keywords,
        geo_context=geo_context,
    )
    return result.to_dict()
