"""
Photo POI identification pipeline.

Stages:
1. Vision scene analysis, concurrently with both directory lookups, then a
   follow-up lookup for the scene type's extra directory types
2. Normalize and merge directory records
3. Fuzzy-match the scene against candidate POIs
4. Score, rank and pick the best match
5. Optional web context for weak outdoor matches

Every collaborator failure degrades to an empty/neutral value; the entry point
never raises.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from domain.models import (
    Confidence,
    NormalizedPOI,
    PipelineConfig,
    POIIdentificationResult,
    POISource,
    RankedPOI,
    SceneAnalysis,
    SceneType,
)
from services.context_search import GoogleSearchClient, TextSearch, fetch_rich_context
from services.geocoding import miles_to_meters
from services.places_client import (
    GeoSource,
    GooglePlacesClient,
    OverpassClient,
    dedupe_by_place_id,
    fetch_hinted_concurrently,
    fetch_nearby_concurrently,
)
from services.places_types import RawPOIRecord
from services.poi_matcher import attach_category_match, match_pois
from services.poi_normalizer import merge_sources, normalize_records
from services.poi_ranking import best_match, rank_pois
from services.scene_analyzer import ImageInput, OpenAIVisionClient, VisionCall, analyze_scene, describe_scene

logger = logging.getLogger(__name__)


@dataclass
class POICollaborators:
    """External services the pipeline talks to. Any of them may be absent."""
    vision_call: Optional[VisionCall] = None
    geo_sources: Sequence[GeoSource] = field(default_factory=list)
    text_search: Optional[TextSearch] = None


def build_default_collaborators(settings) -> POICollaborators:
    """Wire the OpenAI, Overpass, Google Places and Google Search clients from settings."""
    timeout = settings.POI_PROVIDER_TIMEOUT_SECONDS
    vision_call: Optional[VisionCall] = None
    if settings.OPENAI_API_KEY:
        vision_call = OpenAIVisionClient(
            api_key=settings.OPENAI_API_KEY,
            model=settings.POI_VISION_MODEL,
            timeout=settings.POI_VISION_TIMEOUT_SECONDS,
        )
    else:
        logger.warning("OPENAI_API_KEY not set; scene analysis will use the fallback scene")
    return POICollaborators(
        vision_call=vision_call,
        geo_sources=[
            OverpassClient(endpoint=settings.OSM_OVERPASS_ENDPOINT, timeout=timeout),
            GooglePlacesClient(api_key=settings.GOOGLE_MAPS_API_KEY, timeout=timeout),
        ],
        text_search=GoogleSearchClient(
            api_key=settings.GOOGLE_SEARCH_API_KEY,
            engine_id=settings.GOOGLE_SEARCH_ENGINE_ID,
            timeout=timeout,
        ),
    )


def merge_raw_records(
    first: Dict[str, List[RawPOIRecord]],
    second: Dict[str, List[RawPOIRecord]],
) -> Dict[str, List[RawPOIRecord]]:
    """Concatenate per-source batches, dropping repeated place_ids."""
    merged = {source: list(records) for source, records in first.items()}
    for source, records in second.items():
        merged[source] = dedupe_by_place_id([*merged.get(source, []), *records])
    return merged


def collect_pois(
    raw_by_source: Dict[str, List[RawPOIRecord]],
    lat: float,
    lng: float,
    config: PipelineConfig,
) -> List[NormalizedPOI]:
    """Normalize each directory's records and merge them, commercial first."""
    commercial = normalize_records(
        raw_by_source.get(POISource.COMMERCIAL_PLACES.value, []),
        lat,
        lng,
        type_limit=config.commercial_type_keyword_limit,
    )
    open_map = normalize_records(raw_by_source.get(POISource.OPEN_MAP.value, []), lat, lng)
    return merge_sources(commercial, open_map)


def rank_scene_pois(
    scene: SceneAnalysis,
    pois: Sequence[NormalizedPOI],
    config: PipelineConfig,
) -> List[RankedPOI]:
    """Pure ranking stage: radius filter, match, category flag, score, sort, cap."""
    radius = config.search_radius_for(scene.scene_type)
    in_range = [p for p in pois if p.distance_miles <= radius]
    matched = match_pois(in_range, scene, threshold=config.fuzzy_threshold)
    matched = attach_category_match(matched, scene.scene_type)
    return rank_pois(matched, scene, max_results=config.max_pois_to_return)


def _degraded_result(
    lat: float, lng: float, timestamp: Optional[str], config: PipelineConfig, error: str
) -> POIIdentificationResult:
    return POIIdentificationResult(
        scene_type=SceneType.UNKNOWN.value,
        scene_description="Analysis failed",
        search_radius_miles=config.default_search_radius_miles,
        poi_list=[],
        best_match=None,
        analysis_confidence=Confidence.LOW.value,
        timestamp=timestamp,
        search_location={"lat": lat, "lng": lng},
        rich_search_context=None,
        error=error,
    )


def identify_poi(
    image: ImageInput,
    lat: float,
    lng: float,
    timestamp: Optional[str] = None,
    *,
    config: Optional[PipelineConfig] = None,
    collaborators: Optional[POICollaborators] = None,
) -> POIIdentificationResult:
    """
    Identify the point of interest a photo was taken at.

    Args:
        image: Raw image bytes or base64 text
        lat, lng: Photo GPS position in decimal degrees
        timestamp: Optional capture time, echoed back in the result
        config: Pipeline configuration (defaults apply when omitted)
        collaborators: Vision, directory and search clients

    Returns:
        POIIdentificationResult. On unexpected failure a degraded result with
        `error` set is returned instead of raising.
    """
    config = config or PipelineConfig()
    collaborators = collaborators or POICollaborators()
    try:
        query_radius_m = miles_to_meters(config.provider_query_radius_miles)
        with ThreadPoolExecutor(max_workers=2) as pool:
            scene_future = pool.submit(analyze_scene, image, collaborators.vision_call)
            places_future = pool.submit(
                fetch_nearby_concurrently,
                list(collaborators.geo_sources),
                lat,
                lng,
                query_radius_m,
                None,
                config.provider_timeout_seconds,
            )
            scene = scene_future.result()
            raw_by_source = places_future.result()

        # The scene type is only known now; ask for its extra directory types.
        hinted = fetch_hinted_concurrently(
            list(collaborators.geo_sources),
            lat,
            lng,
            query_radius_m,
            scene.scene_type,
            config.provider_timeout_seconds,
        )
        raw_by_source = merge_raw_records(raw_by_source, hinted)

        pois = collect_pois(raw_by_source, lat, lng, config)
        ranked = rank_scene_pois(scene, pois, config)
        best = best_match(ranked)
        if best:
            logger.info("Best POI match: %s (%s)", best.name, best.confidence)

        rich_context = None
        if config.context_search_enabled:
            rich_context = fetch_rich_context(
                collaborators.text_search,
                scene,
                best,
                lat,
                lng,
                num_results=config.context_search_num_results,
                max_snippets=config.context_max_snippets,
            )

        return POIIdentificationResult(
            scene_type=scene.scene_type,
            scene_description=describe_scene(scene),
            search_radius_miles=config.search_radius_for(scene.scene_type),
            poi_list=ranked,
            best_match=best,
            analysis_confidence=scene.confidence,
            timestamp=timestamp,
            search_location={"lat": lat, "lng": lng},
            rich_search_context=rich_context,
        )
    except Exception as exc:
        logger.exception("POI identification error")
        return _degraded_result(lat, lng, timestamp, config, str(exc))
