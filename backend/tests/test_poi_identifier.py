import json
import threading
from unittest.mock import MagicMock, patch

from domain.models import PipelineConfig
from services.places_client import GooglePlacesClient
from services.places_types import CommercialPlaceRecord, OpenMapRecord
from services.poi_identifier import POICollaborators, build_default_collaborators, identify_poi

LAT, LNG = 20.8734, -156.6799


class FakeSource:
    def __init__(self, source, records=None, error=None):
        self.source = source
        self.records = records or []
        self.error = error

    def fetch_nearby(self, lat, lng, radius_m, category_hint=None):
        if self.error:
            raise self.error
        return list(self.records)


class FakeSearch:
    def __init__(self, snippets):
        self.snippets = snippets
        self.queries = []

    def search(self, query, num_results):
        self.queries.append(query)
        return {"query": query, "results": [{"snippet": s} for s in self.snippets]}


def _vision(reply: dict):
    return lambda _image: "```json\n" + json.dumps(reply) + "\n```"


def _commercial(place_id, name, dlat, types, rating=None):
    return CommercialPlaceRecord(
        place_id=place_id, name=name, types=list(types), lat=LAT + dlat, lng=LNG, rating=rating
    )


def _osm(osm_id, name, dlat, **tags):
    return OpenMapRecord(osm_type="node", osm_id=osm_id, tags={"name": name, **tags}, lat=LAT + dlat, lon=LNG)


SEAFOOD_SCENE = {
    "scene_type": "restaurant",
    "confidence": "high",
    "visual_elements": ["ocean", "patio", "tables"],
    "visible_text": ["Sam's Seafood"],
    "business_name": "Sam's Seafood",
    "search_keywords": ["seafood"],
    "has_ocean_view": True,
    "indoor_outdoor": "outdoor",
}


def _sources():
    return [
        FakeSource(
            "open-map",
            [
                _osm("1", "Sam's Seafood Grill", 0.0007, amenity="restaurant"),
                _osm("2", "Front Street Burgers", 0.0012, amenity="fast_food"),
                _osm("3", "Distant Deli", 0.02, amenity="restaurant"),
            ],
        ),
        FakeSource(
            "commercial-places",
            [_commercial("g1", "Sam's Seafood Grill", 0.0007, ["restaurant", "food"], rating=4.6)],
        ),
    ]


def test_sams_seafood_scenario_is_high_confidence():
    result = identify_poi(
        b"jpeg",
        LAT,
        LNG,
        "Jun 01, 2024, 7:30 PM",
        collaborators=POICollaborators(vision_call=_vision(SEAFOOD_SCENE), geo_sources=_sources()),
    )

    assert result.error is None
    assert result.scene_type == "restaurant"
    assert result.search_radius_miles == 0.25
    assert result.best_match.name == "Sam's Seafood Grill"
    assert result.best_match.confidence == "high"
    top = result.poi_list[0]
    assert top.poi.source == "commercial-places"
    assert top.poi.business_name_match is True
    assert "Business name matches visible text/signage" in top.relevance_reason
    names = [p.name for p in result.poi_list]
    assert names.count("Sam's Seafood Grill") == 1
    # ~1.4 miles out, beyond the restaurant radius
    assert "Distant Deli" not in names
    assert result.scene_description.startswith("outdoor scene, showing ocean, patio, tables")
    assert result.timestamp == "Jun 01, 2024, 7:30 PM"
    assert result.search_location == {"lat": LAT, "lng": LNG}


def test_vision_failure_falls_back_to_location_ranking():
    def broken(_image):
        raise RuntimeError("model unavailable")

    result = identify_poi(b"jpeg", LAT, LNG, collaborators=POICollaborators(vision_call=broken, geo_sources=_sources()))

    assert result.error is None
    assert result.scene_type == "unknown"
    assert result.analysis_confidence == "low"
    assert result.scene_description == "location-based analysis only"
    assert result.search_radius_miles == 0.5
    assert [p.name for p in result.poi_list][:2] == ["Sam's Seafood Grill", "Front Street Burgers"]
    assert all(p.poi.business_name_match is None for p in result.poi_list)


def test_both_providers_failing_yields_empty_list():
    sources = [
        FakeSource("open-map", error=ConnectionError("down")),
        FakeSource("commercial-places", error=TimeoutError("slow")),
    ]
    result = identify_poi(
        b"jpeg", LAT, LNG, collaborators=POICollaborators(vision_call=_vision(SEAFOOD_SCENE), geo_sources=sources)
    )
    assert result.poi_list == []
    assert result.best_match is None
    assert result.scene_type == "restaurant"
    assert result.error is None


def test_unexpected_failure_returns_degraded_result():
    with patch("services.poi_identifier.rank_scene_pois", side_effect=RuntimeError("kaboom")):
        result = identify_poi(
            b"jpeg", LAT, LNG, "ts", collaborators=POICollaborators(vision_call=_vision(SEAFOOD_SCENE))
        )
    data = result.to_dict()
    assert data["error"] == "kaboom"
    assert data["scene_type"] == "unknown"
    assert data["scene_description"] == "Analysis failed"
    assert data["search_radius_miles"] == 0.5
    assert data["poi_list"] == []
    assert data["best_match"] is None
    assert data["analysis_confidence"] == "low"
    assert data["timestamp"] == "ts"


def test_weak_outdoor_match_gets_rich_context():
    scene = {"scene_type": "natural_landmark", "confidence": "medium", "search_keywords": ["sandstone"]}
    search = FakeSearch(["Calico Tanks is a 2.5 mile trail.", "Red Rock Canyon overlook.", "ignored"])
    result = identify_poi(
        b"jpeg",
        LAT,
        LNG,
        collaborators=POICollaborators(
            vision_call=_vision(scene),
            geo_sources=[FakeSource("open-map", [_osm("9", "Unnamed Wash Trailhead", 0.011)])],
            text_search=search,
        ),
    )
    assert result.best_match.confidence == "low"
    assert result.rich_search_context == "Calico Tanks is a 2.5 mile trail.; Red Rock Canyon overlook."
    assert search.queries == [f"{LAT}, {LNG} sandstone trail OR open space OR park"]


def test_context_search_can_be_disabled():
    scene = {"scene_type": "natural_landmark", "confidence": "medium"}
    search = FakeSearch(["x"])
    result = identify_poi(
        b"jpeg",
        LAT,
        LNG,
        config=PipelineConfig(context_search_enabled=False),
        collaborators=POICollaborators(
            vision_call=_vision(scene),
            geo_sources=[FakeSource("open-map", [_osm("9", "Trailhead", 0.011)])],
            text_search=search,
        ),
    )
    assert result.rich_search_context is None
    assert search.queries == []


def test_vision_and_providers_run_concurrently():
    barrier = threading.Barrier(2, timeout=5)

    def vision(_image):
        barrier.wait()
        return json.dumps({"scene_type": "park", "confidence": "high"})

    class BarrierSource(FakeSource):
        def fetch_nearby(self, lat, lng, radius_m, category_hint=None):
            barrier.wait()
            return []

    result = identify_poi(
        b"jpeg",
        LAT,
        LNG,
        collaborators=POICollaborators(vision_call=vision, geo_sources=[BarrierSource("open-map")]),
    )
    assert result.scene_type == "park"


class _Settings:
    OPENAI_API_KEY = None
    POI_VISION_MODEL = "gpt-4o"
    POI_VISION_TIMEOUT_SECONDS = 30.0
    GOOGLE_MAPS_API_KEY = None
    GOOGLE_SEARCH_API_KEY = None
    GOOGLE_SEARCH_ENGINE_ID = None
    OSM_OVERPASS_ENDPOINT = "https://overpass.example/api/interpreter"
    POI_PROVIDER_TIMEOUT_SECONDS = 3.0


def test_default_collaborators_without_openai_key():
    collaborators = build_default_collaborators(_Settings())
    assert collaborators.vision_call is None
    assert [s.source for s in collaborators.geo_sources] == ["open-map", "commercial-places"]
    assert collaborators.geo_sources[0].endpoint == "https://overpass.example/api/interpreter"


def test_exact_commercial_name_within_a_tenth_of_a_mile():
    scene = {"scene_type": "restaurant", "confidence": "high", "business_name": "Sam's Seafood"}
    source = FakeSource("commercial-places", [_commercial("g2", "Sam's Seafood", 0.001, ["restaurant"])])
    result = identify_poi(b"jpeg", LAT, LNG, collaborators=POICollaborators(vision_call=_vision(scene), geo_sources=[source]))
    assert (result.best_match.name, result.best_match.confidence) == ("Sam's Seafood", "high")


def test_non_finite_coordinates_still_complete():
    result = identify_poi(
        b"jpeg",
        float("nan"),
        LNG,
        collaborators=POICollaborators(vision_call=_vision(SEAFOOD_SCENE), geo_sources=_sources()),
    )
    assert result.error is None
    assert result.scene_type == "restaurant"


def test_scene_type_drives_follow_up_place_types():
    sams = {
        "place_id": "g3",
        "name": "Sam's Seafood",
        "types": ["restaurant", "food"],
        "geometry": {"location": {"lat": LAT + 0.001, "lng": LNG}},
    }

    def get(url, params=None, timeout=None):
        resp = MagicMock()
        if params["type"] == "restaurant":
            resp.json.return_value = {"status": "OK", "results": [sams]}
        else:
            resp.json.return_value = {"status": "ZERO_RESULTS", "results": []}
        return resp

    session = MagicMock()
    session.get.side_effect = get
    google = GooglePlacesClient(api_key="k", session=session)
    scene = {"scene_type": "restaurant", "confidence": "high", "business_name": "Sam's Seafood"}

    result = identify_poi(
        b"jpeg", LAT, LNG, collaborators=POICollaborators(vision_call=_vision(scene), geo_sources=[google])
    )

    queried = {c.kwargs["params"]["type"] for c in session.get.call_args_list}
    assert {"restaurant", "cafe", "bar", "museum", "park"} <= queried
    assert (result.best_match.name, result.best_match.confidence) == ("Sam's Seafood", "high")
    assert [p.name for p in result.poi_list].count("Sam's Seafood") == 1
