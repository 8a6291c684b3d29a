import pytest

from domain.models import NormalizedPOI
from services.places_types import CommercialPlaceRecord, OpenMapRecord
from services.poi_normalizer import (
    merge_sources,
    normalize_category,
    normalize_commercial_category,
    normalize_commercial_record,
    normalize_open_map_record,
    normalize_osm_category,
    normalize_records,
)

ORIGIN = (20.9271, -156.6933)


def _poi(name: str, source: str) -> NormalizedPOI:
    return NormalizedPOI(name=name, category="poi", lat=0.0, lng=0.0, distance_miles=0.1, source=source)


class TestOsmCategory:
    @pytest.mark.parametrize(
        "tags,expected",
        [
            ({"amenity": "restaurant"}, "restaurant"),
            ({"amenity": "pub"}, "restaurant"),
            ({"shop": "books"}, "store"),
            ({"leisure": "nature_reserve"}, "park"),
            ({"tourism": "museum"}, "landmark"),
            ({"historic": "castle"}, "landmark"),
            ({"natural": "geyser"}, "natural_landmark"),
            ({"highway": "footway"}, "poi"),
            ({}, "poi"),
        ],
    )
    def test_mapping(self, tags, expected):
        assert normalize_osm_category(tags) == expected

    def test_amenity_checked_before_shop(self):
        assert normalize_osm_category({"amenity": "cafe", "shop": "coffee"}) == "restaurant"


class TestCommercialCategory:
    @pytest.mark.parametrize(
        "types,expected",
        [
            (["restaurant", "food", "point_of_interest"], "restaurant"),
            (["supermarket", "establishment"], "store"),
            (["campground"], "park"),
            (["tourist_attraction", "point_of_interest"], "park"),
            (["natural_feature"], "natural_landmark"),
            (["establishment"], "natural_landmark"),
            (["lodging"], "poi"),
            ([], "poi"),
        ],
    )
    def test_mapping(self, types, expected):
        assert normalize_commercial_category(types) == expected


def test_normalize_category_is_idempotent():
    for value in [{"amenity": "bar"}, ["park"], {"natural": "peak"}, ["lodging"], {}]:
        once = normalize_category(value)
        assert normalize_category(once) == once


def test_normalize_category_unknown_is_poi():
    assert normalize_category("spaceport") == "poi"
    assert normalize_category(42) == "poi"


def test_open_map_record_builds_keywords_and_flags():
    record = OpenMapRecord.from_element(
        {
            "type": "node",
            "id": 1,
            "lat": 20.93,
            "lon": -156.69,
            "tags": {"name": "Baldwin Beach", "natural": "beach", "website": "http://x"},
        }
    )
    poi = normalize_open_map_record(record, *ORIGIN)
    assert poi.category == "natural_landmark"
    assert poi.source == "open-map"
    assert poi.visual_keywords[0] == "baldwin beach"
    assert "http://x" not in poi.visual_keywords
    assert poi.has_ocean_view is True
    assert poi.distance_miles > 0


def test_open_map_record_uses_center_for_ways():
    record = OpenMapRecord.from_element(
        {"type": "way", "id": 7, "center": {"lat": 20.9, "lon": -156.7}, "tags": {"name": "Trail"}}
    )
    assert (record.lat, record.lon) == (20.9, -156.7)


def test_commercial_record_limits_type_keywords():
    record = CommercialPlaceRecord.from_result(
        {
            "place_id": "p1",
            "name": "Mama's Fish House",
            "types": ["restaurant", "food", "point_of_interest", "establishment", "bar", "cafe", "store"],
            "geometry": {"location": {"lat": 20.9271, "lng": -156.6933}},
            "rating": 4.7,
        }
    )
    poi = normalize_commercial_record(record, *ORIGIN, type_limit=5)
    assert poi.category == "restaurant"
    assert poi.distance_miles == 0
    assert poi.rating == 4.7
    assert poi.place_id == "p1"
    assert "cafe" not in poi.visual_keywords
    assert "store" not in poi.visual_keywords


def test_records_without_name_are_dropped():
    records = [
        OpenMapRecord.from_element({"type": "node", "id": 1, "lat": 1.0, "lon": 1.0, "tags": {"highway": "path"}}),
        CommercialPlaceRecord.from_result({"place_id": "x", "types": ["park"]}),
        OpenMapRecord.from_element({"type": "node", "id": 2, "lat": 1.0, "lon": 1.0, "tags": {"name": "Kept"}}),
    ]
    pois = normalize_records(records, 1.0, 1.0)
    assert [p.name for p in pois] == ["Kept"]


def test_merge_prefers_commercial_on_name_collision():
    commercial = [_poi("Napili Bay", "commercial-places")]
    open_map = [_poi("napili bay", "open-map"), _poi("Napili Kai", "open-map")]
    merged = merge_sources(commercial, open_map)
    assert [(p.name, p.source) for p in merged] == [
        ("Napili Bay", "commercial-places"),
        ("Napili Kai", "open-map"),
    ]
