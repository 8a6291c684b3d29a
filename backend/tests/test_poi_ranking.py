import pytest

from domain.models import NormalizedPOI, SceneAnalysis
from services.poi_ranking import (
    best_match,
    commercial_multiplier,
    confidence_for,
    distance_points,
    rank_pois,
    score_poi,
)


def _poi(name="X", distance=0.05, source="open-map", category="poi", **kwargs):
    return NormalizedPOI(
        name=name,
        category=category,
        lat=0.0,
        lng=0.0,
        distance_miles=distance,
        source=source,
        **kwargs,
    )


@pytest.mark.parametrize(
    "distance,points",
    [(0.0, 50), (0.099, 50), (0.1, 30), (0.24, 30), (0.25, 20), (0.49, 20), (0.5, 10), (0.99, 10), (1.0, 0), (5.0, 0)],
)
def test_distance_bands(distance, points):
    assert distance_points(distance) == points


@pytest.mark.parametrize("score,band", [(70, "high"), (69.9, "medium"), (40, "medium"), (39, "low"), (0, "low")])
def test_confidence_bands(score, band):
    assert confidence_for(score) == band


def test_commercial_multiplier_variants():
    assert commercial_multiplier(_poi()) == pytest.approx(1.1)
    assert commercial_multiplier(_poi(business_name_match=True)) == pytest.approx(2.1)
    assert commercial_multiplier(_poi(category_match=True)) == pytest.approx(1.7)
    assert commercial_multiplier(_poi(business_name_match=True, category_match=True)) == pytest.approx(2.4)


def test_open_map_score_is_additive():
    scene = SceneAnalysis(scene_type="restaurant", has_ocean_view=True, has_water_feature=True)
    poi = _poi(
        distance=0.2,
        category="restaurant",
        business_name_match=True,
        keyword_match=True,
        category_match=True,
        has_ocean_view=True,
        has_water_feature=True,
    )
    # 30 distance + 50 name + 30 category + 20 keyword + 15*2 visual + 25 scene type
    assert score_poi(poi, scene) == 185


def test_visual_flags_only_count_when_both_agree():
    scene = SceneAnalysis(has_mountain_view=True)
    assert score_poi(_poi(distance=2.0, has_ocean_view=True), scene) == 0
    assert score_poi(_poi(distance=2.0, has_mountain_view=True), scene) == 15


def test_commercial_score_multiplied_and_rating_bonus():
    scene = SceneAnalysis(scene_type="restaurant")
    poi = _poi(
        distance=0.05,
        source="commercial-places",
        category="restaurant",
        business_name_match=True,
        category_match=True,
        rating=4.6,
    )
    # (50 + 50 + 30 + 25) * 2.4 = 372, then +5 for rating
    assert score_poi(poi, scene) == 377


def test_rating_bonus_not_applied_to_open_map():
    assert score_poi(_poi(distance=2.0, rating=5.0), SceneAnalysis()) == 0


def test_rank_orders_by_confidence_score_then_distance():
    scene = SceneAnalysis()
    pois = [
        _poi("far-low", distance=0.8),
        _poi("near-high", distance=0.05, keyword_match=True),
        _poi("near-low-a", distance=0.3),
        _poi("near-low-b", distance=0.26),
    ]
    ranked = rank_pois(pois, scene)
    assert [r.name for r in ranked] == ["near-high", "near-low-b", "near-low-a", "far-low"]
    assert ranked[0].confidence == "high"
    assert ranked[0].relevance_reason == "Very close proximity, Visual features match photo content"


def test_rank_caps_results():
    ranked = rank_pois([_poi(str(i), distance=i / 100) for i in range(25)], SceneAnalysis(), max_results=10)
    assert len(ranked) == 10


def test_best_match_is_first_or_none():
    assert best_match([]) is None
    ranked = rank_pois([_poi("Only", distance=0.05)], SceneAnalysis())
    match = best_match(ranked)
    assert (match.name, match.confidence) == ("Only", "medium")


def test_ranked_to_dict_rounds_distance_and_omits_missing_flags():
    ranked = rank_pois([_poi("Napili Bay", distance=0.123456)], SceneAnalysis())[0]
    data = ranked.to_dict()
    assert data["distance_miles"] == 0.12
    assert "business_name_match" not in data
    assert "rating" not in data


def test_exact_ties_keep_input_order():
    pois = [_poi(name=n, distance=0.3) for n in ("B", "A", "C")]
    ranked = rank_pois(pois, SceneAnalysis())
    assert len({r.score for r in ranked}) == 1
    assert [r.name for r in ranked] == ["B", "A", "C"]
