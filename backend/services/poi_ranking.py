"""
Score and rank matched POIs.

Pure functions: (SceneAnalysis, [NormalizedPOI]) -> [RankedPOI]. Scores are
additive, commercial-directory records get a multiplier, and the list is
ordered by (confidence, score, distance).
"""
from __future__ import annotations

from typing import List, Optional, Sequence

from domain.models import BestMatch, Confidence, NormalizedPOI, POISource, RankedPOI, SceneAnalysis

DISTANCE_BANDS = (
    (0.1, 50),
    (0.25, 30),
    (0.5, 20),
    (1.0, 10),
)
BUSINESS_NAME_BONUS = 50
CATEGORY_MATCH_BONUS = 30
KEYWORD_MATCH_BONUS = 20
VISUAL_FEATURE_BONUS = 15
SCENE_TYPE_BONUS = 25

COMMERCIAL_BASE_MULTIPLIER = 1.1
COMMERCIAL_NAME_AND_CATEGORY_BOOST = 1.3
COMMERCIAL_NAME_BOOST = 1.0
COMMERCIAL_CATEGORY_BOOST = 0.6
HIGH_RATING = 4.5
HIGH_RATING_BONUS = 5

HIGH_THRESHOLD = 70
MEDIUM_THRESHOLD = 40
MAX_RESULTS = 10


def distance_points(distance_miles: float) -> int:
    for limit, points in DISTANCE_BANDS:
        if distance_miles < limit:
            return points
    return 0


def _visual_agreements(poi: NormalizedPOI, scene: SceneAnalysis) -> List[str]:
    agreements = []
    if scene.has_ocean_view and poi.has_ocean_view:
        agreements.append("ocean")
    if scene.has_mountain_view and poi.has_mountain_view:
        agreements.append("mountain")
    if scene.has_water_feature and poi.has_water_feature:
        agreements.append("water")
    return agreements


def commercial_multiplier(poi: NormalizedPOI) -> float:
    multiplier = COMMERCIAL_BASE_MULTIPLIER
    if poi.business_name_match and poi.category_match:
        multiplier += COMMERCIAL_NAME_AND_CATEGORY_BOOST
    elif poi.business_name_match:
        multiplier += COMMERCIAL_NAME_BOOST
    elif poi.category_match:
        multiplier += COMMERCIAL_CATEGORY_BOOST
    return multiplier


def score_poi(poi: NormalizedPOI, scene: SceneAnalysis) -> float:
    score: float = distance_points(poi.distance_miles)
    if poi.business_name_match:
        score += BUSINESS_NAME_BONUS
    if poi.category_match:
        score += CATEGORY_MATCH_BONUS
    if poi.keyword_match:
        score += KEYWORD_MATCH_BONUS
    score += VISUAL_FEATURE_BONUS * len(_visual_agreements(poi, scene))
    # Counted on top of category_match; both fire for the same agreement.
    if scene.scene_type == poi.category:
        score += SCENE_TYPE_BONUS

    if poi.source == POISource.COMMERCIAL_PLACES.value:
        score = round(score * commercial_multiplier(poi))
        if poi.rating is not None and poi.rating >= HIGH_RATING:
            score += HIGH_RATING_BONUS
    return score


def confidence_for(score: float) -> str:
    if score >= HIGH_THRESHOLD:
        return Confidence.HIGH.value
    if score >= MEDIUM_THRESHOLD:
        return Confidence.MEDIUM.value
    return Confidence.LOW.value


def relevance_reason(poi: NormalizedPOI, scene: SceneAnalysis) -> str:
    reasons = []
    if poi.distance_miles < 0.1:
        reasons.append("Very close proximity")
    elif poi.distance_miles < 0.25:
        reasons.append("Close proximity")
    else:
        reasons.append(f"{round(poi.distance_miles, 2)} miles away")
    if poi.business_name_match:
        reasons.append("Business name matches visible text/signage")
    if poi.category_match:
        reasons.append("Category matches scene type")
    if poi.keyword_match:
        reasons.append("Visual features match photo content")
    labels = {"ocean": "Has ocean view", "mountain": "Has mountain view", "water": "Has water features"}
    reasons.extend(labels[a] for a in _visual_agreements(poi, scene))
    return ", ".join(reasons)


def _sort_key(ranked: RankedPOI):
    return (-Confidence(ranked.confidence).rank, -ranked.score, ranked.poi.distance_miles)


def rank_pois(
    pois: Sequence[NormalizedPOI],
    scene: SceneAnalysis,
    max_results: int = MAX_RESULTS,
) -> List[RankedPOI]:
    """Score every POI, sort by (confidence desc, score desc, distance asc), cap."""
    ranked = []
    for poi in pois:
        score = score_poi(poi, scene)
        ranked.append(
            RankedPOI(
                poi=poi,
                score=score,
                confidence=confidence_for(score),
                relevance_reason=relevance_reason(poi, scene),
            )
        )
    # sorted() is stable, so exact ties keep provider order.
    ranked = sorted(ranked, key=_sort_key)
    return ranked[:max_results]


def best_match(ranked: Sequence[RankedPOI]) -> Optional[BestMatch]:
    if not ranked:
        return None
    top = ranked[0]
    return BestMatch(name=top.name, confidence=top.confidence)
