"""
Cross-reference the vision scene against candidate POIs.

Name matching is approximate (dissimilarity in [0, 1], 0 = identical);
keyword matching is case-insensitive substring containment.
"""
from __future__ import annotations

from dataclasses import replace
from typing import List, Protocol, Sequence

from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein

from domain.models import NormalizedPOI, SceneAnalysis

DEFAULT_THRESHOLD = 0.4
# Partial (substring-aligned) comparison is only trusted for queries this long.
MIN_PARTIAL_LENGTH = 4


class NameSimilarity(Protocol):
    def dissimilarity(self, query: str, candidate: str) -> float:
        ...


class LevenshteinNameSimilarity:
    """
    Normalized Levenshtein distance, relaxed with a best-substring alignment so
    a sign reading "Sam's" can still find "Sam's Seafood Grill".
    """

    def dissimilarity(self, query: str, candidate: str) -> float:
        a = query.strip().lower()
        b = candidate.strip().lower()
        if not a or not b:
            return 1.0
        if a == b:
            return 0.0
        score = Levenshtein.normalized_distance(a, b)
        if min(len(a), len(b)) >= MIN_PARTIAL_LENGTH:
            score = min(score, 1.0 - fuzz.partial_ratio(a, b) / 100.0)
        return score


def candidate_names(scene: SceneAnalysis) -> List[str]:
    names = [scene.business_name or "", *scene.visible_text]
    return [n.strip() for n in names if n and n.strip()]


def candidate_keywords(scene: SceneAnalysis) -> List[str]:
    words = [*scene.search_keywords, *scene.visual_elements]
    return [w.strip().lower() for w in words if w and w.strip()]


def match_pois(
    pois: Sequence[NormalizedPOI],
    scene: SceneAnalysis,
    similarity: NameSimilarity | None = None,
    threshold: float = DEFAULT_THRESHOLD,
) -> List[NormalizedPOI]:
    """
    Attach business_name_match / keyword_match to every POI.

    With no names and no keywords to compare, POIs come back untouched and the
    flags stay None.
    """
    names = candidate_names(scene)
    keywords = candidate_keywords(scene)
    if not names and not keywords:
        return list(pois)

    similarity = similarity or LevenshteinNameSimilarity()
    matched: List[NormalizedPOI] = []
    for poi in pois:
        name_hit = any(similarity.dissimilarity(n, poi.name) <= threshold for n in names)
        haystack = " ".join([poi.name, *poi.visual_keywords]).lower()
        keyword_hit = any(k in haystack for k in keywords)
        matched.append(replace(poi, business_name_match=name_hit, keyword_match=keyword_hit))
    return matched


def attach_category_match(pois: Sequence[NormalizedPOI], scene_type: str) -> List[NormalizedPOI]:
    """Set category_match on POIs the matcher has already flagged."""
    out: List[NormalizedPOI] = []
    for poi in pois:
        if poi.business_name_match is None and poi.keyword_match is None:
            out.append(poi)
            continue
        out.append(replace(poi, category_match=poi.category == scene_type))
    return out
