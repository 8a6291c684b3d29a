"""
Best-effort web context for low-confidence outdoor scenes.

When the top POI is weak and the photo looks like a natural or recreation
scene, one web search is issued near the coordinates and the first snippets
are folded into a short context string.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

import requests

from domain.models import BestMatch, Confidence, SceneAnalysis, SceneType

logger = logging.getLogger(__name__)

GOOGLE_CUSTOM_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
QUERY_SUFFIX = "trail OR open space OR park"
CONTEXT_SCENE_TYPES = {SceneType.NATURAL_LANDMARK.value, SceneType.RECREATION.value}


class TextSearch(Protocol):
    def search(self, query: str, num_results: int) -> Dict[str, Any]:
        ...


class GoogleSearchClient:
    """Google Programmable Search (Custom Search JSON API)."""

    def __init__(
        self,
        api_key: Optional[str],
        engine_id: Optional[str],
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.engine_id = engine_id
        self.timeout = timeout
        self.session = session or requests.Session()
        self._warned_missing_key = False

    def search(self, query: str, num_results: int) -> Dict[str, Any]:
        if not self.api_key or not self.engine_id:
            if not self._warned_missing_key:
                logger.warning("Google search key or engine id missing; skipping web search")
                self._warned_missing_key = True
            return {"query": query, "results": []}
        params = {
            "key": self.api_key,
            "cx": self.engine_id,
            "q": query,
            "num": max(1, min(int(num_results), 10)),
        }
        resp = self.session.get(GOOGLE_CUSTOM_SEARCH_URL, params=params, timeout=self.timeout)
        resp.raise_for_status()
        payload = resp.json()
        items = payload.get("items") if isinstance(payload, dict) else None
        results = [
            {"title": item.get("title"), "link": item.get("link"), "snippet": item.get("snippet")}
            for item in items or []
            if isinstance(item, dict)
        ]
        return {"query": query, "results": results}


def should_search_context(scene: SceneAnalysis, best: Optional[BestMatch]) -> bool:
    return (
        best is not None
        and best.confidence == Confidence.LOW.value
        and scene.scene_type in CONTEXT_SCENE_TYPES
    )


def build_context_query(lat: float, lng: float, scene: SceneAnalysis) -> str:
    parts = [f"{lat}, {lng}"]
    keywords = [k for k in scene.search_keywords if k]
    if keywords:
        parts.append(" ".join(keywords))
    parts.append(QUERY_SUFFIX)
    return " ".join(parts)


def extract_context(results: List[Dict[str, Any]], max_snippets: int = 2) -> Optional[str]:
    snippets = []
    for item in results[:max_snippets]:
        if not isinstance(item, dict):
            continue
        text = (item.get("snippet") or item.get("title") or "").strip()
        if text:
            snippets.append(text)
    return "; ".join(snippets) if snippets else None


def fetch_rich_context(
    search: Optional[TextSearch],
    scene: SceneAnalysis,
    best: Optional[BestMatch],
    lat: float,
    lng: float,
    num_results: int = 4,
    max_snippets: int = 2,
) -> Optional[str]:
    """Return a "; "-joined snippet string, or None. Never raises."""
    if search is None or not should_search_context(scene, best):
        return None
    query = build_context_query(lat, lng, scene)
    try:
        response = search.search(query, num_results)
    except Exception as exc:
        logger.warning("Context search failed for %r: %s", query, exc)
        return None
    results = response.get("results") if isinstance(response, dict) else None
    context = extract_context(results or [], max_snippets=max_snippets)
    logger.info("Context search for %r returned %s", query, "context" if context else "nothing usable")
    return context
