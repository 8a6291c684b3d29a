"""
Vision scene analysis.

Sends the photo to a vision-capable chat model and turns its (possibly
malformed) reply into a SceneAnalysis. The analyzer fails closed: any call
failure yields the minimal fallback scene, never an exception.
"""
from __future__ import annotations

import base64
import json
import logging
import re
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Union

from openai import OpenAI

from domain.models import Confidence, SceneAnalysis, SceneType

logger = logging.getLogger(__name__)

ImageInput = Union[bytes, str]
VisionCall = Callable[[ImageInput], str]

VISION_ANALYSIS_PROMPT = """You are an expert at identifying locations from photos and GPS data.

Analyze this photo carefully and reply with a JSON object describing what you see. Pay special attention to business names, restaurant names, or distinctive location identifiers:

{
  "scene_type": "restaurant|store|park|natural_landmark|transportation|recreation|other",
  "confidence": "high|medium|low",
  "visual_elements": ["key", "visual", "features"],
  "likely_categories": ["poi", "types", "to", "search"],
  "distinctive_features": ["unique", "identifiers"],
  "has_ocean_view": true/false,
  "has_mountain_view": true/false,
  "has_water_feature": true/false,
  "indoor_outdoor": "indoor|outdoor|mixed",
  "time_of_day": "morning|afternoon|evening|night|unknown",
  "visible_text": ["readable", "text", "signs", "menus"],
  "business_name": "business name if visible, otherwise null",
  "search_keywords": ["search", "terms", "for", "POI", "lookup"],
  "activity_indicators": ["what", "people", "might", "be", "doing"],
  "architectural_style": "building style if visible",
  "natural_features": ["mountains", "ocean", "forest"]
}"""

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", re.IGNORECASE)
_BARE_JSON = re.compile(r"\{[\s\S]*\}")

CATEGORY_PHRASES: Dict[str, str] = {
    "nature reserve": "park",
    "national forest": "park",
    "trail": "park",
    "hiking area": "park",
    "wildlife sanctuary": "park",
    "mountain": "natural_feature",
    "river": "natural_feature",
}

_SCENE_TYPES = {s.value for s in SceneType}
_CONFIDENCES = {c.value for c in Confidence}


def normalize_categories(categories: Iterable[Any]) -> Tuple[str, ...]:
    """Lowercase, map loose phrases onto searchable categories, and dedupe in order."""
    out: list[str] = []
    for raw in categories or ():
        if not isinstance(raw, str):
            continue
        value = raw.strip().lower()
        if not value:
            continue
        value = CATEGORY_PHRASES.get(value, value)
        if value not in out:
            out.append(value)
    return tuple(out)


def fallback_scene() -> SceneAnalysis:
    """Scene used when the vision call itself fails."""
    return SceneAnalysis(
        scene_type=SceneType.UNKNOWN.value,
        confidence=Confidence.LOW.value,
    )


def _strings(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip())


def scene_from_dict(data: Dict[str, Any]) -> SceneAnalysis:
    """Coerce a decoded model reply into a SceneAnalysis, clamping enums."""
    scene_type = str(data.get("scene_type") or "").strip().lower()
    if scene_type not in _SCENE_TYPES:
        scene_type = SceneType.OTHER.value
    confidence = str(data.get("confidence") or "").strip().lower()
    if confidence not in _CONFIDENCES:
        confidence = Confidence.LOW.value
    business_name = data.get("business_name")
    if not isinstance(business_name, str) or not business_name.strip() or business_name.strip().lower() == "null":
        business_name = None
    else:
        business_name = business_name.strip()
    return SceneAnalysis(
        scene_type=scene_type,
        confidence=confidence,
        visual_elements=_strings(data.get("visual_elements")),
        likely_categories=normalize_categories(_strings(data.get("likely_categories"))),
        distinctive_features=_strings(data.get("distinctive_features")),
        has_ocean_view=data.get("has_ocean_view") is True,
        has_mountain_view=data.get("has_mountain_view") is True,
        has_water_feature=data.get("has_water_feature") is True,
        indoor_outdoor=str(data.get("indoor_outdoor") or "unknown"),
        visible_text=_strings(data.get("visible_text")),
        business_name=business_name,
        search_keywords=_strings(data.get("search_keywords")),
        time_of_day=str(data.get("time_of_day") or "unknown"),
        activity_indicators=_strings(data.get("activity_indicators")),
        architectural_style=str(data.get("architectural_style") or ""),
        natural_features=_strings(data.get("natural_features")),
    )


def parse_unstructured_response(content: str) -> SceneAnalysis:
    """Low-confidence stub sniffed from free text when no JSON can be recovered."""
    lowered = (content or "").lower()
    scene_type = SceneType.OTHER.value
    categories: Tuple[str, ...] = ()
    if any(w in lowered for w in ("restaurant", "food", "dining")):
        scene_type = SceneType.RESTAURANT.value
        categories = ("restaurant", "cafe", "bar")
    elif any(w in lowered for w in ("mountain", "geyser", "nature")):
        scene_type = SceneType.NATURAL_LANDMARK.value
        categories = ("park", "trail", "natural_feature")
    elif any(w in lowered for w in ("store", "shop", "retail")):
        scene_type = SceneType.STORE.value
        categories = ("retail", "shop", "store")
    return SceneAnalysis(
        scene_type=scene_type,
        confidence=Confidence.LOW.value,
        likely_categories=normalize_categories(categories),
    )


def _try_decode(text: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def parse_vision_response(content: Optional[str]) -> SceneAnalysis:
    """
    Parse a raw model reply.

    Order: fenced code block holding a JSON object, then the outermost bare
    {...} span, then the keyword-sniffed stub.
    """
    content = content or ""
    fenced = _FENCED_JSON.search(content)
    if fenced:
        data = _try_decode(fenced.group(1))
        if data is not None:
            return scene_from_dict(data)
    bare = _BARE_JSON.search(content)
    if bare:
        data = _try_decode(bare.group(0))
        if data is not None:
            return scene_from_dict(data)
    logger.debug("Vision reply held no parsable JSON; using keyword fallback")
    return parse_unstructured_response(content)


def _sniff_mime(data: bytes) -> str:
    if data.startswith(b"\x89PNG"):
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def to_data_url(image: ImageInput) -> str:
    """Encode raw bytes (or pass through base64 text / data URLs) for the chat API."""
    if isinstance(image, str):
        if image.startswith("data:"):
            return image
        return f"data:image/jpeg;base64,{image}"
    b64 = base64.b64encode(image).decode()
    return f"data:{_sniff_mime(image)};base64,{b64}"


class OpenAIVisionClient:
    """Calls an OpenAI vision model and returns the raw reply text."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o",
        timeout: float = 30.0,
        client: Optional[OpenAI] = None,
    ):
        self.model = model
        self.client = client or OpenAI(api_key=api_key, timeout=timeout)

    def __call__(self, image: ImageInput) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": VISION_ANALYSIS_PROMPT},
                        {"type": "image_url", "image_url": {"url": to_data_url(image)}},
                    ],
                }
            ],
            max_tokens=1000,
            temperature=0.1,
        )
        return response.choices[0].message.content or ""


def analyze_scene(image: ImageInput, vision_call: Optional[VisionCall]) -> SceneAnalysis:
    """Run the vision call and parse it. Never raises."""
    if vision_call is None:
        logger.warning("No vision client configured; using fallback scene analysis")
        return fallback_scene()
    try:
        content = vision_call(image)
    except Exception as exc:
        logger.warning("Vision analysis failed, falling back to location-only search: %s", exc)
        return fallback_scene()
    try:
        return parse_vision_response(content)
    except Exception:
        logger.exception("Vision reply parsing failed")
        return fallback_scene()


def describe_scene(scene: SceneAnalysis) -> str:
    """Human-readable one-liner for a scene."""
    if scene.confidence == Confidence.LOW.value:
        return "location-based analysis only"
    parts = []
    if scene.indoor_outdoor and scene.indoor_outdoor != "unknown":
        parts.append(f"{scene.indoor_outdoor} scene")
    if scene.visual_elements:
        parts.append("showing " + ", ".join(scene.visual_elements[:3]))
    if scene.distinctive_features:
        parts.append("with " + " and ".join(scene.distinctive_features[:2]))
    if scene.activity_indicators:
        parts.append("where " + " and ".join(scene.activity_indicators[:2]))
    return ", ".join(parts) if parts else "Photo scene analysis"
