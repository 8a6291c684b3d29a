"""
Curated landmark reference set used by the location detective.

Loaded once at import and treated as read-only.
"""
from typing import Dict, List, Tuple

from domain.models import LandmarkRecord

REGION_LABELS: Dict[str, str] = {
    "yellowstone": "Yellowstone National Park, Wyoming",
    "maui": "West Maui, Hawaii",
}

_RAW: Dict[str, List[dict]] = {
    "yellowstone": [
        {"name": "Old Faithful Geyser", "type": "natural_landmark", "category": "geyser",
         "lat": 44.4605, "lng": -110.8281, "description": "Iconic geyser that erupts regularly"},
        {"name": "Old Faithful Inn", "type": "landmark", "category": "lodge",
         "lat": 44.4598, "lng": -110.8310, "description": "Historic log lodge facing the geyser"},
        {"name": "Old Faithful Inn Dining Room", "type": "restaurant", "category": "casual_dining",
         "lat": 44.4594, "lng": -110.8300, "description": "Rustic dining in historic lodge"},
        {"name": "Old Faithful Visitor Education Center", "type": "landmark", "category": "visitor_center",
         "lat": 44.4597, "lng": -110.8283, "description": "Geyser prediction and exhibits"},
        {"name": "Castle Geyser", "type": "natural_landmark", "category": "geyser",
         "lat": 44.4634, "lng": -110.8365, "description": "Cone geyser in the Upper Geyser Basin"},
        {"name": "Grand Prismatic Spring", "type": "natural_landmark", "category": "hot_spring",
         "lat": 44.5251, "lng": -110.8382, "description": "Largest hot spring in the park"},
        {"name": "Lake Yellowstone Hotel Dining Room", "type": "restaurant", "category": "fine_dining",
         "lat": 44.5439, "lng": -110.4011, "description": "Elegant dining room with lake views"},
        {"name": "Yellowstone Lake", "type": "natural_landmark", "category": "lake",
         "lat": 44.5400, "lng": -110.4000, "description": "Large alpine lake in Yellowstone"},
        {"name": "Grand Canyon of the Yellowstone", "type": "natural_landmark", "category": "canyon",
         "lat": 44.7417, "lng": -110.4994, "description": "Spectacular canyon with waterfalls"},
    ],
    "maui": [
        {"name": "Merriman's Maui", "type": "restaurant", "category": "fine_dining",
         "lat": 20.9986, "lng": -156.6673, "description": "Fine dining at Kapalua Bay"},
        {"name": "Mama's Fish House", "type": "restaurant", "category": "seafood",
         "lat": 20.9271, "lng": -156.6933, "description": "Oceanfront seafood restaurant in Paia"},
        {"name": "Lahaina Grill", "type": "restaurant", "category": "fine_dining",
         "lat": 20.8734, "lng": -156.6799, "description": "Upscale restaurant in Lahaina"},
        {"name": "Paia Fish Market", "type": "restaurant", "category": "casual_dining",
         "lat": 20.9297, "lng": -156.3667, "description": "Casual seafood restaurant in Paia"},
        {"name": "Honolua Store", "type": "store", "category": "grocery",
         "lat": 21.0158, "lng": -156.6458, "description": "Local grocery store near Honolua Bay"},
        {"name": "Napili Bay", "type": "natural_landmark", "category": "beach",
         "lat": 20.9967, "lng": -156.6672, "description": "Beach in West Maui"},
    ],
}


def _load() -> Tuple[LandmarkRecord, ...]:
    records = []
    for region, entries in _RAW.items():
        for entry in entries:
            records.append(LandmarkRecord(region=region, **entry))
    return tuple(records)


LANDMARKS: Tuple[LandmarkRecord, ...] = _load()


def landmarks_by_region() -> Dict[str, Tuple[LandmarkRecord, ...]]:
    grouped: Dict[str, List[LandmarkRecord]] = {}
    for record in LANDMARKS:
        grouped.setdefault(record.region, []).append(record)
    return {region: tuple(items) for region, items in grouped.items()}


def region_label(region: str) -> str:
    return REGION_LABELS.get(region, region)
