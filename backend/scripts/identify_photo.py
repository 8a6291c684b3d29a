"""Identify the point of interest a photo was taken at.

Usage:
    python backend/scripts/identify_photo.py <image> [--lat 44.46 --lng -110.83] [--timestamp "Jun 01, 2024, 2:05 PM"]

Coordinates and timestamp default to the photo's EXIF block. Prints the
identification result and the location detective result as JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from dotenv import load_dotenv

load_dotenv(BACKEND_ROOT / ".env")

from domain.models import PipelineConfig
from services.geocoding import reverse_geocode_address
from services.location_detective import run_location_detective
from services.photo_metadata import extract_photo_context, format_capture_time
from services.poi_identifier import build_default_collaborators, identify_poi
from settings import Settings

logger = logging.getLogger("identify_photo")


def main(argv: list[str] | None = None) -> int:
    if not logger.handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    parser = argparse.ArgumentParser(description="Identify the POI a photo was taken at.")
    parser.add_argument("image", help="Path to a JPEG/PNG/WEBP photo.")
    parser.add_argument("--lat", type=float, default=None, help="Latitude (defaults to EXIF GPS).")
    parser.add_argument("--lng", type=float, default=None, help="Longitude (defaults to EXIF GPS).")
    parser.add_argument("--timestamp", default=None, help="Capture time (defaults to EXIF time).")
    args = parser.parse_args(argv)

    image_path = Path(args.image)
    if not image_path.is_file():
        logger.error("Image not found: %s", image_path)
        return 2
    image = image_path.read_bytes()

    context = extract_photo_context(image)
    lat, lng = args.lat, args.lng
    if (lat is None or lng is None) and context.has_gps:
        lat, lng = context.gps_lat, context.gps_lon
    if lat is None or lng is None:
        logger.error("No GPS in %s; pass --lat and --lng", image_path)
        return 2
    timestamp = args.timestamp or format_capture_time(context.taken_at)

    settings = Settings()
    result = identify_poi(
        image,
        lat,
        lng,
        timestamp,
        config=PipelineConfig.from_settings(settings),
        collaborators=build_default_collaborators(settings),
    )

    geo_context = {}
    address = reverse_geocode_address(lat, lng)
    if address:
        geo_context["address"] = address.to_dict()
    if result.best_match:
        geo_context["best_match_poi"] = result.best_match.to_dict()
    detective = run_location_detective(
        lat,
        lng,
        date_time_info=timestamp,
        description=result.scene_description,
        geo_context=geo_context,
    )

    print(json.dumps({"identification": result.to_dict(), "detective": detective.to_dict()}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
