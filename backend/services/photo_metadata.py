"""
EXIF context for POI lookups.

Pulls GPS position and capture time from image bytes so a photo can
be identified without the caller supplying coordinates.
"""
import logging
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, Optional, Tuple

from PIL import Image, UnidentifiedImageError
from PIL.ExifTags import GPSTAGS, TAGS

from domain.models import PhotoContext

logger = logging.getLogger(__name__)

EXIF_IFD = 0x8769
GPS_IFD = 0x8825


def extract_photo_context(file_bytes: bytes) -> PhotoContext:
    """
    Extract GPS and capture time from image bytes.

    Missing or unparseable fields are None. Never raises.
    """
    context = PhotoContext()
    try:
        img = Image.open(BytesIO(file_bytes))
        exif = img.getexif()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.warning("Could not read image for EXIF: %s", exc)
        return context

    if not exif:
        return context

    tags = _get_exif_dict(exif)
    context.taken_at = _parse_datetime(tags)

    gps_info = _get_gps_dict(exif)
    if gps_info:
        lat, lon = _parse_gps_coordinates(gps_info)
        context.gps_lat = lat
        context.gps_lon = lon
    return context


def format_capture_time(taken_at: Optional[datetime]) -> Optional[str]:
    """Render a capture time as "Jun 01, 2024, 2:05 PM"."""
    if taken_at is None:
        return None
    hour12 = taken_at.hour % 12 or 12
    meridiem = "PM" if taken_at.hour >= 12 else "AM"
    return f"{taken_at.strftime('%b %d, %Y')}, {hour12}:{taken_at.minute:02d} {meridiem}"


def _get_exif_dict(exif: Image.Exif) -> Dict[str, Any]:
    """Base IFD plus the Exif sub-IFD, keyed by tag name."""
    out: Dict[str, Any] = {}
    for tag_id, value in exif.items():
        out[TAGS.get(tag_id, str(tag_id))] = _make_json_safe(value)
    try:
        sub_ifd = exif.get_ifd(EXIF_IFD)
    except (KeyError, ValueError, OSError) as exc:
        logger.debug("Exif sub-IFD unreadable: %s", exc)
        sub_ifd = {}
    for tag_id, value in sub_ifd.items():
        out[TAGS.get(tag_id, str(tag_id))] = _make_json_safe(value)
    return out


def _get_gps_dict(exif: Image.Exif) -> Dict[str, Any]:
    try:
        gps_ifd = exif.get_ifd(GPS_IFD)
    except (KeyError, ValueError, OSError) as exc:
        logger.debug("GPS IFD unreadable: %s", exc)
        return {}
    return {GPSTAGS.get(tag_id, str(tag_id)): _make_json_safe(value) for tag_id, value in gps_ifd.items()}


def _make_json_safe(value: Any) -> Any:
    """Convert EXIF value to a plain Python type."""
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (tuple, list)):
        return [_make_json_safe(v) for v in value]
    # IFDRational and similar fraction types
    if hasattr(value, "numerator") and hasattr(value, "denominator"):
        if value.denominator == 0:
            return None
        return float(value.numerator) / float(value.denominator)
    if isinstance(value, (int, float, str, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _make_json_safe(v) for k, v in value.items()}
    return str(value)


def _parse_datetime(exif_data: Dict[str, Any]) -> Optional[datetime]:
    for tag in ("DateTimeOriginal", "DateTimeDigitized", "DateTime"):
        parsed = _parse_exif_datetime(exif_data.get(tag))
        if parsed:
            return parsed
    return None


def _parse_exif_datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    formats = [
        "%Y:%m:%d %H:%M:%S",  # Standard EXIF format
        "%Y-%m-%d %H:%M:%S",
        "%Y/%m/%d %H:%M:%S",
    ]
    for fmt in formats:
        try:
            return datetime.strptime(value.strip().rstrip("\x00"), fmt)
        except ValueError:
            continue
    return None


def _parse_gps_coordinates(gps_info: Dict[str, Any]) -> Tuple[Optional[float], Optional[float]]:
    """GPSInfo (named tags) to decimal (lat, lon), or (None, None)."""
    lat = gps_info.get("GPSLatitude")
    lon = gps_info.get("GPSLongitude")
    if lat is None or lon is None:
        return None, None
    lat_decimal = _dms_to_decimal(lat, gps_info.get("GPSLatitudeRef") or "N")
    lon_decimal = _dms_to_decimal(lon, gps_info.get("GPSLongitudeRef") or "E")
    if lat_decimal is None or lon_decimal is None:
        return None, None
    return lat_decimal, lon_decimal


def _dms_to_decimal(dms: Any, ref: str) -> Optional[float]:
    """
    Convert degrees/minutes/seconds to decimal degrees.

    Args:
        dms: List/tuple of [degrees, minutes, seconds]
        ref: Reference direction ("N", "S", "E", "W")

    Returns:
        Decimal degrees, negative for S/W.
    """
    if not isinstance(dms, (list, tuple)) or len(dms) < 3:
        return None
    try:
        degrees, minutes, seconds = (float(part) for part in dms[:3])
    except (TypeError, ValueError):
        return None
    decimal = degrees + (minutes / 60.0) + (seconds / 3600.0)
    if str(ref).upper().startswith(("S", "W")):
        decimal = -decimal
    return round(decimal, 7)  # ~1cm precision
