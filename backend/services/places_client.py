"""
Directory clients for nearby POI lookup: Overpass (OpenStreetMap) and Google Places.

Every client call is isolated: network, auth and parsing failures are logged
and resolve to an empty list so one provider can never sink a request.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence, runtime_checkable

import requests

from services.places_types import CommercialPlaceRecord, OpenMapRecord, RawPOIRecord

logger = logging.getLogger(__name__)

GOOGLE_NEARBY_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
DEFAULT_PLACE_TYPES = ("park", "museum", "tourist_attraction", "natural_feature")
HINT_PLACE_TYPES: Dict[str, tuple] = {
    "restaurant": ("restaurant", "cafe", "bar"),
    "store": ("store", "supermarket"),
    "park": ("park", "campground"),
    "natural_landmark": ("natural_feature", "park"),
}
REQUEST_DENIED_BACKOFF_SEC = 10 * 60


class GeoSource(Protocol):
    source: str

    def fetch_nearby(
        self, lat: float, lng: float, radius_m: int, category_hint: Optional[str] = None
    ) -> List[RawPOIRecord]:
        ...


@runtime_checkable
class HintedGeoSource(Protocol):
    source: str

    def hint_only_types(self, category_hint: Optional[str]) -> List[str]:
        ...

    def fetch_hinted(self, lat: float, lng: float, radius_m: int, category_hint: str) -> List[RawPOIRecord]:
        ...


def dedupe_by_place_id(records: Iterable[RawPOIRecord]) -> List[RawPOIRecord]:
    """Keep the first record per place_id; records without one are all kept."""
    out: List[RawPOIRecord] = []
    seen_ids: set[str] = set()
    for record in records:
        place_id = getattr(record, "place_id", None)
        if place_id:
            if place_id in seen_ids:
                continue
            seen_ids.add(place_id)
        out.append(record)
    return out


def build_overpass_query(lat: float, lng: float, radius_m: int) -> str:
    around = f"around:{radius_m},{lat},{lng}"
    return (
        "[out:json][timeout:25];\n(\n"
        f'  node({around})["name"];\n'
        f'  way({around})["name"];\n'
        f'  rel({around})["name"];\n'
        f'  node({around})["amenity"="shopping_center"];\n'
        f'  way({around})["amenity"="shopping_center"];\n'
        f'  way({around})["landuse"="retail"];\n'
        f'  way({around})[highway~"footway|path|cycleway"];\n'
        f'  relation({around})[route~"hiking|foot|bicycle"];\n'
        ");\nout center tags;"
    )


class OverpassClient:
    source = "open-map"

    def __init__(
        self,
        endpoint: str = "https://overpass-api.de/api/interpreter",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        user_agent: str = "photo-poi-identifier/0.1",
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {"User-Agent": user_agent}

    def fetch_nearby(
        self, lat: float, lng: float, radius_m: int, category_hint: Optional[str] = None
    ) -> List[RawPOIRecord]:
        query = build_overpass_query(lat, lng, radius_m)
        try:
            resp = self.session.post(
                self.endpoint,
                data={"data": query},
                headers=self.headers,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            logger.warning("[OSM] Overpass request failed: %s", exc)
            return []
        except ValueError as exc:
            logger.warning("[OSM] Failed to parse Overpass response: %s", exc)
            return []

        elements = payload.get("elements") if isinstance(payload, dict) else None
        records: List[RawPOIRecord] = []
        seen: set[tuple] = set()
        for element in elements or []:
            if not isinstance(element, dict):
                continue
            record = OpenMapRecord.from_element(element)
            key = (record.name, record.lat, record.lon)
            if key in seen:
                continue
            seen.add(key)
            records.append(record)
        logger.debug(
            "OverpassClient.fetch_nearby: lat=%.6f lon=%.6f radius_m=%s got %d elements",
            lat,
            lng,
            radius_m,
            len(records),
        )
        return records


class GooglePlacesClient:
    """
    Google Places nearby search.

    The API accepts a single type per request, so one request is issued per
    type filter and the results are deduplicated by place_id.
    """

    source = "commercial-places"

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        base_url: str = GOOGLE_NEARBY_URL,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.base_url = base_url
        self._denied_until = 0.0
        self._warned_missing_key = False
        self._state_lock = threading.Lock()

    def _redact(self, text: str) -> str:
        if not self.api_key:
            return text
        return text.replace(self.api_key, "****")

    def type_filters(self, category_hint: Optional[str]) -> List[str]:
        types = list(DEFAULT_PLACE_TYPES)
        for t in HINT_PLACE_TYPES.get(category_hint or "", ()):
            if t not in types:
                types.append(t)
        return types

    def _fetch_type(self, lat: float, lng: float, radius_m: int, place_type: str) -> List[dict]:
        params = {
            "location": f"{lat},{lng}",
            "radius": str(radius_m),
            "type": place_type,
            "key": self.api_key,
        }
        try:
            resp = self.session.get(self.base_url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            logger.warning("[POI] nearbyPlaces failed for type %s: %s", place_type, self._redact(str(exc)))
            return []
        except ValueError as exc:
            logger.warning("[POI] nearbyPlaces returned invalid JSON for type %s: %s", place_type, exc)
            return []

        if not isinstance(payload, dict):
            logger.warning("[POI] nearbyPlaces returned unexpected payload for type %s", place_type)
            return []
        status = payload.get("status", "OK")
        if status not in ("OK", "ZERO_RESULTS"):
            if status == "REQUEST_DENIED":
                with self._state_lock:
                    self._denied_until = time.time() + REQUEST_DENIED_BACKOFF_SEC
            logger.warning(
                "[POI] Google Places API status %s%s for type %s",
                status,
                f" ({payload.get('error_message')})" if payload.get("error_message") else "",
                place_type,
            )
            return []
        results = payload.get("results")
        return results if isinstance(results, list) else []

    def hint_only_types(self, category_hint: Optional[str]) -> List[str]:
        """Types the hint adds on top of the defaults."""
        return [t for t in self.type_filters(category_hint) if t not in DEFAULT_PLACE_TYPES]

    def fetch_nearby(
        self, lat: float, lng: float, radius_m: int, category_hint: Optional[str] = None
    ) -> List[RawPOIRecord]:
        return self._fetch_types(lat, lng, radius_m, self.type_filters(category_hint))

    def fetch_hinted(self, lat: float, lng: float, radius_m: int, category_hint: str) -> List[RawPOIRecord]:
        """Follow-up lookup for the hint's extra types once the scene is known."""
        return self._fetch_types(lat, lng, radius_m, self.hint_only_types(category_hint))

    def _fetch_types(self, lat: float, lng: float, radius_m: int, types: List[str]) -> List[RawPOIRecord]:
        if not types:
            return []
        if not self.api_key:
            if not self._warned_missing_key:
                logger.warning("[POI] GOOGLE_MAPS_API_KEY missing; skipping Google Places lookups")
                self._warned_missing_key = True
            return []
        if time.time() < self._denied_until:
            logger.debug("[POI] Skipping Google Places call; REQUEST_DENIED backoff active")
            return []

        with ThreadPoolExecutor(max_workers=len(types)) as pool:
            batches = list(pool.map(lambda t: self._fetch_type(lat, lng, radius_m, t), types))

        records = dedupe_by_place_id(
            CommercialPlaceRecord.from_result(item)
            for batch in batches
            for item in batch
            if isinstance(item, dict)
        )
        logger.debug(
            "GooglePlacesClient: lat=%.6f lon=%.6f radius_m=%s types=%s got %d results",
            lat,
            lng,
            radius_m,
            ",".join(types),
            len(records),
        )
        return records


def _safe_call(client: GeoSource, call: Callable[[GeoSource], List[RawPOIRecord]]) -> List[RawPOIRecord]:
    try:
        return list(call(client) or [])
    except Exception:
        logger.exception("Provider %s failed; continuing without it", getattr(client, "source", client))
        return []


def _query_concurrently(
    clients: Sequence[GeoSource],
    call: Callable[[GeoSource], List[RawPOIRecord]],
    timeout: Optional[float],
) -> Dict[str, List[RawPOIRecord]]:
    results: Dict[str, List[RawPOIRecord]] = {c.source: [] for c in clients}
    if not clients:
        return results
    pool = ThreadPoolExecutor(max_workers=len(clients))
    try:
        futures = {pool.submit(_safe_call, c, call): c for c in clients}
        done, not_done = wait(futures, timeout=timeout)
        for future in done:
            client = futures[future]
            results[client.source] = results[client.source] + future.result()
        for future in not_done:
            logger.warning("Provider %s timed out after %ss", futures[future].source, timeout)
    finally:
        pool.shutdown(wait=False)
    return results


def fetch_nearby_concurrently(
    clients: Sequence[GeoSource],
    lat: float,
    lng: float,
    radius_m: int,
    category_hint: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Dict[str, List[RawPOIRecord]]:
    """
    Query every client at once and wait for all of them.

    Returns {source: records}. A client that raises, or that has not finished
    within `timeout` seconds, contributes an empty list.
    """
    return _query_concurrently(
        clients, lambda c: c.fetch_nearby(lat, lng, radius_m, category_hint), timeout
    )


def fetch_hinted_concurrently(
    clients: Sequence[GeoSource],
    lat: float,
    lng: float,
    radius_m: int,
    category_hint: str,
    timeout: Optional[float] = None,
) -> Dict[str, List[RawPOIRecord]]:
    """
    Follow-up round for clients that support per-category types.

    Only clients exposing `fetch_hinted` with types left to ask for are queried.
    """
    hinted = [
        c for c in clients
        if isinstance(c, HintedGeoSource) and c.hint_only_types(category_hint)
    ]
    return _query_concurrently(
        hinted, lambda c: c.fetch_hinted(lat, lng, radius_m, category_hint), timeout
    )
