import os

# Basic settings helper to read environment configuration.


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    try:
        return float(val)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        self.OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
        self.POI_VISION_MODEL: str = os.getenv("POI_VISION_MODEL", "gpt-4o")
        self.POI_VISION_TIMEOUT_SECONDS: float = _as_float(os.getenv("POI_VISION_TIMEOUT_SECONDS"), 30.0)
        self.GOOGLE_MAPS_API_KEY: str | None = (
            os.getenv("GOOGLE_MAPS_API_KEY")
            or os.getenv("GOOGLE_PLACES_API_KEY")
            or os.getenv("GOOGLE_API_KEY")
        )
        self.GOOGLE_SEARCH_API_KEY: str | None = os.getenv("GOOGLE_SEARCH_API_KEY") or self.GOOGLE_MAPS_API_KEY
        self.GOOGLE_SEARCH_ENGINE_ID: str | None = os.getenv("GOOGLE_SEARCH_ENGINE_ID")
        self.OSM_OVERPASS_ENDPOINT: str = os.getenv(
            "OSM_OVERPASS_ENDPOINT", "https://overpass-api.de/api/interpreter"
        )
        self.POI_PROVIDER_TIMEOUT_SECONDS: float = _as_float(os.getenv("POI_PROVIDER_TIMEOUT_SECONDS"), 10.0)
        self.POI_CONTEXT_SEARCH_ENABLED: bool = _as_bool(os.getenv("POI_CONTEXT_SEARCH_ENABLED"), True)


settings = Settings()
