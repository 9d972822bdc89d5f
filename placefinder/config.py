"""Project configuration.

Loads discovery overrides from discovery_config.json when available, falling
back to the defaults below. Keep API request shapes centralized here.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

_REPO_ROOT = Path(__file__).resolve().parent.parent

# --- API endpoints ---

PLACES_NEARBY_SEARCH_URL = "https://places.googleapis.com/v1/places:searchNearby"
PLACES_DETAILS_URL_TEMPLATE = "https://places.googleapis.com/v1/places/{place_id}"

# --- Field masks ---

PLACES_FIELD_MASK_SEARCH = (
    "places.id,places.displayName,places.formattedAddress,places.types,"
    "places.primaryType,places.rating,places.userRatingCount,places.priceLevel,"
    "places.location,places.regularOpeningHours"
)
PLACES_FIELD_MASK_DETAILS = (
    "id,displayName,formattedAddress,types,primaryType,rating,userRatingCount,"
    "priceLevel,location,websiteUri,internationalPhoneNumber,regularOpeningHours,photos"
)
PLACES_FIELD_MASK_COUNT = "places.id"

# --- Places API request shape ---

PLACES_MAX_RESULT_COUNT = 20
PLACES_TYPES_PER_REQUEST = 5
PLACES_LANGUAGE_CODE = "en"
PLACES_NEARBY_BODY_EXTRA: Dict[str, Any] = {}

# --- Query planning ---

MAX_QUERY_TYPES = 5
DEFAULT_QUERY_TYPES: List[str] = ["restaurant"]
DEFAULT_RADIUS_M = 5000
# Bonifacio Global City, Taguig
DEFAULT_CENTER: Tuple[float, float] = (14.5176, 121.0509)

# --- Retry policy ---

SEARCH_MAX_ATTEMPTS = 3
SEARCH_BACKOFF_BASE = 1.0
DETAILS_MAX_ATTEMPTS = 2
DETAILS_BACKOFF_BASE = 0.5

# --- Expansion ---

DEFAULT_MIN_RESULTS = 5
EXPANSION_STEP_M = 500
MAX_EXPANSIONS = 3

# --- Results ---

MAX_RESULTS = 20
FALLBACK_TOP_UP = False

# --- Result cache ---

CACHE_MAX_ENTRIES = 1000
CACHE_TTL_SECONDS = 10 * 60
FALLBACK_CACHE_TTL_SECONDS = 60
# Degrees; ~1.1 km at the equator. None keeps location out of the key.
CACHE_LOCATION_GRID_DEG: Optional[float] = 0.01

# --- Concurrency and timeouts ---

SEARCH_MAX_CONCURRENCY = 4
DETAILS_MAX_CONCURRENCY = 3
DESCRIPTION_MAX_CONCURRENCY = 3
DISCOVERY_MAX_CONCURRENCY = 16
DISCOVERY_TIMEOUT_SECONDS = 12.0
CANCEL_POLL_SECONDS = 0.05

# --- Category probe ---

PROBE_RADIUS_M = 1000
PROBE_ENOUGH_PLACES = 10

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 10

# --- Descriptions ---

GEMINI_TIMEOUT_SECONDS = 8
DESCRIPTION_MAX_CHARS = 400

_FLOAT_KEYS = {
    "search_backoff_base": "SEARCH_BACKOFF_BASE",
    "details_backoff_base": "DETAILS_BACKOFF_BASE",
    "cache_ttl_seconds": "CACHE_TTL_SECONDS",
    "fallback_cache_ttl_seconds": "FALLBACK_CACHE_TTL_SECONDS",
    "discovery_timeout_seconds": "DISCOVERY_TIMEOUT_SECONDS",
}
_INT_KEYS = {
    "search_max_attempts": "SEARCH_MAX_ATTEMPTS",
    "details_max_attempts": "DETAILS_MAX_ATTEMPTS",
    "default_radius_m": "DEFAULT_RADIUS_M",
    "default_min_results": "DEFAULT_MIN_RESULTS",
    "expansion_step_m": "EXPANSION_STEP_M",
    "max_expansions": "MAX_EXPANSIONS",
    "max_results": "MAX_RESULTS",
    "cache_max_entries": "CACHE_MAX_ENTRIES",
    "details_max_concurrency": "DETAILS_MAX_CONCURRENCY",
    "search_max_concurrency": "SEARCH_MAX_CONCURRENCY",
    "discovery_max_concurrency": "DISCOVERY_MAX_CONCURRENCY",
}


def load_discovery_config(path: Optional[str] = None) -> bool:
    """Load discovery overrides from a JSON file.

    Updates module-level globals with values from the config file.
    Returns True if config was loaded, False if file not found.
    """
    if path is None:
        path = str(_REPO_ROOT / "discovery_config.json")

    config_path = Path(path)
    if not config_path.exists():
        return False

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    globals_ref = globals()

    center = data.get("default_center", {})
    center_lat = center.get("lat")
    center_lng = center.get("lng", center.get("lon"))
    if center_lat is not None and center_lng is not None:
        globals_ref["DEFAULT_CENTER"] = (float(center_lat), float(center_lng))

    for key, name in _FLOAT_KEYS.items():
        if data.get(key) is not None:
            globals_ref[name] = float(data[key])
    for key, name in _INT_KEYS.items():
        if data.get(key) is not None:
            globals_ref[name] = int(data[key])

    if "cache_location_grid_deg" in data:
        grid = data["cache_location_grid_deg"]
        globals_ref["CACHE_LOCATION_GRID_DEG"] = float(grid) if grid is not None else None

    if "fallback_top_up" in data:
        globals_ref["FALLBACK_TOP_UP"] = bool(data["fallback_top_up"])

    default_types = data.get("default_query_types", [])
    if default_types:
        globals_ref["DEFAULT_QUERY_TYPES"] = [str(t) for t in default_types]

    nearby_extra = data.get("places_nearby_body_extra")
    if isinstance(nearby_extra, dict):
        globals_ref["PLACES_NEARBY_BODY_EXTRA"] = dict(nearby_extra)

    return True
