import json

from placefinder import config


def test_load_discovery_config_missing_file(tmp_path):
    assert config.load_discovery_config(str(tmp_path / "missing.json")) is False


def test_load_discovery_config_overrides_globals(tmp_path, monkeypatch):
    for name in (
        "DEFAULT_CENTER",
        "DEFAULT_RADIUS_M",
        "SEARCH_BACKOFF_BASE",
        "CACHE_LOCATION_GRID_DEG",
        "FALLBACK_TOP_UP",
        "DISCOVERY_MAX_CONCURRENCY",
        "DEFAULT_QUERY_TYPES",
        "PLACES_NEARBY_BODY_EXTRA",
    ):
        monkeypatch.setattr(config, name, getattr(config, name))

    path = tmp_path / "discovery_config.json"
    path.write_text(
        json.dumps(
            {
                "default_center": {"lat": 10.3157, "lng": 123.8854},
                "default_radius_m": "2500",
                "search_backoff_base": 0.5,
                "cache_location_grid_deg": None,
                "fallback_top_up": True,
                "discovery_max_concurrency": 8,
                "default_query_types": ["cafe", "bakery"],
                "places_nearby_body_extra": {"rankPreference": "DISTANCE"},
            }
        ),
        encoding="utf-8",
    )

    assert config.load_discovery_config(str(path)) is True
    assert config.DEFAULT_CENTER == (10.3157, 123.8854)
    assert config.DEFAULT_RADIUS_M == 2500
    assert config.SEARCH_BACKOFF_BASE == 0.5
    assert config.CACHE_LOCATION_GRID_DEG is None
    assert config.FALLBACK_TOP_UP is True
    assert config.DISCOVERY_MAX_CONCURRENCY == 8
    assert config.DEFAULT_QUERY_TYPES == ["cafe", "bakery"]
    assert config.PLACES_NEARBY_BODY_EXTRA == {"rankPreference": "DISTANCE"}
