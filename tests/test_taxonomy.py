import pytest

from placefinder import config, taxonomy
from placefinder.models import Budget, OpeningPeriod, TimeOfDay


@pytest.mark.parametrize(
    "score, band",
    [
        (0, "chill"),
        (33.33, "chill"),
        (33.34, "neutral"),
        (50, "neutral"),
        (66.66, "neutral"),
        (66.67, "hype"),
        (100, "hype"),
    ],
)
def test_mood_band_boundaries(score, band):
    assert taxonomy.classify_mood(score).id == band


def test_mood_out_of_range_or_unset_has_no_band():
    assert taxonomy.classify_mood(None) is None
    assert taxonomy.classify_mood(-1) is None
    assert taxonomy.classify_mood(100.5) is None


@pytest.mark.parametrize(
    "pct, band, radius",
    [
        (0, "very-close", 250),
        (10, "very-close", 250),
        (20, "walking-distance", 1000),
        (30, "walking-distance", 1000),
        (50, "short-drive", 5000),
        (80, "long-ride", 10000),
        (95, "far", 20000),
        (100, "far", 20000),
    ],
)
def test_distance_bands(pct, band, radius):
    assert taxonomy.classify_distance(pct).id == band
    assert taxonomy.radius_for_distance(pct) == radius


def test_unset_distance_uses_default_radius(monkeypatch):
    monkeypatch.setattr(config, "DEFAULT_RADIUS_M", 4321)
    assert taxonomy.classify_distance(None) is None
    assert taxonomy.radius_for_distance(None) == 4321


def test_budget_table_covers_every_price_level_once():
    seen = []
    for levels in taxonomy.BUDGET_PRICE_LEVELS.values():
        seen.extend(levels)
    assert sorted(seen) == [0, 1, 2, 3, 4]


def test_missing_price_level_counts_as_budget_friendly():
    assert taxonomy.is_price_level_in_budget(None, Budget.P) is True
    assert taxonomy.is_price_level_in_budget(None, Budget.PP) is False
    assert taxonomy.is_price_level_in_budget(None, Budget.PPP) is False


def test_price_level_membership():
    assert taxonomy.is_price_level_in_budget(1, Budget.P)
    assert taxonomy.is_price_level_in_budget(2, Budget.PP)
    assert taxonomy.is_price_level_in_budget(4, Budget.PPP)
    assert not taxonomy.is_price_level_in_budget(3, Budget.P)
    assert taxonomy.is_price_level_in_budget(3, None)


def test_normalize_price_level_variants():
    assert taxonomy.normalize_price_level("PRICE_LEVEL_MODERATE") == 2
    assert taxonomy.normalize_price_level("price_level_very_expensive") == 4
    assert taxonomy.normalize_price_level("3") == 3
    assert taxonomy.normalize_price_level(1) == 1
    assert taxonomy.normalize_price_level(7) is None
    assert taxonomy.normalize_price_level("PRICE_LEVEL_UNSPECIFIED") is None
    assert taxonomy.normalize_price_level(True) is None
    assert taxonomy.budget_for_price_level(0) is Budget.P
    assert taxonomy.budget_for_price_level(None) is None


def test_unset_or_unknown_category_is_always_compatible():
    assert taxonomy.is_compatible(["anything"], "mood", None)
    assert taxonomy.is_compatible(["anything"], "social_context", "not-a-context")
    assert taxonomy.is_compatible([], "budget", None)


def test_compatibility_is_set_overlap():
    assert taxonomy.is_compatible(["night_club", "point_of_interest"], "mood", 90)
    assert not taxonomy.is_compatible(["library"], "mood", "hype")
    assert taxonomy.is_compatible(["cafe"], "category", "food")


def test_preferred_types_rejects_unknown_dimension():
    with pytest.raises(ValueError):
        taxonomy.preferred_types("weather", "sunny")


def _daily(open_h, close_h):
    return [OpeningPeriod(open_day=d, open_minute=open_h * 60, close_day=d, close_minute=close_h * 60) for d in range(7)]


def test_open_during_slot():
    breakfast = _daily(6, 11)
    assert taxonomy.is_open_during(breakfast, TimeOfDay.MORNING)
    assert not taxonomy.is_open_during(breakfast, TimeOfDay.AFTERNOON)
    assert not taxonomy.is_open_during(breakfast, "night")


def test_overnight_period_matches_night():
    bar = [OpeningPeriod(open_day=5, open_minute=20 * 60, close_day=6, close_minute=2 * 60)]
    assert taxonomy.is_open_during(bar, TimeOfDay.NIGHT)
    assert not taxonomy.is_open_during(bar, TimeOfDay.AFTERNOON)


def test_saturday_to_sunday_period_wraps_the_week():
    late = [OpeningPeriod(open_day=6, open_minute=22 * 60, close_day=0, close_minute=3 * 60)]
    assert taxonomy.is_open_during(late, TimeOfDay.NIGHT)


def test_missing_hours_never_exclude():
    assert taxonomy.is_open_during([], TimeOfDay.NIGHT)
    assert taxonomy.is_open_during([OpeningPeriod(open_day=0, open_minute=0)], TimeOfDay.MORNING)
    assert taxonomy.is_open_during(_daily(6, 11), None)
