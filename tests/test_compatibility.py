from placefinder import compatibility, config
from placefinder.models import Budget, FilterSpec, OpeningPeriod, PlaceCandidate, TimeOfDay


def _place(pid, price_level=None, periods=(), types=("restaurant",)):
    return PlaceCandidate(id=pid, name=pid, types=tuple(types), price_level=price_level, opening_periods=tuple(periods))


def test_unset_filters_never_exclude():
    spec = FilterSpec()
    places = [_place("a", 4), _place("b"), _place("c", 0, types=("library",))]
    passed, rejected = compatibility.filter_candidates(spec, places)
    assert [p.id for p in passed] == ["a", "b", "c"]
    assert rejected == {}
    assert compatibility.evaluate(spec, places[0]).evaluated == ()


def test_soft_filters_do_not_reject_candidates():
    spec = FilterSpec(mood=95, social_context="solo", category="activity")
    passed, _ = compatibility.filter_candidates(spec, [_place("x", types=("car_wash",))])
    assert [p.id for p in passed] == ["x"]


def test_budget_filter_keeps_unpriced_places_only_for_cheapest_tier():
    places = [_place("cheap", 1), _place("unknown", None), _place("fancy", 3)]

    passed, rejected = compatibility.filter_candidates(FilterSpec(budget="P"), places)
    assert [p.id for p in passed] == ["cheap", "unknown"]
    assert rejected == {"budget": 1}

    passed, rejected = compatibility.filter_candidates(FilterSpec(budget=Budget.PPP), places)
    assert [p.id for p in passed] == ["fancy"]
    assert rejected == {"budget": 2}


def test_time_filter_uses_opening_periods():
    morning_only = [OpeningPeriod(open_day=d, open_minute=7 * 60, close_day=d, close_minute=11 * 60) for d in range(7)]
    spec = FilterSpec(time_of_day=TimeOfDay.NIGHT)
    verdict = compatibility.evaluate(spec, _place("early", periods=morning_only))
    assert verdict.passed is False
    assert verdict.failed == ("time_of_day",)
    assert compatibility.evaluate(spec, _place("unknown-hours")).passed


def test_query_types_are_capped():
    for spec in (
        FilterSpec(category="activity", mood=80, social_context="barkada"),
        FilterSpec(category="something-new"),
        FilterSpec(mood=10),
    ):
        plan = compatibility.build_query_plan(spec)
        assert 1 <= len(plan.types) <= config.MAX_QUERY_TYPES
        assert len(set(plan.types)) == len(plan.types)


def test_default_query_types_without_soft_filters(monkeypatch):
    monkeypatch.setattr(config, "DEFAULT_QUERY_TYPES", ["cafe", "restaurant"])
    plan = compatibility.build_query_plan(FilterSpec(budget="PP"))
    assert plan.types == ("cafe", "restaurant")
    assert plan.altered_by == ()
    assert plan.radius_m == config.DEFAULT_RADIUS_M
    assert compatibility.query_optimization(plan) == "Basic search optimization"


def test_social_context_moves_its_types_forward():
    plain, _ = compatibility.resolve_query_types(FilterSpec(category="food"))
    shaped, altered = compatibility.resolve_query_types(FilterSpec(category="food", social_context="solo"))
    assert plain[0] == "restaurant"
    assert shaped[0] == "cafe"
    assert altered == ("category", "social_context")


def test_distance_band_drives_radius_and_metadata():
    plan = compatibility.build_query_plan(FilterSpec(category="food", distance_range=20))
    assert plan.radius_m == 1000
    assert plan.distance_band == "walking-distance"
    assert compatibility.query_optimization(plan) == (
        "Category-based type selection, Radius-based search (walking-distance, 1000m)"
    )


def test_applied_filters_describe_active_filters():
    spec = FilterSpec(category="food", mood=50, budget="PP", time_of_day="night", social_context="barkada", distance_range=50)
    assert compatibility.applied_filters(spec) == [
        "category: food",
        "mood: 50 (neutral)",
        "budget: PP",
        "timeOfDay: night",
        "socialContext: barkada",
        "distanceRange: 50 (short-drive, 5000m)",
    ]
    assert compatibility.applied_filters(FilterSpec()) == []
