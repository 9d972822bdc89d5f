import math

import pytest

from placefinder.models import (
    Budget,
    Category,
    FilterSpec,
    FilterValidationError,
    Location,
    SocialContext,
    TimeOfDay,
)


def test_from_dict_accepts_camel_case_keys():
    spec = FilterSpec.from_dict(
        {
            "mood": 75,
            "category": "something-new",
            "budget": "PPP",
            "socialContext": "with-bae",
            "timeOfDay": "night",
            "distanceRange": 40,
            "userLocation": {"lat": 14.55, "lng": 121.05},
            "minResults": 3,
        }
    )
    assert spec.category is Category.SOMETHING_NEW
    assert spec.budget is Budget.PPP
    assert spec.social_context is SocialContext.WITH_BAE
    assert spec.time_of_day is TimeOfDay.NIGHT
    assert spec.user_location == Location(14.55, 121.05)
    assert spec.min_results == 3


@pytest.mark.parametrize("unset", [None, "", "none", "null", " None "])
def test_unset_enum_values(unset):
    spec = FilterSpec(budget=unset, category=unset)
    assert spec.budget is None
    assert spec.category is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"mood": -0.1},
        {"mood": 100.1},
        {"mood": math.nan},
        {"mood": "50"},
        {"mood": True},
        {"distance_range": 101},
        {"budget": "cheap"},
        {"social_context": "family"},
        {"time_of_day": "dawn"},
        {"min_results": 0},
        {"user_location": {"lat": 91, "lng": 0}},
        {"user_location": "BGC"},
    ],
)
def test_invalid_specs_are_rejected(kwargs):
    with pytest.raises(FilterValidationError):
        FilterSpec(**kwargs)


def test_validation_error_is_a_value_error():
    assert issubclass(FilterValidationError, ValueError)


def test_from_dict_requires_mapping():
    with pytest.raises(FilterValidationError):
        FilterSpec.from_dict(None)


def test_location_aliases():
    assert Location.from_dict({"latitude": 1, "longitude": 2}) == Location(1.0, 2.0)
    assert Location.from_dict({"lat": 1, "lon": 2}).to_dict() == {"lat": 1.0, "lng": 2.0}


def test_to_dict_round_trips_through_from_dict():
    spec = FilterSpec(mood=10, budget="P", user_location=Location(1, 2))
    assert FilterSpec.from_dict(spec.to_dict()) == spec
