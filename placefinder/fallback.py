"""Static places served when the provider yields nothing usable."""
from __future__ import annotations

from typing import List, Tuple

from . import taxonomy
from .models import Budget, FilterSpec, Location, OpeningPeriod, PlaceCandidate


def _daily(open_minute: int, close_minute: int) -> Tuple[OpeningPeriod, ...]:
    return tuple(
        OpeningPeriod(open_day=d, open_minute=open_minute, close_day=d, close_minute=close_minute) for d in range(7)
    )


FALLBACK_PLACES: Tuple[PlaceCandidate, ...] = (
    PlaceCandidate(
        id="fallback_1",
        name="Jollibee - Makati",
        address="Makati, Metro Manila",
        types=("fast_food_restaurant", "restaurant", "food"),
        rating=4.2,
        review_count=150,
        price_level=1,
        coordinates=Location(lat=14.5547, lng=121.0244),
        opening_periods=(OpeningPeriod(open_day=0, open_minute=0),),
        primary_type="fast_food_restaurant",
        website="https://www.jollibee.com.ph",
        budget=Budget.P,
        is_fallback=True,
    ),
    PlaceCandidate(
        id="fallback_2",
        name="Starbucks - BGC",
        address="Bonifacio Global City, Taguig",
        types=("cafe", "coffee_shop", "food"),
        rating=4.5,
        review_count=89,
        price_level=2,
        coordinates=Location(lat=14.5509, lng=121.0503),
        opening_periods=_daily(6 * 60, 18 * 60),
        primary_type="cafe",
        website="https://www.starbucks.com.ph",
        budget=Budget.PP,
        is_fallback=True,
    ),
    PlaceCandidate(
        id="fallback_3",
        name="Wolfgang's Steakhouse",
        address="Makati, Metro Manila",
        types=("fine_dining_restaurant", "steak_house", "restaurant"),
        rating=4.8,
        review_count=234,
        price_level=3,
        coordinates=Location(lat=14.5520, lng=121.0230),
        opening_periods=_daily(17 * 60, 23 * 60),
        primary_type="steak_house",
        website="https://www.wolfgangssteakhouse.com",
        budget=Budget.PPP,
        is_fallback=True,
    ),
)


def fallback_candidates(spec: FilterSpec) -> List[PlaceCandidate]:
    """Budget-matching fallback places, or the whole set if none match."""
    matching = [p for p in FALLBACK_PLACES if taxonomy.is_price_level_in_budget(p.price_level, spec.budget)]
    return matching or list(FALLBACK_PLACES)
