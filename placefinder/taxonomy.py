"""Preference taxonomy: static catalogs for every filter dimension.

Each dimension is an ordered tuple of frozen records plus a few pure lookups.
All compatibility checks are set-overlap tests: a place needs only one of its
types in the category's preferred set to match.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Sequence, Tuple, Union

from . import config
from .models import Budget, Category, OpeningPeriod, SocialContext, TimeOfDay

# --- Budget ---


@dataclass(frozen=True)
class BudgetTier:
    id: Budget
    label: str
    display: str
    price_levels: FrozenSet[int]
    preferred_types: Tuple[str, ...]
    context: str


# Canonical price-level table (Places API 0=free .. 4=very expensive).
BUDGET_PRICE_LEVELS: Dict[Budget, FrozenSet[int]] = {
    Budget.P: frozenset({0, 1}),
    Budget.PP: frozenset({2}),
    Budget.PPP: frozenset({3, 4}),
}

BUDGET_TIERS: Tuple[BudgetTier, ...] = (
    BudgetTier(
        id=Budget.P,
        label="Budget-Friendly",
        display="₱",
        price_levels=BUDGET_PRICE_LEVELS[Budget.P],
        preferred_types=("cafe", "bakery", "food", "meal_takeaway", "convenience_store", "supermarket"),
        context="budget-friendly",
    ),
    BudgetTier(
        id=Budget.PP,
        label="Moderate",
        display="₱₱",
        price_levels=BUDGET_PRICE_LEVELS[Budget.PP],
        preferred_types=("restaurant", "cafe", "bar", "movie_theater", "museum", "art_gallery"),
        context="moderately priced",
    ),
    BudgetTier(
        id=Budget.PPP,
        label="Premium",
        display="₱₱₱",
        price_levels=BUDGET_PRICE_LEVELS[Budget.PPP],
        preferred_types=("restaurant", "bar", "night_club", "spa", "casino", "hotel"),
        context="premium",
    ),
)

# Places API (New) reports price level as an enum string.
PRICE_LEVEL_NAMES: Dict[str, int] = {
    "PRICE_LEVEL_FREE": 0,
    "PRICE_LEVEL_INEXPENSIVE": 1,
    "PRICE_LEVEL_MODERATE": 2,
    "PRICE_LEVEL_EXPENSIVE": 3,
    "PRICE_LEVEL_VERY_EXPENSIVE": 4,
}


def classify_budget(value: Union[Budget, str, None]) -> Optional[BudgetTier]:
    for tier in BUDGET_TIERS:
        if value is not None and tier.id.value == getattr(value, "value", value):
            return tier
    return None


def normalize_price_level(raw: object) -> Optional[int]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if 0 <= raw <= 4 else None
    if isinstance(raw, str):
        text = raw.strip()
        if text.isdigit():
            return normalize_price_level(int(text))
        return PRICE_LEVEL_NAMES.get(text.upper())
    return None


def is_price_level_in_budget(price_level: Optional[int], budget: Optional[Budget]) -> bool:
    if budget is None:
        return True
    # Unknown prices count as budget-friendly rather than being dropped.
    if price_level is None:
        return budget is Budget.P
    return price_level in BUDGET_PRICE_LEVELS.get(budget, frozenset())


def budget_for_price_level(price_level: Optional[int]) -> Optional[Budget]:
    if price_level is None:
        return None
    for budget, levels in BUDGET_PRICE_LEVELS.items():
        if price_level in levels:
            return budget
    return None


# --- Mood ---

MOOD_CHILL_MAX = 33.33
MOOD_NEUTRAL_MAX = 66.66


@dataclass(frozen=True)
class MoodBand:
    id: str
    label: str
    min_score: float
    max_score: float
    preferred_types: Tuple[str, ...]
    social_compatibility: Tuple[str, ...]
    energy_level: str
    context: str


MOOD_BANDS: Tuple[MoodBand, ...] = (
    MoodBand(
        id="chill",
        label="Chill",
        min_score=0.0,
        max_score=MOOD_CHILL_MAX,
        preferred_types=(
            "restaurant", "cafe", "bar", "bakery", "park", "museum", "art_gallery", "movie_theater",
            "spa", "zoo", "aquarium", "golf_course", "swimming_pool", "book_store", "library",
            "florist", "pet_store", "hair_care", "beauty_salon", "hindu_temple", "church",
            "mosque", "synagogue", "rv_park", "campground",
        ),
        social_compatibility=("solo", "with-bae", "barkada"),
        energy_level="low",
        context="relaxed and peaceful",
    ),
    MoodBand(
        id="neutral",
        label="Neutral",
        min_score=MOOD_CHILL_MAX,
        max_score=MOOD_NEUTRAL_MAX,
        preferred_types=(
            "restaurant", "cafe", "bakery", "food", "meal_delivery", "meal_takeaway", "liquor_store",
            "convenience_store", "supermarket", "park", "museum", "art_gallery", "gym", "bowling_alley",
            "zoo", "aquarium", "swimming_pool", "tourist_attraction", "shopping_mall", "clothing_store",
            "shoe_store", "department_store", "electronics_store", "home_goods_store", "hardware_store",
            "jewelry_store", "sporting_goods_store", "bicycle_store", "hair_care", "beauty_salon",
            "university",
        ),
        social_compatibility=("solo", "with-bae", "barkada"),
        energy_level="medium",
        context="balanced and easygoing",
    ),
    MoodBand(
        id="hype",
        label="Hype",
        min_score=MOOD_NEUTRAL_MAX,
        max_score=100.0,
        preferred_types=(
            "restaurant", "bar", "night_club", "stadium", "casino", "gym", "bowling_alley",
            "amusement_park", "skate_park", "playground", "tourist_attraction", "shopping_mall",
        ),
        social_compatibility=("with-bae", "barkada"),
        energy_level="high",
        context="energetic and exciting",
    ),
)


def classify_mood(score: Optional[float]) -> Optional[MoodBand]:
    """Map a 0-100 score to its band; lower bands own their upper boundary."""
    if score is None:
        return None
    if score < 0.0 or score > 100.0:
        return None
    if score <= MOOD_CHILL_MAX:
        return MOOD_BANDS[0]
    if score <= MOOD_NEUTRAL_MAX:
        return MOOD_BANDS[1]
    return MOOD_BANDS[2]


def mood_band_by_id(band_id: Optional[str]) -> Optional[MoodBand]:
    for band in MOOD_BANDS:
        if band.id == band_id:
            return band
    return None


# --- Social context ---


@dataclass(frozen=True)
class SocialProfile:
    id: SocialContext
    label: str
    group_size: Tuple[int, int]
    preferred_types: Tuple[str, ...]
    mood_compatibility: Tuple[str, ...]
    category_enhancements: Dict[Category, Tuple[str, ...]]
    context: str


SOCIAL_PROFILES: Tuple[SocialProfile, ...] = (
    SocialProfile(
        id=SocialContext.SOLO,
        label="Solo",
        group_size=(1, 1),
        preferred_types=(
            "cafe", "bakery", "food", "meal_takeaway", "park", "museum", "art_gallery",
            "library", "book_store", "gym", "spa", "golf_course", "swimming_pool",
            "zoo", "aquarium", "university", "hair_care", "beauty_salon", "supermarket",
            "liquor_store", "convenience_store",
        ),
        mood_compatibility=("chill", "neutral", "hype"),
        category_enhancements={
            Category.FOOD: ("cafe", "coffee_shop", "library", "book_store"),
            Category.ACTIVITY: ("museum", "art_gallery", "park", "gym", "spa"),
            Category.SOMETHING_NEW: ("library", "book_store", "art_gallery", "museum"),
        },
        context="Ideal for some quiet time on your own.",
    ),
    SocialProfile(
        id=SocialContext.WITH_BAE,
        label="With Bae",
        group_size=(2, 2),
        preferred_types=(
            "restaurant", "cafe", "movie_theater", "park", "spa", "art_gallery",
            "museum", "zoo", "aquarium", "tourist_attraction", "shopping_mall",
        ),
        mood_compatibility=("chill", "neutral", "hype"),
        category_enhancements={
            Category.FOOD: ("restaurant", "cafe", "wine_bar"),
            Category.ACTIVITY: ("movie_theater", "park", "spa", "art_gallery"),
            Category.SOMETHING_NEW: ("art_gallery", "museum", "cultural_center"),
        },
        context="Perfect for a date with someone special.",
    ),
    SocialProfile(
        id=SocialContext.BARKADA,
        label="Barkada",
        group_size=(3, 8),
        preferred_types=(
            "restaurant", "cafe", "bar", "stadium", "casino", "bowling_alley",
            "amusement_park", "skate_park", "shopping_mall", "night_club",
            "playground", "tourist_attraction", "campground", "rv_park",
        ),
        mood_compatibility=("neutral", "hype"),
        category_enhancements={
            Category.FOOD: ("restaurant", "bar", "karaoke", "buffet_restaurant"),
            Category.ACTIVITY: ("bowling_alley", "karaoke", "amusement_park", "video_arcade"),
            Category.SOMETHING_NEW: ("amusement_center", "tourist_attraction", "video_arcade"),
        },
        context="Great for group hangouts and celebrations.",
    ),
)


def classify_social(value: Union[SocialContext, str, None]) -> Optional[SocialProfile]:
    for profile in SOCIAL_PROFILES:
        if value is not None and profile.id.value == getattr(value, "value", value):
            return profile
    return None


# --- Time of day ---


@dataclass(frozen=True)
class TimeSlot:
    id: TimeOfDay
    label: str
    start_minute: int
    end_minute: int
    preferred_types: Tuple[str, ...]

    @property
    def wraps_midnight(self) -> bool:
        return self.end_minute <= self.start_minute


TIME_SLOTS: Tuple[TimeSlot, ...] = (
    TimeSlot(
        id=TimeOfDay.MORNING,
        label="Morning",
        start_minute=4 * 60,
        end_minute=12 * 60,
        preferred_types=("cafe", "bakery", "restaurant", "park", "gym"),
    ),
    TimeSlot(
        id=TimeOfDay.AFTERNOON,
        label="Afternoon",
        start_minute=12 * 60,
        end_minute=18 * 60,
        preferred_types=("restaurant", "museum", "art_gallery", "shopping_mall", "park"),
    ),
    TimeSlot(
        id=TimeOfDay.NIGHT,
        label="Night",
        start_minute=18 * 60,
        end_minute=4 * 60,
        preferred_types=("restaurant", "bar", "night_club", "movie_theater", "casino"),
    ),
)

MINUTES_PER_DAY = 24 * 60
MINUTES_PER_WEEK = 7 * MINUTES_PER_DAY


def classify_time(value: Union[TimeOfDay, str, None]) -> Optional[TimeSlot]:
    for slot in TIME_SLOTS:
        if value is not None and slot.id.value == getattr(value, "value", value):
            return slot
    return None


def _slot_windows(slot: TimeSlot) -> Iterable[Tuple[int, int]]:
    """Yield [start, end) minute-of-week windows for the slot on every day."""
    for day in range(7):
        start = day * MINUTES_PER_DAY + slot.start_minute
        end = day * MINUTES_PER_DAY + slot.end_minute
        if slot.wraps_midnight:
            end += MINUTES_PER_DAY
        yield start, end


def _period_windows(period: OpeningPeriod) -> Iterable[Tuple[int, int]]:
    start = period.open_day * MINUTES_PER_DAY + period.open_minute
    end = (period.close_day or 0) * MINUTES_PER_DAY + (period.close_minute or 0)
    if end <= start:
        end += MINUTES_PER_WEEK
    # Shift by a week so windows crossing Saturday midnight still overlap.
    yield start, end
    yield start - MINUTES_PER_WEEK, end - MINUTES_PER_WEEK
    yield start + MINUTES_PER_WEEK, end + MINUTES_PER_WEEK


def is_open_during(periods: Sequence[OpeningPeriod], time_of_day: Union[TimeOfDay, str, None]) -> bool:
    """True when any opening period overlaps the time slot on any day.

    Places without opening-hours data are never excluded.
    """
    slot = classify_time(time_of_day)
    if slot is None or not periods:
        return True
    for period in periods:
        if period.always_open:
            return True
        for p_start, p_end in _period_windows(period):
            for s_start, s_end in _slot_windows(slot):
                if p_start < s_end and s_start < p_end:
                    return True
    return False


# --- Distance ---


@dataclass(frozen=True)
class DistanceBand:
    id: str
    label: str
    min_pct: float
    max_pct: float
    radius_m: int


DISTANCE_BANDS: Tuple[DistanceBand, ...] = (
    DistanceBand(id="very-close", label="Very Close", min_pct=0, max_pct=10, radius_m=250),
    DistanceBand(id="walking-distance", label="Walking Distance", min_pct=10, max_pct=30, radius_m=1000),
    DistanceBand(id="short-drive", label="Short Drive", min_pct=30, max_pct=70, radius_m=5000),
    DistanceBand(id="long-ride", label="Long Car Ride", min_pct=70, max_pct=90, radius_m=10000),
    DistanceBand(id="far", label="As Far as It Gets", min_pct=90, max_pct=100, radius_m=20000),
)


def classify_distance(percentage: Optional[float]) -> Optional[DistanceBand]:
    """Snap a 0-100 slider value to its band; shared edges belong to the lower band."""
    if percentage is None:
        return None
    value = max(0.0, min(100.0, float(percentage)))
    for band in DISTANCE_BANDS:
        if band.min_pct <= value <= band.max_pct:
            return band
    return DISTANCE_BANDS[0]


def radius_for_distance(percentage: Optional[float]) -> int:
    band = classify_distance(percentage)
    if band is None:
        return int(config.DEFAULT_RADIUS_M)
    return band.radius_m


# --- Category ---


@dataclass(frozen=True)
class CategoryFilter:
    id: Category
    label: str
    priority: int
    preferred_types: Tuple[str, ...]
    validation_types: Tuple[str, ...]


CATEGORY_FILTERS: Tuple[CategoryFilter, ...] = (
    CategoryFilter(
        id=Category.FOOD,
        label="Food",
        priority=1,
        preferred_types=(
            "restaurant", "cafe", "bar", "bakery", "food", "meal_delivery",
            "meal_takeaway", "night_club", "liquor_store", "convenience_store", "supermarket",
        ),
        validation_types=("restaurant", "cafe", "bar", "bakery"),
    ),
    CategoryFilter(
        id=Category.ACTIVITY,
        label="Activity",
        priority=2,
        preferred_types=(
            "park", "museum", "art_gallery", "movie_theater", "tourist_attraction", "stadium",
            "casino", "gym", "spa", "bowling_alley", "amusement_park", "zoo", "aquarium",
            "golf_course", "skate_park", "swimming_pool", "playground", "book_store",
            "shopping_mall", "library", "clothing_store", "shoe_store", "department_store",
            "electronics_store", "home_goods_store", "hardware_store", "florist", "jewelry_store",
            "sporting_goods_store", "pet_store", "bicycle_store", "hair_care", "beauty_salon",
            "university", "hindu_temple", "church", "mosque", "synagogue", "rv_park", "campground",
        ),
        validation_types=("park", "museum", "art_gallery", "movie_theater", "tourist_attraction"),
    ),
    CategoryFilter(
        id=Category.SOMETHING_NEW,
        label="Something New",
        priority=3,
        preferred_types=(
            "shopping_mall", "library", "book_store", "tourist_attraction",
            "restaurant", "cafe", "bar", "bakery", "food", "meal_delivery", "meal_takeaway",
            "night_club", "liquor_store", "park", "museum", "art_gallery", "movie_theater",
            "stadium", "casino", "gym", "spa", "bowling_alley", "amusement_park", "zoo",
            "aquarium", "golf_course", "skate_park", "swimming_pool", "playground",
            "clothing_store", "shoe_store", "department_store", "electronics_store",
            "home_goods_store", "hardware_store", "florist", "jewelry_store",
            "sporting_goods_store", "pet_store", "bicycle_store", "hair_care", "beauty_salon",
            "university", "hindu_temple", "church", "mosque", "synagogue", "rv_park",
            "campground", "convenience_store", "supermarket",
        ),
        validation_types=("shopping_mall", "library", "book_store", "tourist_attraction"),
    ),
)


def classify_category(value: Union[Category, str, None]) -> Optional[CategoryFilter]:
    for category in CATEGORY_FILTERS:
        if value is not None and category.id.value == getattr(value, "value", value):
            return category
    return None


# --- Cross-dimension lookups ---


def preferred_types(dimension: str, category_id: object) -> FrozenSet[str]:
    """Place types favored by a category of the given dimension; empty if unknown."""
    record: object
    if dimension == "budget":
        record = classify_budget(category_id)  # type: ignore[arg-type]
    elif dimension == "mood":
        if isinstance(category_id, (int, float)) and not isinstance(category_id, bool):
            record = classify_mood(float(category_id))
        else:
            record = mood_band_by_id(category_id)  # type: ignore[arg-type]
    elif dimension == "social_context":
        record = classify_social(category_id)  # type: ignore[arg-type]
    elif dimension == "time_of_day":
        record = classify_time(category_id)  # type: ignore[arg-type]
    elif dimension == "category":
        record = classify_category(category_id)  # type: ignore[arg-type]
    else:
        raise ValueError(f"Unknown taxonomy dimension: {dimension}")
    if record is None:
        return frozenset()
    return frozenset(getattr(record, "preferred_types"))


def is_compatible(candidate_types: Iterable[str], dimension: str, category_id: object) -> bool:
    """Set-overlap test; an unset or unknown category never excludes."""
    if category_id is None:
        return True
    favored = preferred_types(dimension, category_id)
    if not favored:
        return True
    return not favored.isdisjoint(candidate_types)


def budget_context(budget: Optional[Budget]) -> str:
    tier = classify_budget(budget)
    return tier.context if tier else "any budget range"


def mood_context(score: Optional[float]) -> str:
    band = classify_mood(score)
    return band.context if band else "any mood"


def social_context_phrase(value: Union[SocialContext, str, None]) -> str:
    profile = classify_social(value)
    return profile.context if profile else "Good for any company."

