"""Value types shared by the discovery engine."""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Type, TypeVar

from .expansion import ExpansionState, ExpansionStatus


class FilterValidationError(ValueError):
    pass


class Category(str, Enum):
    FOOD = "food"
    ACTIVITY = "activity"
    SOMETHING_NEW = "something-new"


class Budget(str, Enum):
    P = "P"
    PP = "PP"
    PPP = "PPP"


class SocialContext(str, Enum):
    SOLO = "solo"
    WITH_BAE = "with-bae"
    BARKADA = "barkada"


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    NIGHT = "night"


class Source(str, Enum):
    CACHE = "cache"
    API = "api"
    MIXED = "mixed"
    FALLBACK = "fallback"


E = TypeVar("E", bound=Enum)

_UNSET_VALUES = {"", "none", "null"}


def coerce_enum(enum_cls: Type[E], value: Any, field_name: str) -> Optional[E]:
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lower() in _UNSET_VALUES:
            return None
        try:
            return enum_cls(text)
        except ValueError:
            pass
    allowed = ", ".join(m.value for m in enum_cls)
    raise FilterValidationError(f"{field_name} must be one of: {allowed} (got {value!r})")


def _percentage(value: Any, field_name: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FilterValidationError(f"{field_name} must be a number (got {value!r})")
    number = float(value)
    if math.isnan(number) or number < 0.0 or number > 100.0:
        raise FilterValidationError(f"{field_name} must be between 0 and 100 (got {value!r})")
    return number


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float

    def __post_init__(self) -> None:
        try:
            lat = float(self.lat)
            lng = float(self.lng)
        except (TypeError, ValueError):
            raise FilterValidationError(f"Invalid coordinates: {self.lat!r}, {self.lng!r}")
        if math.isnan(lat) or math.isnan(lng) or not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
            raise FilterValidationError(f"Coordinates out of range: {lat}, {lng}")
        object.__setattr__(self, "lat", lat)
        object.__setattr__(self, "lng", lng)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Location":
        lng = raw.get("lng", raw.get("lon", raw.get("longitude")))
        lat = raw.get("lat", raw.get("latitude"))
        return cls(lat=lat, lng=lng)

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class FilterSpec:
    """A user's active preferences for one discovery call.

    Enum fields are optional: None means the dimension is not filtered.
    Invalid values are rejected at construction, so every FilterSpec in
    circulation satisfies 0 <= mood, distance_range <= 100.
    """

    mood: Optional[float] = None
    category: Optional[Category] = None
    budget: Optional[Budget] = None
    social_context: Optional[SocialContext] = None
    time_of_day: Optional[TimeOfDay] = None
    distance_range: Optional[float] = None
    user_location: Optional[Location] = None
    min_results: int = 5

    def __post_init__(self) -> None:
        object.__setattr__(self, "mood", _percentage(self.mood, "mood"))
        object.__setattr__(self, "distance_range", _percentage(self.distance_range, "distance_range"))
        object.__setattr__(self, "category", coerce_enum(Category, self.category, "category"))
        object.__setattr__(self, "budget", coerce_enum(Budget, self.budget, "budget"))
        object.__setattr__(
            self, "social_context", coerce_enum(SocialContext, self.social_context, "social_context")
        )
        object.__setattr__(self, "time_of_day", coerce_enum(TimeOfDay, self.time_of_day, "time_of_day"))
        if isinstance(self.user_location, Mapping):
            object.__setattr__(self, "user_location", Location.from_dict(self.user_location))
        elif self.user_location is not None and not isinstance(self.user_location, Location):
            raise FilterValidationError(f"user_location must be a Location (got {self.user_location!r})")
        if isinstance(self.min_results, bool) or not isinstance(self.min_results, int) or self.min_results < 1:
            raise FilterValidationError(f"min_results must be a positive integer (got {self.min_results!r})")

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "FilterSpec":
        """Build a spec from snake_case or camelCase keys."""
        if not isinstance(raw, Mapping):
            raise FilterValidationError("Filters are required")

        def pick(*keys: str) -> Any:
            for key in keys:
                if key in raw:
                    return raw[key]
            return None

        location = pick("user_location", "userLocation", "location")
        min_results = pick("min_results", "minResults")
        return cls(
            mood=pick("mood"),
            category=pick("category"),
            budget=pick("budget"),
            social_context=pick("social_context", "socialContext"),
            time_of_day=pick("time_of_day", "timeOfDay"),
            distance_range=pick("distance_range", "distanceRange"),
            user_location=Location.from_dict(location) if isinstance(location, Mapping) else location,
            min_results=5 if min_results is None else min_results,
        )

    def filterable_fields(self) -> Dict[str, Any]:
        return {
            "mood": self.mood,
            "category": self.category.value if self.category else None,
            "budget": self.budget.value if self.budget else None,
            "timeOfDay": self.time_of_day.value if self.time_of_day else None,
            "socialContext": self.social_context.value if self.social_context else None,
            "distanceRange": self.distance_range,
            "minResults": self.min_results,
        }

    def to_dict(self) -> Dict[str, Any]:
        out = self.filterable_fields()
        out["userLocation"] = self.user_location.to_dict() if self.user_location else None
        return out


@dataclass(frozen=True)
class OpeningPeriod:
    open_day: int
    open_minute: int
    close_day: Optional[int] = None
    close_minute: Optional[int] = None

    @property
    def always_open(self) -> bool:
        return self.close_day is None or self.close_minute is None


@dataclass(frozen=True)
class PlaceCandidate:
    id: str
    name: str
    address: Optional[str] = None
    types: Tuple[str, ...] = ()
    rating: Optional[float] = None
    review_count: int = 0
    price_level: Optional[int] = None
    coordinates: Optional[Location] = None
    opening_periods: Tuple[OpeningPeriod, ...] = ()
    primary_type: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    photos: Tuple[str, ...] = ()
    budget: Optional[Budget] = None
    description: Optional[str] = None
    distance_m: Optional[float] = None
    score: Optional[float] = None
    is_fallback: bool = False

    def with_updates(self, **changes: Any) -> "PlaceCandidate":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["types"] = list(self.types)
        out["photos"] = list(self.photos)
        out["opening_periods"] = [asdict(p) for p in self.opening_periods]
        out["coordinates"] = self.coordinates.to_dict() if self.coordinates else None
        out["budget"] = self.budget.value if self.budget else None
        return out


@dataclass(frozen=True)
class DiscoveryResult:
    places: Tuple[PlaceCandidate, ...]
    source: Source
    cache_hit: bool
    expansion_count: int
    final_radius_m: int
    total_results: int
    state: ExpansionState
    filters_applied: Tuple[str, ...] = ()
    query_optimization: str = ""
    query_types: Tuple[str, ...] = ()
    notes: Tuple[str, ...] = field(default_factory=tuple)
    response_time_ms: Optional[int] = None

    @property
    def limit_reached(self) -> bool:
        return self.state.status is ExpansionStatus.LIMIT_REACHED

    @property
    def fallback_used(self) -> bool:
        return self.source in (Source.FALLBACK, Source.MIXED)

    def with_updates(self, **changes: Any) -> "DiscoveryResult":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "places": [p.to_dict() for p in self.places],
            "source": self.source.value,
            "cacheHit": self.cache_hit,
            "expansionCount": self.expansion_count,
            "finalRadiusMeters": self.final_radius_m,
            "totalResults": self.total_results,
            "state": self.state.to_dict(),
            "metadata": {
                "filtersApplied": list(self.filters_applied),
                "queryOptimization": self.query_optimization,
                "queryTypes": list(self.query_types),
                "notes": list(self.notes),
            },
            "responseTimeMs": self.response_time_ms,
        }
