"""Ranking: review quality (Bayesian average + Wilson bound) and preference fit."""
from __future__ import annotations

import math
from typing import Iterable, List, Optional

from . import taxonomy
from .models import FilterSpec, PlaceCandidate

BAYES_PRIOR_RATING = 4.2
BAYES_M = 50

WEIGHT_QUALITY = 0.6
WEIGHT_MOOD = 0.2
WEIGHT_SOCIAL = 0.1
WEIGHT_TIME = 0.05
WEIGHT_BUDGET = 0.05


def bayesian_average(rating: float, v: int, c: float, m: int) -> float:
    if v <= 0:
        return c
    return (v / (v + m)) * rating + (m / (v + m)) * c


def wilson_lower_bound(rating: float, v: int, z: float = 1.96) -> float:
    if v <= 0:
        return 0.0
    p = rating / 5.0
    denom = 1 + (z ** 2) / v
    center = p + (z ** 2) / (2 * v)
    margin = z * math.sqrt((p * (1 - p) + (z ** 2) / (4 * v)) / v)
    return max(0.0, (center - margin) / denom)


def quality_score(rating: Optional[float], v: int, c: float = BAYES_PRIOR_RATING, m: int = BAYES_M) -> float:
    if rating is None:
        return 20 * c * 0.75
    bayes = bayesian_average(rating, v, c, m)
    wilson = wilson_lower_bound(rating, v)
    return 0.75 * (20 * bayes) + 0.25 * (100 * wilson)


def _overlap_score(types: Iterable[str], favored: frozenset) -> float:
    if not favored:
        return 50.0
    matches = sum(1 for t in types if t in favored)
    return min(100.0, 50.0 + 25.0 * matches)


def budget_alignment(price_level: Optional[int], spec: FilterSpec) -> float:
    if spec.budget is None:
        return 50.0
    levels = taxonomy.BUDGET_PRICE_LEVELS[spec.budget]
    if price_level is None:
        return 60.0
    if price_level in levels:
        return 100.0
    gap = min(abs(price_level - level) for level in levels)
    return {1: 70.0, 2: 40.0}.get(gap, 20.0)


def preference_score(place: PlaceCandidate, spec: FilterSpec) -> float:
    """Blend review quality with how well the place fits the soft filters (0-100)."""
    score = WEIGHT_QUALITY * quality_score(place.rating, place.review_count)
    score += WEIGHT_MOOD * _overlap_score(place.types, taxonomy.preferred_types("mood", spec.mood))
    score += WEIGHT_SOCIAL * _overlap_score(
        place.types, taxonomy.preferred_types("social_context", spec.social_context)
    )
    score += WEIGHT_TIME * _overlap_score(place.types, taxonomy.preferred_types("time_of_day", spec.time_of_day))
    score += WEIGHT_BUDGET * budget_alignment(place.price_level, spec)
    return round(score, 4)


def rank_candidates(places: Iterable[PlaceCandidate], spec: FilterSpec) -> List[PlaceCandidate]:
    scored = [p.with_updates(score=preference_score(p, spec)) for p in places]
    return sorted(scored, key=lambda p: (-(p.score or 0.0), -(p.review_count or 0), p.id))
