"""Compatibility scoring and query planning.

Budget and time of day are strict: a candidate that fails either is dropped.
Mood, social context and category are soft: they only shape which provider
types are queried, so results the provider returned for those types are never
rejected after the fact.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from . import config, taxonomy
from .models import FilterSpec, PlaceCandidate


@dataclass(frozen=True)
class FilterVerdict:
    passed: bool
    evaluated: Tuple[str, ...] = ()
    failed: Tuple[str, ...] = ()


@dataclass(frozen=True)
class QueryPlan:
    types: Tuple[str, ...]
    radius_m: int
    distance_band: Optional[str] = None
    altered_by: Tuple[str, ...] = field(default_factory=tuple)


def evaluate(spec: FilterSpec, candidate: PlaceCandidate) -> FilterVerdict:
    evaluated: List[str] = []
    failed: List[str] = []

    if spec.budget is not None:
        evaluated.append("budget")
        if not taxonomy.is_price_level_in_budget(candidate.price_level, spec.budget):
            failed.append("budget")

    if spec.time_of_day is not None:
        evaluated.append("time_of_day")
        if not taxonomy.is_open_during(candidate.opening_periods, spec.time_of_day):
            failed.append("time_of_day")

    return FilterVerdict(passed=not failed, evaluated=tuple(evaluated), failed=tuple(failed))


def filter_candidates(
    spec: FilterSpec, candidates: Iterable[PlaceCandidate]
) -> Tuple[List[PlaceCandidate], Dict[str, int]]:
    passed: List[PlaceCandidate] = []
    rejected: Dict[str, int] = {}
    for candidate in candidates:
        verdict = evaluate(spec, candidate)
        if verdict.passed:
            passed.append(candidate)
            continue
        for name in verdict.failed:
            rejected[name] = rejected.get(name, 0) + 1
    return passed, rejected


def _base_types(spec: FilterSpec) -> Tuple[List[str], Optional[str]]:
    category = taxonomy.classify_category(spec.category)
    if category is not None:
        return list(category.preferred_types), "category"
    mood = taxonomy.classify_mood(spec.mood)
    if mood is not None:
        return list(mood.preferred_types), "mood"
    social = taxonomy.classify_social(spec.social_context)
    if social is not None:
        return list(social.preferred_types), "social_context"
    return list(config.DEFAULT_QUERY_TYPES), None


def resolve_query_types(spec: FilterSpec, limit: Optional[int] = None) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    """Pick the provider types to query and the soft filters that shaped them."""
    limit = int(limit if limit is not None else config.MAX_QUERY_TYPES)
    base, base_source = _base_types(spec)
    altered: List[str] = [base_source] if base_source else []

    social = taxonomy.classify_social(spec.social_context)
    social_types = frozenset(social.preferred_types) if social else frozenset()
    if social is not None and spec.category is not None:
        enhancements = social.category_enhancements.get(spec.category, ())
        social_types = social_types | frozenset(enhancements)
    mood_types = taxonomy.preferred_types("mood", spec.mood)

    def weight(t: str) -> int:
        w = 0
        if t in social_types:
            w += 2
        if t in mood_types:
            w += 1
        return w

    ordered = sorted(enumerate(base), key=lambda item: (-weight(item[1]), item[0]))
    seen: List[str] = []
    for _, t in ordered:
        if t not in seen:
            seen.append(t)
    chosen = tuple(seen[:limit])

    unshaped = tuple(dict.fromkeys(base))[:limit]
    if chosen != unshaped:
        if social_types and base_source != "social_context" and any(t in social_types for t in chosen):
            altered.append("social_context")
        if mood_types and base_source != "mood" and any(t in mood_types for t in chosen):
            altered.append("mood")
    return chosen, tuple(altered)


def build_query_plan(spec: FilterSpec) -> QueryPlan:
    types, altered = resolve_query_types(spec)
    band = taxonomy.classify_distance(spec.distance_range)
    if band is not None:
        altered = altered + ("distance_range",)
    return QueryPlan(
        types=types,
        radius_m=taxonomy.radius_for_distance(spec.distance_range),
        distance_band=band.id if band else None,
        altered_by=altered,
    )


def _fmt_number(value: float) -> str:
    return f"{value:g}"


def applied_filters(spec: FilterSpec) -> List[str]:
    applied: List[str] = []
    if spec.category is not None:
        applied.append(f"category: {spec.category.value}")
    if spec.mood is not None:
        band = taxonomy.classify_mood(spec.mood)
        applied.append(f"mood: {_fmt_number(spec.mood)} ({band.id if band else 'unknown'})")
    if spec.budget is not None:
        applied.append(f"budget: {spec.budget.value}")
    if spec.time_of_day is not None:
        applied.append(f"timeOfDay: {spec.time_of_day.value}")
    if spec.social_context is not None:
        applied.append(f"socialContext: {spec.social_context.value}")
    if spec.distance_range is not None:
        band = taxonomy.classify_distance(spec.distance_range)
        if band is not None:
            applied.append(f"distanceRange: {_fmt_number(spec.distance_range)} ({band.id}, {band.radius_m}m)")
    return applied


_OPTIMIZATION_LABELS = {
    "category": "Category-based type selection",
    "mood": "Mood-prioritized place types",
    "social_context": "Social-context-prioritized place types",
    "distance_range": "Radius-based search",
}


def query_optimization(plan: QueryPlan) -> str:
    labels = [_OPTIMIZATION_LABELS[name] for name in plan.altered_by if name in _OPTIMIZATION_LABELS]
    if plan.distance_band and "distance_range" in plan.altered_by:
        labels[-1] = f"{labels[-1]} ({plan.distance_band}, {plan.radius_m}m)"
    return ", ".join(labels) if labels else "Basic search optimization"
