"""Discovery orchestration: cache lookup, expanding search, fallback and ranking."""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from . import config, taxonomy
from .cache import ResultCache, make_fingerprint
from .compatibility import QueryPlan, applied_filters, build_query_plan, filter_candidates, query_optimization
from .descriptions import BaseDescriber, describe_places
from .expansion import ExpansionController, ExpansionState, ExpansionStatus, StateListener
from .fallback import fallback_candidates
from .geo import distance_between
from .models import (
    Category,
    DiscoveryResult,
    FilterSpec,
    FilterValidationError,
    Location,
    PlaceCandidate,
    Source,
    coerce_enum,
)
from .places_client import PlacesClient
from .scoring import rank_candidates

logger = logging.getLogger(__name__)

NOTE_FALLBACK = "fallback data used"
NOTE_TIMED_OUT = "timed out"


class DiscoveryCancelled(RuntimeError):
    pass


@dataclass(frozen=True)
class CategoryProbe:
    category: Category
    place_count: int
    types: Tuple[str, ...]
    radius_m: int
    location: Location
    counts_by_type: Dict[str, int] = field(default_factory=dict)
    response_time_ms: Optional[int] = None

    @property
    def available(self) -> bool:
        return self.place_count > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "placeCount": self.place_count,
            "available": self.available,
            "types": list(self.types),
            "countsByType": dict(self.counts_by_type),
            "radius": self.radius_m,
            "location": self.location.to_dict(),
            "responseTimeMs": self.response_time_ms,
        }


class _Run:
    """Per-call stop flag and latest expansion state, shared with the worker."""

    def __init__(self, cancel_event: Optional[threading.Event], on_state: Optional[StateListener]) -> None:
        self.cancel_event = cancel_event
        self.on_state = on_state
        self.abort = threading.Event()
        self.last_state: Optional[ExpansionState] = None
        self.began_at: Optional[float] = None

    def publish(self, state: ExpansionState) -> None:
        self.last_state = state
        if self.on_state is not None and not self.abort.is_set():
            self.on_state(state)

    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def checkpoint(self) -> None:
        if self.abort.is_set() or self.cancelled():
            raise DiscoveryCancelled("discovery cancelled")


class DiscoveryOrchestrator:
    def __init__(
        self,
        places_client: PlacesClient,
        cache: Optional[ResultCache] = None,
        describer: Optional[BaseDescriber] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.places = places_client
        self.cache = cache if cache is not None else ResultCache.from_config()
        self.describer = describer
        self._executor = executor
        self._owns_executor = executor is None
        self._executor_lock = threading.Lock()

    def _get_executor(self) -> Executor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=config.DISCOVERY_MAX_CONCURRENCY, thread_name_prefix="discovery"
                )
            return self._executor

    def close(self) -> None:
        with self._executor_lock:
            if self._executor is not None and self._owns_executor:
                self._executor.shutdown(wait=False)
                self._executor = None

    # --- cache access; failures degrade to a miss ---

    def _cache_get(self, key: str) -> Optional[DiscoveryResult]:
        try:
            return self.cache.get(key)
        except Exception as exc:
            logger.warning("Cache read failed, treating as miss: %s", exc)
            return None

    def _cache_set(self, key: str, result: DiscoveryResult) -> None:
        ttl = config.FALLBACK_CACHE_TTL_SECONDS if result.source is Source.FALLBACK else None
        try:
            self.cache.set(key, result, ttl=ttl)
        except Exception as exc:
            logger.warning("Cache write failed, result not cached: %s", exc)

    # --- public API ---

    def discover(
        self,
        spec: Union[FilterSpec, Mapping[str, Any]],
        use_cache: bool = True,
        with_details: bool = False,
        cancel_event: Optional[threading.Event] = None,
        on_state: Optional[StateListener] = None,
        timeout: Optional[float] = None,
    ) -> DiscoveryResult:
        """Find places matching `spec`.

        `timeout` defaults to config.DISCOVERY_TIMEOUT_SECONDS; zero or a
        negative value runs the search inline with no outer deadline.
        Raises FilterValidationError for bad filters (before any network call)
        and DiscoveryCancelled when `cancel_event` is set mid-flight.
        """
        started = time.monotonic()
        if not isinstance(spec, FilterSpec):
            spec = FilterSpec.from_dict(spec)  # type: ignore[arg-type]
        run = _Run(cancel_event, on_state)
        run.checkpoint()

        key = make_fingerprint(spec)
        if use_cache:
            cached = self._cache_get(key)
            if cached is not None:
                logger.info("Cache hit for filters %s", key[:12])
                return cached.with_updates(
                    source=Source.CACHE, cache_hit=True, response_time_ms=_elapsed_ms(started)
                )

        plan = build_query_plan(spec)
        limit = config.DISCOVERY_TIMEOUT_SECONDS if timeout is None else timeout
        if limit is None or limit <= 0:
            result = self._search(spec, plan, key, use_cache, with_details, run)
            return result.with_updates(response_time_ms=_elapsed_ms(started))

        future = self._get_executor().submit(self._run_job, spec, plan, key, use_cache, with_details, run)
        while True:
            # The deadline counts from when a worker picks the job up, not from submission.
            began_at = run.began_at
            remaining = float(limit) if began_at is None else began_at + float(limit) - time.monotonic()
            if remaining <= 0:
                run.abort.set()
                logger.warning("Discovery timed out after %.1fs, serving fallback", float(limit))
                result = self._fallback_result(spec, plan, run.last_state, (NOTE_TIMED_OUT, NOTE_FALLBACK))
                return result.with_updates(response_time_ms=_elapsed_ms(started))
            try:
                result = future.result(timeout=min(config.CANCEL_POLL_SECONDS, remaining))
            except FutureTimeout:
                if run.cancelled():
                    run.abort.set()
                    logger.info("Discovery cancelled by caller")
                    raise DiscoveryCancelled("discovery cancelled")
                continue
            return result.with_updates(response_time_ms=_elapsed_ms(started))

    def probe_category(
        self,
        category: Union[Category, str],
        location: Optional[Union[Location, Mapping[str, Any]]] = None,
        radius_m: Optional[int] = None,
    ) -> CategoryProbe:
        """Count nearby provider places for a category, stopping once there are enough."""
        started = time.monotonic()
        record = taxonomy.classify_category(coerce_enum(Category, category, "category"))
        if record is None:
            raise FilterValidationError("No category provided")
        if isinstance(location, Mapping):
            location = Location.from_dict(location)
        center = location or Location(*config.DEFAULT_CENTER)
        radius = int(radius_m if radius_m is not None else config.PROBE_RADIUS_M)

        total = 0
        counts: Dict[str, int] = {}
        for place_type in record.validation_types:
            count = self.places.count_places(center, radius, place_type)
            counts[place_type] = count
            total += count
            logger.debug("Probe %s: %s places of type %s", record.id.value, count, place_type)
            if total >= config.PROBE_ENOUGH_PLACES:
                break
        logger.info("Probe %s found %s places within %sm", record.id.value, total, radius)
        return CategoryProbe(
            category=record.id,
            place_count=total,
            types=record.validation_types,
            radius_m=radius,
            location=center,
            counts_by_type=counts,
            response_time_ms=_elapsed_ms(started),
        )

    def stats(self) -> Dict[str, Any]:
        return {"cache": self.cache.stats(), "requests": self.places.metrics.snapshot()}

    # --- pipeline ---

    def _run_job(
        self,
        spec: FilterSpec,
        plan: QueryPlan,
        key: str,
        use_cache: bool,
        with_details: bool,
        run: _Run,
    ) -> DiscoveryResult:
        run.began_at = time.monotonic()
        return self._search(spec, plan, key, use_cache, with_details, run)

    def _search(
        self,
        spec: FilterSpec,
        plan: QueryPlan,
        key: str,
        use_cache: bool,
        with_details: bool,
        run: _Run,
    ) -> DiscoveryResult:
        center = spec.user_location or Location(*config.DEFAULT_CENTER)
        controller = ExpansionController(
            plan.radius_m,
            spec.min_results,
            step_m=config.EXPANSION_STEP_M,
            max_expansions=config.MAX_EXPANSIONS,
            on_change=run.publish,
        )
        logger.info("Searching %s within %sm of %s,%s", ",".join(plan.types), plan.radius_m, center.lat, center.lng)
        state = controller.start()
        found: Dict[str, PlaceCandidate] = {}
        rejected_totals: Dict[str, int] = {}
        while not state.is_terminal:
            run.checkpoint()
            batch = self.places.search(plan.types, controller.radius_m, center)
            run.checkpoint()
            passed, rejected = filter_candidates(spec, batch)
            for name, count in rejected.items():
                rejected_totals[name] = rejected_totals.get(name, 0) + count
            for place in passed:
                found.setdefault(place.id, place)
            state = controller.record(len(found))
        if rejected_totals:
            logger.debug("Strict filters rejected %s", rejected_totals)

        places = list(found.values())
        notes: List[str] = []
        source = Source.API
        if not places:
            logger.info("No usable provider results, serving fallback set")
            places = fallback_candidates(spec)
            source = Source.FALLBACK
            notes.append(NOTE_FALLBACK)
        elif state.status is ExpansionStatus.LIMIT_REACHED and config.FALLBACK_TOP_UP:
            extra = [p for p in fallback_candidates(spec) if p.id not in found]
            extra = extra[: max(0, spec.min_results - len(places))]
            if extra:
                places.extend(extra)
                source = Source.MIXED
                notes.append(NOTE_FALLBACK)
        if state.status is ExpansionStatus.LIMIT_REACHED:
            notes.append(
                f"only {len(found)} of {spec.min_results} requested results within {state.current_radius_m}m"
            )

        ranked = rank_candidates(places, spec)[: config.MAX_RESULTS]
        total_results = len(ranked)

        if with_details:
            run.checkpoint()
            live = [p for p in ranked if not p.is_fallback]
            enriched = {p.id: p for p in self.places.enrich(live)}
            ranked = [enriched.get(p.id, p) for p in ranked]

        run.checkpoint()
        ranked = describe_places(ranked, spec, self.describer)
        ranked = [p.with_updates(distance_m=distance_between(center, p.coordinates)) for p in ranked]

        result = DiscoveryResult(
            places=tuple(ranked),
            source=source,
            cache_hit=False,
            expansion_count=state.expansion_count,
            final_radius_m=state.current_radius_m,
            total_results=total_results,
            state=state,
            filters_applied=tuple(applied_filters(spec)),
            query_optimization=query_optimization(plan),
            query_types=plan.types,
            notes=tuple(notes),
        )
        run.checkpoint()
        if use_cache:
            self._cache_set(key, result)
        logger.info(
            "Discovery finished: %s places, source=%s, expansions=%s, radius=%sm",
            len(ranked),
            source.value,
            state.expansion_count,
            state.current_radius_m,
        )
        return result

    def _fallback_result(
        self,
        spec: FilterSpec,
        plan: QueryPlan,
        state: Optional[ExpansionState],
        notes: Tuple[str, ...],
    ) -> DiscoveryResult:
        if state is None:
            state = ExpansionState(
                status=ExpansionStatus.INITIAL,
                current_radius_m=plan.radius_m,
                initial_radius_m=plan.radius_m,
                min_results=spec.min_results,
            )
        center = spec.user_location or Location(*config.DEFAULT_CENTER)
        places = describe_places(rank_candidates(fallback_candidates(spec), spec), spec, None)
        places = [p.with_updates(distance_m=distance_between(center, p.coordinates)) for p in places]
        return DiscoveryResult(
            places=tuple(places),
            source=Source.FALLBACK,
            cache_hit=False,
            expansion_count=state.expansion_count,
            final_radius_m=state.current_radius_m,
            total_results=len(places),
            state=state,
            filters_applied=tuple(applied_filters(spec)),
            query_optimization=query_optimization(plan),
            query_types=plan.types,
            notes=notes,
        )


def _elapsed_ms(started: float) -> int:
    return int(round((time.monotonic() - started) * 1000))
