"""Places API (New) client: nearby search, place details and response parsing."""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from . import config, taxonomy
from .http import HttpClient, RequestMetrics, retry_with_backoff
from .models import Location, OpeningPeriod, PlaceCandidate

logger = logging.getLogger(__name__)


class PlacesClient:
    def __init__(
        self,
        http_client: HttpClient,
        metrics: Optional[RequestMetrics] = None,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self.http = http_client
        self.metrics = metrics if metrics is not None else RequestMetrics()
        self.sleep = sleep

    def _search_batch(self, types: Sequence[str], radius_m: int, center: Location) -> List[PlaceCandidate]:
        body = build_nearby_search_body(center, radius_m, types)

        def call() -> Dict[str, Any]:
            self.metrics.inc_network("search")
            return self.http.post_json(config.PLACES_NEARBY_SEARCH_URL, body, config.PLACES_FIELD_MASK_SEARCH)

        response = retry_with_backoff(
            call,
            attempts=config.SEARCH_MAX_ATTEMPTS,
            base_delay=config.SEARCH_BACKOFF_BASE,
            default=None,
            label=f"nearby search {','.join(types)} @{radius_m}m",
            sleep=self.sleep,
            metrics=self.metrics,
        )
        if response is None:
            return []
        return parse_places_response(response)

    def search(self, types: Sequence[str], radius_m: int, center: Location) -> List[PlaceCandidate]:
        """Search every type batch concurrently and merge the results by place id."""
        batches = list(batch_types(types, config.PLACES_TYPES_PER_REQUEST))
        if not batches:
            return []
        if len(batches) == 1:
            results = [self._search_batch(batches[0], radius_m, center)]
        else:
            workers = max(1, min(config.SEARCH_MAX_CONCURRENCY, len(batches)))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [pool.submit(self._search_batch, b, radius_m, center) for b in batches]
                results = [f.result() for f in futures]

        merged: List[PlaceCandidate] = []
        seen: set[str] = set()
        for batch in results:
            for place in batch:
                if place.id in seen:
                    continue
                seen.add(place.id)
                merged.append(place)
        logger.debug("Nearby search %sm over %s batches returned %s places", radius_m, len(batches), len(merged))
        return merged

    def get_details(self, place_id: str) -> Optional[PlaceCandidate]:
        url = config.PLACES_DETAILS_URL_TEMPLATE.format(place_id=place_id)

        def call() -> Dict[str, Any]:
            self.metrics.inc_network("details")
            return self.http.get_json(
                url, config.PLACES_FIELD_MASK_DETAILS, params={"languageCode": config.PLACES_LANGUAGE_CODE}
            )

        response = retry_with_backoff(
            call,
            attempts=config.DETAILS_MAX_ATTEMPTS,
            base_delay=config.DETAILS_BACKOFF_BASE,
            default=None,
            label=f"place details {place_id}",
            sleep=self.sleep,
            metrics=self.metrics,
        )
        if response is None:
            return None
        return parse_place(response)

    def enrich(self, candidates: Sequence[PlaceCandidate]) -> List[PlaceCandidate]:
        """Fetch details for each candidate; a failed lookup keeps the input candidate."""
        if not candidates:
            return []
        workers = max(1, min(config.DETAILS_MAX_CONCURRENCY, len(candidates)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            details = list(pool.map(lambda c: self.get_details(c.id), candidates))
        return [merge_details(c, d) if d is not None else c for c, d in zip(candidates, details)]

    def count_places(self, center: Location, radius_m: int, place_type: str) -> int:
        body = build_nearby_search_body(center, radius_m, [place_type])

        def call() -> Dict[str, Any]:
            self.metrics.inc_network("search")
            return self.http.post_json(config.PLACES_NEARBY_SEARCH_URL, body, config.PLACES_FIELD_MASK_COUNT)

        response = retry_with_backoff(
            call,
            attempts=config.SEARCH_MAX_ATTEMPTS,
            base_delay=config.SEARCH_BACKOFF_BASE,
            default=None,
            label=f"count {place_type} @{radius_m}m",
            sleep=self.sleep,
            metrics=self.metrics,
        )
        if not isinstance(response, dict):
            return 0
        places = response.get("places")
        return len(places) if isinstance(places, list) else 0


def batch_types(types: Iterable[str], size: int) -> Iterable[List[str]]:
    size = max(1, int(size))
    unique = list(dict.fromkeys(t for t in types if t))
    for i in range(0, len(unique), size):
        yield unique[i : i + size]


def build_nearby_search_body(center: Location, radius_m: int, types: Sequence[str]) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "locationRestriction": {
            "circle": {
                "center": {"latitude": center.lat, "longitude": center.lng},
                "radius": float(radius_m),
            }
        },
        "maxResultCount": config.PLACES_MAX_RESULT_COUNT,
        "languageCode": config.PLACES_LANGUAGE_CODE,
    }
    if types:
        body["includedTypes"] = list(types)
    if config.PLACES_NEARBY_BODY_EXTRA:
        body.update(config.PLACES_NEARBY_BODY_EXTRA)
    return body


def merge_details(base: PlaceCandidate, detail: PlaceCandidate) -> PlaceCandidate:
    changes: Dict[str, Any] = {}
    for name in ("address", "rating", "price_level", "coordinates", "primary_type", "website", "phone"):
        value = getattr(detail, name)
        if value is not None:
            changes[name] = value
    if detail.review_count:
        changes["review_count"] = detail.review_count
    if detail.types:
        changes["types"] = detail.types
    if detail.opening_periods:
        changes["opening_periods"] = detail.opening_periods
    if detail.photos:
        changes["photos"] = detail.photos
    if detail.budget is not None:
        changes["budget"] = detail.budget
    return base.with_updates(**changes)


# Adapter/mapper for Places response fields


def _time_of(point: Any) -> Optional[tuple]:
    if not isinstance(point, dict):
        return None
    try:
        day = int(point.get("day", 0))
        minute = int(point.get("hour", 0)) * 60 + int(point.get("minute", 0))
    except (TypeError, ValueError):
        return None
    if not 0 <= day <= 6:
        return None
    return day, minute


def parse_opening_periods(hours: Any) -> tuple:
    if not isinstance(hours, dict):
        return ()
    periods: List[OpeningPeriod] = []
    for raw in hours.get("periods") or []:
        if not isinstance(raw, dict):
            continue
        opened = _time_of(raw.get("open"))
        if opened is None:
            continue
        closed = _time_of(raw.get("close"))
        if closed is None:
            periods.append(OpeningPeriod(open_day=opened[0], open_minute=opened[1]))
        else:
            periods.append(
                OpeningPeriod(open_day=opened[0], open_minute=opened[1], close_day=closed[0], close_minute=closed[1])
            )
    return tuple(periods)


def _coordinates(raw: Any) -> Optional[Location]:
    if not isinstance(raw, dict):
        return None
    lat = raw.get("latitude", raw.get("lat"))
    lng = raw.get("longitude", raw.get("lng"))
    if lat is None or lng is None:
        return None
    try:
        return Location(lat=lat, lng=lng)
    except ValueError:
        return None


def parse_place(p: Any) -> Optional[PlaceCandidate]:
    if not isinstance(p, dict):
        return None
    place_id = p.get("id") or p.get("placeId")
    if not place_id:
        return None
    display = p.get("displayName")
    if isinstance(display, dict):
        name = display.get("text") or display.get("value")
    else:
        name = display
    rating = p.get("rating")
    try:
        rating = float(rating) if rating is not None else None
    except (TypeError, ValueError):
        rating = None
    try:
        review_count = int(p.get("userRatingCount") or 0)
    except (TypeError, ValueError):
        review_count = 0
    price_level = taxonomy.normalize_price_level(p.get("priceLevel"))
    photos = tuple(
        ph["name"] for ph in (p.get("photos") or []) if isinstance(ph, dict) and ph.get("name")
    )
    return PlaceCandidate(
        id=str(place_id),
        name=str(name or place_id),
        address=p.get("formattedAddress"),
        types=tuple(str(t) for t in (p.get("types") or [])),
        rating=rating,
        review_count=review_count,
        price_level=price_level,
        coordinates=_coordinates(p.get("location")),
        opening_periods=parse_opening_periods(p.get("regularOpeningHours")),
        primary_type=p.get("primaryType"),
        website=p.get("websiteUri"),
        phone=p.get("internationalPhoneNumber") or p.get("nationalPhoneNumber"),
        photos=photos,
        budget=taxonomy.budget_for_price_level(price_level),
    )


def parse_places_response(response: Any) -> List[PlaceCandidate]:
    if not isinstance(response, dict):
        return []
    places = response.get("places") or []
    if not isinstance(places, list):
        return []
    parsed: List[PlaceCandidate] = []
    for p in places:
        place = parse_place(p)
        if place is not None:
            parsed.append(place)
    return parsed
