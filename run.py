"""CLI entrypoint."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv as _load_dotenv

from placefinder import config, taxonomy
from placefinder.cache import ResultCache
from placefinder.descriptions import GeminiDescriber
from placefinder.http import HttpClient, RequestMetrics
from placefinder.models import FilterSpec, FilterValidationError, Location
from placefinder.orchestrator import DiscoveryCancelled, DiscoveryOrchestrator
from placefinder.places_client import PlacesClient
from placefinder.reporting import StateLogger, ensure_dir, summarize_result, write_json_object


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if not env_path.exists():
        return
    _load_dotenv(dotenv_path=env_path, override=False)


def _env_len(name: str) -> int:
    return len((os.environ.get(name) or "").strip())


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Find places that match mood, budget and company")
    parser.add_argument("--preflight", action="store_true", help="Run offline checks only")
    parser.add_argument("--probe-category", type=str, default=None, help="Count nearby places for a category")
    parser.add_argument("--mood", type=float, default=None, help="0 (chill) to 100 (hype)")
    parser.add_argument("--category", type=str, default=None, help="food, activity or something-new")
    parser.add_argument("--budget", type=str, default=None, help="P, PP or PPP")
    parser.add_argument("--social", type=str, default=None, help="solo, with-bae or barkada")
    parser.add_argument("--time", type=str, default=None, help="morning, afternoon or night")
    parser.add_argument("--distance", type=float, default=None, help="0 (very close) to 100 (far)")
    parser.add_argument("--lat", type=float, default=None)
    parser.add_argument("--lng", type=float, default=None)
    parser.add_argument("--min-results", type=int, default=None)
    parser.add_argument("--no-cache", action="store_true")
    parser.add_argument("--details", action="store_true", help="Fetch place details for the final results")
    parser.add_argument("--timeout", type=float, default=None, help="Overall deadline in seconds")
    parser.add_argument("--out", type=str, default=None, help="Write the result JSON to this path")
    parser.add_argument("--state-log", type=str, default=None, help="Append expansion states as JSON lines")
    parser.add_argument("--config", type=str, default=None, help="Path to discovery_config.json")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def build_spec(args: argparse.Namespace) -> FilterSpec:
    location: Optional[Location] = None
    if args.lat is not None or args.lng is not None:
        if args.lat is None or args.lng is None:
            raise FilterValidationError("--lat and --lng must be given together")
        location = Location(lat=args.lat, lng=args.lng)
    return FilterSpec(
        mood=args.mood,
        category=args.category,
        budget=args.budget,
        social_context=args.social,
        time_of_day=args.time,
        distance_range=args.distance,
        user_location=location,
        min_results=args.min_results if args.min_results is not None else config.DEFAULT_MIN_RESULTS,
    )


def build_orchestrator(api_key: str) -> DiscoveryOrchestrator:
    http_client = HttpClient(api_key, timeout=config.HTTP_TIMEOUT_SECONDS)
    places_client = PlacesClient(http_client, metrics=RequestMetrics())
    return DiscoveryOrchestrator(places_client, cache=ResultCache.from_config(), describer=GeminiDescriber.from_env())


def run_preflight(api_key: Optional[str]) -> int:
    ok = True

    if api_key:
        print("API key: OK")
    else:
        print("API key: MISSING")
        ok = False
    print(f"Gemini key: {'OK' if _env_len('GEMINI_API_KEY') else 'not set (template descriptions)'}")

    covered = set()
    for levels in taxonomy.BUDGET_PRICE_LEVELS.values():
        covered |= levels
    if covered == {0, 1, 2, 3, 4}:
        print("Budget table: OK")
    else:
        print(f"Budget table: FAIL (covers {sorted(covered)})")
        ok = False

    try:
        Location(*config.DEFAULT_CENTER)
        print(f"Default center: OK {config.DEFAULT_CENTER}")
    except FilterValidationError as exc:
        print(f"Default center: FAIL ({exc})")
        ok = False

    print(
        "Expansion: step={step}m max={max_expansions} min_results={min_results}".format(
            step=config.EXPANSION_STEP_M,
            max_expansions=config.MAX_EXPANSIONS,
            min_results=config.DEFAULT_MIN_RESULTS,
        )
    )
    print("Preflight: PASS" if ok else "Preflight: FAIL")
    return 0 if ok else 1


def main(argv: Optional[list] = None) -> int:
    load_env()
    args = parse_args(argv)
    config.load_discovery_config(args.config)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    api_key = os.environ.get("GOOGLE_MAPS_API_KEY")
    if args.preflight:
        return run_preflight(api_key)

    try:
        spec = build_spec(args)
    except FilterValidationError as exc:
        print(f"Invalid filters: {exc}", file=sys.stderr)
        return 2

    if not api_key:
        print("GOOGLE_MAPS_API_KEY is not set", file=sys.stderr)
        return 1

    orchestrator = build_orchestrator(api_key)
    payload: Dict[str, Any]
    try:
        if args.probe_category:
            probe = orchestrator.probe_category(args.probe_category, location=spec.user_location)
            print(
                f"{probe.category.value}: {probe.place_count} places within {probe.radius_m}m "
                f"({', '.join(f'{t}={n}' for t, n in probe.counts_by_type.items())})"
            )
            payload = probe.to_dict()
        else:
            result = orchestrator.discover(
                spec,
                use_cache=not args.no_cache,
                with_details=args.details,
                on_state=StateLogger(args.state_log),
                timeout=args.timeout,
            )
            for line in summarize_result(result):
                print(line)
            payload = result.to_dict()
            payload["filters"] = spec.to_dict()
            payload["stats"] = orchestrator.stats()
    except FilterValidationError as exc:
        print(f"Invalid filters: {exc}", file=sys.stderr)
        return 2
    except DiscoveryCancelled:
        print("Cancelled", file=sys.stderr)
        return 1
    finally:
        orchestrator.close()

    if args.out:
        ensure_dir(os.path.dirname(os.path.abspath(args.out)))
        write_json_object(args.out, payload)
        print(f"Done. Result written to {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
