"""Output reporting helpers."""
from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, TextIO

from .expansion import ExpansionState
from .models import DiscoveryResult


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _fsync_dir(path: str) -> None:
    try:
        dir_fd = os.open(path, os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


@contextmanager
def atomic_writer(
    path: str,
    mode: str = "w",
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> Iterator[TextIO]:
    dir_path = os.path.dirname(path) or "."
    base = os.path.basename(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{base}.", suffix=".tmp", dir=dir_path)
    try:
        with os.fdopen(fd, mode, encoding=encoding, newline=newline) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        _fsync_dir(dir_path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def write_json_object(path: str, payload: Dict[str, Any]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def summarize_result(result: DiscoveryResult) -> List[str]:
    lines = [
        f"Source: {result.source.value}{' (cache hit)' if result.cache_hit else ''}",
        f"Results: {len(result.places)} (state={result.state.status.value}, "
        f"expansions={result.expansion_count}, radius={result.final_radius_m}m)",
        f"Query types: {', '.join(result.query_types) or '-'}",
        f"Optimization: {result.query_optimization}",
    ]
    if result.filters_applied:
        lines.append(f"Filters: {'; '.join(result.filters_applied)}")
    if result.notes:
        lines.append(f"Notes: {'; '.join(result.notes)}")
    for i, place in enumerate(result.places, start=1):
        rating = f"{place.rating:.1f}" if place.rating is not None else "n/a"
        distance = f" {place.distance_m / 1000:.1f}km" if place.distance_m is not None else ""
        budget = f" {place.budget.value}" if place.budget else ""
        lines.append(f"{i:>2}. {place.name} [{rating}, {place.review_count} reviews{budget}{distance}]")
    return lines


class StateLogger:
    """Expansion state listener that logs transitions and can append them as JSON lines."""

    def __init__(self, output_path: Optional[str] = None, logger: Optional[logging.Logger] = None) -> None:
        self.output_path = output_path
        self.logger = logger or logging.getLogger(__name__)
        self.states: List[ExpansionState] = []

    def __call__(self, state: ExpansionState) -> None:
        self.states.append(state)
        self.logger.info(
            "State: %s radius=%sm expansions=%s results=%s/%s",
            state.status.value,
            state.current_radius_m,
            state.expansion_count,
            state.result_count,
            state.min_results,
        )
        if not self.output_path:
            return
        record = dict(state.to_dict())
        record["timestamp"] = utc_now_iso()
        with open(self.output_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")
