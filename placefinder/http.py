"""HTTP client, retry/backoff combinator and request metrics."""
from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, TypeVar

import requests

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransientHttpError(RuntimeError):
    """A provider call failed in a way that is worth retrying."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass
class RequestMetrics:
    network_search: int = 0
    network_details: int = 0
    retries: int = 0
    exhausted: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def inc_network(self, kind: str) -> None:
        with self._lock:
            if kind == "search":
                self.network_search += 1
            elif kind == "details":
                self.network_details += 1
            else:
                raise ValueError(f"Unknown request kind: {kind}")

    def inc_retry(self) -> None:
        with self._lock:
            self.retries += 1

    def inc_exhausted(self) -> None:
        with self._lock:
            self.exhausted += 1

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return {
                "network_search": self.network_search,
                "network_details": self.network_details,
                "retries": self.retries,
                "exhausted": self.exhausted,
            }


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before retry number `attempt` (1-based)."""
    return base_delay * (2 ** (attempt - 1))


def retry_with_backoff(
    fn: Callable[[], T],
    attempts: int,
    base_delay: float,
    default: Any = None,
    label: str = "request",
    sleep: Callable[[float], Any] = time.sleep,
    metrics: Optional[RequestMetrics] = None,
) -> Any:
    """Call `fn` up to `attempts` times, sleeping base_delay * 2**(n-1) between tries.

    Transient failures never escape: once attempts are exhausted the
    `default` value is returned instead.
    """
    attempts = max(1, int(attempts))
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except (TransientHttpError, requests.RequestException) as exc:
            if attempt >= attempts:
                logger.warning("%s failed after %s attempts: %s", label, attempts, exc)
                if metrics is not None:
                    metrics.inc_exhausted()
                return default
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                "%s failed (attempt %s/%s), retrying in %.2fs: %s", label, attempt, attempts, delay, exc
            )
            if metrics is not None:
                metrics.inc_retry()
            sleep(delay)
    return default


class HttpClient:
    def __init__(self, api_key: str, timeout: int = 10) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.session = requests.Session()

    def _headers(self, field_mask: str, extra_headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": field_mask,
            "Content-Type": "application/json",
        }
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def post_json(
        self,
        url: str,
        body: Dict[str, Any],
        field_mask: str,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        payload = json.dumps(body)
        resp = self.session.post(
            url, data=payload, headers=self._headers(field_mask, extra_headers), timeout=self.timeout
        )
        return self._decode(url, resp)

    def get_json(
        self,
        url: str,
        field_mask: str,
        params: Optional[Dict[str, Any]] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        resp = self.session.get(
            url, params=params, headers=self._headers(field_mask, extra_headers), timeout=self.timeout
        )
        return self._decode(url, resp)

    def _decode(self, url: str, resp: requests.Response) -> Dict[str, Any]:
        status = resp.status_code
        if status < 200 or status >= 300:
            logger.debug("HTTP %s from %s", status, url)
            raise TransientHttpError(f"HTTP {status} from {url}", status=status)
        try:
            data = resp.json()
        except ValueError:
            raise TransientHttpError(f"Non-JSON response from {url}", status=status)
        if not isinstance(data, dict):
            raise TransientHttpError(f"Malformed payload from {url}: {type(data).__name__}", status=status)
        return data
