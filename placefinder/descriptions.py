"""Short place descriptions from Gemini with a templated fallback.

Describers never hard-fail: a missing GEMINI_API_KEY yields a no-op describer,
and any request or parsing problem falls back to the template text.
"""
from __future__ import annotations

import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

import requests

from . import config, taxonomy
from .models import FilterSpec, PlaceCandidate, SocialContext

logger = logging.getLogger(__name__)

GEMINI_API_URL_TEMPLATE = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"

_SOCIAL_SENTENCES = {
    SocialContext.WITH_BAE: "Perfect for a romantic date night.",
    SocialContext.BARKADA: "Great for group gatherings and celebrations.",
    SocialContext.SOLO: "Ideal for solo dining and quiet meals.",
}


def template_description(place: PlaceCandidate, spec: Optional[FilterSpec] = None) -> str:
    social = spec.social_context if spec is not None else None
    closing = _SOCIAL_SENTENCES.get(social, _SOCIAL_SENTENCES[SocialContext.SOLO])  # type: ignore[arg-type]
    return f"{place.name} is a great place to visit. {closing}"


def build_prompt(place: PlaceCandidate, spec: Optional[FilterSpec]) -> str:
    budget = spec.budget if spec is not None else None
    mood = spec.mood if spec is not None else None
    lines = [
        "Write one or two friendly sentences (under 300 characters) describing this place",
        "for someone deciding where to go. Plain text only, no lists or markdown.",
        f"Name: {place.name}",
        f"Types: {', '.join(place.types) or 'unknown'}",
        f"Address: {place.address or 'unknown'}",
        f"Rating: {place.rating if place.rating is not None else 'unrated'} ({place.review_count} reviews)",
        f"Price: {taxonomy.budget_context(place.budget or budget)}",
        f"Mood: {taxonomy.mood_context(mood)}",
    ]
    if spec is not None and spec.social_context is not None:
        lines.append(f"Company: {taxonomy.social_context_phrase(spec.social_context)}")
    return "\n".join(lines)


def _clean(text: str) -> str:
    cleaned = re.sub(r"\s+", " ", text.replace("*", "")).strip().strip('"')
    if len(cleaned) > config.DESCRIPTION_MAX_CHARS:
        cut = cleaned[: config.DESCRIPTION_MAX_CHARS]
        end = max(cut.rfind("."), cut.rfind("!"), cut.rfind("?"))
        cleaned = cut[: end + 1] if end > 0 else cut.rstrip() + "..."
    return cleaned


class BaseDescriber:
    name = "base"

    def describe(self, place: PlaceCandidate, spec: Optional[FilterSpec] = None) -> Optional[str]:
        raise NotImplementedError


class NoopDescriber(BaseDescriber):
    name = "noop"

    def __init__(self, reason: str = "skipped_no_api_key") -> None:
        self.reason = reason

    def describe(self, place: PlaceCandidate, spec: Optional[FilterSpec] = None) -> Optional[str]:
        return None


class GeminiDescriber(BaseDescriber):
    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        timeout_seconds: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else config.GEMINI_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls) -> BaseDescriber:
        api_key = os.environ.get("GEMINI_API_KEY")
        if not api_key:
            return NoopDescriber("skipped_no_api_key")
        model = os.environ.get("GEMINI_MODEL", DEFAULT_GEMINI_MODEL)
        return cls(api_key=api_key, model=model)

    def _redact(self, text: str) -> str:
        if not text:
            return text
        redacted = text.replace(self.api_key, "[REDACTED]")
        return re.sub(r"(key=)[^&\s()]+", r"\1[REDACTED]", redacted)

    def describe(self, place: PlaceCandidate, spec: Optional[FilterSpec] = None) -> Optional[str]:
        url = f"{GEMINI_API_URL_TEMPLATE.format(model=self.model)}?key={self.api_key}"
        payload = {
            "contents": [{"role": "user", "parts": [{"text": build_prompt(place, spec)}]}],
            "generationConfig": {"temperature": 0.7, "maxOutputTokens": 200},
        }
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            logger.warning("Gemini request failed for %s: %s", place.id, self._redact(str(exc)))
            return None
        if resp.status_code >= 400:
            logger.warning("Gemini returned HTTP %s for %s", resp.status_code, place.id)
            return None
        try:
            data = resp.json()
        except ValueError:
            logger.warning("Gemini returned non-JSON for %s", place.id)
            return None
        if not isinstance(data, dict):
            return None
        candidates = data.get("candidates") or []
        if not candidates:
            return None
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = parts[0].get("text") if parts else None
        if not isinstance(text, str) or not text.strip():
            return None
        return _clean(text)


def describe_place(describer: Optional[BaseDescriber], place: PlaceCandidate, spec: Optional[FilterSpec]) -> str:
    if describer is not None:
        try:
            text = describer.describe(place, spec)
        except Exception as exc:
            logger.warning("Describer %s failed for %s: %s", describer.name, place.id, exc)
            text = None
        if text:
            return text
    return template_description(place, spec)


def describe_places(
    places: Sequence[PlaceCandidate],
    spec: Optional[FilterSpec],
    describer: Optional[BaseDescriber] = None,
) -> List[PlaceCandidate]:
    """Attach a description to every place that does not already have one."""
    pending = [p for p in places if not p.description]
    if not pending:
        return list(places)
    if describer is None or isinstance(describer, NoopDescriber):
        if describer is not None:
            logger.debug("Template descriptions for %s places (%s)", len(pending), describer.reason)
        texts = {p.id: template_description(p, spec) for p in pending}
    else:
        workers = max(1, min(config.DESCRIPTION_MAX_CONCURRENCY, len(pending)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda p: describe_place(describer, p, spec), pending))
        texts = {p.id: text for p, text in zip(pending, results)}
    return [p if p.description else p.with_updates(description=texts[p.id]) for p in places]
