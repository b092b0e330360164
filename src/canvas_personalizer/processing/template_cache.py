from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, MutableMapping, TypedDict

from canvas_personalizer.core import config
from canvas_personalizer.models.personalization import KnobOverrideSet
from canvas_personalizer.models.signals import SignalSet
from canvas_personalizer.processing.types import NowFunc

logger = logging.getLogger(__name__)

DEFAULT_TTL_SEC = 15 * 60.0


class TemplateCacheKeyInput(TypedDict):
    templateId: str
    persona: str
    industry: str
    knobOverrides: KnobOverrideSet
    signals: SignalSet


@dataclass(frozen=True)
class CacheEntry:
    values: dict[str, str]
    inserted_at: float
    expires_at: float


def _canonical(value: Any) -> Any:
    """Recursively sort object keys and array elements so equal content serialises equally."""
    if isinstance(value, dict):
        return {str(k): _canonical(v) for k, v in sorted(value.items(), key=lambda kv: str(kv[0]))}
    if isinstance(value, (list, tuple)):
        items = [_canonical(v) for v in value]
        if items and all(isinstance(v, str) for v in items):
            return sorted(items)
        return sorted(items, key=stable_stringify)
    return value


def stable_stringify(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def _sha1(payload: str) -> str:
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


def compute_knob_digest(overrides: KnobOverrideSet) -> str:
    canonical = {
        knob_id: {
            "value": (override or {}).get("value"),
            "changedFromDefault": bool((override or {}).get("changedFromDefault")),
        }
        for knob_id, override in overrides.items()
    }
    return _sha1(stable_stringify(_canonical(canonical)))


def compute_signal_digest(signals: SignalSet) -> str:
    canonical = {
        key: {
            "value": _canonical(entry.get("value")),
            "confidence": (entry.get("metadata") or {}).get("confidence"),
        }
        for key, entry in signals.items()
    }
    return _sha1(stable_stringify(_canonical(canonical)))


class TemplateCompletionCache:
    """In-process TTL cache of validated slot values, keyed by an order-independent signature."""

    def __init__(
        self,
        *,
        ttl_sec: float | None = None,
        now: NowFunc | None = None,
        store: MutableMapping[str, CacheEntry] | None = None,
    ) -> None:
        self._ttl_sec = ttl_sec if ttl_sec is not None else DEFAULT_TTL_SEC
        self._now = now or time.monotonic
        self._store: MutableMapping[str, CacheEntry] = store if store is not None else {}

    @classmethod
    def from_config(cls) -> "TemplateCompletionCache":
        return cls(ttl_sec=config.TEMPLATE_CACHE_TTL_SEC)

    @property
    def ttl_sec(self) -> float:
        return self._ttl_sec

    def set_ttl(self, ttl_sec: float) -> None:
        self._ttl_sec = ttl_sec

    def size(self) -> int:
        return len(self._store)

    @staticmethod
    def build_cache_key(key_input: TemplateCacheKeyInput) -> str:
        return "::".join(
            [
                key_input["templateId"],
                key_input["persona"],
                key_input["industry"],
                compute_knob_digest(key_input["knobOverrides"]),
                compute_signal_digest(key_input["signals"]),
            ]
        )

    def get(self, key_input: TemplateCacheKeyInput) -> dict[str, str] | None:
        key = self.build_cache_key(key_input)
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._now() >= entry.expires_at:
            del self._store[key]
            return None
        return dict(entry.values)

    def set(self, key_input: TemplateCacheKeyInput, values: dict[str, str], ttl_sec: float | None = None) -> None:
        key = self.build_cache_key(key_input)
        ttl = ttl_sec if ttl_sec is not None else self._ttl_sec
        timestamp = self._now()
        self._store[key] = CacheEntry(values=dict(values), inserted_at=timestamp, expires_at=timestamp + ttl)

    def invalidate(self, key_input: TemplateCacheKeyInput) -> None:
        self._store.pop(self.build_cache_key(key_input), None)

    def clear(self) -> None:
        self._store.clear()

    def prune_expired(self) -> int:
        now = self._now()
        expired = [key for key, entry in self._store.items() if now >= entry.expires_at]
        for key in expired:
            del self._store[key]
        if expired:
            logger.debug("Pruned %d expired template cache entries", len(expired))
        return len(expired)
