from __future__ import annotations

import logging
import time
from typing import NotRequired, TypedDict

from canvas_personalizer.core import config
from canvas_personalizer.processing.types import NowFunc

logger = logging.getLogger(__name__)


class RateLimitResult(TypedDict):
    allowed: bool
    retryAfterSec: NotRequired[float]


class PersonalizationHealthMonitor:
    """Tracks model failures and per-session request rates.

    Repeated failures inside the failure window soft-disable the model path; it comes
    back after one quiet window or the next recorded success.
    """

    def __init__(
        self,
        *,
        failure_threshold: int = config.HEALTH_FAILURE_THRESHOLD,
        failure_window_sec: float = config.HEALTH_FAILURE_WINDOW_SEC,
        rate_limit_window_sec: float = config.HEALTH_RATE_LIMIT_WINDOW_SEC,
        max_requests_per_window: int = config.HEALTH_MAX_REQUESTS_PER_WINDOW,
        now: NowFunc | None = None,
    ) -> None:
        self._failure_threshold = max(1, failure_threshold)
        self._failure_window_sec = failure_window_sec
        self._rate_limit_window_sec = rate_limit_window_sec
        self._max_requests = max(1, max_requests_per_window)
        self._now = now or time.monotonic
        self._failures: list[float] = []
        self._disabled_at: float | None = None
        self._sessions: dict[str, list[float]] = {}

    def _prune_failures(self, current: float) -> None:
        self._failures = [t for t in self._failures if current - t <= self._failure_window_sec]

    def track_success(self) -> None:
        self._failures = []
        if self._disabled_at is not None:
            logger.info("Personalization model path re-enabled after success")
        self._disabled_at = None

    def track_failure(self) -> None:
        current = self._now()
        self._failures.append(current)
        self._prune_failures(current)
        if len(self._failures) >= self._failure_threshold and self._disabled_at is None:
            self._disabled_at = current
            logger.warning(
                "Personalization soft-disabled: %d failures within %.0fs",
                len(self._failures),
                self._failure_window_sec,
            )

    def is_soft_disabled(self) -> bool:
        if self._disabled_at is None:
            return False
        if self._now() - self._disabled_at > self._failure_window_sec:
            logger.info("Personalization soft-disable window elapsed; re-enabling model path")
            self._disabled_at = None
            self._failures = []
            return False
        return True

    def _prune_sessions(self, current: float) -> None:
        stale = [
            sid
            for sid, stamps in self._sessions.items()
            if not stamps or current - stamps[-1] > self._rate_limit_window_sec
        ]
        for sid in stale:
            del self._sessions[sid]

    def session_count(self) -> int:
        return len(self._sessions)

    def can_process_request(self, session_id: str | None) -> RateLimitResult:
        if not session_id:
            return {"allowed": True}
        current = self._now()
        self._prune_sessions(current)
        recent = [t for t in self._sessions.get(session_id, []) if current - t <= self._rate_limit_window_sec]
        if len(recent) >= self._max_requests:
            self._sessions[session_id] = recent
            retry_after = max(0.0, self._rate_limit_window_sec - (current - recent[0]))
            return {"allowed": False, "retryAfterSec": retry_after}
        recent.append(current)
        self._sessions[session_id] = recent
        return {"allowed": True}

    def reset(self) -> None:
        self._failures = []
        self._disabled_at = None
        self._sessions.clear()
