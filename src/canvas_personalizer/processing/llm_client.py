from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

import requests

from canvas_personalizer.core import config

logger = logging.getLogger(__name__)

T = TypeVar("T")

_AI_UNAVAILABLE_LOGGED: set[str] = set()

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}
NON_RETRYABLE_CODES = {"missing_api_key", "cancelled"}


class LLMServiceError(Exception):
    """Provider failure with a machine-readable code (and HTTP status when there was one)."""

    def __init__(self, message: str, code: str, status: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.status = status

    def __repr__(self) -> str:
        return f"LLMServiceError(code={self.code!r}, status={self.status!r}, message={str(self)!r})"


def log_ai_unavailable(reason: str) -> None:
    # Log each distinct unavailability reason once per process
    if reason in _AI_UNAVAILABLE_LOGGED:
        return
    logger.warning("Model path unavailable: %s", reason)
    _AI_UNAVAILABLE_LOGGED.add(reason)


# ==========================================
# Retry / timeout helpers
# ==========================================


async def _default_sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


@dataclass(frozen=True)
class BackoffSettings:
    max_attempts: int
    initial_delay: float
    max_delay: float
    backoff_multiplier: float
    jitter_ratio: float
    sleep: Callable[[float], Awaitable[None]] = field(default=_default_sleep, compare=False)
    random: Callable[[], float] = field(default=random.random, compare=False)

    @classmethod
    def from_config(cls) -> "BackoffSettings":
        return cls(
            max_attempts=max(1, config.TEMPLATE_RETRY_MAX_ATTEMPTS),
            initial_delay=config.TEMPLATE_RETRY_INITIAL_DELAY_SEC,
            max_delay=config.TEMPLATE_RETRY_MAX_DELAY_SEC,
            backoff_multiplier=config.TEMPLATE_RETRY_BACKOFF_MULTIPLIER,
            jitter_ratio=config.TEMPLATE_RETRY_JITTER_RATIO,
        )


def calculate_delay(
    base_delay: float,
    max_delay: float,
    jitter_ratio: float,
    random_fn: Callable[[], float] = random.random,
) -> float:
    """Delay for the next attempt: base scaled by a factor in [1 - jitter, 1 + jitter], capped."""
    if base_delay >= max_delay:
        return max_delay
    if jitter_ratio <= 0:
        return min(base_delay, max_delay)
    min_factor = 1 - jitter_ratio
    max_factor = 1 + jitter_ratio
    factor = min_factor + (max_factor - min_factor) * random_fn()
    return max(0.0, min(base_delay * factor, max_delay))


def should_retry_on_error(error: BaseException) -> bool:
    if isinstance(error, LLMServiceError):
        if error.code in NON_RETRYABLE_CODES:
            return False
        if error.code == "http_error" and error.status is not None:
            return error.status in RETRYABLE_STATUS_CODES
        return True
    return True


async def retry_with_backoff(
    operation: Callable[[int], Awaitable[T]],
    settings: BackoffSettings,
    *,
    should_retry: Callable[[BaseException, int], bool] | None = None,
    on_retry: Callable[[BaseException, int, float], None] | None = None,
) -> T:
    """Run ``operation(attempt)`` until it succeeds, retrying eligible errors with backoff.

    The last error is re-raised once attempts run out or ``should_retry`` declines.
    """
    max_attempts = max(1, settings.max_attempts)
    delay = settings.initial_delay
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation(attempt)
        except Exception as e:
            eligible = should_retry(e, attempt) if should_retry else True
            if attempt >= max_attempts or not eligible:
                raise
            wait_sec = calculate_delay(delay, settings.max_delay, settings.jitter_ratio, settings.random)
            if on_retry:
                on_retry(e, attempt, wait_sec)
            await settings.sleep(wait_sec)
            delay = min(settings.max_delay, delay * settings.backoff_multiplier)


async def invoke_with_timeout(
    func: Callable[[], T],
    *,
    timeout_sec: float,
    cancel_event: asyncio.Event | None = None,
) -> T:
    """Run a blocking call in a worker thread, bounded by a timeout and an optional cancel event.

    A timed-out or cancelled worker is abandoned; callers pass the same timeout to the
    underlying HTTP client so the thread itself ends shortly after.
    """
    if cancel_event is not None and cancel_event.is_set():
        raise LLMServiceError("Request cancelled before dispatch", "cancelled")

    task = asyncio.ensure_future(asyncio.to_thread(func))
    waiters: set[asyncio.Future[Any]] = {task}
    cancel_waiter: asyncio.Future[Any] | None = None
    if cancel_event is not None:
        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(
            waiters,
            timeout=timeout_sec if timeout_sec > 0 else None,
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        if cancel_waiter is not None and not cancel_waiter.done():
            cancel_waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    if cancel_waiter is not None and cancel_waiter in done:
        raise LLMServiceError("Request cancelled", "cancelled")
    raise LLMServiceError(f"Model request timed out after {timeout_sec:.1f}s", "timeout")


# ==========================================
# Gemini REST provider
# ==========================================


def _extract_gemini_text(payload: dict[str, Any]) -> str:
    try:
        return payload["candidates"][0]["content"]["parts"][0]["text"].strip()
    except Exception:
        return ""


def gemini_generate_text(
    system_prompt: str,
    user_prompt: str,
    *,
    timeout_sec: float,
    json_mode: bool = True,
) -> str:
    """Single blocking generateContent call. Raises LLMServiceError on any failure."""
    api_key = config.get_provider_api_key()
    if not api_key:
        log_ai_unavailable("GEMINI_API_KEY not set")
        raise LLMServiceError("GEMINI_API_KEY is not configured", "missing_api_key")

    url = f"{config.GEMINI_API_BASE}/models/{config.GEMINI_MODEL}:generateContent"
    generation_config: dict[str, Any] = {
        "temperature": config.GEMINI_TEMPERATURE,
        "maxOutputTokens": config.GEMINI_MAX_OUTPUT_TOKENS,
    }
    if json_mode:
        generation_config["responseMimeType"] = "application/json"
    request_payload = {
        "contents": [
            {
                "role": "user",
                "parts": [{"text": user_prompt}],
            }
        ],
        "systemInstruction": {
            "parts": [{"text": system_prompt}],
        },
        "generationConfig": generation_config,
    }

    try:
        resp = requests.post(
            url,
            headers={"x-goog-api-key": api_key, "Content-Type": "application/json"},
            json=request_payload,
            timeout=timeout_sec if timeout_sec > 0 else None,
        )
    except requests.Timeout as e:
        raise LLMServiceError(f"Gemini request timed out: {e}", "timeout") from e
    except requests.RequestException as e:
        raise LLMServiceError(f"Gemini call failed: {type(e).__name__}: {e}", "transport_error") from e

    if not resp.ok:
        snippet = (resp.text or "")[:200]
        raise LLMServiceError(f"Gemini call failed: {resp.status_code} {snippet}", "http_error", resp.status_code)

    try:
        data = resp.json()
    except Exception as e:
        raise LLMServiceError("Gemini response was not JSON", "empty_response", resp.status_code) from e

    text = _extract_gemini_text(data)
    if not text:
        raise LLMServiceError("Gemini response text was empty", "empty_response", resp.status_code)
    return text


async def generate_text(
    system_prompt: str,
    user_prompt: str,
    *,
    timeout_sec: float,
    cancel_event: asyncio.Event | None = None,
) -> str:
    if not config.has_provider_credential():
        log_ai_unavailable("GEMINI_API_KEY not set")
        raise LLMServiceError("GEMINI_API_KEY is not configured", "missing_api_key")
    return await invoke_with_timeout(
        lambda: gemini_generate_text(system_prompt, user_prompt, timeout_sec=timeout_sec),
        timeout_sec=timeout_sec,
        cancel_event=cancel_event,
    )
