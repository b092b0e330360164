from __future__ import annotations

import os
from pathlib import Path

try:
    from dotenv import load_dotenv
except Exception:  # pragma: no cover - optional dependency
    load_dotenv = None

if load_dotenv:
    _repo_root = Path(__file__).resolve().parents[3]
    load_dotenv(dotenv_path=_repo_root / ".env")

_FALSE_VALUES = {"0", "false", "off", "no"}
_TRUE_VALUES = {"1", "true", "on", "yes"}


def _env_int(name: str, default: int) -> int:
    """Parse an integer env var, falling back to the default on bad input."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    if raw in _FALSE_VALUES:
        return False
    if raw in _TRUE_VALUES:
        return True
    return default


# ==========================================
# Provider settings
# ==========================================

GEMINI_API_BASE = os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_TEMPERATURE = _env_float("GEMINI_TEMPERATURE", 0.2)
GEMINI_MAX_OUTPUT_TOKENS = _env_int("GEMINI_MAX_OUTPUT_TOKENS", 1200)

PROMPT_INTEL_TIMEOUT_SEC = _env_float("PROMPT_INTEL_TIMEOUT_SEC", 30.0)
TEMPLATE_TIMEOUT_SEC = _env_float("TEMPLATE_TIMEOUT_SEC", 30.0)

# Template rendering retry policy (exponential backoff with jitter)
TEMPLATE_RETRY_MAX_ATTEMPTS = _env_int("TEMPLATE_RETRY_MAX_ATTEMPTS", 2)
TEMPLATE_RETRY_INITIAL_DELAY_SEC = _env_float("TEMPLATE_RETRY_INITIAL_DELAY_SEC", 0.25)
TEMPLATE_RETRY_MAX_DELAY_SEC = _env_float("TEMPLATE_RETRY_MAX_DELAY_SEC", 1.0)
TEMPLATE_RETRY_BACKOFF_MULTIPLIER = _env_float("TEMPLATE_RETRY_BACKOFF_MULTIPLIER", 2.0)
TEMPLATE_RETRY_JITTER_RATIO = _env_float("TEMPLATE_RETRY_JITTER_RATIO", 0.2)

# ==========================================
# Pipeline settings
# ==========================================

TEMPLATE_CACHE_TTL_SEC = _env_float("TEMPLATE_CACHE_TTL_SEC", 15 * 60.0)
LLM_CONFIDENCE_DEFAULT = _env_float("LLM_CONFIDENCE_DEFAULT", 0.6)
SIGNAL_NOTES_MAX_CHARS = 160

HEALTH_FAILURE_THRESHOLD = _env_int("HEALTH_FAILURE_THRESHOLD", 3)
HEALTH_FAILURE_WINDOW_SEC = _env_float("HEALTH_FAILURE_WINDOW_SEC", 120.0)
HEALTH_RATE_LIMIT_WINDOW_SEC = _env_float("HEALTH_RATE_LIMIT_WINDOW_SEC", 60.0)
HEALTH_MAX_REQUESTS_PER_WINDOW = _env_int("HEALTH_MAX_REQUESTS_PER_WINDOW", 5)


# ==========================================
# Toggles (read per call so tests and operators can flip them at runtime)
# ==========================================


def is_prompt_intel_enabled() -> bool:
    return _env_bool("ENABLE_PROMPT_INTEL", True)


def is_model_path_enabled() -> bool:
    """False puts the pipeline in pure keyword/defaults mode."""
    return _env_bool("ENABLE_PERSONALIZATION_LLM", True)


def get_provider_api_key() -> str:
    return os.getenv("GEMINI_API_KEY", "").strip()


def has_provider_credential() -> bool:
    return bool(get_provider_api_key())
