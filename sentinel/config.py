"""Settings read from the environment (optionally populated from .env)."""

import os
from datetime import timedelta
from pathlib import Path

DEFAULT_EXTRACTOR_URL = "http://localhost:8080"


def _get_float(name: str, default: float) -> float:
    val = os.environ.get(name)
    if val is None or val.strip() == "":
        return default
    try:
        return float(val)
    except ValueError:
        return default


def _get_bool(name: str, default: bool) -> bool:
    val = os.environ.get(name)
    if val is None:
        return default
    return val.strip().lower() in ("true", "1", "yes")


def get_check_interval() -> timedelta:
    """Time between two checks of the same product (CHECK_INTERVAL_MINUTES, default 60)."""
    minutes = _get_float("CHECK_INTERVAL_MINUTES", 60)
    if minutes <= 0:
        minutes = 60
    return timedelta(minutes=minutes)


def get_tick_seconds() -> float:
    """Scheduler polling period (TICK_SECONDS, default 60)."""
    seconds = _get_float("TICK_SECONDS", 60)
    return seconds if seconds > 0 else 60


def get_extraction_timeout() -> float:
    """Upper bound on a single extraction call (EXTRACTION_TIMEOUT_SECONDS, default 30)."""
    seconds = _get_float("EXTRACTION_TIMEOUT_SECONDS", 30)
    return seconds if seconds > 0 else 30


def get_extractor_url() -> str:
    return os.environ.get("EXTRACTOR_URL", DEFAULT_EXTRACTOR_URL).rstrip("/")


def get_extractor_api_key() -> str | None:
    return os.environ.get("EXTRACTOR_API_KEY") or None


def get_db_path() -> Path:
    """Get database path from env or default."""
    return Path(os.environ.get("DB_PATH", "data/sentinel.db"))


def notifications_enabled() -> bool:
    return _get_bool("NOTIFICATIONS_ENABLED", True)
