from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from models.records import WindowSelection, parse_window


_DB_URL_ENV = "REALTIME_DB_URL"
_DB_API_KEY_ENV = "REALTIME_DB_API_KEY"
_DB_TIMEOUT_ENV = "REALTIME_DB_TIMEOUT"
_MOCK_DB_PATH_ENV = "MOCK_DB_PERSISTENCE_PATH"
_DEFAULT_WINDOW_ENV = "DASHBOARD_DEFAULT_WINDOW"
_TIMEZONE_ENV = "DASHBOARD_TIMEZONE"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str]
    database_api_key: Optional[str]
    database_timeout: float
    mock_db_persistence_path: Optional[str]
    default_window: WindowSelection
    timezone: str
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_timeout(default: float) -> float:
    value = os.getenv(_DB_TIMEOUT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_default_window(default: WindowSelection) -> WindowSelection:
    value = os.getenv(_DEFAULT_WINDOW_ENV)
    if value is None:
        return default
    try:
        return parse_window(value)
    except ValueError:
        return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        database_url=_read_optional_env(_DB_URL_ENV, None),
        database_api_key=_read_optional_env(_DB_API_KEY_ENV, None),
        database_timeout=_read_timeout(30.0),
        mock_db_persistence_path=_read_optional_env(_MOCK_DB_PATH_ENV, "./tmp/realtime_db.json"),
        default_window=_read_default_window(60),
        timezone=_read_str_env(_TIMEZONE_ENV, "UTC"),
        log_level=_read_log_level("INFO"),
    )
