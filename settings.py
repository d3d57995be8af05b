from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_STORE_NAME_ENV = "HISTORY_STORE_NAME"
_STORE_PATH_ENV = "HISTORY_STORE_PATH"
_BUCKET_NAME_ENV = "EXPORT_BUCKET_NAME"
_BUCKET_ROOT_ENV = "EXPORT_ROOT_PATH"
_WORKER_COUNT_ENV = "SYNC_WORKER_COUNT"
_INTERVAL_ENV = "SYNTHETIC_INTERVAL_MINUTES"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    store_name: str
    store_persistence_path: Optional[str]
    export_bucket_name: str
    export_root_path: Optional[str]
    sync_workers: int
    synthetic_interval_minutes: float
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


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
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
        store_name=_read_str_env(_STORE_NAME_ENV, "history"),
        store_persistence_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/history_store.json"),
        export_bucket_name=_read_str_env(_BUCKET_NAME_ENV, "exports"),
        export_root_path=_read_optional_env(_BUCKET_ROOT_ENV, "./tmp/exports"),
        sync_workers=_read_positive_int(_WORKER_COUNT_ENV, 4),
        synthetic_interval_minutes=_read_positive_float(_INTERVAL_ENV, 5.0),
        log_level=_read_log_level("INFO"),
    )
