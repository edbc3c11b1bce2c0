from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from models.readings import Limits


_DATABASE_URL_ENV = "DATABASE_URL"
_CREATE_SCHEMA_ENV = "DATABASE_CREATE_SCHEMA"
_LOG_LEVEL_ENV = "LOG_LEVEL"
_TEMP_MAX_ENV = "TEMP_MAX_LIMIT"
_TEMP_MIN_ENV = "TEMP_MIN_LIMIT"
_HUMIDITY_MAX_ENV = "HUMIDITY_MAX_LIMIT"


@dataclass(frozen=True)
class Settings:
    database_url: str
    create_schema: bool
    log_level: str
    limits: Limits


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_float_env(name: str, default: float) -> float:
    value: Optional[str] = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        return float(candidate)
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
        database_url=_read_str_env(_DATABASE_URL_ENV, "sqlite:///./tmp/cold_storage.db"),
        create_schema=_read_bool_env(_CREATE_SCHEMA_ENV, True),
        log_level=_read_log_level("INFO"),
        limits=Limits(
            temp_max=_read_float_env(_TEMP_MAX_ENV, 20.0),
            temp_min=_read_float_env(_TEMP_MIN_ENV, 0.0),
            humidity_max=_read_float_env(_HUMIDITY_MAX_ENV, 90.0),
        ),
    )
