from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_DEVICE_TABLE_PATH_ENV = "DEVICE_TABLE_PATH"
_SAMPLE_LOG_ROOT_ENV = "SAMPLE_LOG_ROOT"
_NOMINAL_MIN_ENV = "VOLTAGE_NOMINAL_MIN"
_NOMINAL_MAX_ENV = "VOLTAGE_NOMINAL_MAX"
_HIGH_MARGIN_ENV = "VOLTAGE_HIGH_MARGIN"
_HEARTBEAT_TIMEOUT_ENV = "HEARTBEAT_TIMEOUT_SECONDS"
_LIVENESS_INTERVAL_ENV = "LIVENESS_INTERVAL_SECONDS"
_LIVENESS_ENABLED_ENV = "LIVENESS_ENABLED"
_LIVENESS_DEADLINE_ENV = "LIVENESS_DEVICE_DEADLINE_SECONDS"
_READ_TIMEOUT_ENV = "READ_TIMEOUT_SECONDS"
_READ_WORKER_COUNT_ENV = "READ_WORKER_COUNT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    device_table_path: Optional[str]
    sample_log_root: Optional[str]
    nominal_min: float
    nominal_max: float
    high_margin: float
    heartbeat_timeout_seconds: float
    liveness_interval_seconds: float
    liveness_enabled: bool
    liveness_device_deadline_seconds: float
    read_timeout_seconds: float
    read_workers: int
    log_level: str


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_float_env(name: str, default: float, minimum: float = 0.0) -> float:
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
    return parsed if parsed >= minimum else default


def _read_positive_float_env(name: str, default: float) -> float:
    parsed = _read_float_env(name, default)
    return parsed if parsed > 0 else default


def _read_worker_count(default: int) -> int:
    value = os.getenv(_READ_WORKER_COUNT_ENV)
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


def _read_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUE_VALUES:
        return True
    if candidate in _FALSE_VALUES:
        return False
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
        device_table_path=_read_optional_env(_DEVICE_TABLE_PATH_ENV, "./tmp/devices.json"),
        sample_log_root=_read_optional_env(_SAMPLE_LOG_ROOT_ENV, "./tmp/samples"),
        nominal_min=_read_float_env(_NOMINAL_MIN_ENV, 220.0),
        nominal_max=_read_float_env(_NOMINAL_MAX_ENV, 240.0),
        high_margin=_read_float_env(_HIGH_MARGIN_ENV, 10.0),
        heartbeat_timeout_seconds=_read_positive_float_env(_HEARTBEAT_TIMEOUT_ENV, 300.0),
        liveness_interval_seconds=_read_positive_float_env(_LIVENESS_INTERVAL_ENV, 60.0),
        liveness_enabled=_read_bool_env(_LIVENESS_ENABLED_ENV, True),
        liveness_device_deadline_seconds=_read_positive_float_env(_LIVENESS_DEADLINE_ENV, 1.0),
        read_timeout_seconds=_read_positive_float_env(_READ_TIMEOUT_ENV, 5.0),
        read_workers=_read_worker_count(4),
        log_level=_read_log_level("INFO"),
    )
