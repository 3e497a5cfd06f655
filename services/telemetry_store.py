"""Append-only store of classified voltage samples."""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from numbers import Real
from typing import Iterable, Optional

from models.records import VoltageSample
from services.classifier import ClassifierConfig, classify
from services.deadlines import call_storage, call_with_deadline
from services.errors import InvalidInputError
from services.registry import Clock, DeviceRegistry, normalize_device_id, utcnow
from storage.sample_log import SampleLog

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000


@dataclass
class SampleSummary:
    """Aggregate statistics over a device's samples."""

    count: int = 0
    average_voltage: float | None = None
    high_count: int = 0
    min_voltage: float | None = None
    max_voltage: float | None = None


def summarize_samples(samples: Iterable[VoltageSample]) -> SampleSummary:
    summary = SampleSummary()
    total = 0.0

    for sample in samples:
        summary.count += 1
        value = sample.voltage
        total += value
        if sample.is_high:
            summary.high_count += 1

        if summary.min_voltage is None or value < summary.min_voltage:
            summary.min_voltage = value
        if summary.max_voltage is None or value > summary.max_voltage:
            summary.max_voltage = value

    if summary.count:
        summary.average_voltage = round(total / summary.count, 2)

    return summary


def _validate_voltage(voltage: object) -> float:
    if isinstance(voltage, bool) or not isinstance(voltage, Real):
        raise InvalidInputError(f"Voltage must be a number, got {voltage!r}.")
    value = float(voltage)
    if not math.isfinite(value):
        raise InvalidInputError(f"Voltage must be finite, got {value!r}.")
    return value


def _validate_non_negative(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{name} must be an integer.")
    if value < 0:
        raise InvalidInputError(f"{name} must be non-negative.")
    return value


def _as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


class TelemetryStore:
    """Ingests voltage samples and serves bounded reads and summaries."""

    def __init__(
        self,
        log: SampleLog,
        registry: DeviceRegistry,
        classifier_config: ClassifierConfig,
        executor: Optional[ThreadPoolExecutor] = None,
        clock: Clock = utcnow,
        max_limit: int = MAX_LIMIT,
        default_limit: int = DEFAULT_LIMIT,
    ) -> None:
        self.log = log
        self.registry = registry
        self.classifier_config = classifier_config
        self.executor = executor or ThreadPoolExecutor(max_workers=4)
        self._clock = clock
        self.max_limit = max_limit
        self.default_limit = default_limit

    def append(
        self,
        device_id: str,
        voltage: float,
        is_high: Optional[bool] = None,
        timestamp: Optional[datetime] = None,
    ) -> VoltageSample:
        """Persist a classified sample, then extend the device's liveness."""
        key = normalize_device_id(device_id)
        value = round(_validate_voltage(voltage), 1)
        if is_high is None:
            is_high = classify(value, self.classifier_config)
        recorded_at = _as_utc(timestamp) if timestamp is not None else self._clock()

        sample = call_storage(
            "append",
            lambda: self.log.append(key, value, bool(is_high), recorded_at),
        )
        self.registry.record_activity(key)

        if sample.is_high:
            logger.warning(
                "High voltage sample recorded",
                extra={"device_id": key, "sample_id": sample.id, "voltage": sample.voltage},
            )
        return sample

    def recent(
        self,
        device_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
        timeout: Optional[float] = None,
    ) -> list[VoltageSample]:
        key = normalize_device_id(device_id)
        bounded = self.clamp_limit(limit)
        start = _validate_non_negative("offset", offset)
        if bounded == 0:
            return []
        return call_with_deadline(
            self.executor,
            "recent",
            lambda: self.log.newest_first(key, limit=bounded, offset=start),
            timeout,
        )

    def latest(self, device_id: str, timeout: Optional[float] = None) -> Optional[VoltageSample]:
        samples = self.recent(device_id, limit=1, offset=0, timeout=timeout)
        return samples[0] if samples else None

    def summarize(
        self,
        device_id: str,
        window: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> SampleSummary:
        """Summarize all retained samples, or only the ``window`` most recent ones."""
        key = normalize_device_id(device_id)
        if window is not None:
            _validate_non_negative("window", window)
        samples = call_with_deadline(
            self.executor,
            "summarize",
            lambda: self.log.newest_first(key, limit=window),
            timeout,
        )
        return summarize_samples(samples)

    def snapshot(
        self, device_id: str, timeout: Optional[float] = None
    ) -> tuple[Optional[VoltageSample], SampleSummary]:
        """Latest sample and all-time summary taken from a single read."""
        key = normalize_device_id(device_id)
        samples = call_with_deadline(
            self.executor,
            "snapshot",
            lambda: self.log.newest_first(key),
            timeout,
        )
        latest = samples[0] if samples else None
        return latest, summarize_samples(samples)

    def high_events(self, limit: Optional[int] = None, timeout: Optional[float] = None) -> list[VoltageSample]:
        bounded = self.clamp_limit(limit)
        if bounded == 0:
            return []
        return call_with_deadline(
            self.executor,
            "high_events",
            lambda: self.log.high_samples(bounded),
            timeout,
        )

    def clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return min(self.default_limit, self.max_limit)
        return min(_validate_non_negative("limit", limit), self.max_limit)
