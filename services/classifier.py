"""Voltage classification against the configured safety band."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from services.errors import InvalidInputError


class VoltageBand(str, Enum):
    low = "low"
    nominal = "nominal"
    elevated = "elevated"
    high = "high"


@dataclass(frozen=True)
class ClassifierConfig:
    """Nominal band plus the margin above it where high voltage begins."""

    nominal_min: float = 220.0
    nominal_max: float = 240.0
    high_margin: float = 10.0

    def __post_init__(self) -> None:
        if self.nominal_min > self.nominal_max:
            raise InvalidInputError(
                f"nominal_min ({self.nominal_min}) must not exceed nominal_max ({self.nominal_max})."
            )
        if self.high_margin < 0:
            raise InvalidInputError("high_margin must be non-negative.")

    @property
    def high_threshold(self) -> float:
        return self.nominal_max + self.high_margin


def classify(voltage: float, config: ClassifierConfig) -> bool:
    """Return True when ``voltage`` is at or above the high threshold."""
    return voltage >= config.high_threshold


def band(voltage: float, config: ClassifierConfig) -> VoltageBand:
    if classify(voltage, config):
        return VoltageBand.high
    if voltage > config.nominal_max:
        return VoltageBand.elevated
    if voltage < config.nominal_min:
        return VoltageBand.low
    return VoltageBand.nominal
