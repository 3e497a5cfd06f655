"""Error kinds surfaced by the telemetry engine."""

from __future__ import annotations


class TelemetryError(Exception):
    """Base class for all engine errors."""


class DeviceNotFoundError(TelemetryError, KeyError):
    """Raised when a non-provisioning operation references an unknown device."""

    def __init__(self, device_id: str) -> None:
        self.device_id = device_id
        super().__init__(f"Device {device_id!r} not found.")

    def __str__(self) -> str:
        return str(self.args[0])


class InvalidInputError(TelemetryError, ValueError):
    """Malformed voltage, negative paging values, unsupported status, and so on."""


class StorageTimeoutError(TelemetryError, TimeoutError):
    """A storage call did not finish before the caller's deadline."""


class StorageUnavailableError(TelemetryError):
    """The persistence collaborator could not be reached."""
