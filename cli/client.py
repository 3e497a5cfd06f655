from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
import typer

from cli.config import CLIConfig


def _segment(device_id: str) -> str:
    return quote(device_id, safe="")


class ApiClient:
    """Minimal HTTP client for the telemetry service."""

    def __init__(
        self, config: CLIConfig, transport: Optional[httpx.BaseTransport] = None
    ) -> None:
        self._config = config
        self._client = httpx.Client(
            base_url=config.base_url, timeout=config.request_timeout, transport=transport
        )

    def close(self) -> None:
        self._client.close()

    def list_devices(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/devices")

    def get_overview(self, device_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/devices/{_segment(device_id)}", device_id=device_id)

    def get_logs(self, device_id: str, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        return self._request(
            "GET",
            f"/api/devices/{_segment(device_id)}/logs",
            params={"limit": limit, "offset": offset},
        )

    def register(
        self, device_id: str, name: Optional[str] = None, location: Optional[str] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"device_id": device_id}
        if name:
            body["name"] = name
        if location:
            body["location"] = location
        return self._request("POST", "/api/devices", json=body)

    def heartbeat(self, device_id: str) -> Dict[str, Any]:
        return self._request("PUT", f"/api/devices/{_segment(device_id)}/status")

    def send_voltage(
        self,
        device_id: str,
        voltage: float,
        is_high: Optional[bool] = None,
        timestamp: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"voltage": voltage}
        if is_high is not None:
            body["is_high"] = is_high
        if timestamp is not None:
            body["timestamp"] = timestamp.isoformat()
        return self._request("POST", f"/api/devices/{_segment(device_id)}/voltage", json=body)

    def set_status(self, device_id: str, status: str) -> Dict[str, Any]:
        return self._request(
            "PATCH",
            f"/api/devices/{_segment(device_id)}/status",
            json={"status": status},
            device_id=device_id,
        )

    def _request(
        self,
        method: str,
        url: str,
        device_id: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        try:
            response = self._client.request(method, url, **kwargs)
            if response.status_code == 404 and device_id is not None:
                raise typer.BadParameter(f"Device {device_id} was not found.")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
