from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the history service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def sync_readings(
        self,
        device_type: str,
        device_id: str,
        readings: List[Dict[str, Any]],
        tank: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"readings": readings}
        if tank is not None:
            body["tank"] = tank
        try:
            response = self._client.post(f"/history/{device_type}/{device_id}/sync", json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def get_history(
        self,
        device_type: str,
        device_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, str] = {}
        if start_date is not None:
            params["start_date"] = start_date.isoformat()
        if end_date is not None:
            params["end_date"] = end_date.isoformat()
        try:
            response = self._client.get(f"/history/{device_type}/{device_id}", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def export_history(
        self,
        device_type: str,
        device_id: str,
        device_name: str,
    ) -> Optional[Tuple[str, bytes]]:
        """Return ``(filename, csv bytes)``, or ``None`` when the device has no history."""
        try:
            response = self._client.get(
                f"/history/{device_type}/{device_id}/export",
                params={"device_name": device_name},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)

        if not response.headers.get("content-type", "").startswith("text/csv"):
            return None
        disposition = response.headers.get("content-disposition", "")
        filename = disposition.partition("filename=")[2].strip('"') or f"{device_id}.csv"
        return filename, response.content

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
