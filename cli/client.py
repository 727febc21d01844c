from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the telemetry service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def get_readings(self, params: Dict[str, Any]) -> Dict[str, Any]:
        query = {key: value for key, value in params.items() if value is not None}
        return self._request("GET", "/readings", params=query)

    def get_latest(self) -> Dict[str, Any]:
        return self._request("GET", "/readings/latest")

    def get_status(self) -> Dict[str, Any]:
        return self._request("GET", "/status")

    def get_thresholds(self) -> List[Dict[str, Any]]:
        payload = self._request("GET", "/alerts/config")
        return payload.get("configs") or []

    def put_thresholds(self, configs: List[Dict[str, Any]], actor: Optional[str] = None) -> List[Dict[str, Any]]:
        payload = self._request(
            "PUT",
            "/alerts/config",
            json={"configs": configs},
            headers={"X-Actor": actor or self._config.actor},
        )
        return payload.get("configs") or []

    def get_history(self, limit: int) -> List[Dict[str, Any]]:
        payload = self._request("GET", "/alerts/history", params={"limit": limit})
        return payload.get("history") or []

    def poll(self) -> Dict[str, Any]:
        return self._request("POST", "/alerts/poll")

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.HTTPError as exc:
            typer.secho(f"Could not reach {self._config.base_url}: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except ValueError:
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
