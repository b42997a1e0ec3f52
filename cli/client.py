from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the consumption service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def submit_daily(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/womack-entries", json=payload)

    def submit_weekly(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/bodymaker-entries", json=payload)

    def get_dashboard(self) -> Dict[str, Any]:
        return self._request("GET", "/dashboard")

    def get_daily_history(self, line: int, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self._request("GET", "/womack-entries", params=self._params(line, limit))

    def get_weekly_history(self, line: int, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self._request("GET", "/bodymaker-entries", params=self._params(line, limit))

    @staticmethod
    def _params(line: int, limit: Optional[int]) -> Dict[str, int]:
        params = {"line": line}
        if limit is not None:
            params["limit"] = limit
        return params

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, url, **kwargs)
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
