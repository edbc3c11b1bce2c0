from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import httpx

from cli.config import CLIConfig


class ApiError(Exception):
    """Transport or gateway failure talking to the cold-storage service."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ApiClient:
    """Minimal async HTTP client for the cold-storage service."""

    def __init__(
        self,
        config: CLIConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def current_status(self) -> List[Dict[str, Any]]:
        return await self._get_list("/current-status")

    async def raw_data(self) -> List[Dict[str, Any]]:
        return await self._get_list("/raw-data")

    async def history_all(self) -> List[Dict[str, Any]]:
        return await self._get_list("/history-all")

    async def history(self, hours: int) -> List[Dict[str, Any]]:
        return await self._get_list(f"/history/{hours}")

    async def send_reading(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        data = await self._request("POST", "/sensor-data", json=dict(payload))
        if not isinstance(data, dict):
            raise ApiError("Unexpected response payload when sending a reading.")
        return data

    async def _get_list(self, path: str) -> List[Dict[str, Any]]:
        data = await self._request("GET", path)
        if not isinstance(data, list):
            raise ApiError(f"Unexpected response payload from {path}.")
        return data

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ApiError(
                self._describe_error(exc.response),
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise ApiError(f"Request to {path} failed: {exc!r}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(f"Response from {path} is not valid JSON.") from exc

    @staticmethod
    def _describe_error(response: httpx.Response) -> str:
        detail: str | None = None
        try:
            data = response.json()
            if isinstance(data, dict):
                detail = data.get("message") or data.get("detail")
        except ValueError:
            detail = response.text.strip()
        return f"Request failed with status {response.status_code}: {detail or 'no detail provided.'}"
