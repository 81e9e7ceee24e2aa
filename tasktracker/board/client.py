from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from tasktracker.api.tasks import TaskRead


class TaskApiError(RuntimeError):
    """Raised when the task API answers with an error envelope."""

    def __init__(self, message: str, *, status_code: int, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class SessionExpiredError(TaskApiError):
    """The API rejected the credentials; the board must sign in again."""


def _query_params(filters: Mapping[str, Any]) -> dict[str, str]:
    params: dict[str, str] = {}
    for name, value in filters.items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[name] = "true" if value else "false"
        else:
            params[name] = str(value)
    return params


class TaskApiClient:
    def __init__(
        self,
        *,
        base_url: str,
        token: str | None = None,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be greater than 0")
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._api_key = api_key
        self._client = client
        self._timeout_seconds = timeout_seconds

    @property
    def has_credentials(self) -> bool:
        return bool(self._token or self._api_key)

    def set_token(self, token: str | None) -> None:
        self._token = token

    def clear_credentials(self) -> None:
        self._token = None
        self._api_key = None

    async def list_tasks(
        self,
        *,
        status: str | None = None,
        priority: str | None = None,
        category: str | None = None,
        agent: str | None = None,
        archived: bool | None = None,
        limit: int | None = None,
    ) -> list[TaskRead]:
        payload = await self._request(
            "GET",
            "/api/tasks",
            params=_query_params(
                {
                    "status": status,
                    "priority": priority,
                    "category": category,
                    "agent": agent,
                    "archived": archived,
                    "limit": limit,
                }
            ),
        )
        return [TaskRead.model_validate(item) for item in payload]

    async def list_agents(self) -> list[str]:
        payload = await self._request("GET", "/api/tasks/agents")
        return [str(agent) for agent in payload]

    async def get_task(self, task_id: str) -> TaskRead:
        return TaskRead.model_validate(await self._request("GET", f"/api/tasks/{task_id}"))

    async def create_task(self, fields: Mapping[str, Any]) -> TaskRead:
        payload = await self._request("POST", "/api/tasks", json=dict(fields))
        return TaskRead.model_validate(payload)

    async def update_task(self, task_id: str, patch: Mapping[str, Any]) -> TaskRead:
        payload = await self._request("PATCH", f"/api/tasks/{task_id}", json=dict(patch))
        return TaskRead.model_validate(payload)

    async def archive_task(self, task_id: str) -> TaskRead:
        return TaskRead.model_validate(await self._request("DELETE", f"/api/tasks/{task_id}"))

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._api_key:
            headers["X-API-Key"] = self._api_key
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Mapping[str, Any] | None = None,
    ) -> Any:
        if not self.has_credentials:
            raise SessionExpiredError("Not signed in", status_code=401, code="UNAUTHORIZED")

        request_kwargs: dict[str, Any] = {
            "params": params,
            "json": json,
            "headers": self._headers(),
            "timeout": self._timeout_seconds,
        }
        if self._client is not None:
            response = await self._client.request(method, endpoint, **request_kwargs)
        else:
            async with httpx.AsyncClient(base_url=self._base_url) as client:
                response = await client.request(method, endpoint, **request_kwargs)

        if response.status_code >= 400:
            raise self._error_from_response(method, endpoint, response)
        return response.json()

    @staticmethod
    def _error_from_response(method: str, endpoint: str, response: httpx.Response) -> TaskApiError:
        code: str | None = None
        try:
            error = response.json()["error"]
            code = str(error["code"])
            detail = str(error["message"])
        except (ValueError, KeyError, TypeError):
            detail = response.text
        message = f"{method} {endpoint} failed with status {response.status_code}: {detail}"
        if response.status_code == 401:
            return SessionExpiredError(message, status_code=401, code=code)
        return TaskApiError(message, status_code=response.status_code, code=code)
