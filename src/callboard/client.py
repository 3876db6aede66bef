"""client.py — Async client for the admin API.

Wraps the /api routes in methods named after the Board operations and
turns error responses back into the same exception types the server
raised, so callers handle a remote board the way they'd handle a local
one.

Usage:
    async with BoardClient("http://localhost:3000", token="s3cret") as board:
        await board.next()
        await board.add_featured("Menu", "https://example.com/menu")
"""

from __future__ import annotations

from typing import Any

import httpx

from .errors import (
    AuthenticationError,
    AuthorizationError,
    CallboardError,
    ConcurrencyConflictError,
    StoreUnavailableError,
    ValidationError,
)

_ERRORS_BY_STATUS: dict[int, type[CallboardError]] = {
    400: ValidationError,
    401: AuthenticationError,
    403: AuthorizationError,
    409: ConcurrencyConflictError,
    503: StoreUnavailableError,
}


class BoardClient:
    """Admin API client. One httpx.AsyncClient per instance."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> BoardClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # -- Plumbing -------------------------------------------------------------

    def _raise_for(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            message = response.json().get("error", response.text)
        except ValueError:
            message = response.text
        raise _ERRORS_BY_STATUS.get(response.status_code, CallboardError)(message)

    async def _post(self, path: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        response = await self._http.post(path, json=body or {})
        self._raise_for(response)
        return response.json()

    async def _get(self, path: str) -> dict[str, Any]:
        response = await self._http.get(path)
        self._raise_for(response)
        return response.json()

    # -- Reads ----------------------------------------------------------------

    async def state(self) -> dict[str, Any]:
        return await self._get("/api/state")

    async def logs(self) -> list[str]:
        return (await self._get("/api/logs"))["logs"]

    async def whoami(self) -> dict[str, str]:
        return (await self._post("/api/check-token"))["user"]

    # -- Number ---------------------------------------------------------------

    async def next(self) -> int:
        return (await self._post("/api/number/change", {"direction": "next"}))["number"]

    async def previous(self) -> int:
        return (await self._post("/api/number/change", {"direction": "prev"}))["number"]

    async def set_exact(self, number: int) -> int:
        return (await self._post("/api/number/set", {"number": number}))["number"]

    # -- Passed ---------------------------------------------------------------

    async def add_passed(self, number: int) -> list[int]:
        return (await self._post("/api/passed/add", {"number": number}))["numbers"]

    async def remove_passed(self, number: int) -> list[int]:
        return (await self._post("/api/passed/remove", {"number": number}))["numbers"]

    async def clear_passed(self) -> list[int]:
        return (await self._post("/api/passed/clear"))["numbers"]

    # -- Featured -------------------------------------------------------------

    async def add_featured(self, link_text: str, link_url: str = "") -> list[dict[str, str]]:
        body = {"linkText": link_text, "linkUrl": link_url}
        return (await self._post("/api/featured/add", body))["contents"]

    async def remove_featured(self, link_text: str, link_url: str = "") -> list[dict[str, str]]:
        body = {"linkText": link_text, "linkUrl": link_url}
        return (await self._post("/api/featured/remove", body))["contents"]

    async def remove_featured_at(self, index: int) -> list[dict[str, str]]:
        return (await self._post("/api/featured/remove", {"index": index}))["contents"]

    async def clear_featured(self) -> list[dict[str, str]]:
        return (await self._post("/api/featured/clear"))["contents"]

    # -- Settings and system --------------------------------------------------

    async def set_sound_enabled(self, enabled: bool) -> bool:
        return (await self._post("/api/settings/sound", {"enabled": enabled}))["isEnabled"]

    async def set_public(self, is_public: bool) -> bool:
        return (await self._post("/api/settings/public", {"isPublic": is_public}))["isPublic"]

    async def clear_logs(self) -> None:
        await self._post("/api/logs/clear")

    async def reset_all(self) -> dict[str, Any]:
        return (await self._post("/api/system/reset"))["state"]
