"""Read sessions and votes from an HTTP JSON export service."""

from __future__ import annotations

import httpx


class RemoteSourceError(Exception):
    """Raised when the remote source answers with an error or bad payload."""


class RemoteSource:
    """Fetch a group's voting sessions and votes over HTTP.

    Endpoints: ``GET {base_url}/groups/{id}/sessions`` and
    ``GET {base_url}/groups/{id}/votes``, each returning a JSON list.
    """

    def __init__(self, base_url: str, api_token: str = "", timeout: float = 10):
        if not base_url:
            raise ValueError("RemoteSource needs a base_url")
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(headers=headers, timeout=timeout)

    async def _get_list(self, path: str) -> list[dict]:
        url = f"{self.base_url}{path}"
        try:
            resp = await self.client.get(url)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise RemoteSourceError(f"GET {url} failed: {e}") from e
        try:
            data = resp.json()
        except ValueError as e:
            raise RemoteSourceError(f"GET {url}: invalid JSON") from e
        if not isinstance(data, list):
            raise RemoteSourceError(f"GET {url}: expected a JSON list")
        return data

    async def fetch_voting_sessions_by_group(self, group_id: str) -> list[dict]:
        return await self._get_list(f"/groups/{group_id}/sessions")

    async def fetch_votes(self, group_id: str) -> list[dict]:
        return await self._get_list(f"/groups/{group_id}/votes")

    async def list_groups(self) -> list[dict]:
        return await self._get_list("/groups")

    async def close(self) -> None:
        await self.client.aclose()
