"""Cachet user directory client (Slack profile mirror)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

DEFAULT_RETRY = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(
        (
            httpx.ConnectError,
            httpx.ConnectTimeout,
            httpx.ReadTimeout,
            httpx.WriteTimeout,
            httpx.PoolTimeout,
            httpx.ReadError,
            httpx.WriteError,
            httpx.HTTPStatusError,
        )
    ),
    reraise=True,
)


@dataclass(frozen=True)
class DirectoryUser:
    """A Slack user as seen by the directory."""

    user_id: str
    display_name: str
    image_url: str | None = None


class UserDirectory(Protocol):
    async def fetch_user(self, user_id: str) -> DirectoryUser | None: ...


class CachetClient:
    """Async client for the Cachet API. Uses tenacity for retries."""

    def __init__(self, base_url: str, *, timeout: float = 10.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def avatar_url(self, user_id: str) -> str:
        """Redirecting avatar URL for a Slack user."""
        return f"{self._base_url}/users/{user_id}/r"

    def _extract(self, user_id: str, data: Any) -> DirectoryUser | None:
        if not isinstance(data, dict):
            return None
        return DirectoryUser(
            user_id=str(data.get("id") or user_id),
            display_name=str(data.get("displayName") or "Unknown"),
            image_url=data.get("image"),
        )

    @DEFAULT_RETRY
    async def fetch_user(self, user_id: str) -> DirectoryUser | None:
        url = f"{self._base_url}/users/{user_id}"
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(url, headers={"Accept": "application/json"})
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            return self._extract(user_id, resp.json())
