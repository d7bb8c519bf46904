"""User-info cache: Slack user id -> display names, with a TTL."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from cachetools import TTLCache
from loguru import logger

if TYPE_CHECKING:
    from slackirc.identity.cachet import UserDirectory

# Slack users.info -> the "user" object
ProfileFetcher = Callable[[str], Awaitable[dict[str, Any] | None]]


@dataclass(frozen=True)
class UserInfo:
    name: str
    real_name: str


class UserInfoCache:
    """TTL cache over the directory and Slack profiles.

    Lookup order on a miss: the display name carried by the event, the
    directory (when configured), then the Slack profile. Failed lookups are
    not cached so the next message retries.
    """

    def __init__(
        self,
        directory: UserDirectory | None = None,
        profile_fetcher: ProfileFetcher | None = None,
        *,
        ttl: int = 3600,
        maxsize: int = 4096,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._directory = directory
        self._profile_fetcher = profile_fetcher
        self._cache: TTLCache[str, UserInfo] = TTLCache(maxsize=maxsize, ttl=float(ttl), timer=timer)

    def set_profile_fetcher(self, fetcher: ProfileFetcher | None) -> None:
        """Late binding: the Slack client only exists once the adapter starts."""
        self._profile_fetcher = fetcher

    def __len__(self) -> int:
        return len(self._cache)

    async def get(self, user_id: str, display_name: str | None = None) -> UserInfo | None:
        try:
            return self._cache[user_id]
        except KeyError:
            pass

        if display_name:
            info = UserInfo(name=display_name, real_name=display_name)
            self._cache[user_id] = info
            return info

        logger.debug("User cache miss: {}", user_id)
        info = await self._from_directory(user_id)
        if info is None:
            info = await self._from_profile(user_id)
        if info is not None:
            self._cache[user_id] = info
        return info

    async def _from_directory(self, user_id: str) -> UserInfo | None:
        if self._directory is None:
            return None
        try:
            user = await self._directory.fetch_user(user_id)
        except Exception as exc:
            logger.warning("Directory lookup for {} failed: {}", user_id, exc)
            return None
        if user is None:
            return None
        name = user.display_name or "Unknown"
        return UserInfo(name=name, real_name=name)

    async def _from_profile(self, user_id: str) -> UserInfo | None:
        if self._profile_fetcher is None:
            return None
        try:
            profile = await self._profile_fetcher(user_id)
        except Exception as exc:
            logger.error("Error fetching user info for {}: {}", user_id, exc)
            return None
        if not profile:
            return None
        name = profile.get("name") or "Unknown"
        real_name = profile.get("real_name") or profile.get("name") or "Unknown"
        return UserInfo(name=name, real_name=real_name)

    def sweep(self) -> None:
        """Evict expired entries."""
        self._cache.expire()

    def clear(self) -> None:
        self._cache.clear()
