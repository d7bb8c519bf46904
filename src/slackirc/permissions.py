"""Who may bridge or unbridge a Slack channel."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from loguru import logger
from slack_sdk.errors import SlackApiError

if TYPE_CHECKING:
    from slack_sdk.web.async_client import AsyncWebClient


class Permissions:
    """Admins can manage any channel; otherwise only the channel creator."""

    def __init__(self, admins: Iterable[str], slack_client: AsyncWebClient | None = None) -> None:
        self._admins = frozenset(a for a in admins if a)
        self._client = slack_client

    def set_client(self, slack_client: AsyncWebClient | None) -> None:
        self._client = slack_client

    def is_admin(self, user_id: str) -> bool:
        return user_id in self._admins

    async def can_manage_channel(self, user_id: str, channel_id: str) -> bool:
        if self.is_admin(user_id):
            return True
        if self._client is None:
            return False
        try:
            resp = await self._client.conversations_info(channel=channel_id)
        except SlackApiError as exc:
            logger.warning("conversations.info for {} failed: {}", channel_id, exc.response.get("error"))
            return False
        except Exception as exc:
            logger.exception("Checking channel permissions for {} failed: {}", channel_id, exc)
            return False
        channel = resp.get("channel") or {}
        return bool(resp.get("ok")) and channel.get("creator") == user_id
