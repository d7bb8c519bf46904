"""Rewrite user mentions between Slack ids and IRC nicks."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from slackirc.identity.cachet import UserDirectory
    from slackirc.storage import UserMappings

# "@nick" anywhere, or "nick:" addressing
_IRC_MENTION = re.compile(r"@(\w+)|(\w+):")
# <@U123> or <@U123|display name>
_SLACK_MENTION = re.compile(r"<@([UW][A-Z0-9]+)(?:\|([^>]+))?>")


class MentionResolver:
    """Mention rewriting backed by the user mapping table and an optional directory."""

    def __init__(self, users: UserMappings, directory: UserDirectory | None = None) -> None:
        self._users = users
        self._directory = directory

    def irc_to_slack(self, text: str) -> str:
        """Replace ``@nick`` and ``nick:`` with ``<@U…>`` for linked nicks.

        Unlinked nicks are left alone.
        """
        if not text:
            return text

        def _replace(m: re.Match[str]) -> str:
            nick = m.group(1) or m.group(2)
            mapping = self._users.get_by_irc(nick)
            if mapping is None:
                return m.group(0)
            if m.group(1) is not None:
                return f"<@{mapping.slack_user_id}>"
            return f"<@{mapping.slack_user_id}>:"

        return _IRC_MENTION.sub(_replace, text)

    async def slack_to_irc(self, text: str) -> str:
        """Replace ``<@U…>`` tokens with ``@name``.

        Tries the user mapping, then the inline display name, then the
        directory. Mentions are resolved one at a time, in order.
        """
        if not text or "<@" not in text:
            return text

        parts: list[str] = []
        pos = 0
        for m in _SLACK_MENTION.finditer(text):
            parts.append(text[pos : m.start()])
            name = await self._resolve(m.group(1), m.group(2))
            parts.append(f"@{name}" if name else m.group(0))
            pos = m.end()
        parts.append(text[pos:])
        return "".join(parts)

    async def _resolve(self, user_id: str, inline_name: str | None) -> str | None:
        mapping = self._users.get_by_slack(user_id)
        if mapping is not None:
            return mapping.irc_nick
        if inline_name:
            return inline_name
        if self._directory is None:
            return None
        try:
            user = await self._directory.fetch_user(user_id)
        except Exception as exc:
            logger.warning("Directory lookup for {} failed: {}", user_id, exc)
            return None
        return user.display_name if user else None
