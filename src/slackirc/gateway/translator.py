"""Message translator: formatting plus mention resolution, per direction."""

from __future__ import annotations

from loguru import logger

from slackirc.formatting.irc_to_slack import irc_to_slack
from slackirc.formatting.mention_resolution import MentionResolver
from slackirc.formatting.slack_to_irc import slack_to_irc


class MessageTranslator:
    """Formatting first, then mentions. On any failure the text passes through untouched."""

    def __init__(self, mentions: MentionResolver) -> None:
        self._mentions = mentions

    def to_slack(self, text: str) -> str:
        """IRC text -> Slack mrkdwn with ``<@U…>`` mentions."""
        try:
            return self._mentions.irc_to_slack(irc_to_slack(text))
        except Exception as exc:
            logger.exception("Translate to Slack failed: {}", exc)
            return text

    async def to_irc(self, text: str) -> str:
        """Slack mrkdwn -> IRC text with ``@nick`` mentions."""
        try:
            return await self._mentions.slack_to_irc(slack_to_irc(text))
        except Exception as exc:
            logger.exception("Translate to IRC failed: {}", exc)
            return text
