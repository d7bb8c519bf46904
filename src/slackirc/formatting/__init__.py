"""Formatting converters between Slack mrkdwn and IRC."""

from slackirc.formatting.irc_message_split import format_irc_lines, split_irc_message
from slackirc.formatting.irc_to_slack import irc_to_slack
from slackirc.formatting.mention_resolution import MentionResolver
from slackirc.formatting.reply_fallback import add_reply_fallback
from slackirc.formatting.slack_to_irc import slack_to_irc

__all__ = [
    "MentionResolver",
    "add_reply_fallback",
    "format_irc_lines",
    "irc_to_slack",
    "slack_to_irc",
    "split_irc_message",
]
