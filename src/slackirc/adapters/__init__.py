"""Protocol adapters."""

from slackirc.adapters.base import AdapterBase
from slackirc.adapters.irc import IRCAdapter
from slackirc.adapters.slack import SlackAdapter

__all__ = ["AdapterBase", "IRCAdapter", "SlackAdapter"]
