"""Gateway: bus, router, translator and relay."""

from slackirc.gateway.bus import Bus
from slackirc.gateway.relay import Relay
from slackirc.gateway.router import ChannelRouter
from slackirc.gateway.translator import MessageTranslator

__all__ = ["Bus", "ChannelRouter", "MessageTranslator", "Relay"]
