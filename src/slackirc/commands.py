"""Slash commands for managing channel bridges and user links.

Every handler returns the ephemeral mrkdwn reply; ``register`` wires them
into a bolt app.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from loguru import logger
from slack_sdk.errors import SlackApiError

from slackirc.core.errors import MappingConflictError
from slackirc.events import channel_linked, channel_unlinked

if TYPE_CHECKING:
    from slack_bolt.async_app import AsyncApp
    from slack_sdk.web.async_client import AsyncWebClient

    from slackirc.gateway.bus import Bus
    from slackirc.permissions import Permissions
    from slackirc.storage import MappingStore

# RFC 2812 nickname, with the 30 char limit most networks use
_NICK = re.compile(r"^[A-Za-z\[\]\\`_^{|}][A-Za-z0-9\[\]\\`_^{|}-]{0,29}$")

NO_PERMISSION = (
    "❌ You don't have permission to manage this channel. "
    "You must be the channel creator or an admin."
)


class BridgeCommands:
    def __init__(
        self,
        store: MappingStore,
        permissions: Permissions,
        bus: Bus,
        slack_client: AsyncWebClient | None = None,
    ) -> None:
        self._store = store
        self._permissions = permissions
        self._bus = bus
        self._client = slack_client

    def set_client(self, slack_client: AsyncWebClient | None) -> None:
        self._client = slack_client

    async def bridge_channel(self, user_id: str, channel_id: str, text: str) -> str:
        """/irc-bridge-channel #chan"""
        irc_channel = text.strip().split()[0] if text.strip() else ""
        if not irc_channel.startswith("#"):
            return "❌ IRC channel must start with #"
        if not await self._permissions.can_manage_channel(user_id, channel_id):
            return NO_PERMISSION

        existing_irc = self._store.channels.get_by_irc(irc_channel)
        if existing_irc is not None:
            return f"❌ IRC channel {irc_channel} is already bridged to <#{existing_irc.slack_channel_id}>"
        existing_slack = self._store.channels.get_by_slack(channel_id)
        if existing_slack is not None:
            return f"❌ This channel is already bridged to {existing_slack.irc_channel}"

        try:
            self._store.channels.create(channel_id, irc_channel)
        except MappingConflictError as exc:
            return f"❌ Failed to bridge channel: {exc}"
        _, evt = channel_linked(channel_id, irc_channel)
        self._bus.publish("commands", evt)
        await self._join_slack_channel(channel_id)
        logger.info("Created channel mapping: {} -> {}", channel_id, irc_channel)
        return f"✅ Successfully bridged <#{channel_id}> to {irc_channel}"

    async def _join_slack_channel(self, channel_id: str) -> None:
        if self._client is None:
            return
        try:
            await self._client.conversations_join(channel=channel_id)
        except SlackApiError as exc:
            logger.warning(
                "Failed to join Slack channel {} (may be private): {}",
                channel_id,
                exc.response.get("error"),
            )

    async def unbridge_channel(self, user_id: str, channel_id: str) -> str:
        """/irc-unbridge-channel"""
        mapping = self._store.channels.get_by_slack(channel_id)
        if mapping is None:
            return "❌ This channel is not bridged to IRC"
        if not await self._permissions.can_manage_channel(user_id, channel_id):
            return NO_PERMISSION
        self._store.channels.delete(channel_id)
        _, evt = channel_unlinked(channel_id, mapping.irc_channel)
        self._bus.publish("commands", evt)
        logger.info("Removed channel mapping: {} -> {}", channel_id, mapping.irc_channel)
        return f"✅ Removed bridge to {mapping.irc_channel}"

    async def bridge_user(self, user_id: str, text: str) -> str:
        """/irc-bridge-user nick"""
        nick = text.strip()
        if not nick:
            return "❌ IRC nickname is required"
        if not _NICK.match(nick):
            return f"❌ *{nick}* is not a valid IRC nickname"

        existing_irc = self._store.users.get_by_irc(nick)
        if existing_irc is not None:
            return f"❌ IRC nick *{nick}* is already linked to <@{existing_irc.slack_user_id}>"
        existing_slack = self._store.users.get_by_slack(user_id)
        if existing_slack is not None:
            return f"❌ You are already linked to IRC nick *{existing_slack.irc_nick}*"

        try:
            self._store.users.create(user_id, nick)
        except MappingConflictError as exc:
            return f"❌ Failed to link user: {exc}"
        logger.info("Created user mapping: {} -> {}", user_id, nick)
        return f"✅ Successfully linked your account to IRC nick: *{nick}*"

    async def unbridge_user(self, user_id: str) -> str:
        """/irc-unbridge-user"""
        mapping = self._store.users.get_by_slack(user_id)
        if mapping is None:
            return "❌ You don't have an IRC nick mapping"
        self._store.users.delete(user_id)
        logger.info("Removed user mapping: {} -> {}", user_id, mapping.irc_nick)
        return f"✅ Removed link to IRC nick: {mapping.irc_nick}"

    async def list_bridges(self) -> str:
        """/irc-bridge-list"""
        lines = ["*IRC Bridge Status*", "", "*Channel Bridges:*"]
        channels = self._store.channels.all()
        if channels:
            lines.extend(f"• <#{m.slack_channel_id}> ↔️ *{m.irc_channel}*" for m in channels)
        else:
            lines.append("_No channel bridges configured_")
        lines.extend(["", "*User Mappings:*"])
        users = self._store.users.all()
        if users:
            lines.extend(f"• <@{m.slack_user_id}> ↔️ *{m.irc_nick}*" for m in users)
        else:
            lines.append("_No user mappings configured_")
        return "\n".join(lines)

    async def dispatch(self, name: str, body: dict[str, Any]) -> str:
        """Run the handler for a slash command payload."""
        user_id = body.get("user_id", "")
        channel_id = body.get("channel_id", "")
        text = body.get("text", "") or ""
        if name == "/irc-bridge-channel":
            return await self.bridge_channel(user_id, channel_id, text)
        if name == "/irc-unbridge-channel":
            return await self.unbridge_channel(user_id, channel_id)
        if name == "/irc-bridge-user":
            return await self.bridge_user(user_id, text)
        if name == "/irc-unbridge-user":
            return await self.unbridge_user(user_id)
        if name == "/irc-bridge-list":
            return await self.list_bridges()
        return f"❌ Unknown command {name}"

    def register(self, app: AsyncApp) -> None:
        for name in COMMANDS:
            app.command(name)(self._make_listener(name))

    def _make_listener(self, name: str):
        async def _listener(ack: Any, command: dict[str, Any], respond: Any) -> None:
            await ack()
            try:
                reply = await self.dispatch(name, command)
            except Exception as exc:
                logger.exception("Command {} failed: {}", name, exc)
                reply = f"❌ {name} failed: {exc}"
            await respond(response_type="ephemeral", text=reply)

        return _listener


COMMANDS = (
    "/irc-bridge-channel",
    "/irc-unbridge-channel",
    "/irc-bridge-user",
    "/irc-unbridge-user",
    "/irc-bridge-list",
)
