"""Slack adapter: bolt AsyncApp over Socket Mode."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Any

from loguru import logger
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.async_app import AsyncApp
from slack_sdk.errors import SlackApiError

from slackirc.adapters.base import AdapterBase
from slackirc.events import MessageOut, message_in
from slackirc.gateway import Bus, ChannelRouter

if TYPE_CHECKING:
    from slack_sdk.web.async_client import AsyncWebClient

    from slackirc.commands import BridgeCommands

# Message subtypes relayed to IRC; edits, joins, bot posts etc. are not
_RELAYED_SUBTYPES = frozenset({None, "file_share"})


def _display_name(event: dict[str, Any]) -> str:
    profile = event.get("user_profile") or {}
    return profile.get("display_name") or profile.get("real_name") or ""


def _file_urls(event: dict[str, Any]) -> list[str]:
    return [f["url_private"] for f in event.get("files") or [] if f.get("url_private")]


class SlackAdapter(AdapterBase):
    """Publishes channel messages, posts MessageOut(target_origin='slack')."""

    def __init__(
        self,
        bus: Bus,
        router: ChannelRouter,
        *,
        bot_token: str,
        app_token: str,
        commands: BridgeCommands | None = None,
        app: AsyncApp | None = None,
    ) -> None:
        self._bus = bus
        self._router = router
        self._bot_token = bot_token
        self._app_token = app_token
        self._commands = commands
        self._app = app
        self._handler: AsyncSocketModeHandler | None = None
        self._handler_task: asyncio.Task | None = None
        self._bot_user_id = ""
        self._pending: set[asyncio.Task] = set()

    @property
    def name(self) -> str:
        return "slack"

    @property
    def client(self) -> AsyncWebClient:
        if self._app is None:
            self._app = AsyncApp(token=self._bot_token)
        return self._app.client

    def accept_event(self, source: str, evt: object) -> bool:
        return isinstance(evt, MessageOut) and evt.target_origin == "slack"

    def push_event(self, source: str, evt: object) -> None:
        if not isinstance(evt, MessageOut):
            return
        task = asyncio.create_task(self.send_message(evt))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def send_message(self, evt: MessageOut) -> None:
        kwargs: dict[str, Any] = {
            "channel": evt.channel_id,
            "text": evt.content,
            "username": evt.author_display,
            "unfurl_links": False,
            "unfurl_media": False,
        }
        if evt.icon_url:
            kwargs["icon_url"] = evt.icon_url
        if evt.thread_ts:
            kwargs["thread_ts"] = evt.thread_ts
        try:
            await self.client.chat_postMessage(**kwargs)
        except SlackApiError as exc:
            logger.error("Slack post to {} failed: {}", evt.channel_id, exc.response.get("error"))
        except Exception as exc:
            logger.exception("Slack post to {} failed: {}", evt.channel_id, exc)

    async def fetch_profile(self, user_id: str) -> dict[str, Any] | None:
        """users.info -> user object. Raises on API failure."""
        resp = await self.client.users_info(user=user_id)
        return resp.get("user")

    async def fetch_thread_root(self, channel_id: str, thread_ts: str) -> dict[str, Any] | None:
        """First message of a thread, or None."""
        resp = await self.client.conversations_replies(channel=channel_id, ts=thread_ts, limit=1)
        messages = resp.get("messages") or []
        return messages[0] if messages else None

    async def _leave_unmapped(self, channel_id: str) -> None:
        """Leave a channel the bot was added to without a bridge. DMs cannot be left."""
        if channel_id.startswith("D"):
            return
        logger.info("No IRC mapping for Slack channel {}; leaving", channel_id)
        try:
            await self.client.conversations_leave(channel=channel_id)
        except SlackApiError as exc:
            logger.warning("Failed to leave Slack channel {}: {}", channel_id, exc.response.get("error"))

    async def on_message(self, event: dict[str, Any]) -> None:
        if event.get("bot_id") or event.get("subtype") not in _RELAYED_SUBTYPES:
            return
        user_id = event.get("user")
        channel_id = event.get("channel")
        if not user_id or not channel_id or user_id == self._bot_user_id:
            return
        if self._router.get_mapping_for_slack(channel_id) is None:
            await self._leave_unmapped(channel_id)
            return
        _, evt = message_in(
            origin="slack",
            channel_id=channel_id,
            author_id=user_id,
            author_display=_display_name(event),
            content=event.get("text") or "",
            message_id=event.get("ts", ""),
            thread_ts=event.get("thread_ts"),
            files=_file_urls(event),
            raw={"subtype": event.get("subtype")},
        )
        self._bus.publish("slack", evt)

    def _register_handlers(self, app: AsyncApp) -> None:
        @app.event("message")
        async def _handle_message(event: dict[str, Any]) -> None:
            await self.on_message(event)

        if self._commands is not None:
            self._commands.register(app)

    async def start(self) -> None:
        app = self._app or AsyncApp(token=self._bot_token)
        self._app = app
        try:
            auth = await app.client.auth_test()
            self._bot_user_id = auth.get("user_id", "")
        except SlackApiError as exc:
            logger.warning("Failed to resolve bot user ID: {}", exc.response.get("error"))

        self._register_handlers(app)
        self._bus.register(self)
        self._handler = AsyncSocketModeHandler(app, self._app_token)
        self._handler_task = asyncio.create_task(self._handler.start_async(), name="slack-socket-mode")
        logger.info("Slack connected (Socket Mode) as {}", self._bot_user_id or "unknown")

    async def stop(self) -> None:
        self._bus.unregister(self)
        if self._handler:
            await self._handler.close_async()
        if self._handler_task:
            self._handler_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._handler_task
        self._handler = None
        self._handler_task = None
