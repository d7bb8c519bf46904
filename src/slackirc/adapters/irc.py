"""IRC adapter: one pydle connection speaking for every Slack user."""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Collection

import pydle
from loguru import logger

from slackirc.adapters.base import AdapterBase
from slackirc.core.constants import IGNORED_IRC_NICKS
from slackirc.events import ChannelLinked, ChannelUnlinked, MessageOut, message_in
from slackirc.formatting.irc_message_split import format_irc_lines
from slackirc.gateway import Bus, ChannelRouter


class IRCClient(pydle.Client):
    """Pydle client that joins bridged channels and publishes their traffic."""

    def __init__(
        self,
        bus: Bus,
        router: ChannelRouter,
        nick: str,
        *,
        ignored_nicks: Collection[str] = IGNORED_IRC_NICKS,
        **kwargs,
    ):
        super().__init__(nick, **kwargs)
        self._bus = bus
        self._router = router
        self._ignored = frozenset(n.lower() for n in ignored_nicks)
        self._outbound: asyncio.Queue[MessageOut] = asyncio.Queue()
        self._consumer_task: asyncio.Task | None = None

    async def on_connect(self):
        """After connect, join every bridged channel and start the sender."""
        await super().on_connect()
        channels = sorted({m.irc_channel for m in self._router.all_mappings()})
        logger.info("IRC connected as {}; joining {}", self.nickname, channels)
        for channel in channels:
            await self.join(channel)
        if self._consumer_task is None or self._consumer_task.done():
            self._consumer_task = asyncio.create_task(self._consume_outbound())

    def _should_ignore(self, source: str) -> bool:
        return source == self.nickname or source.lower() in self._ignored

    def _publish(self, target: str, source: str, message: str, *, is_action: bool) -> None:
        if not target.startswith("#") or self._should_ignore(source):
            return
        if self._router.get_mapping_for_irc(target) is None:
            return
        _, evt = message_in(
            origin="irc",
            channel_id=target,
            author_id=source,
            author_display=source,
            content=message,
            message_id=f"irc:{target}:{source}:{time.time_ns()}",
            is_action=is_action,
        )
        self._bus.publish("irc", evt)

    async def on_message(self, target, source, message):
        await super().on_message(target, source, message)
        self._publish(target, source, message, is_action=False)

    async def on_ctcp_action(self, by, target, message):
        """Handle /me action."""
        self._publish(target, by, message, is_action=True)

    async def _consume_outbound(self):
        while True:
            try:
                evt = await self._outbound.get()
                await self._send_message(evt)
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.exception("IRC send failed: {}", exc)

    async def _send_message(self, evt: MessageOut):
        """One PRIVMSG per line, each prefixed with the Slack sender."""
        for line in format_irc_lines(evt.author_display, evt.content):
            await self.message(evt.channel_id, line)

    def queue_message(self, evt: MessageOut):
        self._outbound.put_nowait(evt)

    async def disconnect(self, expected=True):
        if self._consumer_task:
            self._consumer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer_task
            self._consumer_task = None
        await super().disconnect(expected)


class IRCAdapter(AdapterBase):
    """Bus target for MessageOut(target_origin='irc') and channel link changes."""

    def __init__(
        self,
        bus: Bus,
        router: ChannelRouter,
        *,
        server: str,
        port: int,
        tls: bool,
        nick: str,
        realname: str,
    ):
        self._bus = bus
        self._router = router
        self._server = server
        self._port = port
        self._tls = tls
        self._nick = nick
        self._realname = realname
        self._client: IRCClient | None = None
        self._task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()

    @property
    def name(self) -> str:
        return "irc"

    def accept_event(self, source: str, evt: object) -> bool:
        if isinstance(evt, MessageOut):
            return evt.target_origin == "irc"
        return isinstance(evt, (ChannelLinked, ChannelUnlinked))

    def push_event(self, source: str, evt: object) -> None:
        if self._client is None:
            logger.warning("IRC event dropped: no client ({})", type(evt).__name__)
            return
        if isinstance(evt, MessageOut):
            self._client.queue_message(evt)
        elif isinstance(evt, ChannelLinked):
            self._spawn(self._client.join(evt.irc_channel))
        elif isinstance(evt, ChannelUnlinked):
            self._spawn(self._client.part(evt.irc_channel, "Channel unbridged"))

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def start(self) -> None:
        self._client = IRCClient(
            bus=self._bus,
            router=self._router,
            nick=self._nick,
            realname=self._realname,
        )
        self._bus.register(self)
        self._task = asyncio.create_task(
            self._client.connect(hostname=self._server, port=self._port, tls=self._tls)
        )
        logger.info("IRC connection started: {}:{} as {}", self._server, self._port, self._nick)

    async def stop(self) -> None:
        self._bus.unregister(self)
        if self._client:
            await self._client.disconnect()
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._client = None
        self._task = None
