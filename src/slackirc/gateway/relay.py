"""Relay: MessageIn -> MessageOut for the other side of the bridge.

Each origin gets its own queue and worker, so messages from one side are
translated and published strictly in arrival order while the other side
keeps flowing. A failure on one message is logged and the worker moves on.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any

from loguru import logger

from slackirc.config.schema import DEFAULT_AVATARS
from slackirc.core.constants import ORIGINS
from slackirc.core.errors import UpstreamError
from slackirc.events import MessageIn, message_out
from slackirc.formatting.reply_fallback import add_reply_fallback
from slackirc.identity.avatars import avatar_for_nick
from slackirc.threads import THREAD_TOKEN

if TYPE_CHECKING:
    from slackirc.cdn import CdnUploader
    from slackirc.gateway.bus import Bus
    from slackirc.gateway.router import ChannelRouter
    from slackirc.gateway.translator import MessageTranslator
    from slackirc.identity.cachet import CachetClient
    from slackirc.identity.user_cache import UserInfoCache
    from slackirc.storage import ChannelMapping, UserMappings
    from slackirc.threads import ThreadMapper

# (slack_channel_id, thread_ts) -> root message dict with "user" and "text"
ThreadRootFetcher = Callable[[str, str], Awaitable[dict[str, Any] | None]]

IRC_DISPLAY_SUFFIX = " <irc>"


class Relay:
    """Relays MessageIn to MessageOut. No adapter-to-adapter coupling."""

    def __init__(
        self,
        bus: Bus,
        router: ChannelRouter,
        translator: MessageTranslator,
        threads: ThreadMapper,
        user_cache: UserInfoCache,
        users: UserMappings,
        *,
        cdn: CdnUploader | None = None,
        cachet: CachetClient | None = None,
        avatars: Sequence[str] = DEFAULT_AVATARS,
        thread_root_fetcher: ThreadRootFetcher | None = None,
    ) -> None:
        self._bus = bus
        self._router = router
        self._translator = translator
        self._threads = threads
        self._user_cache = user_cache
        self._users = users
        self._cdn = cdn
        self._cachet = cachet
        self._avatars = avatars
        self._thread_root_fetcher = thread_root_fetcher
        self._queues: dict[str, asyncio.Queue[MessageIn]] = {}
        self._workers: list[asyncio.Task] = []

    def set_thread_root_fetcher(self, fetcher: ThreadRootFetcher | None) -> None:
        self._thread_root_fetcher = fetcher

    def accept_event(self, source: str, evt: object) -> bool:
        return isinstance(evt, MessageIn) and evt.origin in ORIGINS

    def push_event(self, source: str, evt: object) -> None:
        if not isinstance(evt, MessageIn):
            return
        queue = self._queues.get(evt.origin)
        if queue is None:
            logger.warning("Relay not started; dropping {} message {}", evt.origin, evt.message_id)
            return
        queue.put_nowait(evt)

    async def start(self) -> None:
        for origin in ORIGINS:
            queue: asyncio.Queue[MessageIn] = asyncio.Queue()
            self._queues[origin] = queue
            self._workers.append(asyncio.create_task(self._consume(origin, queue)))
        logger.info("Relay started ({} workers)", len(self._workers))

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        for task in self._workers:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._workers = []
        self._queues = {}

    async def _consume(self, origin: str, queue: asyncio.Queue[MessageIn]) -> None:
        while True:
            evt = await queue.get()
            try:
                await self.handle(evt)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("Relay: {} message {} failed: {}", origin, evt.message_id, exc)
            finally:
                queue.task_done()

    async def handle(self, evt: MessageIn) -> None:
        """Translate and publish one message."""
        if evt.origin == "slack":
            await self._slack_to_irc(evt)
        elif evt.origin == "irc":
            await self._irc_to_slack(evt)

    # Slack -> IRC

    async def _sender_name(self, user_id: str, display_name: str | None = None) -> str:
        mapping = self._users.get_by_slack(user_id)
        if mapping is not None:
            return mapping.irc_nick
        info = await self._user_cache.get(user_id, display_name)
        if info is None:
            return "Unknown"
        return info.real_name or info.name or "Unknown"

    async def _rehost_files(self, files: list[str]) -> list[str]:
        if not files:
            return []
        if self._cdn is None:
            logger.debug("Relay: {} files not re-hosted (no CDN token)", len(files))
            return []
        try:
            return await self._cdn.upload(files)
        except UpstreamError as exc:
            logger.warning("Relay: file upload failed, sending text only: {}", exc)
            return []

    async def _quote_thread_root(self, channel_id: str, thread_ts: str, reply: str) -> str:
        if self._thread_root_fetcher is None:
            return reply
        try:
            root = await self._thread_root_fetcher(channel_id, thread_ts)
        except Exception as exc:
            logger.warning("Relay: fetching thread root {} failed: {}", thread_ts, exc)
            return reply
        if not root or not root.get("text"):
            return reply
        author = None
        if root.get("user"):
            author = await self._sender_name(str(root["user"]))
        quoted = await self._translator.to_irc(str(root["text"]))
        return add_reply_fallback(reply, quoted, author=author)

    async def _slack_to_irc(self, evt: MessageIn) -> None:
        mapping = self._router.get_mapping_for_slack(evt.channel_id)
        if mapping is None:
            logger.debug("Relay: no mapping for slack channel {}", evt.channel_id)
            return

        username = await self._sender_name(evt.author_id, evt.author_display or None)
        text = await self._translator.to_irc(evt.content) if evt.content else ""

        urls = await self._rehost_files(evt.files)
        if urls:
            text = " ".join([text, *urls]) if text else " ".join(urls)

        if not text.strip():
            return

        if evt.thread_ts and evt.thread_ts != evt.message_id:
            first = self._threads.is_first_message(evt.thread_ts)
            short = self._threads.touch(evt.thread_ts, evt.channel_id)
            if first:
                text = await self._quote_thread_root(evt.channel_id, evt.thread_ts, text)
            text = f"@{short} {text}"

        logger.info("Relay: slack -> irc channel={} user={}", mapping.irc_channel, username)
        _, out_evt = message_out(
            target_origin="irc",
            channel_id=mapping.irc_channel,
            author_display=username,
            content=text,
            message_id=evt.message_id,
            thread_ts=evt.thread_ts,
            raw={"slack_channel_id": evt.channel_id},
        )
        self._bus.publish("relay", out_evt)

    # IRC -> Slack

    def _extract_thread(self, content: str, mapping: ChannelMapping) -> tuple[str, str | None]:
        """Strip a known ``@short`` token; returns (content, thread_ts)."""
        for m in THREAD_TOKEN.finditer(content):
            record = self._threads.resolve(m.group(1))
            if record is None or record.slack_channel_id != mapping.slack_channel_id:
                continue
            self._threads.touch(record.thread_ts, record.slack_channel_id)
            stripped = " ".join((content[: m.start()] + content[m.end() :]).split())
            return stripped, record.thread_ts
        return content, None

    def _icon_for(self, nick: str) -> str:
        mapping = self._users.get_by_irc(nick)
        if mapping is not None and self._cachet is not None:
            return self._cachet.avatar_url(mapping.slack_user_id)
        return avatar_for_nick(nick, self._avatars)

    async def _irc_to_slack(self, evt: MessageIn) -> None:
        mapping = self._router.get_mapping_for_irc(evt.channel_id)
        if mapping is None:
            logger.debug("Relay: no mapping for irc channel {}", evt.channel_id)
            return

        content, thread_ts = self._extract_thread(evt.content, mapping)
        if not content:
            return
        text = self._translator.to_slack(content)
        if evt.is_action:
            text = f"_{text}_"

        logger.info("Relay: irc -> slack channel={} nick={}", mapping.slack_channel_id, evt.author_id)
        _, out_evt = message_out(
            target_origin="slack",
            channel_id=mapping.slack_channel_id,
            author_display=f"{evt.author_display}{IRC_DISPLAY_SUFFIX}",
            content=text,
            message_id=evt.message_id,
            icon_url=self._icon_for(evt.author_id),
            thread_ts=thread_ts,
            raw={"irc_channel": evt.channel_id},
        )
        self._bus.publish("relay", out_evt)
