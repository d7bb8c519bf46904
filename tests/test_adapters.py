"""Tests for the IRC and Slack adapters without network connections."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from slack_sdk.errors import SlackApiError

from slackirc.adapters.irc import IRCAdapter, IRCClient
from slackirc.adapters.slack import SlackAdapter
from slackirc.events import ChannelLinked, ChannelUnlinked, MessageIn, MessageOut, message_out
from slackirc.gateway import ChannelRouter

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_irc_client(store, nick: str = "bridge") -> tuple[IRCClient, MagicMock]:
    store.channels.create("C1", "#lounge")
    bus = MagicMock()
    client = IRCClient(bus=bus, router=ChannelRouter(store.channels), nick=nick)
    client.nickname = nick  # pydle sets this on connect
    return client, bus


def _published(bus: MagicMock) -> list[MessageIn]:
    return [c.args[1] for c in bus.publish.call_args_list]


def _make_slack_adapter(store) -> tuple[SlackAdapter, MagicMock, MagicMock]:
    store.channels.create("C1", "#lounge")
    bus = MagicMock()
    app = MagicMock()
    app.client = AsyncMock()
    adapter = SlackAdapter(bus, ChannelRouter(store.channels), bot_token="xoxb", app_token="xapp", app=app)
    adapter._bot_user_id = "UBOT"
    return adapter, bus, app.client


# ---------------------------------------------------------------------------
# IRCClient
# ---------------------------------------------------------------------------


class TestIRCClientInbound:
    @pytest.mark.asyncio
    async def test_channel_message_published(self, store):
        # Arrange
        client, bus = _make_irc_client(store)

        # Act
        with patch.object(type(client).__mro__[1], "on_message", AsyncMock()):
            await client.on_message("#lounge", "carol", "hello")

        # Assert
        (evt,) = _published(bus)
        assert evt.origin == "irc"
        assert evt.channel_id == "#lounge"
        assert evt.author_id == "carol"
        assert evt.content == "hello"
        assert evt.is_action is False

    @pytest.mark.asyncio
    async def test_action_published(self, store):
        client, bus = _make_irc_client(store)
        await client.on_ctcp_action("carol", "#lounge", "waves")
        (evt,) = _published(bus)
        assert evt.is_action is True
        assert evt.content == "waves"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("source", ["bridge", "****"])
    async def test_own_and_service_nicks_ignored(self, store, source):
        client, bus = _make_irc_client(store)
        with patch.object(type(client).__mro__[1], "on_message", AsyncMock()):
            await client.on_message("#lounge", source, "hello")
        bus.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_private_and_unmapped_ignored(self, store):
        client, bus = _make_irc_client(store)
        with patch.object(type(client).__mro__[1], "on_message", AsyncMock()):
            await client.on_message("bridge", "carol", "psst")
            await client.on_message("#elsewhere", "carol", "hi")
        bus.publish.assert_not_called()


class TestIRCClientOutbound:
    @pytest.mark.asyncio
    async def test_each_line_prefixed(self, store):
        # Arrange
        client, _ = _make_irc_client(store)
        client.message = AsyncMock()
        _, evt = message_out("irc", "#lounge", "alice", "one\ntwo", "1.0")

        # Act
        await client._send_message(evt)

        # Assert
        sent = [c.args for c in client.message.call_args_list]
        assert sent == [("#lounge", "<alice> one"), ("#lounge", "<alice> two")]


class TestIRCAdapter:
    def _adapter(self, store):
        return IRCAdapter(
            MagicMock(),
            ChannelRouter(store.channels),
            server="irc.example",
            port=6667,
            tls=False,
            nick="bridge",
            realname="Bridge",
        )

    def test_accepts_irc_messages_and_link_events(self, store):
        adapter = self._adapter(store)
        _, to_irc = message_out("irc", "#a", "x", "y", "1")
        _, to_slack = message_out("slack", "C1", "x", "y", "1")
        assert adapter.accept_event("relay", to_irc) is True
        assert adapter.accept_event("relay", to_slack) is False
        assert adapter.accept_event("commands", ChannelLinked("C1", "#a")) is True
        assert adapter.accept_event("commands", ChannelUnlinked("C1", "#a")) is True

    @pytest.mark.asyncio
    async def test_link_events_join_and_part(self, store):
        # Arrange
        adapter = self._adapter(store)
        client = MagicMock()
        client.join = AsyncMock()
        client.part = AsyncMock()
        adapter._client = client

        # Act
        adapter.push_event("commands", ChannelLinked("C1", "#new"))
        adapter.push_event("commands", ChannelUnlinked("C1", "#old"))
        for task in list(adapter._pending):
            await task

        # Assert
        client.join.assert_awaited_once_with("#new")
        client.part.assert_awaited_once_with("#old", "Channel unbridged")

    def test_message_queued_on_client(self, store):
        adapter = self._adapter(store)
        adapter._client = MagicMock()
        _, evt = message_out("irc", "#a", "x", "y", "1")
        adapter.push_event("relay", evt)
        adapter._client.queue_message.assert_called_once_with(evt)


# ---------------------------------------------------------------------------
# SlackAdapter
# ---------------------------------------------------------------------------


class TestSlackAdapterInbound:
    @pytest.mark.asyncio
    async def test_user_message_published(self, store):
        # Arrange
        adapter, bus, _ = _make_slack_adapter(store)
        event = {
            "channel": "C1",
            "user": "U1",
            "text": "hello",
            "ts": "101.0",
            "thread_ts": "100.0",
            "user_profile": {"display_name": "Ally", "real_name": "Alice"},
        }

        # Act
        await adapter.on_message(event)

        # Assert
        (evt,) = _published(bus)
        assert evt.origin == "slack"
        assert evt.author_display == "Ally"
        assert evt.thread_ts == "100.0"
        assert evt.message_id == "101.0"

    @pytest.mark.asyncio
    async def test_file_share_includes_private_urls(self, store):
        adapter, bus, _ = _make_slack_adapter(store)
        event = {
            "channel": "C1",
            "user": "U1",
            "text": "",
            "ts": "1.0",
            "subtype": "file_share",
            "files": [{"url_private": "https://files.slack.com/a.png"}, {"name": "no-url"}],
        }
        await adapter.on_message(event)
        (evt,) = _published(bus)
        assert evt.files == ["https://files.slack.com/a.png"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "event",
        [
            {"channel": "C1", "user": "U1", "text": "x", "ts": "1", "bot_id": "B1"},
            {"channel": "C1", "user": "UBOT", "text": "x", "ts": "1"},
            {"channel": "C1", "user": "U1", "text": "x", "ts": "1", "subtype": "message_changed"},
            {"channel": "C9", "user": "U1", "text": "x", "ts": "1"},
        ],
    )
    async def test_filtered_events(self, store, event):
        adapter, bus, _ = _make_slack_adapter(store)
        await adapter.on_message(event)
        bus.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_unmapped_channel_left(self, store):
        # Arrange
        adapter, bus, client = _make_slack_adapter(store)

        # Act
        await adapter.on_message({"channel": "C9", "user": "U1", "text": "x", "ts": "1"})

        # Assert
        client.conversations_leave.assert_awaited_once_with(channel="C9")
        bus.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_unmapped_dm_not_left(self, store):
        adapter, _, client = _make_slack_adapter(store)
        await adapter.on_message({"channel": "D1", "user": "U1", "text": "x", "ts": "1"})
        client.conversations_leave.assert_not_called()

    @pytest.mark.asyncio
    async def test_leave_failure_logged_not_raised(self, store):
        adapter, _, client = _make_slack_adapter(store)
        client.conversations_leave.side_effect = SlackApiError("x", {"ok": False, "error": "cant_leave_general"})
        await adapter.on_message({"channel": "C9", "user": "U1", "text": "x", "ts": "1"})
        client.conversations_leave.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_mapped_channel_not_left(self, store):
        adapter, _, client = _make_slack_adapter(store)
        await adapter.on_message({"channel": "C1", "user": "U1", "text": "x", "ts": "1"})
        client.conversations_leave.assert_not_called()


class TestSlackAdapterOutbound:
    @pytest.mark.asyncio
    async def test_post_as_irc_user(self, store):
        # Arrange
        adapter, _, client = _make_slack_adapter(store)
        out = MessageOut(
            target_origin="slack",
            channel_id="C1",
            author_display="carol <irc>",
            content="hi",
            message_id="irc:1",
            icon_url="https://avatar",
            thread_ts="100.0",
        )

        # Act
        await adapter.send_message(out)

        # Assert
        client.chat_postMessage.assert_awaited_once_with(
            channel="C1",
            text="hi",
            username="carol <irc>",
            unfurl_links=False,
            unfurl_media=False,
            icon_url="https://avatar",
            thread_ts="100.0",
        )

    @pytest.mark.asyncio
    async def test_post_failure_logged_not_raised(self, store):
        adapter, _, client = _make_slack_adapter(store)
        client.chat_postMessage.side_effect = SlackApiError("failed", {"ok": False, "error": "channel_not_found"})
        _, out = message_out("slack", "C1", "carol <irc>", "hi", "irc:1")
        await adapter.send_message(out)

    @pytest.mark.asyncio
    async def test_transport_error_logged_not_raised(self, store):
        # Arrange
        adapter, _, client = _make_slack_adapter(store)
        client.chat_postMessage.side_effect = ConnectionResetError("socket closed")
        _, out = message_out("slack", "C1", "carol <irc>", "hi", "irc:1")

        # Act
        adapter.push_event("relay", out)
        (task,) = adapter._pending
        await task

        # Assert
        assert task.exception() is None
        client.chat_postMessage.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fetch_profile_and_thread_root(self, store):
        # Arrange
        adapter, _, client = _make_slack_adapter(store)
        client.users_info.return_value = {"ok": True, "user": {"name": "alice"}}
        client.conversations_replies.return_value = {"messages": [{"user": "U2", "text": "root"}]}

        # Act
        profile = await adapter.fetch_profile("U1")
        root = await adapter.fetch_thread_root("C1", "100.0")

        # Assert
        assert profile == {"name": "alice"}
        assert root == {"user": "U2", "text": "root"}
        client.conversations_replies.assert_awaited_once_with(channel="C1", ts="100.0", limit=1)
