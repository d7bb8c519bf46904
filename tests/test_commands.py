"""Test slash command handlers and channel permissions."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from slack_sdk.errors import SlackApiError

from slackirc.commands import COMMANDS, NO_PERMISSION, BridgeCommands
from slackirc.events import ChannelLinked, ChannelUnlinked
from slackirc.gateway import Bus
from slackirc.permissions import Permissions
from tests.mocks import MockIRCAdapter


@pytest.fixture
def irc():
    return MockIRCAdapter()


@pytest.fixture
def permissions():
    perms = AsyncMock(spec=Permissions)
    perms.can_manage_channel.return_value = True
    return perms


@pytest.fixture
def commands(store, permissions, irc):
    bus = Bus()
    bus.register(irc)
    return BridgeCommands(store, permissions, bus, slack_client=AsyncMock())


class TestBridgeChannel:
    @pytest.mark.asyncio
    async def test_creates_mapping_and_announces(self, commands, store, irc):
        # Act
        reply = await commands.bridge_channel("U1", "C1", "#lounge")

        # Assert
        assert reply == "✅ Successfully bridged <#C1> to #lounge"
        assert store.channels.get_by_slack("C1").irc_channel == "#lounge"
        assert irc.received_events == [("commands", ChannelLinked("C1", "#lounge"))]
        commands._client.conversations_join.assert_awaited_once_with(channel="C1")

    @pytest.mark.asyncio
    async def test_requires_hash(self, commands, permissions):
        assert await commands.bridge_channel("U1", "C1", "lounge") == "❌ IRC channel must start with #"
        assert await commands.bridge_channel("U1", "C1", "") == "❌ IRC channel must start with #"
        permissions.can_manage_channel.assert_not_called()

    @pytest.mark.asyncio
    async def test_denied_without_permission(self, commands, permissions, store):
        permissions.can_manage_channel.return_value = False
        assert await commands.bridge_channel("U1", "C1", "#lounge") == NO_PERMISSION
        assert store.channels.get_by_slack("C1") is None

    @pytest.mark.asyncio
    async def test_irc_channel_taken(self, commands, store):
        store.channels.create("C9", "#lounge")
        reply = await commands.bridge_channel("U1", "C1", "#lounge")
        assert reply == "❌ IRC channel #lounge is already bridged to <#C9>"

    @pytest.mark.asyncio
    async def test_slack_channel_taken(self, commands, store):
        store.channels.create("C1", "#other")
        reply = await commands.bridge_channel("U1", "C1", "#lounge")
        assert reply == "❌ This channel is already bridged to #other"

    @pytest.mark.asyncio
    async def test_join_failure_still_bridges(self, commands, store):
        commands._client.conversations_join.side_effect = SlackApiError("nope", {"ok": False, "error": "is_private"})
        reply = await commands.bridge_channel("U1", "C1", "#lounge")
        assert reply.startswith("✅")
        assert store.channels.get_by_slack("C1") is not None


class TestUnbridgeChannel:
    @pytest.mark.asyncio
    async def test_removes_mapping_and_announces(self, commands, store, irc):
        store.channels.create("C1", "#lounge")
        reply = await commands.unbridge_channel("U1", "C1")
        assert reply == "✅ Removed bridge to #lounge"
        assert store.channels.get_by_slack("C1") is None
        assert irc.received_events == [("commands", ChannelUnlinked("C1", "#lounge"))]

    @pytest.mark.asyncio
    async def test_not_bridged(self, commands, permissions):
        assert await commands.unbridge_channel("U1", "C1") == "❌ This channel is not bridged to IRC"
        permissions.can_manage_channel.assert_not_called()

    @pytest.mark.asyncio
    async def test_denied_without_permission(self, commands, permissions, store):
        store.channels.create("C1", "#lounge")
        permissions.can_manage_channel.return_value = False
        assert await commands.unbridge_channel("U1", "C1") == NO_PERMISSION
        assert store.channels.get_by_slack("C1") is not None


class TestUserCommands:
    @pytest.mark.asyncio
    async def test_link_and_unlink(self, commands, store):
        # Act
        linked = await commands.bridge_user("U1", " alice ")
        unlinked = await commands.unbridge_user("U1")

        # Assert
        assert linked == "✅ Successfully linked your account to IRC nick: *alice*"
        assert unlinked == "✅ Removed link to IRC nick: alice"
        assert store.users.get_by_slack("U1") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("", "❌ IRC nickname is required"),
            ("9lives", "❌ *9lives* is not a valid IRC nickname"),
            ("two words", "❌ *two words* is not a valid IRC nickname"),
        ],
    )
    async def test_invalid_nick(self, commands, text, expected):
        assert await commands.bridge_user("U1", text) == expected

    @pytest.mark.asyncio
    async def test_nick_taken(self, commands, store):
        store.users.create("U2", "alice")
        assert await commands.bridge_user("U1", "alice") == "❌ IRC nick *alice* is already linked to <@U2>"

    @pytest.mark.asyncio
    async def test_already_linked(self, commands, store):
        store.users.create("U1", "alice")
        assert await commands.bridge_user("U1", "ally") == "❌ You are already linked to IRC nick *alice*"

    @pytest.mark.asyncio
    async def test_unlink_without_mapping(self, commands):
        assert await commands.unbridge_user("U1") == "❌ You don't have an IRC nick mapping"


class TestListAndDispatch:
    @pytest.mark.asyncio
    async def test_list_empty(self, commands):
        reply = await commands.list_bridges()
        assert reply.splitlines() == [
            "*IRC Bridge Status*",
            "",
            "*Channel Bridges:*",
            "_No channel bridges configured_",
            "",
            "*User Mappings:*",
            "_No user mappings configured_",
        ]

    @pytest.mark.asyncio
    async def test_list_populated(self, commands, store):
        store.channels.create("C1", "#lounge")
        store.users.create("U1", "alice")
        reply = await commands.list_bridges()
        assert "• <#C1> ↔️ *#lounge*" in reply
        assert "• <@U1> ↔️ *alice*" in reply

    @pytest.mark.asyncio
    async def test_dispatch_routes_payload(self, commands, store):
        body = {"user_id": "U1", "channel_id": "C1", "text": "#lounge"}
        reply = await commands.dispatch("/irc-bridge-channel", body)
        assert reply.startswith("✅")
        assert await commands.dispatch("/nope", body) == "❌ Unknown command /nope"

    @pytest.mark.asyncio
    async def test_registered_listener_acks_and_responds(self, commands):
        # Arrange
        app = MagicMock()
        listeners = {}
        app.command.side_effect = lambda name: lambda fn: listeners.setdefault(name, fn)
        ack, respond = AsyncMock(), AsyncMock()

        # Act
        commands.register(app)
        await listeners["/irc-bridge-list"](ack=ack, command={"user_id": "U1"}, respond=respond)

        # Assert
        assert set(listeners) == set(COMMANDS)
        ack.assert_awaited_once()
        assert respond.await_args.kwargs["response_type"] == "ephemeral"
        assert respond.await_args.kwargs["text"].startswith("*IRC Bridge Status*")


class TestPermissions:
    @pytest.mark.asyncio
    async def test_admin_always_allowed(self):
        perms = Permissions(["UADMIN"])
        assert await perms.can_manage_channel("UADMIN", "C1") is True

    @pytest.mark.asyncio
    async def test_no_client_denies(self):
        assert await Permissions([]).can_manage_channel("U1", "C1") is False

    @pytest.mark.asyncio
    async def test_creator_allowed(self):
        client = AsyncMock()
        client.conversations_info.return_value = {"ok": True, "channel": {"creator": "U1"}}
        perms = Permissions([], client)
        assert await perms.can_manage_channel("U1", "C1") is True
        assert await perms.can_manage_channel("U2", "C1") is False

    @pytest.mark.asyncio
    async def test_api_error_denies(self):
        client = AsyncMock()
        client.conversations_info.side_effect = SlackApiError("x", {"ok": False, "error": "channel_not_found"})
        assert await Permissions([], client).can_manage_channel("U1", "C1") is False
