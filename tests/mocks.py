"""Mock adapters and helpers for testing the bridge without real connections."""

from __future__ import annotations

from slackirc.adapters.base import AdapterBase
from slackirc.events import ChannelLinked, ChannelUnlinked, MessageOut


class MockAdapter(AdapterBase):
    """Mock adapter that captures events without real connections."""

    def __init__(self, name: str) -> None:
        self._name = name
        self.received_events: list[tuple[str, object]] = []
        self.sent_messages: list[MessageOut] = []
        self._running = False

    @property
    def name(self) -> str:
        return self._name

    def accept_event(self, source: str, evt: object) -> bool:
        if isinstance(evt, MessageOut):
            return evt.target_origin == self._name
        return self._name == "irc" and isinstance(evt, (ChannelLinked, ChannelUnlinked))

    def push_event(self, source: str, evt: object) -> None:
        self.received_events.append((source, evt))
        if isinstance(evt, MessageOut):
            self.sent_messages.append(evt)

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False

    def clear(self) -> None:
        self.received_events.clear()
        self.sent_messages.clear()


class MockSlackAdapter(MockAdapter):
    def __init__(self) -> None:
        super().__init__("slack")


class MockIRCAdapter(MockAdapter):
    def __init__(self) -> None:
        super().__init__("irc")


class FakeClock:
    """Settable clock for thread and cache expiry tests."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
