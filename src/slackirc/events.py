"""Event types and dispatcher."""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger


@dataclass
class MessageIn:
    """Inbound message event from one side of the bridge."""

    origin: str  # "slack" | "irc"
    channel_id: str  # Slack channel id or IRC channel name
    author_id: str  # Slack user id or IRC nick
    author_display: str
    content: str
    message_id: str
    thread_ts: str | None = None
    is_action: bool = False
    files: list[str] = field(default_factory=list)  # Slack private file URLs
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class MessageOut:
    """Outbound message event, already translated for target_origin."""

    target_origin: str
    channel_id: str
    author_display: str
    content: str
    message_id: str
    icon_url: str | None = None
    thread_ts: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChannelLinked:
    """A Slack channel was bridged to an IRC channel."""

    slack_channel_id: str
    irc_channel: str


@dataclass
class ChannelUnlinked:
    """A channel bridge was removed."""

    slack_channel_id: str
    irc_channel: str


@dataclass
class ConfigReload:
    """Config was reloaded (e.g. SIGHUP)."""

    pass


class EventTarget(Protocol):
    """Adapter interface: accept_event + push_event."""

    def accept_event(self, source: str, evt: object) -> bool:
        """Return True if this target wants the event."""
        ...

    def push_event(self, source: str, evt: object) -> None:
        """Handle the event (may be async via queue)."""
        ...


def event(type_name: str):
    """Decorator to mark a factory as producing an event with a given type."""

    def decorator(f: Any) -> Any:
        @functools.wraps(f)
        def wrapper(*args: Any, **kwargs: Any) -> tuple[str, object]:
            evt = f(*args, **kwargs)
            return (type_name, evt)

        wrapper.TYPE = type_name  # type: ignore[attr-defined]
        return wrapper

    return decorator


@event("message_in")
def message_in(
    origin: str,
    channel_id: str,
    author_id: str,
    author_display: str,
    content: str,
    message_id: str,
    *,
    thread_ts: str | None = None,
    is_action: bool = False,
    files: list[str] | None = None,
    raw: dict[str, Any] | None = None,
) -> MessageIn:
    return MessageIn(
        origin=origin,
        channel_id=channel_id,
        author_id=author_id,
        author_display=author_display,
        content=content,
        message_id=message_id,
        thread_ts=thread_ts,
        is_action=is_action,
        files=list(files or []),
        raw=raw or {},
    )


@event("message_out")
def message_out(
    target_origin: str,
    channel_id: str,
    author_display: str,
    content: str,
    message_id: str,
    *,
    icon_url: str | None = None,
    thread_ts: str | None = None,
    raw: dict[str, Any] | None = None,
) -> MessageOut:
    return MessageOut(
        target_origin=target_origin,
        channel_id=channel_id,
        author_display=author_display,
        content=content,
        message_id=message_id,
        icon_url=icon_url,
        thread_ts=thread_ts,
        raw=raw or {},
    )


@event("channel_linked")
def channel_linked(slack_channel_id: str, irc_channel: str) -> ChannelLinked:
    return ChannelLinked(slack_channel_id=slack_channel_id, irc_channel=irc_channel)


@event("channel_unlinked")
def channel_unlinked(slack_channel_id: str, irc_channel: str) -> ChannelUnlinked:
    return ChannelUnlinked(slack_channel_id=slack_channel_id, irc_channel=irc_channel)


@event("config_reload")
def config_reload() -> ConfigReload:
    return ConfigReload()


class Dispatcher:
    """Central event dispatcher; targets filter by type and receive events."""

    def __init__(self) -> None:
        self._targets: list[EventTarget] = []

    def register(self, target: EventTarget) -> None:
        """Register an event target (adapter)."""
        if target not in self._targets:
            self._targets.append(target)

    def unregister(self, target: EventTarget) -> None:
        """Unregister an event target."""
        if target in self._targets:
            self._targets.remove(target)

    def dispatch(self, source: str, evt: object) -> None:
        """Dispatch event to all targets that accept it."""
        for target in self._targets:
            try:
                if target.accept_event(source, evt):
                    target.push_event(source, evt)
            except Exception as exc:
                logger.exception("Failed to pass event to target {}: {}", target, exc)
