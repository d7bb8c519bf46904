"""Stable placeholder avatars for IRC nicks without a Slack link."""

from __future__ import annotations

from collections.abc import Sequence

from slackirc.config.schema import DEFAULT_AVATARS
from slackirc.core.hashing import string_hash


def avatar_for_nick(nick: str, pool: Sequence[str] = DEFAULT_AVATARS) -> str:
    """Pick an avatar from pool; the same nick always gets the same one."""
    if not pool:
        raise ValueError("avatar pool is empty")
    return pool[abs(string_hash(nick)) % len(pool)]
