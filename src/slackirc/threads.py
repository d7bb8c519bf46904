"""Thread mapper: short ids that let IRC users address Slack threads."""

from __future__ import annotations

import re
import time
from collections.abc import Callable

from loguru import logger

from slackirc.core.hashing import string_hash, to_base36
from slackirc.storage import ThreadRecord, ThreadTimestamps

THREAD_ID_LENGTH = 5
DEFAULT_THREAD_TIMEOUT = 10 * 60

# "@abc12" as a standalone token anywhere in an IRC message
THREAD_TOKEN = re.compile(rf"(?<![\w@])@([a-z0-9]{{{THREAD_ID_LENGTH}}})(?!\w)")


def generate_thread_id(thread_ts: str) -> str:
    """Short base-36 id for a Slack thread_ts. Stable across restarts; may collide."""
    short = to_base36(abs(string_hash(thread_ts)))[:THREAD_ID_LENGTH]
    return short.rjust(THREAD_ID_LENGTH, "0")


class ThreadMapper:
    """Tracks active Slack threads and their short ids.

    A thread is unknown until its first reply is relayed, active while replies
    keep arriving, and dropped by ``sweep`` once idle for two timeout windows.
    """

    def __init__(
        self,
        threads: ThreadTimestamps,
        *,
        timeout_seconds: float = DEFAULT_THREAD_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._threads = threads
        self._timeout = timeout_seconds
        self._clock = clock

    @staticmethod
    def thread_id_for(thread_ts: str) -> str:
        return generate_thread_id(thread_ts)

    def is_first_message(self, thread_ts: str) -> bool:
        return self._threads.get(thread_ts) is None

    def touch(self, thread_ts: str, slack_channel_id: str) -> str:
        """Record activity on a thread; returns its short id."""
        thread_id = generate_thread_id(thread_ts)
        self._threads.update(thread_ts, thread_id, slack_channel_id, self._clock())
        return thread_id

    def resolve(self, thread_id: str) -> ThreadRecord | None:
        return self._threads.get_by_thread_id(thread_id)

    def sweep(self) -> int:
        """Drop threads idle for more than two timeout windows."""
        cutoff = self._clock() - self._timeout * 2
        removed = self._threads.cleanup(cutoff)
        if removed:
            logger.debug("Thread sweep removed {} idle threads", removed)
        return removed
