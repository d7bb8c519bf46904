"""Mapping store: channel/user mappings and thread timestamps (sqlite)."""

from __future__ import annotations

import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from slackirc.core.errors import MappingConflictError

_CHANNEL_TABLE = """
    CREATE TABLE {table} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        slack_channel_id TEXT NOT NULL UNIQUE,
        irc_channel TEXT NOT NULL UNIQUE,
        created_at INTEGER DEFAULT (strftime('%s', 'now'))
    )
"""

_USER_TABLE = """
    CREATE TABLE {table} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        slack_user_id TEXT NOT NULL UNIQUE,
        irc_nick TEXT NOT NULL UNIQUE,
        created_at INTEGER DEFAULT (strftime('%s', 'now'))
    )
"""

_THREAD_TABLE = """
    CREATE TABLE IF NOT EXISTS thread_timestamps (
        thread_ts TEXT PRIMARY KEY,
        thread_id TEXT NOT NULL,
        slack_channel_id TEXT NOT NULL,
        last_message_time REAL NOT NULL
    )
"""


@dataclass(frozen=True)
class ChannelMapping:
    """Slack channel <-> IRC channel."""

    slack_channel_id: str
    irc_channel: str
    created_at: int | None = None
    id: int | None = None


@dataclass(frozen=True)
class UserMapping:
    """Slack user <-> IRC nick."""

    slack_user_id: str
    irc_nick: str
    created_at: int | None = None
    id: int | None = None


@dataclass(frozen=True)
class ThreadRecord:
    """A Slack thread known to IRC by its short id."""

    thread_ts: str
    thread_id: str
    slack_channel_id: str
    last_message_time: float


class _PairTable:
    """Upsert-by-Slack-id table with a unique IRC column."""

    table: str
    slack_col: str
    irc_col: str
    kind: str

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def _row(self, row: sqlite3.Row | None):
        raise NotImplementedError

    def _get(self, column: str, value: str):
        row = self._conn.execute(
            f"SELECT * FROM {self.table} WHERE {column} = ?", (value,)
        ).fetchone()
        return self._row(row)

    def _all(self) -> list:
        rows = self._conn.execute(f"SELECT * FROM {self.table} ORDER BY id").fetchall()
        return [self._row(r) for r in rows]

    def _create(self, slack_id: str, irc_value: str) -> None:
        try:
            self._conn.execute(
                f"INSERT INTO {self.table} ({self.slack_col}, {self.irc_col}) VALUES (?, ?) "
                f"ON CONFLICT({self.slack_col}) DO UPDATE SET "
                f"{self.irc_col} = excluded.{self.irc_col}, created_at = excluded.created_at",
                (slack_id, irc_value),
            )
        except sqlite3.IntegrityError as exc:
            raise MappingConflictError(
                f"{self.kind} {irc_value} is already mapped",
                code=f"{self.kind}_conflict",
                details={self.slack_col: slack_id, self.irc_col: irc_value},
                original_error=exc,
            ) from exc

    def _delete(self, slack_id: str) -> None:
        self._conn.execute(f"DELETE FROM {self.table} WHERE {self.slack_col} = ?", (slack_id,))


class ChannelMappings(_PairTable):
    table = "channel_mappings"
    slack_col = "slack_channel_id"
    irc_col = "irc_channel"
    kind = "irc_channel"

    def _row(self, row: sqlite3.Row | None) -> ChannelMapping | None:
        if row is None:
            return None
        return ChannelMapping(
            slack_channel_id=row["slack_channel_id"],
            irc_channel=row["irc_channel"],
            created_at=row["created_at"],
            id=row["id"],
        )

    def get_by_slack(self, slack_channel_id: str) -> ChannelMapping | None:
        return self._get(self.slack_col, slack_channel_id)

    def get_by_irc(self, irc_channel: str) -> ChannelMapping | None:
        return self._get(self.irc_col, irc_channel)

    def create(self, slack_channel_id: str, irc_channel: str) -> None:
        """Map slack_channel_id to irc_channel, replacing its previous target.

        Raises MappingConflictError if irc_channel belongs to another Slack channel.
        """
        self._create(slack_channel_id, irc_channel)

    def delete(self, slack_channel_id: str) -> None:
        self._delete(slack_channel_id)

    def all(self) -> list[ChannelMapping]:
        return self._all()


class UserMappings(_PairTable):
    table = "user_mappings"
    slack_col = "slack_user_id"
    irc_col = "irc_nick"
    kind = "irc_nick"

    def _row(self, row: sqlite3.Row | None) -> UserMapping | None:
        if row is None:
            return None
        return UserMapping(
            slack_user_id=row["slack_user_id"],
            irc_nick=row["irc_nick"],
            created_at=row["created_at"],
            id=row["id"],
        )

    def get_by_slack(self, slack_user_id: str) -> UserMapping | None:
        return self._get(self.slack_col, slack_user_id)

    def get_by_irc(self, irc_nick: str) -> UserMapping | None:
        return self._get(self.irc_col, irc_nick)

    def create(self, slack_user_id: str, irc_nick: str) -> None:
        """Link slack_user_id to irc_nick, replacing its previous nick.

        Raises MappingConflictError if irc_nick belongs to another Slack user.
        """
        self._create(slack_user_id, irc_nick)

    def delete(self, slack_user_id: str) -> None:
        self._delete(slack_user_id)

    def all(self) -> list[UserMapping]:
        return self._all()


class ThreadTimestamps:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @staticmethod
    def _row(row: sqlite3.Row | None) -> ThreadRecord | None:
        if row is None:
            return None
        return ThreadRecord(
            thread_ts=row["thread_ts"],
            thread_id=row["thread_id"],
            slack_channel_id=row["slack_channel_id"],
            last_message_time=row["last_message_time"],
        )

    def get(self, thread_ts: str) -> ThreadRecord | None:
        row = self._conn.execute(
            "SELECT * FROM thread_timestamps WHERE thread_ts = ?", (thread_ts,)
        ).fetchone()
        return self._row(row)

    def get_by_thread_id(self, thread_id: str) -> ThreadRecord | None:
        """Most recently active thread with this short id (short ids may collide)."""
        row = self._conn.execute(
            "SELECT * FROM thread_timestamps WHERE thread_id = ? "
            "ORDER BY last_message_time DESC LIMIT 1",
            (thread_id,),
        ).fetchone()
        return self._row(row)

    def update(self, thread_ts: str, thread_id: str, slack_channel_id: str, timestamp: float) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO thread_timestamps "
            "(thread_ts, thread_id, slack_channel_id, last_message_time) VALUES (?, ?, ?, ?)",
            (thread_ts, thread_id, slack_channel_id, timestamp),
        )

    def cleanup(self, older_than: float) -> int:
        """Delete threads idle since before older_than. Returns rows removed."""
        cur = self._conn.execute(
            "DELETE FROM thread_timestamps WHERE last_message_time < ?", (older_than,)
        )
        return cur.rowcount


class MappingStore:
    """sqlite-backed store. Each call is a single autocommitted statement."""

    def __init__(self, path: str | Path = "bridge.db") -> None:
        self.path = str(path)
        self._conn = sqlite3.connect(self.path, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA busy_timeout = 5000;")
        self._init_schema()
        self.channels = ChannelMappings(self._conn)
        self.users = UserMappings(self._conn)
        self.threads = ThreadTimestamps(self._conn)

    def _init_schema(self) -> None:
        self._ensure_pair_table("channel_mappings", _CHANNEL_TABLE, "irc_channel")
        self._ensure_pair_table("user_mappings", _USER_TABLE, "irc_nick")
        self._conn.execute(_THREAD_TABLE)
        self._conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_thread_id ON thread_timestamps(thread_id)"
        )

    def _ensure_pair_table(self, table: str, create_sql: str, irc_col: str) -> None:
        """Create the table, or rebuild a legacy one whose IRC column is not UNIQUE."""
        row = self._conn.execute(
            "SELECT sql FROM sqlite_master WHERE type='table' AND name = ?", (table,)
        ).fetchone()
        if row is None:
            self._conn.execute(create_sql.format(table=table))
            return
        if f"{irc_col} TEXT NOT NULL UNIQUE" in (row["sql"] or ""):
            return

        duplicates = self._conn.execute(
            f"SELECT {irc_col} FROM {table} GROUP BY {irc_col} HAVING COUNT(*) > 1"
        ).fetchall()
        if duplicates:
            logger.warning(
                "Found {} duplicate {} values in {}; keeping the most recent mapping for each",
                len(duplicates),
                irc_col,
                table,
            )
        self._conn.execute("BEGIN")
        try:
            for dup in duplicates:
                value = dup[irc_col]
                self._conn.execute(
                    f"DELETE FROM {table} WHERE {irc_col} = ? AND id NOT IN ("
                    f"SELECT id FROM {table} WHERE {irc_col} = ? "
                    f"ORDER BY created_at DESC, id DESC LIMIT 1)",
                    (value, value),
                )
            self._conn.execute(create_sql.format(table=f"{table}_new"))
            self._conn.execute(f"INSERT INTO {table}_new SELECT * FROM {table}")
            self._conn.execute(f"DROP TABLE {table}")
            self._conn.execute(f"ALTER TABLE {table}_new RENAME TO {table}")
            self._conn.execute("COMMIT")
        except sqlite3.Error:
            self._conn.execute("ROLLBACK")
            raise
        logger.info("Migrated {} to add unique constraint on {}", table, irc_col)

    def close(self) -> None:
        self._conn.close()
