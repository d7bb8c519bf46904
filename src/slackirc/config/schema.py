"""Config schema and accessor."""

from __future__ import annotations

import os
from typing import Any

from loguru import logger

from slackirc.core.errors import BridgeConfigurationError

REQUIRED_ENV = ("SLACK_BOT_TOKEN", "SLACK_APP_TOKEN", "ADMINS", "IRC_NICK")

# Env keys read on every reload (centralized so tests can patch os.environ once)
_ENV_KEYS = (
    *REQUIRED_ENV,
    "CACHET_ENABLED",
    "CDN_TOKEN",
    "BRIDGE_DATABASE_PATH",
)

DEFAULT_AVATARS = (
    "https://hc-cdn.hel1.your-objectstorage.com/s/v3/4183627c4d26c56c915e104a8a7374f43acd1733_pfp__1_.png",
    "https://hc-cdn.hel1.your-objectstorage.com/s/v3/389b1e6bd4248a7e5dd88e14c1adb8eb01267080_pfp__2_.png",
    "https://hc-cdn.hel1.your-objectstorage.com/s/v3/03011a5e59548191de058f33ccd1d1cb1d64f2a0_pfp__3_.png",
    "https://hc-cdn.hel1.your-objectstorage.com/s/v3/f9c57b88fbd4633114c1864bcc2968db555dbd2a_pfp__4_.png",
    "https://hc-cdn.hel1.your-objectstorage.com/s/v3/e61a8cabee5a749588125242747b65122fb94205_pfp.png",
)


def _load_env() -> dict[str, str]:
    """Snapshot the env keys the bridge cares about."""
    return {k: os.environ.get(k, "") for k in _ENV_KEYS}


def _parse_bool_env(val: str) -> bool | None:
    """Parse env string to bool; None if not a recognized bool."""
    v = val.lower()
    if v in ("1", "true", "yes"):
        return True
    if v in ("0", "false", "no"):
        return False
    return None


class Config:
    """Config accessor with attribute-style access for nested keys."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data = data or {}
        self._env: dict[str, str] = _load_env()

    def reload(self, data: dict[str, Any], *, validate: bool = True) -> None:
        """Replace config data (e.g. on SIGHUP reload). Invalid data leaves the current config in place."""
        data = data or {}
        if validate:
            Config(data)._validate()
        self._data = data
        self._env = _load_env()
        logger.debug("Config reloaded: {} seed mappings", len(self.mappings))

    def _validate(self) -> None:
        """Validate config structure; raise BridgeConfigurationError on failure."""
        mappings = self._data.get("mappings")
        if mappings is not None and not isinstance(mappings, list):
            raise BridgeConfigurationError(
                "mappings must be a list",
                code="invalid_mappings",
                details={"type": type(mappings).__name__},
            )
        for i, item in enumerate(self.mappings):
            if not isinstance(item, dict):
                raise BridgeConfigurationError(
                    f"mappings[{i}] must be a dict",
                    code="invalid_mapping_item",
                    details={"index": i},
                )
            if not item.get("slack_channel_id") or not item.get("irc_channel"):
                raise BridgeConfigurationError(
                    f"mappings[{i}] needs slack_channel_id and irc_channel",
                    code="incomplete_mapping",
                    details={"index": i},
                )
            if not str(item["irc_channel"]).startswith("#"):
                raise BridgeConfigurationError(
                    f"mappings[{i}] irc_channel must start with #",
                    code="invalid_irc_channel",
                    details={"index": i, "irc_channel": item["irc_channel"]},
                )
        avatars = self._data.get("avatars")
        if avatars is not None and (not isinstance(avatars, list) or not avatars):
            raise BridgeConfigurationError(
                "avatars must be a non-empty list of URLs",
                code="invalid_avatars",
            )

    def validate_env(self) -> None:
        """Raise BridgeConfigurationError listing every missing required env var."""
        missing = [k for k in REQUIRED_ENV if not self._env.get(k)]
        if missing:
            raise BridgeConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                code="missing_env",
                details={"missing": missing},
            )

    @property
    def raw(self) -> dict[str, Any]:
        """Raw config dict."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Get value by dot-separated path (e.g. 'irc.server')."""
        parts = key.split(".")
        obj: Any = self._data
        for part in parts:
            if isinstance(obj, dict) and part in obj:
                obj = obj[part]
            else:
                return default
        return obj

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    @property
    def mappings(self) -> list[dict[str, Any]]:
        """Channel mappings seeded into the store at startup."""
        m = self._data.get("mappings")
        return m if isinstance(m, list) else []

    @property
    def database_path(self) -> str:
        return self._env.get("BRIDGE_DATABASE_PATH") or str(
            self._data.get("database_path", "bridge.db")
        )

    @property
    def irc_server(self) -> str:
        return str(self.get("irc.server", "irc.hackclub.com"))

    @property
    def irc_port(self) -> int:
        return int(self.get("irc.port", 6667))

    @property
    def irc_tls(self) -> bool:
        return bool(self.get("irc.tls", False))

    @property
    def irc_realname(self) -> str:
        return str(self.get("irc.realname", "Slack IRC Bridge"))

    @property
    def irc_nick(self) -> str:
        return self._env.get("IRC_NICK") or str(self._data.get("irc_nick", "slackbridge"))

    @property
    def slack_bot_token(self) -> str:
        return self._env.get("SLACK_BOT_TOKEN", "")

    @property
    def slack_app_token(self) -> str:
        return self._env.get("SLACK_APP_TOKEN", "")

    @property
    def admins(self) -> list[str]:
        """Slack user IDs allowed to manage any bridge (comma-separated ADMINS)."""
        raw = self._env.get("ADMINS", "")
        return [a.strip() for a in raw.split(",") if a.strip()]

    @property
    def thread_timeout_seconds(self) -> int:
        return int(self._data.get("thread_timeout_seconds", 600))

    @property
    def user_cache_ttl_seconds(self) -> int:
        return int(self._data.get("user_cache_ttl_seconds", 3600))

    @property
    def maintenance_interval_seconds(self) -> int:
        return int(self._data.get("maintenance_interval_seconds", 3600))

    @property
    def cachet_enabled(self) -> bool:
        parsed = _parse_bool_env(self._env.get("CACHET_ENABLED", ""))
        if parsed is not None:
            return parsed
        return bool(self._data.get("cachet_enabled", False))

    @property
    def cachet_base_url(self) -> str:
        return str(self._data.get("cachet_base_url", "https://cachet.dunkirk.sh"))

    @property
    def cdn_url(self) -> str:
        return str(self._data.get("cdn_url", "https://cdn.hackclub.com/api/v3/new"))

    @property
    def cdn_token(self) -> str | None:
        return self._env.get("CDN_TOKEN") or None

    @property
    def avatars(self) -> tuple[str, ...]:
        val = self._data.get("avatars")
        if isinstance(val, list) and val:
            return tuple(str(v) for v in val)
        return DEFAULT_AVATARS


# Global config instance (set by __main__)
cfg: Config = Config({})
