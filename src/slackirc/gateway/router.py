"""Channel router: Slack channel <-> IRC channel, backed by the mapping store."""

from __future__ import annotations

from typing import Any

from loguru import logger

from slackirc.core.errors import MappingConflictError
from slackirc.storage import ChannelMapping, ChannelMappings


class ChannelRouter:
    """Routes events by channel mapping. Reads through to the store on every call."""

    def __init__(self, channels: ChannelMappings) -> None:
        self._channels = channels

    def seed_from_config(self, config: dict[str, Any]) -> int:
        """Create config-declared mappings missing from the store. Returns count added.

        Existing bridges made with slash commands win over the config.
        """
        raw = config.get("mappings")
        if not isinstance(raw, list):
            return 0

        added = 0
        skipped = 0
        for item in raw:
            if not isinstance(item, dict):
                skipped += 1
                continue
            slack_id = str(item.get("slack_channel_id", ""))
            irc_channel = str(item.get("irc_channel", ""))
            if not slack_id or not irc_channel.startswith("#"):
                skipped += 1
                continue
            if self._channels.get_by_slack(slack_id) or self._channels.get_by_irc(irc_channel):
                continue
            try:
                self._channels.create(slack_id, irc_channel)
            except MappingConflictError as exc:
                logger.warning("Router: cannot seed {} -> {}: {}", slack_id, irc_channel, exc)
                skipped += 1
                continue
            added += 1
        logger.info(
            "Router: seeded {} mappings from config{}",
            added,
            f", skipped {skipped}" if skipped else "",
        )
        return added

    def get_mapping_for_slack(self, slack_channel_id: str) -> ChannelMapping | None:
        return self._channels.get_by_slack(slack_channel_id)

    def get_mapping_for_irc(self, irc_channel: str) -> ChannelMapping | None:
        return self._channels.get_by_irc(irc_channel)

    def all_mappings(self) -> list[ChannelMapping]:
        return self._channels.all()
