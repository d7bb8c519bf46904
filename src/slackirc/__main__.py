"""Bridge entrypoint. Loads config, wires the gateway and runs both adapters."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from slackirc import __version__
from slackirc.adapters import IRCAdapter, SlackAdapter
from slackirc.cdn import CdnUploader
from slackirc.commands import BridgeCommands
from slackirc.config import Config, cfg, load_config_with_env
from slackirc.core.errors import BridgeConfigurationError
from slackirc.events import config_reload
from slackirc.formatting import MentionResolver
from slackirc.gateway import Bus, ChannelRouter, MessageTranslator, Relay
from slackirc.identity import CachetClient, UserInfoCache
from slackirc.permissions import Permissions
from slackirc.storage import MappingStore
from slackirc.threads import ThreadMapper

# Third-party libraries to intercept and route through loguru
_INTERCEPTED_LIBRARIES = ["pydle", "slack_bolt", "slack_sdk"]


def _intercept_logging(level: str) -> None:
    """Route stdlib logging from pydle and the Slack SDK through loguru."""

    class InterceptHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                log_level: str | int = logger.level(record.levelname).name
            except ValueError:
                log_level = record.levelno
            msg = record.getMessage().replace("{", "{{").replace("}", "}}")
            logger.opt(depth=6, exception=record.exc_info).log(log_level, msg)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for lib in _INTERCEPTED_LIBRARIES:
        lib_logger = logging.getLogger(lib)
        lib_logger.handlers = [InterceptHandler()]
        lib_logger.propagate = False
        lib_logger.setLevel(level)


def _safe_message_filter(record: Any) -> bool:
    """Escape angle brackets so Slack markup is not read as colour tags."""
    if isinstance(record.get("message"), str):
        record["message"] = record["message"].replace("<", "\\<")
    return True


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru. DEBUG with --verbose or LOG_LEVEL=DEBUG, otherwise INFO."""
    level = "INFO"
    if verbose:
        level = "DEBUG"
    else:
        env_level = (os.environ.get("LOG_LEVEL") or "").upper()
        if env_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
            level = env_level

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=("<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}"),
        filter=_safe_message_filter,
    )
    _intercept_logging(level)


def reload_config(config_path: Path, overrides: dict[str, Any] | None = None) -> Config:
    """Load config from path and update global cfg. CLI overrides win over the file."""
    data = load_config_with_env(config_path, overrides)
    cfg.reload(data)
    return cfg


def run_maintenance(threads: ThreadMapper, user_cache: UserInfoCache) -> None:
    """Drop idle threads and expired user-cache entries."""
    removed = threads.sweep()
    user_cache.sweep()
    logger.debug("Maintenance: {} threads swept, {} users cached", removed, len(user_cache))


async def _maintenance_loop(threads: ThreadMapper, user_cache: UserInfoCache, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            run_maintenance(threads, user_cache)
        except Exception as exc:
            logger.exception("Maintenance failed: {}", exc)


def main() -> None:
    """Main entrypoint."""
    parser = argparse.ArgumentParser(description="Slack IRC bridge")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--irc-server",
        help="IRC server hostname (overrides irc.server)",
    )
    parser.add_argument(
        "--irc-port",
        type=int,
        help="IRC server port (overrides irc.port)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)
    overrides = cli_overrides(args)

    try:
        config = reload_config(args.config, overrides)
        config.validate_env()
    except (BridgeConfigurationError, yaml.YAMLError) as exc:
        logger.error("Invalid configuration: {}", exc)
        sys.exit(1)
    logger.info("Config loaded from {}", args.config)

    asyncio.run(_run(config, args.config, overrides))


def cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Nested config dict built from the CLI flags that were given."""
    irc: dict[str, Any] = {}
    if args.irc_server:
        irc["server"] = args.irc_server
    if args.irc_port is not None:
        irc["port"] = args.irc_port
    return {"irc": irc} if irc else {}


def handle_reload(config_path: Path, router: ChannelRouter, bus: Bus, overrides: dict[str, Any] | None = None) -> bool:
    """SIGHUP: reload config, seed new mappings, announce. A rejected reload keeps the old config."""
    try:
        reloaded = reload_config(config_path, overrides)
    except (BridgeConfigurationError, yaml.YAMLError) as exc:
        logger.error("Config reload rejected: {}", exc)
        return False
    router.seed_from_config(reloaded.raw)
    _, evt = config_reload()
    bus.publish("main", evt)
    logger.info("Config reloaded (SIGHUP)")
    return True


async def _run(config: Config, config_path: Path, overrides: dict[str, Any] | None = None) -> None:
    """Wire components, start adapters and wait for a shutdown signal."""
    store = MappingStore(config.database_path)
    bus = Bus()
    router = ChannelRouter(store.channels)
    router.seed_from_config(config.raw)

    cachet = CachetClient(config.cachet_base_url) if config.cachet_enabled else None
    if cachet is None:
        logger.info("Cachet disabled; user names come from Slack only")
    user_cache = UserInfoCache(cachet, ttl=config.user_cache_ttl_seconds)
    translator = MessageTranslator(MentionResolver(store.users, cachet))
    threads = ThreadMapper(store.threads, timeout_seconds=config.thread_timeout_seconds)

    cdn = None
    if config.cdn_token:
        cdn = CdnUploader(config.cdn_url, config.cdn_token, config.slack_bot_token)
    else:
        logger.warning("CDN_TOKEN not set; Slack files will not be relayed to IRC")

    permissions = Permissions(config.admins)
    commands = BridgeCommands(store, permissions, bus)
    slack = SlackAdapter(
        bus,
        router,
        bot_token=config.slack_bot_token,
        app_token=config.slack_app_token,
        commands=commands,
    )
    permissions.set_client(slack.client)
    commands.set_client(slack.client)
    user_cache.set_profile_fetcher(slack.fetch_profile)

    relay = Relay(
        bus,
        router,
        translator,
        threads,
        user_cache,
        store.users,
        cdn=cdn,
        cachet=cachet,
        avatars=config.avatars,
        thread_root_fetcher=slack.fetch_thread_root,
    )
    bus.register(relay)
    irc = IRCAdapter(
        bus,
        router,
        server=config.irc_server,
        port=config.irc_port,
        tls=config.irc_tls,
        nick=config.irc_nick,
        realname=config.irc_realname,
    )

    loop = asyncio.get_running_loop()
    stop = asyncio.Event()

    loop.add_signal_handler(signal.SIGHUP, handle_reload, config_path, router, bus, overrides)
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    logger.info("Bridge ready: {} channel mappings", len(router.all_mappings()))
    await relay.start()
    await slack.start()
    await irc.start()
    maintenance = asyncio.create_task(
        _maintenance_loop(threads, user_cache, config.maintenance_interval_seconds)
    )

    try:
        await stop.wait()
    finally:
        logger.info("Bridge shutting down")
        maintenance.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await maintenance
        for adapter in (irc, slack):
            logger.info("Stopping {} adapter", adapter.name)
            await adapter.stop()
        await relay.stop()
        store.close()


if __name__ == "__main__":
    main()
