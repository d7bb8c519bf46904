"""Configuration: YAML + env overlay."""

from slackirc.config.loader import _deep_update, load_config, load_config_with_env
from slackirc.config.schema import DEFAULT_AVATARS, REQUIRED_ENV, Config, cfg

__all__ = [
    "DEFAULT_AVATARS",
    "REQUIRED_ENV",
    "Config",
    "_deep_update",
    "cfg",
    "load_config",
    "load_config_with_env",
]
