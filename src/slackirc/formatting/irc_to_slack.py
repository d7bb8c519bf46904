"""Convert IRC control codes to Slack mrkdwn."""

from __future__ import annotations

import re

from slackirc.core.constants import BOLD, ITALIC, RESET, REVERSE, UNDERLINE
from slackirc.formatting.slack_to_irc import Stage, apply_stages

# \x03, optional 1-2 digit foreground, optional ",NN" background
_COLOR = re.compile(r"\x03(?:\d{1,2}(?:,\d{1,2})?)?")
# \x04RRGGBB hex colour (IRCv3 extension)
_HEX_COLOR = re.compile(r"\x04(?:[0-9a-fA-F]{6}(?:,[0-9a-fA-F]{6})?)?")
_BOLD = re.compile(rf"{BOLD}([^{BOLD}]*){BOLD}")
_ITALIC = re.compile(rf"{ITALIC}([^{ITALIC}]*){ITALIC}")
_UNDERLINE = re.compile(rf"{UNDERLINE}([^{UNDERLINE}]*){UNDERLINE}")
_LEFTOVER = str.maketrans("", "", BOLD + ITALIC + UNDERLINE + REVERSE + RESET)


def strip_colors(text: str) -> str:
    text = _COLOR.sub("", text)
    return _HEX_COLOR.sub("", text)


def convert_bold(text: str) -> str:
    return _BOLD.sub(r"*\1*", text)


def convert_italic(text: str) -> str:
    return _ITALIC.sub(r"_\1_", text)


def convert_underline(text: str) -> str:
    # Slack has no underline; italic is the closest emphasis
    return _UNDERLINE.sub(r"_\1_", text)


def strip_leftover_codes(text: str) -> str:
    """Drop reverse, reset and any unpaired bold/italic/underline byte."""
    return text.translate(_LEFTOVER)


def escape_entities(text: str) -> str:
    """Escape &, <, > for Slack. Must run after control codes are gone."""
    text = text.replace("&", "&amp;")
    text = text.replace("<", "&lt;")
    return text.replace(">", "&gt;")


STAGES: tuple[Stage, ...] = (
    strip_colors,
    convert_bold,
    convert_italic,
    convert_underline,
    strip_leftover_codes,
    escape_entities,
)


def irc_to_slack(content: str) -> str:
    """Convert IRC formatting to Slack mrkdwn. Colors are stripped."""
    if not content:
        return content
    return apply_stages(content, STAGES)
