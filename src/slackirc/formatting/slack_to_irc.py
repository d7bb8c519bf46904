"""Convert Slack mrkdwn to IRC text with control codes.

Each stage is a pure ``str -> str`` function; ``slack_to_irc`` applies them in
order. Angle-bracket markup (channels, links, mentions) is rewritten before
emphasis because its ``<``, ``|`` and ``>`` must not be read as emphasis.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from slackirc.core.constants import BOLD, ITALIC

Stage = Callable[[str], str]

# URL pattern - emphasis markers inside URLs are left alone
_URL_PATTERN = re.compile(
    r"https?://[^\s<>\[\]()]+(?:\([^\s<>\[\]()]*\)|[^\s<>\[\]()])*",
    re.IGNORECASE,
)
_PLACEHOLDER = re.compile(r"\x00(\d+)\x00")
_EMPHASIS_MARKERS = "*_~"

_CHANNEL_NAMED = re.compile(r"<#[A-Z0-9]+\|([^>]+)>")
_CHANNEL_BARE = re.compile(r"<#[A-Z0-9]+>")
_LINK_NAMED = re.compile(r"<(https?://[^|>]+)\|([^>]+)>")
_LINK_BARE = re.compile(r"<(https?://[^>]+)>")
_MAILTO_NAMED = re.compile(r"<mailto:([^|>]+)\|([^>]+)>")
_MAILTO_BARE = re.compile(r"<mailto:([^>]+)>")
_SPECIAL = re.compile(r"<!(here|channel|everyone)(?:\|[^>]*)?>")
_SUBTEAM_NAMED = re.compile(r"<!subteam\^[A-Z0-9]+\|@?([^>]+)>")
_SUBTEAM_BARE = re.compile(r"<!subteam\^[A-Z0-9]+>")
_DATE = re.compile(r"<!date\^[0-9]+\^[^|]+\|([^>]+)>")

_BOLD = re.compile(r"\*((?:[^*]|\\\*)+)\*")
_ITALIC = re.compile(r"_((?:[^_]|\\_)+)_")
_STRIKE = re.compile(r"~((?:[^~]|\\~)+)~")
_CODE_BLOCK = re.compile(r"```([^`]+)```")
_INLINE_CODE = re.compile(r"`([^`]+)`")


def convert_channel_refs(text: str) -> str:
    """<#C123|general> -> #general, <#C123> -> #channel."""
    text = _CHANNEL_NAMED.sub(r"#\1", text)
    return _CHANNEL_BARE.sub("#channel", text)


def convert_links(text: str) -> str:
    """<url|label> -> label (url), <url> -> url."""
    text = _LINK_NAMED.sub(r"\2 (\1)", text)
    return _LINK_BARE.sub(r"\1", text)


def convert_mailto(text: str) -> str:
    """<mailto:addr|label> -> label <addr>, <mailto:addr> -> addr."""
    text = _MAILTO_NAMED.sub(r"\2 <\1>", text)
    return _MAILTO_BARE.sub(r"\1", text)


def convert_special_mentions(text: str) -> str:
    """<!here>, <!channel>, <!everyone> -> @here, @channel, @everyone."""
    return _SPECIAL.sub(r"@\1", text)


def convert_subteams(text: str) -> str:
    """<!subteam^S1|handle> -> @handle, <!subteam^S1> -> @group."""
    text = _SUBTEAM_NAMED.sub(r"@\1", text)
    return _SUBTEAM_BARE.sub("@group", text)


def convert_dates(text: str) -> str:
    """<!date^epoch^format|fallback> -> fallback."""
    return _DATE.sub(r"\1", text)


def convert_bold(text: str) -> str:
    return _BOLD.sub(lambda m: f"{BOLD}{m.group(1)}{BOLD}", text)


def convert_italic(text: str) -> str:
    return _ITALIC.sub(lambda m: f"{ITALIC}{m.group(1)}{ITALIC}", text)


def strip_strikethrough(text: str) -> str:
    # IRC has no widely supported strikethrough
    return _STRIKE.sub(r"\1", text)


def strip_code(text: str) -> str:
    """Drop ``` and ` delimiters, keeping the code itself."""
    text = _CODE_BLOCK.sub(r"\1", text)
    return _INLINE_CODE.sub(r"\1", text)


def unescape_entities(text: str) -> str:
    text = text.replace("&amp;", "&")
    text = text.replace("&lt;", "<")
    return text.replace("&gt;", ">")


MARKUP_STAGES: tuple[Stage, ...] = (
    convert_channel_refs,
    convert_links,
    convert_mailto,
    convert_special_mentions,
    convert_subteams,
    convert_dates,
)

EMPHASIS_STAGES: tuple[Stage, ...] = (
    convert_bold,
    convert_italic,
    strip_strikethrough,
    strip_code,
)


def apply_stages(text: str, stages: Sequence[Stage]) -> str:
    """Run text through stages left to right."""
    for stage in stages:
        text = stage(text)
    return text


def _apply_outside_urls(text: str, stages: Sequence[Stage]) -> str:
    """Apply stages with every URL swapped for an opaque placeholder."""
    urls: list[str] = []

    def _stash(m: re.Match[str]) -> str:
        # trailing markers close the enclosing span, e.g. *<https://x>*
        url = m.group(0)
        body = url.rstrip(_EMPHASIS_MARKERS)
        urls.append(body)
        return f"\x00{len(urls) - 1}\x00{url[len(body):]}"

    masked = _URL_PATTERN.sub(_stash, text)
    converted = apply_stages(masked, stages)
    if not urls:
        return converted

    def _restore(m: re.Match[str]) -> str:
        index = int(m.group(1))
        return urls[index] if index < len(urls) else m.group(0)

    return _PLACEHOLDER.sub(_restore, converted)


def slack_to_irc(content: str) -> str:
    """Convert Slack mrkdwn to IRC formatting. Total: never raises on str input."""
    if not content:
        return content
    content = apply_stages(content, MARKUP_STAGES)
    content = _apply_outside_urls(content, EMPHASIS_STAGES)
    return unescape_entities(content)
