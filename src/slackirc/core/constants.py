"""Protocol constants: origins and IRC control bytes."""

from __future__ import annotations

from typing import Literal

ProtocolOrigin = Literal["slack", "irc"]
ORIGINS: tuple[ProtocolOrigin, ...] = ("slack", "irc")

# IRC control codes
BOLD = "\x02"
COLOR = "\x03"
RESET = "\x0f"
REVERSE = "\x16"
ITALIC = "\x1d"
UNDERLINE = "\x1f"

# Nicks the IRC server uses for service notices; never relayed
IGNORED_IRC_NICKS = frozenset({"****"})
