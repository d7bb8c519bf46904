"""Split outbound text into IRC lines (no newlines, 512 byte limit)."""

from __future__ import annotations

# 512 bytes total minus ":nick!user@host PRIVMSG #channel :" and CRLF overhead
DEFAULT_MAX_BYTES = 450


def _decodable_prefix(chunk: bytes) -> bytes:
    """Trim chunk until it ends on a UTF-8 character boundary."""
    while chunk:
        try:
            chunk.decode("utf-8", errors="strict")
            return chunk
        except UnicodeDecodeError:
            chunk = chunk[:-1]
    return chunk


def split_irc_message(content: str, max_bytes: int = DEFAULT_MAX_BYTES) -> list[str]:
    """Split content into chunks at word boundaries, each <= max_bytes.

    Never splits in the middle of a UTF-8 multi-byte character.
    """
    if not content:
        return []
    encoded = content.encode("utf-8", errors="replace")
    if len(encoded) <= max_bytes:
        return [content]

    chunks: list[str] = []
    start = 0
    while start < len(encoded):
        chunk_bytes = _decodable_prefix(encoded[start : start + max_bytes])
        if not chunk_bytes:
            # Invalid UTF-8 at start; take one byte (decode will replace)
            chunk_bytes = encoded[start : start + 1]
        end = start + len(chunk_bytes)
        # Prefer breaking after the last space in the second half of the chunk
        if end < len(encoded):
            last_space = chunk_bytes.rfind(b" ")
            if last_space > max_bytes // 2:
                trimmed = _decodable_prefix(encoded[start : start + last_space + 1])
                if trimmed:
                    chunk_bytes = trimmed
                    end = start + len(chunk_bytes)
        chunks.append(chunk_bytes.decode("utf-8", errors="replace"))
        start = end
    return chunks


def format_irc_lines(sender: str, content: str, max_bytes: int = DEFAULT_MAX_BYTES) -> list[str]:
    """Render a relayed message as ``<sender> text`` lines ready for PRIVMSG.

    Every line of content gets the sender prefix; blank lines are dropped and
    long lines are split so prefix + chunk fits in max_bytes.
    """
    prefix = f"<{sender}> " if sender else ""
    budget = max(max_bytes - len(prefix.encode("utf-8")), 32)
    lines: list[str] = []
    for line in content.splitlines():
        if not line.strip():
            continue
        lines.extend(prefix + chunk for chunk in split_irc_message(line, max_bytes=budget))
    return lines
