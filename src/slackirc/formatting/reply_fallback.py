"""Quote a Slack thread root into a single IRC line."""

# Long roots are cut so the quote does not drown the reply
MAX_QUOTE_CHARS = 120


def add_reply_fallback(content: str, quoted: str, *, author: str | None = None) -> str:
    """Format a thread reply for IRC: ``author: > quoted | reply``.

    IRC forbids newlines, so the quote is collapsed onto one line.
    """
    quoted_clean = " ".join(quoted.split())
    if not quoted_clean:
        return content
    if len(quoted_clean) > MAX_QUOTE_CHARS:
        quoted_clean = quoted_clean[: MAX_QUOTE_CHARS - 1].rstrip() + "…"
    if not quoted_clean.startswith(">"):
        quoted_clean = "> " + quoted_clean
    reply_part = f"{quoted_clean} | {content}"
    if author:
        return f"{author}: {reply_part}"
    return reply_part
