"""Stable 32-bit string hash shared by thread ids and avatar selection.

The arithmetic mirrors ``hash = (hash << 5) - hash + code`` with int32
wraparound over UTF-16 code units, so the values match ids that already
circulate on IRC.
"""

from __future__ import annotations

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _utf16_units(value: str) -> list[int]:
    data = value.encode("utf-16-le", errors="surrogatepass")
    return [int.from_bytes(data[i : i + 2], "little") for i in range(0, len(data), 2)]


def string_hash(value: str) -> int:
    """Return the signed 32-bit rolling hash of value."""
    h = 0
    for unit in _utf16_units(value):
        h = _to_int32((h << 5) - h + unit)
    return h


def to_base36(number: int) -> str:
    """Lowercase base-36 representation of a non-negative integer."""
    if number < 0:
        raise ValueError("number must be non-negative")
    if number == 0:
        return "0"
    digits: list[str] = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))
