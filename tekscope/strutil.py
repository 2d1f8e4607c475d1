"""String helpers for SCPI responses."""

from __future__ import annotations

import math
import re

_WHITESPACE = " \t\r\n"
_INT_RE = re.compile(r"[ \t\n\v\f\r]*([+-]?\d+)")
_FLOAT_RE = re.compile(
    r"[ \t\n\v\f\r]*([+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)
_LONG_MIN = -(2**31)
_LONG_MAX = 2**31 - 1


def trim_right(text: str) -> str:
    """Strip trailing spaces, tabs, CR and LF."""
    return text.rstrip(_WHITESPACE)


def trim(text: str) -> str:
    """Strip leading and trailing spaces, tabs, CR and LF."""
    return text.strip(_WHITESPACE)


def split(text: str, delim: str) -> list[str]:
    """Split on a delimiter; a trailing empty field is not produced."""
    parts = text.split(delim)
    if parts and parts[-1] == "":
        parts.pop()
    return parts


def hex_dump(data: bytes, max_bytes: int = 64) -> str:
    """Format up to max_bytes bytes as upper-case hex, appending "..." if cut."""
    out = "".join(f"{b:02X} " for b in data[:max_bytes])
    if len(data) > max_bytes:
        out += "..."
    return out


def parse_int(text: str) -> int:
    """Parse a leading decimal integer; raise ValueError if there is none."""
    match = _INT_RE.match(text)
    if not match:
        raise ValueError(f"not an integer: {text!r}")
    value = int(match.group(1))
    if not _LONG_MIN <= value <= _LONG_MAX:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def parse_double(text: str) -> float:
    """Parse a leading floating-point number; raise ValueError if there is none."""
    match = _FLOAT_RE.match(text)
    if not match:
        raise ValueError(f"not a number: {text!r}")
    literal = match.group(1)
    value = float(literal)
    if math.isinf(value) and "inf" not in literal.lower():
        raise ValueError(f"number out of range: {text!r}")
    return value