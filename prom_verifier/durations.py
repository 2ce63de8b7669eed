"""Duration parsing and formatting for rule ``for`` values and CLI flags."""

from __future__ import annotations

import re
from datetime import timedelta

_UNIT_SECONDS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
    "w": 7 * 86400.0,
    "y": 365 * 86400.0,
}

# Two-letter units must come before their one-letter prefixes.
_TERM_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h|d|w|y)")


def parse_duration(raw: str | None) -> timedelta | None:
    """Parse a Go/Prometheus style duration such as ``5m`` or ``1h30m``.

    Returns None for empty, malformed or negative input. A bare ``0`` is
    accepted without a unit.

    Example:
        >>> parse_duration("1h30m")
        datetime.timedelta(seconds=5400)
        >>> parse_duration("5 minutes") is None
        True
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if text.startswith("+"):
        text = text[1:]
    if not text or text.startswith("-"):
        return None
    if text == "0":
        return timedelta(0)
    total = 0.0
    pos = 0
    while pos < len(text):
        match = _TERM_RE.match(text, pos)
        if not match:
            return None
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    try:
        duration = timedelta(seconds=total)
    except (OverflowError, ValueError):
        return None
    if total > 0 and duration == timedelta(0):
        # Sub-microsecond values must not collapse into "instant".
        return timedelta(microseconds=1)
    return duration


def format_duration(duration: timedelta) -> str:
    """Render a duration compactly, e.g. ``10m``, ``1h30m``, ``1m30.5s``."""
    total = duration.total_seconds()
    if total == 0:
        return "0s"
    sign = "-" if total < 0 else ""
    total = abs(total)
    if total < 1:
        return f"{sign}{total * 1000:g}ms"
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    parts: list[str] = []
    if hours:
        parts.append(f"{int(hours)}h")
    if minutes:
        parts.append(f"{int(minutes)}m")
    if seconds:
        parts.append(f"{round(seconds, 6):g}s")
    return sign + "".join(parts)
