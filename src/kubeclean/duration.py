"""
Duration string helpers

Durations are written the way Kubernetes tooling writes them, e.g. "30s",
"5m", "1h30m" or "1.5h".
"""

import re
from datetime import timedelta

# Seconds per unit
_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION = re.compile(r"^[-+]?(?:(?:\d+\.?\d*|\.\d+)(?:ns|us|µs|ms|s|m|h))+$")


def parse_duration(text: str) -> timedelta:
    """Parse a duration string like '10m', '1h30m' or '250ms' into a timedelta.

    Raises ValueError if the string is not a valid duration.
    """
    if not isinstance(text, str):
        raise ValueError(f"invalid duration {text!r}: not a string")

    value = text.strip()
    if value in ("0", "+0", "-0"):
        return timedelta(0)
    if not _DURATION.match(value):
        raise ValueError(f"invalid duration {text!r}")

    sign = -1 if value.startswith("-") else 1
    seconds = sum(float(number) * _UNITS[unit] for number, unit in _COMPONENT.findall(value))
    try:
        return timedelta(seconds=sign * seconds)
    except OverflowError as e:
        raise ValueError(f"invalid duration {text!r}: out of range") from e


def format_duration(delta: timedelta) -> str:
    """Render a timedelta as a compact duration string, e.g. '1h30m0s'"""
    seconds = delta.total_seconds()
    sign = "-" if seconds < 0 else ""
    seconds = abs(seconds)

    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{sign}{int(hours)}h{int(minutes)}m{secs:g}s"
    if minutes:
        return f"{sign}{int(minutes)}m{secs:g}s"
    return f"{sign}{secs:g}s"
