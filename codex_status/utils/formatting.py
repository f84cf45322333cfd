"""Formatting helpers for durations, token counts, paths and model names."""

from __future__ import annotations

import math
import os
from pathlib import Path

MODEL_PREFIXES = ("gpt-",)

_DURATION_UNITS = (
    ("d", 24 * 60 * 60),
    ("h", 60 * 60),
    ("m", 60),
    ("s", 1),
)

_COMPACT_UNITS = (
    ("", 1),
    ("K", 1_000),
    ("M", 1_000_000),
    ("B", 1_000_000_000),
    ("T", 1_000_000_000_000),
)


def to_number(value: object) -> float | None:
    """Coerce ints, floats and numeric strings to a float; anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def format_duration(seconds: float | None, max_units: int = 2) -> str:
    """Format seconds as the largest non-zero units, e.g. '2d 4h' or '3h'."""
    if seconds is None or math.isnan(seconds):
        return "unknown"
    remaining = max(0, int(seconds))
    parts: list[str] = []
    for label, size in _DURATION_UNITS:
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count}{label}")
        if len(parts) >= max_units:
            break
    return " ".join(parts) if parts else "0s"


def format_ago_short(seconds: float | None) -> str:
    """Format an age as 'now' under five seconds, else its largest unit."""
    if seconds is None or math.isnan(seconds):
        return "n/a"
    if seconds < 5:
        return "now"
    return format_duration(seconds, max_units=1)


def _round_half_up(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def format_compact(value: object) -> str:
    """Format a count in compact notation: 1234 -> '1.2K', 1500000 -> '1.5M'."""
    number = to_number(value) if not isinstance(value, str) else None
    if number is None:
        return "n/a"

    sign = "-" if number < 0 else ""
    magnitude = abs(number)

    index = 0
    for i, (_, size) in enumerate(_COMPACT_UNITS):
        if magnitude >= size:
            index = i

    scaled = _round_half_up(magnitude / _COMPACT_UNITS[index][1])
    # 999_950 rounds to 1000.0K, which reads better as 1M
    if scaled >= 1000 and index + 1 < len(_COMPACT_UNITS):
        index += 1
        scaled = _round_half_up(magnitude / _COMPACT_UNITS[index][1])

    text = f"{scaled:.1f}".rstrip("0").rstrip(".")
    return f"{sign}{text}{_COMPACT_UNITS[index][0]}"


def format_percent(value: object) -> str:
    """Format a usage percentage without a trailing '.0'."""
    number = to_number(value)
    if number is None:
        return "n/a"
    if number.is_integer():
        return f"{int(number)}%"
    return f"{number:.1f}".rstrip("0").rstrip(".") + "%"


def trim_path(path: str | None, home: str | None = None) -> str:
    """Shorten a working directory for display.

    Strips the home directory prefix and a leading ``dev`` segment, so
    ``~/dev/acme/api`` becomes ``acme/api``. Returns '.' when nothing is left.
    """
    if not path:
        return ""
    home = home if home is not None else str(Path.home())
    result = path
    if home and (result == home or result.startswith(home.rstrip(os.sep) + os.sep)):
        result = result[len(home.rstrip(os.sep)):]
    result = result.lstrip(os.sep)
    parts = result.split(os.sep)
    if len(parts) > 1 and parts[0] == "dev":
        result = os.sep.join(parts[1:])
    return result or "."


def strip_model_prefix(model: str) -> str:
    """Drop the vendor prefix from a model id: 'gpt-5-codex' -> '5-codex'."""
    for prefix in MODEL_PREFIXES:
        if model.startswith(prefix) and len(model) > len(prefix):
            return model[len(prefix):]
    return model
