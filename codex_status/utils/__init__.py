"""Shared utilities for codex-status."""

from .datetime_utils import from_epoch, now_local, parse_iso
from .formatting import (
    format_ago_short,
    format_compact,
    format_duration,
    format_percent,
    strip_model_prefix,
    to_number,
    trim_path,
)
from .jsonl_parser import JSONLEntry, JSONLParser
from .text_width import char_width, display_width, truncate_to_terminal


# Lazy import for SessionLogWatcher to avoid watchdog dependency at import time
def __getattr__(name):
    if name in ("RolloutChangeHandler", "SessionLogWatcher"):
        from . import file_watcher
        return getattr(file_watcher, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "JSONLEntry",
    "JSONLParser",
    "RolloutChangeHandler",
    "SessionLogWatcher",
    "char_width",
    "display_width",
    "format_ago_short",
    "format_compact",
    "format_duration",
    "format_percent",
    "from_epoch",
    "now_local",
    "parse_iso",
    "strip_model_prefix",
    "to_number",
    "trim_path",
    "truncate_to_terminal",
]
