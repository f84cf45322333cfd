"""Core business logic for codex-status."""

from .composer import NO_DATA_PLACEHOLDER, NO_SESSIONS_PLACEHOLDER, build_report, compose_line
from .discovery import SessionLogRef, default_sessions_dir, find_session_logs
from .fields import (
    DEFAULT_ORDER,
    ConfigError,
    FieldContext,
    FieldKind,
    resolve_field,
    resolve_format_order,
)
from .log_reader import (
    Activity,
    LogReader,
    SessionDetail,
    SessionState,
    StatusReport,
    gather_statuses,
    read_log,
    read_session,
)
from .options import DisplayOptions, StatusConfig, load_config
from .output import TerminalSink
from .review import (
    FindingLocation,
    ReviewFinding,
    ReviewRecord,
    Verdict,
    extract_tagged_review,
    merge_reviews,
    normalize_review,
)
from .sound import ReverbPreset, SoundMode, SoundPlayer
from .watch import ActivityTracker, WatchDriver, apply_key, is_quit_key

__all__ = [
    "Activity",
    "ActivityTracker",
    "ConfigError",
    "DEFAULT_ORDER",
    "DisplayOptions",
    "FieldContext",
    "FieldKind",
    "FindingLocation",
    "LogReader",
    "NO_DATA_PLACEHOLDER",
    "NO_SESSIONS_PLACEHOLDER",
    "ReverbPreset",
    "ReviewFinding",
    "ReviewRecord",
    "SessionDetail",
    "SessionLogRef",
    "SessionState",
    "SoundMode",
    "SoundPlayer",
    "StatusConfig",
    "StatusReport",
    "TerminalSink",
    "Verdict",
    "WatchDriver",
    "apply_key",
    "build_report",
    "compose_line",
    "default_sessions_dir",
    "extract_tagged_review",
    "find_session_logs",
    "gather_statuses",
    "is_quit_key",
    "load_config",
    "merge_reviews",
    "normalize_review",
    "read_log",
    "read_session",
    "resolve_field",
    "resolve_format_order",
]
