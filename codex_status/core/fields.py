"""Status line field registry.

Each ``FieldKind`` is an independent display field: a default label (mostly
an icon) and a derivation from the accumulated session state to a display
string. A derivation returning None or an empty string omits the field.
Derivations treat missing or malformed nested data as "no value"; ``render``
also guards against anything unexpected so a bad log line can never break
the status line.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING

from ..utils import (
    format_ago_short,
    format_compact,
    format_percent,
    from_epoch,
    strip_model_prefix,
    to_number,
    trim_path,
    truncate_to_terminal,
)
from ..utils.text_width import display_width
from .log_reader import Activity, SessionDetail
from .review import Verdict
from .sound import SoundMode

if TYPE_CHECKING:
    from .options import DisplayOptions

logger = logging.getLogger(__name__)

REVIEW_TEXT_COLUMNS = 40


class ConfigError(Exception):
    """Invalid display configuration, e.g. an unknown field name."""


class FieldKind(Enum):
    """A named status line field."""
    SOUND = "sound"
    TIME = "time"
    ACTIVITY = "activity"
    DAILY = "daily"
    WEEKLY = "weekly"
    RECENT = "recent"
    TOTAL = "total"
    ERROR = "error"
    MODEL = "model"
    APPROVAL = "approval"
    SANDBOX = "sandbox"
    DIRECTORY = "directory"
    REVIEW = "review"

    @property
    def default_label(self) -> str:
        return _DEFAULT_LABELS[self]

    def label(self, overrides: dict[FieldKind, str] | None = None) -> str:
        """Effective label: an override (even an empty one) beats the default."""
        if overrides and self in overrides:
            return overrides[self]
        return self.default_label

    def render(self, ctx: FieldContext) -> str | None:
        """Derive this field's display value, or None to omit it."""
        try:
            value = _DERIVATIONS[self](ctx)
        except Exception:
            logger.warning("Field %s failed to render", self.value, exc_info=True)
            return None
        return value or None


# Status fields first, identity and location last
DEFAULT_ORDER: tuple[FieldKind, ...] = (
    FieldKind.SOUND,
    FieldKind.TIME,
    FieldKind.ACTIVITY,
    FieldKind.DAILY,
    FieldKind.WEEKLY,
    FieldKind.RECENT,
    FieldKind.TOTAL,
    FieldKind.ERROR,
    FieldKind.MODEL,
    FieldKind.APPROVAL,
    FieldKind.SANDBOX,
    FieldKind.DIRECTORY,
)

_DEFAULT_LABELS: dict[FieldKind, str] = {
    FieldKind.SOUND: "",
    FieldKind.TIME: "🕒",
    FieldKind.ACTIVITY: "",
    FieldKind.DAILY: "🕔",
    FieldKind.WEEKLY: "🗓",
    FieldKind.RECENT: "🔄",
    FieldKind.TOTAL: "📦",
    FieldKind.ERROR: "❌",
    FieldKind.MODEL: "🤖",
    FieldKind.APPROVAL: "🛂",
    FieldKind.SANDBOX: "🧪",
    FieldKind.DIRECTORY: "📁",
    FieldKind.REVIEW: "",
}

FIELD_ALIASES: dict[str, FieldKind] = {
    "sound": FieldKind.SOUND,
    "audio": FieldKind.SOUND,
    "mute": FieldKind.SOUND,
    "time": FieldKind.TIME,
    "age": FieldKind.TIME,
    "ago": FieldKind.TIME,
    "updated": FieldKind.TIME,
    "activity": FieldKind.ACTIVITY,
    "state": FieldKind.ACTIVITY,
    "status": FieldKind.ACTIVITY,
    "daily": FieldKind.DAILY,
    "primary": FieldKind.DAILY,
    "5h": FieldKind.DAILY,
    "weekly": FieldKind.WEEKLY,
    "secondary": FieldKind.WEEKLY,
    "week": FieldKind.WEEKLY,
    "recent": FieldKind.RECENT,
    "last": FieldKind.RECENT,
    "last-tokens": FieldKind.RECENT,
    "total": FieldKind.TOTAL,
    "tokens": FieldKind.TOTAL,
    "total-tokens": FieldKind.TOTAL,
    "error": FieldKind.ERROR,
    "err": FieldKind.ERROR,
    "model": FieldKind.MODEL,
    "approval": FieldKind.APPROVAL,
    "approval-policy": FieldKind.APPROVAL,
    "policy": FieldKind.APPROVAL,
    "sandbox": FieldKind.SANDBOX,
    "directory": FieldKind.DIRECTORY,
    "dir": FieldKind.DIRECTORY,
    "cwd": FieldKind.DIRECTORY,
    "path": FieldKind.DIRECTORY,
    "review": FieldKind.REVIEW,
    "verdict": FieldKind.REVIEW,
}

ACTIVITY_ICONS: dict[Activity, str] = {
    Activity.USER: "👤",
    Activity.ASSISTANT: "💬",
    Activity.TOOL: "🔧",
    Activity.THINKING: "🧠",
    Activity.REVIEW: "🔍",
}

VERDICT_ICONS: dict[Verdict | None, str] = {
    Verdict.CORRECT: "✅",
    Verdict.INCORRECT: "❌",
    Verdict.UNSURE: "❓",
    None: "📝",
}

SOUND_ON_GLYPH = "🔊"
SOUND_MUTED_GLYPH = "🔇"
NETWORK_BLOCKED_GLYPH = "🚫"


def resolve_field(name: FieldKind | str) -> FieldKind:
    """Resolve a field name or alias (case-insensitive) to its FieldKind."""
    if isinstance(name, FieldKind):
        return name
    if not isinstance(name, str):
        raise ConfigError(f"Unknown field: {name!r}")
    key = name.strip().lower().replace("_", "-").replace(" ", "-")
    try:
        return FIELD_ALIASES[key]
    except KeyError:
        known = ", ".join(kind.value for kind in FieldKind)
        raise ConfigError(f"Unknown field '{name}'. Known fields: {known}") from None


def resolve_format_order(names: Iterable[FieldKind | str]) -> tuple[FieldKind, ...]:
    """Resolve and deduplicate a field order, keeping first occurrences."""
    order: list[FieldKind] = []
    for name in names:
        kind = resolve_field(name)
        if kind not in order:
            order.append(kind)
    return tuple(order)


@dataclass
class FieldContext:
    """Everything a field derivation may look at."""

    detail: SessionDetail
    minimal: bool
    context: dict
    token_info: dict | None
    rate_limits: dict | None
    options: DisplayOptions
    now: datetime
    token_time: datetime | None = None

    @classmethod
    def build(cls, detail: SessionDetail, options: DisplayOptions, now: datetime) -> FieldContext:
        state = detail.state
        context = state.last_context if isinstance(state.last_context, dict) else {}
        return cls(
            detail=detail,
            minimal=options.minimal,
            context=context,
            token_info=state.token_info,
            rate_limits=state.rate_limits,
            options=options,
            now=now if now.tzinfo else now.astimezone(),
            token_time=state.last_token_count_time,
        )


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.astimezone()


def _text(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


def reset_target(window: dict, now: datetime, recorded_at: datetime | None = None) -> datetime | None:
    """When a rate-limit window resets, from a countdown or an absolute epoch.

    A countdown runs from the moment the usage snapshot was recorded; ``now``
    stands in only when the snapshot carries no timestamp.
    """
    seconds = to_number(window.get("resets_in_seconds"))
    if seconds is not None:
        return (recorded_at or now) + timedelta(seconds=seconds)
    epoch = to_number(window.get("resets_at"))
    if epoch is not None:
        return from_epoch(epoch)
    return None


def format_reset(target: datetime, now: datetime) -> str:
    """HH:MM for a reset later today, MM/DD otherwise."""
    local = _aware(target).astimezone(now.tzinfo)
    if local.date() == now.date():
        return local.strftime("%H:%M")
    return local.strftime("%m/%d")


def _sound(ctx: FieldContext) -> str | None:
    options = ctx.options
    if not options.show_sound or options.sound is SoundMode.OFF:
        return None
    return SOUND_MUTED_GLYPH if options.muted else SOUND_ON_GLYPH


def _time(ctx: FieldContext) -> str | None:
    modified = ctx.detail.log.modified_at
    if modified is None:
        return None
    return format_ago_short((ctx.now - _aware(modified)).total_seconds())


def _activity(ctx: FieldContext) -> str | None:
    if ctx.minimal:
        return None
    return ACTIVITY_ICONS.get(ctx.detail.state.last_activity)


def _rate_window(ctx: FieldContext, name: str) -> str | None:
    if not ctx.rate_limits:
        return None
    window = ctx.rate_limits.get(name)
    if not isinstance(window, dict):
        return None
    used = format_percent(window.get("used_percent"))
    target = reset_target(window, ctx.now, ctx.token_time)
    if target is None:
        return used
    return f"{used}/{format_reset(target, ctx.now)}"


def _daily(ctx: FieldContext) -> str | None:
    return _rate_window(ctx, "primary")


def _weekly(ctx: FieldContext) -> str | None:
    return _rate_window(ctx, "secondary")


def _usage_total(info: dict | None, key: str) -> float | None:
    if not info:
        return None
    usage = info.get(key)
    if not isinstance(usage, dict):
        return None
    total = usage.get("total_tokens")
    if isinstance(total, bool) or not isinstance(total, (int, float)):
        return None
    return total


def _recent(ctx: FieldContext) -> str | None:
    if ctx.detail.state.error:
        return None
    total = _usage_total(ctx.token_info, "last_token_usage")
    # "n/a" tells "not reported" apart from a real zero
    return format_compact(total) if total is not None else "n/a"


def _total(ctx: FieldContext) -> str | None:
    total = _usage_total(ctx.token_info, "total_token_usage")
    return format_compact(total) if total is not None else None


def _error(ctx: FieldContext) -> str | None:
    return ctx.detail.state.error


def _model(ctx: FieldContext) -> str | None:
    model = _text(ctx.context.get("model"))
    return strip_model_prefix(model) if model else None


def _approval(ctx: FieldContext) -> str | None:
    if ctx.minimal:
        return None
    return _text(ctx.context.get("approval_policy"))


def _sandbox(ctx: FieldContext) -> str | None:
    if ctx.minimal:
        return None
    policy = ctx.context.get("sandbox_policy")
    if isinstance(policy, str):
        return policy or None
    if not isinstance(policy, dict):
        return None
    mode = _text(policy.get("mode")) or _text(policy.get("type"))
    if not mode:
        return None
    if policy.get("network_access") is False:
        mode += NETWORK_BLOCKED_GLYPH
    return mode


def _directory(ctx: FieldContext) -> str | None:
    if ctx.minimal:
        return None
    cwd = _text(ctx.context.get("cwd"))
    return trim_path(cwd) if cwd else None


def _review(ctx: FieldContext) -> str | None:
    review = ctx.detail.state.last_review
    if review is None:
        return None
    icon = VERDICT_ICONS.get(review.verdict, VERDICT_ICONS[None])
    text = (review.text or "").strip().splitlines()
    if not text:
        return icon
    first_line = text[0]
    if display_width(first_line) > REVIEW_TEXT_COLUMNS:
        first_line = truncate_to_terminal(first_line, REVIEW_TEXT_COLUMNS - 1) + "…"
    return f"{icon}{first_line}"


_DERIVATIONS: dict[FieldKind, Callable[[FieldContext], str | None]] = {
    FieldKind.SOUND: _sound,
    FieldKind.TIME: _time,
    FieldKind.ACTIVITY: _activity,
    FieldKind.DAILY: _daily,
    FieldKind.WEEKLY: _weekly,
    FieldKind.RECENT: _recent,
    FieldKind.TOTAL: _total,
    FieldKind.ERROR: _error,
    FieldKind.MODEL: _model,
    FieldKind.APPROVAL: _approval,
    FieldKind.SANDBOX: _sandbox,
    FieldKind.DIRECTORY: _directory,
    FieldKind.REVIEW: _review,
}

_missing = set(FieldKind) - set(_DERIVATIONS)
if _missing:
    raise RuntimeError(f"Fields without a derivation: {sorted(kind.value for kind in _missing)}")
