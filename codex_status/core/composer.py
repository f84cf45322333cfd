"""Status line composition."""

from __future__ import annotations

from datetime import datetime

from ..utils import now_local
from .fields import DEFAULT_ORDER, FieldContext
from .log_reader import SessionDetail, StatusReport
from .options import DisplayOptions

NO_DATA_PLACEHOLDER = "⚡ no data"
NO_SESSIONS_PLACEHOLDER = "⚡ no sessions"


def compose_line(
    detail: SessionDetail,
    options: DisplayOptions | None = None,
    now: datetime | None = None,
) -> str:
    """Render one session as a single status line.

    Fields render in the configured order (or DEFAULT_ORDER), empty ones
    are skipped and the rest are joined by single spaces as
    ``{label}{value}``.
    """
    options = options or DisplayOptions()
    ctx = FieldContext.build(detail, options, now or now_local())

    parts: list[str] = []
    for kind in options.format_order or DEFAULT_ORDER:
        value = kind.render(ctx)
        if not value:
            continue
        parts.append(f"{kind.label(options.label_overrides)}{value}")

    return " ".join(parts) if parts else NO_DATA_PLACEHOLDER


def build_report(
    status: StatusReport,
    options: DisplayOptions | None = None,
    now: datetime | None = None,
) -> str:
    """Render a discovery pass: its error, a placeholder, or the newest session."""
    if status.error:
        return status.error
    if not status.sessions:
        return NO_SESSIONS_PLACEHOLDER
    return compose_line(status.sessions[0], options, now)
