"""Rollout log reading.

A rollout log is folded into a single ``SessionState`` holding the final
value of each field. Scalar fields are last-write-wins in file order.
Reviews are the exception: a review cycle accumulates partial results from
agent messages and the exit event, and the exit event's own fields take
precedence while the partials fill its gaps.

Timestamps are assumed to be append-ordered. ``last_timestamp`` is simply
the latest parsed value; out-of-order records are not reordered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from ..utils import JSONLEntry, JSONLParser
from .discovery import SessionLogRef, find_session_logs
from .review import (
    SOURCE_AGENT_MESSAGE,
    SOURCE_EXIT_MESSAGE,
    SOURCE_REVIEW_OUTPUT,
    SOURCE_USER_ACTION,
    ReviewRecord,
    extract_tagged_review,
    merge_reviews,
    normalize_review,
)

logger = logging.getLogger(__name__)

TOOL_ITEM_TYPES = frozenset({"function_call", "custom_tool_call", "local_shell_call", "web_search_call"})


class Activity(Enum):
    """Classification of the most recent meaningful record."""
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    THINKING = "thinking"
    REVIEW = "review"


@dataclass
class SessionState:
    """Accumulated state of one rollout log."""

    last_context: dict | None = None
    last_token_count: dict | None = None
    last_token_count_time: datetime | None = None
    last_timestamp: datetime | None = None
    last_activity: Activity | None = None
    last_assistant_message_time: datetime | None = None
    last_review: ReviewRecord | None = None
    error: str | None = None

    @property
    def token_info(self) -> dict | None:
        """Token totals of the last usage snapshot."""
        if not self.last_token_count:
            return None
        info = self.last_token_count.get("info")
        return info if isinstance(info, dict) else None

    @property
    def rate_limits(self) -> dict | None:
        """Rate-limit windows of the last usage snapshot."""
        if not self.last_token_count:
            return None
        limits = self.last_token_count.get("rate_limits")
        return limits if isinstance(limits, dict) else None


@dataclass
class SessionDetail:
    """A discovered log together with its read result."""

    log: SessionLogRef
    state: SessionState = field(default_factory=SessionState)


@dataclass
class StatusReport:
    """Result of one discovery and read pass."""

    sessions: list[SessionDetail] = field(default_factory=list)
    error: str | None = None


def _message_text(payload: dict) -> str:
    """Concatenate the text parts of a response message."""
    content = payload.get("content")
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    parts: list[str] = []
    for entry in content:
        if isinstance(entry, dict):
            text = entry.get("text") or entry.get("input_text")
            if isinstance(text, str):
                parts.append(text)
        elif isinstance(entry, str):
            parts.append(entry)
    return "\n".join(parts)


class LogReader:
    """Folds rollout log records into a SessionState.

    One reader handles one pass over one file. ``feed`` can also be used
    directly with already-decoded records.
    """

    def __init__(self) -> None:
        self.state = SessionState()
        self._in_review = False
        self._pending_review: ReviewRecord | None = None
        self._review_cycle = 0
        self._last_review_cycle: int | None = None

    def read(self, path: Path) -> SessionState:
        """Read every record of the log at path."""
        for entry in JSONLParser(path).iter_entries():
            self.feed(entry)
        return self.state

    def feed(self, entry: JSONLEntry | dict) -> None:
        """Apply one record to the state."""
        if isinstance(entry, dict):
            entry = JSONLEntry(data=entry, line_number=0)

        timestamp = entry.timestamp
        if timestamp is not None:
            self.state.last_timestamp = timestamp

        record_type = entry.type
        payload = entry.payload
        if record_type == "turn_context":
            self.state.last_context = payload or None
        elif record_type == "event_msg":
            self._handle_event(payload, timestamp)
        elif record_type == "response_item":
            self._handle_response_item(payload, timestamp)

    def _handle_event(self, payload: dict, timestamp: datetime | None) -> None:
        event_type = payload.get("type")
        if event_type == "token_count":
            self.state.last_token_count = payload
            self.state.last_token_count_time = timestamp
        elif event_type == "entered_review_mode":
            self._in_review = True
            self._pending_review = None
            self._review_cycle += 1
        elif event_type == "agent_message":
            if self._in_review:
                update = normalize_review(
                    payload.get("message"),
                    source=SOURCE_AGENT_MESSAGE,
                    timestamp=timestamp,
                )
                self._pending_review = merge_reviews(self._pending_review, update)
        elif event_type == "exited_review_mode":
            self._handle_review_exit(payload, timestamp)

    def _handle_review_exit(self, payload: dict, timestamp: datetime | None) -> None:
        self._in_review = False
        final = normalize_review(
            payload.get("review_output"),
            source=SOURCE_REVIEW_OUTPUT,
            timestamp=timestamp,
        )
        review = merge_reviews(final, self._pending_review)
        self._pending_review = None
        if review is None and payload.get("message") is not None:
            review = normalize_review(
                payload.get("message"),
                source=SOURCE_EXIT_MESSAGE,
                timestamp=timestamp,
            )
        if review is not None:
            self._set_review(review)

    def _handle_response_item(self, payload: dict, timestamp: datetime | None) -> None:
        role = payload.get("role")
        item_type = payload.get("type")
        if role == "assistant":
            if timestamp is not None:
                self.state.last_assistant_message_time = timestamp
            self.state.last_activity = Activity.ASSISTANT
        elif role == "user":
            results = extract_tagged_review(_message_text(payload))
            review = None
            if results is not None:
                review = normalize_review(results, source=SOURCE_USER_ACTION, timestamp=timestamp)
            if review is not None:
                if self._last_review_cycle == self._review_cycle:
                    review = merge_reviews(self.state.last_review, review)
                self._set_review(review)
                # Outside review mode a tagged review closes its cycle
                if not self._in_review:
                    self._review_cycle += 1
            else:
                self.state.last_activity = Activity.USER
        elif item_type in TOOL_ITEM_TYPES:
            self.state.last_activity = Activity.TOOL
        elif item_type == "reasoning":
            self.state.last_activity = Activity.THINKING

    def _set_review(self, review: ReviewRecord) -> None:
        self.state.last_review = review
        self.state.last_activity = Activity.REVIEW
        self._last_review_cycle = self._review_cycle


def read_log(path: Path) -> SessionState:
    """Read a rollout log into a SessionState.

    Raises OSError (or UnicodeDecodeError) when the file cannot be read.
    """
    return LogReader().read(path)


def read_session(log: SessionLogRef) -> SessionDetail:
    """Read one discovered log, recording read failures on the detail."""
    try:
        state = read_log(log.path)
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Failed to read rollout log %s: %s", log.path, exc)
        message = exc.strerror if isinstance(exc, OSError) and exc.strerror else str(exc)
        state = SessionState(error=message)
    return SessionDetail(log=log, state=state)


def gather_statuses(base_dir: Path, limit: int | None = None) -> StatusReport:
    """Discover rollout logs and read each one.

    A failure reading one log is attached to that session and never aborts
    the batch.
    """
    logs = find_session_logs(base_dir, limit)
    if not logs:
        return StatusReport(error=f"No rollout logs found in {base_dir}")
    return StatusReport(sessions=[read_session(log) for log in logs])
