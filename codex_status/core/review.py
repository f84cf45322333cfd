"""Review payload normalization and merging.

Codex reports review results in several shapes: a structured
``review_output`` object on the exit event, JSON or prose in agent messages
while review mode is active, and a tagged ``<action>review</action>`` block
echoed back in a user message. Everything is normalized into one
``ReviewRecord``.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any

from ..utils import parse_iso, to_number

SOURCE_REVIEW_OUTPUT = "review_output"
SOURCE_AGENT_MESSAGE = "agent_message"
SOURCE_EXIT_MESSAGE = "exit_message"
SOURCE_USER_ACTION = "user_action"

_ACTION_RE = re.compile(r"<action>(.*?)</action>", re.IGNORECASE | re.DOTALL)
_RESULTS_RE = re.compile(r"<results>(.*?)</results>", re.IGNORECASE | re.DOTALL)


class Verdict(Enum):
    """Overall review verdict derived from the correctness string."""
    CORRECT = "correct"
    INCORRECT = "incorrect"
    UNSURE = "unsure"


@dataclass(frozen=True)
class FindingLocation:
    """Code location a finding points at."""

    file: str | None = None
    start_line: int | None = None
    end_line: int | None = None


@dataclass(frozen=True)
class ReviewFinding:
    """A single issue raised by a review."""

    title: str | None = None
    body: str | None = None
    priority: int | None = None
    severity: str | None = None
    confidence: float | None = None
    location: FindingLocation | None = None


@dataclass
class ReviewRecord:
    """Normalized review result."""

    source: str | None = None
    summary: str | None = None
    overall_correctness: str | None = None
    overall_explanation: str | None = None
    overall_confidence: float | None = None
    findings: list[ReviewFinding] = field(default_factory=list)
    text: str | None = None
    verdict: Verdict | None = None
    timestamp: datetime | None = None
    raw: Any = None


def _first(data: dict, *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    text = text.strip()
    return text or None


def _to_int(value: Any) -> int | None:
    if isinstance(value, str):
        match = re.search(r"-?\d+", value)
        if not match:
            return None
        return int(match.group(0))
    number = to_number(value)
    return int(number) if number is not None else None


def _to_confidence(value: Any) -> float | None:
    number = to_number(value)
    if number is None or number < 0:
        return None
    if number <= 1:
        return number
    if number <= 100:
        return number / 100
    return None


def derive_verdict(correctness: str | None) -> Verdict | None:
    """Map a free-form correctness string to a verdict by keyword."""
    if not correctness:
        return None
    lowered = correctness.lower()
    # "incorrect" contains "correct", so negative keywords are checked first
    if any(word in lowered for word in ("incorrect", "reject", "changes")):
        return Verdict.INCORRECT
    if any(word in lowered for word in ("correct", "approve")):
        return Verdict.CORRECT
    if any(word in lowered for word in ("unsure", "uncertain", "follow-up")):
        return Verdict.UNSURE
    return None


def _normalize_location(item: dict) -> FindingLocation | None:
    code_location = item.get("code_location") or item.get("codeLocation")
    if isinstance(code_location, dict):
        line_range = code_location.get("line_range") or code_location.get("lineRange") or {}
        if not isinstance(line_range, dict):
            line_range = {}
        location = FindingLocation(
            file=_clean_text(_first(code_location, "absolute_file_path", "absoluteFilePath", "file", "path")),
            start_line=_to_int(line_range.get("start")),
            end_line=_to_int(line_range.get("end")),
        )
    else:
        raw = item.get("location")
        if isinstance(raw, str):
            raw = {"file": raw}
        if not isinstance(raw, dict):
            return None
        location = FindingLocation(
            file=_clean_text(_first(raw, "file", "path")),
            start_line=_to_int(_first(raw, "start_line", "startLine", "line")),
            end_line=_to_int(_first(raw, "end_line", "endLine")),
        )

    if location.file is None and location.start_line is None and location.end_line is None:
        return None
    return location


def normalize_finding(item: Any) -> ReviewFinding | None:
    """Normalize one finding entry, or None when it carries no content."""
    if isinstance(item, str):
        title = _clean_text(item)
        return ReviewFinding(title=title) if title else None
    if not isinstance(item, dict):
        return None

    finding = ReviewFinding(
        title=_clean_text(_first(item, "title", "name")),
        body=_clean_text(_first(item, "body", "description", "text")),
        priority=_to_int(item.get("priority")),
        severity=_clean_text(_first(item, "severity", "level")),
        confidence=_to_confidence(_first(item, "confidence_score", "confidenceScore", "confidence")),
        location=_normalize_location(item),
    )
    if finding.title is None and finding.body is None and finding.location is None:
        return None
    return finding


def _from_text(text: str, source: str, timestamp: datetime | None, raw: Any) -> ReviewRecord | None:
    cleaned = _clean_text(text)
    if cleaned is None:
        return None
    return ReviewRecord(
        source=source,
        summary=cleaned,
        overall_explanation=cleaned,
        text=cleaned,
        timestamp=timestamp,
        raw=raw,
    )


def _from_object(
    data: dict,
    fallback_text: str | None,
    source: str,
    timestamp: datetime | None,
    raw: Any,
) -> ReviewRecord | None:
    raw_findings = data.get("findings")
    findings: list[ReviewFinding] = []
    if isinstance(raw_findings, list):
        for item in raw_findings:
            finding = normalize_finding(item)
            if finding is not None:
                findings.append(finding)

    correctness = _clean_text(_first(data, "overall_correctness", "overallCorrectness"))
    explanation = _clean_text(_first(data, "overall_explanation", "overallExplanation"))
    confidence = _to_confidence(
        _first(
            data,
            "overall_confidence_score",
            "overall_confidence",
            "overallConfidenceScore",
            "overallConfidence",
        )
    )
    fallback = _clean_text(fallback_text)
    summary = _clean_text(data.get("summary")) or explanation or fallback

    text = summary
    if text is None and findings:
        text = findings[0].title or findings[0].body

    if not any((findings, correctness, explanation, confidence is not None, summary)):
        return None

    return ReviewRecord(
        source=source,
        summary=summary,
        overall_correctness=correctness,
        overall_explanation=explanation,
        overall_confidence=confidence,
        findings=findings,
        text=text,
        verdict=derive_verdict(correctness),
        timestamp=parse_iso(data.get("timestamp")) or timestamp,
        raw=raw,
    )


def normalize_review(
    payload: Any,
    fallback_text: str | None = None,
    source: str = SOURCE_REVIEW_OUTPUT,
    timestamp: datetime | None = None,
) -> ReviewRecord | None:
    """Normalize an arbitrary review payload into a ReviewRecord.

    Accepts a structured object, a JSON-encoded string, free text, or any
    other scalar (stringified). Returns None when no usable content exists.
    """
    if payload is None:
        if fallback_text is None:
            return None
        return _from_text(fallback_text, source, timestamp, fallback_text)

    if isinstance(payload, str):
        try:
            decoded = json.loads(payload)
        except json.JSONDecodeError:
            return _from_text(payload, source, timestamp, payload)
        if isinstance(decoded, list):
            decoded = {"findings": decoded}
        if isinstance(decoded, dict):
            return _from_object(decoded, fallback_text or payload, source, timestamp, payload)
        return _from_text(payload, source, timestamp, payload)

    if isinstance(payload, dict):
        return _from_object(payload, fallback_text, source, timestamp, payload)

    return _from_text(str(payload), source, timestamp, payload)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def merge_reviews(base: ReviewRecord | None, update: ReviewRecord | None) -> ReviewRecord | None:
    """Merge two partial reviews.

    Every populated field of ``base`` is kept; empty fields are filled from
    ``update``. Findings are concatenated base-first without repeating
    identical entries.
    """
    if base is None:
        return update
    if update is None:
        return base

    merged: dict[str, Any] = {}
    for item in fields(ReviewRecord):
        if item.name == "findings":
            continue
        current = getattr(base, item.name)
        merged[item.name] = getattr(update, item.name) if _is_empty(current) else current

    findings = list(base.findings)
    for finding in update.findings:
        if finding not in findings:
            findings.append(finding)

    return replace(base, findings=findings, **merged)


def extract_tagged_review(text: str) -> str | None:
    """Return the results block of a tagged review action, if any.

    Only blocks whose action tag reads "review" (case-insensitive, trimmed)
    count.
    """
    if not isinstance(text, str):
        return None
    action = _ACTION_RE.search(text)
    if not action or action.group(1).strip().lower() != "review":
        return None
    results = _RESULTS_RE.search(text)
    if not results:
        return None
    return results.group(1).strip()
