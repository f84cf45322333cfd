"""Pytest configuration and shared fixtures."""

import json
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from codex_status.core.discovery import SessionLogRef
from codex_status.core.log_reader import SessionDetail, SessionState


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    path = Path(tempfile.mkdtemp())
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def fake_home(monkeypatch):
    """Point the home directory somewhere that never prefixes test paths."""
    monkeypatch.setenv("HOME", "/home/tester")
    return "/home/tester"


@pytest.fixture
def now():
    """A fixed, timezone-aware 'now' early enough in the day for same-day resets."""
    return datetime(2025, 10, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def write_rollout(temp_dir):
    """Write a rollout log from a list of records (dicts or raw strings)."""

    def _write(records, name="rollout-2025-10-01T10-00-00-session.jsonl", subdir="2025/10/01"):
        directory = temp_dir / subdir
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        lines = [item if isinstance(item, str) else json.dumps(item) for item in records]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_detail(now):
    """Build a SessionDetail from state fields, modified at 'now'."""

    def _make(modified_at=None, **state_fields):
        log = SessionLogRef(path=Path("/fake/rollout-test.jsonl"), modified_at=modified_at or now)
        return SessionDetail(log=log, state=SessionState(**state_fields))

    return _make


@pytest.fixture
def sample_review_output():
    """Structured review output as Codex writes it on exiting review mode."""
    return {
        "findings": [
            {
                "title": "[P1] Guard against empty input",
                "body": "parse() indexes items[0] without checking the list.",
                "confidence_score": 0.8,
                "priority": 1,
                "code_location": {
                    "absolute_file_path": "/repo/app/parse.py",
                    "line_range": {"start": 10, "end": 12},
                },
            }
        ],
        "overall_correctness": "patch is incorrect",
        "overall_explanation": "Crashes when the input list is empty.",
        "overall_confidence_score": 0.7,
    }
