"""Tests for rollout log reading."""

import json
import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from codex_status.core.discovery import SessionLogRef
from codex_status.core.log_reader import (
    Activity,
    LogReader,
    gather_statuses,
    read_log,
    read_session,
)
from codex_status.core.review import (
    SOURCE_EXIT_MESSAGE,
    SOURCE_REVIEW_OUTPUT,
    SOURCE_USER_ACTION,
    Verdict,
)


def _ts(minute: int) -> str:
    return f"2025-10-01T10:{minute:02d}:00.000Z"


def turn_context(minute=0, **payload):
    return {"timestamp": _ts(minute), "type": "turn_context", "payload": payload}


def event(minute, event_type, **payload):
    return {"timestamp": _ts(minute), "type": "event_msg", "payload": {"type": event_type, **payload}}


def response_item(minute, **payload):
    return {"timestamp": _ts(minute), "type": "response_item", "payload": payload}


def message(minute, role, text):
    return response_item(minute, type="message", role=role, content=[{"type": "input_text", "text": text}])


def token_count(minute, last_total, total, primary=None):
    payload = {
        "info": {
            "last_token_usage": {"total_tokens": last_total},
            "total_token_usage": {"total_tokens": total},
        }
    }
    if primary is not None:
        payload["rate_limits"] = {"primary": primary}
    return event(minute, "token_count", **payload)


class TestLogReader:
    """Tests for LogReader record folding."""

    def test_last_context_and_token_count_win(self, write_rollout):
        """Test scalar fields hold the last value in file order."""
        path = write_rollout(
            [
                turn_context(0, model="gpt-4", cwd="/a"),
                token_count(1, 10, 10),
                turn_context(2, model="gpt-5-codex", cwd="/b"),
                token_count(3, 1234, 5000, primary={"used_percent": 12}),
            ]
        )

        state = read_log(path)

        assert state.last_context == {"model": "gpt-5-codex", "cwd": "/b"}
        assert state.token_info["last_token_usage"]["total_tokens"] == 1234
        assert state.rate_limits == {"primary": {"used_percent": 12}}
        assert state.last_timestamp == datetime(2025, 10, 1, 10, 3, tzinfo=timezone.utc)
        assert state.last_token_count_time == datetime(2025, 10, 1, 10, 3, tzinfo=timezone.utc)

    def test_malformed_lines_are_skipped(self, write_rollout):
        path = write_rollout(
            [
                turn_context(0, model="gpt-5"),
                "{not json",
                "",
                json.dumps([1, 2]),
                '{"timestamp": "2025-10-01T10:09:00Z", "type": "event_msg", "payl',
            ]
        )

        state = read_log(path)

        assert state.last_context == {"model": "gpt-5"}
        assert state.last_timestamp == datetime(2025, 10, 1, 10, 0, tzinfo=timezone.utc)

    def test_invalid_timestamps_are_ignored(self):
        reader = LogReader()
        reader.feed(turn_context(5, model="gpt-5"))
        reader.feed({"timestamp": "garbage", "type": "turn_context", "payload": {"model": "o3"}})

        assert reader.state.last_timestamp == datetime(2025, 10, 1, 10, 5, tzinfo=timezone.utc)
        assert reader.state.last_context == {"model": "o3"}

    def test_token_accessors_tolerate_malformed_payloads(self):
        reader = LogReader()
        reader.feed(event(1, "token_count", info="garbage", rate_limits=["x"]))

        assert reader.state.last_token_count is not None
        assert reader.state.token_info is None
        assert reader.state.rate_limits is None

    @pytest.mark.parametrize(
        "record,expected",
        [
            (message(1, "assistant", "Done."), Activity.ASSISTANT),
            (message(1, "user", "Please fix it"), Activity.USER),
            (response_item(1, type="function_call", name="shell"), Activity.TOOL),
            (response_item(1, type="local_shell_call"), Activity.TOOL),
            (response_item(1, type="reasoning", summary=[]), Activity.THINKING),
        ],
    )
    def test_activity_classification(self, record, expected):
        reader = LogReader()
        reader.feed(record)

        assert reader.state.last_activity is expected

    def test_assistant_message_time(self):
        reader = LogReader()
        reader.feed(message(1, "assistant", "first"))
        reader.feed(response_item(4, type="function_call"))
        reader.feed(message(7, "assistant", "second"))
        reader.feed(message(9, "user", "thanks"))

        assert reader.state.last_assistant_message_time == datetime(2025, 10, 1, 10, 7, tzinfo=timezone.utc)
        assert reader.state.last_activity is Activity.USER

    def test_unknown_records_only_move_the_timestamp(self):
        reader = LogReader()
        reader.feed(message(1, "assistant", "hi"))
        reader.feed({"timestamp": _ts(2), "type": "session_meta", "payload": {"id": "x"}})

        assert reader.state.last_activity is Activity.ASSISTANT
        assert reader.state.last_timestamp == datetime(2025, 10, 1, 10, 2, tzinfo=timezone.utc)

    def test_reading_twice_is_idempotent(self, write_rollout, sample_review_output):
        path = write_rollout(
            [
                turn_context(0, model="gpt-5"),
                event(1, "entered_review_mode"),
                event(2, "agent_message", message="partial"),
                event(3, "exited_review_mode", review_output=sample_review_output),
            ]
        )

        assert read_log(path) == read_log(path)


class TestReviewCycle:
    """Tests for review accumulation across a review cycle."""

    def test_exit_output_wins_and_partials_fill_gaps(self):
        """Test the exit event's fields take precedence over partials."""
        reader = LogReader()
        reader.feed(event(1, "entered_review_mode"))
        reader.feed(
            event(
                2,
                "agent_message",
                message=json.dumps(
                    {
                        "overall_correctness": "approve",
                        "overall_explanation": "pending explanation",
                        "findings": [{"title": "Partial finding"}],
                    }
                ),
            )
        )
        reader.feed(
            event(
                3,
                "exited_review_mode",
                review_output={"overall_explanation": "final", "findings": [{"title": "Final finding"}]},
            )
        )

        review = reader.state.last_review
        assert review.source == SOURCE_REVIEW_OUTPUT
        assert review.overall_explanation == "final"
        assert review.overall_correctness == "approve"
        assert review.verdict is Verdict.CORRECT
        assert [finding.title for finding in review.findings] == ["Final finding", "Partial finding"]
        assert reader.state.last_activity is Activity.REVIEW

    def test_repeated_findings_are_not_doubled(self, sample_review_output):
        reader = LogReader()
        reader.feed(event(1, "entered_review_mode"))
        reader.feed(event(2, "agent_message", message=json.dumps(sample_review_output)))
        reader.feed(event(3, "exited_review_mode", review_output=sample_review_output))

        assert len(reader.state.last_review.findings) == 1

    def test_exit_message_is_the_last_resort(self):
        reader = LogReader()
        reader.feed(event(1, "entered_review_mode"))
        reader.feed(event(2, "exited_review_mode", message="Review done"))

        review = reader.state.last_review
        assert review.source == SOURCE_EXIT_MESSAGE
        assert review.text == "Review done"

    def test_exit_without_content_leaves_no_review(self):
        reader = LogReader()
        reader.feed(message(1, "assistant", "hi"))
        reader.feed(event(2, "entered_review_mode"))
        reader.feed(event(3, "exited_review_mode"))

        assert reader.state.last_review is None
        assert reader.state.last_activity is Activity.ASSISTANT

    def test_agent_messages_outside_review_are_ignored(self):
        reader = LogReader()
        reader.feed(event(1, "agent_message", message="Just chatting"))
        reader.feed(event(2, "entered_review_mode"))
        reader.feed(event(3, "exited_review_mode"))

        assert reader.state.last_review is None

    def test_reentering_review_discards_pending_partials(self):
        reader = LogReader()
        reader.feed(event(1, "entered_review_mode"))
        reader.feed(event(2, "agent_message", message='{"findings": [{"title": "Stale"}]}'))
        reader.feed(event(3, "entered_review_mode"))
        reader.feed(event(4, "agent_message", message='{"findings": [{"title": "Fresh"}]}'))
        reader.feed(event(5, "exited_review_mode"))

        assert [finding.title for finding in reader.state.last_review.findings] == ["Fresh"]

    def test_tagged_review_in_same_cycle_merges(self):
        """Test a tagged user message fills gaps in the exit review."""
        reader = LogReader()
        reader.feed(event(1, "entered_review_mode"))
        reader.feed(event(2, "exited_review_mode", review_output={"overall_explanation": "From exit"}))
        reader.feed(
            message(
                3,
                "user",
                '<user_action><action>review</action><results>{"overall_correctness": "patch is incorrect"}</results></user_action>',
            )
        )

        review = reader.state.last_review
        assert review.source == SOURCE_REVIEW_OUTPUT
        assert review.overall_explanation == "From exit"
        assert review.verdict is Verdict.INCORRECT
        assert reader.state.last_activity is Activity.REVIEW

    def test_tagged_review_from_a_new_cycle_replaces(self):
        reader = LogReader()
        reader.feed(event(1, "entered_review_mode"))
        reader.feed(event(2, "exited_review_mode", review_output={"overall_explanation": "Old review"}))
        reader.feed(event(3, "entered_review_mode"))
        reader.feed(message(4, "user", "<action>review</action><results>Second pass is clean</results>"))

        review = reader.state.last_review
        assert review.source == SOURCE_USER_ACTION
        assert review.text == "Second pass is clean"

    def test_tagged_review_without_a_cycle(self):
        reader = LogReader()
        reader.feed(message(1, "user", "<action>review</action><results>LGTM</results>"))

        assert reader.state.last_review.source == SOURCE_USER_ACTION
        assert reader.state.last_activity is Activity.REVIEW

    def test_later_tagged_review_replaces_an_earlier_one(self):
        """Test tagged reviews outside review mode do not merge with each other."""
        reader = LogReader()
        reader.feed(message(1, "user", "<action>review</action><results>First review: ok</results>"))
        reader.feed(message(59, "user", "<action>review</action><results>Second review: needs changes</results>"))

        review = reader.state.last_review
        assert review.source == SOURCE_USER_ACTION
        assert review.text == "Second review: needs changes"


class TestReadSession:
    """Tests for per-session error isolation."""

    def test_missing_file_records_error(self, temp_dir):
        log = SessionLogRef(path=temp_dir / "rollout-gone.jsonl", modified_at=datetime.now(timezone.utc))

        detail = read_session(log)

        assert detail.log is log
        assert detail.state.error == "No such file or directory"

    def test_undecodable_file_records_error(self, temp_dir):
        path = temp_dir / "rollout-binary.jsonl"
        path.write_bytes(b'{"type": "turn_context"}\n\xff\xfe\xfa garbage\n')
        log = SessionLogRef(path=path, modified_at=datetime.now(timezone.utc))

        detail = read_session(log)

        assert detail.state.error
        assert detail.state.last_context is None


class TestGatherStatuses:
    """Tests for gather_statuses."""

    def test_no_logs(self, temp_dir):
        report = gather_statuses(temp_dir / "sessions")

        assert report.sessions == []
        assert report.error == f"No rollout logs found in {temp_dir / 'sessions'}"

    def test_newest_first_with_limit(self, write_rollout):
        older = write_rollout([turn_context(0, model="gpt-old")], name="rollout-a.jsonl")
        newer = write_rollout([turn_context(0, model="gpt-new")], name="rollout-b.jsonl", subdir="2025/10/02")
        os.utime(older, (1_700_000_000, 1_700_000_000))
        os.utime(newer, (1_700_000_600, 1_700_000_600))
        base_dir = Path(older).parents[3]

        report = gather_statuses(base_dir, limit=1)

        assert report.error is None
        assert len(report.sessions) == 1
        assert report.sessions[0].log.path == newer
        assert report.sessions[0].state.last_context == {"model": "gpt-new"}

    def test_one_bad_log_does_not_abort_the_batch(self, write_rollout):
        good = write_rollout([turn_context(0, model="gpt-5")], name="rollout-good.jsonl")
        bad = good.parent / "rollout-bad.jsonl"
        bad.write_bytes(b"\xff\xfe\xfa\n")
        os.utime(good, (1_700_000_000, 1_700_000_000))
        os.utime(bad, (1_700_000_600, 1_700_000_600))

        report = gather_statuses(good.parents[3])

        assert len(report.sessions) == 2
        assert report.sessions[0].state.error
        assert report.sessions[1].state.last_context == {"model": "gpt-5"}
