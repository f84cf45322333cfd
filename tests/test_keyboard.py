"""Tests for watch mode key input."""

import io

from codex_status.core.keyboard import KeyReader


def test_reader_is_inert_without_a_terminal() -> None:
    keys = []
    reader = KeyReader(keys.append, stream=io.StringIO())

    assert reader.available is False
    assert reader.start() is False

    reader.stop()
    assert keys == []


def test_reader_as_context_manager_without_a_terminal() -> None:
    with KeyReader(lambda key: None, stream=io.StringIO()) as reader:
        assert reader._thread is None
