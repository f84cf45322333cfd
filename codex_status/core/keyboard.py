"""Single-key input for watch mode."""

from __future__ import annotations

import logging
import os
import select
import sys
import threading
from collections.abc import Callable
from typing import TextIO

logger = logging.getLogger(__name__)

try:
    import termios
    import tty
except ImportError:  # Windows has no termios; key toggles are unavailable there
    termios = None
    tty = None


class KeyReader:
    """Reads single key presses from a terminal on a background thread.

    The terminal is switched to cbreak mode while the reader runs and
    restored on ``stop``. When the stream is not a terminal the reader does
    nothing.
    """

    def __init__(self, on_key: Callable[[str], None], stream: TextIO | None = None, poll_seconds: float = 0.2):
        self.on_key = on_key
        self.stream = stream or sys.stdin
        self.poll_seconds = poll_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._saved_attrs = None

    @property
    def available(self) -> bool:
        if termios is None:
            return False
        try:
            return self.stream.isatty()
        except (AttributeError, ValueError):
            return False

    def start(self) -> bool:
        """Start reading keys; returns False when no terminal is attached."""
        if not self.available or self._thread is not None:
            return False
        fd = self.stream.fileno()
        try:
            self._saved_attrs = termios.tcgetattr(fd)
            tty.setcbreak(fd)
        except termios.error as exc:
            logger.warning("Cannot switch terminal to cbreak mode: %s", exc)
            self._saved_attrs = None
            return False

        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, args=(fd,), name="codex-status-keys", daemon=True)
        self._thread.start()
        return True

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=1.0)
        self._thread = None
        if self._saved_attrs is not None:
            try:
                termios.tcsetattr(self.stream.fileno(), termios.TCSADRAIN, self._saved_attrs)
            except (termios.error, ValueError) as exc:
                logger.warning("Failed to restore terminal settings: %s", exc)
            self._saved_attrs = None

    def _loop(self, fd: int) -> None:
        while not self._stop.is_set():
            try:
                ready, _, _ = select.select([fd], [], [], self.poll_seconds)
            except (OSError, ValueError):
                return
            if not ready:
                continue
            try:
                data = os.read(fd, 1)
            except OSError:
                return
            if not data:
                return
            key = data.decode("utf-8", errors="ignore")
            if not key:
                continue
            try:
                self.on_key(key)
            except Exception:
                logger.exception("Key handler failed for %r", key)

    def __enter__(self) -> "KeyReader":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
