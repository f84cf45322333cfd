"""Status line output."""

from __future__ import annotations

import shutil
import sys
import threading
from typing import TextIO

from ..utils import truncate_to_terminal

CLEAR_SCREEN = "\x1b[2J\x1b[H"


class TerminalSink:
    """Writes one newline-terminated status line at a time.

    Lines are clipped to the terminal width. When ``clear`` is set and the
    stream is a terminal, the screen is cleared before each line. Writes are
    serialized so redraws from other threads never interleave.
    """

    def __init__(self, stream: TextIO | None = None, clear: bool = False, columns: int | None = None):
        self.stream = stream or sys.stdout
        self.clear = clear
        self._columns = columns
        self._lock = threading.Lock()

    def _isatty(self) -> bool:
        isatty = getattr(self.stream, "isatty", None)
        try:
            return bool(isatty and isatty())
        except ValueError:
            return False

    @property
    def columns(self) -> int | None:
        """Declared width, else the terminal's width, else None (no clipping)."""
        if self._columns is not None:
            return self._columns
        if self._isatty():
            return shutil.get_terminal_size().columns
        return None

    def emit(self, line: str) -> None:
        text = truncate_to_terminal(line, self.columns)
        with self._lock:
            if self.clear and self._isatty():
                self.stream.write(CLEAR_SCREEN)
            self.stream.write(f"{text}\n")
            self.stream.flush()
