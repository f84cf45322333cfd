"""Rollout log change notifications for watch mode."""

import fnmatch
import logging
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

ROLLOUT_PATTERN = "rollout-*.jsonl"


class RolloutChangeHandler(FileSystemEventHandler):
    """Collapses bursts of rollout log writes into one callback.

    Codex appends to the live log many times per turn; every matching
    create or modify event restarts the debounce timer, and the callback
    fires once with the most recently touched path when the burst settles.
    """

    def __init__(
        self,
        callback: Callable[[Path], None],
        pattern: str = ROLLOUT_PATTERN,
        debounce_ms: int = 1000,
    ):
        super().__init__()
        self.callback = callback
        self.pattern = pattern
        self.debounce_ms = debounce_ms
        self._timer: threading.Timer | None = None
        self._latest: Path | None = None
        self._lock = threading.Lock()

    def matches(self, path: Path) -> bool:
        return fnmatch.fnmatch(path.name, self.pattern)

    def _schedule(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        path = Path(str(event.src_path))
        if not self.matches(path):
            return

        with self._lock:
            self._latest = path
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_ms / 1000.0, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            path, self._latest = self._latest, None
            self._timer = None
        if path is None:
            return
        try:
            self.callback(path)
        except Exception as exc:
            logger.warning("Refresh after change to %s failed: %s", path, exc)

    def cancel(self) -> None:
        """Forget a pending notification."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._latest = None

    def on_created(self, event: FileSystemEvent) -> None:
        self._schedule(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._schedule(event)


class SessionLogWatcher:
    """Watches a sessions directory tree for rollout log writes.

    Usage:
        with SessionLogWatcher(Path("~/.codex/sessions").expanduser(), on_change=print):
            ...
    """

    def __init__(self, base_dir: Path, on_change: Callable[[Path], None], debounce_ms: int = 1000):
        self.base_dir = base_dir
        self.handler = RolloutChangeHandler(on_change, debounce_ms=debounce_ms)
        self._observer: Observer | None = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        """Start the observer thread; the date subdirectories are watched recursively."""
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(self.handler, str(self.base_dir), recursive=True)
        observer.start()
        self._observer = observer
        logger.debug("Watching %s for rollout log changes", self.base_dir)

    def stop(self) -> None:
        self.handler.cancel()
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None

    def __enter__(self) -> "SessionLogWatcher":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
