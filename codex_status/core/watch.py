"""Watch mode: periodic refresh, sound triggers and key toggles."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from ..utils import now_local
from .composer import build_report
from .keyboard import KeyReader
from .log_reader import Activity, StatusReport, gather_statuses
from .options import DisplayOptions
from .output import TerminalSink
from .sound import REVERB_CYCLE, SoundMode, SoundPlayer

logger = logging.getLogger(__name__)

VOLUME_STEP = 10
QUIT_KEYS = frozenset({"q", "Q", "\x03"})


@dataclass
class ActivityTracker:
    """Detects activity transitions of one session and decides on sounds.

    The first observation only records the current state, so activity that
    was already there at startup never triggers a sound. Afterwards a
    strictly newer timestamp counts as a transition.
    """

    last_activity: Activity | None = None
    last_timestamp: datetime | None = None
    message_counter: int = 0
    initialized: bool = False

    def observe(self, activity: Activity | None, timestamp: datetime | None, mode: SoundMode) -> bool:
        """Record the latest state; return True when a sound should play."""
        if not self.initialized:
            self.last_activity = activity
            self.last_timestamp = timestamp
            self.initialized = True
            return False

        if timestamp is None:
            return False
        if self.last_timestamp is not None and timestamp <= self.last_timestamp:
            return False

        self.last_activity = activity
        self.last_timestamp = timestamp
        return self._should_sound(activity, mode)

    def _should_sound(self, activity: Activity | None, mode: SoundMode) -> bool:
        if mode is SoundMode.OFF or activity is None:
            return False
        if mode is SoundMode.ASSISTANT:
            return activity is Activity.ASSISTANT
        if mode is SoundMode.ALL:
            return activity is not Activity.USER

        # SOME: always for the assistant, never for the user, and every
        # second or third of everything else
        if activity is Activity.ASSISTANT:
            return True
        if activity is Activity.USER:
            return False
        self.message_counter += 1
        return self.message_counter % 2 == 0 or self.message_counter % 3 == 0


def apply_key(options: DisplayOptions, key: str) -> DisplayOptions:
    """Return the options after a key press; unknown keys change nothing."""
    if key in ("m", "M"):
        return options.model_copy(update={"muted": not options.muted})
    if key in ("r", "R"):
        index = REVERB_CYCLE.index(options.sound_reverb)
        return options.model_copy(update={"sound_reverb": REVERB_CYCLE[(index + 1) % len(REVERB_CYCLE)]})
    if key in ("+", "="):
        return options.model_copy(update={"sound_volume": min(100, options.sound_volume + VOLUME_STEP)})
    if key in ("-", "_"):
        return options.model_copy(update={"sound_volume": max(1, options.sound_volume - VOLUME_STEP)})
    return options


def is_quit_key(key: str) -> bool:
    return key in QUIT_KEYS


class WatchDriver:
    """Refreshes the status line on an interval until stopped.

    Refreshes never overlap: one that starts while another is still running
    is skipped. Key toggles redraw from the last fetched report without
    rescanning logs.
    """

    def __init__(
        self,
        base_dir: Path,
        options: DisplayOptions,
        sink: TerminalSink,
        interval: float = 15.0,
        limit: int = 1,
        player: SoundPlayer | None = None,
        gather: Callable[[Path, int], StatusReport] = gather_statuses,
        clock: Callable[[], datetime] = now_local,
        watch_files: bool = True,
        read_keys: bool = True,
    ):
        self.base_dir = base_dir
        self.options = options
        self.sink = sink
        self.interval = max(1.0, interval)
        self.limit = limit
        self.player = player
        self.watch_files = watch_files
        self.read_keys = read_keys
        self._gather = gather
        self._clock = clock
        self._refresh_lock = threading.Lock()
        self._stop = threading.Event()
        self._status: StatusReport | None = None
        self._trackers: dict[Path, ActivityTracker] = {}

    @property
    def status(self) -> StatusReport | None:
        """The most recently fetched report."""
        return self._status

    def refresh(self) -> bool:
        """Scan logs, check for sound triggers and redraw.

        Returns False when skipped because a refresh was already running.
        """
        if not self._refresh_lock.acquire(blocking=False):
            logger.debug("Refresh already in flight, skipping")
            return False
        try:
            status = self._gather(self.base_dir, self.limit)
            self._status = status
            self._check_sounds(status)
            self.redraw()
        finally:
            self._refresh_lock.release()
        return True

    def redraw(self) -> None:
        """Render the cached report with the current options."""
        status = self._status
        if status is None:
            return
        self.sink.emit(build_report(status, self.options, self._clock()))

    def handle_key(self, key: str) -> None:
        if is_quit_key(key):
            self.stop()
            return
        updated = apply_key(self.options, key)
        if updated != self.options:
            self.options = updated
            logger.debug(
                "Options updated: muted=%s reverb=%s volume=%s",
                updated.muted,
                updated.sound_reverb.value,
                updated.sound_volume,
            )
            self.redraw()

    def stop(self) -> None:
        self._stop.set()

    def _check_sounds(self, status: StatusReport) -> None:
        requested: Activity | None = None
        current = {detail.log.path for detail in status.sessions}
        for path in list(self._trackers):
            if path not in current:
                del self._trackers[path]
        for detail in status.sessions:
            if detail.state.error:
                continue
            tracker = self._trackers.setdefault(detail.log.path, ActivityTracker())
            activity = detail.state.last_activity
            if tracker.observe(activity, detail.state.last_timestamp, self.options.sound) and requested is None:
                requested = activity

        if requested is None:
            return
        if self.options.muted:
            logger.debug("Sound for %s suppressed while muted", requested.value)
            return
        if self.player is not None:
            self.player.play(
                requested.value,
                self.options.sound,
                self.options.sound_volume,
                self.options.sound_reverb,
            )

    def _safe_refresh(self) -> None:
        try:
            self.refresh()
        except Exception as exc:
            logger.error("Watch update failed: %s", exc)

    def _start_file_watcher(self):
        if not self.watch_files or not self.base_dir.is_dir():
            return None
        from ..utils.file_watcher import SessionLogWatcher

        watcher = SessionLogWatcher(self.base_dir, on_change=lambda path: self._safe_refresh())
        try:
            watcher.start()
        except OSError as exc:
            logger.warning("File watching unavailable for %s: %s", self.base_dir, exc)
            return None
        return watcher

    def run(self) -> None:
        """Refresh until stop(), a quit key or Ctrl-C."""
        self.refresh()
        watcher = self._start_file_watcher()
        keys = KeyReader(self.handle_key) if self.read_keys else None
        if keys is not None:
            keys.start()
        try:
            while not self._stop.wait(self.interval):
                self._safe_refresh()
        except KeyboardInterrupt:
            logger.debug("Interrupted, leaving watch mode")
        finally:
            if keys is not None:
                keys.stop()
            if watcher is not None:
                watcher.stop()
