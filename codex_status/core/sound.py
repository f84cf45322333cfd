"""Alert sound playback.

Sound requests are advisory: playback runs in a detached player process and
any failure is logged, never raised.
"""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess
import sys
from enum import Enum
from pathlib import Path
from typing import TextIO

logger = logging.getLogger(__name__)


class SoundMode(Enum):
    """Which activity transitions request a sound."""
    OFF = "off"
    ALL = "all"
    SOME = "some"
    ASSISTANT = "assistant"


class ReverbPreset(Enum):
    """Reverb preset forwarded to the player."""
    NONE = "none"
    SUBTLE = "subtle"
    DEFAULT = "default"
    LUSH = "lush"


REVERB_CYCLE = (ReverbPreset.NONE, ReverbPreset.SUBTLE, ReverbPreset.DEFAULT, ReverbPreset.LUSH)

# Per-platform alert sounds, tried in order
_SOUND_FILES = {
    "Darwin": {
        "assistant": [Path("/System/Library/Sounds/Glass.aiff")],
        "other": [Path("/System/Library/Sounds/Tink.aiff")],
    },
    "Linux": {
        "assistant": [
            Path("/usr/share/sounds/freedesktop/stereo/complete.oga"),
            Path("/usr/share/sounds/freedesktop/stereo/message.oga"),
        ],
        "other": [
            Path("/usr/share/sounds/freedesktop/stereo/message.oga"),
            Path("/usr/share/sounds/freedesktop/stereo/bell.oga"),
        ],
    },
}


class SoundPlayer:
    """Plays alert sounds through the platform's command-line player.

    The resolved player command for each sound kind is cached on the
    instance, so one player should be created per process and passed to
    whoever triggers sounds.
    """

    def __init__(self, system: str | None = None, bell_stream: TextIO | None = None):
        self.system = system or platform.system()
        self.bell_stream = bell_stream or sys.stderr
        self._commands: dict[str, list[str] | None] = {}

    def _resolve(self, kind: str) -> list[str] | None:
        if kind in self._commands:
            return self._commands[kind]

        command: list[str] | None = None
        candidates = _SOUND_FILES.get(self.system, {}).get(kind, [])
        sound_file = next((path for path in candidates if path.exists()), None)
        if sound_file is not None:
            if self.system == "Darwin" and shutil.which("afplay"):
                command = ["afplay", str(sound_file)]
            elif shutil.which("paplay"):
                command = ["paplay", str(sound_file)]
            elif shutil.which("aplay") and sound_file.suffix == ".wav":
                command = ["aplay", "-q", str(sound_file)]

        self._commands[kind] = command
        return command

    def _volume_args(self, command: list[str], volume: int) -> list[str]:
        level = max(1, min(100, volume))
        if command[0] == "afplay":
            return ["-v", f"{level / 100:.2f}"]
        if command[0] == "paplay":
            return [f"--volume={int(65536 * level / 100)}"]
        return []

    def play(
        self,
        activity: str,
        mode: SoundMode,
        volume: int = 60,
        reverb: ReverbPreset = ReverbPreset.DEFAULT,
    ) -> None:
        """Request an alert for a new activity of the given kind."""
        if mode is SoundMode.OFF:
            return

        kind = "assistant" if activity == "assistant" else "other"
        command = self._resolve(kind)
        logger.debug(
            "Sound request activity=%s mode=%s volume=%s reverb=%s player=%s",
            activity,
            mode.value,
            volume,
            reverb.value,
            command[0] if command else "bell",
        )

        if command is None:
            self._bell()
            return

        args = [command[0], *self._volume_args(command, volume), *command[1:]]
        try:
            subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            logger.warning("Failed to start sound player %s: %s", command[0], exc)
            self._commands[kind] = None
            self._bell()

    def _bell(self) -> None:
        try:
            self.bell_stream.write("\a")
            self.bell_stream.flush()
        except (OSError, ValueError) as exc:
            logger.debug("Terminal bell failed: %s", exc)
