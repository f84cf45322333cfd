"""Rollout log discovery."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

ROLLOUT_PREFIX = "rollout-"
ROLLOUT_SUFFIX = ".jsonl"


def default_sessions_dir() -> Path:
    """Return the Codex sessions dir. Honors CODEX_STATUS_HOME, defaults to ~/.codex/sessions."""
    env = os.environ.get("CODEX_STATUS_HOME")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".codex" / "sessions"


@dataclass(frozen=True)
class SessionLogRef:
    """One candidate rollout log."""

    path: Path
    modified_at: datetime


def find_session_logs(base_dir: Path, limit: int | None = None) -> list[SessionLogRef]:
    """Find rollout logs under base_dir, newest first, capped at limit.

    A missing base directory (or subdirectory) yields no sessions rather than
    an error. Files that vanish between listing and stat are skipped.
    """
    sessions: list[SessionLogRef] = []

    for dirpath, _dirnames, filenames in os.walk(base_dir):
        for name in filenames:
            if not (name.startswith(ROLLOUT_PREFIX) and name.endswith(ROLLOUT_SUFFIX)):
                continue
            path = Path(dirpath) / name
            try:
                stats = path.stat()
            except OSError as exc:
                logger.debug("Skipping %s: %s", path, exc)
                continue
            if not path.is_file():
                continue
            sessions.append(
                SessionLogRef(
                    path=path,
                    modified_at=datetime.fromtimestamp(stats.st_mtime).astimezone(),
                )
            )

    sessions.sort(key=lambda s: s.modified_at, reverse=True)
    if limit is not None and limit > 0:
        return sessions[:limit]
    return sessions
