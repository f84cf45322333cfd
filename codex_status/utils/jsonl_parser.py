"""JSONL rollout log parser."""

import json
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from .datetime_utils import parse_iso


@dataclass
class JSONLEntry:
    """One record of a rollout log: ``{"timestamp", "type", "payload"}``."""

    data: dict
    line_number: int

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    @property
    def type(self) -> str | None:
        """Record type discriminator, e.g. ``turn_context`` or ``event_msg``."""
        value = self.data.get("type")
        return value if isinstance(value, str) else None

    @property
    def payload(self) -> dict:
        """Record payload, or an empty dict when it is missing or not an object."""
        value = self.data.get("payload")
        return value if isinstance(value, dict) else {}

    @property
    def timestamp(self) -> datetime | None:
        return parse_iso(self.data.get("timestamp"))


class JSONLParser:
    """Parser for JSONL (JSON Lines) files.

    Codex writes one JSON object per line to its rollout logs and keeps
    appending while a session is live, so a trailing partial line is normal.
    Blank lines, lines that are not valid JSON and JSON values that are not
    objects are skipped.

    I/O errors raised while opening or reading the file propagate to the
    caller.
    """

    def __init__(self, path: Path):
        self.path = path

    def parse(self) -> list[JSONLEntry]:
        """Parse the entire file and return all entries."""
        return list(self.iter_entries())

    def iter_entries(self) -> Iterator[JSONLEntry]:
        """Iterate over entries in file order."""
        with open(self.path, encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue

                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    # Skip malformed or partially written lines
                    continue

                if isinstance(data, dict):
                    yield JSONLEntry(data=data, line_number=line_num)
