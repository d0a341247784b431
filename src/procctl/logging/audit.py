"""Structured JSONL audit log of dispatched commands."""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path


@dataclass(slots=True, frozen=True)
class AuditEvent:
    """Sanitized record of one dispatched line."""

    timestamp: str
    session_id: str
    command: str
    ok: bool
    error_code: str | None
    metadata: dict[str, object]


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def command_metadata(argument_count: int, elapsed_seconds: float) -> dict[str, object]:
    """Describe a call without recording argument values."""
    return {
        "argument_count": argument_count,
        "elapsed_ms": round(elapsed_seconds * 1000, 3),
    }


class JsonlAuditLogger:
    """Append-only JSONL audit logger shared by concurrent sessions."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        """Return on-disk JSONL path."""
        return self._path

    def append(self, event: AuditEvent) -> None:
        """Append one event as a single JSON object line."""
        line = json.dumps(asdict(event), sort_keys=True) + "\n"
        with self._lock, self._path.open("a", encoding="utf-8") as handle:
            handle.write(line)

    def read(self, limit: int = 50) -> list[dict[str, object]]:
        """Read the most recent events."""
        if limit < 1:
            return []
        entries: list[dict[str, object]] = []
        if not self._path.exists():
            return entries
        with self._lock, self._path.open("r", encoding="utf-8") as handle:
            for line in handle:
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    record = json.loads(stripped)
                except json.JSONDecodeError:
                    continue
                entries.append(record)
        if len(entries) <= limit:
            return entries
        return entries[-limit:]
