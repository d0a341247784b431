from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from procctl.dispatch import Dispatcher
from procctl.logging import JsonlAuditLogger
from procctl.registry import ProcedureRegistry


def _dispatcher(audit_path: Path) -> Dispatcher:
    registry = ProcedureRegistry()
    registry.register(lambda a, b: a + b, "add", params=("int64", "int64"))
    return Dispatcher(registry, audit_logger=JsonlAuditLogger(path=audit_path))


def test_audit_log_writes_jsonl_schema(tmp_path: Path) -> None:
    audit_path = tmp_path / ".procctl" / "audit.jsonl"
    dispatcher = _dispatcher(audit_path)

    dispatcher.serve(io.StringIO("add 3 4\nadd x 4\n\n"), io.StringIO())

    lines = audit_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    second = json.loads(lines[1])

    assert set(first.keys()) == {
        "command",
        "error_code",
        "metadata",
        "ok",
        "session_id",
        "timestamp",
    }
    assert first["command"] == "add"
    assert first["ok"] is True
    assert first["error_code"] is None
    assert first["session_id"] == "sess-000001"
    assert first["metadata"]["argument_count"] == 2
    assert second["ok"] is False
    assert second["error_code"] == "BAD_ARGUMENT"


def test_audit_log_never_records_argument_values(tmp_path: Path) -> None:
    audit_path = tmp_path / "audit.jsonl"
    dispatcher = _dispatcher(audit_path)

    dispatcher.handle_line("add 31337 4242")

    raw = audit_path.read_text(encoding="utf-8")
    assert "31337" not in raw
    assert "4242" not in raw


def test_read_returns_most_recent_entries(tmp_path: Path) -> None:
    audit_path = tmp_path / "audit.jsonl"
    dispatcher = _dispatcher(audit_path)
    for _ in range(5):
        dispatcher.handle_line("add 1 1")

    entries = JsonlAuditLogger(path=audit_path).read(limit=3)

    assert len(entries) == 3
    assert JsonlAuditLogger(path=audit_path).read(limit=0) == []


def test_unwritable_audit_log_does_not_end_session(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    audit_path = tmp_path / "audit.jsonl"
    audit_path.mkdir()
    dispatcher = _dispatcher(audit_path)
    out_stream = io.StringIO()

    dispatcher.serve(io.StringIO("add 1 2\nadd 2 2\n"), out_stream)

    assert out_stream.getvalue().splitlines()[1:] == ["OK 3", "OK 4"]
    assert "audit log write failed" in capsys.readouterr().err
