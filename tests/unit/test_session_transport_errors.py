from __future__ import annotations

import io
from pathlib import Path

import pytest

from procctl.dispatch import Dispatcher, TransportError
from procctl.registry import ProcedureRegistry
from procctl.server import main


class _FailingReader(io.StringIO):
    def __init__(self, error: BaseException) -> None:
        super().__init__()
        self._error = error

    def readline(self, size: int | None = -1) -> str:  # type: ignore[override]
        raise self._error


class _FailingWriter(io.StringIO):
    def __init__(self, fail_after: int) -> None:
        super().__init__()
        self._remaining = fail_after

    def write(self, text: str) -> int:
        if self._remaining < 1:
            raise BrokenPipeError("peer closed")
        self._remaining -= 1
        return super().write(text)


def _dispatcher(banner: str = "ready") -> Dispatcher:
    registry = ProcedureRegistry()
    registry.register(lambda a, b: a + b, "add", params=("int64", "int64"))
    return Dispatcher(registry, banner=banner)


def test_read_os_error_becomes_transport_error() -> None:
    cause = OSError("connection reset")

    with pytest.raises(TransportError) as excinfo:
        _dispatcher().serve(_FailingReader(cause), io.StringIO())

    assert excinfo.value.operation == "read"
    assert excinfo.value.cause is cause


def test_read_decode_error_becomes_transport_error() -> None:
    cause = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

    with pytest.raises(TransportError) as excinfo:
        _dispatcher().serve(_FailingReader(cause), io.StringIO())

    assert excinfo.value.operation == "read"
    assert excinfo.value.cause is cause


def test_banner_write_failure_becomes_transport_error() -> None:
    with pytest.raises(TransportError) as excinfo:
        _dispatcher().serve(io.StringIO("add 1 2\n"), _FailingWriter(fail_after=0))

    assert excinfo.value.operation == "write"
    assert isinstance(excinfo.value.cause, BrokenPipeError)


def test_response_write_failure_becomes_transport_error() -> None:
    writer = _FailingWriter(fail_after=1)

    with pytest.raises(TransportError) as excinfo:
        _dispatcher().serve(io.StringIO("add 1 2\nadd 3 4\n"), writer)

    assert isinstance(excinfo.value.cause, BrokenPipeError)
    assert writer.getvalue() == "# ready\n"


def test_main_exits_with_status_one_on_transport_error(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("sys.stdin", _FailingReader(OSError("stdin closed")))

    status = main(["--stdio"])

    assert status == 1
    assert "read failed: stdin closed" in capsys.readouterr().err
