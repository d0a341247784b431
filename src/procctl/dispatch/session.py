"""Line-oriented session loop dispatching commands to registered procedures."""

from __future__ import annotations

import socket
import sys
import threading
import time
from collections.abc import Mapping, Sequence
from typing import TextIO

from procctl.dispatch.framing import (
    COMMENT_PREFIX,
    DispatchError,
    Response,
    error_response,
    success_response,
)
from procctl.dispatch.meta import handle_meta, is_meta_command
from procctl.dispatch.parsing import CommandLine, coerce_arguments, split_line
from procctl.logging import AuditEvent, JsonlAuditLogger, command_metadata, utc_timestamp
from procctl.registry import Procedure, ProcedureCallError, ProcedureRegistry

DEFAULT_BANNER = "procctl ready; type 'help' for commands"
DEFAULT_MAX_LINE_BYTES = 4096
MAX_LOGGED_COMMAND_CHARS = 64


class TransportError(Exception):
    """Raised when reading from or writing to a session stream fails."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


class Dispatcher:
    """Serve sessions against one registry.

    A dispatcher is shared by every session of a server; each call to
    :meth:`serve` runs one session to completion on the calling thread.
    """

    def __init__(
        self,
        registry: ProcedureRegistry,
        banner: str = DEFAULT_BANNER,
        hold_registry_during_call: bool = True,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
        audit_logger: JsonlAuditLogger | None = None,
    ) -> None:
        self._registry = registry
        self._banner = banner
        self._hold_registry_during_call = hold_registry_during_call
        self._max_line_bytes = max_line_bytes
        self._audit_logger = audit_logger
        self._session_counter = 0
        self._counter_lock = threading.Lock()

    @property
    def registry(self) -> ProcedureRegistry:
        return self._registry

    def serve(self, in_stream: TextIO, out_stream: TextIO) -> None:
        """Process lines until end of input, ``quit``, or a transport failure.

        Returns normally on clean close; raises TransportError when the
        underlying stream fails. Reads are bounded by ``max_line_bytes``; the
        remainder of an oversized line is discarded in bounded chunks.
        """
        session_id = self.next_session_id()
        self._write_banner(out_stream)
        while True:
            raw_line = self._read_line(in_stream)
            if not raw_line:
                return
            if self._is_truncated(raw_line):
                self._discard_line_remainder(in_stream)
                response: Response | None = self._reject_oversized(raw_line, session_id)
            else:
                response = self.handle_line(raw_line, session_id=session_id)
            if response is None:
                continue
            self._write_line(out_stream, response.encode())
            if response.closes_session:
                return

    def serve_socket(self, conn: socket.socket) -> None:
        """Serve one session over a connected stream socket."""
        reader = conn.makefile("r", encoding="utf-8", errors="replace", newline=None)
        writer = conn.makefile("w", encoding="utf-8", newline="\n")
        try:
            self.serve(reader, writer)
        finally:
            reader.close()
            try:
                writer.close()
            except OSError:
                # Peer already gone; nothing left to flush.
                pass

    def handle_line(self, line: str, session_id: str = "local") -> Response | None:
        """Dispatch one raw line; returns None for blank lines."""
        stripped = line.strip()
        command = split_line(stripped)
        if command is None:
            return None
        started = time.perf_counter()
        try:
            response = self._dispatch(stripped, command)
        except DispatchError as error:
            response = error_response(error.code, error.message)
        self._log(session_id, command, response, time.perf_counter() - started)
        return response

    def next_session_id(self) -> str:
        with self._counter_lock:
            self._session_counter += 1
            return f"sess-{self._session_counter:06d}"

    def _read_line(self, in_stream: TextIO) -> str:
        try:
            return in_stream.readline(self._max_line_bytes + 1)
        except (OSError, UnicodeDecodeError) as error:
            raise TransportError("read", error) from error

    def _is_truncated(self, raw_line: str) -> bool:
        return len(raw_line) > self._max_line_bytes and not raw_line.endswith("\n")

    def _discard_line_remainder(self, in_stream: TextIO) -> None:
        while True:
            chunk = self._read_line(in_stream)
            if not chunk or chunk.endswith("\n"):
                return

    def _reject_oversized(self, raw_line: str, session_id: str) -> Response:
        command = split_line(raw_line) or CommandLine(name="", arguments=())
        response = error_response(
            "LINE_TOO_LONG", f"line exceeds the limit of {self._max_line_bytes} bytes"
        )
        self._log(session_id, command, response, 0.0)
        return response

    def _dispatch(self, stripped: str, command: CommandLine) -> Response:
        line_bytes = len(stripped.encode("utf-8"))
        if line_bytes > self._max_line_bytes:
            raise DispatchError(
                code="LINE_TOO_LONG",
                message=f"line is {line_bytes} bytes; limit is {self._max_line_bytes}",
            )
        if is_meta_command(command):
            with self._registry.snapshot() as procedures:
                return handle_meta(command, procedures)
        if self._hold_registry_during_call:
            with self._registry.snapshot() as procedures:
                procedure = _resolve(procedures, command.name)
                arguments = coerce_arguments(procedure, command.arguments)
                return _invoke(procedure, arguments)
        with self._registry.snapshot() as procedures:
            procedure = _resolve(procedures, command.name)
            arguments = coerce_arguments(procedure, command.arguments)
        return _invoke(procedure, arguments)

    def _write_banner(self, out_stream: TextIO) -> None:
        for banner_line in self._banner.splitlines():
            self._write_line(out_stream, f"{COMMENT_PREFIX} {banner_line}".rstrip())

    @staticmethod
    def _write_line(out_stream: TextIO, text: str) -> None:
        try:
            out_stream.write(f"{text}\n")
            out_stream.flush()
        except OSError as error:
            raise TransportError("write", error) from error

    def _log(
        self,
        session_id: str,
        command: CommandLine,
        response: Response,
        elapsed_seconds: float,
    ) -> None:
        if self._audit_logger is None:
            return
        event = AuditEvent(
            timestamp=utc_timestamp(),
            session_id=session_id,
            command=command.name[:MAX_LOGGED_COMMAND_CHARS],
            ok=response.ok,
            error_code=response.error_code,
            metadata=command_metadata(len(command.arguments), elapsed_seconds),
        )
        try:
            self._audit_logger.append(event)
        except OSError as error:
            sys.stderr.write(f"procctl: audit log write failed for {session_id}: {error}\n")


def _resolve(procedures: Mapping[str, Procedure], name: str) -> Procedure:
    procedure = procedures.get(name)
    if procedure is None:
        raise DispatchError(code="UNKNOWN_COMMAND", message=f"unknown command: {name}")
    return procedure


def _invoke(procedure: Procedure, arguments: Sequence[object]) -> Response:
    try:
        values = procedure.invoke(arguments)
    except ProcedureCallError as error:
        raise DispatchError(
            code="PROCEDURE_FAILED", message=f"{procedure.name}: {error}"
        ) from error
    try:
        return success_response(values)
    except Exception as error:
        raise DispatchError(
            code="PROCEDURE_FAILED",
            message=f"{procedure.name}: cannot render result: {type(error).__name__}",
        ) from error
