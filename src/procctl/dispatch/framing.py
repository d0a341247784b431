"""Response line framing.

Success lines are ``OK`` followed by the rendered return values joined with
:func:`shlex.join`, so a client recovers the values with :func:`shlex.split`.
Error lines are ``ERR <CODE> <message>``. Lines starting with ``#`` carry the
banner and are ignored by clients.
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence
from dataclasses import dataclass, field

OK_TOKEN = "OK"
ERR_TOKEN = "ERR"
COMMENT_PREFIX = "#"


class DispatchError(Exception):
    """Per-command failure rendered back to the session as an ERR line."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(slots=True, frozen=True)
class Response:
    """One decoded or about-to-be-encoded response line."""

    ok: bool
    values: tuple[str, ...] = field(default_factory=tuple)
    error_code: str | None = None
    error_message: str | None = None
    closes_session: bool = False

    def encode(self) -> str:
        """Return the wire line without its terminator."""
        if not self.ok:
            return f"{ERR_TOKEN} {self.error_code} {self.error_message}"
        if not self.values:
            return OK_TOKEN
        return f"{OK_TOKEN} {shlex.join(self.values)}"


def render_value(value: object) -> str:
    """Render one return value as text."""
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


def success_response(values: Sequence[object], closes_session: bool = False) -> Response:
    """Build a success response from raw return values."""
    return Response(
        ok=True,
        values=tuple(_escape_line_breaks(render_value(value)) for value in values),
        closes_session=closes_session,
    )


def _escape_line_breaks(text: str) -> str:
    # A response is exactly one line.
    return text.replace("\r", "\\r").replace("\n", "\\n")


def error_response(code: str, message: str) -> Response:
    """Build an error response; newlines in the message are flattened."""
    flattened = " ".join(message.split())
    return Response(ok=False, error_code=code, error_message=flattened)


def parse_response(line: str) -> Response:
    """Decode one response line as written by a session."""
    stripped = line.strip()
    if stripped == OK_TOKEN:
        return Response(ok=True)
    if stripped.startswith(f"{OK_TOKEN} "):
        return Response(ok=True, values=tuple(shlex.split(stripped[len(OK_TOKEN) + 1 :])))
    if stripped.startswith(f"{ERR_TOKEN} "):
        code, _, message = stripped[len(ERR_TOKEN) + 1 :].partition(" ")
        return Response(ok=False, error_code=code, error_message=message)
    raise ValueError(f"Not a response line: {line!r}")


def is_comment(line: str) -> bool:
    """Return True for banner/comment lines."""
    return line.lstrip().startswith(COMMENT_PREFIX)
