"""Request line parsing and positional argument coercion."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from procctl.dispatch.framing import DispatchError
from procctl.kinds import CoercionError, ParamKind, coerce_token
from procctl.registry import Procedure


@dataclass(slots=True, frozen=True)
class CommandLine:
    """Whitespace-split request line."""

    name: str
    arguments: tuple[str, ...]


class ArgumentCoercionError(DispatchError):
    """A token could not be parsed into the kind declared at its position."""

    def __init__(self, position: int, expected: ParamKind, token: str, reason: str) -> None:
        super().__init__(
            code="BAD_ARGUMENT",
            message=f"argument {position}: expected {expected.value}, got {token!r} ({reason})",
        )
        self.position = position
        self.expected = expected
        self.token = token


def split_line(line: str) -> CommandLine | None:
    """Split a raw line into name and argument tokens; None for blank lines."""
    tokens = line.split()
    if not tokens:
        return None
    return CommandLine(name=tokens[0], arguments=tuple(tokens[1:]))


def check_arity(procedure: Procedure, arguments: Sequence[str]) -> None:
    """Raise ARGUMENT_COUNT when the token count differs from the declared arity."""
    if len(arguments) != procedure.arity:
        raise DispatchError(
            code="ARGUMENT_COUNT",
            message=(
                f"{procedure.name} expects {procedure.arity} "
                f"argument{'s' if procedure.arity != 1 else ''}, got {len(arguments)}"
            ),
        )


def coerce_arguments(procedure: Procedure, arguments: Sequence[str]) -> list[object]:
    """Coerce tokens positionally into the procedure's parameter kinds."""
    check_arity(procedure, arguments)
    values: list[object] = []
    for position, (kind, token) in enumerate(
        zip(procedure.params, arguments, strict=True), start=1
    ):
        try:
            values.append(coerce_token(kind, token))
        except CoercionError as error:
            raise ArgumentCoercionError(
                position=position, expected=kind, token=token, reason=error.reason
            ) from error
    return values
