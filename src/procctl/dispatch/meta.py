"""Reserved meta-commands recognized before procedure resolution."""

from __future__ import annotations

from collections.abc import Callable, Mapping

from procctl.dispatch.framing import DispatchError, Response, success_response
from procctl.dispatch.parsing import CommandLine
from procctl.registry import RESERVED_NAMES, Procedure

MetaHandler = Callable[[CommandLine, Mapping[str, Procedure]], Response]

USAGE = ("help [name]", "list", "quit", "<name> <args...>")

META_HANDLERS: dict[str, MetaHandler] = {}


def meta_command(name: str) -> Callable[[MetaHandler], MetaHandler]:
    """Bind a handler to one of the registry's reserved names."""
    if name not in RESERVED_NAMES:
        raise ValueError(f"{name!r} is not a reserved name")

    def decorator(handler: MetaHandler) -> MetaHandler:
        META_HANDLERS[name] = handler
        return handler

    return decorator


def is_meta_command(command: CommandLine) -> bool:
    """Return True when the leading token is a reserved meta-command."""
    return command.name in META_HANDLERS


def handle_meta(command: CommandLine, procedures: Mapping[str, Procedure]) -> Response:
    """Run a meta-command against a read-only view of the registry."""
    return META_HANDLERS[command.name](command, procedures)


def describe_procedure(procedure: Procedure) -> tuple[str, ...]:
    """Return the help tokens for one procedure."""
    return (
        procedure.name,
        *(kind.value for kind in procedure.params),
        "->",
        *procedure.returns,
        procedure.description,
    )


@meta_command("help")
def _help(command: CommandLine, procedures: Mapping[str, Procedure]) -> Response:
    if not command.arguments:
        return success_response(USAGE)
    if len(command.arguments) > 1:
        raise DispatchError(
            code="ARGUMENT_COUNT",
            message=f"help expects at most 1 argument, got {len(command.arguments)}",
        )
    target = command.arguments[0]
    procedure = procedures.get(target)
    if procedure is None:
        raise DispatchError(code="UNKNOWN_COMMAND", message=f"unknown command: {target}")
    return success_response(describe_procedure(procedure))


@meta_command("list")
def _list(command: CommandLine, procedures: Mapping[str, Procedure]) -> Response:
    _expect_no_arguments(command)
    return success_response(tuple(procedures.keys()))


@meta_command("quit")
def _quit(command: CommandLine, procedures: Mapping[str, Procedure]) -> Response:
    _expect_no_arguments(command)
    return success_response(("bye",), closes_session=True)


def _expect_no_arguments(command: CommandLine) -> None:
    if command.arguments:
        raise DispatchError(
            code="ARGUMENT_COUNT",
            message=f"{command.name} expects 0 arguments, got {len(command.arguments)}",
        )
