"""Line protocol: parsing, meta-commands, framing, and the session loop."""

from .framing import (
    DispatchError,
    Response,
    error_response,
    is_comment,
    parse_response,
    render_value,
    success_response,
)
from .meta import (
    META_HANDLERS,
    USAGE,
    describe_procedure,
    handle_meta,
    is_meta_command,
    meta_command,
)
from .parsing import ArgumentCoercionError, CommandLine, coerce_arguments, split_line
from .session import DEFAULT_BANNER, DEFAULT_MAX_LINE_BYTES, Dispatcher, TransportError

__all__ = [
    "DEFAULT_BANNER",
    "DEFAULT_MAX_LINE_BYTES",
    "META_HANDLERS",
    "USAGE",
    "ArgumentCoercionError",
    "CommandLine",
    "DispatchError",
    "Dispatcher",
    "Response",
    "TransportError",
    "coerce_arguments",
    "describe_procedure",
    "error_response",
    "handle_meta",
    "is_comment",
    "is_meta_command",
    "meta_command",
    "parse_response",
    "render_value",
    "split_line",
    "success_response",
]
