"""Expose named procedures over a line-oriented text protocol."""

from procctl.dispatch import Dispatcher, Response, TransportError, parse_response
from procctl.kinds import ParamKind
from procctl.registry import Procedure, ProcedureRegistry, RegistrationError

__version__ = "0.1.0"

__all__ = [
    "Dispatcher",
    "ParamKind",
    "Procedure",
    "ProcedureRegistry",
    "RegistrationError",
    "Response",
    "TransportError",
    "__version__",
    "parse_response",
]
