"""Procedure registry and its registration errors."""

from .errors import (
    EmptyNameError,
    InvalidNameError,
    NameAlreadyRegisteredError,
    NilCallableError,
    NotAFunctionError,
    ProcedureCallError,
    RegistrationError,
    UnsupportedParameterKindError,
)
from .registry import RESERVED_NAMES, Procedure, ProcedureAdapter, ProcedureRegistry, build_adapter
from .rwlock import ReadWriteLock

__all__ = [
    "RESERVED_NAMES",
    "EmptyNameError",
    "InvalidNameError",
    "NameAlreadyRegisteredError",
    "NilCallableError",
    "NotAFunctionError",
    "Procedure",
    "ProcedureAdapter",
    "ProcedureCallError",
    "ProcedureRegistry",
    "ReadWriteLock",
    "RegistrationError",
    "UnsupportedParameterKindError",
    "build_adapter",
]
