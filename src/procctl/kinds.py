"""Scalar parameter kinds and text-token coercion."""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import Final

INT64_MIN: Final[int] = -(2**63)
INT64_MAX: Final[int] = 2**63 - 1
UINT64_MAX: Final[int] = 2**64 - 1

TRUE_LITERALS: Final[frozenset[str]] = frozenset({"1", "t", "T", "TRUE", "true", "True"})
FALSE_LITERALS: Final[frozenset[str]] = frozenset({"0", "f", "F", "FALSE", "false", "False"})

SIGNED_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[+-]?[0-9]+$")
UNSIGNED_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[0-9]+$")
FLOAT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?$"
)
FLOAT_SPECIAL_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^[+-]?(?:inf|infinity|nan)$", re.IGNORECASE
)


class ParamKind(str, Enum):
    """Supported scalar parameter kinds."""

    BOOL = "bool"
    INT64 = "int64"
    UINT64 = "uint64"
    FLOAT64 = "float64"
    STRING = "string"


SUPPORTED_KINDS: Final[tuple[ParamKind, ...]] = tuple(ParamKind)

_PYTHON_TYPE_KINDS: Final[dict[type, ParamKind]] = {
    bool: ParamKind.BOOL,
    int: ParamKind.INT64,
    float: ParamKind.FLOAT64,
    str: ParamKind.STRING,
}


class UnsupportedKindError(ValueError):
    """Raised when a declared kind is not one of the supported scalar kinds."""

    def __init__(self, kind: object) -> None:
        super().__init__(f"unsupported kind {describe_kind(kind)}")
        self.kind = kind


class CoercionError(ValueError):
    """Raised when a text token cannot be parsed into the requested kind."""

    def __init__(self, kind: ParamKind, token: str, reason: str) -> None:
        super().__init__(f"expected {kind.value}, got {token!r} ({reason})")
        self.kind = kind
        self.token = token
        self.reason = reason


def describe_kind(kind: object) -> str:
    """Return a short human-readable label for a declared kind."""
    if isinstance(kind, ParamKind):
        return kind.value
    if isinstance(kind, str):
        return kind
    if isinstance(kind, type):
        return kind.__name__
    return repr(kind)


def normalize_kind(kind: object) -> ParamKind:
    """Map a declared kind onto a ParamKind or raise UnsupportedKindError."""
    if isinstance(kind, ParamKind):
        return kind
    if isinstance(kind, str):
        try:
            return ParamKind(kind)
        except ValueError:
            raise UnsupportedKindError(kind) from None
    if isinstance(kind, type) and kind in _PYTHON_TYPE_KINDS:
        return _PYTHON_TYPE_KINDS[kind]
    raise UnsupportedKindError(kind)


def coerce_token(kind: ParamKind, token: str) -> object:
    """Parse one argument token into a value of the given kind."""
    if kind is ParamKind.BOOL:
        return _parse_bool(token)
    if kind is ParamKind.INT64:
        return _parse_int(token, SIGNED_PATTERN, INT64_MIN, INT64_MAX, kind)
    if kind is ParamKind.UINT64:
        return _parse_int(token, UNSIGNED_PATTERN, 0, UINT64_MAX, kind)
    if kind is ParamKind.FLOAT64:
        return _parse_float(token)
    return token


def value_matches_kind(kind: ParamKind, value: object) -> bool:
    """Return True when an already-typed value fits the declared kind."""
    if kind is ParamKind.BOOL:
        return isinstance(value, bool)
    if kind is ParamKind.INT64:
        return isinstance(value, int) and not isinstance(value, bool) and (
            INT64_MIN <= value <= INT64_MAX
        )
    if kind is ParamKind.UINT64:
        return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= UINT64_MAX
    if kind is ParamKind.FLOAT64:
        return isinstance(value, float)
    return isinstance(value, str)


def _parse_bool(token: str) -> bool:
    if token in TRUE_LITERALS:
        return True
    if token in FALSE_LITERALS:
        return False
    raise CoercionError(ParamKind.BOOL, token, "not a boolean literal")


def _parse_int(
    token: str,
    pattern: re.Pattern[str],
    minimum: int,
    maximum: int,
    kind: ParamKind,
) -> int:
    if not pattern.fullmatch(token):
        raise CoercionError(kind, token, "invalid syntax")
    value = int(token, 10)
    if value < minimum or value > maximum:
        raise CoercionError(kind, token, "value out of range")
    return value


def _parse_float(token: str) -> float:
    if FLOAT_SPECIAL_PATTERN.fullmatch(token):
        return float(token)
    if not FLOAT_PATTERN.fullmatch(token):
        raise CoercionError(ParamKind.FLOAT64, token, "invalid syntax")
    value = float(token)
    if math.isinf(value):
        raise CoercionError(ParamKind.FLOAT64, token, "value out of range")
    return value
