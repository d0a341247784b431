"""Concurrency-safe registry of named procedures."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final

from procctl.kinds import (
    SUPPORTED_KINDS,
    ParamKind,
    UnsupportedKindError,
    describe_kind,
    normalize_kind,
    value_matches_kind,
)
from procctl.registry.errors import (
    EmptyNameError,
    InvalidNameError,
    NameAlreadyRegisteredError,
    NilCallableError,
    NotAFunctionError,
    ProcedureCallError,
    RegistrationError,
    UnsupportedParameterKindError,
)
from procctl.registry.rwlock import ReadWriteLock

# Meta-command words are recognized before name resolution and would shadow a
# procedure of the same name.
RESERVED_NAMES: Final[frozenset[str]] = frozenset({"help", "list", "quit"})

ProcedureAdapter = Callable[[Sequence[object]], tuple[object, ...]]


@dataclass(slots=True, frozen=True)
class Procedure:
    """Immutable descriptor of one registered procedure."""

    name: str
    description: str
    params: tuple[ParamKind, ...]
    returns: tuple[str, ...]
    func: Callable[..., object]
    invoke: ProcedureAdapter

    @property
    def arity(self) -> int:
        return len(self.params)


def build_adapter(
    name: str, func: Callable[..., object], params: tuple[ParamKind, ...]
) -> ProcedureAdapter:
    """Pair a callable with a uniform sequence-in, tuple-out adapter."""

    def invoke(arguments: Sequence[object]) -> tuple[object, ...]:
        if len(arguments) != len(params):
            raise TypeError(f"{name} expects {len(params)} arguments, got {len(arguments)}")
        for position, (kind, value) in enumerate(zip(params, arguments, strict=True), start=1):
            if not value_matches_kind(kind, value):
                raise TypeError(f"{name} argument {position} is not a valid {kind.value}")
        try:
            result = func(*arguments)
        except Exception as error:
            raise ProcedureCallError(name, error) from error
        if result is None:
            return ()
        if isinstance(result, tuple):
            return result
        return (result,)

    return invoke


class ProcedureRegistry:
    """Name to procedure mapping with shared lookups and exclusive registration."""

    def __init__(self) -> None:
        self._procedures: dict[str, Procedure] = {}
        self._view: Mapping[str, Procedure] = MappingProxyType(self._procedures)
        self._lock = ReadWriteLock()

    @property
    def lock(self) -> ReadWriteLock:
        """Return the lock guarding the procedure map."""
        return self._lock

    def register(
        self,
        func: Callable[..., object] | None,
        name: str,
        description: str = "",
        params: Sequence[object] = (),
        returns: Sequence[object] = (),
    ) -> Procedure:
        """Validate and insert a procedure; the name must not already exist."""
        procedure = self._build_procedure(func, name, description, params, returns)
        with self._lock.exclusive():
            if name in self._procedures:
                raise NameAlreadyRegisteredError(name)
            self._procedures[name] = procedure
        return procedure

    def must_register(
        self,
        func: Callable[..., object] | None,
        name: str,
        description: str = "",
        params: Sequence[object] = (),
        returns: Sequence[object] = (),
    ) -> Procedure:
        """Register at startup, aborting the process on any registration error."""
        try:
            return self.register(func, name, description, params=params, returns=returns)
        except RegistrationError as error:
            raise SystemExit(f"procctl: cannot register {name!r}: {error}") from error

    def lookup(self, name: str) -> Procedure | None:
        """Return the registered descriptor for name, if any."""
        with self._lock.shared():
            return self._procedures.get(name)

    def names(self) -> tuple[str, ...]:
        """Return registered names in registration order."""
        with self._lock.shared():
            return tuple(self._procedures.keys())

    def procedures(self) -> tuple[Procedure, ...]:
        """Return registered descriptors in registration order."""
        with self._lock.shared():
            return tuple(self._procedures.values())

    @contextmanager
    def snapshot(self) -> Iterator[Mapping[str, Procedure]]:
        """Hold shared access and expose a read-only view of the map."""
        with self._lock.shared():
            yield self._view

    def __len__(self) -> int:
        with self._lock.shared():
            return len(self._procedures)

    def __contains__(self, name: object) -> bool:
        with self._lock.shared():
            return name in self._procedures

    @staticmethod
    def _build_procedure(
        func: Callable[..., object] | None,
        name: str,
        description: str,
        params: Sequence[object],
        returns: Sequence[object],
    ) -> Procedure:
        if func is None:
            raise NilCallableError("func must not be None")
        if not name:
            raise EmptyNameError("name must not be empty")
        if any(char.isspace() for char in name):
            raise InvalidNameError(f"name {name!r} must not contain whitespace")
        if name in RESERVED_NAMES:
            raise InvalidNameError(f"name {name!r} is reserved for a meta-command")
        if not callable(func):
            raise NotAFunctionError(f"{type(func).__name__} object is not a function")
        kinds: list[ParamKind] = []
        for position, declared in enumerate(params, start=1):
            try:
                kinds.append(normalize_kind(declared))
            except UnsupportedKindError:
                supported = ", ".join(kind.value for kind in SUPPORTED_KINDS)
                raise UnsupportedParameterKindError(
                    f"parameter {position} has unsupported kind {describe_kind(declared)}; "
                    f"supported parameter kinds are {supported}",
                    position=position,
                    kind=declared,
                ) from None
        frozen_params = tuple(kinds)
        return Procedure(
            name=name,
            description=description,
            params=frozen_params,
            returns=tuple(describe_kind(kind) for kind in returns),
            func=func,
            invoke=build_adapter(name, func, frozen_params),
        )
