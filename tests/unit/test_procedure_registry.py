from __future__ import annotations

import pytest

from procctl.kinds import ParamKind
from procctl.registry import (
    EmptyNameError,
    InvalidNameError,
    NameAlreadyRegisteredError,
    NilCallableError,
    NotAFunctionError,
    ProcedureCallError,
    ProcedureRegistry,
    RegistrationError,
    UnsupportedParameterKindError,
)


def add(a: int, b: int) -> int:
    return a + b


def negate(value: int) -> int:
    return -value


def test_distinct_names_both_register_in_order() -> None:
    registry = ProcedureRegistry()
    registry.register(add, "add", "Add two integers.", params=("int64", "int64"))
    registry.register(negate, "negate", "Negate an integer.", params=(ParamKind.INT64,))

    assert registry.names() == ("add", "negate")
    assert len(registry) == 2
    assert "add" in registry


def test_duplicate_name_is_rejected_and_original_kept() -> None:
    registry = ProcedureRegistry()
    original = registry.register(add, "add", "Add two integers.", params=("int64", "int64"))

    with pytest.raises(NameAlreadyRegisteredError) as excinfo:
        registry.register(negate, "add", "Replacement.", params=("int64",))

    assert excinfo.value.code == "NAME_ALREADY_REGISTERED"
    assert "'add' has been registered" in str(excinfo.value)
    assert registry.lookup("add") is original
    assert registry.lookup("add").invoke([3, 4]) == (7,)


@pytest.mark.parametrize(
    ("func", "name", "params", "error_type", "code"),
    [
        (None, "add", ("int64",), NilCallableError, "NIL_CALLABLE"),
        (add, "", ("int64",), EmptyNameError, "EMPTY_NAME"),
        (42, "answer", (), NotAFunctionError, "NOT_A_FUNCTION"),
        (add, "add", ("int64", list), UnsupportedParameterKindError, "UNSUPPORTED_PARAMETER_KIND"),
        (add, "add", ("map",), UnsupportedParameterKindError, "UNSUPPORTED_PARAMETER_KIND"),
        (add, "add", (dict[str, int],), UnsupportedParameterKindError, "UNSUPPORTED_PARAMETER_KIND"),
        (add, "two words", (), InvalidNameError, "INVALID_NAME"),
        (add, "help", (), InvalidNameError, "INVALID_NAME"),
    ],
)
def test_invalid_registrations_fail_without_mutation(
    func: object,
    name: str,
    params: tuple[object, ...],
    error_type: type[RegistrationError],
    code: str,
) -> None:
    registry = ProcedureRegistry()

    with pytest.raises(error_type) as excinfo:
        registry.register(func, name, "desc", params=params)  # type: ignore[arg-type]

    assert excinfo.value.code == code
    assert isinstance(excinfo.value, RegistrationError)
    assert registry.names() == ()


def test_first_offending_condition_is_reported() -> None:
    registry = ProcedureRegistry()

    with pytest.raises(NilCallableError):
        registry.register(None, "", params=(list,))
    with pytest.raises(EmptyNameError):
        registry.register("not-callable", "", params=(list,))  # type: ignore[arg-type]


def test_unsupported_kind_message_names_position_and_supported_kinds() -> None:
    registry = ProcedureRegistry()

    with pytest.raises(UnsupportedParameterKindError) as excinfo:
        registry.register(add, "add", params=("int64", bytes))

    assert excinfo.value.position == 2
    assert excinfo.value.kind is bytes
    assert "parameter 2 has unsupported kind bytes" in excinfo.value.message
    assert "bool, int64, uint64, float64, string" in excinfo.value.message


def test_python_types_map_onto_scalar_kinds() -> None:
    registry = ProcedureRegistry()

    procedure = registry.register(
        lambda *args: None, "mixed", params=(bool, int, float, str, "uint64")
    )

    assert procedure.params == (
        ParamKind.BOOL,
        ParamKind.INT64,
        ParamKind.FLOAT64,
        ParamKind.STRING,
        ParamKind.UINT64,
    )


def test_lookup_returns_identical_descriptor() -> None:
    registry = ProcedureRegistry()
    registered = registry.register(
        add, "add", "Add two integers.", params=("int64", "int64"), returns=("int64",)
    )

    found = registry.lookup("add")

    assert found is registered
    assert found.func is add
    assert found.params == (ParamKind.INT64, ParamKind.INT64)
    assert found.returns == ("int64",)
    assert found.description == "Add two integers."
    assert registry.lookup("missing") is None


def test_adapter_normalizes_results() -> None:
    registry = ProcedureRegistry()
    nothing = registry.register(lambda: None, "nothing")
    pair = registry.register(lambda: (1, "two"), "pair")
    single = registry.register(lambda: [1, 2], "single")

    assert nothing.invoke([]) == ()
    assert pair.invoke([]) == (1, "two")
    assert single.invoke([]) == ([1, 2],)


def test_adapter_rejects_values_outside_declared_kinds() -> None:
    registry = ProcedureRegistry()
    procedure = registry.register(negate, "negate", params=("uint64",))

    with pytest.raises(TypeError, match="argument 1 is not a valid uint64"):
        procedure.invoke([-1])
    with pytest.raises(TypeError, match="expects 1 arguments"):
        procedure.invoke([])


def test_adapter_wraps_procedure_exceptions() -> None:
    def explode() -> None:
        raise RuntimeError("boom")

    registry = ProcedureRegistry()
    procedure = registry.register(explode, "explode")

    with pytest.raises(ProcedureCallError) as excinfo:
        procedure.invoke([])

    assert excinfo.value.name == "explode"
    assert isinstance(excinfo.value.cause, RuntimeError)
    assert str(excinfo.value) == "RuntimeError: boom"


def test_must_register_aborts_on_error() -> None:
    registry = ProcedureRegistry()
    registry.must_register(add, "add", params=("int64", "int64"))

    with pytest.raises(SystemExit) as excinfo:
        registry.must_register(add, "add", params=("int64", "int64"))

    assert "NAME_ALREADY_REGISTERED" in str(excinfo.value.code)
    assert registry.names() == ("add",)


def test_snapshot_exposes_read_only_view() -> None:
    registry = ProcedureRegistry()
    registry.register(add, "add", params=("int64", "int64"))

    with registry.snapshot() as procedures:
        assert registry.lock.readers == 1
        assert list(procedures) == ["add"]
        with pytest.raises(TypeError):
            procedures["other"] = procedures["add"]  # type: ignore[index]

    assert registry.lock.readers == 0
