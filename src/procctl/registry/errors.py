"""Registration and invocation failures."""

from __future__ import annotations


class RegistrationError(Exception):
    """Raised synchronously when a procedure cannot be registered."""

    code = "REGISTRATION_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class NilCallableError(RegistrationError):
    code = "NIL_CALLABLE"


class EmptyNameError(RegistrationError):
    code = "EMPTY_NAME"


class InvalidNameError(RegistrationError):
    code = "INVALID_NAME"


class NotAFunctionError(RegistrationError):
    code = "NOT_A_FUNCTION"


class UnsupportedParameterKindError(RegistrationError):
    """Raised when a declared parameter kind is not a supported scalar kind."""

    code = "UNSUPPORTED_PARAMETER_KIND"

    def __init__(self, message: str, position: int, kind: object) -> None:
        super().__init__(message)
        self.position = position
        self.kind = kind


class NameAlreadyRegisteredError(RegistrationError):
    code = "NAME_ALREADY_REGISTERED"

    def __init__(self, name: str) -> None:
        super().__init__(f"name {name!r} has been registered")
        self.name = name


class ProcedureCallError(Exception):
    """Wraps an exception raised by a registered procedure during invocation."""

    def __init__(self, name: str, cause: Exception) -> None:
        super().__init__(f"{type(cause).__name__}: {cause}")
        self.name = name
        self.cause = cause
