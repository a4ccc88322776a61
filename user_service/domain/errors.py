"""Typed failures raised by the account and gender services."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure kinds a caller can match on."""

    missing_field = "missing_field"
    duplicate_value = "duplicate_value"
    not_found = "not_found"
    wrong_password = "wrong_password"
    referenced_value = "referenced_value"
    internal = "internal"


class ServiceError(Exception):
    """Failure carrying an ``ErrorKind`` and a message safe to show to callers.

    The underlying store error, when there is one, is chained as ``__cause__``
    and never copied into ``message``.
    """

    def __init__(self, kind: ErrorKind, message: str, *, field: str | None = None) -> None:
        self.kind = kind
        self.message = message
        self.field = field
        super().__init__(message)

    def __repr__(self) -> str:
        return f"ServiceError(kind={self.kind.value!r}, message={self.message!r})"

    @classmethod
    def missing_field(cls, field: str) -> "ServiceError":
        return cls(ErrorKind.missing_field, f"required field '{field}' is empty", field=field)

    @classmethod
    def duplicate_value(cls, field: str) -> "ServiceError":
        return cls(ErrorKind.duplicate_value, f"{field} is already in use", field=field)

    @classmethod
    def not_found(cls, what: str) -> "ServiceError":
        return cls(ErrorKind.not_found, f"{what} not found")

    @classmethod
    def wrong_password(cls) -> "ServiceError":
        return cls(ErrorKind.wrong_password, "password does not match")

    @classmethod
    def referenced_value(cls, what: str) -> "ServiceError":
        return cls(ErrorKind.referenced_value, f"{what} is still referenced")

    @classmethod
    def internal(cls) -> "ServiceError":
        return cls(ErrorKind.internal, "internal error")
