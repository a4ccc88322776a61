"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(slots=True)
class CreateUserInput:
    """Registration payload; the password is plaintext until the service hashes it."""

    email: str
    password: str
    first_name: str
    last_name: str
    gender: int | None = None
    birth_day: date | None = None
    phone_number: str | None = None


@dataclass(slots=True)
class NewAccountRecord:
    """Row values handed to the repository once validation and hashing succeeded."""

    email: str
    hashed_password: str
    first_name: str
    last_name: str
    gender: int | None = None
    birth_day: date | None = None
    phone_number: str | None = None


@dataclass(slots=True)
class UpdateUserInfoInput:
    """Profile fields replaced by an info update; email and password are untouched."""

    first_name: str
    last_name: str
    gender: int | None = None
    birth_day: date | None = None
    phone_number: str | None = None
