from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime


@dataclass(slots=True)
class Account:
    """Aggregate root for a user account and its lifecycle timestamps."""

    account_id: str
    email: str
    hashed_password: str
    first_name: str
    last_name: str
    created_at: datetime
    updated_at: datetime
    gender: int | None = None
    birth_day: date | None = None
    phone_number: str | None = None
    deleted_at: datetime | None = None


@dataclass(slots=True)
class Gender:
    """Reference entry used as a foreign key by accounts."""

    gender_id: int
    title: str
