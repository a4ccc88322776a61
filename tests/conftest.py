from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from threading import Lock

import pytest

from user_service.domain.account import Account, Gender
from user_service.domain.contracts import NewAccountRecord, UpdateUserInfoInput
from user_service.domain.service import AccountService, GenderService
from user_service.repository import (
    ForeignKeyViolationError,
    NoRowsError,
    StoreError,
    UniqueViolationError,
)
from user_service.schema import EMAIL_ACTIVE_CONSTRAINT, GENDER_TITLE_CONSTRAINT, USER_GENDER_CONSTRAINT
from user_service.security.passwords import PasswordHasher


class FakeAccountStore:
    """In-memory store mimicking the Postgres constraints and visibility rules."""

    def __init__(self) -> None:
        self._users: dict[str, Account] = {}
        self._genders: dict[int, Gender] = {}
        self._gender_seq = 0
        self._lock = Lock()
        self._last_now = datetime.now(timezone.utc)
        self.calls: list[str] = []
        self.fail_with: StoreError | None = None

    def _now(self) -> datetime:
        # strictly increasing so updated_at always advances between writes
        now = max(datetime.now(timezone.utc), self._last_now + timedelta(microseconds=1))
        self._last_now = now
        return now

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if self.fail_with is not None:
            raise self.fail_with

    def _active(self, operation: str, account_id: str) -> Account:
        account = self._users.get(account_id)
        if account is None or account.deleted_at is not None:
            raise NoRowsError(operation)
        return account

    def _check_email(self, operation: str, email: str, owner: str | None = None) -> None:
        for account in self._users.values():
            if account.deleted_at is None and account.email == email and account.account_id != owner:
                raise UniqueViolationError(operation, EMAIL_ACTIVE_CONSTRAINT)

    def _check_gender(self, operation: str, gender: int | None) -> None:
        if gender is not None and gender not in self._genders:
            raise ForeignKeyViolationError(operation, USER_GENDER_CONSTRAINT)

    def create_user(self, record: NewAccountRecord) -> Account:
        with self._lock:
            self._enter("create_user")
            self._check_email("create_user", record.email)
            self._check_gender("create_user", record.gender)
            now = self._now()
            account = Account(
                account_id=str(uuid.uuid4()),
                email=record.email,
                hashed_password=record.hashed_password,
                first_name=record.first_name,
                last_name=record.last_name,
                gender=record.gender,
                birth_day=record.birth_day,
                phone_number=record.phone_number,
                created_at=now,
                updated_at=now,
            )
            self._users[account.account_id] = account
            return replace(account)

    def get_user_by_id(self, account_id: str) -> Account:
        with self._lock:
            self._enter("get_user_by_id")
            return replace(self._active("get_user_by_id", account_id))

    def get_user_by_email(self, email: str) -> Account:
        with self._lock:
            self._enter("get_user_by_email")
            for account in self._users.values():
                if account.deleted_at is None and account.email == email:
                    return replace(account)
            raise NoRowsError("get_user_by_email")

    def update_user_email(self, account_id: str, email: str) -> Account:
        with self._lock:
            self._enter("update_user_email")
            account = self._active("update_user_email", account_id)
            self._check_email("update_user_email", email, owner=account_id)
            account.email = email
            account.updated_at = self._now()
            return replace(account)

    def update_user_password(self, account_id: str, hashed_password: str) -> Account:
        with self._lock:
            self._enter("update_user_password")
            account = self._active("update_user_password", account_id)
            account.hashed_password = hashed_password
            account.updated_at = self._now()
            return replace(account)

    def update_user_info(self, account_id: str, info: UpdateUserInfoInput) -> Account:
        with self._lock:
            self._enter("update_user_info")
            account = self._active("update_user_info", account_id)
            self._check_gender("update_user_info", info.gender)
            account.first_name = info.first_name
            account.last_name = info.last_name
            account.gender = info.gender
            account.birth_day = info.birth_day
            account.phone_number = info.phone_number
            account.updated_at = self._now()
            return replace(account)

    def delete_user_soft(self, account_id: str) -> None:
        with self._lock:
            self._enter("delete_user_soft")
            account = self._active("delete_user_soft", account_id)
            now = self._now()
            account.deleted_at = now
            account.updated_at = now

    def recover_user(self, account_id: str) -> Account:
        with self._lock:
            self._enter("recover_user")
            account = self._users.get(account_id)
            if account is None or account.deleted_at is None:
                raise NoRowsError("recover_user")
            self._check_email("recover_user", account.email, owner=account_id)
            account.deleted_at = None
            account.updated_at = self._now()
            return replace(account)

    def delete_user_permanent(self, account_id: str) -> None:
        with self._lock:
            self._enter("delete_user_permanent")
            if self._users.pop(account_id, None) is None:
                raise NoRowsError("delete_user_permanent")

    def get_hashed_password(self, account_id: str) -> str:
        with self._lock:
            self._enter("get_hashed_password")
            return self._active("get_hashed_password", account_id).hashed_password

    def create_gender(self, title: str) -> Gender:
        with self._lock:
            self._enter("create_gender")
            if any(gender.title == title for gender in self._genders.values()):
                raise UniqueViolationError("create_gender", GENDER_TITLE_CONSTRAINT)
            self._gender_seq += 1
            gender = Gender(gender_id=self._gender_seq, title=title)
            self._genders[gender.gender_id] = gender
            return replace(gender)

    def get_gender(self, gender_id: int) -> Gender:
        with self._lock:
            self._enter("get_gender")
            gender = self._genders.get(gender_id)
            if gender is None:
                raise NoRowsError("get_gender")
            return replace(gender)

    def list_genders(self) -> list[Gender]:
        with self._lock:
            self._enter("list_genders")
            return [replace(self._genders[key]) for key in sorted(self._genders)]

    def delete_gender(self, gender_id: int) -> None:
        with self._lock:
            self._enter("delete_gender")
            if gender_id not in self._genders:
                raise NoRowsError("delete_gender")
            if any(account.gender == gender_id for account in self._users.values()):
                raise ForeignKeyViolationError("delete_gender", USER_GENDER_CONSTRAINT)
            del self._genders[gender_id]


@pytest.fixture
def store() -> FakeAccountStore:
    return FakeAccountStore()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    """Lowest bcrypt cost keeps the suite fast."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def account_service(store: FakeAccountStore, hasher: PasswordHasher) -> AccountService:
    return AccountService(store, hasher)


@pytest.fixture
def gender_service(store: FakeAccountStore) -> GenderService:
    return GenderService(store)
