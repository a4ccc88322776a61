"""Account lifecycle and gender reference services."""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Iterable, Protocol, TypeVar

from .account import Account, Gender
from .contracts import CreateUserInput, NewAccountRecord, UpdateUserInfoInput
from .errors import ServiceError
from ..repository import (
    AccountStore,
    ForeignKeyViolationError,
    NoRowsError,
    StoreError,
    UniqueViolationError,
)
from ..schema import (
    EMAIL_ACTIVE_CONSTRAINT,
    GENDER_ID_MAX,
    GENDER_TITLE_CONSTRAINT,
    USER_GENDER_CONSTRAINT,
)
from ..security.passwords import PasswordHasher

logger = logging.getLogger(__name__)


class AccountOperations(Protocol):
    """Operations exposed to callers for account lifecycle management."""

    def create_user(self, payload: CreateUserInput) -> Account: ...

    def get_user_by_id(self, account_id: str) -> Account: ...

    def get_user_by_email(self, email: str) -> Account: ...

    def update_user_email(self, account_id: str, email: str) -> Account: ...

    def update_user_password(self, account_id: str, password: str) -> Account: ...

    def update_user_info(self, account_id: str, info: UpdateUserInfoInput) -> Account: ...

    def delete_user_soft(self, account_id: str) -> None: ...

    def recover_user(self, account_id: str) -> Account: ...

    def delete_user_permanent(self, account_id: str) -> None: ...

    def verify_password(self, account_id: str, password: str) -> None: ...


class GenderOperations(Protocol):
    """Operations exposed to callers for the gender reference table."""

    def add_gender(self, title: str) -> Gender: ...

    def get_gender(self, gender_id: int) -> Gender: ...

    def list_genders(self) -> list[Gender]: ...

    def remove_gender(self, gender_id: int) -> None: ...


def _require(value: str | None, field: str) -> str:
    """Return ``value`` stripped of surrounding whitespace or raise ``MissingField``."""
    if value is None or not value.strip():
        raise ServiceError.missing_field(field)
    return value.strip()


def _require_password(value: str | None) -> str:
    # whitespace is significant in passwords, so only the empty string counts as missing
    if not value:
        raise ServiceError.missing_field("password")
    return value


def _check_gender(gender: int | None) -> int | None:
    """Reject gender ids no ``SMALLSERIAL`` key can hold before they reach the store."""
    if gender is not None and not 1 <= gender <= GENDER_ID_MAX:
        raise ServiceError.not_found("gender")
    return gender


def _internal(exc: Exception) -> ServiceError:
    logger.error("unexpected store failure: %s", exc, exc_info=exc)
    return ServiceError.internal()


class AccountService:
    """Account lifecycle rules on top of an ``AccountStore``.

    Every operation validates its inputs before touching the store, hashes
    passwords only once validation passed, and turns store error categories
    into ``ServiceError`` kinds.
    """

    def __init__(self, store: AccountStore, hasher: PasswordHasher) -> None:
        """Store dependencies used to orchestrate persistence and hashing."""
        self._store = store
        self._hasher = hasher

    def create_user(self, payload: CreateUserInput) -> Account:
        """Register a new active account."""
        email = _require(payload.email, "email")
        password = _require_password(payload.password)
        first_name = _require(payload.first_name, "first_name")
        last_name = _require(payload.last_name, "last_name")
        gender = _check_gender(payload.gender)

        record = NewAccountRecord(
            email=email,
            hashed_password=self._hash(password),
            first_name=first_name,
            last_name=last_name,
            gender=gender,
            birth_day=payload.birth_day,
            phone_number=payload.phone_number or None,
        )
        try:
            return self._store.create_user(record)
        except StoreError as exc:
            raise self._translate(exc) from exc

    def get_user_by_id(self, account_id: str) -> Account:
        """Return the active account with ``account_id``."""
        account_id = self._parse_id(account_id)
        try:
            return self._store.get_user_by_id(account_id)
        except StoreError as exc:
            raise self._translate(exc) from exc

    def get_user_by_email(self, email: str) -> Account:
        """Return the active account registered under ``email``."""
        email = _require(email, "email")
        try:
            return self._store.get_user_by_email(email)
        except StoreError as exc:
            raise self._translate(exc) from exc

    def update_user_email(self, account_id: str, email: str) -> Account:
        account_id = self._parse_id(account_id)
        email = _require(email, "email")
        try:
            return self._store.update_user_email(account_id, email)
        except StoreError as exc:
            raise self._translate(exc) from exc

    def update_user_password(self, account_id: str, password: str) -> Account:
        account_id = self._parse_id(account_id)
        hashed = self._hash(_require_password(password))
        try:
            return self._store.update_user_password(account_id, hashed)
        except StoreError as exc:
            raise self._translate(exc) from exc

    def update_user_info(self, account_id: str, info: UpdateUserInfoInput) -> Account:
        """Replace the profile fields of an active account.

        Names are required because a persisted account never has empty names.
        ``gender``, ``birth_day`` and ``phone_number`` are stored as given, so
        ``None`` clears them.
        """
        account_id = self._parse_id(account_id)
        cleaned = UpdateUserInfoInput(
            first_name=_require(info.first_name, "first_name"),
            last_name=_require(info.last_name, "last_name"),
            gender=_check_gender(info.gender),
            birth_day=info.birth_day,
            phone_number=info.phone_number or None,
        )
        try:
            return self._store.update_user_info(account_id, cleaned)
        except StoreError as exc:
            raise self._translate(exc) from exc

    def delete_user_soft(self, account_id: str) -> None:
        """Hide an active account from lookups while keeping its row."""
        account_id = self._parse_id(account_id)
        try:
            self._store.delete_user_soft(account_id)
        except StoreError as exc:
            raise self._translate(exc) from exc

    def recover_user(self, account_id: str) -> Account:
        """Bring a soft-deleted account back to the active state.

        Active, absent and permanently deleted accounts all report
        ``NotFound``. If another active account claimed the email in the
        meantime, recovery fails with ``DuplicateValue``.
        """
        account_id = self._parse_id(account_id)
        try:
            return self._store.recover_user(account_id)
        except StoreError as exc:
            raise self._translate(exc) from exc

    def delete_user_permanent(self, account_id: str) -> None:
        """Remove the row for ``account_id`` whether it is active or soft-deleted."""
        account_id = self._parse_id(account_id)
        try:
            self._store.delete_user_permanent(account_id)
        except StoreError as exc:
            raise self._translate(exc) from exc

    def verify_password(self, account_id: str, password: str) -> None:
        """Raise ``WrongPassword`` unless ``password`` matches the active account's hash."""
        account_id = self._parse_id(account_id)
        password = _require_password(password)
        try:
            hashed = self._store.get_hashed_password(account_id)
        except StoreError as exc:
            raise self._translate(exc) from exc
        if not self._hasher.verify(hashed, password):
            raise ServiceError.wrong_password()
        if self._hasher.needs_rehash(hashed):
            self._rehash(account_id, password)

    def _rehash(self, account_id: str, password: str) -> None:
        # upgrade digests produced under a lower work factor; verification already succeeded
        hashed = self._hash(password)
        try:
            self._store.update_user_password(account_id, hashed)
        except StoreError as exc:
            logger.warning("password rehash for %s not persisted: %s", account_id, exc)
        else:
            logger.info("password digest upgraded for %s", account_id)

    def _parse_id(self, account_id: str | None) -> str:
        value = _require(account_id, "account_id")
        try:
            return str(uuid.UUID(value))
        except ValueError:
            # a malformed identifier can never match a stored row
            raise ServiceError.not_found("account") from None

    def _hash(self, password: str) -> str:
        try:
            return self._hasher.hash(password)
        except (ValueError, TypeError) as exc:
            logger.error("password hashing failed: %s", type(exc).__name__)
            raise ServiceError.internal() from exc

    def _translate(self, exc: StoreError) -> ServiceError:
        if isinstance(exc, NoRowsError):
            return ServiceError.not_found("account")
        if isinstance(exc, UniqueViolationError) and exc.constraint == EMAIL_ACTIVE_CONSTRAINT:
            return ServiceError.duplicate_value("email")
        if isinstance(exc, ForeignKeyViolationError) and exc.constraint == USER_GENDER_CONSTRAINT:
            return ServiceError.not_found("gender")
        return _internal(exc)


class GenderService:
    """Validation and error mapping for the gender reference table."""

    def __init__(self, store: AccountStore) -> None:
        self._store = store

    def add_gender(self, title: str) -> Gender:
        title = _require(title, "title")
        try:
            return self._store.create_gender(title)
        except StoreError as exc:
            raise self._translate(exc) from exc

    def get_gender(self, gender_id: int) -> Gender:
        gender_id = self._require_id(gender_id)
        try:
            return self._store.get_gender(gender_id)
        except StoreError as exc:
            raise self._translate(exc) from exc

    def list_genders(self) -> list[Gender]:
        try:
            return self._store.list_genders()
        except StoreError as exc:
            raise self._translate(exc) from exc

    def remove_gender(self, gender_id: int) -> None:
        """Delete a gender immediately; genders still referenced by accounts are kept."""
        gender_id = self._require_id(gender_id)
        try:
            self._store.delete_gender(gender_id)
        except StoreError as exc:
            raise self._translate(exc) from exc

    def _require_id(self, gender_id: int | None) -> int:
        if not gender_id:
            raise ServiceError.missing_field("gender_id")
        return _check_gender(gender_id)

    def _translate(self, exc: StoreError) -> ServiceError:
        if isinstance(exc, NoRowsError):
            return ServiceError.not_found("gender")
        if isinstance(exc, UniqueViolationError) and exc.constraint == GENDER_TITLE_CONSTRAINT:
            return ServiceError.duplicate_value("title")
        if isinstance(exc, ForeignKeyViolationError):
            return ServiceError.referenced_value("gender")
        return _internal(exc)


ServiceT = TypeVar("ServiceT")


def compose(service: ServiceT, middleware: Iterable[Callable[[ServiceT], ServiceT]]) -> ServiceT:
    """Wrap ``service`` with each middleware in order; the last one listed is outermost."""
    for wrap in middleware:
        service = wrap(service)
    return service
