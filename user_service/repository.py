"""Database repository for user accounts and the gender reference table."""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Protocol

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import Account, Gender
from .domain.contracts import NewAccountRecord, UpdateUserInfoInput


class StoreError(Exception):
    """Unclassified store failure (connectivity, timeouts, unexpected SQL errors)."""

    def __init__(self, operation: str, message: str | None = None) -> None:
        self.operation = operation
        super().__init__(message or f"{operation} failed")


class NoRowsError(StoreError):
    """The query matched no row."""

    def __init__(self, operation: str) -> None:
        super().__init__(operation, f"{operation}: no rows")


class UniqueViolationError(StoreError):
    """A unique constraint rejected the write; ``constraint`` names it."""

    def __init__(self, operation: str, constraint: str | None) -> None:
        self.constraint = constraint
        super().__init__(operation, f"{operation}: unique violation on {constraint}")


class ForeignKeyViolationError(StoreError):
    """A foreign key rejected the write or delete; ``constraint`` names it."""

    def __init__(self, operation: str, constraint: str | None) -> None:
        self.constraint = constraint
        super().__init__(operation, f"{operation}: foreign key violation on {constraint}")


class AccountStore(Protocol):
    """Persistence operations required by the account and gender services."""

    def create_user(self, record: NewAccountRecord) -> Account: ...

    def get_user_by_id(self, account_id: str) -> Account: ...

    def get_user_by_email(self, email: str) -> Account: ...

    def update_user_email(self, account_id: str, email: str) -> Account: ...

    def update_user_password(self, account_id: str, hashed_password: str) -> Account: ...

    def update_user_info(self, account_id: str, info: UpdateUserInfoInput) -> Account: ...

    def delete_user_soft(self, account_id: str) -> None: ...

    def recover_user(self, account_id: str) -> Account: ...

    def delete_user_permanent(self, account_id: str) -> None: ...

    def get_hashed_password(self, account_id: str) -> str: ...

    def create_gender(self, title: str) -> Gender: ...

    def get_gender(self, gender_id: int) -> Gender: ...

    def list_genders(self) -> list[Gender]: ...

    def delete_gender(self, gender_id: int) -> None: ...


_USER_COLUMNS = """
    account_id, email, hashed_password, first_name, last_name, gender,
    birth_day, phone_number, created_at, updated_at, deleted_at
"""


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Re-raise driver errors as one of the store error categories."""
    try:
        yield
    except pg_errors.UniqueViolation as exc:
        raise UniqueViolationError(operation, exc.diag.constraint_name) from exc
    except pg_errors.ForeignKeyViolation as exc:
        raise ForeignKeyViolationError(operation, exc.diag.constraint_name) from exc
    except psycopg.Error as exc:
        raise StoreError(operation) from exc


class PostgresAccountRepository:
    """Postgres-backed account and gender persistence.

    Lookups and updates only see active rows (``deleted_at IS NULL``).
    Recovery only sees soft-deleted rows, and permanent deletion sees both.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _fetch_user(self, operation: str, query: str, params: tuple) -> Account:
        with _store_errors(operation):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
                    conn.commit()
        if row is None:
            raise NoRowsError(operation)
        return self._map_record(row)

    def _execute_returning(self, operation: str, query: str, params: tuple) -> None:
        with _store_errors(operation):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
                    conn.commit()
        if row is None:
            raise NoRowsError(operation)

    def create_user(self, record: NewAccountRecord) -> Account:
        """Insert a new active account with a generated UUID."""
        now = self._now()
        return self._fetch_user(
            "create_user",
            f"""
            INSERT INTO users (
                account_id, email, hashed_password, first_name, last_name, gender,
                birth_day, phone_number, created_at, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {_USER_COLUMNS}
            """,
            (
                str(uuid.uuid4()),
                record.email,
                record.hashed_password,
                record.first_name,
                record.last_name,
                record.gender,
                record.birth_day,
                record.phone_number,
                now,
                now,
            ),
        )

    def get_user_by_id(self, account_id: str) -> Account:
        return self._fetch_user(
            "get_user_by_id",
            f"""
            SELECT {_USER_COLUMNS}
            FROM users
            WHERE account_id = %s AND deleted_at IS NULL
            """,
            (account_id,),
        )

    def get_user_by_email(self, email: str) -> Account:
        return self._fetch_user(
            "get_user_by_email",
            f"""
            SELECT {_USER_COLUMNS}
            FROM users
            WHERE email = %s AND deleted_at IS NULL
            """,
            (email,),
        )

    def update_user_email(self, account_id: str, email: str) -> Account:
        return self._fetch_user(
            "update_user_email",
            f"""
            UPDATE users
            SET email = %s, updated_at = %s
            WHERE account_id = %s AND deleted_at IS NULL
            RETURNING {_USER_COLUMNS}
            """,
            (email, self._now(), account_id),
        )

    def update_user_password(self, account_id: str, hashed_password: str) -> Account:
        return self._fetch_user(
            "update_user_password",
            f"""
            UPDATE users
            SET hashed_password = %s, updated_at = %s
            WHERE account_id = %s AND deleted_at IS NULL
            RETURNING {_USER_COLUMNS}
            """,
            (hashed_password, self._now(), account_id),
        )

    def update_user_info(self, account_id: str, info: UpdateUserInfoInput) -> Account:
        return self._fetch_user(
            "update_user_info",
            f"""
            UPDATE users
            SET first_name = %s, last_name = %s, gender = %s, birth_day = %s,
                phone_number = %s, updated_at = %s
            WHERE account_id = %s AND deleted_at IS NULL
            RETURNING {_USER_COLUMNS}
            """,
            (
                info.first_name,
                info.last_name,
                info.gender,
                info.birth_day,
                info.phone_number,
                self._now(),
                account_id,
            ),
        )

    def delete_user_soft(self, account_id: str) -> None:
        now = self._now()
        self._execute_returning(
            "delete_user_soft",
            """
            UPDATE users
            SET deleted_at = %s, updated_at = %s
            WHERE account_id = %s AND deleted_at IS NULL
            RETURNING account_id
            """,
            (now, now, account_id),
        )

    def recover_user(self, account_id: str) -> Account:
        return self._fetch_user(
            "recover_user",
            f"""
            UPDATE users
            SET deleted_at = NULL, updated_at = %s
            WHERE account_id = %s AND deleted_at IS NOT NULL
            RETURNING {_USER_COLUMNS}
            """,
            (self._now(), account_id),
        )

    def delete_user_permanent(self, account_id: str) -> None:
        self._execute_returning(
            "delete_user_permanent",
            """
            DELETE FROM users
            WHERE account_id = %s
            RETURNING account_id
            """,
            (account_id,),
        )

    def get_hashed_password(self, account_id: str) -> str:
        operation = "get_hashed_password"
        with _store_errors(operation):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        SELECT hashed_password
                        FROM users
                        WHERE account_id = %s AND deleted_at IS NULL
                        """,
                        (account_id,),
                    )
                    row = cur.fetchone()
        if row is None:
            raise NoRowsError(operation)
        return row[0]

    def create_gender(self, title: str) -> Gender:
        operation = "create_gender"
        with _store_errors(operation):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        INSERT INTO genders (title)
                        VALUES (%s)
                        RETURNING gender_id, title
                        """,
                        (title,),
                    )
                    row = cur.fetchone()
                    conn.commit()
        return Gender(gender_id=row[0], title=row[1])

    def get_gender(self, gender_id: int) -> Gender:
        operation = "get_gender"
        with _store_errors(operation):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        "SELECT gender_id, title FROM genders WHERE gender_id = %s",
                        (gender_id,),
                    )
                    row = cur.fetchone()
        if row is None:
            raise NoRowsError(operation)
        return Gender(gender_id=row[0], title=row[1])

    def list_genders(self) -> list[Gender]:
        with _store_errors("list_genders"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute("SELECT gender_id, title FROM genders ORDER BY gender_id")
                    rows = cur.fetchall()
        return [Gender(gender_id=row[0], title=row[1]) for row in rows]

    def delete_gender(self, gender_id: int) -> None:
        self._execute_returning(
            "delete_gender",
            "DELETE FROM genders WHERE gender_id = %s RETURNING gender_id",
            (gender_id,),
        )

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=str(row[0]),
            email=row[1],
            hashed_password=row[2],
            first_name=row[3],
            last_name=row[4],
            gender=row[5],
            birth_day=row[6],
            phone_number=row[7],
            created_at=row[8],
            updated_at=row[9],
            deleted_at=row[10],
        )
