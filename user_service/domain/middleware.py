"""Logging and metrics wrappers implementing the service interfaces."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator

from prometheus_client import Counter, Histogram

from .account import Account, Gender
from .contracts import CreateUserInput, UpdateUserInfoInput
from .errors import ServiceError
from .service import AccountOperations, GenderOperations

REQUEST_COUNT = Counter(
    "user_service_requests_total",
    "Service operations by method and outcome.",
    ["method", "outcome"],
)
REQUEST_LATENCY = Histogram(
    "user_service_request_duration_seconds",
    "Service operation latency by method.",
    ["method"],
)


def _outcome(exc: BaseException | None) -> str:
    if exc is None:
        return "ok"
    if isinstance(exc, ServiceError):
        return exc.kind.value
    return "error"


class _Wrapper:
    """Shared plumbing; subclasses implement ``_observe``."""

    def __init__(self, next_service: Any) -> None:
        self._next = next_service

    @contextmanager
    def _observe(self, method: str, **fields: Any) -> Iterator[None]:
        yield


class _LoggingWrapper(_Wrapper):
    def __init__(self, next_service: Any, logger: logging.Logger | None = None) -> None:
        super().__init__(next_service)
        self._logger = logger or logging.getLogger("user_service.calls")

    @contextmanager
    def _observe(self, method: str, **fields: Any) -> Iterator[None]:
        started = time.perf_counter()
        error: BaseException | None = None
        try:
            yield
        except BaseException as exc:
            error = exc
            raise
        finally:
            details = " ".join(f"{key}={value}" for key, value in fields.items())
            self._logger.info(
                "method=%s %s outcome=%s took=%.1fms",
                method,
                details,
                _outcome(error),
                (time.perf_counter() - started) * 1000,
            )


class _InstrumentingWrapper(_Wrapper):
    @contextmanager
    def _observe(self, method: str, **fields: Any) -> Iterator[None]:
        started = time.perf_counter()
        error: BaseException | None = None
        try:
            yield
        except BaseException as exc:
            error = exc
            raise
        finally:
            REQUEST_COUNT.labels(method=method, outcome=_outcome(error)).inc()
            REQUEST_LATENCY.labels(method=method).observe(time.perf_counter() - started)


class _AccountDelegate(_Wrapper):
    """Forwards every account operation through ``_observe``; passwords are never passed to it."""

    _next: AccountOperations

    def create_user(self, payload: CreateUserInput) -> Account:
        with self._observe("create_user", email=payload.email):
            return self._next.create_user(payload)

    def get_user_by_id(self, account_id: str) -> Account:
        with self._observe("get_user_by_id", account_id=account_id):
            return self._next.get_user_by_id(account_id)

    def get_user_by_email(self, email: str) -> Account:
        with self._observe("get_user_by_email", email=email):
            return self._next.get_user_by_email(email)

    def update_user_email(self, account_id: str, email: str) -> Account:
        with self._observe("update_user_email", account_id=account_id, email=email):
            return self._next.update_user_email(account_id, email)

    def update_user_password(self, account_id: str, password: str) -> Account:
        with self._observe("update_user_password", account_id=account_id):
            return self._next.update_user_password(account_id, password)

    def update_user_info(self, account_id: str, info: UpdateUserInfoInput) -> Account:
        with self._observe("update_user_info", account_id=account_id):
            return self._next.update_user_info(account_id, info)

    def delete_user_soft(self, account_id: str) -> None:
        with self._observe("delete_user_soft", account_id=account_id):
            self._next.delete_user_soft(account_id)

    def recover_user(self, account_id: str) -> Account:
        with self._observe("recover_user", account_id=account_id):
            return self._next.recover_user(account_id)

    def delete_user_permanent(self, account_id: str) -> None:
        with self._observe("delete_user_permanent", account_id=account_id):
            self._next.delete_user_permanent(account_id)

    def verify_password(self, account_id: str, password: str) -> None:
        with self._observe("verify_password", account_id=account_id):
            self._next.verify_password(account_id, password)


class _GenderDelegate(_Wrapper):
    _next: GenderOperations

    def add_gender(self, title: str) -> Gender:
        with self._observe("add_gender", title=title):
            return self._next.add_gender(title)

    def get_gender(self, gender_id: int) -> Gender:
        with self._observe("get_gender", gender_id=gender_id):
            return self._next.get_gender(gender_id)

    def list_genders(self) -> list[Gender]:
        with self._observe("list_genders"):
            return self._next.list_genders()

    def remove_gender(self, gender_id: int) -> None:
        with self._observe("remove_gender", gender_id=gender_id):
            self._next.remove_gender(gender_id)


class AccountLoggingMiddleware(_AccountDelegate, _LoggingWrapper):
    """Logs one line per account operation with its outcome kind and duration."""


class AccountInstrumentingMiddleware(_AccountDelegate, _InstrumentingWrapper):
    """Records Prometheus request counts and latencies for account operations."""


class GenderLoggingMiddleware(_GenderDelegate, _LoggingWrapper):
    """Logs one line per gender operation with its outcome kind and duration."""


class GenderInstrumentingMiddleware(_GenderDelegate, _InstrumentingWrapper):
    """Records Prometheus request counts and latencies for gender operations."""
