"""HTTP route definitions for the user service."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator

import redis
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel

from ..config import get_settings
from ..domain.account import Account, Gender
from ..domain.contracts import CreateUserInput, UpdateUserInfoInput
from ..domain.errors import ErrorKind, ServiceError
from ..domain.service import AccountOperations, GenderOperations
from ..security.rate_limiter import RateLimiter, SlidingWindowRateLimiter
from ..security.redis_rate_limiter import RedisSlidingWindowRateLimiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")

ERROR_STATUS = {
    ErrorKind.missing_field: status.HTTP_400_BAD_REQUEST,
    ErrorKind.not_found: status.HTTP_404_NOT_FOUND,
    ErrorKind.duplicate_value: status.HTTP_409_CONFLICT,
    ErrorKind.referenced_value: status.HTTP_409_CONFLICT,
    ErrorKind.wrong_password: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.internal: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class UserResponse(BaseModel):
    """Serialised representation of an `Account`; the password hash is never included."""

    account_id: str
    email: str
    first_name: str
    last_name: str
    gender: int | None = None
    birth_day: date | None = None
    phone_number: str | None = None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    @classmethod
    def from_domain(cls, account: Account) -> "UserResponse":
        """Build a response model from the domain aggregate."""
        return cls(
            account_id=account.account_id,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            gender=account.gender,
            birth_day=account.birth_day,
            phone_number=account.phone_number,
            created_at=account.created_at,
            updated_at=account.updated_at,
            deleted_at=account.deleted_at,
        )


class CreateUserRequest(BaseModel):
    """Registration payload. Required fields default to empty so the service reports them."""

    email: str = ""
    password: str = ""
    first_name: str = ""
    last_name: str = ""
    gender: int | None = None
    birth_day: date | None = None
    phone_number: str | None = None


class UpdateEmailRequest(BaseModel):
    email: str = ""


class PasswordRequest(BaseModel):
    """Body for password updates and password verification."""

    password: str = ""


class UpdateInfoRequest(BaseModel):
    first_name: str = ""
    last_name: str = ""
    gender: int | None = None
    birth_day: date | None = None
    phone_number: str | None = None


class GenderRequest(BaseModel):
    title: str = ""


class GenderResponse(BaseModel):
    gender_id: int
    title: str

    @classmethod
    def from_domain(cls, gender: Gender) -> "GenderResponse":
        return cls(gender_id=gender.gender_id, title=gender.title)


settings = get_settings()


def _build_rate_limiter() -> RateLimiter:
    """Instantiate the configured rate limiter backend, preferring Redis when available."""
    if settings.rate_limit_backend == "redis" and settings.redis_url:
        try:
            client = redis.from_url(settings.redis_url)
            client.ping()
            logger.info("rate limiter configured for redis backend at %s", settings.redis_url)
            return RedisSlidingWindowRateLimiter(
                client,
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )
        except redis.RedisError as exc:
            logger.warning("redis rate limiter unavailable, falling back to in-memory: %s", exc)

    logger.info("rate limiter using in-memory backend")
    return SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


rate_limiter = _build_rate_limiter()


def get_account_service(request: Request) -> AccountOperations:
    """Resolve the account service stored on the FastAPI application state."""
    service: AccountOperations = request.app.state.account_service
    return service


def get_gender_service(request: Request) -> GenderOperations:
    service: GenderOperations = request.app.state.gender_service
    return service


def _http_error(exc: ServiceError) -> HTTPException:
    """Map a service failure to an HTTP error; only the safe message leaves the process."""
    return HTTPException(
        status_code=ERROR_STATUS[exc.kind],
        detail=exc.message,
        headers={"X-Error-Kind": exc.kind.value},
    )


@contextmanager
def _service_errors() -> Iterator[None]:
    try:
        yield
    except ServiceError as exc:
        raise _http_error(exc) from exc


def _enforce_rate_limit(key: str) -> None:
    if not rate_limiter.allow(key):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="rate limited")


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    request: Request,
    payload: CreateUserRequest,
    service: AccountOperations = Depends(get_account_service),
) -> UserResponse:
    """Register a new account."""
    client_host = request.client.host if request.client else "unknown"
    _enforce_rate_limit(f"create:{client_host}")
    with _service_errors():
        account = service.create_user(
            CreateUserInput(
                email=payload.email,
                password=payload.password,
                first_name=payload.first_name,
                last_name=payload.last_name,
                gender=payload.gender,
                birth_day=payload.birth_day,
                phone_number=payload.phone_number,
            )
        )
    return UserResponse.from_domain(account)


@router.get("/users", response_model=UserResponse)
def get_user_by_email(
    email: str = Query(default=""),
    service: AccountOperations = Depends(get_account_service),
) -> UserResponse:
    """Look up an active account by email."""
    with _service_errors():
        account = service.get_user_by_email(email)
    return UserResponse.from_domain(account)


@router.get("/users/{account_id}", response_model=UserResponse)
def get_user(
    account_id: str,
    service: AccountOperations = Depends(get_account_service),
) -> UserResponse:
    with _service_errors():
        account = service.get_user_by_id(account_id)
    return UserResponse.from_domain(account)


@router.put("/users/{account_id}/email", response_model=UserResponse)
def update_user_email(
    account_id: str,
    payload: UpdateEmailRequest,
    service: AccountOperations = Depends(get_account_service),
) -> UserResponse:
    with _service_errors():
        account = service.update_user_email(account_id, payload.email)
    return UserResponse.from_domain(account)


@router.put("/users/{account_id}/password", response_model=UserResponse)
def update_user_password(
    account_id: str,
    payload: PasswordRequest,
    service: AccountOperations = Depends(get_account_service),
) -> UserResponse:
    with _service_errors():
        account = service.update_user_password(account_id, payload.password)
    return UserResponse.from_domain(account)


@router.put("/users/{account_id}/info", response_model=UserResponse)
def update_user_info(
    account_id: str,
    payload: UpdateInfoRequest,
    service: AccountOperations = Depends(get_account_service),
) -> UserResponse:
    """Replace the profile fields of an account; email and password are left as they are."""
    with _service_errors():
        account = service.update_user_info(
            account_id,
            UpdateUserInfoInput(
                first_name=payload.first_name,
                last_name=payload.last_name,
                gender=payload.gender,
                birth_day=payload.birth_day,
                phone_number=payload.phone_number,
            ),
        )
    return UserResponse.from_domain(account)


@router.delete("/users/{account_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_user_soft(
    account_id: str,
    service: AccountOperations = Depends(get_account_service),
) -> Response:
    with _service_errors():
        service.delete_user_soft(account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/users/{account_id}/recover", response_model=UserResponse)
def recover_user(
    account_id: str,
    service: AccountOperations = Depends(get_account_service),
) -> UserResponse:
    with _service_errors():
        account = service.recover_user(account_id)
    return UserResponse.from_domain(account)


@router.delete(
    "/users/{account_id}/permanent",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def delete_user_permanent(
    account_id: str,
    service: AccountOperations = Depends(get_account_service),
) -> Response:
    with _service_errors():
        service.delete_user_permanent(account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/users/{account_id}/verify-password",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def verify_password(
    account_id: str,
    payload: PasswordRequest,
    service: AccountOperations = Depends(get_account_service),
) -> Response:
    """Check a password for an active account; repeated attempts are rate limited."""
    rate_key = f"verify:{account_id}"
    _enforce_rate_limit(rate_key)
    with _service_errors():
        service.verify_password(account_id, payload.password)
    rate_limiter.reset(rate_key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/genders", response_model=GenderResponse, status_code=status.HTTP_201_CREATED)
def add_gender(
    payload: GenderRequest,
    service: GenderOperations = Depends(get_gender_service),
) -> GenderResponse:
    with _service_errors():
        gender = service.add_gender(payload.title)
    return GenderResponse.from_domain(gender)


@router.get("/genders", response_model=list[GenderResponse])
def list_genders(service: GenderOperations = Depends(get_gender_service)) -> list[GenderResponse]:
    with _service_errors():
        genders = service.list_genders()
    return [GenderResponse.from_domain(gender) for gender in genders]


@router.get("/genders/{gender_id}", response_model=GenderResponse)
def get_gender(
    gender_id: int,
    service: GenderOperations = Depends(get_gender_service),
) -> GenderResponse:
    with _service_errors():
        gender = service.get_gender(gender_id)
    return GenderResponse.from_domain(gender)


@router.delete("/genders/{gender_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def remove_gender(
    gender_id: int,
    service: GenderOperations = Depends(get_gender_service),
) -> Response:
    with _service_errors():
        service.remove_gender(gender_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
