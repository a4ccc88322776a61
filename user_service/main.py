"""FastAPI application wiring for the user service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.routes import router as v1_router
from .config import Settings, get_settings
from .domain.middleware import (
    AccountInstrumentingMiddleware,
    AccountLoggingMiddleware,
    GenderInstrumentingMiddleware,
    GenderLoggingMiddleware,
)
from .domain.service import AccountService, GenderService, compose
from .repository import PostgresAccountRepository
from .schema import apply_schema
from .security.passwords import PasswordHasher

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


def build_pool(config: Settings) -> ConnectionPool:
    """Create a closed pool whose connections enforce the configured statement timeout."""
    return ConnectionPool(
        config.database_url,
        min_size=config.pool_min_size,
        max_size=config.pool_max_size,
        timeout=config.pool_timeout_seconds,
        kwargs={"options": f"-c statement_timeout={config.statement_timeout_ms}"},
        open=False,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, services) for the app lifecycle."""
    pool = build_pool(settings)
    pool.open()
    pool.wait(timeout=settings.pool_timeout_seconds)
    logger.info("connection pool ready (max_size=%s)", settings.pool_max_size)
    if settings.apply_schema:
        apply_schema(pool)

    repository = PostgresAccountRepository(pool)
    app.state.pool = pool
    app.state.account_service = compose(
        AccountService(repository, PasswordHasher(settings.password_hash_rounds)),
        [AccountInstrumentingMiddleware, AccountLoggingMiddleware],
    )
    app.state.gender_service = compose(
        GenderService(repository),
        [GenderInstrumentingMiddleware, GenderLoggingMiddleware],
    )
    try:
        yield
    finally:
        pool.close()
        logger.info("connection pool closed")


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Error-Kind"],
    max_age=600,
)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(v1_router)
