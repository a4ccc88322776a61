"""DDL for the users and genders tables."""

from __future__ import annotations

import logging

from psycopg_pool import ConnectionPool

logger = logging.getLogger(__name__)

EMAIL_ACTIVE_CONSTRAINT = "users_email_active_key"
GENDER_TITLE_CONSTRAINT = "genders_title_key"
USER_GENDER_CONSTRAINT = "users_gender_fkey"

# genders.gender_id is SMALLSERIAL: 1..32767
GENDER_ID_MAX = 32767

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS genders (
    gender_id SMALLSERIAL PRIMARY KEY,
    title TEXT NOT NULL CHECK (title <> ''),
    CONSTRAINT {GENDER_TITLE_CONSTRAINT} UNIQUE (title)
);

CREATE TABLE IF NOT EXISTS users (
    account_id UUID PRIMARY KEY,
    email TEXT NOT NULL CHECK (email <> ''),
    hashed_password TEXT NOT NULL,
    first_name TEXT NOT NULL CHECK (first_name <> ''),
    last_name TEXT NOT NULL CHECK (last_name <> ''),
    gender SMALLINT,
    birth_day DATE,
    phone_number TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    deleted_at TIMESTAMPTZ,
    CONSTRAINT {USER_GENDER_CONSTRAINT} FOREIGN KEY (gender)
        REFERENCES genders (gender_id) ON DELETE RESTRICT
);

CREATE UNIQUE INDEX IF NOT EXISTS {EMAIL_ACTIVE_CONSTRAINT}
    ON users (email)
    WHERE deleted_at IS NULL;
"""


def apply_schema(pool: ConnectionPool) -> None:
    """Create the tables and indexes when they do not already exist."""
    with pool.connection() as conn:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
        conn.commit()
    logger.info("database schema applied")
