# programme_engine/infrastructure/postgres_store.py
"""
PostgreSQL implementation of the record store.

All collections share one ``records`` table holding JSONB documents keyed by
``(collection, key)``. The primary key is the uniqueness constraint that
guarantees a single enrollment record per (user, programme) pair, and the
``version`` column provides optimistic concurrency for conditional writes.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool, PoolTimeout

from programme_engine.config import get_env, settings
from programme_engine.domain.repositories import (
    DuplicateKeyError,
    RecordStore,
    StoreConflictError,
    StoreUnavailableError,
)
from programme_engine.infrastructure import log_utils
from programme_engine.infrastructure.decorators import retry_on_transient_error

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS records (
    collection  TEXT        NOT NULL,
    key         TEXT        NOT NULL,
    value       JSONB       NOT NULL,
    version     INTEGER     NOT NULL DEFAULT 1,
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
    PRIMARY KEY (collection, key)
);
CREATE INDEX IF NOT EXISTS records_value_gin ON records USING GIN (value jsonb_path_ops);
"""

# --- Connection Pool Management ---
_pool: ConnectionPool | None = None


def _database_url() -> str:
    url = get_env("DATABASE_URL", default=settings.DATABASE_URL)
    if not url:
        raise RuntimeError("No database configured: set DATABASE_URL or the POSTGRES_* variables.")
    return str(url)


def _create_pool() -> ConnectionPool:
    return ConnectionPool(
        conninfo=_database_url(),
        min_size=settings.POOL_MIN_SIZE,
        max_size=settings.POOL_MAX_SIZE,
        open=True,
    )


def get_pool() -> ConnectionPool:
    global _pool
    if _pool is None:
        _pool = _create_pool()
    return _pool


def _strip_version(value: Mapping[str, Any]) -> Dict[str, Any]:
    return {field: item for field, item in value.items() if field != "version"}


def _with_version(row: Mapping[str, Any]) -> Dict[str, Any]:
    record = dict(row["value"])
    record["version"] = row["version"]
    return record


class PostgresRecordStore(RecordStore):
    """Record store backed by a pooled PostgreSQL connection."""

    def __init__(
        self,
        pool: Optional[ConnectionPool] = None,
        *,
        max_retries: int | None = None,
        backoff_base: float | None = None,
    ):
        self.pool = pool or get_pool()
        self.max_retries = max_retries if max_retries is not None else settings.STORE_MAX_RETRIES
        self.backoff_base = backoff_base if backoff_base is not None else settings.STORE_BACKOFF_BASE

    @contextmanager
    def _get_cursor(self) -> Iterator[psycopg.Cursor]:
        try:
            with self.pool.connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    yield cur
        except (psycopg.OperationalError, PoolTimeout) as exc:
            raise StoreUnavailableError(str(exc) or exc.__class__.__name__) from exc

    def ensure_schema(self) -> None:
        with self._get_cursor() as cur:
            cur.execute(SCHEMA_SQL)
        log_utils.info("Record store schema ensured.")

    def close(self) -> None:
        if self.pool and not self.pool.closed:
            self.pool.close()
            log_utils.info("Database connection pool closed.")

    @retry_on_transient_error()
    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        with self._get_cursor() as cur:
            cur.execute(
                "SELECT value, version FROM records WHERE collection = %s AND key = %s",
                (collection, key),
            )
            row = cur.fetchone()
        return _with_version(row) if row else None

    @retry_on_transient_error()
    def put(
        self,
        collection: str,
        key: str,
        value: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        payload = _strip_version(value)
        with self._get_cursor() as cur:
            if expected_version is None:
                cur.execute(
                    """
                    INSERT INTO records (collection, key, value)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (collection, key) DO UPDATE
                        SET value = EXCLUDED.value,
                            version = records.version + 1,
                            updated_at = now()
                    RETURNING value, version
                    """,
                    (collection, key, Json(payload)),
                )
                return _with_version(cur.fetchone())

            cur.execute(
                """
                UPDATE records
                   SET value = %s, version = version + 1, updated_at = now()
                 WHERE collection = %s AND key = %s AND version = %s
                RETURNING value, version
                """,
                (Json(payload), collection, key, expected_version),
            )
            row = cur.fetchone()
            if row is not None:
                return _with_version(row)

            cur.execute(
                "SELECT version FROM records WHERE collection = %s AND key = %s",
                (collection, key),
            )
            current = cur.fetchone()
        actual = current["version"] if current else None
        raise StoreConflictError(collection, key, expected_version, actual)

    @retry_on_transient_error()
    def insert(self, collection: str, key: str, value: Mapping[str, Any]) -> Dict[str, Any]:
        with self._get_cursor() as cur:
            cur.execute(
                """
                INSERT INTO records (collection, key, value)
                VALUES (%s, %s, %s)
                ON CONFLICT (collection, key) DO NOTHING
                RETURNING value, version
                """,
                (collection, key, Json(_strip_version(value))),
            )
            row = cur.fetchone()
        if row is None:
            raise DuplicateKeyError(collection, key)
        return _with_version(row)

    @retry_on_transient_error()
    def query(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        with self._get_cursor() as cur:
            cur.execute(
                """
                SELECT value, version FROM records
                 WHERE collection = %s AND value @> %s
                 ORDER BY key
                """,
                (collection, Json(dict(filters or {}))),
            )
            rows = cur.fetchall()
        return [_with_version(row) for row in rows]
