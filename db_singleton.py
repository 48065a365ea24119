# db_singleton.py
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2.extensions import connection as pg_connection
from psycopg2.extras import RealDictCursor

from errors import BackendError

logger = logging.getLogger(__name__)


class PgDB:
    """
    Singleton holding the connection parameters of the hosted PostgreSQL.
    Every call opens a connection, runs one statement and closes it again;
    there is no pooling and no retry.
    """

    _instance: PgDB | None = None

    def __init__(self, **conn_params: Any) -> None:
        self._conn_params = dict(conn_params)

    @classmethod
    def init(cls, **conn_params: Any) -> PgDB:
        """Create the singleton or replace its connection parameters."""
        if cls._instance is None:
            cls._instance = PgDB(**conn_params)
        else:
            cls._instance._conn_params = dict(conn_params)
        return cls._instance

    @classmethod
    def get(cls) -> PgDB:
        if cls._instance is None:
            raise RuntimeError("PgDB is not initialised. Call PgDB.init(...) first.")
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    def connect(self) -> pg_connection:
        conn: pg_connection = psycopg2.connect(**self._conn_params)  # type: ignore[call-arg]
        conn.autocommit = True
        return conn

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        try:
            conn = self.connect()
        except psycopg2.Error as e:
            logger.error("database connection failed: %s", e)
            raise BackendError(f"Database unavailable: {e}") from e
        try:
            cur = conn.cursor(cursor_factory=RealDictCursor)
            try:
                yield cur
            except psycopg2.Error as e:
                # constraint violations and the like: surface the server message
                message = (e.pgerror or str(e)).strip()
                logger.error("query failed [%s]: %s", e.pgcode, message)
                raise BackendError(message) from e
            finally:
                cur.close()
        finally:
            conn.close()

    # --- open, run, close ---

    def fetch_one(self, sql: str, params: Iterable[Any] | None = None) -> dict[str, Any] | None:
        with self._cursor() as cur:
            cur.execute(sql, params)
            row = cur.fetchone()
            return dict(row) if row is not None else None

    def fetch_all(self, sql: str, params: Iterable[Any] | None = None) -> list[dict[str, Any]]:
        with self._cursor() as cur:
            cur.execute(sql, params)
            return [dict(r) for r in cur.fetchall()]

    def execute(self, sql: str, params: Iterable[Any] | None = None) -> int:
        with self._cursor() as cur:
            cur.execute(sql, params)
            return cur.rowcount

    def execute_returning(
        self, sql: str, params: Iterable[Any] | None = None
    ) -> dict[str, Any] | None:
        """Statement with RETURNING: first row of the result or None."""
        with self._cursor() as cur:
            cur.execute(sql, params)
            row = cur.fetchone()
            return dict(row) if row is not None else None
