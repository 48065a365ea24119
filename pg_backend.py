# pg_backend.py
from __future__ import annotations

import logging
from typing import Any

from base_backend import TABLES, BaseBackend, Query
from db_singleton import PgDB
from errors import BackendError

logger = logging.getLogger(__name__)

DDL: tuple[str, ...] = (
    "CREATE EXTENSION IF NOT EXISTS pgcrypto;",
    """
    CREATE TABLE IF NOT EXISTS clients (
        id               BIGSERIAL PRIMARY KEY,
        name             TEXT NOT NULL,
        email            TEXT NOT NULL,
        phone            TEXT NOT NULL,
        address          TEXT NOT NULL,
        contract_amount  NUMERIC(12, 2),
        notes            TEXT,
        status           TEXT NOT NULL DEFAULT 'active',
        created_at       TIMESTAMPTZ DEFAULT now(),
        updated_at       TIMESTAMPTZ DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS vendors (
        id          BIGSERIAL PRIMARY KEY,
        name        TEXT NOT NULL,
        email       TEXT NOT NULL,
        phone       TEXT NOT NULL,
        category    TEXT NOT NULL,
        status      TEXT NOT NULL DEFAULT 'active',
        created_at  TIMESTAMPTZ DEFAULT now(),
        updated_at  TIMESTAMPTZ DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS labors (
        id              BIGSERIAL PRIMARY KEY,
        name            TEXT NOT NULL,
        phone           TEXT NOT NULL,
        specialization  TEXT NOT NULL,
        notes           TEXT,
        status          TEXT NOT NULL DEFAULT 'active',
        created_at      TIMESTAMPTZ DEFAULT now(),
        updated_at      TIMESTAMPTZ DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS contracts (
        id                     BIGSERIAL PRIMARY KEY,
        client_id              BIGINT NOT NULL REFERENCES clients(id) ON DELETE CASCADE,
        vendor_id              BIGINT REFERENCES vendors(id) ON DELETE CASCADE,
        labor_id               BIGINT REFERENCES labors(id) ON DELETE CASCADE,
        title                  TEXT NOT NULL,
        description            TEXT,
        contract_amount        NUMERIC(12, 2) NOT NULL,
        commission_percentage  NUMERIC(5, 2) NOT NULL,
        commission_amount      NUMERIC(12, 2) NOT NULL,
        status                 TEXT NOT NULL DEFAULT 'active',
        start_date             DATE NOT NULL,
        end_date               DATE,
        created_at             TIMESTAMPTZ DEFAULT now(),
        updated_at             TIMESTAMPTZ DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS payments (
        id           BIGSERIAL PRIMARY KEY,
        amount       NUMERIC(12, 2) NOT NULL,
        date         DATE NOT NULL,
        type         TEXT NOT NULL,
        contract_id  BIGINT REFERENCES contracts(id) ON DELETE CASCADE,
        client_id    BIGINT REFERENCES clients(id) ON DELETE CASCADE,
        description  TEXT,
        created_at   TIMESTAMPTZ DEFAULT now(),
        updated_at   TIMESTAMPTZ DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id           BIGSERIAL PRIMARY KEY,
        title        TEXT NOT NULL,
        description  TEXT,
        status       TEXT NOT NULL,
        due_date     DATE NOT NULL,
        client_id    BIGINT REFERENCES clients(id) ON DELETE CASCADE,
        created_at   TIMESTAMPTZ DEFAULT now(),
        updated_at   TIMESTAMPTZ DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS documents (
        id           BIGSERIAL PRIMARY KEY,
        name         TEXT NOT NULL,
        category     TEXT NOT NULL,
        file_path    TEXT NOT NULL,
        uploaded_at  TIMESTAMPTZ DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS auth_users (
        id             BIGSERIAL PRIMARY KEY,
        email          TEXT NOT NULL UNIQUE,
        password_hash  TEXT NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_contracts_client ON contracts(client_id);",
    "CREATE INDEX IF NOT EXISTS idx_payments_contract ON payments(contract_id);",
    "CREATE INDEX IF NOT EXISTS idx_payments_client ON payments(client_id);",
)


class PgBackend(BaseBackend):
    """Tables in the hosted PostgreSQL, queried through PgDB."""

    name = "db"

    def __init__(
        self,
        *,
        host: str = "127.0.0.1",
        port: int = 5432,
        dbname: str = "studio",
        user: str = "postgres",
        password: str = "",
        auto_migrate: bool = True,
    ) -> None:
        PgDB.init(host=host, port=port, dbname=dbname, user=user, password=password)
        if auto_migrate:
            self.ensure_schema()

    def ensure_schema(self) -> None:
        db = PgDB.get()
        for stmt in DDL:
            db.execute(stmt)
        logger.info("database schema checked")

    # ---------- SQL fragments ----------

    @staticmethod
    def build_where(q: Query) -> tuple[str, list[Any]]:
        conds: list[str] = []
        params: list[Any] = []

        for col, val in q.eq.items():
            if val is None:
                conds.append(f"{col} IS NULL")
            else:
                conds.append(f"{col} = %s")
                params.append(val)
        for col, val in q.neq.items():
            conds.append(f"{col} IS DISTINCT FROM %s")
            params.append(val)
        for col in q.not_null:
            conds.append(f"{col} IS NOT NULL")
        for col, val in q.ilike.items():
            conds.append(f"{col}::text ILIKE %s")
            params.append(f"%{val}%")
        for col, val in q.gte.items():
            conds.append(f"{col} >= %s")
            params.append(val)
        for col, val in q.lt.items():
            conds.append(f"{col} < %s")
            params.append(val)
        for col, vals in q.in_.items():
            conds.append(f"{col} = ANY(%s)")
            params.append(list(vals))

        if not conds:
            return "", []
        return "WHERE " + " AND ".join(conds), params

    @staticmethod
    def build_order(q: Query) -> str:
        col = q.order_by or "id"
        # id as tie-breaker keeps pages stable
        tail = "" if col == "id" else f", id {'DESC' if q.desc else 'ASC'}"
        return f"ORDER BY {col} {'DESC' if q.desc else 'ASC'}{tail}"

    @staticmethod
    def build_range(q: Query) -> tuple[str, list[Any]]:
        parts: list[str] = []
        params: list[Any] = []
        if q.limit is not None:
            parts.append("LIMIT %s")
            params.append(q.limit)
        if q.offset:
            parts.append("OFFSET %s")
            params.append(q.offset)
        return " ".join(parts), params

    def build_select(self, table: str, query: Query | None) -> tuple[str, list[Any]]:
        q = self.check_query(table, query)
        wsql, params = self.build_where(q)
        rsql, rparams = self.build_range(q)
        sql = f"SELECT * FROM {table} {wsql} {self.build_order(q)} {rsql}".strip()
        return sql, params + rparams

    # ---------- operations ----------

    def select(self, table: str, query: Query | None = None) -> list[dict[str, Any]]:
        sql, params = self.build_select(table, query)
        return PgDB.get().fetch_all(sql, params)

    def count(self, table: str, query: Query | None = None) -> int:
        q = self.check_query(table, query)
        wsql, params = self.build_where(q)
        row = PgDB.get().fetch_one(f"SELECT COUNT(*) AS cnt FROM {table} {wsql}", params)
        return int(row["cnt"]) if row else 0

    def get(self, table: str, row_id: int) -> dict[str, Any] | None:
        self.check_table(table)
        return PgDB.get().fetch_one(f"SELECT * FROM {table} WHERE id = %s", [row_id])

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        payload = self.clean_payload(table, row)
        cols = ", ".join(payload)
        marks = ", ".join(["%s"] * len(payload))
        created = PgDB.get().execute_returning(
            f"INSERT INTO {table} ({cols}) VALUES ({marks}) RETURNING *",
            list(payload.values()),
        )
        if created is None:
            raise BackendError(f"insert into {table} returned no row", table=table)
        logger.info("inserted %s id=%s", table, created.get("id"))
        return created

    def update(self, table: str, row_id: int, row: dict[str, Any]) -> dict[str, Any] | None:
        payload = self.clean_payload(table, row)
        if "updated_at" in TABLES[table]:
            payload.pop("updated_at", None)
            sets = [f"{k} = %s" for k in payload] + ["updated_at = now()"]
        else:
            sets = [f"{k} = %s" for k in payload]
        updated = PgDB.get().execute_returning(
            f"UPDATE {table} SET {', '.join(sets)} WHERE id = %s RETURNING *",
            list(payload.values()) + [row_id],
        )
        if updated:
            logger.info("updated %s id=%s", table, row_id)
        return updated

    def delete(self, table: str, row_id: int) -> dict[str, Any] | None:
        self.check_table(table)
        deleted = PgDB.get().execute_returning(
            f"DELETE FROM {table} WHERE id = %s RETURNING *", [row_id]
        )
        if deleted:
            logger.info("deleted %s id=%s", table, row_id)
        return deleted
