# yaml_backend.py
from __future__ import annotations

import logging
import os
import threading
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

import yaml  # type: ignore[import-untyped]

from base_backend import TABLES, BaseBackend, Query
from errors import BackendError

logger = logging.getLogger(__name__)


def _plain(value: Any) -> Any:
    """YAML-safe scalars: Decimal -> str (keeps cents exact), dates -> ISO strings."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _cmp_key(value: Any) -> tuple[int, Any]:
    """Comparable key: numbers (also numeric strings) rank before text."""
    if isinstance(value, (date, datetime)):
        return (1, value.isoformat())
    if isinstance(value, Decimal):
        return (0, value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, Decimal(str(value)))
    if isinstance(value, str):
        try:
            d = Decimal(value)
        except ArithmeticError:
            return (1, value)
        return (0, d) if d.is_finite() else (1, value)
    return (1, str(value))


def _equal(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return _cmp_key(a) == _cmp_key(b)


class YamlBackend(BaseBackend):
    """
    Local data directory: one YAML array of row dicts per table
    (clients.yaml, contracts.yaml, ...). Queries are evaluated in memory
    with the same semantics as the SQL backend.
    """

    name = "yaml"

    def __init__(self, data_dir: str, *, auto_migrate: bool = True) -> None:
        self.data_dir = data_dir
        self._lock = threading.Lock()
        if auto_migrate:
            self.ensure_schema()

    def path_for(self, table: str) -> str:
        self.check_table(table)
        return os.path.join(self.data_dir, f"{table}.yaml")

    def ensure_schema(self) -> None:
        os.makedirs(self.data_dir, exist_ok=True)
        for table in TABLES:
            path = self.path_for(table)
            if not os.path.exists(path):
                self._write_array(path, [])

    # ---------- file level ----------

    def _read_array(self, path: str) -> list[dict[str, Any]]:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            return []
        except (OSError, yaml.YAMLError) as e:
            logger.error("cannot read %s: %s", path, e)
            raise BackendError(f"Cannot read {os.path.basename(path)}: {e}") from e
        if data is None:
            return []
        if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
            raise BackendError(f"{os.path.basename(path)} must be a list of objects.")
        return data

    def _write_array(self, path: str, records: list[dict[str, Any]]) -> None:
        try:
            tmp = f"{path}.tmp"
            with open(tmp, "w", encoding="utf-8") as f:
                yaml.safe_dump(
                    [{k: _plain(v) for k, v in r.items()} for r in records],
                    f,
                    allow_unicode=True,
                    sort_keys=False,
                    indent=2,
                    default_flow_style=False,
                )
            os.replace(tmp, path)
        except OSError as e:
            logger.error("cannot write %s: %s", path, e)
            raise BackendError(f"Cannot write {os.path.basename(path)}: {e}") from e

    def _rows(self, table: str) -> list[dict[str, Any]]:
        return self._read_array(self.path_for(table))

    # ---------- in-memory query ----------

    @staticmethod
    def _matches(row: dict[str, Any], q: Query) -> bool:
        for col, val in q.eq.items():
            if not _equal(row.get(col), val):
                return False
        for col, val in q.neq.items():
            if _equal(row.get(col), val):
                return False
        for col in q.not_null:
            if row.get(col) is None:
                return False
        for col, needle in q.ilike.items():
            if str(needle).casefold() not in str(row.get(col) or "").casefold():
                return False
        for col, val in q.gte.items():
            v = row.get(col)
            if v is None or _cmp_key(v) < _cmp_key(val):
                return False
        for col, val in q.lt.items():
            v = row.get(col)
            if v is None or not _cmp_key(v) < _cmp_key(val):
                return False
        for col, vals in q.in_.items():
            if not any(_equal(row.get(col), v) for v in vals):
                return False
        return True

    @staticmethod
    def _order(rows: list[dict[str, Any]], q: Query) -> list[dict[str, Any]]:
        col = q.order_by or "id"
        by_id = sorted(rows, key=lambda r: int(r.get("id") or 0), reverse=q.desc)
        if col == "id":
            return by_id
        present = [r for r in by_id if r.get(col) is not None]
        missing = [r for r in by_id if r.get(col) is None]

        def kfunc(r: dict[str, Any]) -> tuple[int, Any]:
            rank, v = _cmp_key(r[col])
            return (rank, v.casefold() if isinstance(v, str) else v)

        # NULLS LAST for ASC, NULLS FIRST for DESC, like PostgreSQL
        ordered = sorted(present, key=kfunc, reverse=q.desc)
        return missing + ordered if q.desc else ordered + missing

    def select(self, table: str, query: Query | None = None) -> list[dict[str, Any]]:
        q = self.check_query(table, query)
        rows = [r for r in self._rows(table) if self._matches(r, q)]
        rows = self._order(rows, q)
        end = None if q.limit is None else q.offset + q.limit
        return [dict(r) for r in rows[q.offset:end]]

    def count(self, table: str, query: Query | None = None) -> int:
        q = self.check_query(table, query)
        return sum(1 for r in self._rows(table) if self._matches(r, q))

    def get(self, table: str, row_id: int) -> dict[str, Any] | None:
        for r in self._rows(table):
            if _equal(r.get("id"), row_id):
                return dict(r)
        return None

    # ---------- mutations ----------

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        payload = self.clean_payload(table, row)
        with self._lock:
            path = self.path_for(table)
            records = self._read_array(path)
            ids = [int(r["id"]) for r in records if r.get("id") is not None]
            now = datetime.now(timezone.utc).isoformat()
            created: dict[str, Any] = {"id": (max(ids) if ids else 0) + 1}
            for col in TABLES[table]:
                created[col] = _plain(payload.get(col))
            for stamp in ("created_at", "updated_at", "uploaded_at"):
                if stamp in TABLES[table] and not created.get(stamp):
                    created[stamp] = now
            records.append(created)
            self._write_array(path, records)
        logger.info("inserted %s id=%s", table, created["id"])
        return dict(created)

    def update(self, table: str, row_id: int, row: dict[str, Any]) -> dict[str, Any] | None:
        payload = self.clean_payload(table, row)
        with self._lock:
            path = self.path_for(table)
            records = self._read_array(path)
            for rec in records:
                if _equal(rec.get("id"), row_id):
                    rec.update({k: _plain(v) for k, v in payload.items()})
                    if "updated_at" in TABLES[table]:
                        rec["updated_at"] = datetime.now(timezone.utc).isoformat()
                    self._write_array(path, records)
                    logger.info("updated %s id=%s", table, row_id)
                    return dict(rec)
        return None

    def delete(self, table: str, row_id: int) -> dict[str, Any] | None:
        with self._lock:
            path = self.path_for(table)
            records = self._read_array(path)
            idxs = [i for i, r in enumerate(records) if _equal(r.get("id"), row_id)]
            if not idxs:
                return None
            removed = records.pop(idxs[0])
            self._cascade(table, row_id)
            self._write_array(path, records)
        logger.info("deleted %s id=%s", table, row_id)
        return removed

    # ON DELETE CASCADE of the SQL schema
    _CASCADE: dict[str, tuple[tuple[str, str], ...]] = {
        "clients": (("contracts", "client_id"), ("payments", "client_id"), ("tasks", "client_id")),
        "vendors": (("contracts", "vendor_id"),),
        "labors": (("contracts", "labor_id"),),
        "contracts": (("payments", "contract_id"),),
    }

    def _cascade(self, table: str, row_id: int) -> None:
        for child, fk in self._CASCADE.get(table, ()):
            path = self.path_for(child)
            records = self._read_array(path)
            keep = [r for r in records if not _equal(r.get(fk), row_id)]
            gone = [r for r in records if _equal(r.get(fk), row_id)]
            if gone:
                self._write_array(path, keep)
                for r in gone:
                    self._cascade(child, int(r["id"]))
