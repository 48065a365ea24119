# base_backend.py
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

# Columns per table (besides "id"). Used for whitelisting ORDER BY / payload keys.
TABLES: dict[str, tuple[str, ...]] = {
    "clients": ("name", "email", "phone", "address", "contract_amount", "notes", "status",
                "created_at", "updated_at"),
    "vendors": ("name", "email", "phone", "category", "status", "created_at", "updated_at"),
    "labors": ("name", "phone", "specialization", "notes", "status", "created_at", "updated_at"),
    "contracts": ("client_id", "vendor_id", "labor_id", "title", "description",
                  "contract_amount", "commission_percentage", "commission_amount", "status",
                  "start_date", "end_date", "created_at", "updated_at"),
    "payments": ("amount", "date", "type", "contract_id", "client_id", "description",
                 "created_at", "updated_at"),
    "tasks": ("title", "description", "status", "due_date", "client_id",
              "created_at", "updated_at"),
    "documents": ("name", "category", "file_path", "uploaded_at"),
}


@dataclass
class Query:
    """
    Row query in the shape of the hosted backend's query builder:
    eq / neq / not_null / ilike / gte / lt / in_ predicates, one ORDER BY and a range.
    """

    eq: dict[str, Any] = field(default_factory=dict)
    neq: dict[str, Any] = field(default_factory=dict)
    not_null: tuple[str, ...] = ()
    ilike: dict[str, str] = field(default_factory=dict)  # column -> substring
    gte: dict[str, Any] = field(default_factory=dict)
    lt: dict[str, Any] = field(default_factory=dict)
    in_: dict[str, list[Any]] = field(default_factory=dict)
    order_by: str | None = None
    desc: bool = False
    offset: int = 0
    limit: int | None = None

    def columns(self) -> set[str]:
        cols: set[str] = set(self.not_null)
        for part in (self.eq, self.neq, self.ilike, self.gte, self.lt, self.in_):
            cols.update(part)
        if self.order_by:
            cols.add(self.order_by)
        return cols


class BaseBackend(ABC):
    """
    Persistence boundary. Concrete backends (PostgreSQL / YAML directory)
    implement the table operations; everything above works with plain dict rows.
    Failures are raised as errors.BackendError.
    """

    name: str = "base"

    # ---------- helpers ----------

    @staticmethod
    def check_table(table: str) -> tuple[str, ...]:
        try:
            return TABLES[table]
        except KeyError:
            raise ValueError(f"Unknown table: {table}") from None

    @classmethod
    def check_query(cls, table: str, query: Query | None) -> Query:
        cols = cls.check_table(table)
        q = query or Query()
        unknown = q.columns() - set(cols) - {"id"}
        if unknown:
            raise ValueError(f"Unknown columns for {table}: {', '.join(sorted(unknown))}")
        if q.offset < 0 or (q.limit is not None and q.limit < 0):
            raise ValueError("offset/limit must not be negative")
        return q

    @classmethod
    def clean_payload(cls, table: str, row: dict[str, Any]) -> dict[str, Any]:
        cols = cls.check_table(table)
        return {k: v for k, v in row.items() if k in cols}

    # ---------- abstract operations ----------

    @abstractmethod
    def ensure_schema(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def select(self, table: str, query: Query | None = None) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def count(self, table: str, query: Query | None = None) -> int:
        raise NotImplementedError

    @abstractmethod
    def get(self, table: str, row_id: int) -> dict[str, Any] | None:
        raise NotImplementedError

    @abstractmethod
    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def update(self, table: str, row_id: int, row: dict[str, Any]) -> dict[str, Any] | None:
        """Returns the updated row or None when the id does not exist."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, table: str, row_id: int) -> dict[str, Any] | None:
        """Returns the deleted row or None when the id does not exist."""
        raise NotImplementedError

    def ping(self) -> bool:
        self.count("clients")
        return True
