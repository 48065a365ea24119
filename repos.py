# repos.py
"""Entity repositories: backend rows <-> dataclasses, plus the display joins."""
from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Callable, Generic, Optional, TypeVar

from base_backend import BaseBackend, Query
from entities import Client, Contract, Document, Labor, Payment, Task, Vendor
from errors import NotFoundError

E = TypeVar("E", Client, Vendor, Labor, Contract, Payment, Task, Document)


class TableRepo(Generic[E]):
    table: str = ""
    entity_name: str = ""
    default_order: str = "id"
    default_desc: bool = False

    def __init__(self, backend: BaseBackend, factory: Callable[[dict[str, Any]], E]) -> None:
        self.backend = backend
        self._factory = factory

    def _query(self, query: Query | None) -> Query:
        q = query or Query()
        if q.order_by is None:
            q.order_by = self.default_order
            q.desc = self.default_desc
        return q

    def _to_entities(self, rows: Iterable[dict[str, Any]]) -> list[E]:
        return [self._factory(r) for r in rows]

    # ===== reads =====

    def list(self, query: Query | None = None) -> list[E]:
        return self._to_entities(self.backend.select(self.table, self._query(query)))

    def count(self, query: Query | None = None) -> int:
        return self.backend.count(self.table, query)

    def get(self, entity_id: int) -> Optional[E]:
        row = self.backend.get(self.table, entity_id)
        return self._factory(row) if row else None

    def require(self, entity_id: int) -> E:
        found = self.get(entity_id)
        if found is None:
            raise NotFoundError(self.entity_name, entity_id)
        return found

    # ===== mutations =====

    def create(self, entity: E) -> E:
        return self._factory(self.backend.insert(self.table, entity.to_row()))

    def update(self, entity_id: int, entity: E) -> E:
        row = self.backend.update(self.table, entity_id, entity.to_row())
        if row is None:
            raise NotFoundError(self.entity_name, entity_id)
        return self._factory(row)

    def patch(self, entity_id: int, fields: dict[str, Any]) -> E:
        row = self.backend.update(self.table, entity_id, fields)
        if row is None:
            raise NotFoundError(self.entity_name, entity_id)
        return self._factory(row)

    def delete(self, entity_id: int) -> E:
        row = self.backend.delete(self.table, entity_id)
        if row is None:
            raise NotFoundError(self.entity_name, entity_id)
        return self._factory(row)

    def names(self, ids: Iterable[Optional[int]]) -> dict[int, str]:
        """id -> name for a batch of ids (one query)."""
        wanted = sorted({i for i in ids if isinstance(i, int)})
        if not wanted:
            return {}
        rows = self.backend.select(self.table, Query(in_={"id": wanted}))
        return {int(r["id"]): (r.get("name") or "") for r in rows}


class ClientsRepo(TableRepo[Client]):
    table = "clients"
    entity_name = "client"
    default_order = "name"

    def __init__(self, backend: BaseBackend) -> None:
        super().__init__(backend, Client.from_row)


class VendorsRepo(TableRepo[Vendor]):
    table = "vendors"
    entity_name = "vendor"
    default_order = "name"

    def __init__(self, backend: BaseBackend) -> None:
        super().__init__(backend, Vendor.from_row)


class LaborsRepo(TableRepo[Labor]):
    table = "labors"
    entity_name = "labor"
    default_order = "name"

    def __init__(self, backend: BaseBackend) -> None:
        super().__init__(backend, Labor.from_row)


class DocumentsRepo(TableRepo[Document]):
    table = "documents"
    entity_name = "document"
    default_order = "uploaded_at"
    default_desc = True

    def __init__(self, backend: BaseBackend) -> None:
        super().__init__(backend, Document.from_row)


class PaymentsRepo(TableRepo[Payment]):
    table = "payments"
    entity_name = "payment"
    default_order = "date"
    default_desc = True

    def __init__(self, backend: BaseBackend) -> None:
        super().__init__(backend, Payment.from_row)

    def for_contracts(self, contract_ids: Iterable[Optional[int]]) -> dict[int, list[Payment]]:
        ids = sorted({i for i in contract_ids if isinstance(i, int)})
        out: dict[int, list[Payment]] = {i: [] for i in ids}
        if not ids:
            return out
        for p in self.list(Query(in_={"contract_id": ids})):
            if p.contract_id is not None:
                out.setdefault(p.contract_id, []).append(p)
        return out


class ContractsRepo(TableRepo[Contract]):
    table = "contracts"
    entity_name = "contract"
    default_order = "created_at"
    default_desc = True

    def __init__(
        self,
        backend: BaseBackend,
        *,
        payments: PaymentsRepo,
        clients: ClientsRepo,
        vendors: VendorsRepo,
        labors: LaborsRepo,
    ) -> None:
        super().__init__(backend, Contract.from_row)
        self.payments = payments
        self.clients = clients
        self.vendors = vendors
        self.labors = labors

    def attach(self, contracts: list[Contract]) -> list[Contract]:
        """Nested payments + client / counterparty names, one query per table."""
        by_contract = self.payments.for_contracts(c.id for c in contracts)
        client_names = self.clients.names(c.client_id for c in contracts)
        vendor_names = self.vendors.names(c.vendor_id for c in contracts)
        labor_names = self.labors.names(c.labor_id for c in contracts)
        for c in contracts:
            c.payments = by_contract.get(c.id, []) if c.id is not None else []
            c.client_name = client_names.get(c.client_id)
            if c.vendor_id is not None:
                c.counterparty_name = vendor_names.get(c.vendor_id)
            elif c.labor_id is not None:
                c.counterparty_name = labor_names.get(c.labor_id)
        return contracts

    def list(self, query: Query | None = None) -> list[Contract]:
        return self.attach(super().list(query))

    def get(self, entity_id: int) -> Optional[Contract]:
        found = super().get(entity_id)
        return self.attach([found])[0] if found else None


class TasksRepo(TableRepo[Task]):
    table = "tasks"
    entity_name = "task"
    default_order = "due_date"

    def __init__(self, backend: BaseBackend, *, clients: ClientsRepo) -> None:
        super().__init__(backend, Task.from_row)
        self.clients = clients

    def list(self, query: Query | None = None) -> list[Task]:
        tasks = super().list(query)
        names = self.clients.names(t.client_id for t in tasks)
        for t in tasks:
            t.client_name = names.get(t.client_id) if t.client_id is not None else None
        return tasks


class Repos:
    """All repositories over one backend."""

    def __init__(self, backend: BaseBackend) -> None:
        self.backend = backend
        self.clients = ClientsRepo(backend)
        self.vendors = VendorsRepo(backend)
        self.labors = LaborsRepo(backend)
        self.payments = PaymentsRepo(backend)
        self.documents = DocumentsRepo(backend)
        self.contracts = ContractsRepo(
            backend,
            payments=self.payments,
            clients=self.clients,
            vendors=self.vendors,
            labors=self.labors,
        )
        self.tasks = TasksRepo(backend, clients=self.clients)

    def by_kind(self, kind: str) -> TableRepo[Any]:
        repo = {
            "client": self.clients,
            "vendor": self.vendors,
            "labor": self.labors,
            "contract": self.contracts,
            "payment": self.payments,
            "task": self.tasks,
            "document": self.documents,
        }.get(kind)
        if repo is None:
            raise ValueError(f"Unknown entity kind: {kind}")
        return repo
