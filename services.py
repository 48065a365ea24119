# services.py
"""
DashboardService: the one fetch-and-recompute path per entity.

Raw rows come from the repositories through the QueryCache; every derived
total is computed by the functions in aggregation.py; list pages are
filtered and sliced by listing.py. Mutations go through the
ObservableStore, whose events invalidate the cache.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Callable, Generic, Optional, TypeVar

import aggregation as agg
from aggregation import Balance, DashboardStats
from entities import (
    TASK_STATUSES,
    Client,
    Contract,
    Document,
    Labor,
    Payment,
    Task,
    Vendor,
)
from errors import BackendError, FormValidationError, NotFoundError
from export import select_export_payments
from forms import (
    new_document,
    parse_client_form,
    parse_client_payment_form,
    parse_contract_form,
    parse_contract_payment_form,
    parse_document_form,
    parse_labor_form,
    parse_task_form,
    parse_vendor_form,
)
from listing import PAGE_SIZE, ListFilter, Page, SortSpec, apply_filter, paginate, sort_items
from observable_repo import ObservableStore
from query_cache import QueryCache
from repos import Repos
from storage import LocalBucketStorage
from validators import Validator as V

logger = logging.getLogger(__name__)

T = TypeVar("T")

# search fields and sortable attributes per list page
SEARCH_FIELDS: dict[str, tuple[str, ...]] = {
    "client": ("name", "email", "phone"),
    "vendor": ("name", "email", "category"),
    "labor": ("name", "phone", "specialization"),
    "contract": ("title", "client_name", "counterparty_name"),
    "task": ("title", "description", "client_name"),
    "document": ("name", "category"),
}
SORTABLE: dict[str, tuple[str, ...]] = {
    "client": ("id", "name", "email", "status", "contract_amount"),
    "vendor": ("id", "name", "category", "status"),
    "labor": ("id", "name", "specialization", "status"),
    "contract": ("id", "title", "contract_amount", "commission_amount", "start_date", "status"),
    "task": ("id", "title", "status", "due_date"),
    "document": ("id", "name", "category", "uploaded_at"),
}

_PARSERS: dict[str, Callable[[dict[str, str]], Any]] = {
    "client": parse_client_form,
    "vendor": parse_vendor_form,
    "labor": parse_labor_form,
    "contract": parse_contract_form,
    "task": parse_task_form,
}


@dataclass
class Row(Generic[T]):
    entity: T
    balance: Optional[Balance] = None


@dataclass
class ListResult(Generic[T]):
    page: Page[Row[T]]
    totals: Optional[Balance] = None  # over the whole filtered set, not just the page


@dataclass
class ClientDetail:
    client: Client
    balance: Balance
    payments: list[Payment]
    contracts: list[Row[Contract]]


@dataclass
class PartyDetail:
    """Vendor or labor with its contracts (commission side)."""
    kind: str
    party: Vendor | Labor
    balance: Balance
    contracts: list[Row[Contract]]
    payments: list[Payment] = field(default_factory=list)


@dataclass
class ContractDetail:
    contract: Contract
    commission: Balance
    client_side: Balance


class DashboardService:
    def __init__(
        self,
        repos: Repos,
        *,
        store: Optional[ObservableStore] = None,
        cache: Optional[QueryCache] = None,
        storage: Optional[LocalBucketStorage] = None,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self.repos = repos
        self.store = store or ObservableStore(repos)
        self.cache = cache or QueryCache()
        self.store.attach(self.cache)
        self.storage = storage
        self.page_size = page_size

    # ===== cached raw reads =====

    def clients(self) -> list[Client]:
        return self.cache.get_or_fetch(("clients", "all"), self.repos.clients.list)

    def vendors(self) -> list[Vendor]:
        return self.cache.get_or_fetch(("vendors", "all"), self.repos.vendors.list)

    def labors(self) -> list[Labor]:
        return self.cache.get_or_fetch(("labors", "all"), self.repos.labors.list)

    def contracts(self) -> list[Contract]:
        return self.cache.get_or_fetch(("contracts", "all"), self.repos.contracts.list)

    def payments(self) -> list[Payment]:
        return self.cache.get_or_fetch(("payments", "all"), self.repos.payments.list)

    def tasks(self) -> list[Task]:
        return self.cache.get_or_fetch(("tasks", "all"), self.repos.tasks.list)

    def documents(self) -> list[Document]:
        return self.cache.get_or_fetch(("documents", "all"), self.repos.documents.list)

    def _contracts_of(self, kind: str, party_id: int) -> list[Contract]:
        return [c for c in self.contracts() if getattr(c, f"{kind}_id") == party_id]

    # ===== balances =====

    def client_balance(self, client: Client) -> Balance:
        return agg.client_balance(client, self.payments())

    def party_balance(self, kind: str, party_id: int) -> Balance:
        return agg.counterparty_balance(self._contracts_of(kind, party_id))

    # ===== list pages =====

    def _list(
        self,
        kind: str,
        items: list[T],
        flt: Optional[ListFilter],
        sort: Optional[SortSpec],
        page: int,
        balance_of: Optional[Callable[[T], Balance]] = None,
    ) -> ListResult[T]:
        if flt is not None and not flt.search_fields:
            flt = replace(flt, search_fields=SEARCH_FIELDS[kind])
        filtered = apply_filter(items, flt, balance_of=balance_of)
        ordered = sort_items(filtered, sort, SORTABLE[kind])
        sliced = paginate(ordered, page, self.page_size)
        rows = [Row(e, balance_of(e) if balance_of else None) for e in sliced.items]
        totals = None
        if balance_of is not None:
            totals = agg.EMPTY_BALANCE
            for e in filtered:
                totals = totals + balance_of(e)
        return ListResult(
            page=Page(items=rows, page=sliced.page, page_size=sliced.page_size,
                      total=sliced.total),
            totals=totals,
        )

    def list_clients(self, flt: Optional[ListFilter] = None, sort: Optional[SortSpec] = None,
                     page: int = 1) -> ListResult[Client]:
        payments = self.payments()
        return self._list("client", self.clients(), flt, sort, page,
                          lambda c: agg.client_balance(c, payments))

    def list_vendors(self, flt: Optional[ListFilter] = None, sort: Optional[SortSpec] = None,
                     page: int = 1) -> ListResult[Vendor]:
        return self._list("vendor", self.vendors(), flt, sort, page,
                          lambda v: self.party_balance("vendor", v.id))

    def list_labors(self, flt: Optional[ListFilter] = None, sort: Optional[SortSpec] = None,
                    page: int = 1) -> ListResult[Labor]:
        return self._list("labor", self.labors(), flt, sort, page,
                          lambda lb: self.party_balance("labor", lb.id))

    def list_contracts(self, flt: Optional[ListFilter] = None, sort: Optional[SortSpec] = None,
                       page: int = 1) -> ListResult[Contract]:
        return self._list("contract", self.contracts(), flt, sort, page,
                          agg.contract_commission_balance)

    def list_tasks(self, flt: Optional[ListFilter] = None, sort: Optional[SortSpec] = None,
                   page: int = 1) -> ListResult[Task]:
        return self._list("task", self.tasks(), flt, sort, page)

    def list_documents(self, flt: Optional[ListFilter] = None, sort: Optional[SortSpec] = None,
                       page: int = 1) -> ListResult[Document]:
        return self._list("document", self.documents(), flt, sort or SortSpec("uploaded_at", False),
                          page)

    # ===== details =====

    @staticmethod
    def _find(kind: str, items: list[T], entity_id: int) -> T:
        for it in items:
            if getattr(it, "id", None) == entity_id:
                return it
        raise NotFoundError(kind, entity_id)

    def client(self, client_id: int) -> Client:
        return self._find("client", self.clients(), client_id)

    def vendor(self, vendor_id: int) -> Vendor:
        return self._find("vendor", self.vendors(), vendor_id)

    def labor(self, labor_id: int) -> Labor:
        return self._find("labor", self.labors(), labor_id)

    def contract(self, contract_id: int) -> Contract:
        return self._find("contract", self.contracts(), contract_id)

    def task(self, task_id: int) -> Task:
        return self._find("task", self.tasks(), task_id)

    def document(self, document_id: int) -> Document:
        return self._find("document", self.documents(), document_id)

    def entity(self, kind: str, entity_id: int) -> Any:
        getter = {
            "client": self.client,
            "vendor": self.vendor,
            "labor": self.labor,
            "contract": self.contract,
            "task": self.task,
            "document": self.document,
        }.get(kind)
        if getter is None:
            raise ValueError(f"Unknown entity kind: {kind}")
        return getter(entity_id)

    def client_detail(self, client_id: int) -> ClientDetail:
        client = self.client(client_id)
        payments = agg.client_direct_payments(client.id, self.payments())
        contracts = self._contracts_of("client", client_id)
        return ClientDetail(
            client=client,
            balance=agg.balance(client.contract_amount, payments, agg.CLIENT_BUCKET),
            payments=sorted(payments, key=lambda p: (p.date, p.id or 0), reverse=True),
            contracts=[Row(c, agg.contract_commission_balance(c)) for c in contracts],
        )

    def party_detail(self, kind: str, party_id: int) -> PartyDetail:
        if kind not in ("vendor", "labor"):
            raise ValueError(f"Not a contract counterparty: {kind}")
        party = self.vendor(party_id) if kind == "vendor" else self.labor(party_id)
        contracts = self._contracts_of(kind, party_id)
        payments = [p for c in contracts for p in c.payments if p.type in agg.COMMISSION_BUCKET]
        payments.sort(key=lambda p: (p.date, p.id or 0), reverse=True)
        return PartyDetail(
            kind=kind,
            party=party,
            balance=agg.counterparty_balance(contracts),
            contracts=[Row(c, agg.contract_commission_balance(c)) for c in contracts],
            payments=payments,
        )

    def contract_detail(self, contract_id: int) -> ContractDetail:
        c = self.contract(contract_id)
        return ContractDetail(
            contract=c,
            commission=agg.contract_commission_balance(c),
            client_side=agg.contract_client_balance(c),
        )

    # ===== dashboard =====

    def dashboard(self) -> DashboardStats:
        def build() -> DashboardStats:
            return agg.dashboard_stats(
                clients=self.clients(),
                vendor_count=len(self.vendors()),
                labor_count=len(self.labors()),
                tasks=self.tasks(),
                contracts=self.contracts(),
                payments=self.payments(),
            )
        return self.cache.get_or_fetch(("dashboard",), build)

    # ===== export =====

    def _with_names(self, payments: list[Payment]) -> list[Payment]:
        """Copies with contract_title / entity_name filled (client name for client
        payments, counterparty name for commission payments)."""
        contracts = {c.id: c for c in self.contracts()}
        client_names = {c.id: c.name for c in self.clients()}
        out: list[Payment] = []
        for p in payments:
            c = contracts.get(p.contract_id) if p.contract_id is not None else None
            if p.type == "client":
                cid = p.client_id if p.client_id is not None else (c.client_id if c else None)
                name = client_names.get(cid) if cid is not None else None
            else:
                name = c.counterparty_name if c else None
            out.append(replace(p, contract_title=c.title if c else None, entity_name=name))
        return out

    def export_payments(self, *, payment_type: str = "all", start: Optional[date] = None,
                        end: Optional[date] = None) -> list[Payment]:
        if start and end and end < start:
            raise FormValidationError({"end_date": "End date cannot be before the start date."})
        selected = select_export_payments(self.payments(), payment_type=payment_type,
                                          start=start, end=end)
        return self._with_names(selected)

    def entity_payments(self, kind: str, entity_id: int) -> tuple[str, list[Payment]]:
        """(entity name, payments) for the per-entity CSV download."""
        if kind == "client":
            detail = self.client_detail(entity_id)
            return detail.client.name, detail.payments
        party = self.party_detail(kind, entity_id)
        return party.party.name, party.payments

    # ===== mutations =====

    def _check_refs(self, entity: Any) -> None:
        """References must point at existing rows (the YAML backend has no FKs)."""
        errors: dict[str, str] = {}
        for attr, kind in (("client_id", "client"), ("vendor_id", "vendor"),
                           ("labor_id", "labor")):
            ref = getattr(entity, attr, None)
            if ref is None:
                continue
            try:
                self.entity(kind, ref)
            except NotFoundError:
                errors[attr] = f"Unknown {kind}."
        if errors:
            raise FormValidationError(errors)

    def save(self, kind: str, form: dict[str, str], entity_id: Optional[int] = None) -> Any:
        """Create (entity_id None) or replace a client/vendor/labor/contract/task."""
        parser = _PARSERS.get(kind)
        if parser is None:
            raise ValueError(f"Cannot save {kind} from a form")
        entity = parser(form)
        self._check_refs(entity)
        if entity_id is None:
            return self.store.add(kind, entity)
        self.entity(kind, entity_id)
        return self.store.replace(kind, entity_id, entity)

    def delete(self, kind: str, entity_id: int) -> Any:
        if kind == "document":
            return self.delete_document(entity_id)
        if kind == "payment":
            return self.store.delete("payment", entity_id)
        self.entity(kind, entity_id)
        return self.store.delete(kind, entity_id)

    def add_contract_payment(self, contract_id: int, form: dict[str, str]) -> Payment:
        contract = self.contract(contract_id)
        return self.store.add("payment", parse_contract_payment_form(form, contract))

    def add_client_payment(self, client_id: int, form: dict[str, str]) -> Payment:
        self.client(client_id)
        return self.store.add("payment", parse_client_payment_form(form, client_id))

    def set_task_status(self, task_id: int, status: str) -> Task:
        try:
            status = V.choice("status", status, TASK_STATUSES)
        except ValueError as e:
            raise FormValidationError({"status": str(e)}) from e
        self.task(task_id)
        return self.store.patch("task", task_id, {"status": status})

    # ===== documents =====

    def _require_storage(self) -> LocalBucketStorage:
        if self.storage is None:
            raise RuntimeError("Document storage is not configured")
        return self.storage

    def upload_document(self, form: dict[str, str], filename: str, data: Optional[bytes]) -> Document:
        storage = self._require_storage()
        name, category = parse_document_form(form, has_file=bool(filename) and data is not None)
        if data is None:
            raise FormValidationError({"file": "Please select a file to upload"})
        path = storage.upload(data, filename)
        try:
            return self.store.add("document", new_document(name, category, path))
        except BackendError:
            logger.warning("metadata insert failed, removing blob %s", path)
            storage.remove([path])
            raise

    def delete_document(self, document_id: int) -> Document:
        storage = self._require_storage()
        doc = self.document(document_id)
        storage.remove([doc.file_path])
        return self.store.delete("document", document_id)

    def document_content(self, document_id: int) -> tuple[Document, bytes]:
        doc = self.document(document_id)
        return doc, self._require_storage().download(doc.file_path)

    def document_url(self, document_id: int, expires_in: int = 60) -> str:
        doc = self.document(document_id)
        return self._require_storage().create_signed_url(doc.file_path, expires_in)
