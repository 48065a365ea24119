# forms.py
"""
Schema validation of entity create/edit payloads.

Every parse_* function takes the flat form dict posted by the browser,
checks all fields and either returns the entity (id=None) or raises
FormValidationError carrying one message per failing field.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional

from entities import (
    ENTITY_STATUSES,
    TASK_STATUSES,
    VENDOR_CATEGORIES,
    Client,
    Contract,
    Document,
    Labor,
    Payment,
    Task,
    Vendor,
)
from errors import FormValidationError
from validators import Validator as V


class _FormReader:
    """Runs field validators and collects errors instead of stopping at the first."""

    def __init__(self, form: dict[str, str]) -> None:
        self.form = form
        self.errors: dict[str, str] = {}

    def get(self, key: str) -> str:
        return self.form.get(key, "") or ""

    def field(self, key: str, check: Callable[[str], Any]) -> Any:
        try:
            return check(self.get(key))
        except ValueError as e:
            self.errors[key] = str(e)
            return None

    def fail(self, key: str, message: str) -> None:
        self.errors.setdefault(key, message)

    def done(self) -> None:
        if self.errors:
            raise FormValidationError(self.errors)


def parse_client_form(form: dict[str, str]) -> Client:
    r = _FormReader(form)
    name = r.field("name", lambda v: V.name("name", v))
    email = r.field("email", V.email)
    phone = r.field("phone", V.phone)
    address = r.field("address", lambda v: V.require_non_empty("address", v))
    amount = r.field("contract_amount", lambda v: V.money("contract_amount", v, required=False))
    status = r.field("status", lambda v: V.choice("status", v or "active", ENTITY_STATUSES))
    r.done()
    return Client(
        id=None,
        name=name,
        email=email,
        phone=phone,
        address=address,
        contract_amount=amount,
        notes=V.optional_text(r.get("notes")),
        status=status,
    )


def parse_vendor_form(form: dict[str, str]) -> Vendor:
    r = _FormReader(form)
    name = r.field("name", lambda v: V.name("name", v))
    email = r.field("email", V.email)
    phone = r.field("phone", V.phone)
    category = r.field("category", lambda v: V.choice("category", v, VENDOR_CATEGORIES))
    status = r.field("status", lambda v: V.choice("status", v or "active", ENTITY_STATUSES))
    r.done()
    return Vendor(id=None, name=name, email=email, phone=phone, category=category, status=status)


def parse_labor_form(form: dict[str, str]) -> Labor:
    r = _FormReader(form)
    name = r.field("name", lambda v: V.name("name", v))
    phone = r.field("phone", V.phone)
    spec = r.field("specialization", lambda v: V.require_non_empty("specialization", v))
    status = r.field("status", lambda v: V.choice("status", v or "active", ENTITY_STATUSES))
    r.done()
    return Labor(
        id=None,
        name=name,
        phone=phone,
        specialization=spec,
        notes=V.optional_text(r.get("notes")),
        status=status,
    )


def parse_contract_form(form: dict[str, str]) -> Contract:
    """
    Contract with exactly one counterparty (vendor XOR labor).
    A blank commission_amount is derived from amount x percentage;
    an explicit one is kept as entered.
    """
    r = _FormReader(form)
    title = r.field("title", lambda v: V.name("title", v))
    client_id = r.field("client_id", lambda v: V.reference("client_id", v, required=True))
    vendor_id = r.field("vendor_id", lambda v: V.reference("vendor_id", v))
    labor_id = r.field("labor_id", lambda v: V.reference("labor_id", v))
    amount = r.field("contract_amount", lambda v: V.money("contract_amount", v))
    pct = r.field("commission_percentage", lambda v: V.percentage("commission_percentage", v))
    commission = r.field(
        "commission_amount", lambda v: V.money("commission_amount", v, required=False)
    )
    status = r.field("status", lambda v: V.choice("status", v or "active", ENTITY_STATUSES))
    start = r.field("start_date", lambda v: V.iso_date("start_date", v))
    end = r.field("end_date", lambda v: V.iso_date("end_date", v, required=False))

    if "vendor_id" not in r.errors and "labor_id" not in r.errors:
        if vendor_id and labor_id:
            r.fail("vendor_id", "Contract must be either with a vendor or a labor, not both")
        elif not vendor_id and not labor_id:
            r.fail("vendor_id", "Contract must have either a vendor or a labor")
    if start and end and end < start:
        r.fail("end_date", "End date cannot be before the start date.")
    r.done()

    if commission is None:
        commission = V.commission_from_percentage(amount, pct)

    return Contract(
        id=None,
        client_id=client_id,
        vendor_id=vendor_id,
        labor_id=labor_id,
        title=title,
        description=V.optional_text(r.get("description")),
        contract_amount=amount,
        commission_percentage=pct,
        commission_amount=commission,
        status=status,
        start_date=start,
        end_date=end,
    )


def parse_contract_payment_form(form: dict[str, str], contract: Contract) -> Payment:
    """Commission payment on a contract: bucket follows the contract counterparty."""
    r = _FormReader(form)
    amount = r.field("amount", lambda v: V.positive_money("amount", v))
    when = r.field("date", lambda v: V.iso_date("date", v))
    r.done()
    return Payment(
        id=None,
        amount=amount,
        date=when,
        type=contract.counterparty_kind,
        contract_id=contract.id,
        client_id=None,
        description=V.optional_text(r.get("description")),
    )


def parse_client_payment_form(form: dict[str, str], client_id: int) -> Payment:
    """Direct client payment: type 'client', no contract."""
    r = _FormReader(form)
    amount = r.field("amount", lambda v: V.positive_money("amount", v))
    when = r.field("date", lambda v: V.iso_date("date", v))
    r.done()
    return Payment(
        id=None,
        amount=amount,
        date=when,
        type="client",
        contract_id=None,
        client_id=client_id,
        description=V.optional_text(r.get("description")),
    )


def parse_task_form(form: dict[str, str]) -> Task:
    r = _FormReader(form)
    title = r.field("title", lambda v: V.name("title", v))
    status = r.field("status", lambda v: V.choice("status", v or "Not Started", TASK_STATUSES))
    due = r.field("due_date", lambda v: V.iso_date("due_date", v))
    client_id = r.field("client_id", lambda v: V.reference("client_id", v))
    r.done()
    return Task(
        id=None,
        title=title,
        description=V.optional_text(r.get("description")),
        status=status,
        due_date=due,
        client_id=client_id,
    )


def parse_document_form(form: dict[str, str], *, has_file: bool) -> tuple[str, str]:
    """Returns (name, category); the blob itself is handled by the storage layer."""
    r = _FormReader(form)
    name = r.field("name", lambda v: V.name("name", v))
    category = r.field("category", lambda v: V.require_non_empty("category", v))
    if not has_file:
        r.fail("file", "Please select a file to upload")
    r.done()
    return name, category


def new_document(name: str, category: str, file_path: str,
                 uploaded_at: Optional[datetime] = None) -> Document:
    return Document(
        id=None,
        name=name,
        category=category,
        file_path=file_path,
        uploaded_at=uploaded_at or datetime.now(timezone.utc),
    )


def form_values(entity: Any) -> dict[str, str]:
    """Entity -> flat string dict for pre-filling an edit form."""
    out: dict[str, str] = {}
    for key, value in entity.to_row().items():
        if value is None:
            out[key] = ""
        elif isinstance(value, Decimal):
            out[key] = f"{value:.2f}"
        elif isinstance(value, (date, datetime)):
            out[key] = value.isoformat()
        else:
            out[key] = str(value)
    return out
