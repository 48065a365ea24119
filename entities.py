# entities.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

ENTITY_STATUSES: tuple[str, ...] = ("active", "inactive")
PAYMENT_TYPES: tuple[str, ...] = ("client", "vendor", "labor")
TASK_STATUSES: tuple[str, ...] = (
    "Not Started",
    "In Progress",
    "On Hold",
    "Completed",
    "Cancelled",
)
VENDOR_CATEGORIES: tuple[str, ...] = (
    "Furniture",
    "Lighting",
    "Flooring",
    "Paint",
    "Decor",
    "Other",
)
PAYMENT_STATUSES: tuple[str, ...] = ("pending", "completed")

ZERO = Decimal("0")


# ===== row coercion helpers =====

def to_decimal(value: Any, default: Decimal | None = ZERO) -> Decimal | None:
    """Backend rows carry NUMERIC (psycopg2) or str/float (YAML); normalise to Decimal."""
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a decimal amount: {value!r}") from None


def to_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    # timestamptz strings from the hosted database: keep the calendar day
    return date.fromisoformat(text[:10])


def to_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value))


def to_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _iso(d: date | datetime | None) -> str | None:
    return d.isoformat() if d else None


# ===== entities =====

@dataclass(slots=True)
class Client:
    id: Optional[int]
    name: str
    email: str
    phone: str
    address: str
    contract_amount: Optional[Decimal] = None
    notes: Optional[str] = None
    status: str = "active"

    @classmethod
    def from_row(cls, r: dict[str, Any]) -> Client:
        return cls(
            id=to_int(r.get("id")),
            name=r["name"],
            email=r.get("email") or "",
            phone=r.get("phone") or "",
            address=r.get("address") or "",
            contract_amount=to_decimal(r.get("contract_amount"), None),
            notes=r.get("notes"),
            status=r.get("status") or "active",
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "contract_amount": self.contract_amount,
            "notes": self.notes,
            "status": self.status,
        }


@dataclass(slots=True)
class Vendor:
    id: Optional[int]
    name: str
    email: str
    phone: str
    category: str
    status: str = "active"

    @classmethod
    def from_row(cls, r: dict[str, Any]) -> Vendor:
        return cls(
            id=to_int(r.get("id")),
            name=r["name"],
            email=r.get("email") or "",
            phone=r.get("phone") or "",
            category=r.get("category") or "Other",
            status=r.get("status") or "active",
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "category": self.category,
            "status": self.status,
        }


@dataclass(slots=True)
class Labor:
    id: Optional[int]
    name: str
    phone: str
    specialization: str
    notes: Optional[str] = None
    status: str = "active"

    @classmethod
    def from_row(cls, r: dict[str, Any]) -> Labor:
        return cls(
            id=to_int(r.get("id")),
            name=r["name"],
            phone=r.get("phone") or "",
            specialization=r.get("specialization") or "",
            notes=r.get("notes"),
            status=r.get("status") or "active",
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "phone": self.phone,
            "specialization": self.specialization,
            "notes": self.notes,
            "status": self.status,
        }


@dataclass(slots=True)
class Payment:
    id: Optional[int]
    amount: Decimal
    date: date
    type: str
    contract_id: Optional[int] = None
    client_id: Optional[int] = None
    description: Optional[str] = None
    # display joins for the export page
    contract_title: Optional[str] = None
    entity_name: Optional[str] = None

    @classmethod
    def from_row(cls, r: dict[str, Any]) -> Payment:
        return cls(
            id=to_int(r.get("id")),
            amount=to_decimal(r.get("amount")) or ZERO,
            date=to_date(r.get("date")) or date.today(),
            type=r.get("type") or "",
            contract_id=to_int(r.get("contract_id")),
            client_id=to_int(r.get("client_id")),
            description=r.get("description"),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "amount": self.amount,
            "date": _iso(self.date),
            "type": self.type,
            "contract_id": self.contract_id,
            "client_id": self.client_id,
            "description": self.description,
        }


@dataclass(slots=True)
class Contract:
    id: Optional[int]
    client_id: int
    title: str
    contract_amount: Decimal
    commission_percentage: Decimal
    commission_amount: Decimal
    start_date: date
    vendor_id: Optional[int] = None
    labor_id: Optional[int] = None
    description: Optional[str] = None
    status: str = "active"
    end_date: Optional[date] = None
    payments: list[Payment] = field(default_factory=list)
    client_name: Optional[str] = None
    counterparty_name: Optional[str] = None

    @property
    def counterparty_kind(self) -> str:
        return "vendor" if self.vendor_id is not None else "labor"

    @property
    def counterparty_id(self) -> Optional[int]:
        return self.vendor_id if self.vendor_id is not None else self.labor_id

    @classmethod
    def from_row(cls, r: dict[str, Any]) -> Contract:
        return cls(
            id=to_int(r.get("id")),
            client_id=int(r["client_id"]),
            vendor_id=to_int(r.get("vendor_id")),
            labor_id=to_int(r.get("labor_id")),
            title=r["title"],
            description=r.get("description"),
            contract_amount=to_decimal(r.get("contract_amount")) or ZERO,
            commission_percentage=to_decimal(r.get("commission_percentage")) or ZERO,
            commission_amount=to_decimal(r.get("commission_amount")) or ZERO,
            status=r.get("status") or "active",
            start_date=to_date(r.get("start_date")) or date.today(),
            end_date=to_date(r.get("end_date")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "client_id": self.client_id,
            "vendor_id": self.vendor_id,
            "labor_id": self.labor_id,
            "title": self.title,
            "description": self.description,
            "contract_amount": self.contract_amount,
            "commission_percentage": self.commission_percentage,
            "commission_amount": self.commission_amount,
            "status": self.status,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
        }


@dataclass(slots=True)
class Task:
    id: Optional[int]
    title: str
    status: str
    due_date: date
    description: Optional[str] = None
    client_id: Optional[int] = None
    client_name: Optional[str] = None

    @classmethod
    def from_row(cls, r: dict[str, Any]) -> Task:
        return cls(
            id=to_int(r.get("id")),
            title=r["title"],
            description=r.get("description"),
            status=r.get("status") or "Not Started",
            due_date=to_date(r.get("due_date")) or date.today(),
            client_id=to_int(r.get("client_id")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "due_date": _iso(self.due_date),
            "client_id": self.client_id,
        }


@dataclass(slots=True)
class Document:
    id: Optional[int]
    name: str
    category: str
    file_path: str
    uploaded_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, r: dict[str, Any]) -> Document:
        return cls(
            id=to_int(r.get("id")),
            name=r["name"],
            category=r.get("category") or "",
            file_path=r["file_path"],
            uploaded_at=to_datetime(r.get("uploaded_at")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "file_path": self.file_path,
            "uploaded_at": _iso(self.uploaded_at),
        }
