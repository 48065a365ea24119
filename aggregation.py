# aggregation.py
"""
Derived financial totals.

pending = principal - sum(payments in the bucket)

The value is computed, never stored, and every view (lists, details,
dashboard, list headers) goes through the functions below so the bucket
predicates stay identical everywhere. Pending is not clamped: an
overpayment gives a negative pending amount.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from entities import ZERO, Client, Contract, Payment, Task

CLIENT_BUCKET: frozenset[str] = frozenset({"client"})
COMMISSION_BUCKET: frozenset[str] = frozenset({"vendor", "labor"})


@dataclass(frozen=True, slots=True)
class Balance:
    principal: Decimal
    paid: Decimal

    @property
    def pending(self) -> Decimal:
        return self.principal - self.paid

    @property
    def payment_status(self) -> str:
        return "pending" if self.pending > 0 else "completed"

    def __add__(self, other: Balance) -> Balance:
        return Balance(self.principal + other.principal, self.paid + other.paid)


EMPTY_BALANCE = Balance(ZERO, ZERO)


def sum_payments(payments: Optional[Iterable[Payment]], bucket: frozenset[str]) -> Decimal:
    """Sum of amounts of the payments whose type is in the bucket; None is an empty list."""
    total = ZERO
    for p in payments or ():
        if p.type in bucket:
            total += p.amount
    return total


def balance(principal: Optional[Decimal], payments: Optional[Iterable[Payment]],
            bucket: frozenset[str]) -> Balance:
    return Balance(principal or ZERO, sum_payments(payments, bucket))


# ===== per entity =====

def contract_commission_balance(contract: Contract) -> Balance:
    """Commission side: commission_amount against vendor/labor payments."""
    return balance(contract.commission_amount, contract.payments, COMMISSION_BUCKET)


def contract_client_balance(contract: Contract) -> Balance:
    """Client side of one contract: contract_amount against client payments."""
    return balance(contract.contract_amount, contract.payments, CLIENT_BUCKET)


def client_direct_payments(client_id: Optional[int], payments: Iterable[Payment]) -> list[Payment]:
    return [p for p in payments if p.client_id == client_id and p.contract_id is None]


def client_balance(client: Client, payments: Iterable[Payment]) -> Balance:
    """
    Client contract_amount against the client's direct payments. `payments`
    can be the flat payments list; rows are matched by client_id.
    """
    return balance(
        client.contract_amount,
        client_direct_payments(client.id, payments),
        CLIENT_BUCKET,
    )


def counterparty_balance(contracts: Iterable[Contract]) -> Balance:
    """Vendor / labor detail: all of the party's contracts, commission side."""
    total = EMPTY_BALANCE
    for c in contracts:
        total = total + contract_commission_balance(c)
    return total


# ===== portfolio (dashboard, list headers) =====

def portfolio_commission(contracts: Iterable[Contract]) -> Balance:
    return counterparty_balance(contracts)


def portfolio_client(clients: Iterable[Client], payments: Iterable[Payment]) -> Balance:
    pays = list(payments)
    total = EMPTY_BALANCE
    for c in clients:
        total = total + client_balance(c, pays)
    return total


def total_amount(payments: Iterable[Payment]) -> Decimal:
    return sum((p.amount for p in payments), ZERO)


@dataclass(slots=True)
class TrendPoint:
    month: str
    client: Decimal = ZERO
    vendor: Decimal = ZERO
    labor: Decimal = ZERO


def payment_trends(payments: Iterable[Payment]) -> list[TrendPoint]:
    """Monthly totals per payment type ('Mar 2024'), oldest month first."""
    by_month: dict[tuple[int, int], TrendPoint] = {}
    for p in payments:
        key = (p.date.year, p.date.month)
        point = by_month.get(key)
        if point is None:
            point = TrendPoint(month=p.date.strftime("%b %Y"))
            by_month[key] = point
        if p.type in ("client", "vendor", "labor"):
            setattr(point, p.type, getattr(point, p.type) + p.amount)
    return [by_month[k] for k in sorted(by_month)]


@dataclass(slots=True)
class DashboardStats:
    total_clients: int
    active_clients: int
    total_vendors: int
    total_labors: int
    total_tasks: int
    total_payments: Decimal
    commission: Balance
    client_amounts: Balance
    trends: list[TrendPoint] = field(default_factory=list)
    upcoming_tasks: list[Task] = field(default_factory=list)


def upcoming_tasks(tasks: Iterable[Task], limit: int = 10) -> list[Task]:
    """Open tasks (not Completed), nearest due date first."""
    open_tasks = [t for t in tasks if t.status != "Completed"]
    open_tasks.sort(key=lambda t: (t.due_date or date.max, t.id or 0))
    return open_tasks[:limit]


def dashboard_stats(
    *,
    clients: list[Client],
    vendor_count: int,
    labor_count: int,
    tasks: list[Task],
    contracts: list[Contract],
    payments: list[Payment],
) -> DashboardStats:
    return DashboardStats(
        total_clients=len(clients),
        active_clients=sum(1 for c in clients if c.status == "active"),
        total_vendors=vendor_count,
        total_labors=labor_count,
        total_tasks=len(tasks),
        total_payments=total_amount(payments),
        commission=portfolio_commission(contracts),
        client_amounts=portfolio_client(clients, payments),
        trends=payment_trends(payments),
        upcoming_tasks=upcoming_tasks(tasks),
    )
