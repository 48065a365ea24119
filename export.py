# export.py
"""CSV export of payment sets (exports page and detail pages)."""
from __future__ import annotations

import csv
import io
import re
from collections.abc import Iterable
from datetime import date
from typing import Callable, Optional

from entities import Payment

PAYMENT_EXPORT_COLUMNS: tuple[str, ...] = (
    "Date",
    "Amount",
    "Type",
    "Contract",
    "Entity Name",
    "Description",
)
ENTITY_EXPORT_COLUMNS: tuple[str, ...] = ("Date", "Amount", "Description")

_CELL: dict[str, Callable[[Payment], str]] = {
    "Date": lambda p: p.date.strftime("%Y-%m-%d"),
    "Amount": lambda p: f"{p.amount:f}",
    "Type": lambda p: p.type or "",
    "Contract": lambda p: p.contract_title or "",
    "Entity Name": lambda p: p.entity_name or "",
    "Description": lambda p: p.description or "",
}


def payments_csv(
    payments: Iterable[Payment],
    *,
    columns: tuple[str, ...] = PAYMENT_EXPORT_COLUMNS,
) -> str:
    """
    Header row + one row per payment. Fields containing a comma, quote or
    newline are quoted by the csv writer, so free text cannot break rows.
    """
    unknown = [c for c in columns if c not in _CELL]
    if unknown:
        raise ValueError(f"Unknown export columns: {', '.join(unknown)}")

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(columns)
    for p in payments:
        writer.writerow([_CELL[c](p) for c in columns])
    return buf.getvalue()


def payments_csv_bytes(payments: Iterable[Payment], *,
                       columns: tuple[str, ...] = PAYMENT_EXPORT_COLUMNS) -> bytes:
    return payments_csv(payments, columns=columns).encode("utf-8")


def select_export_payments(
    payments: Iterable[Payment],
    *,
    payment_type: str = "all",
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[Payment]:
    """Type filter plus an inclusive [start, end] date window; newest first."""
    out = [
        p for p in payments
        if (payment_type in ("", "all") or p.type == payment_type)
        and (start is None or p.date >= start)
        and (end is None or p.date <= end)
    ]
    out.sort(key=lambda p: (p.date, p.id or 0), reverse=True)
    return out


def _slug(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]+", "_", text.strip()).strip("_") or "export"


def export_filename(scope: str, today: date, *, entity_name: str | None = None) -> str:
    """
    payments_<scope>_<yyyy-mm-dd>.csv for the exports page,
    <type>_<name>_payments_<yyyy-mm-dd>.csv for a single client/vendor/labor.
    """
    stamp = today.strftime("%Y-%m-%d")
    if entity_name is not None:
        return f"{_slug(scope)}_{_slug(entity_name)}_payments_{stamp}.csv"
    return f"payments_{_slug(scope)}_{stamp}.csv"
