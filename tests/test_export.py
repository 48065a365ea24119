"""CSV export: header, quoting of free text, date window and file names."""

from __future__ import annotations

import csv
import io
from datetime import date
from decimal import Decimal

import pytest

from entities import Payment
from export import (
    ENTITY_EXPORT_COLUMNS,
    PAYMENT_EXPORT_COLUMNS,
    export_filename,
    payments_csv,
    payments_csv_bytes,
    select_export_payments,
)


def _pay(pid, amount, type_, when, description=None, **kw):
    return Payment(id=pid, amount=Decimal(amount), date=when, type=type_,
                   description=description, **kw)


def test_empty_list_is_header_only():
    assert payments_csv([]) == "Date,Amount,Type,Contract,Entity Name,Description\n"


def test_row_format():
    p = _pay(1, "1500.50", "vendor", date(2024, 2, 3), "Deposit",
             contract_title="Kitchen", entity_name="Lumen Co")
    lines = payments_csv([p]).splitlines()
    assert lines[1] == "2024-02-03,1500.50,vendor,Kitchen,Lumen Co,Deposit"


def test_delimiters_in_free_text_are_quoted():
    p = _pay(1, "10", "client", date(2024, 1, 1), 'Tiles, grout and "extras"\nsecond line')
    text = payments_csv([p])
    rows = list(csv.reader(io.StringIO(text)))
    assert len(rows) == 2
    assert rows[1][5] == 'Tiles, grout and "extras"\nsecond line'


def test_entity_columns():
    p = _pay(1, "10", "client", date(2024, 1, 1), "x")
    assert payments_csv([p], columns=ENTITY_EXPORT_COLUMNS).splitlines() == [
        "Date,Amount,Description",
        "2024-01-01,10,x",
    ]


def test_unknown_column_rejected():
    with pytest.raises(ValueError):
        payments_csv([], columns=PAYMENT_EXPORT_COLUMNS + ("Secret",))


def test_bytes_are_utf8():
    p = _pay(1, "10", "client", date(2024, 1, 1), "Café")
    assert "Café".encode("utf-8") in payments_csv_bytes([p])


def test_select_window_is_inclusive_and_newest_first():
    pays = [
        _pay(1, "1", "client", date(2024, 1, 1)),
        _pay(2, "1", "vendor", date(2024, 1, 31)),
        _pay(3, "1", "client", date(2024, 2, 1)),
        _pay(4, "1", "client", date(2023, 12, 31)),
    ]
    out = select_export_payments(pays, start=date(2024, 1, 1), end=date(2024, 1, 31))
    assert [p.id for p in out] == [2, 1]
    only_client = select_export_payments(pays, payment_type="client")
    assert [p.id for p in only_client] == [3, 1, 4]


def test_file_names():
    today = date(2024, 5, 6)
    assert export_filename("all", today) == "payments_all_2024-05-06.csv"
    assert export_filename("vendor", today, entity_name="Lumen & Co") == \
        "vendor_Lumen_Co_payments_2024-05-06.csv"
