"""
Derived totals: pending = principal - sum(payments in the bucket).

Covers the bucket predicates, the unclamped overpayment case and the
dashboard roll-up.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import aggregation as agg
from entities import Client, Contract, Payment, Task


def _pay(amount, type_, *, contract_id=None, client_id=None, when=date(2024, 3, 1), pid=None):
    return Payment(id=pid, amount=Decimal(amount), date=when, type=type_,
                   contract_id=contract_id, client_id=client_id)


def _contract(commission="50000", amount="200000", payments=None, cid=1, vendor_id=1):
    return Contract(
        id=cid, client_id=1, vendor_id=vendor_id, labor_id=None if vendor_id else 1,
        title="Kitchen", contract_amount=Decimal(amount),
        commission_percentage=Decimal("25"), commission_amount=Decimal(commission),
        start_date=date(2024, 1, 1), payments=payments or [],
    )


def _client(cid=1, amount="100000", status="active"):
    return Client(id=cid, name="Ada", email="a@b.co", phone="5551234567", address="x",
                  contract_amount=Decimal(amount) if amount is not None else None,
                  status=status)


class TestContractBalances:
    def test_commission_excludes_client_payments(self):
        c = _contract(payments=[_pay("20000", "vendor"), _pay("5000", "client")])
        b = agg.contract_commission_balance(c)
        assert b.paid == Decimal("20000")
        assert b.pending == Decimal("30000")
        assert b.payment_status == "pending"

    def test_labor_payments_count_as_commission(self):
        c = _contract(payments=[_pay("10000", "labor"), _pay("10000", "vendor")])
        assert agg.contract_commission_balance(c).paid == Decimal("20000")

    def test_client_side_only_counts_client_payments(self):
        c = _contract(payments=[_pay("20000", "vendor"), _pay("5000", "client")])
        b = agg.contract_client_balance(c)
        assert b.paid == Decimal("5000")
        assert b.pending == Decimal("195000")

    def test_missing_payments_is_empty(self):
        assert agg.sum_payments(None, agg.COMMISSION_BUCKET) == Decimal("0")
        b = agg.balance(Decimal("10"), None, agg.CLIENT_BUCKET)
        assert b.pending == Decimal("10")

    def test_unknown_type_belongs_to_no_bucket(self):
        c = _contract(payments=[_pay("100", "refund")])
        assert agg.contract_commission_balance(c).paid == 0
        assert agg.contract_client_balance(c).paid == 0

    def test_same_input_same_result(self):
        c = _contract(payments=[_pay("1", "vendor"), _pay("2", "labor")])
        assert agg.contract_commission_balance(c) == agg.contract_commission_balance(c)


class TestClientBalance:
    def test_overpayment_is_not_clamped(self):
        client = _client(amount="100000")
        pays = [_pay("40000", "client", client_id=1), _pay("70000", "client", client_id=1)]
        b = agg.client_balance(client, pays)
        assert b.pending == Decimal("-10000")
        assert b.payment_status == "completed"

    def test_only_direct_payments_of_that_client(self):
        client = _client()
        pays = [
            _pay("100", "client", client_id=1),
            _pay("200", "client", client_id=2),
            _pay("300", "client", client_id=1, contract_id=5),
        ]
        assert agg.client_balance(client, pays).paid == Decimal("100")

    def test_no_contract_amount_counts_as_zero(self):
        b = agg.client_balance(_client(amount=None), [_pay("50", "client", client_id=1)])
        assert b.principal == 0
        assert b.pending == Decimal("-50")

    def test_zero_pending_is_completed(self):
        b = agg.client_balance(_client(amount="50"), [_pay("50", "client", client_id=1)])
        assert b.pending == 0
        assert b.payment_status == "completed"


class TestPortfolio:
    def test_counterparty_sums_contracts(self):
        a = _contract(commission="1000", payments=[_pay("400", "vendor")], cid=1)
        b = _contract(commission="500", payments=[_pay("600", "vendor")], cid=2)
        total = agg.counterparty_balance([a, b])
        assert total.principal == Decimal("1500")
        assert total.paid == Decimal("1000")
        assert total.pending == Decimal("500")

    def test_portfolio_client(self):
        clients = [_client(1, "100"), _client(2, "50")]
        pays = [_pay("30", "client", client_id=1), _pay("60", "client", client_id=2)]
        total = agg.portfolio_client(clients, pays)
        assert total.pending == Decimal("60")

    def test_trends_by_month_oldest_first(self):
        pays = [
            _pay("10", "client", when=date(2024, 3, 5)),
            _pay("5", "vendor", when=date(2024, 1, 9)),
            _pay("7", "labor", when=date(2024, 3, 20)),
        ]
        trends = agg.payment_trends(pays)
        assert [t.month for t in trends] == ["Jan 2024", "Mar 2024"]
        assert trends[1].client == Decimal("10")
        assert trends[1].labor == Decimal("7")

    def test_upcoming_tasks_skip_completed_and_sort_by_due(self):
        tasks = [
            Task(id=1, title="a", status="Completed", due_date=date(2024, 1, 1)),
            Task(id=2, title="b", status="In Progress", due_date=date(2024, 2, 1)),
            Task(id=3, title="c", status="Not Started", due_date=date(2024, 1, 15)),
        ]
        assert [t.id for t in agg.upcoming_tasks(tasks)] == [3, 2]
        many = [Task(id=i, title="t", status="On Hold", due_date=date(2024, 1, i))
                for i in range(1, 15)]
        assert len(agg.upcoming_tasks(many)) == 10

    def test_dashboard_stats(self):
        stats = agg.dashboard_stats(
            clients=[_client(1, "100"), _client(2, "100", status="inactive")],
            vendor_count=3,
            labor_count=2,
            tasks=[],
            contracts=[_contract(commission="50", payments=[_pay("20", "vendor")])],
            payments=[_pay("20", "vendor"), _pay("40", "client", client_id=1)],
        )
        assert stats.total_clients == 2
        assert stats.active_clients == 1
        assert stats.total_payments == Decimal("60")
        assert stats.commission.pending == Decimal("30")
        assert stats.client_amounts.pending == Decimal("160")
