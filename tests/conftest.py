"""Shared fixtures: a YAML data directory in tmp_path and the service stack on top of it."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from entities import Client, Contract, Labor, Payment, Task, Vendor
from observable_repo import ObservableStore
from query_cache import QueryCache
from repos import Repos
from services import DashboardService
from storage import LocalBucketStorage
from yaml_backend import YamlBackend


@pytest.fixture
def backend(tmp_path):
    return YamlBackend(str(tmp_path / "data"))


@pytest.fixture
def repos(backend):
    return Repos(backend)


@pytest.fixture
def store(repos):
    return ObservableStore(repos)


@pytest.fixture
def cache():
    return QueryCache()


@pytest.fixture
def storage(tmp_path):
    return LocalBucketStorage(str(tmp_path / "storage"), "test-secret")


@pytest.fixture
def service(repos, store, cache, storage):
    return DashboardService(repos, store=store, cache=cache, storage=storage)


def make_client(name="Ada Client", amount="100000", status="active") -> Client:
    return Client(
        id=None,
        name=name,
        email="ada@example.com",
        phone="+15551234567",
        address="1 Main St",
        contract_amount=Decimal(amount) if amount is not None else None,
        status=status,
    )


def make_vendor(name="Lumen Co", category="Lighting") -> Vendor:
    return Vendor(id=None, name=name, email="sales@lumen.com", phone="5551234567",
                  category=category)


def make_labor(name="Bob Builder") -> Labor:
    return Labor(id=None, name=name, phone="5557654321", specialization="Carpentry")


def make_contract(client_id, *, vendor_id=None, labor_id=None, title="Living room",
                  amount="100000", pct="10", commission="10000") -> Contract:
    return Contract(
        id=None,
        client_id=client_id,
        vendor_id=vendor_id,
        labor_id=labor_id,
        title=title,
        contract_amount=Decimal(amount),
        commission_percentage=Decimal(pct),
        commission_amount=Decimal(commission),
        start_date=date(2024, 1, 15),
    )


def make_payment(amount, type_, *, contract_id=None, client_id=None,
                 when=date(2024, 3, 1), description=None) -> Payment:
    return Payment(id=None, amount=Decimal(amount), date=when, type=type_,
                   contract_id=contract_id, client_id=client_id, description=description)


def make_task(title="Pick tiles", status="Not Started", due=date(2024, 5, 1),
              client_id=None) -> Task:
    return Task(id=None, title=title, status=status, due_date=due, client_id=client_id)
