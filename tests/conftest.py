"""Shared fixtures: a migrated SQLite file per test and a controllable clock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable

import pytest

from rental_orders.config import BillingPolicy
from rental_orders.db.connection import get_connection
from rental_orders.db.migrations import apply_migrations
from rental_orders.domain.models import Product
from rental_orders.repositories import ClientRepo, OrderRepository, ProductRepo
from rental_orders.services.rental_service import RentalService

START = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "rental_orders_test.db"


@pytest.fixture
def connection(db_path):
    conn = get_connection(db_path)
    apply_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START)


@pytest.fixture
def policy() -> BillingPolicy:
    return BillingPolicy()


@pytest.fixture
def service(connection, policy, clock) -> RentalService:
    return RentalService(connection, policy, clock=clock)


@pytest.fixture
def product_repo(connection) -> ProductRepo:
    return ProductRepo(connection)


@pytest.fixture
def client_repo(connection) -> ClientRepo:
    return ClientRepo(connection)


@pytest.fixture
def order_repo(connection) -> OrderRepository:
    return OrderRepository(connection)


@pytest.fixture
def make_product(product_repo) -> Callable[..., Product]:
    def _make(
        name: str = "Scaffold frame",
        price: str = "10000",
        count: int = 5,
        size: str = "1.5m",
        weight: float = 12.5,
    ) -> Product:
        return product_repo.create(
            name=name,
            size=size,
            price=Decimal(price),
            weight=weight,
            count=count,
        )

    return _make
