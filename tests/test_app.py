import logging
import sys
from decimal import Decimal

import pytest

from rental_orders.app import build_services, main, open_services
from rental_orders.config import BillingPolicy, MultiplierPolicy, save_billing_policy
from rental_orders.db.migrations import LATEST_SCHEMA_VERSION, get_schema_version
from rental_orders.domain.models import OrderLineRequest


@pytest.fixture
def restore_logging(monkeypatch):
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


def test_open_services_migrates_and_loads_policy(tmp_path):
    config_path = tmp_path / "config.json"
    save_billing_policy(
        config_path,
        BillingPolicy(tax_percent=Decimal("10"), multiplier_policy=MultiplierPolicy.PRORATED),
    )

    services = open_services(tmp_path / "app.db", config_path)
    try:
        assert get_schema_version(services.connection) == LATEST_SCHEMA_VERSION
        assert services.policy.tax_percent == Decimal("10")
        assert services.policy.multiplier_policy == MultiplierPolicy.PRORATED
    finally:
        services.connection.close()


def test_services_share_one_connection(connection):
    services = build_services(connection)
    product = services.product_repo.create("Tent", None, Decimal("2500"), None, 2)
    client = services.client_repo.create("Ana", "Silva", "900000000")

    services.rental_service.create_order(
        client.id, [OrderLineRequest(product_id=product.id, quantity=2)]
    )

    assert services.inventory_service.available(product.id) == 0
    assert services.client_service.get_client(client.id).phone == "900000000"
    assert len(services.order_repo.list_order_details()) == 1


def test_main_initializes_app_data(tmp_path, monkeypatch, restore_logging):
    monkeypatch.setenv("APPDATA", str(tmp_path))

    assert main() == 0

    app_dir = tmp_path / "RentalOrders"
    assert (app_dir / "rental_orders.db").exists()
    assert (app_dir / "logs" / "app.log").exists()
