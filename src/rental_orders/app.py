"""Application entry point."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rental_orders.config import AppConfig, BillingPolicy, load_billing_policy
from rental_orders.db.connection import get_connection
from rental_orders.db.migrations import apply_migrations, get_schema_version
from rental_orders.logging_config import configure_logging, get_logger
from rental_orders.paths import get_config_path, get_db_path, get_logs_dir
from rental_orders.repositories import ClientRepo, OrderRepository, ProductRepo
from rental_orders.services.client_service import ClientService
from rental_orders.services.inventory_service import InventoryService
from rental_orders.services.rental_service import RentalService
from rental_orders.version import __version__


@dataclass(frozen=True)
class AppServices:
    """Shared repositories and services for dependency injection."""

    connection: sqlite3.Connection
    policy: BillingPolicy
    client_repo: ClientRepo
    product_repo: ProductRepo
    order_repo: OrderRepository
    client_service: ClientService
    inventory_service: InventoryService
    rental_service: RentalService


def build_services(
    connection: sqlite3.Connection,
    policy: Optional[BillingPolicy] = None,
) -> AppServices:
    """Wire repositories and services around one connection."""
    policy = policy or BillingPolicy()
    return AppServices(
        connection=connection,
        policy=policy,
        client_repo=ClientRepo(connection),
        product_repo=ProductRepo(connection),
        order_repo=OrderRepository(connection),
        client_service=ClientService(connection, policy),
        inventory_service=InventoryService(connection),
        rental_service=RentalService(connection, policy),
    )


def open_services(
    db_path: Optional[Path] = None,
    config_path: Optional[Path] = None,
) -> AppServices:
    """Open the database, migrate it and build the service container."""
    connection = get_connection(
        db_path or get_db_path(), timeout=AppConfig().db_busy_timeout
    )
    apply_migrations(connection)
    policy = load_billing_policy(config_path or get_config_path())
    return build_services(connection, policy)


def main() -> int:
    """Initialize the RentalOrders database and report its state."""
    configure_logging(get_logs_dir())
    config = AppConfig()
    logger = get_logger(__name__)
    logger.info("Starting %s %s", config.app_name, __version__)
    services = open_services()
    try:
        logger.info(
            "Database ready at %s (schema version %s, multiplier policy %s)",
            get_db_path(),
            get_schema_version(services.connection),
            services.policy.multiplier_policy.value,
        )
    finally:
        services.connection.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
