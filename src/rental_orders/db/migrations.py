"""Database migrations for SQLite schema versioning."""

from __future__ import annotations

from dataclasses import dataclass
import sqlite3

from rental_orders.db.connection import transaction
from rental_orders.logging_config import get_logger


@dataclass(frozen=True)
class Migration:
    version: int
    script: str


MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        script="""
        CREATE TABLE IF NOT EXISTS products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            size TEXT,
            price REAL NOT NULL DEFAULT 0 CHECK (price >= 0),
            weight REAL CHECK (weight IS NULL OR weight >= 0),
            count INTEGER NOT NULL DEFAULT 0 CHECK (count >= 0),
            created_at TEXT,
            updated_at TEXT
        );

        CREATE TABLE IF NOT EXISTS clients (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            first_name TEXT NOT NULL,
            last_name TEXT NOT NULL,
            phone TEXT NOT NULL UNIQUE,
            rating TEXT,
            created_at TEXT,
            updated_at TEXT
        );

        CREATE TABLE IF NOT EXISTS orders (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            client_id INTEGER NOT NULL,
            status TEXT NOT NULL
                CHECK (status IN ('PENDING', 'PARTIALLY_RETURNED', 'RETURNED')),
            start_time TEXT NOT NULL,
            subtotal REAL NOT NULL DEFAULT 0 CHECK (subtotal >= 0),
            tax REAL NOT NULL DEFAULT 0 CHECK (tax >= 0),
            total REAL NOT NULL DEFAULT 0,
            advance_payment REAL NOT NULL DEFAULT 0 CHECK (advance_payment >= 0),
            advance_used REAL NOT NULL DEFAULT 0,
            created_at TEXT,
            updated_at TEXT,
            FOREIGN KEY (client_id) REFERENCES clients(id),
            CHECK (advance_used >= 0 AND advance_used <= advance_payment)
        );

        CREATE TABLE IF NOT EXISTS order_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            order_id INTEGER NOT NULL,
            product_id INTEGER NOT NULL,
            quantity INTEGER NOT NULL CHECK (quantity > 0),
            returned INTEGER NOT NULL DEFAULT 0,
            unit_price REAL NOT NULL DEFAULT 0,
            created_at TEXT,
            updated_at TEXT,
            FOREIGN KEY (order_id) REFERENCES orders(id) ON DELETE CASCADE,
            FOREIGN KEY (product_id) REFERENCES products(id),
            CHECK (returned >= 0 AND returned <= quantity)
        );

        CREATE INDEX IF NOT EXISTS idx_orders_client_id
            ON orders(client_id);
        CREATE INDEX IF NOT EXISTS idx_orders_status
            ON orders(status);
        CREATE INDEX IF NOT EXISTS idx_order_items_order_id
            ON order_items(order_id);
        CREATE INDEX IF NOT EXISTS idx_order_items_product_id
            ON order_items(product_id);
        """,
    ),
    Migration(
        version=2,
        script="""
        ALTER TABLE orders ADD COLUMN rental_days INTEGER;
        ALTER TABLE orders ADD COLUMN rental_hours INTEGER;
        ALTER TABLE orders ADD COLUMN billing_multiplier REAL;
        ALTER TABLE orders ADD COLUMN returned_at TEXT;

        CREATE TABLE IF NOT EXISTS return_records (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            order_id INTEGER NOT NULL,
            order_item_id INTEGER NOT NULL,
            product_id INTEGER NOT NULL,
            return_quantity INTEGER NOT NULL CHECK (return_quantity > 0),
            rental_days INTEGER NOT NULL CHECK (rental_days >= 0),
            rental_hours INTEGER NOT NULL
                CHECK (rental_hours >= 0 AND rental_hours < 24),
            billing_multiplier REAL NOT NULL CHECK (billing_multiplier > 0),
            return_amount REAL NOT NULL CHECK (return_amount >= 0),
            returned_at TEXT NOT NULL,
            FOREIGN KEY (order_id) REFERENCES orders(id) ON DELETE CASCADE,
            FOREIGN KEY (order_item_id) REFERENCES order_items(id) ON DELETE CASCADE,
            FOREIGN KEY (product_id) REFERENCES products(id)
        );

        CREATE INDEX IF NOT EXISTS idx_return_records_order_id
            ON return_records(order_id);
        CREATE INDEX IF NOT EXISTS idx_return_records_order_item_id
            ON return_records(order_item_id);
        """,
    ),
]

LATEST_SCHEMA_VERSION = MIGRATIONS[-1].version


def _fetch_schema_version(connection: sqlite3.Connection) -> int:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS app_meta (
            schema_version INTEGER NOT NULL
        );
        """
    )
    row = connection.execute(
        "SELECT schema_version FROM app_meta LIMIT 1"
    ).fetchone()
    if row is None:
        connection.execute("INSERT INTO app_meta (schema_version) VALUES (0)")
        return 0
    return int(row[0])


def get_schema_version(connection: sqlite3.Connection) -> int:
    """Return the schema version recorded in the database."""
    with transaction(connection):
        return _fetch_schema_version(connection)


def apply_migrations(connection: sqlite3.Connection) -> None:
    """Apply pending database migrations."""
    logger = get_logger("migrations")
    with transaction(connection):
        current_version = _fetch_schema_version(connection)

    for migration in MIGRATIONS:
        if migration.version <= current_version:
            continue

        try:
            with transaction(connection):
                connection.executescript(migration.script)
                connection.execute(
                    "UPDATE app_meta SET schema_version = ?",
                    (migration.version,),
                )
        except Exception:
            logger.exception("Failed to apply migration version=%s", migration.version)
            raise

        logger.info("Applied migration version=%s", migration.version)
        current_version = migration.version
