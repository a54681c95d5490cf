"""Repository for product persistence."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from rental_orders.db.connection import unit_of_work
from rental_orders.domain.models import Product
from rental_orders.logging_config import get_logger
from rental_orders.repositories.mappers import product_from_row, to_db_number


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class ProductRepo:
    """Product store and the stock counter primitives."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def create(
        self,
        name: str,
        size: Optional[str],
        price: Decimal,
        weight: Optional[float],
        count: int,
    ) -> Product:
        created_at = _now_iso()
        try:
            with unit_of_work(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO products (
                        name,
                        size,
                        price,
                        weight,
                        count,
                        created_at,
                        updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        name,
                        size,
                        to_db_number(price),
                        weight,
                        count,
                        created_at,
                        created_at,
                    ),
                )
        except Exception:
            self._logger.exception("Failed to create product")
            raise

        return Product(
            id=cursor.lastrowid,
            name=name,
            size=size,
            price=price,
            weight=weight,
            count=count,
            created_at=created_at,
            updated_at=created_at,
        )

    def list_all(self) -> List[Product]:
        try:
            rows = self._connection.execute(
                "SELECT * FROM products ORDER BY name"
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list products")
            raise
        return [product_from_row(row) for row in rows]

    def get_by_id(self, product_id: int) -> Optional[Product]:
        try:
            row = self._connection.execute(
                "SELECT * FROM products WHERE id = ?",
                (product_id,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to get product id=%s", product_id)
            raise
        return product_from_row(row) if row else None

    def get_by_ids(self, product_ids: list[int]) -> dict[int, Product]:
        ids = sorted({int(product_id) for product_id in product_ids})
        if not ids:
            return {}
        placeholders = ", ".join(["?"] * len(ids))
        try:
            rows = self._connection.execute(
                f"SELECT * FROM products WHERE id IN ({placeholders})",
                ids,
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to load products ids=%s", ids)
            raise
        return {int(row["id"]): product_from_row(row) for row in rows}

    def decrement_count(self, product_id: int, qty: int) -> bool:
        """Take ``qty`` units out of stock if at least that many remain.

        Returns False when the product is missing or short on stock; the
        counter is left untouched in that case.
        """
        try:
            with unit_of_work(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE products
                    SET count = count - ?,
                        updated_at = ?
                    WHERE id = ?
                      AND count >= ?
                    """,
                    (qty, _now_iso(), product_id, qty),
                )
        except Exception:
            self._logger.exception(
                "Failed to decrement stock product_id=%s qty=%s", product_id, qty
            )
            raise
        return cursor.rowcount > 0

    def increment_count(self, product_id: int, qty: int) -> bool:
        try:
            with unit_of_work(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE products
                    SET count = count + ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (qty, _now_iso(), product_id),
                )
        except Exception:
            self._logger.exception(
                "Failed to increment stock product_id=%s qty=%s", product_id, qty
            )
            raise
        return cursor.rowcount > 0
