"""Inventory ledger: reserve and release stock per product."""

from __future__ import annotations

import sqlite3
from typing import Iterable

from rental_orders.db.connection import unit_of_work
from rental_orders.logging_config import get_logger
from rental_orders.repositories.product_repo import ProductRepo
from rental_orders.services.errors import (
    InsufficientStockError,
    InvalidQuantityError,
    NotFoundError,
)


def _validate_qty(qty: int) -> int:
    if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
        raise InvalidQuantityError(f"Quantity must be a positive integer, got {qty!r}.")
    return qty


class InventoryService:
    """Owns the available-count invariant of every product.

    Reservations and releases join the caller's unit of work, so they are
    rolled back together with the rest of the order change.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._product_repo = ProductRepo(connection)
        self._logger = get_logger(self.__class__.__name__)

    def available(self, product_id: int) -> int:
        product = self._product_repo.get_by_id(product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found.")
        return product.count

    def reserve(self, product_id: int, qty: int) -> None:
        _validate_qty(qty)
        with unit_of_work(self._connection):
            if self._product_repo.decrement_count(product_id, qty):
                return
            product = self._product_repo.get_by_id(product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found.")
        raise InsufficientStockError(
            f"Product {product.name} has only {product.count} items in stock, "
            f"but {qty} requested."
        )

    def release(self, product_id: int, qty: int) -> None:
        _validate_qty(qty)
        if not self._product_repo.increment_count(product_id, qty):
            raise NotFoundError(f"Product {product_id} not found.")

    def reserve_many(self, items: Iterable[tuple[int, int]]) -> None:
        """Reserve every ``(product_id, qty)`` pair or none of them."""
        with unit_of_work(self._connection):
            for product_id, qty in items:
                self.reserve(product_id, qty)
