"""Repository for orders, their items and return records."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from rental_orders.db.connection import unit_of_work
from rental_orders.domain.models import (
    Order,
    OrderDetails,
    OrderItem,
    OrderLine,
    OrderStatus,
    ReturnRecord,
)
from rental_orders.logging_config import get_logger
from rental_orders.repositories.mappers import (
    client_from_row,
    order_from_row,
    order_item_from_row,
    product_from_row,
    return_record_from_row,
    to_db_number,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _placeholders(values: list[object]) -> str:
    return ", ".join(["?"] * len(values))


class OrderRepository:
    """Data access for orders, order items and return records."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def create_order(
        self,
        client_id: int,
        start_time: str,
        subtotal: Decimal,
        tax: Decimal,
        total: Decimal,
        advance_payment: Decimal,
        items: Iterable[tuple[int, int, Decimal]],
    ) -> tuple[Order, list[OrderItem]]:
        """Insert a PENDING order and its ``(product_id, qty, unit_price)`` lines."""
        created_at = _now_iso()
        order_items: list[OrderItem] = []
        try:
            with unit_of_work(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO orders (
                        client_id,
                        status,
                        start_time,
                        subtotal,
                        tax,
                        total,
                        advance_payment,
                        advance_used,
                        created_at,
                        updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
                    """,
                    (
                        client_id,
                        OrderStatus.PENDING.value,
                        start_time,
                        to_db_number(subtotal),
                        to_db_number(tax),
                        to_db_number(total),
                        to_db_number(advance_payment),
                        created_at,
                        created_at,
                    ),
                )
                order_id = int(cursor.lastrowid)
                for product_id, quantity, unit_price in items:
                    item_cursor = self._connection.execute(
                        """
                        INSERT INTO order_items (
                            order_id,
                            product_id,
                            quantity,
                            returned,
                            unit_price,
                            created_at,
                            updated_at
                        )
                        VALUES (?, ?, ?, 0, ?, ?, ?)
                        """,
                        (
                            order_id,
                            product_id,
                            quantity,
                            to_db_number(unit_price),
                            created_at,
                            created_at,
                        ),
                    )
                    order_items.append(
                        OrderItem(
                            id=int(item_cursor.lastrowid),
                            order_id=order_id,
                            product_id=product_id,
                            quantity=quantity,
                            returned=0,
                            unit_price=unit_price,
                            created_at=created_at,
                            updated_at=created_at,
                        )
                    )
        except Exception:
            self._logger.exception("Failed to create order client_id=%s", client_id)
            raise

        order = Order(
            id=order_id,
            client_id=client_id,
            status=OrderStatus.PENDING,
            start_time=start_time,
            subtotal=subtotal,
            tax=tax,
            total=total,
            advance_payment=advance_payment,
            advance_used=Decimal("0"),
            created_at=created_at,
            updated_at=created_at,
        )
        return order, order_items

    def get_order(self, order_id: int) -> Optional[Order]:
        try:
            row = self._connection.execute(
                "SELECT * FROM orders WHERE id = ?",
                (order_id,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to fetch order id=%s", order_id)
            raise
        return order_from_row(row) if row else None

    def list_items(self, order_id: int) -> list[OrderItem]:
        try:
            rows = self._connection.execute(
                """
                SELECT * FROM order_items
                WHERE order_id = ?
                ORDER BY id
                """,
                (order_id,),
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list items for order id=%s", order_id)
            raise
        return [order_item_from_row(row) for row in rows]

    def get_order_details(self, order_id: int) -> Optional[OrderDetails]:
        try:
            row = self._connection.execute(
                "SELECT * FROM orders WHERE id = ?",
                (order_id,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to fetch order id=%s", order_id)
            raise
        if not row:
            return None
        return self._build_details([row])[0]

    def list_order_details(
        self, *, client_id: Optional[int] = None
    ) -> list[OrderDetails]:
        """List orders newest first, optionally for a single client."""
        where_clause = ""
        params: list[object] = []
        if client_id is not None:
            where_clause = "WHERE client_id = ?"
            params.append(client_id)
        try:
            rows = self._connection.execute(
                f"""
                SELECT * FROM orders
                {where_clause}
                ORDER BY created_at DESC, id DESC
                """,
                params,
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list orders client_id=%s", client_id)
            raise
        return self._build_details(rows)

    def _build_details(self, order_rows: list[sqlite3.Row]) -> list[OrderDetails]:
        if not order_rows:
            return []
        orders = [order_from_row(row) for row in order_rows]
        order_ids: list[object] = [order.id for order in orders]
        client_ids: list[object] = sorted({order.client_id for order in orders})
        try:
            client_rows = self._connection.execute(
                f"SELECT * FROM clients WHERE id IN ({_placeholders(client_ids)})",
                client_ids,
            ).fetchall()
            item_rows = self._connection.execute(
                f"""
                SELECT * FROM order_items
                WHERE order_id IN ({_placeholders(order_ids)})
                ORDER BY id
                """,
                order_ids,
            ).fetchall()
            product_ids: list[object] = sorted({row["product_id"] for row in item_rows})
            product_rows = (
                self._connection.execute(
                    f"SELECT * FROM products WHERE id IN ({_placeholders(product_ids)})",
                    product_ids,
                ).fetchall()
                if product_ids
                else []
            )
        except Exception:
            self._logger.exception("Failed to load order details ids=%s", order_ids)
            raise

        clients = {int(row["id"]): client_from_row(row) for row in client_rows}
        products = {int(row["id"]): product_from_row(row) for row in product_rows}
        lines_by_order: dict[int, list[OrderLine]] = {}
        for row in item_rows:
            item = order_item_from_row(row)
            lines_by_order.setdefault(item.order_id, []).append(
                OrderLine(item=item, product=products[item.product_id])
            )
        return [
            OrderDetails(
                order=order,
                client=clients[order.client_id],
                lines=lines_by_order.get(order.id or 0, []),
            )
            for order in orders
        ]

    def set_status(
        self,
        order_id: int,
        status: OrderStatus,
        *,
        returned_at: Optional[str] = None,
    ) -> bool:
        """Update status; ``returned_at`` is only written when still empty."""
        try:
            with unit_of_work(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE orders
                    SET status = ?,
                        returned_at = COALESCE(returned_at, ?),
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (status.value, returned_at, _now_iso(), order_id),
                )
        except Exception:
            self._logger.exception("Failed to update order status id=%s", order_id)
            raise
        return cursor.rowcount > 0

    def set_start_time(self, order_id: int, start_time: str) -> bool:
        try:
            with unit_of_work(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE orders
                    SET start_time = ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (start_time, _now_iso(), order_id),
                )
        except Exception:
            self._logger.exception("Failed to update start time order id=%s", order_id)
            raise
        return cursor.rowcount > 0

    def set_advance_used(self, order_id: int, advance_used: Decimal) -> bool:
        try:
            with unit_of_work(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE orders
                    SET advance_used = ?,
                        updated_at = ?
                    WHERE id = ?
                      AND advance_used <= ?
                    """,
                    (
                        to_db_number(advance_used),
                        _now_iso(),
                        order_id,
                        to_db_number(advance_used),
                    ),
                )
        except Exception:
            self._logger.exception("Failed to update advance used order id=%s", order_id)
            raise
        return cursor.rowcount > 0

    def update_billing(
        self,
        order_id: int,
        *,
        status: OrderStatus,
        total: Decimal,
        rental_days: int,
        rental_hours: int,
        billing_multiplier: Decimal,
        returned_at: Optional[str],
    ) -> bool:
        """Store recomputed status, total and duration for an order."""
        try:
            with unit_of_work(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE orders
                    SET status = ?,
                        total = ?,
                        rental_days = ?,
                        rental_hours = ?,
                        billing_multiplier = ?,
                        returned_at = COALESCE(returned_at, ?),
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        status.value,
                        to_db_number(total),
                        rental_days,
                        rental_hours,
                        to_db_number(billing_multiplier),
                        returned_at,
                        _now_iso(),
                        order_id,
                    ),
                )
        except Exception:
            self._logger.exception("Failed to update billing order id=%s", order_id)
            raise
        return cursor.rowcount > 0

    def increment_returned(self, order_id: int, order_item_id: int, qty: int) -> bool:
        """Add ``qty`` to an item's returned count if it stays within quantity."""
        try:
            with unit_of_work(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE order_items
                    SET returned = returned + ?,
                        updated_at = ?
                    WHERE id = ?
                      AND order_id = ?
                      AND returned + ? <= quantity
                    """,
                    (qty, _now_iso(), order_item_id, order_id, qty),
                )
        except Exception:
            self._logger.exception(
                "Failed to increment returned item id=%s", order_item_id
            )
            raise
        return cursor.rowcount > 0

    def get_item_totals(self, order_id: int) -> tuple[int, int]:
        """Return ``(total_rented, total_returned)`` for an order."""
        try:
            row = self._connection.execute(
                """
                SELECT
                    COALESCE(SUM(quantity), 0) AS total_rented,
                    COALESCE(SUM(returned), 0) AS total_returned
                FROM order_items
                WHERE order_id = ?
                """,
                (order_id,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to sum items for order id=%s", order_id)
            raise
        return int(row["total_rented"]), int(row["total_returned"])

    def add_return_record(self, record: ReturnRecord) -> ReturnRecord:
        try:
            with unit_of_work(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO return_records (
                        order_id,
                        order_item_id,
                        product_id,
                        return_quantity,
                        rental_days,
                        rental_hours,
                        billing_multiplier,
                        return_amount,
                        returned_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.order_id,
                        record.order_item_id,
                        record.product_id,
                        record.return_quantity,
                        record.rental_days,
                        record.rental_hours,
                        to_db_number(record.billing_multiplier),
                        to_db_number(record.return_amount),
                        record.returned_at,
                    ),
                )
        except Exception:
            self._logger.exception(
                "Failed to add return record order id=%s", record.order_id
            )
            raise
        return ReturnRecord(
            id=int(cursor.lastrowid),
            order_id=record.order_id,
            order_item_id=record.order_item_id,
            product_id=record.product_id,
            return_quantity=record.return_quantity,
            rental_days=record.rental_days,
            rental_hours=record.rental_hours,
            billing_multiplier=record.billing_multiplier,
            return_amount=record.return_amount,
            returned_at=record.returned_at,
        )

    def list_return_records(
        self, *, order_id: Optional[int] = None
    ) -> list[ReturnRecord]:
        where_clause = ""
        params: list[object] = []
        if order_id is not None:
            where_clause = "WHERE order_id = ?"
            params.append(order_id)
        try:
            rows = self._connection.execute(
                f"""
                SELECT * FROM return_records
                {where_clause}
                ORDER BY returned_at, id
                """,
                params,
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list return records order_id=%s", order_id)
            raise
        return [return_record_from_row(row) for row in rows]

    def delete_order(self, order_id: int) -> bool:
        try:
            with unit_of_work(self._connection):
                cursor = self._connection.execute(
                    "DELETE FROM orders WHERE id = ?",
                    (order_id,),
                )
        except Exception:
            self._logger.exception("Failed to delete order id=%s", order_id)
            raise
        return cursor.rowcount > 0
