"""Order aggregate rules: return validation, status and totals."""

from __future__ import annotations

import sqlite3
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

from rental_orders.domain.models import (
    Order,
    OrderItem,
    OrderStatus,
    ReturnLineRequest,
    ReturnRecord,
)
from rental_orders.logging_config import get_logger
from rental_orders.repositories.order_repo import OrderRepository
from rental_orders.services.billing import HOURS_PER_DAY, ElapsedTime, apply_advance
from rental_orders.services.errors import (
    EmptyBatchError,
    InvalidQuantityError,
    ItemNotFoundError,
    NotFoundError,
    OverReturnError,
    ValidationError,
)


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_non_negative_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def derive_status(total_rented: int, total_returned: int) -> OrderStatus:
    if total_returned <= 0:
        return OrderStatus.PENDING
    if total_returned < total_rented:
        return OrderStatus.PARTIALLY_RETURNED
    return OrderStatus.RETURNED


def _validate_corrections(index: int, request: ReturnLineRequest) -> None:
    if request.rental_days is not None and not _is_non_negative_int(request.rental_days):
        raise InvalidQuantityError(
            f"items.{index}.rental_days must be a non-negative integer."
        )
    if request.rental_hours is not None and not (
        _is_non_negative_int(request.rental_hours)
        and request.rental_hours < HOURS_PER_DAY
    ):
        raise InvalidQuantityError(
            f"items.{index}.rental_hours must be between 0 and {HOURS_PER_DAY - 1}."
        )
    if request.multiplier is not None:
        try:
            multiplier = Decimal(str(request.multiplier))
        except (InvalidOperation, ValueError) as exc:
            raise InvalidQuantityError(
                f"items.{index}.multiplier must be a positive number."
            ) from exc
        if not multiplier.is_finite() or multiplier <= 0:
            raise InvalidQuantityError(
                f"items.{index}.multiplier must be a positive number."
            )


class OrderService:
    """Central service for the order aggregate.

    Keeps item return counters, the return audit trail, the order status
    and the order total consistent with each other. Callers are expected
    to run these methods inside one unit of work.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._repo = OrderRepository(connection)
        self._logger = get_logger(self.__class__.__name__)

    def validate_return_request(
        self,
        order: Order,
        items: Sequence[OrderItem],
        requests: Sequence[ReturnLineRequest],
    ) -> list[tuple[OrderItem, ReturnLineRequest]]:
        """Check a whole return batch before anything is changed.

        Returns the batch paired with the order items it refers to. Lines
        naming the same item are checked against its remaining units
        together.
        """
        if not requests:
            raise EmptyBatchError("Items array must not be empty.")
        for index, request in enumerate(requests):
            if not _is_positive_int(request.order_item_id):
                raise ValidationError(
                    f"items.{index}.order_item_id must be a positive integer."
                )
            if not _is_positive_int(request.return_quantity):
                raise InvalidQuantityError(
                    f"items.{index}.return_quantity must be a positive integer."
                )
            _validate_corrections(index, request)

        items_by_id = {item.id: item for item in items}
        plan: list[tuple[OrderItem, ReturnLineRequest]] = []
        requested: dict[int, int] = {}
        for request in requests:
            item = items_by_id.get(request.order_item_id)
            if item is None:
                raise ItemNotFoundError(
                    f"Order item with ID {request.order_item_id} not found "
                    f"in order {order.id}."
                )
            requested[request.order_item_id] = (
                requested.get(request.order_item_id, 0) + request.return_quantity
            )
            plan.append((item, request))

        for item_id, qty in requested.items():
            item = items_by_id[item_id]
            if qty > item.remaining:
                raise OverReturnError(
                    f"Cannot return {qty} items for order item {item_id}. "
                    f"Only {item.remaining} items available to return."
                )
        return plan

    def consume_advance(self, order: Order, amount_due: Decimal) -> Decimal:
        """Credit the unused advance against ``amount_due`` and record it."""
        current = self._repo.get_order(order.id or 0)
        if current is None:
            raise NotFoundError(f"Order with ID {order.id} not found.")
        applied = apply_advance(
            current.advance_payment, current.advance_used, amount_due
        )
        if applied > 0:
            self._repo.set_advance_used(current.id or 0, current.advance_used + applied)
            self._logger.info(
                "Applied advance %s to order id=%s", applied, current.id
            )
        return applied

    def apply_return(
        self,
        order: Order,
        item: OrderItem,
        return_qty: int,
        elapsed: ElapsedTime,
        amount: Decimal,
        returned_at: str,
    ) -> ReturnRecord:
        if not self._repo.increment_returned(order.id or 0, item.id or 0, return_qty):
            raise OverReturnError(
                f"Cannot return {return_qty} items for order item {item.id}."
            )
        record = self._repo.add_return_record(
            ReturnRecord(
                id=None,
                order_id=order.id or 0,
                order_item_id=item.id or 0,
                product_id=item.product_id,
                return_quantity=return_qty,
                rental_days=elapsed.days,
                rental_hours=elapsed.hours,
                billing_multiplier=elapsed.multiplier,
                return_amount=amount,
                returned_at=returned_at,
            )
        )
        self.refresh_order(order.id or 0, elapsed, returned_at)
        return record

    def refresh_order(
        self,
        order_id: int,
        elapsed: ElapsedTime,
        now: str,
    ) -> Order:
        """Recompute status and total from the items and the audit trail."""
        order = self._repo.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order with ID {order_id} not found.")
        total_rented, total_returned = self._repo.get_item_totals(order_id)
        status = derive_status(total_rented, total_returned)
        if order.status == OrderStatus.RETURNED:
            status = OrderStatus.RETURNED
        records = self._repo.list_return_records(order_id=order_id)
        charged = sum((record.return_amount for record in records), Decimal("0"))
        returned_at: Optional[str] = now if status == OrderStatus.RETURNED else None
        self._repo.update_billing(
            order_id,
            status=status,
            total=charged - order.advance_used,
            rental_days=elapsed.days,
            rental_hours=elapsed.hours,
            billing_multiplier=elapsed.multiplier,
            returned_at=returned_at,
        )
        if status != order.status:
            self._logger.info(
                "Order id=%s status %s -> %s", order_id, order.status.value, status.value
            )
        refreshed = self._repo.get_order(order_id)
        if refreshed is None:
            raise NotFoundError(f"Order with ID {order_id} not found.")
        return refreshed
