"""Rental lifecycle: create, return and remove orders atomically."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, Sequence

from rental_orders.config import BillingPolicy
from rental_orders.db.connection import unit_of_work
from rental_orders.domain.models import (
    ClientRef,
    ClientResolution,
    ClientStanding,
    OrderCreation,
    OrderDetails,
    OrderLineRequest,
    OrderStatus,
    ResolutionOutcome,
    ReturnLineRequest,
    ReturnRecord,
    ReturnResult,
    ReturnSummary,
)
from rental_orders.logging_config import get_logger
from rental_orders.repositories.order_repo import OrderRepository
from rental_orders.repositories.product_repo import ProductRepo
from rental_orders.services.billing import (
    ElapsedTime,
    compute_elapsed_multiplier,
    compute_initial_charge,
    compute_return_amount,
    elapsed_from_duration,
)
from rental_orders.services.client_service import ClientService
from rental_orders.services.errors import (
    ConflictError,
    EmptyBatchError,
    InvalidQuantityError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from rental_orders.services.inventory_service import InventoryService
from rental_orders.services.order_service import OrderService
from rental_orders.utils.timestamps import parse_timestamp, to_iso, utc_now


def _to_decimal(value: object, field_name: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field_name} must be a number.") from exc
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a number.")
    return result


def _coerce_status(status: str | OrderStatus) -> OrderStatus:
    if isinstance(status, OrderStatus):
        return status
    try:
        return OrderStatus(str(status).strip().upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown order status: {status!r}.") from exc


class RentalService:
    """Orchestrates inventory, billing and the order aggregate.

    Every mutating operation runs as one unit of work: either all of its
    stock moves and order writes are committed, or none are.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        policy: Optional[BillingPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._policy = policy or BillingPolicy()
        self._clock = clock or utc_now
        self._order_repo = OrderRepository(connection)
        self._product_repo = ProductRepo(connection)
        self._inventory_service = InventoryService(connection)
        self._client_service = ClientService(connection, self._policy)
        self._order_service = OrderService(connection)
        self._logger = get_logger(self.__class__.__name__)

    @contextmanager
    def _unit_of_work(self) -> Iterator[sqlite3.Connection]:
        try:
            with unit_of_work(self._connection) as conn:
                yield conn
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc).upper():
                raise ConflictError(str(exc)) from exc
            raise ValidationError(str(exc)) from exc
        except sqlite3.OperationalError as exc:
            self._logger.exception("Store failure during unit of work")
            raise StoreError("The database is unavailable, try again.") from exc

    def _now(self) -> datetime:
        # Stored timestamps have whole-second precision.
        return parse_timestamp(self._clock()).replace(microsecond=0)

    def _parse_time(self, value: str | datetime, field_name: str) -> datetime:
        try:
            return parse_timestamp(value).replace(microsecond=0)
        except (ValueError, OverflowError) as exc:
            raise ValidationError(f"Invalid date provided for {field_name}.") from exc

    def _get_details(self, order_id: int) -> OrderDetails:
        details = self._order_repo.get_order_details(order_id)
        if not details:
            raise NotFoundError(f"Order with ID {order_id} not found.")
        return details

    def _validate_lines(self, items: Sequence[OrderLineRequest]) -> None:
        if not items:
            raise EmptyBatchError("Order must contain at least one item.")
        for index, item in enumerate(items):
            if isinstance(item.product_id, bool) or not isinstance(item.product_id, int):
                raise ValidationError(f"items.{index}.product_id must be an integer.")
            if (
                isinstance(item.quantity, bool)
                or not isinstance(item.quantity, int)
                or item.quantity <= 0
            ):
                raise InvalidQuantityError(
                    f"items.{index}.quantity must be a positive integer."
                )

    def _resolve_client(self, client: int | ClientRef) -> ClientResolution:
        if isinstance(client, ClientRef):
            return self._client_service.resolve_or_create_client(client)
        return ClientResolution(
            client=self._client_service.get_client(client),
            outcome=ResolutionOutcome.EXISTING,
        )

    def create_order(
        self,
        client: int | ClientRef,
        items: Sequence[OrderLineRequest],
        start_time: Optional[str | datetime] = None,
        tax_percent: Optional[Decimal | int | str] = None,
        advance_payment: Decimal | int | str = Decimal("0"),
    ) -> OrderCreation:
        """Reserve stock and open a PENDING order.

        ``client`` is either an existing client id or a ``ClientRef`` that
        is matched by phone and created when unknown.
        """
        self._validate_lines(items)
        start = (
            self._now()
            if start_time is None
            else self._parse_time(start_time, "start_time")
        )
        tax = (
            self._policy.tax_percent
            if tax_percent is None
            else _to_decimal(tax_percent, "tax_percent")
        )
        if tax < 0 or tax > 100:
            raise ValidationError("tax_percent must be between 0 and 100.")
        advance = _to_decimal(advance_payment, "advance_payment")
        if advance < 0:
            raise ValidationError("advance_payment must not be negative.")

        with self._unit_of_work():
            resolution = self._resolve_client(client)
            products = self._product_repo.get_by_ids(
                [item.product_id for item in items]
            )
            for item in items:
                if item.product_id not in products:
                    raise NotFoundError(f"Product with ID {item.product_id} not found.")
            self._inventory_service.reserve_many(
                (item.product_id, item.quantity) for item in items
            )
            prices = {
                product_id: product.price for product_id, product in products.items()
            }
            charge = compute_initial_charge(
                items, prices, tax, quantum=self._policy.money_quantum
            )
            order, _order_items = self._order_repo.create_order(
                resolution.client.id or 0,
                to_iso(start),
                charge.subtotal,
                charge.tax,
                charge.total,
                advance,
                [(item.product_id, item.quantity, prices[item.product_id]) for item in items],
            )
            details = self._get_details(order.id or 0)

        self._logger.info(
            "Created order id=%s client_id=%s items=%s total=%s",
            order.id,
            order.client_id,
            len(items),
            charge.total,
        )
        return OrderCreation(details=details, client_resolution=resolution)

    def create_order_with_customer(
        self,
        customer: ClientRef,
        items: Sequence[OrderLineRequest],
        start_time: Optional[str | datetime] = None,
        tax_percent: Optional[Decimal | int | str] = None,
        advance_payment: Decimal | int | str = Decimal("0"),
    ) -> OrderCreation:
        """Open an order for a customer named inline rather than by id."""
        return self.create_order(
            customer,
            items,
            start_time=start_time,
            tax_percent=tax_percent,
            advance_payment=advance_payment,
        )

    def _resolve_elapsed(
        self, start: datetime, now: datetime, request: ReturnLineRequest
    ) -> ElapsedTime:
        policy = self._policy.multiplier_policy
        if request.rental_days is not None or request.rental_hours is not None:
            elapsed = elapsed_from_duration(
                request.rental_days or 0, request.rental_hours or 0, policy
            )
        else:
            elapsed = compute_elapsed_multiplier(start, now, policy)
        if request.multiplier is not None:
            elapsed = ElapsedTime(
                days=elapsed.days,
                hours=elapsed.hours,
                multiplier=Decimal(str(request.multiplier)),
            )
        return elapsed

    def return_items(
        self,
        order_id: int,
        batch: Sequence[ReturnLineRequest],
    ) -> ReturnResult:
        """Take back a batch of items and bill the elapsed rental time.

        The batch is validated as a whole first; nothing changes unless
        every line is acceptable.
        """
        now = self._now()
        returned_at = to_iso(now)
        with self._unit_of_work():
            order = self._order_repo.get_order(order_id)
            if order is None:
                raise NotFoundError(f"Order with ID {order_id} not found.")
            items = self._order_repo.list_items(order_id)
            plan = self._order_service.validate_return_request(order, items, batch)

            start = parse_timestamp(order.start_time)
            priced = []
            for item, request in plan:
                elapsed = self._resolve_elapsed(start, now, request)
                amount = compute_return_amount(
                    item.unit_price,
                    request.return_quantity,
                    elapsed.multiplier,
                    quantum=self._policy.money_quantum,
                )
                priced.append((item, request, elapsed, amount))

            amount_due = sum((amount for *_, amount in priced), Decimal("0"))
            advance_applied = self._order_service.consume_advance(order, amount_due)

            records: list[ReturnRecord] = []
            for item, request, elapsed, amount in priced:
                self._inventory_service.release(item.product_id, request.return_quantity)
                records.append(
                    self._order_service.apply_return(
                        order,
                        item,
                        request.return_quantity,
                        elapsed,
                        amount,
                        returned_at,
                    )
                )
            details = self._get_details(order_id)

        self._logger.info(
            "Returned %s units on order id=%s amount=%s advance=%s status=%s",
            sum(record.return_quantity for record in records),
            order_id,
            amount_due,
            advance_applied,
            details.order.status.value,
        )
        return ReturnResult(
            details=details,
            records=records,
            amount_due=amount_due,
            advance_applied=advance_applied,
        )

    def remove_order(self, order_id: int) -> None:
        """Delete an order, putting units still on rent back in stock."""
        with self._unit_of_work():
            order = self._order_repo.get_order(order_id)
            if order is None:
                raise NotFoundError(f"Order with ID {order_id} not found.")
            for item in self._order_repo.list_items(order_id):
                if item.remaining > 0:
                    self._inventory_service.release(item.product_id, item.remaining)
            self._order_repo.delete_order(order_id)
        self._logger.info("Removed order id=%s", order_id)

    def check_client_standing(self, phone: str) -> ClientStanding:
        return self._client_service.check_client_standing(phone)

    def get_order(self, order_id: int) -> OrderDetails:
        return self._get_details(order_id)

    def list_orders(self) -> list[OrderDetails]:
        return self._order_repo.list_order_details()

    def list_client_orders(self, client_id: int) -> list[OrderDetails]:
        self._client_service.get_client(client_id)
        return self._order_repo.list_order_details(client_id=client_id)

    def update_status(self, order_id: int, status: str | OrderStatus) -> OrderDetails:
        """Override the status of an order by hand.

        A RETURNED order keeps its status; marking an order RETURNED stamps
        its return time.
        """
        new_status = _coerce_status(status)
        with self._unit_of_work():
            order = self._order_repo.get_order(order_id)
            if order is None:
                raise NotFoundError(f"Order with ID {order_id} not found.")
            if order.status == OrderStatus.RETURNED and new_status != OrderStatus.RETURNED:
                raise ValidationError(
                    f"Order {order_id} is already returned and cannot change status."
                )
            returned_at = to_iso(self._now()) if new_status == OrderStatus.RETURNED else None
            self._order_repo.set_status(order_id, new_status, returned_at=returned_at)
            details = self._get_details(order_id)
        self._logger.info("Order id=%s status set to %s", order_id, new_status.value)
        return details

    def adjust_start_time(
        self, order_id: int, start_time: str | datetime
    ) -> OrderDetails:
        """Move the billing start of an open order to an earlier or later time."""
        start = self._parse_time(start_time, "start_time")
        if start > self._now():
            raise ValidationError("start_time must not be in the future.")
        with self._unit_of_work():
            order = self._order_repo.get_order(order_id)
            if order is None:
                raise NotFoundError(f"Order with ID {order_id} not found.")
            if order.status == OrderStatus.RETURNED:
                raise ValidationError(
                    f"Order {order_id} is already returned; start time is final."
                )
            self._order_repo.set_start_time(order_id, to_iso(start))
            details = self._get_details(order_id)
        self._logger.info("Order id=%s start time moved to %s", order_id, to_iso(start))
        return details

    def list_return_records(self, order_id: Optional[int] = None) -> list[ReturnRecord]:
        if order_id is not None and self._order_repo.get_order(order_id) is None:
            raise NotFoundError(f"Order with ID {order_id} not found.")
        return self._order_repo.list_return_records(order_id=order_id)

    def get_return_summary(self, order_id: int) -> ReturnSummary:
        records = self.list_return_records(order_id)
        return ReturnSummary(
            order_id=order_id,
            total_returned=sum(record.return_quantity for record in records),
            total_amount=sum(
                (record.return_amount for record in records), Decimal("0")
            ),
            records=records,
        )
