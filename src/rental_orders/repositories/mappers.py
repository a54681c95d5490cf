"""SQLite row mappers for domain models."""

from __future__ import annotations

import sqlite3
from decimal import Decimal
from typing import Any, Dict, Optional

from rental_orders.domain.models import (
    Client,
    Order,
    OrderDetails,
    OrderItem,
    OrderStatus,
    Product,
    ReturnRecord,
)


def _row_value(row: sqlite3.Row, key: str) -> Any:
    return row[key] if key in row.keys() else None


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return None if value is None else to_decimal(value)


def to_db_number(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(value)


def product_from_row(row: sqlite3.Row) -> Product:
    return Product(
        id=_row_value(row, "id"),
        name=row["name"],
        size=_row_value(row, "size"),
        price=to_decimal(row["price"]),
        weight=_row_value(row, "weight"),
        count=int(row["count"]),
        created_at=_row_value(row, "created_at"),
        updated_at=_row_value(row, "updated_at"),
    )


def product_to_record(product: Product) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "size": product.size,
        "price": str(product.price),
        "weight": product.weight,
        "count": product.count,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
    }


def client_from_row(row: sqlite3.Row) -> Client:
    return Client(
        id=_row_value(row, "id"),
        first_name=row["first_name"],
        last_name=row["last_name"],
        phone=row["phone"],
        rating=_row_value(row, "rating"),
        created_at=_row_value(row, "created_at"),
        updated_at=_row_value(row, "updated_at"),
    )


def client_to_record(client: Client) -> Dict[str, Any]:
    return {
        "id": client.id,
        "first_name": client.first_name,
        "last_name": client.last_name,
        "phone": client.phone,
        "rating": client.rating,
        "created_at": client.created_at,
        "updated_at": client.updated_at,
    }


def order_from_row(row: sqlite3.Row) -> Order:
    return Order(
        id=_row_value(row, "id"),
        client_id=row["client_id"],
        status=OrderStatus(row["status"]),
        start_time=row["start_time"],
        subtotal=to_decimal(row["subtotal"]),
        tax=to_decimal(row["tax"]),
        total=to_decimal(row["total"]),
        advance_payment=to_decimal(_row_value(row, "advance_payment")),
        advance_used=to_decimal(_row_value(row, "advance_used")),
        rental_days=_row_value(row, "rental_days"),
        rental_hours=_row_value(row, "rental_hours"),
        billing_multiplier=_optional_decimal(_row_value(row, "billing_multiplier")),
        returned_at=_row_value(row, "returned_at"),
        created_at=_row_value(row, "created_at"),
        updated_at=_row_value(row, "updated_at"),
    )


def order_to_record(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "client_id": order.client_id,
        "status": order.status.value,
        "start_time": order.start_time,
        "subtotal": str(order.subtotal),
        "tax": str(order.tax),
        "total": str(order.total),
        "advance_payment": str(order.advance_payment),
        "advance_used": str(order.advance_used),
        "rental_days": order.rental_days,
        "rental_hours": order.rental_hours,
        "billing_multiplier": (
            None if order.billing_multiplier is None else str(order.billing_multiplier)
        ),
        "returned_at": order.returned_at,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


def order_item_from_row(row: sqlite3.Row) -> OrderItem:
    return OrderItem(
        id=_row_value(row, "id"),
        order_id=row["order_id"],
        product_id=row["product_id"],
        quantity=int(row["quantity"]),
        returned=int(row["returned"]),
        unit_price=to_decimal(row["unit_price"]),
        created_at=_row_value(row, "created_at"),
        updated_at=_row_value(row, "updated_at"),
    )


def order_item_to_record(item: OrderItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "order_id": item.order_id,
        "product_id": item.product_id,
        "quantity": item.quantity,
        "returned": item.returned,
        "unit_price": str(item.unit_price),
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }


def return_record_from_row(row: sqlite3.Row) -> ReturnRecord:
    return ReturnRecord(
        id=_row_value(row, "id"),
        order_id=row["order_id"],
        order_item_id=row["order_item_id"],
        product_id=row["product_id"],
        return_quantity=int(row["return_quantity"]),
        rental_days=int(row["rental_days"]),
        rental_hours=int(row["rental_hours"]),
        billing_multiplier=to_decimal(row["billing_multiplier"]),
        return_amount=to_decimal(row["return_amount"]),
        returned_at=row["returned_at"],
    )


def return_record_to_record(record: ReturnRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "order_id": record.order_id,
        "order_item_id": record.order_item_id,
        "product_id": record.product_id,
        "return_quantity": record.return_quantity,
        "rental_days": record.rental_days,
        "rental_hours": record.rental_hours,
        "billing_multiplier": str(record.billing_multiplier),
        "return_amount": str(record.return_amount),
        "returned_at": record.returned_at,
    }


def order_details_to_payload(details: OrderDetails) -> Dict[str, Any]:
    """Flatten an order with its client and lines into plain values."""
    payload = order_to_record(details.order)
    payload["client"] = client_to_record(details.client)
    payload["items"] = [
        {
            **order_item_to_record(line.item),
            "product": product_to_record(line.product),
        }
        for line in details.lines
    ]
    return payload
