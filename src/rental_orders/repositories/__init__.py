"""Repositories for data access."""

from rental_orders.repositories.client_repo import ClientRepo
from rental_orders.repositories.mappers import (
    client_from_row,
    client_to_record,
    order_details_to_payload,
    order_from_row,
    order_item_from_row,
    order_item_to_record,
    order_to_record,
    product_from_row,
    product_to_record,
    return_record_from_row,
    return_record_to_record,
)
from rental_orders.repositories.order_repo import OrderRepository
from rental_orders.repositories.product_repo import ProductRepo

__all__ = [
    "ClientRepo",
    "client_from_row",
    "client_to_record",
    "order_details_to_payload",
    "order_from_row",
    "order_item_from_row",
    "order_item_to_record",
    "order_to_record",
    "OrderRepository",
    "ProductRepo",
    "product_from_row",
    "product_to_record",
    "return_record_from_row",
    "return_record_to_record",
]
