"""Domain models for RentalOrders."""

from rental_orders.domain.models import (
    Client,
    ClientRef,
    ClientResolution,
    ClientStanding,
    Order,
    OrderCreation,
    OrderDetails,
    OrderItem,
    OrderLine,
    OrderLineRequest,
    OrderStatus,
    Product,
    ResolutionOutcome,
    ReturnLineRequest,
    ReturnRecord,
    ReturnResult,
    ReturnSummary,
)

__all__ = [
    "Client",
    "ClientRef",
    "ClientResolution",
    "ClientStanding",
    "Order",
    "OrderCreation",
    "OrderDetails",
    "OrderItem",
    "OrderLine",
    "OrderLineRequest",
    "OrderStatus",
    "Product",
    "ResolutionOutcome",
    "ReturnLineRequest",
    "ReturnRecord",
    "ReturnResult",
    "ReturnSummary",
]
