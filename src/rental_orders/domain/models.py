"""Domain dataclasses and enums."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PARTIALLY_RETURNED = "PARTIALLY_RETURNED"
    RETURNED = "RETURNED"


class ResolutionOutcome(str, Enum):
    EXISTING = "existing"
    CREATED = "created"


@dataclass(slots=True)
class Product:
    id: Optional[int]
    name: str
    size: Optional[str]
    price: Decimal
    weight: Optional[float]
    count: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(slots=True)
class Client:
    id: Optional[int]
    first_name: str
    last_name: str
    phone: str
    rating: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(slots=True)
class Order:
    id: Optional[int]
    client_id: int
    status: OrderStatus
    start_time: str
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    advance_payment: Decimal = Decimal("0")
    advance_used: Decimal = Decimal("0")
    rental_days: Optional[int] = None
    rental_hours: Optional[int] = None
    billing_multiplier: Optional[Decimal] = None
    returned_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(slots=True)
class OrderItem:
    id: Optional[int]
    order_id: int
    product_id: int
    quantity: int
    returned: int
    unit_price: Decimal
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def remaining(self) -> int:
        return self.quantity - self.returned


@dataclass(slots=True)
class ReturnRecord:
    id: Optional[int]
    order_id: int
    order_item_id: int
    product_id: int
    return_quantity: int
    rental_days: int
    rental_hours: int
    billing_multiplier: Decimal
    return_amount: Decimal
    returned_at: str


@dataclass(frozen=True)
class ClientRef:
    """Customer named inline on an order; matched by phone."""

    first_name: str
    last_name: str
    phone: str


@dataclass(frozen=True)
class OrderLineRequest:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class ReturnLineRequest:
    """One line of a return batch.

    ``rental_days``/``rental_hours`` and ``multiplier`` are optional manual
    corrections; an explicit multiplier always wins over the computed one.
    """

    order_item_id: int
    return_quantity: int
    rental_days: Optional[int] = None
    rental_hours: Optional[int] = None
    multiplier: Optional[Decimal] = None


@dataclass(frozen=True)
class ClientResolution:
    client: Client
    outcome: ResolutionOutcome

    @property
    def created(self) -> bool:
        return self.outcome == ResolutionOutcome.CREATED


@dataclass(frozen=True)
class ClientStanding:
    phone: str
    exists: bool
    client: Optional[Client] = None
    rating: Optional[str] = None
    flagged: bool = False


@dataclass(frozen=True)
class OrderLine:
    """Order item joined with the product it references."""

    item: OrderItem
    product: Product


@dataclass(frozen=True)
class OrderDetails:
    order: Order
    client: Client
    lines: list[OrderLine] = field(default_factory=list)

    @property
    def total_rented(self) -> int:
        return sum(line.item.quantity for line in self.lines)

    @property
    def total_returned(self) -> int:
        return sum(line.item.returned for line in self.lines)


@dataclass(frozen=True)
class OrderCreation:
    details: OrderDetails
    client_resolution: ClientResolution


@dataclass(frozen=True)
class ReturnResult:
    details: OrderDetails
    records: list[ReturnRecord]
    amount_due: Decimal
    advance_applied: Decimal


@dataclass(frozen=True)
class ReturnSummary:
    order_id: int
    total_returned: int
    total_amount: Decimal
    records: list[ReturnRecord] = field(default_factory=list)
