"""Billing calculations for rental orders.

Everything here is a pure function over ``Decimal`` values: no I/O, no
clock, no database. Amounts are rounded half-up at the money quantum (the
smallest currency unit in use). Elapsed time is billed in whole hours,
rounding any started hour up.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping

from rental_orders.config import DEFAULT_MONEY_QUANTUM, MultiplierPolicy
from rental_orders.domain.models import OrderLineRequest

HOUR = timedelta(hours=1)
HOURS_PER_DAY = 24
_ZERO = Decimal("0")
_ONE = Decimal("1")


@dataclass(frozen=True)
class InitialCharge:
    subtotal: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True)
class ElapsedTime:
    days: int
    hours: int
    multiplier: Decimal

    @property
    def total_hours(self) -> int:
        return self.days * HOURS_PER_DAY + self.hours


def round_money(value: Decimal, quantum: Decimal = DEFAULT_MONEY_QUANTUM) -> Decimal:
    return Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)


def compute_initial_charge(
    items: Iterable[OrderLineRequest],
    product_prices: Mapping[int, Decimal],
    tax_percent: Decimal,
    *,
    quantum: Decimal = DEFAULT_MONEY_QUANTUM,
) -> InitialCharge:
    """Estimate the charge of a new order from list prices.

    ``product_prices`` must hold a price for every product referenced by
    ``items``.
    """
    subtotal = _ZERO
    for item in items:
        subtotal += Decimal(item.quantity) * Decimal(product_prices[item.product_id])
    tax = round_money(subtotal * Decimal(tax_percent) / Decimal(100), quantum)
    return InitialCharge(subtotal=subtotal, tax=tax, total=subtotal + tax)


def multiplier_for_hours(
    total_hours: int, policy: MultiplierPolicy = MultiplierPolicy.LINEAR
) -> Decimal:
    """Turn billed hours into a price multiplier.

    ``LINEAR``: the first 24 hours are included in the base price, then each
    further hour adds 1/24. ``PRORATED``: days plus the fraction of the
    current day, with at least one hour billed.
    """
    if total_hours < 0:
        raise ValueError("total_hours must not be negative")
    if policy == MultiplierPolicy.PRORATED:
        return Decimal(max(total_hours, 1)) / Decimal(HOURS_PER_DAY)
    if total_hours <= HOURS_PER_DAY:
        return _ONE
    return _ONE + Decimal(total_hours - HOURS_PER_DAY) / Decimal(HOURS_PER_DAY)


def elapsed_from_duration(
    days: int,
    hours: int,
    policy: MultiplierPolicy = MultiplierPolicy.LINEAR,
) -> ElapsedTime:
    total_hours = days * HOURS_PER_DAY + hours
    return ElapsedTime(
        days=total_hours // HOURS_PER_DAY,
        hours=total_hours % HOURS_PER_DAY,
        multiplier=multiplier_for_hours(total_hours, policy),
    )


def compute_elapsed_multiplier(
    start_time: datetime,
    now: datetime,
    policy: MultiplierPolicy = MultiplierPolicy.LINEAR,
) -> ElapsedTime:
    """Bill the time between ``start_time`` and ``now``.

    A start time in the future counts as zero elapsed hours.
    """
    elapsed = now - start_time
    total_hours = 0 if elapsed <= timedelta(0) else -(-elapsed // HOUR)
    return elapsed_from_duration(0, total_hours, policy)


def compute_return_amount(
    unit_price: Decimal,
    return_qty: int,
    multiplier: Decimal,
    *,
    quantum: Decimal = DEFAULT_MONEY_QUANTUM,
) -> Decimal:
    return round_money(
        Decimal(unit_price) * Decimal(return_qty) * Decimal(multiplier), quantum
    )


def apply_advance(
    advance_payment: Decimal,
    advance_used: Decimal,
    amount_due: Decimal,
) -> Decimal:
    """Return how much of the remaining advance covers ``amount_due``."""
    remaining = Decimal(advance_payment) - Decimal(advance_used)
    if remaining <= _ZERO or amount_due <= _ZERO:
        return _ZERO
    return min(remaining, Decimal(amount_due))
