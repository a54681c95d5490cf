from datetime import timedelta
from decimal import Decimal

import pytest

from rental_orders.config import MultiplierPolicy
from rental_orders.domain.models import OrderLineRequest
from rental_orders.services.billing import (
    apply_advance,
    compute_elapsed_multiplier,
    compute_initial_charge,
    compute_return_amount,
    elapsed_from_duration,
    multiplier_for_hours,
    round_money,
)

from conftest import START

ONE_24TH = Decimal(1) / Decimal(24)


def test_initial_charge_single_unit_with_tax():
    charge = compute_initial_charge(
        [OrderLineRequest(product_id=1, quantity=1)],
        {1: Decimal("10000")},
        Decimal("10"),
    )
    assert charge.subtotal == Decimal("10000")
    assert charge.tax == Decimal("1000")
    assert charge.total == Decimal("11000")


def test_initial_charge_sums_lines_and_rounds_tax_half_up():
    charge = compute_initial_charge(
        [
            OrderLineRequest(product_id=1, quantity=3),
            OrderLineRequest(product_id=2, quantity=1),
        ],
        {1: Decimal("4"), 2: Decimal("3")},
        Decimal("10"),
    )
    assert charge.subtotal == Decimal("15")
    assert charge.tax == Decimal("2")
    assert charge.total == Decimal("17")


def test_round_money_uses_quantum():
    assert round_money(Decimal("2.345"), Decimal("0.01")) == Decimal("2.35")
    assert round_money(Decimal("2.5")) == Decimal("3")
    assert round_money(Decimal("2.4")) == Decimal("2")


@pytest.mark.parametrize(
    "elapsed, expected",
    [
        (timedelta(0), (0, 0, Decimal(1))),
        (timedelta(minutes=30), (0, 1, Decimal(1))),
        (timedelta(hours=24), (1, 0, Decimal(1))),
        (timedelta(hours=24, seconds=1), (1, 1, 1 + ONE_24TH)),
        (timedelta(hours=48), (2, 0, Decimal(2))),
    ],
)
def test_linear_multiplier(elapsed, expected):
    result = compute_elapsed_multiplier(START, START + elapsed)
    assert (result.days, result.hours, result.multiplier) == expected


def test_future_start_counts_as_no_elapsed_time():
    result = compute_elapsed_multiplier(START + timedelta(hours=5), START)
    assert result.total_hours == 0
    assert result.multiplier == Decimal(1)


def test_prorated_multiplier_bills_fraction_of_first_day():
    assert multiplier_for_hours(0, MultiplierPolicy.PRORATED) == ONE_24TH
    assert multiplier_for_hours(12, MultiplierPolicy.PRORATED) == Decimal("0.5")
    assert multiplier_for_hours(36, MultiplierPolicy.PRORATED) == Decimal("1.5")


def test_policies_agree_beyond_first_day():
    for hours in (25, 30, 49, 100):
        linear = multiplier_for_hours(hours, MultiplierPolicy.LINEAR)
        prorated = multiplier_for_hours(hours, MultiplierPolicy.PRORATED)
        assert linear.quantize(Decimal("1e-20")) == prorated.quantize(Decimal("1e-20"))


def test_negative_hours_rejected():
    with pytest.raises(ValueError):
        multiplier_for_hours(-1)


def test_elapsed_from_duration_normalizes_hours():
    result = elapsed_from_duration(1, 23)
    assert (result.days, result.hours) == (1, 23)
    assert result.total_hours == 47
    assert result.multiplier == 1 + Decimal(23) / Decimal(24)


def test_return_amount_rounds_half_up():
    amount = compute_return_amount(Decimal("10000"), 1, 1 + ONE_24TH)
    assert amount == Decimal("10417")


def test_return_amount_with_flat_multiplier():
    assert compute_return_amount(Decimal("2500"), 4, Decimal(1)) == Decimal("10000")


@pytest.mark.parametrize(
    "advance, used, due, expected",
    [
        ("3000", "0", "20000", "3000"),
        ("15000", "10000", "10000", "5000"),
        ("5000", "0", "2000", "2000"),
        ("5000", "5000", "2000", "0"),
        ("0", "0", "2000", "0"),
        ("5000", "0", "0", "0"),
    ],
)
def test_apply_advance(advance, used, due, expected):
    assert apply_advance(Decimal(advance), Decimal(used), Decimal(due)) == Decimal(expected)
