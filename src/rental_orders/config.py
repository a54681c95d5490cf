"""Application configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any

from rental_orders.utils.config_store import load_config_data, update_config_section
from rental_orders.version import __app_name__

APP_NAME = __app_name__
APP_DATA_DIRNAME = "RentalOrders"
DB_FILENAME = "rental_orders.db"
DB_BUSY_TIMEOUT_SECONDS = 10.0
LOGS_DIRNAME = "logs"
LOG_FILENAME = "app.log"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3
CONFIG_FILENAME = "config.json"
BILLING_SECTION = "billing"

DEFAULT_TAX_PERCENT = Decimal("0")
DEFAULT_MONEY_QUANTUM = Decimal("1")
DEFAULT_FLAGGED_RATINGS = frozenset({"bad"})


class MultiplierPolicy(str, Enum):
    """How elapsed rental time is turned into a billing multiplier."""

    LINEAR = "linear"
    PRORATED = "prorated"


@dataclass(frozen=True)
class BillingPolicy:
    """Tunable billing rules shared by the lifecycle services."""

    tax_percent: Decimal = DEFAULT_TAX_PERCENT
    multiplier_policy: MultiplierPolicy = MultiplierPolicy.LINEAR
    money_quantum: Decimal = DEFAULT_MONEY_QUANTUM
    flagged_ratings: frozenset[str] = field(default=DEFAULT_FLAGGED_RATINGS)

    def is_flagged(self, rating: str | None) -> bool:
        if not rating:
            return False
        return rating.strip().lower() in self.flagged_ratings

    def to_dict(self) -> dict[str, Any]:
        return {
            "tax_percent": str(self.tax_percent),
            "multiplier_policy": self.multiplier_policy.value,
            "money_quantum": str(self.money_quantum),
            "flagged_ratings": sorted(self.flagged_ratings),
        }


@dataclass(frozen=True)
class AppConfig:
    """Static configuration values for RentalOrders."""

    app_name: str = APP_NAME
    db_busy_timeout: float = DB_BUSY_TIMEOUT_SECONDS


def _decimal_or(value: Any, default: Decimal, *, positive: bool = False) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    if not result.is_finite() or result < 0 or (positive and result == 0):
        return default
    return result


def _policy_from_data(data: dict[str, Any]) -> BillingPolicy:
    defaults = BillingPolicy()
    try:
        multiplier_policy = MultiplierPolicy(
            data.get("multiplier_policy", defaults.multiplier_policy.value)
        )
    except ValueError:
        multiplier_policy = defaults.multiplier_policy
    tax_percent = _decimal_or(data.get("tax_percent"), defaults.tax_percent)
    if tax_percent > 100:
        tax_percent = defaults.tax_percent
    raw_ratings = data.get("flagged_ratings")
    if isinstance(raw_ratings, list):
        flagged = frozenset(
            str(rating).strip().lower() for rating in raw_ratings if str(rating).strip()
        )
    else:
        flagged = defaults.flagged_ratings
    return BillingPolicy(
        tax_percent=tax_percent,
        multiplier_policy=multiplier_policy,
        money_quantum=_decimal_or(
            data.get("money_quantum"), defaults.money_quantum, positive=True
        ),
        flagged_ratings=flagged,
    )


def load_billing_policy(config_path: Path) -> BillingPolicy:
    """Load billing settings from the config file, falling back to defaults."""
    data = load_config_data(config_path).get(BILLING_SECTION)
    if not isinstance(data, dict):
        return BillingPolicy()
    return _policy_from_data(data)


def save_billing_policy(config_path: Path, policy: BillingPolicy) -> None:
    """Persist billing settings into the config file."""
    update_config_section(config_path, BILLING_SECTION, policy.to_dict())
