"""Module entry point for python -m rental_orders."""

from __future__ import annotations

from rental_orders.app import main


if __name__ == "__main__":
    raise SystemExit(main())
