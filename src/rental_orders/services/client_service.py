"""Client resolution and standing checks."""

from __future__ import annotations

import sqlite3
from typing import Optional

from rental_orders.config import BillingPolicy
from rental_orders.db.connection import unit_of_work
from rental_orders.domain.models import (
    Client,
    ClientRef,
    ClientResolution,
    ClientStanding,
    ResolutionOutcome,
)
from rental_orders.logging_config import get_logger
from rental_orders.repositories.client_repo import ClientRepo
from rental_orders.services.errors import NotFoundError, ValidationError


def normalize_phone(phone: Optional[str]) -> str:
    value = (phone or "").strip()
    if not value:
        raise ValidationError("Phone is required.")
    return value


def _require_name(value: Optional[str], field_name: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field_name} is required.")
    return text


class ClientService:
    """Service for client lookups used by the order lifecycle."""

    def __init__(
        self,
        connection: sqlite3.Connection,
        policy: Optional[BillingPolicy] = None,
    ) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._repo = ClientRepo(connection)
        self._policy = policy or BillingPolicy()
        self._logger = get_logger(self.__class__.__name__)

    def get_client(self, client_id: int) -> Client:
        client = self._repo.get_by_id(client_id)
        if not client:
            raise NotFoundError(f"Client with ID {client_id} not found.")
        return client

    def resolve_or_create_client(self, ref: ClientRef) -> ClientResolution:
        """Match a client by phone, creating or renaming it as needed.

        When the phone is known the name fields are overwritten with the
        supplied values.
        """
        phone = normalize_phone(ref.phone)
        first_name = _require_name(ref.first_name, "First name")
        last_name = _require_name(ref.last_name, "Last name")
        with unit_of_work(self._connection):
            existing = self._repo.find_by_phone(phone)
            if existing is None:
                client = self._repo.create(first_name, last_name, phone)
                self._logger.info("Created client id=%s phone=%s", client.id, phone)
                return ClientResolution(client=client, outcome=ResolutionOutcome.CREATED)
            if (existing.first_name, existing.last_name) != (first_name, last_name):
                existing = self._repo.update(existing.id or 0, first_name, last_name)
                if existing is None:
                    raise NotFoundError(f"Client with phone {phone} not found.")
            return ClientResolution(client=existing, outcome=ResolutionOutcome.EXISTING)

    def check_client_standing(self, phone: str) -> ClientStanding:
        phone = normalize_phone(phone)
        client = self._repo.find_by_phone(phone)
        if client is None:
            return ClientStanding(phone=phone, exists=False)
        return ClientStanding(
            phone=phone,
            exists=True,
            client=client,
            rating=client.rating,
            flagged=self._policy.is_flagged(client.rating),
        )
