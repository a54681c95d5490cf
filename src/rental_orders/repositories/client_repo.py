"""Repository for client persistence."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from rental_orders.db.connection import unit_of_work
from rental_orders.domain.models import Client
from rental_orders.logging_config import get_logger
from rental_orders.repositories.mappers import client_from_row


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class ClientRepo:
    """Client store: lookups by id or phone, create and update."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def create(
        self,
        first_name: str,
        last_name: str,
        phone: str,
        rating: Optional[str] = None,
    ) -> Client:
        created_at = _now_iso()
        try:
            with unit_of_work(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO clients (
                        first_name,
                        last_name,
                        phone,
                        rating,
                        created_at,
                        updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (first_name, last_name, phone, rating, created_at, created_at),
                )
        except Exception:
            self._logger.exception("Failed to create client phone=%s", phone)
            raise

        return Client(
            id=cursor.lastrowid,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            rating=rating,
            created_at=created_at,
            updated_at=created_at,
        )

    def update(
        self,
        client_id: int,
        first_name: str,
        last_name: str,
    ) -> Optional[Client]:
        updated_at = _now_iso()
        try:
            with unit_of_work(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE clients
                    SET
                        first_name = ?,
                        last_name = ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (first_name, last_name, updated_at, client_id),
                )
        except Exception:
            self._logger.exception("Failed to update client id=%s", client_id)
            raise

        if cursor.rowcount == 0:
            return None
        return self.get_by_id(client_id)

    def set_rating(self, client_id: int, rating: Optional[str]) -> bool:
        try:
            with unit_of_work(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE clients
                    SET rating = ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (rating, _now_iso(), client_id),
                )
        except Exception:
            self._logger.exception("Failed to set rating for client id=%s", client_id)
            raise
        return cursor.rowcount > 0

    def list_all(self) -> List[Client]:
        try:
            rows = self._connection.execute(
                "SELECT * FROM clients ORDER BY last_name, first_name"
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list clients")
            raise
        return [client_from_row(row) for row in rows]

    def get_by_id(self, client_id: int) -> Optional[Client]:
        try:
            row = self._connection.execute(
                "SELECT * FROM clients WHERE id = ?",
                (client_id,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to get client id=%s", client_id)
            raise
        return client_from_row(row) if row else None

    def find_by_phone(self, phone: str) -> Optional[Client]:
        try:
            row = self._connection.execute(
                "SELECT * FROM clients WHERE phone = ?",
                (phone,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to find client by phone=%s", phone)
            raise
        return client_from_row(row) if row else None
