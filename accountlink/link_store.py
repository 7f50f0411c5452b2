"""
Link store.

Persists requester <-> game account links. Uniqueness of both sides is
enforced by the schema, so concurrent link attempts race safely: exactly one
insert commits and every other one observes LinkConflict.
"""

import logging
import sqlite3
from typing import Optional

from .errors import LinkConflict, StoreError
from .models import LinkRecord
from .sqlite_client import SQLiteClient

logger = logging.getLogger(__name__)

# Extended result codes reported for a violated UNIQUE / PRIMARY KEY constraint.
_UNIQUE_VIOLATIONS = frozenset({"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"})


class LinkStore:
    """Point reads and conflict-checked inserts on the linked_users table."""

    def __init__(self, db: Optional[SQLiteClient] = None):
        self.db = db or SQLiteClient()

    def create_link(self, requester_id: int, account_id: int) -> LinkRecord:
        """
        Insert a new link.

        Args:
            requester_id: Requesting account id
            account_id: Game account id returned by the lookup service

        Returns:
            The created LinkRecord

        Raises:
            LinkConflict: Either side is already linked (which side is not reported)
            StoreError: Any other database failure
        """
        record = LinkRecord(requester_id=requester_id, account_id=account_id)
        try:
            self.db.execute_insert(
                "INSERT INTO linked_users (id, gd_account_id) VALUES (%(requester_id)s, %(account_id)s)",
                record.model_dump()
            )
        except sqlite3.IntegrityError as e:
            if getattr(e, "sqlite_errorname", None) in _UNIQUE_VIOLATIONS:
                logger.debug(f"Link ({requester_id}, {account_id}) rejected: {e}")
                raise LinkConflict(requester_id, account_id) from e
            raise StoreError(f"database error: {e}", cause=e) from e
        except sqlite3.Error as e:
            raise StoreError(f"database error: {e}", cause=e) from e

        logger.info(f"Linked requester {requester_id} to account {account_id}")
        return record

    def find_owner(self, account_id: int) -> Optional[int]:
        """
        Get the requester currently linked to a game account.

        Raises:
            StoreError: If the read fails
        """
        row = self._read_single(
            "SELECT id FROM linked_users WHERE gd_account_id = %(account_id)s",
            {'account_id': account_id}
        )
        return row['id'] if row else None

    def find_account(self, requester_id: int) -> Optional[int]:
        """
        Get the game account a requester is linked to.

        Raises:
            StoreError: If the read fails
        """
        row = self._read_single(
            "SELECT gd_account_id FROM linked_users WHERE id = %(requester_id)s",
            {'requester_id': requester_id}
        )
        return row['gd_account_id'] if row else None

    def _read_single(self, query: str, params: dict) -> Optional[dict]:
        try:
            return self.db.execute_single(query, params)
        except sqlite3.Error as e:
            raise StoreError(f"database error: {e}", cause=e) from e
