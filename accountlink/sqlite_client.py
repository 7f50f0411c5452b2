"""
SQLite database client for account links.
"""

import logging
import os
import re
import sqlite3
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

Params = Optional[Dict[str, Any]]


class SQLiteClient:
    """SQLite database client for account links."""

    def __init__(self, db_path: str = None, busy_timeout: float = 5.0):
        """
        Initialize SQLite client.

        Args:
            db_path: Path to SQLite database file.
                     Defaults to ACCOUNTLINK_DB_PATH env var or 'accountlink.db'.
            busy_timeout: Seconds a connection waits on a locked database
        """
        self.db_path = db_path or os.getenv("ACCOUNTLINK_DB_PATH", "accountlink.db")
        self.busy_timeout = busy_timeout
        self._ensure_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a new database connection.

        Every call opens its own connection so callers running in worker
        threads never share one.
        """
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        """Create database schema if it doesn't exist."""
        schema_path = Path(__file__).parent / "schema.sql"
        if not schema_path.exists():
            logger.warning(f"Schema file missing at {schema_path}, skipping schema setup")
            return

        with open(schema_path, "r") as f:
            schema_sql = f.read()

        conn = self._get_connection()
        try:
            conn.executescript(schema_sql)
            conn.commit()
        finally:
            conn.close()

    def _convert_params(self, query: str, params: Params) -> Tuple[str, Tuple]:
        """
        Convert %(name)s style params to ? placeholders with a positional tuple.
        """
        if not params:
            return query, ()

        pattern = r"%\((\w+)\)s"
        names = re.findall(pattern, query)
        return re.sub(pattern, "?", query), tuple(params[name] for name in names)

    def execute_single(self, query: str, params: Params = None) -> Optional[Dict[str, Any]]:
        """
        Execute query and return single row as dict.

        Args:
            query: SQL query
            params: Named query parameters

        Returns:
            Dict of column->value or None if no results
        """
        converted_query, converted_params = self._convert_params(query, params)

        conn = self._get_connection()
        try:
            row = conn.execute(converted_query, converted_params).fetchone()
            return dict(row) if row else None
        finally:
            conn.close()

    def execute_insert(self, query: str, params: Params = None) -> None:
        """
        Execute insert statement in its own transaction.

        The statement either commits or leaves the database untouched;
        sqlite3 errors propagate unchanged.

        Args:
            query: SQL INSERT query
            params: Named query parameters
        """
        converted_query, converted_params = self._convert_params(query, params)

        conn = self._get_connection()
        try:
            with conn:
                conn.execute(converted_query, converted_params)
        finally:
            conn.close()
