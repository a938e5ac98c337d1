"""
Key-value persistence for bounded price histories.
"""

import json
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from fuel_price_monitor.data.models import PricePoint
from fuel_price_monitor.utils.errors import HistoryStoreError


class HistoryStore(ABC):
    """Price history lists keyed by a composite ``"<fuel>-<region>"`` string."""

    @abstractmethod
    def get(self, key: str) -> List[PricePoint]:
        """Return the stored history, oldest first, or an empty list."""

    @abstractmethod
    def put(self, key: str, history: List[PricePoint]) -> None:
        """Replace the stored history for ``key``."""


class InMemoryHistoryStore(HistoryStore):
    """History store backed by a dict of JSON payloads."""

    def __init__(self, initial: Optional[Dict[str, List[PricePoint]]] = None):
        self._data: Dict[str, str] = {}
        for key, history in (initial or {}).items():
            self.put(key, history)

    def get(self, key: str) -> List[PricePoint]:
        payload = self._data.get(key)
        if payload is None:
            return []
        return _decode(key, payload)

    def put(self, key: str, history: List[PricePoint]) -> None:
        self._data[key] = _encode(history)

    def keys(self) -> List[str]:
        return sorted(self._data)


class SQLiteHistoryStore(HistoryStore):
    """History store keeping one JSON row per key in a SQLite database."""

    def __init__(self, database_path: str = "data/fuel_price_history.db"):
        """
        Initialize the SQLite history store.

        Args:
            database_path: Path to SQLite database file
        """
        self.database_path = Path(database_path)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

    def initialize(self) -> None:
        """Create the history table if it doesn't exist."""
        create_history_table = """
        CREATE TABLE IF NOT EXISTS price_history (
            key TEXT PRIMARY KEY,
            payload TEXT NOT NULL,
            updated_at TIMESTAMP NOT NULL
        );
        """
        with self.get_cursor() as cursor:
            cursor.execute(create_history_table)

    @contextmanager
    def get_connection(self):
        """
        Get a database connection.

        Yields:
            SQLite database connection
        """
        conn = None
        try:
            conn = sqlite3.connect(str(self.database_path), timeout=30.0)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            raise HistoryStoreError(
                "SQLite history operation failed",
                {"error": str(e), "database_path": str(self.database_path)}
            )
        finally:
            if conn:
                conn.close()

    @contextmanager
    def get_cursor(self):
        """
        Get a cursor; the transaction commits when the block exits cleanly.

        Yields:
            SQLite database cursor
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                yield cursor
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                cursor.close()

    def get(self, key: str) -> List[PricePoint]:
        with self.get_cursor() as cursor:
            cursor.execute("SELECT payload FROM price_history WHERE key = ?", (key,))
            row = cursor.fetchone()

        if row is None:
            return []
        return _decode(key, row["payload"])

    def put(self, key: str, history: List[PricePoint]) -> None:
        payload = _encode(history)
        with self.get_cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO price_history (key, payload, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (key, payload, datetime.now().isoformat())
            )

    def keys(self) -> List[str]:
        with self.get_cursor() as cursor:
            cursor.execute("SELECT key FROM price_history ORDER BY key")
            return [row["key"] for row in cursor.fetchall()]


def _encode(history: List[PricePoint]) -> str:
    return json.dumps([point.to_dict() for point in history])


def _decode(key: str, payload: str) -> List[PricePoint]:
    try:
        return [PricePoint.from_dict(item) for item in json.loads(payload)]
    except (ValueError, TypeError, KeyError) as e:
        raise HistoryStoreError(
            f"Stored history for {key} is unreadable",
            {"key": key, "error": str(e)}
        )
