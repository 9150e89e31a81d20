"""
Database module for ytapp.

Handles SQLite database initialization, schema creation, and connection management.
Also provides the repositories the stores persist through: a plain key-value
table for serialized store state and the configuration table.
"""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .models import ConfigEntry


class Database:
    """Manages SQLite database connection and schema."""

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses ~/.ytapp/ytapp.db
        """
        self.logger = logging.getLogger(__name__)

        if db_path is None:
            # Default to ~/.ytapp/ytapp.db
            home = Path.home()
            ytapp_dir = home / ".ytapp"
            ytapp_dir.mkdir(exist_ok=True)
            db_path = str(ytapp_dir / "ytapp.db")

        self.db_path = db_path
        self._ensure_schema()
        self.logger.info("Database initialized at %s", self.db_path)

    def _ensure_schema(self):
        """Ensure database schema exists (thread-safe)."""
        # Create a temporary connection just to create schema
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()

        # Serialized store state, one row per store key
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Configuration table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS config (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.commit()

        conn.close()
        self.logger.debug("Database schema created/verified")

    def get_connection(self):
        """
        Get a new database connection (thread-safe).

        Each thread should get its own connection. Caller is responsible
        for closing the connection when done.
        """
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def close(self):
        """Close database connection (no-op since we use per-thread connections)."""
        pass

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


class KeyValueRepository:
    """
    Opaque get/set store for serialized state.

    Each store writes its whole state as one blob under a fixed key.
    """

    def __init__(self, database: Database):
        self.database = database
        self.logger = logging.getLogger(__name__)

    def save(self, key: str, blob: str) -> None:
        """Write a blob under key, replacing any previous value."""
        conn = self.database.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, blob),
            )
            conn.commit()
        finally:
            conn.close()

    def load(self, key: str) -> Optional[str]:
        """Return the blob stored under key, or None if absent."""
        conn = self.database.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row["value"] if row else None
        finally:
            conn.close()

    def delete(self, key: str) -> bool:
        """Delete the blob stored under key. Returns True if a row was removed."""
        conn = self.database.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()


class ConfigRepository:
    """Data access for the config table."""

    def __init__(self, database: Database):
        self.database = database
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _row_to_entry(row) -> ConfigEntry:
        updated_at = row["updated_at"]
        if isinstance(updated_at, str):
            try:
                updated_at = datetime.fromisoformat(updated_at)
            except ValueError:
                updated_at = None
        return ConfigEntry(key=row["key"], value=row["value"], updated_at=updated_at)

    def initialize_defaults(self, defaults: dict) -> None:
        """Insert default values for keys that are not set yet."""
        conn = self.database.get_connection()
        try:
            cursor = conn.cursor()
            for key, value in defaults.items():
                if value is None:
                    continue
                cursor.execute(
                    "INSERT OR IGNORE INTO config (key, value) VALUES (?, ?)",
                    (key, str(value)),
                )
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str) -> Optional[ConfigEntry]:
        conn = self.database.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT key, value, updated_at FROM config WHERE key = ?", (key,))
            row = cursor.fetchone()
            return self._row_to_entry(row) if row else None
        finally:
            conn.close()

    def set(self, key: str, value: str) -> bool:
        conn = self.database.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO config (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value),
            )
            conn.commit()
            return True
        except sqlite3.Error as e:
            self.logger.error("Failed to set config %s: %s", key, e)
            return False
        finally:
            conn.close()

    def get_all(self) -> List[ConfigEntry]:
        conn = self.database.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT key, value, updated_at FROM config ORDER BY key")
            return [self._row_to_entry(row) for row in cursor.fetchall()]
        finally:
            conn.close()
