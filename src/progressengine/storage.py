"""SQLite key-value storage for serialized progress blobs."""

from __future__ import annotations

import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path

SCHEMA_VERSION = 1


class BlobStore:
    """Durable string blobs keyed by name.

    The connection is shared between the event thread (reads at load time)
    and the background save thread, so every statement runs under one lock.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Open the database and bring its schema up to date."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        self._conn = sqlite3.connect(target, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._closed = False
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )

    def _migrate_to_v1(self) -> None:
        """Create the blob table."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS state_blobs (
                    key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)

    def read(self, key: str) -> str | None:
        """Return the blob stored under `key`, if any."""
        with self._lock:
            row = self._conn.execute("SELECT payload FROM state_blobs WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return str(row["payload"])

    def write(self, key: str, payload: str) -> None:
        """Insert or replace the blob stored under `key`."""
        now = datetime.now(UTC).isoformat()
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO state_blobs (key, payload, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (key, payload, now),
            )

    def delete(self, key: str) -> bool:
        """Remove one blob; return whether it existed."""
        with self._lock, self._conn:
            cursor = self._conn.execute("DELETE FROM state_blobs WHERE key = ?", (key,))
        return cursor.rowcount > 0

    def updated_at(self, key: str) -> str | None:
        """Return the ISO timestamp of the last write to `key`."""
        with self._lock:
            row = self._conn.execute("SELECT updated_at FROM state_blobs WHERE key = ?", (key,)).fetchone()
        return None if row is None else str(row["updated_at"])

    def close(self) -> None:
        """Close db connection."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._conn.close()
