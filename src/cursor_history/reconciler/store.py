"""Read-only async access to Cursor's ``state.vscdb`` key/value tables."""

from pathlib import Path
from typing import Self

import aiosqlite

# Workspace databases keep UI state in ItemTable
WORKSPACE_TABLE = "ItemTable"
# The global database keeps composer bodies and bubbles in cursorDiskKV
GLOBAL_TABLE = "cursorDiskKV"


def _as_text(value: str | bytes | None) -> str | None:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


class KeyValueStore:
    """A read-only view over one key/value table of a SQLite database.

    Use as an async context manager; the connection is closed on exit,
    including when the body raises.
    """

    def __init__(self, db_path: Path, table: str) -> None:
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file
            table: Name of the key/value table (``key``/``value`` columns)
        """
        self._db_path = db_path
        self._table = table
        self._conn: aiosqlite.Connection | None = None

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def open(self) -> None:
        """Open the database read-only; a missing file raises."""
        uri = f"{self._db_path.resolve().as_uri()}?mode=ro"
        self._conn = await aiosqlite.connect(uri, uri=True)

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.close()

    def _require(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError(f"Store is not open: {self._db_path}")
        return self._conn

    async def get(self, key: str) -> str | None:
        """Fetch the value stored under a key.

        Args:
            key: Exact key

        Returns:
            The value as text, or None if the key is absent
        """
        conn = self._require()
        async with conn.execute(
            f"SELECT value FROM {self._table} WHERE [key] = ?",
            (key,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return _as_text(row[0])

    async def get_many(self, keys: list[str]) -> list[str]:
        """Fetch the values of several keys in one query.

        Args:
            keys: Exact keys; absent keys are simply missing from the result

        Returns:
            Values as text, in table order
        """
        if not keys:
            return []
        conn = self._require()
        placeholders = ",".join("?" for _ in keys)
        async with conn.execute(
            f"SELECT value FROM {self._table} WHERE [key] IN ({placeholders})",
            keys,
        ) as cursor:
            rows = await cursor.fetchall()
        return [text for text in (_as_text(row[0]) for row in rows) if text is not None]

    async def scan_prefix(self, prefix: str) -> list[tuple[str, str | bytes]]:
        """Fetch every row whose key starts with a prefix.

        Values are returned as stored, text or raw bytes, and are not
        decoded here.

        Args:
            prefix: Key prefix, e.g. ``bubbleId:``

        Returns:
            List of (key, value) pairs
        """
        conn = self._require()
        async with conn.execute(
            f"SELECT [key], value FROM {self._table} WHERE [key] LIKE ?",
            (f"{prefix}%",),
        ) as cursor:
            rows = await cursor.fetchall()
        return [(row[0], row[1]) for row in rows if row[1] is not None]
