"""
Storage media for the session snapshot.

A backend is a plain key/value store of strings. SqliteStorageBackend keeps
values in a single table of an SQLite file (aiosqlite); InMemoryStorageBackend
keeps them in a dict and is used for tests and as the degraded fallback.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import aiosqlite
import structlog

log = structlog.get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
)
"""

# Errors that mean "the medium is unavailable"
STORAGE_ERRORS = (aiosqlite.Error, OSError)


class StorageBackend(ABC):
    """Abstract key/value medium."""

    name = "abstract"

    @abstractmethod
    async def read(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        pass

    @abstractmethod
    async def write(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key; absent keys are ignored."""
        pass

    async def health(self) -> Dict[str, Any]:
        return {"status": "healthy", "backend": self.name}


class InMemoryStorageBackend(StorageBackend):
    """Dict-backed medium. Nothing survives the process."""

    name = "memory"

    def __init__(self):
        self._values: Dict[str, str] = {}

    async def read(self, key: str) -> Optional[str]:
        return self._values.get(key)

    async def write(self, key: str, value: str) -> None:
        self._values[key] = value

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)


class SqliteStorageBackend(StorageBackend):
    """SQLite file medium using aiosqlite.

    The table is created lazily on first use. Each write is a single upsert
    committed in its own transaction, so a snapshot is replaced atomically.
    """

    name = "sqlite"

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._initialized = False

    async def initialize(self) -> None:
        """Create the database file and table if needed (idempotent)."""
        if self._initialized:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("PRAGMA journal_mode = WAL")
            await db.execute(SCHEMA_SQL)
            await db.commit()

        self._initialized = True
        log.info("storage_initialized", path=str(self.db_path))

    async def read(self, key: str) -> Optional[str]:
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = await cursor.fetchone()
            return row[0] if row else None

    async def write(self, key: str, value: str) -> None:
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT INTO kv_store (key, value, updated_at) "
                "VALUES (?, ?, datetime('now')) "
                "ON CONFLICT(key) DO UPDATE SET "
                "value = excluded.value, updated_at = excluded.updated_at",
                (key, value),
            )
            await db.commit()

    async def delete(self, key: str) -> None:
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            await db.commit()

    async def health(self) -> Dict[str, Any]:
        """Check that the file can be queried and passes an integrity check."""
        try:
            await self.initialize()
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute("SELECT COUNT(*) FROM kv_store")
                row = await cursor.fetchone()
                cursor = await db.execute("PRAGMA integrity_check")
                integrity = await cursor.fetchone()

            return {
                "status": "healthy",
                "backend": self.name,
                "key_count": row[0] if row else 0,
                "integrity": integrity[0] if integrity else "unknown",
                "path": str(self.db_path),
            }
        except STORAGE_ERRORS as e:
            log.error("storage_health_check_failed", error=str(e))
            return {"status": "unhealthy", "backend": self.name, "error": str(e)}
