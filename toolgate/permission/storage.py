"""
Permission state slots - where the serialized PermissionsState is kept
between process runs.

A slot is an opaque key/value store of text blobs. The broker reads it once
at startup and writes it before a suspend/reload boundary.
"""

import asyncio
import os
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson
from pymongo.errors import AutoReconnect

from toolgate.utils.logging import get_logger
from toolgate.utils.retry import retry_async

if TYPE_CHECKING:
    import aiosqlite
    from motor.motor_asyncio import AsyncIOMotorClient

logger = get_logger(__name__)


class StateSlot(ABC):
    """Abstract key/value slot for persisted permission state."""

    @abstractmethod
    async def read(self, key: str) -> str | None:
        """Return the stored blob, or None when nothing was saved."""
        ...

    @abstractmethod
    async def write(self, key: str, blob: str) -> None:
        """Store `blob` under `key`, replacing any previous value."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    async def close(self) -> None:
        """Close storage and release resources."""
        pass


# ═══════════════════════════════════════════════════════════════════════════
# In-Memory Implementation (for testing)
# ═══════════════════════════════════════════════════════════════════════════


class InMemoryStateSlot(StateSlot):
    """In-memory slot. Survives broker re-creation within one process only."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    async def read(self, key: str) -> str | None:
        return self._values.get(key)

    async def write(self, key: str, blob: str) -> None:
        self._values[key] = blob

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)


# ═══════════════════════════════════════════════════════════════════════════
# File Implementation
# ═══════════════════════════════════════════════════════════════════════════


class FileStateSlot(StateSlot):
    """
    JSON file holding {key: blob}. Writes go to a temporary file that
    replaces the original, so a crash never leaves a half-written file.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        raw = self.path.read_bytes()
        if not raw.strip():
            return {}
        data = orjson.loads(raw)
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2))
        os.replace(tmp_path, self.path)

    @retry_async()
    async def read(self, key: str) -> str | None:
        async with self._lock:
            try:
                data = await asyncio.to_thread(self._load)
            except orjson.JSONDecodeError:
                logger.warning("state_file_unreadable", path=str(self.path))
                return None
            return data.get(key)

    @retry_async()
    async def write(self, key: str, blob: str) -> None:
        async with self._lock:
            try:
                data = await asyncio.to_thread(self._load)
            except orjson.JSONDecodeError:
                data = {}
            data[key] = blob
            await asyncio.to_thread(self._dump, data)

    @retry_async()
    async def delete(self, key: str) -> None:
        async with self._lock:
            try:
                data = await asyncio.to_thread(self._load)
            except orjson.JSONDecodeError:
                return
            if data.pop(key, None) is not None:
                await asyncio.to_thread(self._dump, data)


# ═══════════════════════════════════════════════════════════════════════════
# SQLite Implementation
# ═══════════════════════════════════════════════════════════════════════════


class SQLiteStateSlot(StateSlot):
    """SQLite key/value table, connected lazily on first use."""

    def __init__(self, db_path: str = "toolgate.db") -> None:
        self._db_path = os.path.expanduser(db_path)
        self._conn: "aiosqlite.Connection | None" = None
        self._init_lock = asyncio.Lock()

    async def _get_conn(self) -> "aiosqlite.Connection":
        async with self._init_lock:
            if self._conn is None:
                import aiosqlite

                if os.path.dirname(self._db_path):
                    os.makedirs(os.path.dirname(self._db_path), exist_ok=True)
                self._conn = await aiosqlite.connect(self._db_path)
                await self._conn.execute("PRAGMA journal_mode=WAL")
                await self._conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS permission_state (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                await self._conn.commit()
                logger.info("sqlite_state_slot_initialized", db_path=self._db_path)
        return self._conn

    @retry_async(exceptions=(sqlite3.OperationalError,))
    async def read(self, key: str) -> str | None:
        conn = await self._get_conn()
        async with conn.execute(
            "SELECT value FROM permission_state WHERE key = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    @retry_async(exceptions=(sqlite3.OperationalError,))
    async def write(self, key: str, blob: str) -> None:
        conn = await self._get_conn()
        await conn.execute(
            """
            INSERT INTO permission_state (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                           updated_at = excluded.updated_at
            """,
            (key, blob, datetime.now(timezone.utc).isoformat()),
        )
        await conn.commit()

    @retry_async(exceptions=(sqlite3.OperationalError,))
    async def delete(self, key: str) -> None:
        conn = await self._get_conn()
        await conn.execute("DELETE FROM permission_state WHERE key = ?", (key,))
        await conn.commit()

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None


# ═══════════════════════════════════════════════════════════════════════════
# MongoDB Implementation
# ═══════════════════════════════════════════════════════════════════════════


class MongoStateSlot(StateSlot):
    """MongoDB collection with one document per key."""

    def __init__(
        self,
        uri: str = "mongodb://localhost:27017",
        db_name: str = "toolgate",
        collection_name: str = "permission_state",
        client: "AsyncIOMotorClient | None" = None,
    ) -> None:
        self.uri = uri
        self.db_name = db_name
        self.collection_name = collection_name
        self.client = client
        self._owns_client = client is None
        self.collection = None

    async def _ensure_connection(self):
        if self.collection is None:
            if self.client is None:
                from motor.motor_asyncio import AsyncIOMotorClient

                self.client = AsyncIOMotorClient(self.uri)
            self.collection = self.client[self.db_name][self.collection_name]
            await self.collection.create_index("key", unique=True)
            logger.info(
                "mongodb_state_slot_connected",
                db_name=self.db_name,
                collection=self.collection_name,
            )
        return self.collection

    @retry_async(exceptions=(AutoReconnect,))
    async def read(self, key: str) -> str | None:
        collection = await self._ensure_connection()
        doc = await collection.find_one({"key": key})
        return doc["value"] if doc else None

    @retry_async(exceptions=(AutoReconnect,))
    async def write(self, key: str, blob: str) -> None:
        collection = await self._ensure_connection()
        await collection.update_one(
            {"key": key},
            {"$set": {"value": blob, "updated_at": datetime.now(timezone.utc)}},
            upsert=True,
        )

    @retry_async(exceptions=(AutoReconnect,))
    async def delete(self, key: str) -> None:
        collection = await self._ensure_connection()
        await collection.delete_one({"key": key})

    async def close(self) -> None:
        if self.client is not None and self._owns_client:
            self.client.close()
        self.client = None
        self.collection = None


# ═══════════════════════════════════════════════════════════════════════════
# Factory
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class StateSlotConfig:
    """Configuration for a StateSlot.

    storage_type: "memory" | "file" | "sqlite" | "mongodb"
    config: storage-specific configuration
        - file: {"path": str}
        - sqlite: {"db_path": str}
        - mongodb: {"uri": str, "db_name": str, "collection_name": str}
    """

    storage_type: str = "memory"
    config: dict[str, Any] = field(default_factory=dict)


class StateSlotFactory:
    """Creates slots from configuration. Created slots connect lazily."""

    @staticmethod
    def create(config: StateSlotConfig) -> StateSlot:
        storage_type = config.storage_type
        cfg = config.config

        if storage_type == "memory":
            return InMemoryStateSlot()
        elif storage_type == "file":
            return FileStateSlot(cfg.get("path", "~/.toolgate/permissions.json"))
        elif storage_type == "sqlite":
            return SQLiteStateSlot(db_path=cfg.get("db_path", "toolgate.db"))
        elif storage_type == "mongodb":
            return MongoStateSlot(
                uri=cfg.get("uri") or "mongodb://localhost:27017",
                db_name=cfg.get("db_name", "toolgate"),
                collection_name=cfg.get("collection_name", "permission_state"),
            )
        else:
            raise ValueError(f"Unknown state_storage_type: {storage_type}")


__all__ = [
    "StateSlot",
    "InMemoryStateSlot",
    "FileStateSlot",
    "SQLiteStateSlot",
    "MongoStateSlot",
    "StateSlotConfig",
    "StateSlotFactory",
]
