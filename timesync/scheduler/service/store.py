"""SQLite persistence layer for scheduler preferences.

Holds the two values that must survive a restart: the device seed and the
power-connected flag. Every write is committed before returning.
"""
from pathlib import Path
from typing import Protocol

import aiosqlite
from loguru import logger

from ..types import StoreError

logger = logger.bind(module="scheduler.store")

SEED_KEY = "seed"
POWER_CONNECTED_KEY = "power_connected"


class PreferenceStore(Protocol):
    """Protocol for the persistent key-value store."""

    async def initialize(self) -> None: ...

    async def close(self) -> None: ...

    async def get_seed(self) -> int:
        """Persisted seed, or 0 if none was created yet."""
        ...

    async def set_seed(self, seed: int) -> None: ...

    async def is_power_connected(self) -> bool:
        """Persisted power flag, False by default."""
        ...

    async def set_power_connected(self, connected: bool) -> None: ...


class SqlitePreferenceStore:
    """SQLite-based preference persistence."""

    def __init__(self, db_path: str | Path):
        """Initialize preference store.

        Args:
            db_path: Path to SQLite database
        """
        self.db_path = Path(db_path).expanduser()
        self._connection: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the database and create the schema."""
        if self._connection:
            return
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = await aiosqlite.connect(self.db_path)
            await self._connection.execute("""
                CREATE TABLE IF NOT EXISTS preferences (
                    key TEXT PRIMARY KEY,
                    value INTEGER NOT NULL
                )
            """)
            await self._connection.commit()
        except (OSError, aiosqlite.Error) as e:
            raise StoreError(f"Failed to open preference store at {self.db_path}: {e}") from e
        logger.info(f"Preference store initialized at {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def _get(self, key: str, default: int) -> int:
        if not self._connection:
            raise StoreError("SqlitePreferenceStore not initialized")
        try:
            async with self._connection.execute(
                "SELECT value FROM preferences WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError(f"Failed to read {key}: {e}") from e
        return row[0] if row else default

    async def _set(self, key: str, value: int) -> None:
        if not self._connection:
            raise StoreError("SqlitePreferenceStore not initialized")
        try:
            await self._connection.execute(
                "INSERT OR REPLACE INTO preferences (key, value) VALUES (?, ?)",
                (key, value),
            )
            await self._connection.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Failed to write {key}: {e}") from e

    async def get_seed(self) -> int:
        return await self._get(SEED_KEY, 0)

    async def set_seed(self, seed: int) -> None:
        await self._set(SEED_KEY, seed)

    async def is_power_connected(self) -> bool:
        return bool(await self._get(POWER_CONNECTED_KEY, 0))

    async def set_power_connected(self, connected: bool) -> None:
        await self._set(POWER_CONNECTED_KEY, int(connected))
