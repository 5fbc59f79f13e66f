"""JSON file persistence layer for scheduler preferences.

Simple file-based storage, easy to inspect by hand. Writes go to a temp file
that is then renamed over the original, so a crash never leaves a torn file.
"""
import asyncio
import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from ..types import StoreError
from .store import POWER_CONNECTED_KEY, SEED_KEY

logger = logger.bind(module="scheduler.json_store")


class JsonPreferenceStore:
    """JSON file-based preference persistence."""

    def __init__(self, json_path: str | Path):
        """Initialize JSON preference store.

        Args:
            json_path: Path to JSON file for storage
        """
        self.json_path = Path(json_path).expanduser()
        self._data: dict[str, Any] = {}
        self._lock = asyncio.Lock()
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize store by loading from JSON file."""
        if self._initialized:
            return
        try:
            self.json_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create {self.json_path.parent}: {e}") from e

        if self.json_path.exists():
            await self._load_from_file()
        self._initialized = True
        logger.info(f"JSON preference store initialized at {self.json_path}")

    async def close(self) -> None:
        self._initialized = False

    async def _load_from_file(self) -> None:
        async with self._lock:
            try:
                with open(self.json_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise StoreError(f"Failed to load {self.json_path}: {e}") from e
            if not isinstance(data, dict):
                raise StoreError(f"Malformed preference file {self.json_path}")
            self._data = data

    async def _save_to_file(self) -> None:
        # Caller holds self._lock
        export_data = dict(self._data)
        export_data["updated_at"] = datetime.now().isoformat()

        temp_path = self.json_path.with_suffix(".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(export_data, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.json_path)
        except OSError as e:
            raise StoreError(f"Failed to save {self.json_path}: {e}") from e
        logger.debug(f"Saved preferences to {self.json_path}")

    async def _set(self, key: str, value: Any) -> None:
        if not self._initialized:
            raise StoreError("JsonPreferenceStore not initialized")
        async with self._lock:
            self._data[key] = value
            await self._save_to_file()

    def _get(self, key: str, default: Any) -> Any:
        if not self._initialized:
            raise StoreError("JsonPreferenceStore not initialized")
        return self._data.get(key, default)

    async def get_seed(self) -> int:
        return int(self._get(SEED_KEY, 0))

    async def set_seed(self, seed: int) -> None:
        await self._set(SEED_KEY, seed)

    async def is_power_connected(self) -> bool:
        return bool(self._get(POWER_CONNECTED_KEY, False))

    async def set_power_connected(self, connected: bool) -> None:
        await self._set(POWER_CONNECTED_KEY, connected)
