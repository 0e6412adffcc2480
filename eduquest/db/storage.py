"""
Key-Value Storage
Durable key-value port shared by the session store, the credit ledger and
the server-side credit/question-set records
FILE: eduquest/db/storage.py
"""
import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from eduquest.core.config import Settings, settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a persisted record cannot be read or written"""
    pass


class StoragePort(Protocol):
    """
    Reads suspend (hydration), writes are synchronous from the caller's point
    of view. Backends that can only write asynchronously buffer in save() and
    drain the buffer in flush().
    """

    async def load(self, key: str) -> Optional[Any]:
        ...

    def save(self, key: str, value: Any) -> None:
        ...

    async def flush(self) -> None:
        ...


def copy_record(value: Any) -> Any:
    """Copy a value through JSON so stored records never alias live objects"""
    return json.loads(json.dumps(value))


class MemoryStorage:
    """In-process storage, used for tests and throwaway deployments"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._records: Dict[str, Any] = {
            key: copy_record(value) for key, value in (initial or {}).items()
        }
        self.save_count = 0

    async def load(self, key: str) -> Optional[Any]:
        value = self._records.get(key)
        return copy_record(value) if value is not None else None

    def save(self, key: str, value: Any) -> None:
        self._records[key] = copy_record(value)
        self.save_count += 1

    async def flush(self) -> None:
        return None

    def peek(self, key: str) -> Optional[Any]:
        return self._records.get(key)


class JsonFileStorage:
    """One JSON file per key inside a directory"""

    def __init__(self, directory: str):
        self.directory = Path(directory)
        os.makedirs(self.directory, exist_ok=True)

    def _path(self, key: str) -> Path:
        safe_key = re.sub(r"[^a-zA-Z0-9._-]", "_", key)
        return self.directory / f"{safe_key}.json"

    def _read(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"❌ Failed to read {path}: {e}")
            raise StorageError(f"Failed to read record '{key}': {e}")

    async def load(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._read, key)

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"❌ Failed to write {path}: {e}")
            raise StorageError(f"Failed to write record '{key}': {e}")

    async def flush(self) -> None:
        return None


# ==================== SINGLETON ====================

_storage: Optional[StoragePort] = None


def build_storage(config: Settings = settings) -> StoragePort:
    """
    Create the storage backend selected by settings.storage_backend

    The MongoDB backend needs connect_to_mongo() to have run first.
    """
    backend = config.storage_backend
    if backend == "memory":
        return MemoryStorage()
    if backend == "json":
        return JsonFileStorage(config.storage_dir)
    if backend == "mongodb":
        from eduquest.db.mongodb import MongoStorage, get_collection
        return MongoStorage(get_collection(config.storage_collection))

    raise ValueError(f"Invalid storage backend: {backend}")


def get_storage() -> StoragePort:
    """Get or create the process-wide storage backend"""
    global _storage
    if _storage is None:
        _storage = build_storage(settings)
        logger.info(f"✓ Storage backend ready: {type(_storage).__name__}")
    return _storage


def set_storage(storage: Optional[StoragePort]) -> None:
    """Replace the process-wide storage backend (None resets it)"""
    global _storage
    _storage = storage
