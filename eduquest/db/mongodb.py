import asyncio
import logging
from typing import Any, Dict, Optional, Set

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection

from eduquest.core.config import settings
from eduquest.db.storage import copy_record

logger = logging.getLogger(__name__)

class MongoDB:
    client: AsyncIOMotorClient = None

mongodb = MongoDB()

async def connect_to_mongo():
    """Connect to MongoDB and test the connection"""
    try:
        mongodb.client = AsyncIOMotorClient(settings.mongodb_url)
        # Test connection
        await mongodb.client.admin.command('ping')
        logger.info(f"✓ Connected to MongoDB at {settings.mongodb_url}")
    except Exception as e:
        logger.error(f"✗ Failed to connect to MongoDB: {e}")
        raise

async def close_mongo_connection():
    """Close MongoDB connection"""
    if mongodb.client:
        mongodb.client.close()
        logger.info("✓ Closed MongoDB connection")

def get_database():
    """Get the database instance"""
    return mongodb.client[settings.database_name]

def get_collection(collection_name: str):
    """Get a specific collection"""
    db = get_database()
    return db[collection_name]


class MongoStorage:
    """
    Key-value records stored as {_id: key, value: record} documents.
    save() buffers the latest value per key and schedules a background flush.
    """

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection
        self._pending: Dict[str, Any] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._flush_lock = asyncio.Lock()

    async def load(self, key: str) -> Optional[Any]:
        if key in self._pending:
            return copy_record(self._pending[key])
        doc = await self.collection.find_one({"_id": key})
        return doc["value"] if doc else None

    def save(self, key: str, value: Any) -> None:
        self._pending[key] = copy_record(value)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the write stays buffered until flush() is awaited
            return
        task = loop.create_task(self._background_flush())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _background_flush(self) -> None:
        try:
            await self.flush()
        except Exception:
            # Left buffered; the next save or shutdown flush retries it
            logger.debug("Background flush deferred")

    async def flush(self) -> None:
        async with self._flush_lock:
            while self._pending:
                key, value = next(iter(self._pending.items()))
                try:
                    await self.collection.update_one(
                        {"_id": key},
                        {"$set": {"value": value}},
                        upsert=True
                    )
                except Exception as e:
                    logger.error(f"❌ Failed to persist record {key}: {e}")
                    raise
                # Keys stay readable from the buffer until their write lands
                if self._pending.get(key) is value:
                    del self._pending[key]
