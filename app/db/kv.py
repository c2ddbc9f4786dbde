"""
Async key-value store used for every piece of reminder state.

Key namespaces:
    user:{id}:subscription      push subscription JSON
    user:{id}:settings          reminder settings JSON
    schedule:{id}               current schedule record
    schedule:{date}:{id}        legacy schedule record (migrated by refresh)
    bucket:{utcDate}:{utcTime}  JSON list of user ids, expires after 48h

MongoDB document shape (collection `kv`):
{
    _id:        str,              # the key
    value:      str,              # opaque JSON text
    expires_at: datetime | None,  # TTL index, expireAfterSeconds=0
}
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection

from app.core.config import settings

DEFAULT_PAGE_SIZE = 1000


@dataclass
class ListResult:
    keys: list[str] = field(default_factory=list)
    cursor: Optional[str] = None
    complete: bool = True


class KeyValueStore(ABC):
    """get / put / delete / list-by-prefix with optional per-key expiry."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    @abstractmethod
    async def list(
        self, prefix: str, cursor: Optional[str] = None, limit: int = DEFAULT_PAGE_SIZE
    ) -> ListResult: ...

    async def close(self) -> None:
        return None


def _expiry(ttl_seconds: Optional[int]) -> Optional[datetime]:
    if ttl_seconds is None:
        return None
    return datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)


# ─────────────────────────────────────────────────────────────────────────────
# MongoDB implementation
# ─────────────────────────────────────────────────────────────────────────────

class MongoKeyValueStore(KeyValueStore):
    def __init__(self, collection: AsyncIOMotorCollection, client: Optional[AsyncIOMotorClient] = None):
        self._col = collection
        self._client = client
        self._indexed = False

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()

    async def _collection(self) -> AsyncIOMotorCollection:
        if not self._indexed:
            # Idempotent: only creates the index if it doesn't exist
            await self._col.create_index("expires_at", expireAfterSeconds=0)
            self._indexed = True
        return self._col

    async def get(self, key: str) -> Optional[str]:
        col = await self._collection()
        doc = await col.find_one({"_id": key})
        if not doc:
            return None
        # The TTL monitor runs about once a minute, so honour expiry on read.
        expires_at = doc.get("expires_at")
        if isinstance(expires_at, datetime):
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at <= datetime.now(timezone.utc):
                return None
        return doc.get("value")

    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        col = await self._collection()
        await col.update_one(
            {"_id": key},
            {"$set": {"value": value, "expires_at": _expiry(ttl_seconds)}},
            upsert=True,
        )

    async def delete(self, key: str) -> None:
        col = await self._collection()
        await col.delete_one({"_id": key})

    async def list(
        self, prefix: str, cursor: Optional[str] = None, limit: int = DEFAULT_PAGE_SIZE
    ) -> ListResult:
        col = await self._collection()
        query: dict = {"_id": {"$regex": f"^{re.escape(prefix)}"}}
        if cursor:
            query["_id"]["$gt"] = cursor
        docs = await col.find(query, {"_id": 1}).sort("_id", 1).limit(limit + 1).to_list(length=limit + 1)

        keys = [d["_id"] for d in docs[:limit]]
        complete = len(docs) <= limit
        return ListResult(keys=keys, cursor=None if complete else keys[-1], complete=complete)


# ─────────────────────────────────────────────────────────────────────────────
# Process store (created once, reused across requests and jobs)
# ─────────────────────────────────────────────────────────────────────────────

_store: Optional[KeyValueStore] = None


def get_store() -> KeyValueStore:
    global _store
    if _store is None:
        if settings.KV_BACKEND == "memory":
            from app.db.memory import MemoryKeyValueStore
            _store = MemoryKeyValueStore()
        else:
            client = AsyncIOMotorClient(settings.MONGO_URI)
            _store = MongoKeyValueStore(client[settings.MONGO_DB_NAME][settings.KV_COLLECTION], client)
    return _store
