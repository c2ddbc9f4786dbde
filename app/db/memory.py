"""In-process KeyValueStore for tests and single-worker development (KV_BACKEND=memory)."""
import time
from typing import Callable, Optional

from app.db.kv import DEFAULT_PAGE_SIZE, KeyValueStore, ListResult


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: dict[str, tuple[str, Optional[float]]] = {}

    def _live(self, key: str) -> bool:
        item = self._data.get(key)
        if item is None:
            return False
        _, expires_at = item
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return False
        return True

    async def get(self, key: str) -> Optional[str]:
        return self._data[key][0] if self._live(key) else None

    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list(
        self, prefix: str, cursor: Optional[str] = None, limit: int = DEFAULT_PAGE_SIZE
    ) -> ListResult:
        keys = sorted(
            k for k in list(self._data)
            if k.startswith(prefix) and (cursor is None or k > cursor) and self._live(k)
        )
        page = keys[:limit]
        complete = len(keys) <= limit
        return ListResult(keys=page, cursor=None if complete else page[-1], complete=complete)
