"""Shared counter store for rate limits, lockouts and the token denylist.

Production runs against Redis so every server process sees the same counters.
The in-memory store is for development and tests on a single process.
"""

import math
import threading
import time
from typing import Callable, Dict, Protocol, Tuple

import redis.asyncio as aioredis


class CounterStore(Protocol):
    async def incr(self, key: str, window_seconds: int) -> Tuple[int, int]:
        """Atomically increment ``key`` and return ``(count, ttl_seconds)``.

        The first increment of a key starts its window; the key expires
        when the window ends.
        """
        ...

    async def get(self, key: str) -> int:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def set_flag(self, key: str, ttl_seconds: int) -> None:
        ...

    async def exists(self, key: str) -> bool:
        ...

    async def close(self) -> None:
        ...


class RedisCounterStore:
    """Redis-backed counters; increment and expiry happen in one Lua call."""

    _INCR_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
  redis.call('EXPIRE', KEYS[1], ARGV[1])
end
local ttl = redis.call('TTL', KEYS[1])
if ttl < 0 then
  redis.call('EXPIRE', KEYS[1], ARGV[1])
  ttl = tonumber(ARGV[1])
end
return {count, ttl}
"""

    def __init__(self, redis_url: str, *, socket_timeout: float = 5.0, prefix: str = "heritage:"):
        self.redis_url = redis_url
        self.prefix = prefix
        self.client = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        self._incr = self.client.register_script(self._INCR_SCRIPT)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def incr(self, key: str, window_seconds: int) -> Tuple[int, int]:
        count, ttl = await self._incr(keys=[self._key(key)], args=[int(window_seconds)])
        return int(count), int(ttl)

    async def get(self, key: str) -> int:
        value = await self.client.get(self._key(key))
        return int(value) if value is not None else 0

    async def delete(self, key: str) -> None:
        await self.client.delete(self._key(key))

    async def set_flag(self, key: str, ttl_seconds: int) -> None:
        if ttl_seconds > 0:
            await self.client.set(self._key(key), "1", ex=int(ttl_seconds))

    async def exists(self, key: str) -> bool:
        return bool(await self.client.exists(self._key(key)))

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()


class MemoryCounterStore:
    """Process-local counters. Not shared between workers."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (value, expires_at)
        self._data: Dict[str, Tuple[int, float]] = {}

    def _live(self, key: str, now: float):
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] <= now:
            del self._data[key]
            return None
        return entry

    async def incr(self, key: str, window_seconds: int) -> Tuple[int, int]:
        with self._lock:
            now = self._clock()
            entry = self._live(key, now)
            if entry is None:
                entry = (1, now + window_seconds)
            else:
                entry = (entry[0] + 1, entry[1])
            self._data[key] = entry
            return entry[0], max(1, math.ceil(entry[1] - now))

    async def get(self, key: str) -> int:
        with self._lock:
            entry = self._live(key, self._clock())
            return entry[0] if entry else 0

    async def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    async def set_flag(self, key: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            self._data[key] = (1, self._clock() + ttl_seconds)

    async def exists(self, key: str) -> bool:
        with self._lock:
            return self._live(key, self._clock()) is not None

    async def clear(self) -> None:
        with self._lock:
            self._data.clear()

    async def close(self) -> None:
        await self.clear()
