from __future__ import annotations

import logging
import time
from threading import RLock
from typing import Iterator, Protocol

import redis


log = logging.getLogger(__name__)

ROOM_KEY_PREFIX = "room:"
HOUR_MS = 3600 * 1000
DAY_MS = 24 * HOUR_MS


def room_key(code: str) -> str:
    return f"{ROOM_KEY_PREFIX}{code}"


def start_of_hour(now_ms: int | None = None) -> int:
    now = now_ms if now_ms is not None else int(time.time() * 1000)
    return now - (now % HOUR_MS)


class Store(Protocol):
    """Opaque key-value store used for room records and analytics."""

    def save_room(self, code: str, data: str, ttl_sec: int | None) -> None: ...

    def load_rooms(self) -> Iterator[tuple[str, str]]: ...

    def count(self, prefix: str) -> None: ...

    def push(self, key: str, value: str) -> None: ...


class MemoryStore:
    """Process-local store. TTLs are ignored, everything lives until exit."""

    def __init__(self):
        self._lock = RLock()
        self.rooms: dict[str, str] = {}
        self.counters: dict[str, int] = {}
        self.lists: dict[str, list[str]] = {}

    def save_room(self, code: str, data: str, ttl_sec: int | None) -> None:
        with self._lock:
            self.rooms[room_key(code)] = data

    def load_rooms(self) -> Iterator[tuple[str, str]]:
        with self._lock:
            items = list(self.rooms.items())
        for key, data in items:
            yield key[len(ROOM_KEY_PREFIX):], data

    def count(self, prefix: str) -> None:
        key = f"{prefix}:{start_of_hour()}"
        with self._lock:
            self.counters[key] = self.counters.get(key, 0) + 1

    def push(self, key: str, value: str) -> None:
        with self._lock:
            self.lists.setdefault(key, []).insert(0, value)


class RedisStore:
    def __init__(self, url: str):
        self.client = redis.Redis.from_url(url, decode_responses=True)

    def save_room(self, code: str, data: str, ttl_sec: int | None) -> None:
        if ttl_sec:
            self.client.set(room_key(code), data, ex=ttl_sec)
        else:
            self.client.set(room_key(code), data)

    def load_rooms(self) -> Iterator[tuple[str, str]]:
        for key in self.client.scan_iter(match=f"{ROOM_KEY_PREFIX}*"):
            data = self.client.get(key)
            if data:
                yield key[len(ROOM_KEY_PREFIX):], data

    def count(self, prefix: str) -> None:
        hour = start_of_hour()
        key = f"{prefix}:{hour}"
        pipe = self.client.pipeline()
        pipe.incr(key)
        pipe.pexpireat(key, hour + DAY_MS)
        pipe.execute()

    def push(self, key: str, value: str) -> None:
        self.client.lpush(key, value)


def create_store(redis_url: str) -> Store:
    if redis_url:
        log.info("[STORE] using redis")
        return RedisStore(redis_url)
    log.info("[STORE] REDIS_URL not set, using in-memory store")
    return MemoryStore()
