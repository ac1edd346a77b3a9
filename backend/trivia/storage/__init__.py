from .store import MemoryStore, RedisStore, Store, create_store

__all__ = ["MemoryStore", "RedisStore", "Store", "create_store"]
