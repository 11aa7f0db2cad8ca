from typing import Optional

from libs.config import get_setting
from .base import RouteStore, StoreError
from .memory import MemoryStore


async def build_store(backend: Optional[str] = None) -> RouteStore:
    backend = backend or get_setting("store.backend", "memory")
    if backend == "memory":
        return MemoryStore()
    if backend == "mongo":
        from .mongo import MongoStore

        store = MongoStore(
            url=get_setting("store.mongo_url", "mongodb://127.0.0.1:27017"),
            database=get_setting("store.database", "pathhole"),
        )
        await store.connect()
        return store
    raise StoreError(f"unsupported store backend: {backend}")


__all__ = ["RouteStore", "StoreError", "MemoryStore", "build_store"]
