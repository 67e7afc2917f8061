"""Per-user engine registry.

The engine is a single-user state machine, so the server keeps one engine
per user id, each with its own local cache and auth store, and serialises
requests for the same user behind an ``asyncio.Lock``.  The catalog is
fetched once from the remote store and shared by every engine.

At most ``max_engines`` engines stay live.  Beyond that the least recently
used idle engines are evicted together with their locks; their state lives
on in the user's local cache and is restored on the next request.  An
engine is idle when no request holds its lock, no background upsert is
pending and no failed answer is waiting to be re-sent.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections import OrderedDict
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from trias_assessment.auth import AuthStore, User
from trias_assessment.cache import FileCache, MemoryCache
from trias_assessment.catalog import Catalog
from trias_assessment.engine import AssessmentEngine
from trias_assessment.interfaces import LocalCache, RemoteSynchronizer

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENGINES = 1000


class EngineRegistry:
    """Lazily builds and hands out one engine per user.

    Args:
        synchronizer: remote store shared by all engines
        cache_dir: root directory for per-user ``FileCache``s; ``None``
            keeps every user's state in a ``MemoryCache`` owned by the
            registry
        max_engines: soft cap on live engines
    """

    def __init__(
        self,
        synchronizer: RemoteSynchronizer,
        *,
        cache_dir: str | None = None,
        max_engines: int = DEFAULT_MAX_ENGINES,
    ) -> None:
        if max_engines < 1:
            raise ValueError(f"max_engines must be at least 1, got {max_engines}")
        self._sync = synchronizer
        self._cache_dir = Path(cache_dir) if cache_dir else None
        self._max_engines = max_engines
        self._catalog: Catalog | None = None
        self._catalog_lock = asyncio.Lock()
        # Least recently used first
        self._engines: OrderedDict[str, AssessmentEngine] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}
        self._memory_caches: dict[str, MemoryCache] = {}

    async def catalog(self) -> Catalog:
        """Return the shared catalog, fetching it on first use."""
        if self._catalog is not None:
            return self._catalog
        async with self._catalog_lock:
            if self._catalog is None:
                self._catalog = await self._sync.load_catalog()
                logger.info("Shared catalog loaded: %r", self._catalog)
        return self._catalog

    def _cache_for(self, user_id: str) -> LocalCache:
        if self._cache_dir is None:
            return self._memory_caches.setdefault(user_id, MemoryCache())
        digest = hashlib.sha256(user_id.encode("utf-8")).hexdigest()
        return FileCache(self._cache_dir / digest)

    async def _engine_for(self, user_id: str) -> AssessmentEngine:
        engine = self._engines.get(user_id)
        if engine is not None:
            self._engines.move_to_end(user_id)
            return engine

        catalog = await self.catalog()
        cache = self._cache_for(user_id)
        auth = AuthStore(cache)
        if auth.user_id != user_id:
            auth.sign_in(User(id=user_id))
        engine = AssessmentEngine(self._sync, cache, auth, catalog=catalog)
        self._engines[user_id] = engine
        logger.debug("Engine created for user %s", user_id)
        self._evict_idle()
        return engine

    def _is_idle(self, user_id: str, engine: AssessmentEngine) -> bool:
        lock = self._locks.get(user_id)
        if lock is not None and lock.locked():
            return False
        return engine.pending_sync_count == 0 and engine.unsynced_count == 0

    def _evict_idle(self) -> None:
        """Drop least recently used idle engines until under the cap."""
        excess = len(self._engines) - self._max_engines
        for user_id in list(self._engines):
            if excess <= 0:
                break
            if not self._is_idle(user_id, self._engines[user_id]):
                continue
            del self._engines[user_id]
            self._locks.pop(user_id, None)
            excess -= 1
            logger.debug("Engine evicted for user %s", user_id)
        if excess > 0:
            logger.warning(
                "%d live engines exceed the cap of %d; none idle enough to evict",
                len(self._engines), self._max_engines,
            )

    @asynccontextmanager
    async def session(self, user_id: str) -> AsyncIterator[AssessmentEngine]:
        """Yield the user's engine while holding that user's lock."""
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            yield await self._engine_for(user_id)

    async def close(self) -> None:
        """Let every engine finish its background upserts."""
        for engine in self._engines.values():
            await engine.wait_for_sync()
        self._engines.clear()
        self._locks.clear()

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._engines

    def __len__(self) -> int:
        return len(self._engines)
