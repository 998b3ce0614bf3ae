"""Embed-with-cache path.

Lookup order for a text: in-process memo, then a stored message whose text
matches after normalization, then the remote embedding endpoint.  A per-text
lock makes concurrent callers for the same text share one remote call.  The
memo is a bounded LRU and a lock lives only while callers hold or await it.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from time import perf_counter

from agentcortex.config import LLMConfig
from agentcortex.llm.adapters import LLMAdapter
from agentcortex.models import embedding_zero_vector
from agentcortex.models import MESSAGES
from agentcortex.observability import record_event
from agentcortex.observability import record_latency
from agentcortex.storage.base import MemoryStorage
from agentcortex.storage.base import normalize_cache_text

logger = logging.getLogger(__name__)

DEFAULT_MEMO_SIZE = 1024


def normalize_embedding_text(text: str) -> str:
    return normalize_cache_text(text)


class EmbeddingService:
    """Embeds text at most once per distinct normalized input.

    ``memo_size`` bounds the in-process memo; ``0`` disables it so every
    lookup goes to the store.
    """

    def __init__(
        self,
        adapter: LLMAdapter,
        storage: MemoryStorage,
        config: LLMConfig | None = None,
        *,
        cache_table: str = MESSAGES,
        memo_size: int = DEFAULT_MEMO_SIZE,
    ) -> None:
        if memo_size < 0:
            raise ValueError("memo_size must not be negative")
        self._adapter = adapter
        self._storage = storage
        self._config = config or LLMConfig()
        self._cache_table = cache_table
        self._memo_size = memo_size
        self._memo: OrderedDict[str, list[float]] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def embed(self, text: str) -> list[float]:
        key = normalize_embedding_text(text)
        if not key:
            return embedding_zero_vector()

        cached = self._memo_get(key)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                cached = self._memo_get(key)
                if cached is not None:
                    return cached

                stored = await self._storage.get_cached_embeddings(
                    key, self._cache_table
                )
                if stored and stored[0].embedding:
                    record_event(operation="embedding.embed", outcome="store_hit")
                    vector = list(stored[0].embedding)
                else:
                    vector = await self._embed_remote(key)
                self._memo_put(key, vector)
        finally:
            self._release(key)
        return list(vector)

    def _memo_get(self, key: str) -> list[float] | None:
        cached = self._memo.get(key)
        if cached is None:
            return None
        self._memo.move_to_end(key)
        record_event(operation="embedding.embed", outcome="memo_hit")
        return list(cached)

    def _memo_put(self, key: str, vector: list[float]) -> None:
        if not self._memo_size:
            return
        self._memo[key] = vector
        self._memo.move_to_end(key)
        while len(self._memo) > self._memo_size:
            self._memo.popitem(last=False)

    def _release(self, key: str) -> None:
        remaining = self._lock_users[key] - 1
        if remaining:
            self._lock_users[key] = remaining
            return
        del self._lock_users[key]
        del self._locks[key]

    async def _embed_remote(self, text: str) -> list[float]:
        record_event(operation="embedding.embed", outcome="remote")
        start = perf_counter()
        ok = False
        try:
            vector = await self._adapter.embed(
                text,
                model=self._config.embedding_model,
                timeout_seconds=self._config.timeout_seconds,
            )
            ok = True
        finally:
            elapsed_ms = (perf_counter() - start) * 1000
            record_latency(operation="embedding.embed", duration_ms=elapsed_ms, ok=ok)
        logger.debug(
            "embedded text chars=%d dims=%d duration_ms=%.1f",
            len(text),
            len(vector),
            elapsed_ms,
        )
        return vector

    def clear(self) -> None:
        """Drop the in-process memo (stored vectors remain authoritative)."""
        self._memo.clear()
