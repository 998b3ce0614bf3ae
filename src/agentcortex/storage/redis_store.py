"""Redis-backed memory storage.

Memories are stored as JSON strings keyed by ``{prefix}:memory:{table}:{id}``
and created with ``SET NX`` so that concurrent creates of the same id resolve
to exactly one record.  Secondary keys:

- ``{prefix}:recency:{table}:{room}`` sorted set (score = ``created_at``)
- ``{prefix}:table:{table}`` set of every id in the namespace
- ``{prefix}:text:{table}:{sha256}`` set of ids sharing an exact text
- ``{prefix}:source:{document_id}`` set of fragment ids citing a document
- ``{prefix}:goal:{id}`` goal JSON, ``{prefix}:goals:{room}`` sorted set
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Sequence

from redis.asyncio import Redis  # type: ignore[import-untyped]

from agentcortex.errors import DocumentInUseError
from agentcortex.errors import DuplicateIdError
from agentcortex.models import Content
from agentcortex.models import DOCUMENTS
from agentcortex.models import FRAGMENTS
from agentcortex.models import Goal
from agentcortex.models import GoalStatus
from agentcortex.models import Memory
from agentcortex.storage.base import collapse_duplicates
from agentcortex.storage.base import newest_first
from agentcortex.storage.base import normalize_cache_text
from agentcortex.storage.base import rank_by_similarity

logger = logging.getLogger(__name__)

_CLEAR_BATCH_SIZE = 100


def _decode(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


def _text_digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class RedisMemoryStorage:
    """Memory and goal persistence on Redis."""

    def __init__(self, redis: Redis, *, key_prefix: str = "agentcortex") -> None:
        self._redis = redis
        self._prefix = key_prefix

    # -- keys --

    def _memory_key(self, table: str, memory_id: str) -> str:
        return f"{self._prefix}:memory:{table}:{memory_id}"

    def _recency_key(self, table: str, room_id: str) -> str:
        return f"{self._prefix}:recency:{table}:{room_id}"

    def _table_key(self, table: str) -> str:
        return f"{self._prefix}:table:{table}"

    def _text_key(self, table: str, text: str) -> str:
        digest = _text_digest(normalize_cache_text(text))
        return f"{self._prefix}:text:{table}:{digest}"

    def _source_key(self, document_id: str) -> str:
        return f"{self._prefix}:source:{document_id}"

    def _goal_key(self, goal_id: str) -> str:
        return f"{self._prefix}:goal:{goal_id}"

    def _room_goals_key(self, room_id: str) -> str:
        return f"{self._prefix}:goals:{room_id}"

    # -- write --

    async def create_memory(
        self, memory: Memory, table: str, *, unique: bool = False
    ) -> None:
        """Store *memory*; raise ``DuplicateIdError`` if its id is taken.

        The record is claimed with ``SET NX``; if indexing fails afterwards
        the record is deleted again so no partial state survives.
        """
        if unique and not memory.unique:
            memory = memory.model_copy(update={"unique": True})
        key = self._memory_key(table, memory.id)
        created = await self._redis.set(key, memory.model_dump_json(), nx=True)
        if not created:
            existing = await self.get_memory_by_id(memory.id, table)
            raise DuplicateIdError(
                memory.id, table, existing.room_id if existing else None
            )

        try:
            pipe = self._redis.pipeline(transaction=True)
            pipe.zadd(self._recency_key(table, memory.room_id), {memory.id: memory.created_at})
            pipe.sadd(self._table_key(table), memory.id)
            pipe.sadd(self._text_key(table, memory.content.text), memory.id)
            if table == FRAGMENTS and memory.content.source:
                pipe.sadd(self._source_key(memory.content.source), memory.id)
            await pipe.execute()
        except Exception:
            logger.exception("indexing failed, rolling back memory id=%s", memory.id)
            await self._redis.delete(key)
            raise

    async def update_memory(
        self, memory_id: str, table: str, content: Content
    ) -> Memory | None:
        existing = await self.get_memory_by_id(memory_id, table)
        if existing is None:
            return None
        updated = existing.model_copy(update={"content": content})
        pipe = self._redis.pipeline(transaction=True)
        pipe.set(self._memory_key(table, memory_id), updated.model_dump_json(), xx=True)
        pipe.srem(self._text_key(table, existing.content.text), memory_id)
        pipe.sadd(self._text_key(table, content.text), memory_id)
        await pipe.execute()
        return updated

    async def remove_memory(self, memory_id: str, table: str) -> bool:
        existing = await self.get_memory_by_id(memory_id, table)
        if existing is None:
            return False
        if table == DOCUMENTS:
            await self._ensure_unreferenced(memory_id)
        await self._unindex(existing, table)
        return True

    async def remove_all_memories(self, room_id: str, table: str) -> int:
        ids = [
            _decode(raw)
            for raw in await self._redis.zrange(self._recency_key(table, room_id), 0, -1)
        ]
        memories = [m for m in await self._fetch(ids, table) if m is not None]
        if table == DOCUMENTS:
            for memory in memories:
                await self._ensure_unreferenced(memory.id)
        for memory in memories:
            await self._unindex(memory, table)
        return len(memories)

    async def _unindex(self, memory: Memory, table: str) -> None:
        pipe = self._redis.pipeline(transaction=True)
        pipe.delete(self._memory_key(table, memory.id))
        pipe.zrem(self._recency_key(table, memory.room_id), memory.id)
        pipe.srem(self._table_key(table), memory.id)
        pipe.srem(self._text_key(table, memory.content.text), memory.id)
        if table == FRAGMENTS and memory.content.source:
            pipe.srem(self._source_key(memory.content.source), memory.id)
        await pipe.execute()

    async def _ensure_unreferenced(self, document_id: str) -> None:
        referencing = await self._redis.scard(self._source_key(document_id))
        if referencing:
            raise DocumentInUseError(document_id, int(referencing))

    # -- read --

    async def get_memory_by_id(self, memory_id: str, table: str) -> Memory | None:
        data = await self._redis.get(self._memory_key(table, memory_id))
        if data is None:
            return None
        return Memory.model_validate_json(data)

    async def _fetch(self, ids: Sequence[str], table: str) -> list[Memory | None]:
        """Batch-fetch memories by id, ``None`` for ids that vanished."""
        if not ids:
            return []
        pipe = self._redis.pipeline()
        for memory_id in ids:
            pipe.get(self._memory_key(table, memory_id))
        raw_results = await pipe.execute()
        return [
            Memory.model_validate_json(raw) if raw is not None else None
            for raw in raw_results
        ]

    async def get_memories(
        self,
        room_id: str,
        table: str,
        *,
        count: int | None = None,
        unique: bool = True,
        before: int | None = None,
    ) -> list[Memory]:
        """Return memories of a room newest-first.

        Without ``unique`` the page size is pushed down to Redis; with it the
        whole room is scanned because collapsing can shrink the page.
        """
        max_score: float | str = "+inf" if before is None else f"({before}"
        num = count if (count is not None and not unique) else None
        ids = await self._redis.zrevrangebyscore(
            self._recency_key(table, room_id),
            max_score,
            "-inf",
            start=0 if num is not None else None,
            num=num,
        )
        memories = [
            m for m in await self._fetch([_decode(i) for i in ids], table) if m is not None
        ]
        ordered = newest_first(memories)
        if unique:
            ordered = collapse_duplicates(ordered)
        if count is not None:
            ordered = ordered[:count]
        return ordered

    async def get_memories_by_room_ids(
        self, room_ids: Sequence[str], table: str
    ) -> list[Memory]:
        ids: list[str] = []
        for room_id in room_ids:
            raw = await self._redis.zrange(self._recency_key(table, room_id), 0, -1)
            ids.extend(_decode(i) for i in raw)
        return [m for m in await self._fetch(ids, table) if m is not None]

    async def search_memories_by_embedding(
        self,
        embedding: Sequence[float],
        table: str,
        *,
        room_id: str | None = None,
        count: int = 10,
        match_threshold: float = 0.0,
        unique: bool = False,
    ) -> list[Memory]:
        if room_id is not None:
            raw_ids = await self._redis.zrange(self._recency_key(table, room_id), 0, -1)
        else:
            raw_ids = await self._redis.smembers(self._table_key(table))
        candidates = [
            m for m in await self._fetch([_decode(i) for i in raw_ids], table) if m is not None
        ]
        if unique:
            candidates = collapse_duplicates(newest_first(candidates))
        return rank_by_similarity(
            candidates, embedding, count=count, match_threshold=match_threshold
        )

    async def get_cached_embeddings(self, text: str, table: str) -> list[Memory]:
        key = normalize_cache_text(text)
        raw_ids = await self._redis.smembers(self._text_key(table, key))
        matches = [
            m
            for m in await self._fetch([_decode(i) for i in raw_ids], table)
            if m is not None
            and m.embedding
            and normalize_cache_text(m.content.text) == key
        ]
        return newest_first(matches)

    async def count_memories(
        self, room_id: str, table: str, *, unique: bool = True
    ) -> int:
        if not unique:
            return int(await self._redis.zcard(self._recency_key(table, room_id)))
        return len(await self.get_memories(room_id, table, unique=True))

    # -- goals --

    async def get_goals(
        self,
        room_id: str,
        *,
        user_id: str | None = None,
        only_in_progress: bool = True,
        count: int = 5,
    ) -> list[Goal]:
        raw_ids = await self._redis.zrange(self._room_goals_key(room_id), 0, -1)
        if not raw_ids:
            return []
        pipe = self._redis.pipeline()
        for raw_id in raw_ids:
            pipe.get(self._goal_key(_decode(raw_id)))
        goals = [Goal.model_validate_json(raw) for raw in await pipe.execute() if raw]
        selected = [
            g
            for g in goals
            if (user_id is None or g.user_id == user_id)
            and (not only_in_progress or g.status == GoalStatus.IN_PROGRESS)
        ]
        return selected[:count]

    async def create_goal(self, goal: Goal) -> None:
        created = await self._redis.set(
            self._goal_key(goal.id), goal.model_dump_json(), nx=True
        )
        if not created:
            raise DuplicateIdError(goal.id, "goals", goal.room_id)
        await self._redis.zadd(self._room_goals_key(goal.room_id), {goal.id: time.time()})

    async def update_goal(self, goal: Goal) -> None:
        pipe = self._redis.pipeline(transaction=True)
        pipe.set(self._goal_key(goal.id), goal.model_dump_json())
        pipe.zadd(self._room_goals_key(goal.room_id), {goal.id: time.time()}, nx=True)
        await pipe.execute()

    async def remove_goal(self, goal_id: str) -> bool:
        data = await self._redis.get(self._goal_key(goal_id))
        if data is None:
            return False
        goal = Goal.model_validate_json(data)
        pipe = self._redis.pipeline(transaction=True)
        pipe.delete(self._goal_key(goal_id))
        pipe.zrem(self._room_goals_key(goal.room_id), goal_id)
        await pipe.execute()
        return True

    # -- maintenance --

    async def clear(self) -> None:
        """Remove every key under the prefix, in batches."""
        batch: list = []
        async for key in self._redis.scan_iter(match=f"{self._prefix}:*"):
            batch.append(key)
            if len(batch) >= _CLEAR_BATCH_SIZE:
                await self._redis.delete(*batch)
                batch.clear()
        if batch:
            await self._redis.delete(*batch)
