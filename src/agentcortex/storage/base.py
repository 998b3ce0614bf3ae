"""Storage contract consumed by the runtime, plus shared ranking helpers.

The contract is split in two halves so that memories and the relationship
graph (accounts, rooms, participants) can live in different backends.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from collections.abc import Sequence
from typing import Protocol
from typing import runtime_checkable

from agentcortex.models import Account
from agentcortex.models import Actor
from agentcortex.models import Content
from agentcortex.models import Goal
from agentcortex.models import Memory

# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class MemoryStorage(Protocol):
    """Per-namespace memory persistence and goal tracking."""

    async def create_memory(
        self, memory: Memory, table: str, *, unique: bool = False
    ) -> None: ...

    async def get_memory_by_id(self, memory_id: str, table: str) -> Memory | None: ...

    async def get_memories(
        self,
        room_id: str,
        table: str,
        *,
        count: int | None = None,
        unique: bool = True,
        before: int | None = None,
    ) -> list[Memory]: ...

    async def get_memories_by_room_ids(
        self, room_ids: Sequence[str], table: str
    ) -> list[Memory]: ...

    async def search_memories_by_embedding(
        self,
        embedding: Sequence[float],
        table: str,
        *,
        room_id: str | None = None,
        count: int = 10,
        match_threshold: float = 0.0,
        unique: bool = False,
    ) -> list[Memory]: ...

    async def get_cached_embeddings(self, text: str, table: str) -> list[Memory]: ...

    async def update_memory(
        self, memory_id: str, table: str, content: Content
    ) -> Memory | None: ...

    async def remove_memory(self, memory_id: str, table: str) -> bool: ...

    async def remove_all_memories(self, room_id: str, table: str) -> int: ...

    async def count_memories(
        self, room_id: str, table: str, *, unique: bool = True
    ) -> int: ...

    async def get_goals(
        self,
        room_id: str,
        *,
        user_id: str | None = None,
        only_in_progress: bool = True,
        count: int = 5,
    ) -> list[Goal]: ...

    async def create_goal(self, goal: Goal) -> None: ...

    async def update_goal(self, goal: Goal) -> None: ...

    async def remove_goal(self, goal_id: str) -> bool: ...


@runtime_checkable
class RelationshipStorage(Protocol):
    """Accounts, rooms and the participant graph between them."""

    async def get_room(self, room_id: str) -> str | None: ...

    async def create_room(self, room_id: str) -> str: ...

    async def remove_room(self, room_id: str) -> bool: ...

    async def get_account_by_id(self, user_id: str) -> Account | None: ...

    async def create_account(self, account: Account) -> bool: ...

    async def get_participants_for_account(self, user_id: str) -> list[str]: ...

    async def get_participants_for_room(self, room_id: str) -> list[str]: ...

    async def add_participant(self, user_id: str, room_id: str) -> bool: ...

    async def remove_participant(self, user_id: str, room_id: str) -> bool: ...

    async def get_rooms_for_participant(self, user_id: str) -> list[str]: ...

    async def get_rooms_for_participants(self, user_ids: Sequence[str]) -> list[str]: ...

    async def get_actor_details(self, room_id: str) -> list[Actor]: ...


@runtime_checkable
class DatabaseAdapter(MemoryStorage, RelationshipStorage, Protocol):
    """Full storage contract."""


# ---------------------------------------------------------------------------
# Ranking helpers
# ---------------------------------------------------------------------------


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; 0.0 when either has zero norm."""
    if len(a) != len(b):
        raise ValueError(f"vector length mismatch: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


def rank_by_similarity(
    memories: Iterable[Memory],
    embedding: Sequence[float],
    *,
    count: int,
    match_threshold: float = 0.0,
) -> list[Memory]:
    """Rank by descending cosine similarity, newest first on ties.

    Memories without an embedding of matching length are skipped.
    """
    scored: list[tuple[float, Memory]] = []
    for memory in memories:
        if not memory.embedding or len(memory.embedding) != len(embedding):
            continue
        score = cosine_similarity(embedding, memory.embedding)
        if score < match_threshold:
            continue
        scored.append((score, memory))
    scored.sort(key=lambda pair: (pair[0], pair[1].created_at), reverse=True)
    return [memory for _, memory in scored[:count]]


def normalize_cache_text(text: str) -> str:
    """Key under which a memory's text serves the embedding cache."""
    return text.strip()


def newest_first(memories: Iterable[Memory]) -> list[Memory]:
    return sorted(memories, key=lambda m: m.created_at, reverse=True)


def collapse_duplicates(memories: Iterable[Memory]) -> list[Memory]:
    """Keep the first occurrence of each exact text (input order preserved).

    Callers pass newest-first lists so the newest instance survives.
    """
    seen: set[str] = set()
    result: list[Memory] = []
    for memory in memories:
        text = memory.content.text
        if text in seen:
            continue
        seen.add(text)
        result.append(memory)
    return result
