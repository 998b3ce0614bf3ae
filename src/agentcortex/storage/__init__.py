"""Storage domain — the storage contract and its adapters."""

from __future__ import annotations

from collections.abc import Sequence

from agentcortex.models import Account
from agentcortex.models import Actor
from agentcortex.models import Content
from agentcortex.models import Goal
from agentcortex.models import Memory
from agentcortex.storage.base import collapse_duplicates
from agentcortex.storage.base import cosine_similarity
from agentcortex.storage.base import DatabaseAdapter
from agentcortex.storage.base import MemoryStorage
from agentcortex.storage.base import rank_by_similarity
from agentcortex.storage.base import RelationshipStorage
from agentcortex.storage.memory import InMemoryDatabaseAdapter
from agentcortex.storage.neo4j_store import init_relationship_schema
from agentcortex.storage.neo4j_store import Neo4jRelationshipStorage
from agentcortex.storage.redis_store import RedisMemoryStorage

__all__ = [
    "CompositeDatabaseAdapter",
    "DatabaseAdapter",
    "InMemoryDatabaseAdapter",
    "MemoryStorage",
    "Neo4jRelationshipStorage",
    "RedisMemoryStorage",
    "RelationshipStorage",
    "collapse_duplicates",
    "cosine_similarity",
    "init_relationship_schema",
    "rank_by_similarity",
]


class CompositeDatabaseAdapter:
    """Serve the full contract from separate memory and relationship backends.

    Typical wiring is ``RedisMemoryStorage`` + ``Neo4jRelationshipStorage``.
    """

    def __init__(
        self, memories: MemoryStorage, relationships: RelationshipStorage
    ) -> None:
        self.memories = memories
        self.relationships = relationships

    # ----- MemoryStorage -----

    async def create_memory(
        self, memory: Memory, table: str, *, unique: bool = False
    ) -> None:
        await self.memories.create_memory(memory, table, unique=unique)

    async def get_memory_by_id(self, memory_id: str, table: str) -> Memory | None:
        return await self.memories.get_memory_by_id(memory_id, table)

    async def get_memories(
        self,
        room_id: str,
        table: str,
        *,
        count: int | None = None,
        unique: bool = True,
        before: int | None = None,
    ) -> list[Memory]:
        return await self.memories.get_memories(
            room_id, table, count=count, unique=unique, before=before
        )

    async def get_memories_by_room_ids(
        self, room_ids: Sequence[str], table: str
    ) -> list[Memory]:
        return await self.memories.get_memories_by_room_ids(room_ids, table)

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
        return await self.memories.search_memories_by_embedding(
            embedding,
            table,
            room_id=room_id,
            count=count,
            match_threshold=match_threshold,
            unique=unique,
        )

    async def get_cached_embeddings(self, text: str, table: str) -> list[Memory]:
        return await self.memories.get_cached_embeddings(text, table)

    async def update_memory(
        self, memory_id: str, table: str, content: Content
    ) -> Memory | None:
        return await self.memories.update_memory(memory_id, table, content)

    async def remove_memory(self, memory_id: str, table: str) -> bool:
        return await self.memories.remove_memory(memory_id, table)

    async def remove_all_memories(self, room_id: str, table: str) -> int:
        return await self.memories.remove_all_memories(room_id, table)

    async def count_memories(
        self, room_id: str, table: str, *, unique: bool = True
    ) -> int:
        return await self.memories.count_memories(room_id, table, unique=unique)

    async def get_goals(
        self,
        room_id: str,
        *,
        user_id: str | None = None,
        only_in_progress: bool = True,
        count: int = 5,
    ) -> list[Goal]:
        return await self.memories.get_goals(
            room_id, user_id=user_id, only_in_progress=only_in_progress, count=count
        )

    async def create_goal(self, goal: Goal) -> None:
        await self.memories.create_goal(goal)

    async def update_goal(self, goal: Goal) -> None:
        await self.memories.update_goal(goal)

    async def remove_goal(self, goal_id: str) -> bool:
        return await self.memories.remove_goal(goal_id)

    # ----- RelationshipStorage -----

    async def get_room(self, room_id: str) -> str | None:
        return await self.relationships.get_room(room_id)

    async def create_room(self, room_id: str) -> str:
        return await self.relationships.create_room(room_id)

    async def remove_room(self, room_id: str) -> bool:
        return await self.relationships.remove_room(room_id)

    async def get_account_by_id(self, user_id: str) -> Account | None:
        return await self.relationships.get_account_by_id(user_id)

    async def create_account(self, account: Account) -> bool:
        return await self.relationships.create_account(account)

    async def get_participants_for_account(self, user_id: str) -> list[str]:
        return await self.relationships.get_participants_for_account(user_id)

    async def get_participants_for_room(self, room_id: str) -> list[str]:
        return await self.relationships.get_participants_for_room(room_id)

    async def add_participant(self, user_id: str, room_id: str) -> bool:
        return await self.relationships.add_participant(user_id, room_id)

    async def remove_participant(self, user_id: str, room_id: str) -> bool:
        return await self.relationships.remove_participant(user_id, room_id)

    async def get_rooms_for_participant(self, user_id: str) -> list[str]:
        return await self.relationships.get_rooms_for_participant(user_id)

    async def get_rooms_for_participants(self, user_ids: Sequence[str]) -> list[str]:
        return await self.relationships.get_rooms_for_participants(user_ids)

    async def get_actor_details(self, room_id: str) -> list[Actor]:
        return await self.relationships.get_actor_details(room_id)
