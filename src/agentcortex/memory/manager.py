"""Per-namespace memory manager bound to one storage table."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from agentcortex.memory.embedding import EmbeddingService
from agentcortex.models import Content
from agentcortex.models import Memory
from agentcortex.storage.base import MemoryStorage

logger = logging.getLogger(__name__)


class MemoryManager:
    """Memory operations for a single namespace ("table")."""

    def __init__(
        self,
        embedder: EmbeddingService,
        storage: MemoryStorage,
        table_name: str,
    ) -> None:
        self.embedder = embedder
        self.storage = storage
        self.table_name = table_name

    async def add_embedding_to_memory(self, memory: Memory) -> Memory:
        """Return *memory* with an embedding of its text, computing one if absent."""
        if memory.embedding:
            return memory
        vector = await self.embedder.embed(memory.content.text)
        return memory.model_copy(update={"embedding": vector})

    async def create_memory(self, memory: Memory, *, unique: bool = False) -> None:
        await self.storage.create_memory(memory, self.table_name, unique=unique)
        logger.debug(
            "memory created table=%s id=%s room_id=%s",
            self.table_name,
            memory.id,
            memory.room_id,
        )

    async def get_memory_by_id(self, memory_id: str) -> Memory | None:
        return await self.storage.get_memory_by_id(memory_id, self.table_name)

    async def get_memories(
        self,
        room_id: str,
        *,
        count: int = 10,
        unique: bool = True,
        before: int | None = None,
    ) -> list[Memory]:
        return await self.storage.get_memories(
            room_id, self.table_name, count=count, unique=unique, before=before
        )

    async def get_memories_by_room_ids(self, room_ids: Sequence[str]) -> list[Memory]:
        return await self.storage.get_memories_by_room_ids(room_ids, self.table_name)

    async def search_memories_by_embedding(
        self,
        embedding: Sequence[float],
        *,
        room_id: str | None = None,
        count: int = 10,
        match_threshold: float = 0.0,
        unique: bool = False,
    ) -> list[Memory]:
        return await self.storage.search_memories_by_embedding(
            embedding,
            self.table_name,
            room_id=room_id,
            count=count,
            match_threshold=match_threshold,
            unique=unique,
        )

    async def get_cached_embeddings(self, text: str) -> list[Memory]:
        return await self.storage.get_cached_embeddings(text, self.table_name)

    async def update_memory(self, memory_id: str, content: Content) -> Memory | None:
        return await self.storage.update_memory(memory_id, self.table_name, content)

    async def remove_memory(self, memory_id: str) -> bool:
        return await self.storage.remove_memory(memory_id, self.table_name)

    async def remove_all_memories(self, room_id: str) -> int:
        return await self.storage.remove_all_memories(room_id, self.table_name)

    async def count_memories(self, room_id: str, *, unique: bool = True) -> int:
        return await self.storage.count_memories(
            room_id, self.table_name, unique=unique
        )
