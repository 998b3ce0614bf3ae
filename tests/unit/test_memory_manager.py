"""Unit tests for the embedding cache and per-namespace memory managers."""

from __future__ import annotations

import asyncio

from agentcortex.memory import EmbeddingService
from agentcortex.memory import MemoryManager
from agentcortex.models import Content
from agentcortex.models import EMBEDDING_DIMENSION
from agentcortex.models import FACTS
from agentcortex.models import Memory
from agentcortex.models import MESSAGES
from agentcortex.observability import event_counts_snapshot
from tests.unit.fakes import fake_vector


class TestEmbeddingService:
    async def test_same_text_embeds_once(self, llm, storage):
        embedder = EmbeddingService(llm, storage)
        first = await embedder.embed("hello world")
        second = await embedder.embed("hello world")
        assert first == second == fake_vector("hello world")
        assert llm.embedded == ["hello world"]
        assert event_counts_snapshot()["embedding.embed"] == {
            "memo_hit": 1,
            "remote": 1,
        }

    async def test_concurrent_callers_share_one_remote_call(self, llm, storage):
        embedder = EmbeddingService(llm, storage)
        vectors = await asyncio.gather(*(embedder.embed("burst") for _ in range(8)))
        assert all(vector == vectors[0] for vector in vectors)
        assert llm.embedded == ["burst"]

    async def test_surrounding_whitespace_is_normalized(self, llm, storage):
        embedder = EmbeddingService(llm, storage)
        await embedder.embed("  padded\n")
        await embedder.embed("padded")
        assert llm.embedded == ["padded"]

    async def test_empty_text_is_zero_vector(self, llm, storage):
        embedder = EmbeddingService(llm, storage)
        vector = await embedder.embed("   ")
        assert vector == [0.0] * EMBEDDING_DIMENSION
        assert llm.embedded == []

    async def test_stored_message_vector_is_reused(self, llm, storage):
        await storage.create_memory(
            Memory(
                user_id="u",
                room_id="r",
                content=Content(text="seen before"),
                embedding=[0.25, 0.75],
            ),
            MESSAGES,
        )
        embedder = EmbeddingService(llm, storage)
        assert await embedder.embed("seen before") == [0.25, 0.75]
        assert llm.embedded == []
        assert event_counts_snapshot()["embedding.embed"] == {"store_hit": 1}

    async def test_stored_text_matches_after_normalization(self, llm, storage):
        await storage.create_memory(
            Memory(
                user_id="u",
                room_id="r",
                content=Content(text="seen before\n"),
                embedding=[0.5, 0.5],
            ),
            MESSAGES,
        )
        embedder = EmbeddingService(llm, storage)
        assert await embedder.embed("  seen before") == [0.5, 0.5]
        assert llm.embedded == []

    async def test_locks_are_dropped_once_released(self, llm, storage):
        embedder = EmbeddingService(llm, storage)
        for i in range(50):
            await embedder.embed(f"text {i}")
        await asyncio.gather(*(embedder.embed("burst") for _ in range(4)))
        assert embedder._locks == {}
        assert embedder._lock_users == {}

    async def test_memo_evicts_least_recently_used(self, llm, storage):
        embedder = EmbeddingService(llm, storage, memo_size=2)
        for text in ["a", "b", "a", "c", "a", "b"]:
            await embedder.embed(text)
        assert llm.embedded == ["a", "b", "c", "b"]

    async def test_zero_memo_size_disables_memo(self, llm, storage):
        embedder = EmbeddingService(llm, storage, memo_size=0)
        await embedder.embed("uncached")
        await embedder.embed("uncached")
        assert llm.embedded == ["uncached", "uncached"]

    async def test_returned_vectors_are_copies(self, llm, storage):
        embedder = EmbeddingService(llm, storage)
        vector = await embedder.embed("mutable")
        vector.append(42.0)
        assert await embedder.embed("mutable") == fake_vector("mutable")

    async def test_clear_forces_lookup_again(self, llm, storage):
        embedder = EmbeddingService(llm, storage)
        await embedder.embed("again")
        embedder.clear()
        await embedder.embed("again")
        assert llm.embedded == ["again", "again"]


class TestMemoryManager:
    async def test_add_embedding_only_when_missing(self, llm, storage):
        manager = MemoryManager(EmbeddingService(llm, storage), storage, FACTS)
        bare = Memory(user_id="u", room_id="r", content=Content(text="sky is blue"))
        embedded = await manager.add_embedding_to_memory(bare)
        assert embedded.embedding == fake_vector("sky is blue")
        assert bare.embedding is None

        preset = bare.model_copy(update={"embedding": [1.0, 0.0]})
        assert (await manager.add_embedding_to_memory(preset)).embedding == [1.0, 0.0]
        assert llm.embedded == ["sky is blue"]

    async def test_operations_are_bound_to_one_table(self, llm, storage):
        facts = MemoryManager(EmbeddingService(llm, storage), storage, FACTS)
        messages = MemoryManager(EmbeddingService(llm, storage), storage, MESSAGES)
        memory = Memory(user_id="u", room_id="r", content=Content(text="fact"))
        await facts.create_memory(memory)

        assert await facts.get_memory_by_id(memory.id) is not None
        assert await messages.get_memory_by_id(memory.id) is None
        assert await facts.count_memories("r") == 1
        assert await messages.count_memories("r") == 0

    async def test_unique_create_marks_record(self, llm, storage):
        manager = MemoryManager(EmbeddingService(llm, storage), storage, FACTS)
        memory = Memory(user_id="u", room_id="r", content=Content(text="only once"))
        await manager.create_memory(memory, unique=True)
        stored = await manager.get_memory_by_id(memory.id)
        assert stored.unique is True

    async def test_search_and_remove(self, llm, storage):
        manager = MemoryManager(EmbeddingService(llm, storage), storage, FACTS)
        for text in ("alpha", "beta"):
            memory = await manager.add_embedding_to_memory(
                Memory(user_id="u", room_id="r", content=Content(text=text))
            )
            await manager.create_memory(memory)

        ranked = await manager.search_memories_by_embedding(
            fake_vector("beta"), room_id="r", count=1
        )
        assert [m.content.text for m in ranked] == ["beta"]
        assert await manager.remove_all_memories("r") == 2
        assert await manager.get_memories("r") == []
