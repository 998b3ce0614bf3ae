"""Integration tests for the Redis memory storage against a real server."""

from __future__ import annotations

import asyncio

import pytest

from agentcortex.errors import DocumentInUseError
from agentcortex.errors import DuplicateIdError
from agentcortex.models import Content
from agentcortex.models import DOCUMENTS
from agentcortex.models import FACTS
from agentcortex.models import FRAGMENTS
from agentcortex.models import Goal
from agentcortex.models import GoalStatus
from agentcortex.models import Memory
from agentcortex.models import MESSAGES


def _memory(text: str, created_at: int, *, room: str = "room-1", **kwargs) -> Memory:
    content = kwargs.pop("content", {})
    return Memory(
        user_id="user-1",
        room_id=room,
        content=Content(text=text, **content),
        created_at=created_at,
        **kwargs,
    )


class TestRedisMemories:
    async def test_round_trip(self, memory_storage):
        memory = _memory("persisted", 1000, embedding=[0.5, 0.25])
        await memory_storage.create_memory(memory, MESSAGES)
        assert await memory_storage.get_memory_by_id(memory.id, MESSAGES) == memory

    async def test_concurrent_creates_of_one_id(self, memory_storage):
        memory = _memory("racy", 1000)
        results = await asyncio.gather(
            *(memory_storage.create_memory(memory, MESSAGES) for _ in range(10)),
            return_exceptions=True,
        )
        assert sum(result is None for result in results) == 1
        assert sum(isinstance(result, DuplicateIdError) for result in results) == 9
        assert await memory_storage.count_memories("room-1", MESSAGES, unique=False) == 1

    async def test_listing_order_count_and_before(self, memory_storage):
        for i in range(6):
            await memory_storage.create_memory(_memory(f"m{i}", 1000 + i), MESSAGES)

        page = await memory_storage.get_memories("room-1", MESSAGES, count=3, unique=False)
        assert [m.content.text for m in page] == ["m5", "m4", "m3"]
        older = await memory_storage.get_memories(
            "room-1", MESSAGES, count=2, unique=False, before=1003
        )
        assert [m.content.text for m in older] == ["m2", "m1"]

    async def test_unique_listing_collapses_text(self, memory_storage):
        for i, text in enumerate(["echo", "other", "echo"]):
            await memory_storage.create_memory(_memory(text, 1000 + i), MESSAGES)
        unique = await memory_storage.get_memories("room-1", MESSAGES)
        assert [m.content.text for m in unique] == ["echo", "other"]
        assert await memory_storage.count_memories("room-1", MESSAGES) == 2
        assert await memory_storage.count_memories("room-1", MESSAGES, unique=False) == 3

    async def test_similarity_search_and_cache(self, memory_storage):
        target = _memory("target", 1, embedding=[0.1, 0.9])
        await memory_storage.create_memory(target, FACTS)
        await memory_storage.create_memory(_memory("other", 2, embedding=[0.9, 0.1]), FACTS)

        ranked = await memory_storage.search_memories_by_embedding(
            [0.1, 0.9], FACTS, room_id="room-1", count=1
        )
        assert [m.id for m in ranked] == [target.id]
        cached = await memory_storage.get_cached_embeddings("target", FACTS)
        assert [m.id for m in cached] == [target.id]
        padded = await memory_storage.get_cached_embeddings(" target\n", FACTS)
        assert [m.id for m in padded] == [target.id]

    async def test_update_reindexes_text(self, memory_storage):
        memory = _memory("before", 1, embedding=[1.0])
        await memory_storage.create_memory(memory, MESSAGES)
        await memory_storage.update_memory(memory.id, MESSAGES, Content(text="after"))
        assert await memory_storage.get_cached_embeddings("before", MESSAGES) == []
        assert [m.id for m in await memory_storage.get_cached_embeddings("after", MESSAGES)] == [
            memory.id
        ]

    async def test_documents_guarded_by_fragments(self, memory_storage):
        document = _memory("document", 1)
        fragment = _memory("fragment", 2, content={"source": document.id})
        await memory_storage.create_memory(document, DOCUMENTS)
        await memory_storage.create_memory(fragment, FRAGMENTS)

        with pytest.raises(DocumentInUseError):
            await memory_storage.remove_memory(document.id, DOCUMENTS)
        assert await memory_storage.remove_memory(fragment.id, FRAGMENTS) is True
        assert await memory_storage.remove_memory(document.id, DOCUMENTS) is True
        assert await memory_storage.get_memory_by_id(document.id, DOCUMENTS) is None

    async def test_clear_removes_prefixed_keys_only(self, memory_storage, redis_client):
        await redis_client.set("unrelated", "keep")
        await memory_storage.create_memory(_memory("gone", 1), MESSAGES)
        await memory_storage.clear()
        assert await memory_storage.get_memories("room-1", MESSAGES) == []
        assert await redis_client.get("unrelated") == b"keep"


class TestRedisGoals:
    async def test_goal_lifecycle(self, memory_storage):
        goal = Goal(room_id="room-1", user_id="user-1", name="Ship")
        await memory_storage.create_goal(goal)
        with pytest.raises(DuplicateIdError):
            await memory_storage.create_goal(goal)

        assert [g.id for g in await memory_storage.get_goals("room-1")] == [goal.id]
        await memory_storage.update_goal(goal.model_copy(update={"status": GoalStatus.DONE}))
        assert await memory_storage.get_goals("room-1") == []
        done = await memory_storage.get_goals("room-1", only_in_progress=False)
        assert done[0].status == GoalStatus.DONE
        assert await memory_storage.remove_goal(goal.id) is True
        assert await memory_storage.get_goals("room-1", only_in_progress=False) == []
