"""Process-local implementation of the full storage contract.

Used by tests and single-process deployments.  Records are copied on the
way in and on the way out so callers never share mutable state with the
store.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from agentcortex.errors import DocumentInUseError
from agentcortex.errors import DuplicateIdError
from agentcortex.models import Account
from agentcortex.models import Actor
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


class InMemoryDatabaseAdapter:
    """Dict-backed memories, goals, accounts, rooms and participants."""

    def __init__(self) -> None:
        self._memories: dict[str, dict[str, Memory]] = {}
        self._goals: dict[str, Goal] = {}
        self._accounts: dict[str, Account] = {}
        self._rooms: set[str] = set()
        # (user_id, room_id) edges in insertion order
        self._participants: dict[tuple[str, str], None] = {}
        self._write_lock = asyncio.Lock()

    # ----- Memories -----

    def _table(self, table: str) -> dict[str, Memory]:
        return self._memories.setdefault(table, {})

    async def create_memory(
        self, memory: Memory, table: str, *, unique: bool = False
    ) -> None:
        stored = memory.model_copy(deep=True)
        if unique:
            stored.unique = True
        async with self._write_lock:
            records = self._table(table)
            existing = records.get(stored.id)
            if existing is not None:
                raise DuplicateIdError(stored.id, table, existing.room_id)
            records[stored.id] = stored

    async def get_memory_by_id(self, memory_id: str, table: str) -> Memory | None:
        memory = self._table(table).get(memory_id)
        return memory.model_copy(deep=True) if memory else None

    async def get_memories(
        self,
        room_id: str,
        table: str,
        *,
        count: int | None = None,
        unique: bool = True,
        before: int | None = None,
    ) -> list[Memory]:
        candidates = [
            m
            for m in self._table(table).values()
            if m.room_id == room_id and (before is None or m.created_at < before)
        ]
        ordered = newest_first(candidates)
        if unique:
            ordered = collapse_duplicates(ordered)
        if count is not None:
            ordered = ordered[:count]
        return [m.model_copy(deep=True) for m in ordered]

    async def get_memories_by_room_ids(
        self, room_ids: Sequence[str], table: str
    ) -> list[Memory]:
        wanted = set(room_ids)
        return [
            m.model_copy(deep=True)
            for m in self._table(table).values()
            if m.room_id in wanted
        ]

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
        candidates = [
            m
            for m in self._table(table).values()
            if room_id is None or m.room_id == room_id
        ]
        if unique:
            candidates = collapse_duplicates(newest_first(candidates))
        ranked = rank_by_similarity(
            candidates, embedding, count=count, match_threshold=match_threshold
        )
        return [m.model_copy(deep=True) for m in ranked]

    async def get_cached_embeddings(self, text: str, table: str) -> list[Memory]:
        key = normalize_cache_text(text)
        matches = [
            m
            for m in self._table(table).values()
            if m.embedding and normalize_cache_text(m.content.text) == key
        ]
        return [m.model_copy(deep=True) for m in newest_first(matches)]

    async def update_memory(
        self, memory_id: str, table: str, content: Content
    ) -> Memory | None:
        async with self._write_lock:
            records = self._table(table)
            existing = records.get(memory_id)
            if existing is None:
                return None
            updated = existing.model_copy(update={"content": content.model_copy(deep=True)})
            records[memory_id] = updated
            return updated.model_copy(deep=True)

    async def remove_memory(self, memory_id: str, table: str) -> bool:
        async with self._write_lock:
            if table == DOCUMENTS:
                self._ensure_unreferenced(memory_id)
            return self._table(table).pop(memory_id, None) is not None

    async def remove_all_memories(self, room_id: str, table: str) -> int:
        async with self._write_lock:
            records = self._table(table)
            doomed = [mid for mid, m in records.items() if m.room_id == room_id]
            if table == DOCUMENTS:
                for memory_id in doomed:
                    self._ensure_unreferenced(memory_id)
            for memory_id in doomed:
                del records[memory_id]
        logger.debug(
            "removed memories table=%s room_id=%s count=%d", table, room_id, len(doomed)
        )
        return len(doomed)

    async def count_memories(
        self, room_id: str, table: str, *, unique: bool = True
    ) -> int:
        return len(await self.get_memories(room_id, table, unique=unique))

    def _ensure_unreferenced(self, document_id: str) -> None:
        referencing = sum(
            1
            for fragment in self._table(FRAGMENTS).values()
            if fragment.content.source == document_id
        )
        if referencing:
            raise DocumentInUseError(document_id, referencing)

    # ----- Goals -----

    async def get_goals(
        self,
        room_id: str,
        *,
        user_id: str | None = None,
        only_in_progress: bool = True,
        count: int = 5,
    ) -> list[Goal]:
        goals = [
            g
            for g in self._goals.values()
            if g.room_id == room_id
            and (user_id is None or g.user_id == user_id)
            and (not only_in_progress or g.status == GoalStatus.IN_PROGRESS)
        ]
        return [g.model_copy(deep=True) for g in goals[:count]]

    async def create_goal(self, goal: Goal) -> None:
        async with self._write_lock:
            if goal.id in self._goals:
                raise DuplicateIdError(goal.id, "goals", goal.room_id)
            self._goals[goal.id] = goal.model_copy(deep=True)

    async def update_goal(self, goal: Goal) -> None:
        async with self._write_lock:
            self._goals[goal.id] = goal.model_copy(deep=True)

    async def remove_goal(self, goal_id: str) -> bool:
        async with self._write_lock:
            return self._goals.pop(goal_id, None) is not None

    # ----- Rooms -----

    async def get_room(self, room_id: str) -> str | None:
        return room_id if room_id in self._rooms else None

    async def create_room(self, room_id: str) -> str:
        self._rooms.add(room_id)
        return room_id

    async def remove_room(self, room_id: str) -> bool:
        if room_id not in self._rooms:
            return False
        self._rooms.discard(room_id)
        for edge in [e for e in self._participants if e[1] == room_id]:
            del self._participants[edge]
        return True

    # ----- Accounts -----

    async def get_account_by_id(self, user_id: str) -> Account | None:
        account = self._accounts.get(user_id)
        return account.model_copy(deep=True) if account else None

    async def create_account(self, account: Account) -> bool:
        if account.id in self._accounts:
            return False
        self._accounts[account.id] = account.model_copy(deep=True)
        return True

    # ----- Participants -----

    async def get_participants_for_account(self, user_id: str) -> list[str]:
        return [room for user, room in self._participants if user == user_id]

    async def get_participants_for_room(self, room_id: str) -> list[str]:
        return [user for user, room in self._participants if room == room_id]

    async def add_participant(self, user_id: str, room_id: str) -> bool:
        edge = (user_id, room_id)
        if edge in self._participants:
            return False
        self._participants[edge] = None
        return True

    async def remove_participant(self, user_id: str, room_id: str) -> bool:
        edge = (user_id, room_id)
        if edge not in self._participants:
            return False
        del self._participants[edge]
        return True

    async def get_rooms_for_participant(self, user_id: str) -> list[str]:
        return await self.get_participants_for_account(user_id)

    async def get_rooms_for_participants(self, user_ids: Sequence[str]) -> list[str]:
        """Rooms in which every one of *user_ids* participates."""
        if not user_ids:
            return []
        shared: list[str] | None = None
        for user_id in dict.fromkeys(user_ids):
            rooms = await self.get_participants_for_account(user_id)
            shared = rooms if shared is None else [r for r in shared if r in rooms]
        return shared or []

    async def get_actor_details(self, room_id: str) -> list[Actor]:
        actors: list[Actor] = []
        for user_id in await self.get_participants_for_room(room_id):
            account = self._accounts.get(user_id)
            if account is not None:
                actors.append(Actor.from_account(account))
        return actors
