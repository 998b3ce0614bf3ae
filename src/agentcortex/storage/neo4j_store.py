"""Neo4j-backed relationship storage — accounts, rooms and participation.

The graph is ``(:Account)-[:PARTICIPATES_IN]->(:Room)``.  ``MERGE`` keeps
room creation and participant insertion idempotent.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from neo4j import AsyncDriver

from agentcortex.models import Account
from agentcortex.models import Actor

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_CONSTRAINTS = [
    "CREATE CONSTRAINT account_unique_id IF NOT EXISTS FOR (a:Account) REQUIRE a.id IS UNIQUE",
    "CREATE CONSTRAINT room_unique_id IF NOT EXISTS FOR (r:Room) REQUIRE r.id IS UNIQUE",
]


async def init_relationship_schema(driver: AsyncDriver) -> None:
    """Create uniqueness constraints (idempotent).

    Each statement runs in its own transaction; Neo4j rejects batched
    schema commands.
    """
    async with driver.session() as session:
        for stmt in _CONSTRAINTS:
            await session.run(stmt)


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def _account_props(account: Account) -> dict:
    # Neo4j properties cannot hold maps; details travel as a JSON string.
    return {
        "id": account.id,
        "name": account.name,
        "username": account.username,
        "email": account.email,
        "details": json.dumps(account.details),
    }


def _account_from_props(props: dict) -> Account:
    details = props.get("details")
    return Account(
        id=props["id"],
        name=props.get("name", ""),
        username=props.get("username", ""),
        email=props.get("email"),
        details=json.loads(details) if details else {},
    )


# ---------------------------------------------------------------------------
# Neo4jRelationshipStorage
# ---------------------------------------------------------------------------


class Neo4jRelationshipStorage:
    """Async relationship graph on Neo4j."""

    def __init__(self, driver: AsyncDriver) -> None:
        self._driver = driver

    # ----- Rooms -----

    async def get_room(self, room_id: str) -> str | None:
        query = "MATCH (r:Room {id: $id}) RETURN r.id AS id"
        async with self._driver.session() as session:
            result = await session.run(query, id=room_id)
            record = await result.single()
            return record["id"] if record else None

    async def create_room(self, room_id: str) -> str:
        query = "MERGE (r:Room {id: $id}) RETURN r.id AS id"
        async with self._driver.session() as session:
            result = await session.run(query, id=room_id)
            record = await result.single()
            return record["id"]

    async def remove_room(self, room_id: str) -> bool:
        query = "MATCH (r:Room {id: $id}) DETACH DELETE r RETURN count(r) AS cnt"
        async with self._driver.session() as session:
            result = await session.run(query, id=room_id)
            record = await result.single()
            return record["cnt"] > 0

    # ----- Accounts -----

    async def get_account_by_id(self, user_id: str) -> Account | None:
        query = (
            "MATCH (a:Account {id: $id}) WHERE a.name IS NOT NULL "
            "RETURN properties(a) AS props"
        )
        async with self._driver.session() as session:
            result = await session.run(query, id=user_id)
            record = await result.single()
            if record is None:
                return None
            return _account_from_props(record["props"])

    async def create_account(self, account: Account) -> bool:
        """Create *account*; return ``False`` if the id already exists.

        A placeholder node left behind by ``add_participant`` (no name yet)
        counts as absent and is filled in.
        """
        query = (
            "MERGE (a:Account {id: $props.id}) "
            "WITH a, a.name IS NULL AS created "
            "FOREACH (_ IN CASE WHEN created THEN [1] ELSE [] END | SET a += $props) "
            "RETURN created"
        )
        async with self._driver.session() as session:
            result = await session.run(query, props=_account_props(account))
            record = await result.single()
            return bool(record["created"])

    # ----- Participants -----

    async def add_participant(self, user_id: str, room_id: str) -> bool:
        """Link an account to a room; return ``False`` if already linked.

        Missing account or room nodes are created on the fly.
        """
        query = (
            "MERGE (a:Account {id: $user_id}) "
            "MERGE (r:Room {id: $room_id}) "
            "MERGE (a)-[p:PARTICIPATES_IN]->(r) "
            "ON CREATE SET p._created = true "
            "WITH p, coalesce(p._created, false) AS created "
            "REMOVE p._created "
            "RETURN created"
        )
        async with self._driver.session() as session:
            result = await session.run(query, user_id=user_id, room_id=room_id)
            record = await result.single()
            return bool(record["created"])

    async def remove_participant(self, user_id: str, room_id: str) -> bool:
        query = (
            "MATCH (:Account {id: $user_id})-[p:PARTICIPATES_IN]->(:Room {id: $room_id}) "
            "DELETE p RETURN count(p) AS cnt"
        )
        async with self._driver.session() as session:
            result = await session.run(query, user_id=user_id, room_id=room_id)
            record = await result.single()
            return record["cnt"] > 0

    async def get_participants_for_account(self, user_id: str) -> list[str]:
        query = (
            "MATCH (:Account {id: $user_id})-[:PARTICIPATES_IN]->(r:Room) "
            "RETURN r.id AS id ORDER BY id"
        )
        return await self._run_id_query(query, user_id=user_id)

    async def get_participants_for_room(self, room_id: str) -> list[str]:
        query = (
            "MATCH (a:Account)-[:PARTICIPATES_IN]->(:Room {id: $room_id}) "
            "RETURN a.id AS id ORDER BY id"
        )
        return await self._run_id_query(query, room_id=room_id)

    async def get_rooms_for_participant(self, user_id: str) -> list[str]:
        return await self.get_participants_for_account(user_id)

    async def get_rooms_for_participants(self, user_ids: Sequence[str]) -> list[str]:
        """Rooms in which every one of *user_ids* participates."""
        wanted = list(dict.fromkeys(user_ids))
        if not wanted:
            return []
        query = (
            "MATCH (a:Account)-[:PARTICIPATES_IN]->(r:Room) "
            "WHERE a.id IN $user_ids "
            "WITH r, count(DISTINCT a) AS members "
            "WHERE members = $expected "
            "RETURN r.id AS id ORDER BY id"
        )
        return await self._run_id_query(query, user_ids=wanted, expected=len(wanted))

    async def get_actor_details(self, room_id: str) -> list[Actor]:
        query = (
            "MATCH (a:Account)-[:PARTICIPATES_IN]->(:Room {id: $room_id}) "
            "RETURN properties(a) AS props ORDER BY a.id"
        )
        async with self._driver.session() as session:
            result = await session.run(query, room_id=room_id)
            records = [record async for record in result]
        actors = []
        for record in records:
            props = record["props"]
            if "name" not in props:
                # Placeholder node created by add_participant, no account yet.
                continue
            actors.append(Actor.from_account(_account_from_props(props)))
        return actors

    # ----- internal -----

    async def _run_id_query(self, query: str, **params: object) -> list[str]:
        async with self._driver.session() as session:
            result = await session.run(query, **params)
            return [record["id"] async for record in result]
