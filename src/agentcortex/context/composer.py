"""Builds the per-request ``State`` from memories, character and capabilities.

Independent reads run concurrently and are joined before rendering; the
relevant-facts search is chained onto the recent-facts read.  Any failing
branch aborts the whole composition.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
from collections.abc import Mapping
from collections.abc import Sequence
from time import perf_counter
from typing import Any
from typing import TYPE_CHECKING

from agentcortex.capabilities.formatting import compose_action_examples
from agentcortex.capabilities.formatting import format_action_names
from agentcortex.capabilities.formatting import format_actions
from agentcortex.capabilities.formatting import format_evaluator_examples
from agentcortex.capabilities.formatting import format_evaluator_names
from agentcortex.capabilities.formatting import format_evaluators
from agentcortex.context.formatting import add_header
from agentcortex.context.formatting import format_actors
from agentcortex.context.formatting import format_attachments
from agentcortex.context.formatting import format_facts
from agentcortex.context.formatting import format_goals_as_string
from agentcortex.context.formatting import format_messages
from agentcortex.context.formatting import format_posts
from agentcortex.context.formatting import join_naturally
from agentcortex.context.formatting import redact_stale_attachments
from agentcortex.context.state import State
from agentcortex.models import Attachment
from agentcortex.models import Memory
from agentcortex.observability import record_latency
from agentcortex.placeholders import fill_user_placeholders
from agentcortex.placeholders import sample_names
from agentcortex.storage.base import newest_first

if TYPE_CHECKING:
    from agentcortex.runtime import AgentRuntime

logger = logging.getLogger(__name__)

BIO_SAMPLE = 3
LORE_SAMPLE = 10
TOPICS_SAMPLE = 5
POST_EXAMPLES_SAMPLE = 50
MESSAGE_EXAMPLES_SAMPLE = 5
ACTION_EXAMPLES_COUNT = 10


class StateComposer:
    """Assembles ``State`` snapshots for one runtime."""

    def __init__(
        self, runtime: AgentRuntime, *, rng: random.Random | None = None
    ) -> None:
        self._runtime = runtime
        self._rng = rng or random.Random()

    @property
    def rng(self) -> random.Random:
        return self._rng

    async def compose(
        self, message: Memory, extra_keys: Mapping[str, Any] | None = None
    ) -> State:
        start = perf_counter()
        ok = False
        try:
            state = await self._compose(message, extra_keys or {})
            ok = True
            return state
        finally:
            record_latency(
                operation="state.compose",
                duration_ms=(perf_counter() - start) * 1000,
                ok=ok,
            )

    async def update_recent_message_state(self, state: State) -> State:
        """Refresh only the recent-messages slice and the attachments block."""
        runtime = self._runtime
        recent = await runtime.message_manager.get_memories(
            state["roomId"],
            count=runtime.get_conversation_length(),
            unique=False,
        )
        recent = redact_stale_attachments(
            recent, runtime.config.attachment_window_ms
        )
        actors = state.get("actorsData") or []
        return state.merge(
            recentMessages=add_header(
                "# Conversation Messages", format_messages(recent, actors)
            ),
            recentMessagesData=recent,
            attachments=add_header(
                "# Attachments", format_attachments(_oldest_first_attachments(recent))
            ),
        )

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    async def _compose(
        self, message: Memory, extra_keys: Mapping[str, Any]
    ) -> State:
        runtime = self._runtime
        character = runtime.character
        room_id = message.room_id
        conversation_length = runtime.get_conversation_length()

        (
            actors_data,
            recent_messages_data,
            (recent_facts_data, relevant_facts_data),
            goals_data,
            recent_interactions,
        ) = await asyncio.gather(
            runtime.storage.get_actor_details(room_id),
            runtime.message_manager.get_memories(
                room_id, count=conversation_length, unique=False
            ),
            self._facts(room_id, math.ceil(conversation_length / 2)),
            runtime.storage.get_goals(
                room_id,
                only_in_progress=False,
                count=runtime.config.goals_count,
            ),
            self._recent_interactions(message),
        )

        recent_messages_data = redact_stale_attachments(
            recent_messages_data, runtime.config.attachment_window_ms
        )
        if any(m.content.attachments for m in recent_messages_data):
            attachments = _oldest_first_attachments(recent_messages_data)
        else:
            attachments = list(message.content.attachments)

        agent_name = next(
            (a.name for a in actors_data if a.id == runtime.agent_id),
            character.name,
        )
        sender_name = next(
            (a.name for a in actors_data if a.id == message.user_id), ""
        )
        message_interactions = await self._format_interactions(recent_interactions)

        initial = State(
            {
                "agentId": runtime.agent_id,
                "agentName": agent_name,
                "senderName": sender_name,
                "roomId": room_id,
                **self._character_fields(conversation_length),
                "actors": add_header("# Actors", format_actors(actors_data)),
                "actorsData": actors_data,
                "goals": add_header(
                    "# Goals\n"
                    f"{agent_name} should prioritize accomplishing the "
                    "objectives that are in progress.",
                    format_goals_as_string(goals_data),
                ),
                "goalsData": goals_data,
                "recentMessages": add_header(
                    "# Conversation Messages",
                    format_messages(recent_messages_data, actors_data),
                ),
                "recentPosts": add_header(
                    "# Posts in Thread",
                    format_posts(
                        recent_messages_data, actors_data, conversation_header=False
                    ),
                ),
                "recentMessagesData": recent_messages_data,
                "recentFacts": add_header(
                    "# Recent Facts", format_facts(recent_facts_data)
                ),
                "recentFactsData": recent_facts_data,
                "relevantFacts": add_header(
                    "# Relevant Facts", format_facts(relevant_facts_data)
                ),
                "relevantFactsData": relevant_facts_data,
                "attachments": add_header(
                    "# Attachments", format_attachments(attachments)
                ),
                "recentMessageInteractions": message_interactions,
                "recentPostInteractions": format_posts(
                    recent_interactions, actors_data, conversation_header=True
                ),
                "recentInteractionsData": recent_interactions,
            },
            **extra_keys,
        )

        dispatcher = runtime.dispatcher
        actions_data, evaluators_data, providers = await asyncio.gather(
            dispatcher.validate_actions(runtime, message, initial),
            dispatcher.validate_evaluators(runtime, message, initial),
            dispatcher.collect_providers(runtime, message, initial),
        )

        rng = self._rng
        capability_fields = {
            "actionNames": "Possible response actions: "
            + format_action_names(actions_data, rng),
            "actions": add_header(
                "# Available Actions", format_actions(actions_data, rng)
            ),
            "actionExamples": add_header(
                "# Action Examples",
                compose_action_examples(actions_data, ACTION_EXAMPLES_COUNT, rng),
            ),
            "actionsData": actions_data,
            "evaluators": format_evaluators(evaluators_data),
            "evaluatorNames": format_evaluator_names(evaluators_data),
            "evaluatorExamples": format_evaluator_examples(evaluators_data, rng),
            "evaluatorsData": evaluators_data,
            "providers": add_header(
                f"# Additional Information About {character.name} and The World",
                "\n".join(providers),
            ),
        }
        logger.debug(
            "state composed room_id=%s messages=%d facts=%d relevant=%d "
            "actions=%d evaluators=%d",
            room_id,
            len(recent_messages_data),
            len(recent_facts_data),
            len(relevant_facts_data),
            len(actions_data),
            len(evaluators_data),
        )
        # Caller-supplied keys win over every computed field.
        return initial.merge(capability_fields, **extra_keys)

    async def _facts(
        self, room_id: str, recent_count: int
    ) -> tuple[list[Memory], list[Memory]]:
        """Recent facts, then similar facts not already in that page."""
        facts = self._runtime.fact_manager
        recent = await facts.get_memories(room_id, count=recent_count)
        if len(recent) < recent_count or not recent or not recent[0].embedding:
            return recent, []
        seen = {fact.id for fact in recent}
        similar = await facts.search_memories_by_embedding(
            recent[0].embedding, room_id=room_id, count=recent_count
        )
        return recent, [fact for fact in similar if fact.id not in seen]

    async def _recent_interactions(self, message: Memory) -> list[Memory]:
        """Messages from other rooms shared by the sender and the agent."""
        runtime = self._runtime
        if message.user_id == runtime.agent_id:
            return []
        rooms = await runtime.storage.get_rooms_for_participants(
            [message.user_id, runtime.agent_id]
        )
        other_rooms = [room for room in rooms if room != message.room_id]
        if not other_rooms:
            return []
        memories = await runtime.message_manager.get_memories_by_room_ids(other_rooms)
        return newest_first(memories)[: runtime.config.recent_interactions_count]

    async def _format_interactions(self, interactions: Sequence[Memory]) -> str:
        runtime = self._runtime
        user_ids = list(
            dict.fromkeys(
                m.user_id for m in interactions if m.user_id != runtime.agent_id
            )
        )
        accounts = await asyncio.gather(
            *(runtime.storage.get_account_by_id(user_id) for user_id in user_ids)
        )
        usernames = {
            user_id: account.username if account else "unknown"
            for user_id, account in zip(user_ids, accounts)
        }
        return "\n".join(
            f"{runtime.character.name if m.user_id == runtime.agent_id else usernames[m.user_id]}: "
            f"{m.content.text}"
            for m in interactions
        )

    # ------------------------------------------------------------------
    # Character sampling
    # ------------------------------------------------------------------

    def _sample(self, items: Sequence[Any], count: int) -> list[Any]:
        return self._rng.sample(list(items), min(count, len(items)))

    def _character_fields(self, conversation_length: int) -> dict[str, Any]:
        character = self._runtime.character
        rng = self._rng
        name = character.name

        bio = character.bio
        if isinstance(bio, list):
            bio = " ".join(self._sample(bio, BIO_SAMPLE))

        topics = self._sample(character.topics, TOPICS_SAMPLE)
        post_examples = "\n".join(
            self._sample(character.post_examples, POST_EXAMPLES_SAMPLE)
        )

        conversations = []
        for example in self._sample(
            character.message_examples, MESSAGE_EXAMPLES_SAMPLE
        ):
            names = sample_names(rng)
            conversations.append(
                "\n".join(
                    fill_user_placeholders(
                        f"{line.user}: {line.content.text}", names
                    )
                    for line in example
                )
            )

        directions = conversation_length // 2
        style = character.style
        message_directions = self._sample([*style.all, *style.chat], directions)
        post_directions = self._sample([*style.all, *style.post], directions)

        return {
            "bio": bio,
            "lore": "\n".join(self._sample(character.lore, LORE_SAMPLE)),
            "adjective": rng.choice(character.adjectives)
            if character.adjectives
            else "",
            "topic": rng.choice(character.topics) if character.topics else "",
            "topics": f"{name} is interested in {join_naturally(topics)}"
            if topics
            else "",
            "characterPostExamples": add_header(
                f"# Example Posts for {name}", post_examples
            ),
            "characterMessageExamples": add_header(
                f"# Example Conversations for {name}", "\n\n".join(conversations)
            ),
            "messageDirections": add_header(
                f"# Message Directions for {name}", "\n".join(message_directions)
            ),
            "postDirections": add_header(
                f"# Post Directions for {name}", "\n".join(post_directions)
            ),
        }


def _oldest_first_attachments(messages: Sequence[Memory]) -> list[Attachment]:
    attachments: list[Attachment] = []
    for message in reversed(messages):
        attachments.extend(message.content.attachments)
    return attachments
