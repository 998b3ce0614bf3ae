"""Default actions, evaluators and providers registered on every runtime."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import TYPE_CHECKING

from pydantic import ValidationError

from agentcortex.capabilities.base import Action
from agentcortex.capabilities.base import Evaluator
from agentcortex.capabilities.base import EvaluatorExample
from agentcortex.capabilities.base import HandlerCallback
from agentcortex.capabilities.base import Provider
from agentcortex.context.formatting import compose_context
from agentcortex.context.templates import FACT_EXTRACTION_TEMPLATE
from agentcortex.context.templates import GOAL_UPDATE_TEMPLATE
from agentcortex.context.templates import MESSAGE_HANDLER_TEMPLATE
from agentcortex.models import Content
from agentcortex.models import Goal
from agentcortex.models import GoalStatus
from agentcortex.models import Memory
from agentcortex.models import MessageExample
from agentcortex.models import Objective

if TYPE_CHECKING:
    from agentcortex.context.state import State
    from agentcortex.runtime import AgentRuntime

logger = logging.getLogger(__name__)

MAX_CONSECUTIVE_CONTINUES = 3


def _example(user: str, text: str, action: str | None = None) -> MessageExample:
    return MessageExample(user=user, content=Content(text=text, action=action))


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

NONE_ACTION = Action(
    name="NONE",
    similes=("NO_ACTION", "NO_RESPONSE", "NO_REACTION", "RESPONSE", "REPLY", "DEFAULT"),
    description=(
        "Respond but perform no additional action. This is the default if the "
        "agent is speaking and not doing anything additional."
    ),
    examples=(
        (
            _example("{{user1}}", "Hey whats up"),
            _example("{{user2}}", "oh hey", "NONE"),
        ),
        (
            _example("{{user1}}", "did u see some faster whisper just came out"),
            _example("{{user2}}", "yeah but its a pain to get into node.js", "NONE"),
        ),
    ),
)

IGNORE_ACTION = Action(
    name="IGNORE",
    similes=("STOP_TALKING", "STOP_CHATTING", "STOP_CONVERSATION"),
    description=(
        "Call this action if ignoring the user. If the user is aggressive, creepy "
        "or is finished with the conversation, use this action. Or, if both you "
        "and the user have already said goodbye, use this action instead of "
        "saying bye again."
    ),
    examples=(
        (
            _example("{{user1}}", "Go screw yourself"),
            _example("{{user2}}", "", "IGNORE"),
        ),
        (
            _example("{{user1}}", "Gotta go"),
            _example("{{user2}}", "Okay, talk to you later"),
            _example("{{user1}}", "Cya"),
            _example("{{user2}}", "", "IGNORE"),
        ),
    ),
)


async def _validate_continue(
    runtime: AgentRuntime, message: Memory, state: State | None
) -> bool:
    """Refuse once the agent has continued itself too many times in a row."""
    del state
    recent = await runtime.message_manager.get_memories(
        message.room_id, count=10, unique=False
    )
    own = [m for m in recent if m.user_id == runtime.agent_id]
    streak = own[:MAX_CONSECUTIVE_CONTINUES]
    return not (
        len(streak) == MAX_CONSECUTIVE_CONTINUES
        and all(m.content.action == CONTINUE_ACTION.name for m in streak)
    )


async def _handle_continue(
    runtime: AgentRuntime,
    message: Memory,
    state: State | None,
    options: dict[str, Any],
    callback: HandlerCallback | None,
) -> Memory:
    del options
    if state is None:
        state = await runtime.compose_state(message)
    state = await runtime.update_recent_message_state(state)
    context = compose_context(state, MESSAGE_HANDLER_TEMPLATE)
    content = await runtime.completion.complete_structured_message(context)
    response = await runtime.message_manager.add_embedding_to_memory(
        Memory(
            user_id=runtime.agent_id,
            agent_id=runtime.agent_id,
            room_id=message.room_id,
            content=content.model_copy(update={"in_reply_to": message.id}),
        )
    )
    await runtime.message_manager.create_memory(response)
    if callback is not None:
        await callback(response.content)
    return response


CONTINUE_ACTION = Action(
    name="CONTINUE",
    similes=("ELABORATE", "KEEP_TALKING"),
    description=(
        "Respond with this action if the user has asked the agent to continue, "
        "elaborate or expand on their previous message, or if the agent has more "
        "to say that does not fit in one message."
    ),
    examples=(
        (
            _example("{{user1}}", "we're planning a solo backpacking trip soon"),
            _example("{{user2}}", "oh sick", "CONTINUE"),
            _example("{{user2}}", "where are you going"),
        ),
    ),
    validate=_validate_continue,
    handler=_handle_continue,
)


# ---------------------------------------------------------------------------
# Evaluators
# ---------------------------------------------------------------------------


async def _validate_fact_extraction(
    runtime: AgentRuntime, message: Memory, state: State | None
) -> bool:
    """Reflect once per half-conversation worth of messages."""
    del state
    count = await runtime.message_manager.count_memories(
        message.room_id, unique=False
    )
    interval = math.ceil(runtime.get_conversation_length() / 2)
    return count > 0 and count % interval == 0


async def _handle_fact_extraction(
    runtime: AgentRuntime,
    message: Memory,
    state: State | None,
    options: dict[str, Any],
    callback: HandlerCallback | None,
) -> list[Memory]:
    del state, options, callback
    state = await runtime.compose_state(message)
    context = compose_context(state, FACT_EXTRACTION_TEMPLATE)
    claims = await runtime.completion.complete_object_array(context)

    created: list[Memory] = []
    for claim in claims:
        text = str(claim.get("claim") or "").strip()
        if (
            not text
            or claim.get("type") != "fact"
            or claim.get("already_known")
            or claim.get("in_bio")
        ):
            continue
        known = await runtime.fact_manager.get_cached_embeddings(text)
        if any(fact.room_id == message.room_id for fact in known):
            continue
        fact = await runtime.fact_manager.add_embedding_to_memory(
            Memory(
                user_id=runtime.agent_id,
                agent_id=runtime.agent_id,
                room_id=message.room_id,
                content=Content(text=text),
            )
        )
        await runtime.fact_manager.create_memory(fact, unique=True)
        created.append(fact)
    logger.info(
        "fact extraction room_id=%s claims=%d stored=%d",
        message.room_id,
        len(claims),
        len(created),
    )
    return created


FACT_EXTRACTION_EVALUATOR = Evaluator(
    name="FACT_EXTRACTION",
    similes=("GET_FACTS", "EXTRACT_CLAIMS", "GET_CLAIMS"),
    description=(
        "Extract factual information about the people in the conversation, "
        "the current events in the world, and anything else that might be "
        "important to remember."
    ),
    examples=(
        EvaluatorExample(
            context="Actors in the scene:\n{{user1}}: Programmer and moderator.",
            messages=(
                _example("{{user1}}", "I just moved to Lisbon last month."),
            ),
            outcome=(
                '[{"claim": "{{user1}} lives in Lisbon", "type": "fact", '
                '"in_bio": false, "already_known": false}]'
            ),
        ),
    ),
    validate=_validate_fact_extraction,
    handler=_handle_fact_extraction,
)


async def _validate_goal_update(
    runtime: AgentRuntime, message: Memory, state: State | None
) -> bool:
    del state
    goals = await runtime.storage.get_goals(
        message.room_id, only_in_progress=True, count=runtime.config.goals_count
    )
    return bool(goals)


def _apply_goal_update(goal: Goal, update: dict) -> Goal | None:
    changes: dict[str, Any] = {}
    if "status" in update:
        try:
            changes["status"] = GoalStatus(str(update["status"]).upper())
        except ValueError:
            logger.warning(
                "ignoring goal status goal_id=%s status=%s", goal.id, update["status"]
            )
    if isinstance(update.get("objectives"), list):
        try:
            changes["objectives"] = [
                Objective.model_validate(item) for item in update["objectives"]
            ]
        except ValidationError:
            logger.warning("ignoring malformed objectives goal_id=%s", goal.id)
    if not changes:
        return None
    return goal.model_copy(update=changes)


async def _handle_goal_update(
    runtime: AgentRuntime,
    message: Memory,
    state: State | None,
    options: dict[str, Any],
    callback: HandlerCallback | None,
) -> list[Goal]:
    del state, options, callback
    state = await runtime.compose_state(message)
    context = compose_context(state, GOAL_UPDATE_TEMPLATE)
    updates = await runtime.completion.complete_object_array(context)

    goals = await runtime.storage.get_goals(
        message.room_id, only_in_progress=True, count=runtime.config.goals_count
    )
    by_id = {goal.id: goal for goal in goals}
    updated: list[Goal] = []
    for update in updates:
        goal = by_id.get(str(update.get("id")))
        if goal is None:
            continue
        changed = _apply_goal_update(goal, update)
        if changed is None:
            continue
        await runtime.storage.update_goal(changed)
        updated.append(changed)
    logger.info(
        "goal update room_id=%s proposed=%d applied=%d",
        message.room_id,
        len(updates),
        len(updated),
    )
    return updated


GOAL_UPDATE_EVALUATOR = Evaluator(
    name="GOAL_UPDATE",
    similes=("UPDATE_GOALS", "UPDATE_GOAL"),
    description=(
        "Analyze the conversation and update the status of the goals based on "
        "the new information provided."
    ),
    examples=(
        EvaluatorExample(
            context="Goal: Help {{user1}} plan a trip\n- [ ] Pick a destination",
            messages=(_example("{{user1}}", "Let's go to Kyoto."),),
            outcome=(
                '[{"id": "<goal id>", "status": "IN_PROGRESS", "objectives": '
                '[{"description": "Pick a destination", "completed": true}]}]'
            ),
        ),
    ),
    validate=_validate_goal_update,
    handler=_handle_goal_update,
)


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


async def _current_time(
    runtime: AgentRuntime, message: Memory, state: State | None
) -> str:
    del runtime, message, state
    now = datetime.now(timezone.utc)
    return (
        f"The current date and time is {now:%Y-%m-%d %H:%M:%S} UTC. "
        "Please use this as your reference for any time-based operations "
        "or responses."
    )


TIME_PROVIDER = Provider(name="time", get=_current_time)


DEFAULT_ACTIONS = (NONE_ACTION, IGNORE_ACTION, CONTINUE_ACTION)
DEFAULT_EVALUATORS = (FACT_EXTRACTION_EVALUATOR, GOAL_UPDATE_EVALUATOR)
DEFAULT_PROVIDERS = (TIME_PROVIDER,)
