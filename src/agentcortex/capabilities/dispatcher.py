"""Routes model output to actions and evaluators.

Action resolution is fuzzy: names are compared after lowercasing and
dropping underscores, and a registered name matches when either side
contains the other.  Aliases are only consulted when no name matches.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from agentcortex.capabilities.base import Action
from agentcortex.capabilities.base import Evaluator
from agentcortex.capabilities.base import HandlerCallback
from agentcortex.capabilities.formatting import format_evaluator_examples
from agentcortex.capabilities.formatting import format_evaluator_names
from agentcortex.capabilities.formatting import format_evaluators
from agentcortex.capabilities.registry import CapabilityRegistry
from agentcortex.context.formatting import compose_context
from agentcortex.context.state import State
from agentcortex.context.templates import EVALUATION_TEMPLATE
from agentcortex.models import Memory
from agentcortex.observability import record_event

if TYPE_CHECKING:
    from agentcortex.runtime import AgentRuntime

logger = logging.getLogger(__name__)


def normalize_action_name(name: str) -> str:
    return name.strip().lower().replace("_", "")


def _names_overlap(candidate: str, chosen: str) -> bool:
    normalized = normalize_action_name(candidate)
    return bool(normalized) and (chosen in normalized or normalized in chosen)


class CapabilityDispatcher:
    """Validation, resolution and execution over one ``CapabilityRegistry``."""

    def __init__(self, registry: CapabilityRegistry) -> None:
        self.registry = registry

    normalize_action_name = staticmethod(normalize_action_name)

    def resolve_action(self, name: str) -> Action | None:
        """First action whose name, then whose alias, overlaps *name*."""
        chosen = normalize_action_name(name)
        if not chosen:
            return None
        actions = self.registry.actions
        for action in actions:
            if _names_overlap(action.name, chosen):
                return action
        for action in actions:
            if any(_names_overlap(simile, chosen) for simile in action.similes):
                return action
        return None

    async def validate_actions(
        self, runtime: AgentRuntime, message: Memory, state: State | None
    ) -> list[Action]:
        actions = self.registry.actions
        results = await asyncio.gather(
            *(action.validate(runtime, message, state) for action in actions)
        )
        return [action for action, ok in zip(actions, results) if ok]

    async def validate_evaluators(
        self, runtime: AgentRuntime, message: Memory, state: State | None
    ) -> list[Evaluator]:
        evaluators = self.registry.evaluators
        results = await asyncio.gather(
            *(evaluator.validate(runtime, message, state) for evaluator in evaluators)
        )
        return [evaluator for evaluator, ok in zip(evaluators, results) if ok]

    async def collect_providers(
        self, runtime: AgentRuntime, message: Memory, state: State | None
    ) -> list[str]:
        texts = await asyncio.gather(
            *(provider.get(runtime, message, state) for provider in self.registry.providers)
        )
        return [text for text in texts if text]

    async def process_actions(
        self,
        runtime: AgentRuntime,
        message: Memory,
        responses: Sequence[Memory],
        state: State | None = None,
        callback: HandlerCallback | None = None,
    ) -> Action | None:
        """Run the handler of the action named by the first response, if any."""
        if not responses or not responses[0].content.action:
            return None
        chosen = responses[0].content.action
        action = self.resolve_action(chosen)
        if action is None:
            record_event(operation="dispatcher.process_actions", outcome="no_match")
            logger.warning("no capability match for action=%s", chosen)
            return None
        logger.info("running action=%s chosen=%s", action.name, chosen)
        await action.handler(runtime, message, state, {}, callback)
        return action

    async def evaluate(
        self, runtime: AgentRuntime, message: Memory, state: State | None = None
    ) -> list[str]:
        """Offer validated evaluators to the model and run the ones it names."""
        eligible = await self.validate_evaluators(runtime, message, state)
        if not eligible:
            return []

        base = state if state is not None else State()
        context = compose_context(
            base.merge(
                evaluators=format_evaluators(eligible),
                evaluatorNames=format_evaluator_names(eligible),
                evaluatorExamples=format_evaluator_examples(eligible, runtime.rng),
            ),
            EVALUATION_TEMPLATE,
        )
        chosen = await runtime.completion.complete_string_array(context)
        selected = [evaluator for evaluator in eligible if evaluator.name in chosen]
        if selected:
            logger.info(
                "running evaluators=%s",
                ",".join(evaluator.name for evaluator in selected),
            )
            await asyncio.gather(
                *(
                    evaluator.handler(runtime, message, state, {}, None)
                    for evaluator in selected
                )
            )
        return chosen
