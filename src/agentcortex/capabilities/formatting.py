"""Prompt catalogs for actions and evaluators."""

from __future__ import annotations

import random
from collections.abc import Sequence

from agentcortex.capabilities.base import Action
from agentcortex.capabilities.base import Evaluator
from agentcortex.models import MessageExample
from agentcortex.placeholders import fill_user_placeholders
from agentcortex.placeholders import sample_names

_EXAMPLES_PER_ACTION = 5


def _example_line(message: MessageExample) -> str:
    line = f"{message.user}: {message.content.text}"
    if message.content.action:
        line += f" ({message.content.action})"
    return line


def format_action_names(actions: Sequence[Action], rng: random.Random) -> str:
    shuffled = rng.sample(list(actions), len(actions))
    return ", ".join(action.name for action in shuffled)


def format_actions(actions: Sequence[Action], rng: random.Random) -> str:
    shuffled = rng.sample(list(actions), len(actions))
    return ",\n".join(f"{action.name}: {action.description}" for action in shuffled)


def compose_action_examples(
    actions: Sequence[Action], count: int, rng: random.Random
) -> str:
    """Up to *count* example conversations drawn across *actions*."""
    pool = []
    for action in rng.sample(list(actions), len(actions)):
        examples = list(action.examples)
        pool.extend(
            rng.sample(examples, min(_EXAMPLES_PER_ACTION, len(examples)))
        )
    blocks = []
    for conversation in pool[:count]:
        names = sample_names(rng)
        lines = [
            fill_user_placeholders(_example_line(message), names)
            for message in conversation
        ]
        blocks.append("\n" + "\n".join(lines))
    return "\n".join(blocks)


def format_evaluator_names(evaluators: Sequence[Evaluator]) -> str:
    return ",\n".join(f"'{evaluator.name}'" for evaluator in evaluators)


def format_evaluators(evaluators: Sequence[Evaluator]) -> str:
    return ",\n".join(
        f"'{evaluator.name}: {evaluator.description}'" for evaluator in evaluators
    )


def format_evaluator_examples(
    evaluators: Sequence[Evaluator], rng: random.Random
) -> str:
    blocks = []
    for evaluator in evaluators:
        for example in evaluator.examples:
            names = sample_names(rng)
            messages = "\n".join(
                fill_user_placeholders(_example_line(message), names)
                for message in example.messages
            )
            blocks.append(
                f"Context:\n{fill_user_placeholders(example.context, names)}\n\n"
                f"Messages:\n{messages}\n\n"
                f"Outcome:\n{fill_user_placeholders(example.outcome, names)}"
            )
    return "\n\n".join(blocks)
