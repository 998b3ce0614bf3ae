"""Capability descriptors: actions, evaluators and context providers.

Each descriptor is a frozen dataclass tagged with a ``kind``.  Callables
receive the runtime first so capabilities stay stateless and can be shared
across agents.
"""

from __future__ import annotations

from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import ClassVar
from typing import TYPE_CHECKING

from agentcortex.models import Content
from agentcortex.models import Memory
from agentcortex.models import MessageExample

if TYPE_CHECKING:
    from agentcortex.context.state import State
    from agentcortex.runtime import AgentRuntime

HandlerCallback = Callable[[Content], Awaitable[list[Memory]]]
Validator = Callable[["AgentRuntime", Memory, "State | None"], Awaitable[bool]]
Handler = Callable[
    [
        "AgentRuntime",
        Memory,
        "State | None",
        dict[str, Any],
        "HandlerCallback | None",
    ],
    Awaitable[Any],
]
ProviderGetter = Callable[["AgentRuntime", Memory, "State | None"], Awaitable[str]]


async def always_valid(
    runtime: AgentRuntime, message: Memory, state: State | None
) -> bool:
    del runtime, message, state
    return True


async def no_op_handler(
    runtime: AgentRuntime,
    message: Memory,
    state: State | None,
    options: dict[str, Any],
    callback: HandlerCallback | None,
) -> bool:
    del runtime, message, state, options, callback
    return True


@dataclass(frozen=True, kw_only=True)
class Capability:
    """Shared base: every capability has a unique name within its kind."""

    kind: ClassVar[str] = "capability"

    name: str


@dataclass(frozen=True, kw_only=True)
class Action(Capability):
    """A side effect the model can pick by name for its response."""

    kind: ClassVar[str] = "action"

    similes: Sequence[str] = ()
    description: str = ""
    examples: Sequence[Sequence[MessageExample]] = ()
    validate: Validator = always_valid
    handler: Handler = no_op_handler


@dataclass(frozen=True)
class EvaluatorExample:
    context: str
    messages: Sequence[MessageExample]
    outcome: str


@dataclass(frozen=True, kw_only=True)
class Evaluator(Capability):
    """Post-response analysis the model can opt into by name."""

    kind: ClassVar[str] = "evaluator"

    similes: Sequence[str] = ()
    description: str = ""
    examples: Sequence[EvaluatorExample] = ()
    validate: Validator = always_valid
    handler: Handler = no_op_handler


@dataclass(frozen=True, kw_only=True)
class Provider(Capability):
    """Supplies extra context text for state composition."""

    kind: ClassVar[str] = "provider"

    get: ProviderGetter = field(repr=False)
