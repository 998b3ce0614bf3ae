"""Per-runtime registry of actions, evaluators and providers."""

from __future__ import annotations

import logging

from agentcortex.capabilities.base import Action
from agentcortex.capabilities.base import Capability
from agentcortex.capabilities.base import Evaluator
from agentcortex.capabilities.base import Provider
from agentcortex.errors import RegistryFrozenError

logger = logging.getLogger(__name__)


class CapabilityRegistry:
    """Three ordered, append-only collections.

    Registration happens during startup; ``freeze()`` closes it, after which
    reads need no locking.
    """

    def __init__(self) -> None:
        self._actions: list[Action] = []
        self._evaluators: list[Evaluator] = []
        self._providers: list[Provider] = []
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def actions(self) -> tuple[Action, ...]:
        return tuple(self._actions)

    @property
    def evaluators(self) -> tuple[Evaluator, ...]:
        return tuple(self._evaluators)

    @property
    def providers(self) -> tuple[Provider, ...]:
        return tuple(self._providers)

    def register_action(self, action: Action) -> None:
        self._append(self._actions, action)

    def register_evaluator(self, evaluator: Evaluator) -> None:
        self._append(self._evaluators, evaluator)

    def register_provider(self, provider: Provider) -> None:
        self._append(self._providers, provider)

    def freeze(self) -> None:
        self._frozen = True
        logger.debug(
            "capability registry frozen actions=%d evaluators=%d providers=%d",
            len(self._actions),
            len(self._evaluators),
            len(self._providers),
        )

    def _append(self, collection: list, capability: Capability) -> None:
        if self._frozen:
            raise RegistryFrozenError(
                f"cannot register {capability.kind} {capability.name!r}: "
                "registry is frozen"
            )
        if any(existing.name == capability.name for existing in collection):
            raise ValueError(
                f"{capability.kind} {capability.name!r} is already registered"
            )
        collection.append(capability)
        logger.debug("registered %s name=%s", capability.kind, capability.name)
