"""Capabilities domain — descriptors, registry, dispatcher and built-ins."""

from agentcortex.capabilities.base import Action
from agentcortex.capabilities.base import Capability
from agentcortex.capabilities.base import Evaluator
from agentcortex.capabilities.base import EvaluatorExample
from agentcortex.capabilities.base import HandlerCallback
from agentcortex.capabilities.base import Provider
from agentcortex.capabilities.builtin import DEFAULT_ACTIONS
from agentcortex.capabilities.builtin import DEFAULT_EVALUATORS
from agentcortex.capabilities.builtin import DEFAULT_PROVIDERS
from agentcortex.capabilities.dispatcher import CapabilityDispatcher
from agentcortex.capabilities.dispatcher import normalize_action_name
from agentcortex.capabilities.registry import CapabilityRegistry

__all__ = [
    "Action",
    "Capability",
    "CapabilityDispatcher",
    "CapabilityRegistry",
    "DEFAULT_ACTIONS",
    "DEFAULT_EVALUATORS",
    "DEFAULT_PROVIDERS",
    "Evaluator",
    "EvaluatorExample",
    "HandlerCallback",
    "Provider",
    "normalize_action_name",
]
