"""Context domain — state snapshots, prompt rendering and composition."""

from agentcortex.context.composer import StateComposer
from agentcortex.context.formatting import add_header
from agentcortex.context.formatting import compose_context
from agentcortex.context.formatting import HIDDEN_ATTACHMENT_TEXT
from agentcortex.context.state import State
from agentcortex.context.templates import EVALUATION_TEMPLATE
from agentcortex.context.templates import MESSAGE_HANDLER_TEMPLATE
from agentcortex.context.templates import SHOULD_RESPOND_TEMPLATE

__all__ = [
    "EVALUATION_TEMPLATE",
    "HIDDEN_ATTACHMENT_TEXT",
    "MESSAGE_HANDLER_TEMPLATE",
    "SHOULD_RESPOND_TEMPLATE",
    "State",
    "StateComposer",
    "add_header",
    "compose_context",
]
