"""Models domain — shared data models and identity helpers."""

from __future__ import annotations

import uuid

from agentcortex.models.accounts import Account
from agentcortex.models.accounts import Actor
from agentcortex.models.accounts import Participant
from agentcortex.models.accounts import Room
from agentcortex.models.character import Character
from agentcortex.models.character import CharacterSettings
from agentcortex.models.character import MessageExample
from agentcortex.models.character import Style
from agentcortex.models.goals import Goal
from agentcortex.models.goals import GoalStatus
from agentcortex.models.goals import Objective
from agentcortex.models.memory import Attachment
from agentcortex.models.memory import Content
from agentcortex.models.memory import DESCRIPTIONS
from agentcortex.models.memory import DOCUMENTS
from agentcortex.models.memory import EMBEDDING_DIMENSION
from agentcortex.models.memory import embedding_zero_vector
from agentcortex.models.memory import FACTS
from agentcortex.models.memory import FRAGMENTS
from agentcortex.models.memory import LORE
from agentcortex.models.memory import Memory
from agentcortex.models.memory import MEMORY_TABLES
from agentcortex.models.memory import MESSAGES
from agentcortex.models.memory import now_ms

__all__ = [
    # Memory
    "Attachment",
    "Content",
    "Memory",
    "EMBEDDING_DIMENSION",
    "embedding_zero_vector",
    "now_ms",
    "MEMORY_TABLES",
    "MESSAGES",
    "DESCRIPTIONS",
    "FACTS",
    "LORE",
    "DOCUMENTS",
    "FRAGMENTS",
    # Accounts
    "Account",
    "Actor",
    "Participant",
    "Room",
    # Goals
    "Goal",
    "GoalStatus",
    "Objective",
    # Character
    "Character",
    "CharacterSettings",
    "MessageExample",
    "Style",
    # Identity
    "string_to_uuid",
]

_UUID_NAMESPACE = uuid.UUID("6ba7b811-9dad-11d1-80b4-00c04fd430c8")


def string_to_uuid(text: str) -> str:
    """Deterministic UUIDv5 for content-addressed ids."""
    return str(uuid.uuid5(_UUID_NAMESPACE, text))
