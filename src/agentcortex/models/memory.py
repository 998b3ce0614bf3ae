"""Memory records and their content payloads."""

from __future__ import annotations

import time
import uuid

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic.alias_generators import to_camel

EMBEDDING_DIMENSION = 1536

# Namespaces ("tables") a memory can live in.
MESSAGES = "messages"
DESCRIPTIONS = "descriptions"
FACTS = "facts"
LORE = "lore"
DOCUMENTS = "documents"
FRAGMENTS = "fragments"
MEMORY_TABLES = (MESSAGES, DESCRIPTIONS, FACTS, LORE, DOCUMENTS, FRAGMENTS)


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)


def embedding_zero_vector() -> list[float]:
    """Placeholder embedding for records that are never searched."""
    return [0.0] * EMBEDDING_DIMENSION


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Attachment(_CamelModel):
    """A piece of media or a link shared alongside a message."""

    id: str
    url: str = ""
    title: str = ""
    source: str = ""
    description: str = ""
    text: str = ""


class Content(_CamelModel):
    """Message content; structured model output may carry extra keys."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    text: str = ""
    action: str | None = None
    source: str | None = Field(
        default=None,
        description="Origin platform, or the parent document id for fragments.",
    )
    url: str | None = None
    in_reply_to: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)


class Memory(_CamelModel):
    """A timestamped, namespaced record of content plus optional embedding."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    agent_id: str | None = None
    room_id: str
    content: Content = Field(default_factory=Content)
    embedding: list[float] | None = None
    created_at: int = Field(
        default_factory=now_ms,
        description="Unix epoch in milliseconds.",
    )
    unique: bool = False
