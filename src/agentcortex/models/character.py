"""Character definition: persona, style material and per-agent settings."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic.alias_generators import to_camel

from agentcortex.models.memory import Content


class MessageExample(BaseModel):
    """One line of an example conversation, ``user`` may be a placeholder."""

    user: str
    content: Content


class Style(BaseModel):
    all: list[str] = Field(default_factory=list)
    chat: list[str] = Field(default_factory=list)
    post: list[str] = Field(default_factory=list)


class CharacterSettings(BaseModel):
    """Per-character overrides; unknown keys are kept as plain settings."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    model: str | None = None
    embedding_model: str | None = None
    secrets: dict[str, str] = Field(default_factory=dict)

    def get(self, key: str, default: object = None) -> object:
        extra = self.model_extra or {}
        if key in extra:
            return extra[key]
        if key in type(self).model_fields and key != "secrets":
            return getattr(self, key)
        return default


class Character(BaseModel):
    """Persona and style source material for one agent."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str | None = None
    name: str
    username: str | None = None
    bio: str | list[str] = ""
    lore: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    adjectives: list[str] = Field(default_factory=list)
    message_examples: list[list[MessageExample]] = Field(default_factory=list)
    post_examples: list[str] = Field(default_factory=list)
    style: Style = Field(default_factory=Style)
    knowledge: list[str] = Field(default_factory=list)
    clients: list[str] = Field(default_factory=list)
    settings: CharacterSettings = Field(default_factory=CharacterSettings)
