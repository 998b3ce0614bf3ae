"""Goals tracked per room and mutated by evaluators."""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic.alias_generators import to_camel


class GoalStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    FAILED = "FAILED"


class Objective(BaseModel):
    id: str | None = None
    description: str
    completed: bool = False


class Goal(BaseModel):
    """A named set of objectives pursued within a room."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    room_id: str
    user_id: str | None = None
    name: str
    status: GoalStatus = GoalStatus.IN_PROGRESS
    objectives: list[Objective] = Field(default_factory=list)
