"""Accounts, rooms and room membership."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic.alias_generators import to_camel


class Account(BaseModel):
    """One distinct user or agent identity."""

    id: str
    name: str
    username: str
    email: str | None = None
    details: dict = Field(default_factory=dict)


class Room(BaseModel):
    """A conversational scope grouping participants and memories."""

    id: str


class Participant(BaseModel):
    """Membership edge between an account and a room."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    room_id: str


class Actor(BaseModel):
    """An account as seen from inside a room."""

    id: str
    name: str
    username: str
    details: dict = Field(default_factory=dict)

    @classmethod
    def from_account(cls, account: Account) -> Actor:
        return cls(
            id=account.id,
            name=account.name,
            username=account.username,
            details=dict(account.details),
        )
