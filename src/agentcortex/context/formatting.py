"""Text rendering for the blocks that make up a prompt context."""

from __future__ import annotations

import re
from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any

from agentcortex.models import Actor
from agentcortex.models import Attachment
from agentcortex.models import Goal
from agentcortex.models import GoalStatus
from agentcortex.models import Memory
from agentcortex.models import now_ms

_PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")

HIDDEN_ATTACHMENT_TEXT = "[Hidden]"


def add_header(header: str, body: str) -> str:
    """Prefix a non-empty *body* with *header*; empty bodies render as ""."""
    if not body:
        return ""
    prefix = f"{header}\n" if header else ""
    return f"{prefix}{body}\n"


def compose_context(state: Mapping[str, Any], template: str) -> str:
    """Fill ``{{key}}`` placeholders; missing or ``None`` values become ""."""

    def _value(match: re.Match[str]) -> str:
        value = state.get(match.group(1))
        return "" if value is None else str(value)

    return _PLACEHOLDER_RE.sub(_value, template)


def format_timestamp(created_at: int, now: int | None = None) -> str:
    seconds = max(((now if now is not None else now_ms()) - created_at) // 1000, 0)
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        minutes = seconds // 60
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    if seconds < 86400:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    days = seconds // 86400
    return f"{days} day{'s' if days != 1 else ''} ago"


def _actor_name(actors: Sequence[Actor], user_id: str) -> str:
    for actor in actors:
        if actor.id == user_id:
            return actor.name
    return "Unknown User"


def format_actors(actors: Sequence[Actor]) -> str:
    lines = []
    for actor in actors:
        line = actor.name
        tagline = actor.details.get("tagline")
        summary = actor.details.get("summary")
        if tagline:
            line += f": {tagline}"
        if summary:
            line += f"\n{summary}"
        lines.append(line)
    return "\n".join(lines)


def format_messages(
    messages: Sequence[Memory],
    actors: Sequence[Actor],
    *,
    now: int | None = None,
) -> str:
    """Render newest-first *messages* as an oldest-first transcript."""
    lines = []
    for message in reversed(messages):
        content = message.content
        attachments = ""
        if content.attachments:
            listed = ", ".join(
                f"[{a.id} - {a.title} ({a.url})]" for a in content.attachments
            )
            attachments = f" (Attachments: {listed})"
        action = f" ({content.action})" if content.action else ""
        lines.append(
            f"({format_timestamp(message.created_at, now)}) "
            f"[{message.user_id[-5:]}] "
            f"{_actor_name(actors, message.user_id)}: "
            f"{content.text}{attachments}{action}"
        )
    return "\n".join(lines)


def format_posts(
    messages: Sequence[Memory],
    actors: Sequence[Actor],
    *,
    conversation_header: bool = True,
    now: int | None = None,
) -> str:
    """Render messages grouped by room, each room oldest first."""
    by_room: dict[str, list[Memory]] = {}
    for message in messages:
        by_room.setdefault(message.room_id, []).append(message)

    threads = []
    for room_id, room_messages in by_room.items():
        posts = []
        for message in sorted(room_messages, key=lambda m: m.created_at):
            actor = next((a for a in actors if a.id == message.user_id), None)
            name = actor.name if actor else "Unknown User"
            username = actor.username if actor else "unknown"
            posts.append(
                f"Name: {name} (@{username})\n"
                f"ID: {message.id}\n"
                + (
                    f"In reply to: {message.content.in_reply_to}\n"
                    if message.content.in_reply_to
                    else ""
                )
                + f"Date: {format_timestamp(message.created_at, now)}\n"
                f"Text:\n{message.content.text}"
            )
        body = "\n\n".join(posts)
        if conversation_header:
            body = f"Conversation: {room_id[-5:]}\n{body}"
        threads.append(body)
    return "\n\n".join(threads)


def format_facts(facts: Sequence[Memory]) -> str:
    """Newest-first *facts* rendered oldest first, one per line."""
    return "\n".join(fact.content.text for fact in reversed(facts))


def format_goals_as_string(goals: Sequence[Goal]) -> str:
    blocks = []
    for goal in goals:
        lines = [f"Goal: {goal.name}", f"id: {goal.id}"]
        for objective in goal.objectives:
            mark = "x" if objective.completed else " "
            status = "DONE" if objective.completed else "IN PROGRESS"
            lines.append(f"- [{mark}] {objective.description} ({status})")
        if goal.status != GoalStatus.IN_PROGRESS:
            lines.append(f"Status: {goal.status.value}")
        blocks.append("\n".join(lines))
    return "\n".join(blocks)


def format_attachments(attachments: Sequence[Attachment]) -> str:
    return "\n".join(
        f"ID: {a.id}\n"
        f"Name: {a.title}\n"
        f"URL: {a.url}\n"
        f"Type: {a.source}\n"
        f"Description: {a.description}\n"
        f"Text: {a.text}\n"
        for a in attachments
    )


def redact_stale_attachments(
    messages: Sequence[Memory], window_ms: int
) -> list[Memory]:
    """Copy newest-first *messages*, hiding attachment text outside the window.

    The window ends at the newest message that carries an attachment; any
    attachment on a message older than ``window_ms`` before it is masked.
    """
    newest = next((m for m in messages if m.content.attachments), None)
    if newest is None:
        return list(messages)
    cutoff = newest.created_at - window_ms
    redacted = []
    for message in messages:
        if message.created_at >= cutoff or not message.content.attachments:
            redacted.append(message)
            continue
        hidden = [
            attachment.model_copy(update={"text": HIDDEN_ATTACHMENT_TEXT})
            for attachment in message.content.attachments
        ]
        content = message.content.model_copy(update={"attachments": hidden})
        redacted.append(message.model_copy(update={"content": content}))
    return redacted


def join_naturally(items: Sequence[str]) -> str:
    """``a``, ``a and b``, ``a, b and c``."""
    if len(items) <= 1:
        return "".join(items)
    return f"{', '.join(items[:-1])} and {items[-1]}"
