"""Parsers that turn free-form model output into typed values.

Every parser returns ``None`` when the text does not have the expected
shape; the completion client treats ``None`` as a retryable parse failure.
"""

from __future__ import annotations

import json
import re

from pydantic import ValidationError

from agentcortex.models import Content

# Regex to pull the body out of Markdown code fences wrapping JSON output
_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

_TRUE_WORDS = {"yes", "y", "true", "t", "1", "on", "enable"}
_FALSE_WORDS = {"no", "n", "false", "f", "0", "off", "disable"}

SHOULD_RESPOND_OPTIONS = ("RESPOND", "IGNORE", "STOP")


def _fenced_or_raw(text: str) -> str:
    match = _CODE_FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def _loads(candidate: str) -> object | None:
    try:
        return json.loads(candidate)
    except ValueError:
        return None


def parse_boolean_from_text(text: str) -> bool | None:
    """Interpret a yes/no style answer."""
    word = text.strip().strip("[]().!\"'` ").lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    return None


def parse_should_respond_from_text(text: str) -> str | None:
    """Extract ``RESPOND``, ``IGNORE`` or ``STOP`` from a reply.

    A bracketed token on the first line wins; otherwise the first option
    mentioned anywhere in the text is used.
    """
    lines = text.strip().splitlines()
    first_line = lines[0] if lines else ""
    bare = first_line.strip().strip("[]").strip().upper()
    if bare in SHOULD_RESPOND_OPTIONS:
        return bare
    upper = text.upper()
    positions = [
        (upper.find(option), option)
        for option in SHOULD_RESPOND_OPTIONS
        if option in upper
    ]
    if not positions:
        return None
    return min(positions)[1]


def parse_json_array_from_text(text: str) -> list | None:
    """Parse a JSON array, tolerating code fences and surrounding prose."""
    candidate = _fenced_or_raw(text)
    data = _loads(candidate)
    if data is None:
        match = _ARRAY_RE.search(candidate)
        if match is None:
            return None
        # Models often answer with single-quoted pseudo-JSON.
        data = _loads(match.group(0)) or _loads(match.group(0).replace("'", '"'))
    return data if isinstance(data, list) else None


def parse_json_object_from_text(text: str) -> dict | None:
    """Parse a JSON object, tolerating code fences and surrounding prose."""
    candidate = _fenced_or_raw(text)
    data = _loads(candidate)
    if data is None:
        match = _OBJECT_RE.search(candidate)
        if match is None:
            return None
        data = _loads(match.group(0))
    return data if isinstance(data, dict) else None


def parse_string_array_from_text(text: str) -> list[str] | None:
    """Parse a JSON array whose items are all scalars, as strings."""
    data = parse_json_array_from_text(text)
    if data is None:
        return None
    if not all(isinstance(item, (str, int, float)) for item in data):
        return None
    return [str(item) for item in data]


def parse_object_array_from_text(text: str) -> list[dict] | None:
    """Parse a JSON array whose items are all objects."""
    data = parse_json_array_from_text(text)
    if data is None or not all(isinstance(item, dict) for item in data):
        return None
    return data


def parse_content_from_text(text: str) -> Content | None:
    """Parse a structured message (``{"text": ..., "action": ...}``)."""
    data = parse_json_object_from_text(text)
    if data is None:
        return None
    try:
        return Content.model_validate(data)
    except ValidationError:
        return None
