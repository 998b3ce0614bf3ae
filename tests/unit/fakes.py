"""In-process fakes shared by the unit tests."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence


def fake_vector(text: str, dims: int = 8) -> list[float]:
    """Deterministic, strictly positive embedding for *text*."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [(byte + 1) / 256.0 for byte in digest[:dims]]


class ScriptedLLMAdapter:
    """Replays queued completions (strings or exceptions to raise)."""

    def __init__(self, completions: Sequence[str | BaseException] = (), default: str = "[]"):
        self.completions: list[str | BaseException] = list(completions)
        self.default = default
        self.prompts: list[str] = []
        self.embedded: list[str] = []

    def queue(self, *items: str | BaseException) -> None:
        self.completions.extend(items)

    async def complete(
        self,
        prompt: str,
        *,
        model: str,
        stop: Sequence[str] = (),
        temperature: float = 0.3,
        max_tokens: int = 4096,
        frequency_penalty: float = 0.0,
        presence_penalty: float = 0.0,
        timeout_seconds: float = 60.0,
    ) -> str:
        self.prompts.append(prompt)
        if not self.completions:
            return self.default
        item = self.completions.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def embed(
        self, text: str, *, model: str, timeout_seconds: float = 60.0
    ) -> list[float]:
        self.embedded.append(text)
        return fake_vector(text)


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
