"""LLM transport protocol, concrete adapters and factory helpers."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from typing import Protocol
from typing import runtime_checkable
from urllib.error import HTTPError
from urllib.error import URLError
from urllib.request import Request
from urllib.request import urlopen

from agentcortex.config import LLMConfig
from agentcortex.errors import LLMError
from agentcortex.errors import MissingCredentialError
from agentcortex.models import embedding_zero_vector

# ---------------------------------------------------------------------------
# LLM abstraction
# ---------------------------------------------------------------------------


@runtime_checkable
class LLMAdapter(Protocol):
    """Protocol for completion/embedding providers.

    Adapters make exactly one remote call per invocation and raise
    ``LLMError`` on any transport failure; retrying is the caller's job.
    """

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
    ) -> str: ...

    async def embed(
        self,
        text: str,
        *,
        model: str,
        timeout_seconds: float = 60.0,
    ) -> list[float]: ...


class NoopLLMAdapter:
    """Deterministic offline adapter: empty JSON object and zero vectors."""

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
        del prompt, model, stop, temperature, max_tokens
        del frequency_penalty, presence_penalty, timeout_seconds
        return "{}"

    async def embed(
        self,
        text: str,
        *,
        model: str,
        timeout_seconds: float = 60.0,
    ) -> list[float]:
        del text, model, timeout_seconds
        return embedding_zero_vector()


class OpenAICompatibleLLMAdapter:
    """OpenAI-compatible chat-completions and embeddings adapter."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

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
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "stop": list(stop),
            "temperature": temperature,
            "max_tokens": max_tokens,
            "frequency_penalty": frequency_penalty,
            "presence_penalty": presence_penalty,
        }
        data = await asyncio.to_thread(
            self._post_sync, "chat/completions", payload, timeout_seconds
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError(
                "provider response missing choices[0].message.content"
            ) from exc
        if isinstance(content, str) and content:
            return content
        raise LLMError("provider response content must be a non-empty string")

    async def embed(
        self,
        text: str,
        *,
        model: str,
        timeout_seconds: float = 60.0,
    ) -> list[float]:
        payload = {"input": text, "model": model}
        data = await asyncio.to_thread(
            self._post_sync, "embeddings", payload, timeout_seconds
        )
        try:
            vector = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError("provider response missing data[0].embedding") from exc
        if not isinstance(vector, list):
            raise LLMError("provider embedding must be a list of floats")
        return [float(x) for x in vector]

    def _post_sync(self, path: str, payload: dict, timeout_seconds: float) -> dict:
        request = Request(
            url=f"{self._base_url}/{path}",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urlopen(request, timeout=timeout_seconds) as response:
                raw = response.read().decode("utf-8")
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise LLMError(f"provider HTTP {exc.code}: {detail[:200]}") from exc
        except URLError as exc:
            raise LLMError(f"provider network error: {exc.reason}") from exc
        except OSError as exc:
            raise LLMError(f"provider IO error: {exc}") from exc

        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise LLMError("provider returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise LLMError("provider response must be a JSON object")
        return data


def build_llm_adapter(config: LLMConfig) -> LLMAdapter:
    """Create a concrete adapter from ``LLMConfig``."""

    provider = config.provider.strip().lower()
    if provider == "openai":
        if not config.api_key:
            raise MissingCredentialError("OPENAI_API_KEY")
        return OpenAICompatibleLLMAdapter(
            api_key=config.api_key,
            base_url=config.base_url,
        )
    if provider == "noop":
        return NoopLLMAdapter()
    raise ValueError(
        f"Unsupported llm_config.provider '{config.provider}'. "
        "Supported providers: openai, noop."
    )
