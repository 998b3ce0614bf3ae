"""Application configuration dataclasses.

Frozen dataclasses with sensible defaults for each subsystem.  Environment
loading is explicit (``load_environment``) and setting resolution follows
character secrets > character settings > process environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from agentcortex.models.character import Character


@dataclass(frozen=True)
class LLMConfig:
    """Completion and embedding provider settings."""

    provider: str = "openai"
    model: str = "meta-llama/Meta-Llama-3.1-70B-Instruct"
    embedding_model: str = "text-embedding-3-small"
    api_key: str | None = None
    base_url: str = "https://api.openai.com/v1"
    temperature: float = 0.3
    max_tokens: int = 4096
    max_context_length: int = 8000
    timeout_seconds: float = 60.0


@dataclass(frozen=True)
class RetryConfig:
    """Backoff schedule for transport retries and parse retries."""

    base_delay_seconds: float = 1.0
    multiplier: float = 2.0
    transport_max_attempts: int = 5
    # None keeps typed completions retrying until the caller cancels.
    parse_max_attempts: int | None = None
    max_delay_seconds: float | None = None


@dataclass(frozen=True)
class RuntimeConfig:
    """Per-agent context assembly limits."""

    conversation_length: int = 32
    goals_count: int = 10
    attachment_window_ms: int = 60 * 60 * 1000
    recent_interactions_count: int = 20
    knowledge_chunk_size: int = 1200
    knowledge_chunk_bleed: int = 200
    default_encoding: str = "cl100k_base"
    embedding_memo_size: int = 1024


@dataclass(frozen=True)
class RedisConfig:
    """Connection settings for the Redis memory storage."""

    url: str = "redis://localhost:6379"
    key_prefix: str = "agentcortex"


@dataclass(frozen=True)
class Neo4jConfig:
    """Connection settings for the Neo4j relationship storage."""

    url: str = "bolt://localhost:7687"


# ---------------------------------------------------------------------------
# Setting resolution
# ---------------------------------------------------------------------------


def load_environment(dotenv_path: str | Path | None = None) -> bool:
    """Load a ``.env`` file into the process environment.

    Variables already present in the environment stay authoritative.
    """
    return load_dotenv(dotenv_path=dotenv_path, override=False)


def resolve_setting(
    character: Character | None,
    key: str,
    environ: Mapping[str, str] | None = None,
) -> str | None:
    """Resolve *key* from character secrets, character settings, then env."""
    if character is not None:
        secret = character.settings.secrets.get(key)
        if secret:
            return secret
        value = character.settings.get(key)
        if value:
            return str(value)
    env = os.environ if environ is None else environ
    return env.get(key) or None


def llm_config_from_character(
    character: Character,
    base: LLMConfig | None = None,
    environ: Mapping[str, str] | None = None,
) -> LLMConfig:
    """Build an ``LLMConfig`` with character and environment overrides."""
    cfg = base or LLMConfig()
    api_key = cfg.api_key or resolve_setting(character, "OPENAI_API_KEY", environ)
    base_url = resolve_setting(character, "OPENAI_BASE_URL", environ) or cfg.base_url
    return replace(
        cfg,
        model=character.settings.model or cfg.model,
        embedding_model=character.settings.embedding_model or cfg.embedding_model,
        api_key=api_key,
        base_url=base_url,
    )
