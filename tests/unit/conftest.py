"""Unit test fixtures: scripted LLM, offline tokenizer, runtime factory."""

from __future__ import annotations

import random

import pytest
import tiktoken

from agentcortex.config import LLMConfig
from agentcortex.config import RetryConfig
from agentcortex.config import RuntimeConfig
from agentcortex.models import Character
from agentcortex.models import Style
from agentcortex.observability import reset_latency_metrics
from agentcortex.runtime import AgentRuntime
from agentcortex.storage import InMemoryDatabaseAdapter
from agentcortex.tokenizer import TokenizerAdapter
from tests.unit.fakes import ScriptedLLMAdapter
from tests.unit.fakes import SleepRecorder


@pytest.fixture(autouse=True)
def _reset_observability():
    reset_latency_metrics()
    yield
    reset_latency_metrics()


@pytest.fixture(scope="session")
def byte_encoding() -> tiktoken.Encoding:
    """One token per UTF-8 byte; needs no downloaded vocabulary."""
    return tiktoken.Encoding(
        name="test_bytes",
        pat_str=r"\S+|\s+",
        mergeable_ranks={bytes([i]): i for i in range(256)},
        special_tokens={},
    )


@pytest.fixture()
def tokenizer(byte_encoding) -> TokenizerAdapter:
    return TokenizerAdapter(encoding=byte_encoding)


@pytest.fixture()
def llm() -> ScriptedLLMAdapter:
    return ScriptedLLMAdapter()


@pytest.fixture()
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture()
def storage() -> InMemoryDatabaseAdapter:
    return InMemoryDatabaseAdapter()


@pytest.fixture()
def character() -> Character:
    return Character(
        name="Ada",
        username="ada",
        bio=["Mathematician.", "Writes poetry.", "Loves engines.", "Night owl."],
        lore=[f"lore {i}" for i in range(15)],
        topics=["analysis", "looms", "music", "poetry", "chess", "tea"],
        adjectives=["curious", "precise"],
        post_examples=["engines can compose music", "numbers are poetry"],
        message_examples=[
            [
                {"user": "{{user1}}", "content": {"text": "hi there"}},
                {"user": "Ada", "content": {"text": "hello {{user1}}"}},
            ]
        ],
        style=Style(all=["be concise"], chat=["ask questions"], post=["no emojis"]),
    )


@pytest.fixture()
def make_runtime(character, storage, llm, sleeps, tokenizer):
    """Factory building an ``AgentRuntime`` on in-process fakes."""

    def _make(
        *,
        character: Character = character,
        storage=storage,
        llm=llm,
        config: RuntimeConfig | None = None,
        retry: RetryConfig | None = None,
        seed: int = 7,
        register_defaults: bool = True,
        environ: dict[str, str] | None = None,
    ) -> AgentRuntime:
        return AgentRuntime(
            character,
            storage,
            llm=llm,
            llm_config=LLMConfig(provider="noop"),
            retry_config=retry or RetryConfig(parse_max_attempts=5),
            config=config,
            tokenizer=tokenizer,
            rng=random.Random(seed),
            sleep=sleeps,
            environ=environ if environ is not None else {},
            register_defaults=register_defaults,
        )

    return _make
