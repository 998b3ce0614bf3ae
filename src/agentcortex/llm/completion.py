"""Completion client: bounded transport retries plus typed, re-asking parsers.

``complete`` gives up after ``transport_policy.max_attempts`` and raises
``CompletionExhaustedError``.  The typed wrappers treat both a malformed
answer and an exhausted transport as noise: they back off and re-issue the
whole remote call until a parse succeeds, the parse policy's optional
attempt ceiling is reached, or the calling task is cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from time import perf_counter
from typing import TypeVar

from agentcortex.config import LLMConfig
from agentcortex.config import RetryConfig
from agentcortex.errors import CompletionExhaustedError
from agentcortex.errors import LLMError
from agentcortex.errors import ParseFailure
from agentcortex.llm.adapters import LLMAdapter
from agentcortex.llm.parsing import parse_boolean_from_text
from agentcortex.llm.parsing import parse_content_from_text
from agentcortex.llm.parsing import parse_object_array_from_text
from agentcortex.llm.parsing import parse_should_respond_from_text
from agentcortex.llm.parsing import parse_string_array_from_text
from agentcortex.llm.retry import BackoffPolicy
from agentcortex.models import Content
from agentcortex.observability import record_event
from agentcortex.observability import record_latency
from agentcortex.tokenizer import TokenizerAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class CompletionOptions:
    """Per-call generation options; ``model=None`` uses the configured model."""

    stop: Sequence[str] = field(default_factory=tuple)
    model: str | None = None
    temperature: float = 0.3
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    max_context_length: int = 8000
    max_response_length: int = 4096


class CompletionClient:
    """Issues completion requests through an ``LLMAdapter``."""

    def __init__(
        self,
        adapter: LLMAdapter,
        config: LLMConfig | None = None,
        *,
        transport_policy: BackoffPolicy | None = None,
        parse_policy: BackoffPolicy | None = None,
        tokenizer: TokenizerAdapter | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        retry = RetryConfig()
        self._adapter = adapter
        self._config = config or LLMConfig()
        self._transport_policy = transport_policy or BackoffPolicy.transport(retry)
        self._parse_policy = parse_policy or BackoffPolicy.parse(retry)
        self._tokenizer = tokenizer or TokenizerAdapter(model=self._config.model)
        self._sleep = sleep

    @property
    def adapter(self) -> LLMAdapter:
        return self._adapter

    @property
    def config(self) -> LLMConfig:
        return self._config

    def default_options(self, **overrides: object) -> CompletionOptions:
        """Options seeded from ``LLMConfig`` (temperature, limits)."""
        values: dict[str, object] = {
            "model": self._config.model,
            "temperature": self._config.temperature,
            "max_context_length": self._config.max_context_length,
            "max_response_length": self._config.max_tokens,
        }
        values.update(overrides)
        return CompletionOptions(**values)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Raw completion
    # ------------------------------------------------------------------

    async def complete(
        self, context: str, options: CompletionOptions | None = None
    ) -> str:
        """Return the raw model text, retrying transport failures with backoff."""
        opts = options or self.default_options()
        model = opts.model or self._config.model
        policy = self._transport_policy
        attempt = 0
        last_error: LLMError | None = None
        while True:
            attempt += 1
            record_event(operation="completion.complete", outcome="attempt")
            start = perf_counter()
            try:
                text = await self._adapter.complete(
                    context,
                    model=model,
                    stop=tuple(opts.stop),
                    temperature=opts.temperature,
                    max_tokens=opts.max_response_length,
                    frequency_penalty=opts.frequency_penalty,
                    presence_penalty=opts.presence_penalty,
                    timeout_seconds=self._config.timeout_seconds,
                )
            except LLMError as exc:
                record_latency(
                    operation="completion.complete",
                    duration_ms=(perf_counter() - start) * 1000,
                    ok=False,
                )
                record_event(operation="completion.complete", outcome="transport_error")
                last_error = exc
                if policy.exhausted(attempt):
                    logger.warning(
                        "completion exhausted attempts=%d model=%s error=%s",
                        attempt,
                        model,
                        exc,
                    )
                    raise CompletionExhaustedError(attempt, exc) from exc
                delay = policy.delay_for(attempt)
                logger.info(
                    "completion retry attempt=%d delay_s=%.2f error=%s",
                    attempt,
                    delay,
                    exc,
                )
                await self._sleep(delay)
                continue
            record_latency(
                operation="completion.complete",
                duration_ms=(perf_counter() - start) * 1000,
            )
            return text

    # ------------------------------------------------------------------
    # Typed wrappers
    # ------------------------------------------------------------------

    async def _complete_parsed(
        self,
        context: str,
        options: CompletionOptions | None,
        parser: Callable[[str], T | None],
        name: str,
    ) -> T:
        operation = f"completion.{name}"
        policy = self._parse_policy
        attempt = 0
        while True:
            attempt += 1
            failure: Exception
            try:
                raw = await self.complete(context, options)
            except CompletionExhaustedError as exc:
                failure = exc
            else:
                parsed = parser(raw)
                if parsed is not None:
                    return parsed
                failure = ParseFailure(name, raw)
                record_event(operation=operation, outcome="parse_failure")
            if policy.exhausted(attempt):
                raise CompletionExhaustedError(attempt, failure)
            delay = policy.delay_for(attempt)
            logger.info(
                "re-asking model op=%s attempt=%d delay_s=%.2f reason=%s",
                operation,
                attempt,
                delay,
                failure,
            )
            await self._sleep(delay)

    async def complete_boolean(
        self, context: str, options: CompletionOptions | None = None
    ) -> bool:
        return await self._complete_parsed(
            context, options, parse_boolean_from_text, "boolean"
        )

    async def complete_should_respond(
        self, context: str, options: CompletionOptions | None = None
    ) -> str:
        """Return one of ``RESPOND``, ``IGNORE`` or ``STOP``."""
        return await self._complete_parsed(
            context, options, parse_should_respond_from_text, "should_respond"
        )

    async def complete_string_array(
        self, context: str, options: CompletionOptions | None = None
    ) -> list[str]:
        return await self._complete_parsed(
            context, options, parse_string_array_from_text, "string_array"
        )

    async def complete_object_array(
        self, context: str, options: CompletionOptions | None = None
    ) -> list[dict]:
        return await self._complete_parsed(
            context, options, parse_object_array_from_text, "object_array"
        )

    async def complete_structured_message(
        self, context: str, options: CompletionOptions | None = None
    ) -> Content:
        """Trim *context* to its token budget, then parse a ``Content`` object."""
        opts = options or self.default_options()
        trimmed = self._tokenizer.truncate_to_budget(
            context, opts.max_context_length, opts.model or self._config.model
        )
        return await self._complete_parsed(
            trimmed, opts, parse_content_from_text, "structured_message"
        )
