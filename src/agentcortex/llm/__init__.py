"""LLM domain — transport adapters, retry policy, completion client, parsers."""

from agentcortex.llm.adapters import build_llm_adapter
from agentcortex.llm.adapters import LLMAdapter
from agentcortex.llm.adapters import NoopLLMAdapter
from agentcortex.llm.adapters import OpenAICompatibleLLMAdapter
from agentcortex.llm.completion import CompletionClient
from agentcortex.llm.completion import CompletionOptions
from agentcortex.llm.retry import BackoffPolicy

__all__ = [
    "BackoffPolicy",
    "CompletionClient",
    "CompletionOptions",
    "LLMAdapter",
    "NoopLLMAdapter",
    "OpenAICompatibleLLMAdapter",
    "build_llm_adapter",
]
