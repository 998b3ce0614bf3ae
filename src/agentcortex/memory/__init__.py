"""Memory domain — per-namespace managers and the embedding cache."""

from agentcortex.memory.embedding import EmbeddingService
from agentcortex.memory.embedding import normalize_embedding_text
from agentcortex.memory.manager import MemoryManager

__all__ = [
    "EmbeddingService",
    "MemoryManager",
    "normalize_embedding_text",
]
