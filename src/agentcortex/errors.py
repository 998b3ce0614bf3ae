"""Exception hierarchy shared by the runtime components."""

from __future__ import annotations


class AgentCortexError(Exception):
    """Base class for all runtime errors."""


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class DuplicateIdError(AgentCortexError):
    """Raised when a memory id already exists in a namespace and room."""

    def __init__(self, memory_id: str, table: str, room_id: str | None = None) -> None:
        self.memory_id = memory_id
        self.table = table
        self.room_id = room_id
        where = f"{table}/{room_id}" if room_id else table
        super().__init__(f"memory {memory_id!r} already exists in {where}")


class DocumentInUseError(AgentCortexError):
    """Raised when removing a document that fragments still reference."""

    def __init__(self, document_id: str, fragment_count: int) -> None:
        self.document_id = document_id
        self.fragment_count = fragment_count
        super().__init__(
            f"document {document_id!r} is referenced by {fragment_count} fragment(s)"
        )


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------


class LLMError(AgentCortexError):
    """Raised by LLM adapters when a remote call fails (transient)."""


class CompletionExhaustedError(AgentCortexError):
    """Raised when a completion call used up its retry budget."""

    def __init__(self, attempts: int, last_error: BaseException | None = None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"completion failed after {attempts} attempt(s){detail}")


class ParseFailure(AgentCortexError):
    """Raised when model output does not match the expected shape."""

    def __init__(self, parser: str, raw: str) -> None:
        self.parser = parser
        self.raw = raw
        super().__init__(f"{parser} could not parse model output: {raw[:120]!r}")


# ---------------------------------------------------------------------------
# Configuration / registration
# ---------------------------------------------------------------------------


class MissingCredentialError(AgentCortexError):
    """Raised when a required secret cannot be resolved."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"missing required credential {key!r}")


class RegistryFrozenError(AgentCortexError):
    """Raised when registering a capability after startup."""
