"""Agent runtime: wires storage, completion, composition and capabilities.

Platform connectors talk to an agent exclusively through this façade:
they make sure accounts, rooms and participants exist, then hand inbound
messages to ``handle_message`` (or drive the individual steps themselves).
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Mapping
from collections.abc import Sequence
from time import perf_counter
from typing import Any

from agentcortex.capabilities.base import Action
from agentcortex.capabilities.base import Evaluator
from agentcortex.capabilities.base import HandlerCallback
from agentcortex.capabilities.base import Provider
from agentcortex.capabilities.builtin import DEFAULT_ACTIONS
from agentcortex.capabilities.builtin import DEFAULT_EVALUATORS
from agentcortex.capabilities.builtin import DEFAULT_PROVIDERS
from agentcortex.capabilities.dispatcher import CapabilityDispatcher
from agentcortex.capabilities.registry import CapabilityRegistry
from agentcortex.config import llm_config_from_character
from agentcortex.config import LLMConfig
from agentcortex.config import resolve_setting
from agentcortex.config import RetryConfig
from agentcortex.config import RuntimeConfig
from agentcortex.context.composer import StateComposer
from agentcortex.context.formatting import compose_context
from agentcortex.context.state import State
from agentcortex.context.templates import MESSAGE_HANDLER_TEMPLATE
from agentcortex.context.templates import SHOULD_RESPOND_TEMPLATE
from agentcortex.llm.adapters import build_llm_adapter
from agentcortex.llm.adapters import LLMAdapter
from agentcortex.llm.completion import CompletionClient
from agentcortex.llm.completion import Sleep
from agentcortex.llm.retry import BackoffPolicy
from agentcortex.memory.embedding import EmbeddingService
from agentcortex.memory.manager import MemoryManager
from agentcortex.models import Account
from agentcortex.models import Character
from agentcortex.models import Content
from agentcortex.models import DESCRIPTIONS
from agentcortex.models import DOCUMENTS
from agentcortex.models import embedding_zero_vector
from agentcortex.models import FACTS
from agentcortex.models import FRAGMENTS
from agentcortex.models import LORE
from agentcortex.models import Memory
from agentcortex.models import MESSAGES
from agentcortex.models import string_to_uuid
from agentcortex.observability import record_latency
from agentcortex.storage.base import DatabaseAdapter
from agentcortex.tokenizer import TokenizerAdapter

logger = logging.getLogger(__name__)


class AgentRuntime:
    """One agent: its character, memories and registered capabilities."""

    def __init__(
        self,
        character: Character,
        storage: DatabaseAdapter,
        *,
        llm: LLMAdapter | None = None,
        llm_config: LLMConfig | None = None,
        retry_config: RetryConfig | None = None,
        config: RuntimeConfig | None = None,
        registry: CapabilityRegistry | None = None,
        tokenizer: TokenizerAdapter | None = None,
        rng: random.Random | None = None,
        sleep: Sleep = asyncio.sleep,
        environ: Mapping[str, str] | None = None,
        register_defaults: bool = True,
    ) -> None:
        self.character = character
        self.storage = storage
        self.config = config or RuntimeConfig()
        self.agent_id = character.id or string_to_uuid(character.name)
        self.rng = rng or random.Random()
        self._environ = environ

        self.llm_config = llm_config_from_character(
            character, base=llm_config, environ=environ
        )
        self.llm = llm or build_llm_adapter(self.llm_config)
        self.tokenizer = tokenizer or TokenizerAdapter(
            model=self.llm_config.model,
            default_encoding=self.config.default_encoding,
        )
        retry = retry_config or RetryConfig()
        self.completion = CompletionClient(
            self.llm,
            self.llm_config,
            transport_policy=BackoffPolicy.transport(retry),
            parse_policy=BackoffPolicy.parse(retry),
            tokenizer=self.tokenizer,
            sleep=sleep,
        )

        self.embedder = EmbeddingService(
            self.llm,
            storage,
            self.llm_config,
            memo_size=self.config.embedding_memo_size,
        )
        self.message_manager = MemoryManager(self.embedder, storage, MESSAGES)
        self.description_manager = MemoryManager(self.embedder, storage, DESCRIPTIONS)
        self.fact_manager = MemoryManager(self.embedder, storage, FACTS)
        self.lore_manager = MemoryManager(self.embedder, storage, LORE)
        self.document_manager = MemoryManager(self.embedder, storage, DOCUMENTS)
        self.fragment_manager = MemoryManager(self.embedder, storage, FRAGMENTS)

        self.registry = registry or CapabilityRegistry()
        if register_defaults:
            for action in DEFAULT_ACTIONS:
                self.registry.register_action(action)
            for evaluator in DEFAULT_EVALUATORS:
                self.registry.register_evaluator(evaluator)
            for provider in DEFAULT_PROVIDERS:
                self.registry.register_provider(provider)
        self.dispatcher = CapabilityDispatcher(self.registry)
        self.composer = StateComposer(self, rng=self.rng)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_setting(self, key: str) -> str | None:
        return resolve_setting(self.character, key, self._environ)

    def get_conversation_length(self) -> int:
        return self.config.conversation_length

    # ------------------------------------------------------------------
    # Capability registration
    # ------------------------------------------------------------------

    def register_action(self, action: Action) -> None:
        self.registry.register_action(action)

    def register_evaluator(self, evaluator: Evaluator) -> None:
        self.registry.register_evaluator(evaluator)

    def register_provider(self, provider: Provider) -> None:
        self.registry.register_provider(provider)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the agent's own account and room, load knowledge, freeze capabilities."""
        await self.ensure_user_exists(
            self.agent_id,
            self.character.username or self.character.name,
            self.character.name,
        )
        await self.ensure_room_exists(self.agent_id)
        await self.ensure_participant_in_room(self.agent_id, self.agent_id)
        await self.process_character_knowledge(self.character.knowledge)
        self.registry.freeze()
        logger.info(
            "agent initialized agent_id=%s name=%s", self.agent_id, self.character.name
        )

    # ------------------------------------------------------------------
    # Accounts, rooms, participants
    # ------------------------------------------------------------------

    async def ensure_user_exists(
        self,
        user_id: str,
        username: str | None,
        name: str | None = None,
        email: str | None = None,
        source: str | None = None,
    ) -> None:
        if await self.storage.get_account_by_id(user_id) is not None:
            return
        created = await self.storage.create_account(
            Account(
                id=user_id,
                name=name or username or "Unknown User",
                username=username or name or "Unknown",
                email=email or f"{username or 'Bot'}@{source or 'Unknown'}",
                details={"summary": ""},
            )
        )
        if created:
            logger.info("account created user_id=%s username=%s", user_id, username)

    async def ensure_room_exists(self, room_id: str) -> None:
        if await self.storage.get_room(room_id) is None:
            await self.storage.create_room(room_id)
            logger.info("room created room_id=%s", room_id)

    async def ensure_participant_in_room(self, user_id: str, room_id: str) -> None:
        participants = await self.storage.get_participants_for_room(room_id)
        if user_id not in participants:
            await self.storage.add_participant(user_id, room_id)
            logger.info("participant added user_id=%s room_id=%s", user_id, room_id)

    async def ensure_participant_exists(self, user_id: str, room_id: str) -> None:
        """Join *user_id* to *room_id* only if they are in no room at all."""
        if not await self.storage.get_participants_for_account(user_id):
            await self.storage.add_participant(user_id, room_id)

    async def ensure_connection(
        self,
        user_id: str,
        room_id: str,
        *,
        username: str | None = None,
        name: str | None = None,
        source: str | None = None,
    ) -> None:
        """Make sure the user, the agent and the room exist and are linked."""
        await self.ensure_user_exists(user_id, username, name, source=source)
        await self.ensure_user_exists(
            self.agent_id,
            self.character.username or self.character.name,
            self.character.name,
            source=source,
        )
        await self.ensure_room_exists(room_id)
        await self.ensure_participant_in_room(user_id, room_id)
        await self.ensure_participant_in_room(self.agent_id, room_id)

    # ------------------------------------------------------------------
    # Memory
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        return await self.embedder.embed(text)

    async def process_character_knowledge(self, knowledge: Sequence[str]) -> int:
        """Store each knowledge item as a document plus embedded fragments.

        Documents already stored are skipped; the document record is written
        last so a partially processed item is retried on the next run.
        Returns the number of documents added.
        """
        added = 0
        for item in knowledge:
            document_id = string_to_uuid(item)
            if await self.document_manager.get_memory_by_id(document_id) is not None:
                continue
            chunks = self.tokenizer.chunk(
                item,
                self.config.knowledge_chunk_size,
                self.config.knowledge_chunk_bleed,
            )
            for chunk in chunks:
                fragment_id = string_to_uuid(chunk.text)
                if await self.fragment_manager.get_memory_by_id(fragment_id) is not None:
                    continue
                await self.fragment_manager.create_memory(
                    Memory(
                        id=fragment_id,
                        user_id=self.agent_id,
                        agent_id=self.agent_id,
                        room_id=self.agent_id,
                        content=Content(text=chunk.text, source=document_id),
                        embedding=await self.embed(chunk.text),
                    )
                )
            await self.document_manager.create_memory(
                Memory(
                    id=document_id,
                    user_id=self.agent_id,
                    agent_id=self.agent_id,
                    room_id=self.agent_id,
                    content=Content(text=item, source="knowledge"),
                    embedding=embedding_zero_vector(),
                )
            )
            added += 1
        if added:
            logger.info("knowledge processed documents=%d", added)
        return added

    # ------------------------------------------------------------------
    # State and capabilities
    # ------------------------------------------------------------------

    async def compose_state(
        self, message: Memory, extra_keys: Mapping[str, Any] | None = None
    ) -> State:
        return await self.composer.compose(message, extra_keys)

    async def update_recent_message_state(self, state: State) -> State:
        return await self.composer.update_recent_message_state(state)

    async def process_actions(
        self,
        message: Memory,
        responses: Sequence[Memory],
        state: State | None = None,
        callback: HandlerCallback | None = None,
    ) -> Action | None:
        return await self.dispatcher.process_actions(
            self, message, responses, state, callback
        )

    async def evaluate(self, message: Memory, state: State | None = None) -> list[str]:
        return await self.dispatcher.evaluate(self, message, state)

    async def should_respond(
        self, state: State, template: str = SHOULD_RESPOND_TEMPLATE
    ) -> str:
        """``RESPOND``, ``IGNORE`` or ``STOP`` for the composed *state*."""
        return await self.completion.complete_should_respond(
            compose_context(state, template)
        )

    # ------------------------------------------------------------------
    # Message flow
    # ------------------------------------------------------------------

    async def handle_message(
        self,
        message: Memory,
        *,
        template: str = MESSAGE_HANDLER_TEMPLATE,
        callback: HandlerCallback | None = None,
        extra_keys: Mapping[str, Any] | None = None,
    ) -> list[Memory]:
        """Persist *message*, reply to it, run its action and evaluators.

        Returns the agent's response memories.
        """
        start = perf_counter()
        ok = False
        try:
            inbound = await self.message_manager.add_embedding_to_memory(message)
            await self.message_manager.create_memory(inbound)

            state = await self.compose_state(inbound, extra_keys)
            content = await self.completion.complete_structured_message(
                compose_context(state, template),
                self.completion.default_options(),
            )
            response = await self.message_manager.add_embedding_to_memory(
                Memory(
                    user_id=self.agent_id,
                    agent_id=self.agent_id,
                    room_id=inbound.room_id,
                    content=content.model_copy(update={"in_reply_to": inbound.id}),
                )
            )
            await self.message_manager.create_memory(response)
            responses = [response]

            state = await self.update_recent_message_state(state)
            await self.process_actions(inbound, responses, state, callback)
            await self.evaluate(inbound, state)
            ok = True
            return responses
        finally:
            record_latency(
                operation="runtime.handle_message",
                duration_ms=(perf_counter() - start) * 1000,
                ok=ok,
            )
