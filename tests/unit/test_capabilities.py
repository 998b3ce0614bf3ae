"""Unit tests for capability registration, action resolution and evaluation."""

from __future__ import annotations

import random

import pytest

from agentcortex.capabilities import Action
from agentcortex.capabilities import CapabilityDispatcher
from agentcortex.capabilities import CapabilityRegistry
from agentcortex.capabilities import Evaluator
from agentcortex.capabilities import normalize_action_name
from agentcortex.capabilities import Provider
from agentcortex.capabilities.formatting import compose_action_examples
from agentcortex.capabilities.formatting import format_action_names
from agentcortex.capabilities.formatting import format_evaluator_names
from agentcortex.errors import RegistryFrozenError
from agentcortex.models import Content
from agentcortex.models import Memory
from agentcortex.models import MessageExample
from agentcortex.observability import event_counts_snapshot

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _message(text: str = "hi", action: str | None = None) -> Memory:
    return Memory(user_id="user-1", room_id="room-1", content=Content(text=text, action=action))


def _recording_action(name: str, calls: list[str], **kwargs) -> Action:
    async def handler(runtime, message, state, options, callback):
        calls.append(name)
        return True

    return Action(name=name, handler=handler, **kwargs)


def _fixed(value):
    async def check(runtime, message, state):
        return value

    return check


def _registry(*actions: Action) -> CapabilityRegistry:
    registry = CapabilityRegistry()
    for action in actions:
        registry.register_action(action)
    return registry


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_registration_order_is_kept(self):
        registry = _registry(Action(name="B"), Action(name="A"))
        assert [a.name for a in registry.actions] == ["B", "A"]

    def test_duplicate_name_rejected(self):
        registry = _registry(Action(name="WAVE"))
        with pytest.raises(ValueError, match="WAVE"):
            registry.register_action(Action(name="WAVE"))

    def test_same_name_allowed_across_kinds(self):
        registry = _registry(Action(name="SHARED"))
        registry.register_evaluator(Evaluator(name="SHARED"))
        assert len(registry.evaluators) == 1

    def test_frozen_registry_rejects_registration(self):
        registry = _registry(Action(name="WAVE"))
        registry.freeze()
        assert registry.frozen
        with pytest.raises(RegistryFrozenError):
            registry.register_provider(Provider(name="late", get=_fixed("x")))

    def test_kind_tags(self):
        assert Action(name="a").kind == "action"
        assert Evaluator(name="e").kind == "evaluator"
        assert Provider(name="p", get=_fixed("")).kind == "provider"


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestResolveAction:
    def test_normalization_drops_case_and_underscores(self):
        assert normalize_action_name("  Follow_Room_Now ") == "followroomnow"

    @pytest.mark.parametrize("chosen", ["follow_room", "FOLLOWROOM", "Follow_Room"])
    def test_name_variants_match(self, chosen):
        dispatcher = CapabilityDispatcher(_registry(Action(name="FOLLOW_ROOM")))
        assert dispatcher.resolve_action(chosen).name == "FOLLOW_ROOM"

    def test_containment_either_way(self):
        dispatcher = CapabilityDispatcher(_registry(Action(name="FOLLOW_ROOM")))
        assert dispatcher.resolve_action("FOLLOW").name == "FOLLOW_ROOM"
        assert dispatcher.resolve_action("FOLLOW_ROOM_PLEASE").name == "FOLLOW_ROOM"

    def test_similes_consulted_after_names(self):
        mute = Action(name="MUTE_ROOM", similes=("SILENCE",))
        dispatcher = CapabilityDispatcher(_registry(mute))
        assert dispatcher.resolve_action("silence") is mute

    def test_name_match_beats_earlier_simile(self):
        first = Action(name="SHOUT", similes=("WAVE",))
        second = Action(name="WAVE")
        dispatcher = CapabilityDispatcher(_registry(first, second))
        assert dispatcher.resolve_action("WAVE") is second

    @pytest.mark.parametrize("chosen", ["", "   ", "___"])
    def test_empty_name_never_matches(self, chosen):
        dispatcher = CapabilityDispatcher(_registry(Action(name="ANY")))
        assert dispatcher.resolve_action(chosen) is None


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------


class TestProcessActions:
    async def test_runs_matching_handler_once(self):
        calls: list[str] = []
        dispatcher = CapabilityDispatcher(
            _registry(_recording_action("FOLLOW_ROOM", calls))
        )
        ran = await dispatcher.process_actions(
            None, _message(), [_message("ok", action="follow_room")]
        )
        assert ran.name == "FOLLOW_ROOM"
        assert calls == ["FOLLOW_ROOM"]

    async def test_unknown_action_is_logged_not_raised(self, caplog):
        calls: list[str] = []
        dispatcher = CapabilityDispatcher(_registry(_recording_action("WAVE", calls)))
        with caplog.at_level("WARNING"):
            ran = await dispatcher.process_actions(
                None, _message(), [_message("ok", action="TELEPORT")]
            )
        assert ran is None
        assert calls == []
        assert event_counts_snapshot()["dispatcher.process_actions"] == {"no_match": 1}
        assert "TELEPORT" in caplog.text

    async def test_no_action_or_no_responses_is_a_no_op(self):
        calls: list[str] = []
        dispatcher = CapabilityDispatcher(_registry(_recording_action("WAVE", calls)))
        assert await dispatcher.process_actions(None, _message(), []) is None
        assert await dispatcher.process_actions(None, _message(), [_message("ok")]) is None
        assert calls == []


class TestValidation:
    async def test_only_valid_actions_are_returned(self):
        dispatcher = CapabilityDispatcher(
            _registry(
                Action(name="YES", validate=_fixed(True)),
                Action(name="NO", validate=_fixed(False)),
            )
        )
        valid = await dispatcher.validate_actions(None, _message(), None)
        assert [a.name for a in valid] == ["YES"]

    async def test_providers_drop_empty_text(self):
        registry = CapabilityRegistry()
        registry.register_provider(Provider(name="weather", get=_fixed("Sunny.")))
        registry.register_provider(Provider(name="silent", get=_fixed("")))
        dispatcher = CapabilityDispatcher(registry)
        assert await dispatcher.collect_providers(None, _message(), None) == ["Sunny."]


class TestEvaluate:
    async def test_runs_only_validated_and_chosen_evaluators(self, make_runtime, llm):
        runtime = make_runtime(register_defaults=False)
        calls: list[str] = []

        def evaluator(name: str, valid: bool) -> Evaluator:
            async def handler(runtime, message, state, options, callback):
                calls.append(name)

            return Evaluator(
                name=name,
                description=f"{name.lower()} things",
                validate=_fixed(valid),
                handler=handler,
            )

        runtime.register_evaluator(evaluator("SUMMARIZE", True))
        runtime.register_evaluator(evaluator("REFLECT", True))
        runtime.register_evaluator(evaluator("HIDDEN", False))
        llm.queue('["SUMMARIZE", "HIDDEN"]')

        chosen = await runtime.evaluate(_message())

        assert chosen == ["SUMMARIZE", "HIDDEN"]
        assert calls == ["SUMMARIZE"]
        prompt = llm.prompts[0]
        assert "'SUMMARIZE: summarize things'" in prompt
        assert "'REFLECT'" in prompt
        assert "HIDDEN" not in prompt

    async def test_no_eligible_evaluators_skips_the_model(self, make_runtime, llm):
        runtime = make_runtime(register_defaults=False)
        runtime.register_evaluator(Evaluator(name="NEVER", validate=_fixed(False)))
        assert await runtime.evaluate(_message()) == []
        assert llm.prompts == []


class TestFormatting:
    def test_action_names_are_shuffled_deterministically(self):
        actions = [Action(name=n) for n in ("A", "B", "C", "D")]
        first = format_action_names(actions, random.Random(3))
        again = format_action_names(actions, random.Random(3))
        assert first == again
        assert sorted(first.split(", ")) == ["A", "B", "C", "D"]

    def test_action_examples_fill_placeholders(self):
        wave = Action(
            name="WAVE",
            examples=(
                (
                    MessageExample(user="{{user1}}", content=Content(text="hello {{user2}}")),
                    MessageExample(
                        user="{{user2}}", content=Content(text="", action="WAVE")
                    ),
                ),
            ),
        )
        rendered = compose_action_examples([wave], 10, random.Random(1))
        assert "{{user" not in rendered
        assert rendered.rstrip().endswith("(WAVE)")

    def test_evaluator_names_are_quoted(self):
        evaluators = [Evaluator(name="ONE"), Evaluator(name="TWO")]
        assert format_evaluator_names(evaluators) == "'ONE',\n'TWO'"
