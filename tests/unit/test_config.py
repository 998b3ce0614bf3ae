"""Unit tests for configuration dataclasses and setting resolution."""

import os
from dataclasses import FrozenInstanceError

import pytest

from agentcortex.config import LLMConfig
from agentcortex.config import llm_config_from_character
from agentcortex.config import load_environment
from agentcortex.config import resolve_setting
from agentcortex.config import RetryConfig
from agentcortex.config import RuntimeConfig
from agentcortex.models import Character
from agentcortex.models import CharacterSettings


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_llm_config(self):
        cfg = LLMConfig()
        assert cfg.provider == "openai"
        assert cfg.api_key is None
        assert cfg.temperature == 0.3
        assert cfg.max_context_length == 8000

    def test_retry_config(self):
        cfg = RetryConfig()
        assert cfg.base_delay_seconds == 1.0
        assert cfg.multiplier == 2.0
        assert cfg.transport_max_attempts == 5
        assert cfg.parse_max_attempts is None

    def test_runtime_config(self):
        cfg = RuntimeConfig()
        assert cfg.conversation_length == 32
        assert cfg.attachment_window_ms == 60 * 60 * 1000
        assert cfg.default_encoding == "cl100k_base"
        assert cfg.embedding_memo_size == 1024

    def test_frozen(self):
        with pytest.raises(FrozenInstanceError):
            RuntimeConfig().conversation_length = 8


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestResolveSetting:
    def _character(self, **settings) -> Character:
        return Character(name="Ada", settings=CharacterSettings.model_validate(settings))

    def test_secrets_then_settings_then_env(self):
        character = self._character(secrets={"A": "secret"}, A="setting", B="setting")
        env = {"A": "env", "B": "env", "C": "env"}
        assert resolve_setting(character, "A", env) == "secret"
        assert resolve_setting(character, "B", env) == "setting"
        assert resolve_setting(character, "C", env) == "env"

    def test_empty_values_fall_through(self):
        character = self._character(secrets={"A": ""}, A="")
        assert resolve_setting(character, "A", {"A": "env"}) == "env"
        assert resolve_setting(None, "A", {"A": ""}) is None

    def test_defaults_to_process_environment(self, monkeypatch):
        monkeypatch.setenv("AGENTCORTEX_TEST_SETTING", "from-os")
        assert resolve_setting(None, "AGENTCORTEX_TEST_SETTING") == "from-os"

    def test_llm_config_overrides(self):
        character = Character(
            name="Ada",
            settings=CharacterSettings(model="small-model", embedding_model="tiny-embed"),
        )
        cfg = llm_config_from_character(
            character,
            environ={"OPENAI_API_KEY": "sk-env", "OPENAI_BASE_URL": "http://local/v1"},
        )
        assert cfg.model == "small-model"
        assert cfg.embedding_model == "tiny-embed"
        assert cfg.api_key == "sk-env"
        assert cfg.base_url == "http://local/v1"

    def test_explicit_api_key_is_kept(self):
        cfg = llm_config_from_character(
            Character(name="Ada"),
            base=LLMConfig(api_key="sk-explicit"),
            environ={"OPENAI_API_KEY": "sk-env"},
        )
        assert cfg.api_key == "sk-explicit"


class TestLoadEnvironment:
    def test_existing_variables_win(self, tmp_path, monkeypatch):
        dotenv = tmp_path / ".env"
        dotenv.write_text("AGENTCORTEX_A=file\nAGENTCORTEX_B=file\n")
        monkeypatch.setenv("AGENTCORTEX_A", "process")
        # registered so the value loaded from the file is removed on teardown
        monkeypatch.setenv("AGENTCORTEX_B", "unset")
        monkeypatch.delenv("AGENTCORTEX_B")

        assert load_environment(dotenv) is True

        assert os.environ["AGENTCORTEX_A"] == "process"
        assert os.environ["AGENTCORTEX_B"] == "file"
