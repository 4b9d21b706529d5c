from unittest.mock import patch

from visitguard.config.settings import settings
from visitguard.llm import model_factory
from visitguard.llm.model_factory import ModelFactory, OllamaProvider, OpenAIProvider, get_chat_model


class TestModelFactory:
    def test_disabled_provider_returns_none(self, monkeypatch):
        monkeypatch.setattr(settings, "SCRIBE_PROVIDER", "none")
        assert get_chat_model("SCRIBE") is None

    def test_unknown_provider_returns_none(self, monkeypatch):
        monkeypatch.setattr(settings, "SCRIBE_PROVIDER", "gemini")
        assert get_chat_model("SCRIBE") is None

    def test_auto_prefers_openai_with_credentials(self, monkeypatch):
        monkeypatch.setattr(settings, "SCRIBE_PROVIDER", "")
        monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")
        provider = ModelFactory().resolve_provider("SCRIBE", "gpt-4o-mini")
        assert isinstance(provider, OpenAIProvider)

    @patch.object(OllamaProvider, "_model_exists", return_value=False)
    def test_auto_without_any_provider(self, _mock_exists, monkeypatch):
        monkeypatch.setattr(settings, "SCRIBE_PROVIDER", "auto")
        monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
        assert ModelFactory().resolve_provider("SCRIBE", "llama3") is None

    @patch.object(OllamaProvider, "_model_exists", return_value=True)
    def test_auto_falls_back_to_local_ollama(self, _mock_exists, monkeypatch):
        monkeypatch.setattr(settings, "SCRIBE_PROVIDER", "")
        monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
        provider = ModelFactory().resolve_provider("SCRIBE", "llama3")
        assert isinstance(provider, OllamaProvider)

    def test_model_name_comes_from_settings(self, monkeypatch):
        created = {}

        def _fake_create(self, agent_key, model, temperature):
            created.update(agent_key=agent_key, model=model, temperature=temperature)
            return "chat-model"

        monkeypatch.setattr(settings, "SCRIBE_PROVIDER", "openai")
        monkeypatch.setattr(settings, "SCRIBE_MODEL", "gpt-4.1-mini")
        monkeypatch.setattr(OpenAIProvider, "create", _fake_create)
        assert model_factory.get_chat_model("SCRIBE") == "chat-model"
        assert created == {"agent_key": "SCRIBE", "model": "gpt-4.1-mini", "temperature": 0.2}
