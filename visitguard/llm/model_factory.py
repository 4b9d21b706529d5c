from abc import ABC, abstractmethod
from typing import Any

import httpx

from visitguard.config.logger import get_logger
from visitguard.config.settings import settings

_logger = get_logger(__name__)


class BaseModelProvider(ABC):
    """Abstract provider contract for chat model creation."""

    name: str = "base"

    @abstractmethod
    def is_available(self, agent_key: str, model: str) -> bool:
        """Whether this provider can serve the given agent/model."""

    @abstractmethod
    def create(self, agent_key: str, model: str, temperature: float) -> Any:
        """Create provider-specific langchain chat model instance."""


class OpenAIProvider(BaseModelProvider):
    name = "openai"

    def is_available(self, agent_key: str, model: str) -> bool:
        return settings.has_openai_like_creds(agent_key)

    def create(self, agent_key: str, model: str, temperature: float) -> Any:
        from langchain_openai import ChatOpenAI

        kwargs: dict[str, Any] = {
            "model": model,
            "api_key": settings.get_agent_api_key(agent_key),
            "temperature": temperature,
            "max_retries": 1,
        }
        base_url = settings.get_agent_base_url(agent_key, provider_hint=self.name)
        if base_url:
            kwargs["base_url"] = base_url
        return ChatOpenAI(**kwargs)


class OllamaProvider(BaseModelProvider):
    name = "ollama"

    def _base_url(self, agent_key: str) -> str:
        return settings.get_agent_base_url(agent_key, provider_hint=self.name)

    def _model_exists(self, base_url: str, model: str) -> bool:
        try:
            resp = httpx.get(f"{base_url.rstrip('/')}/api/tags", timeout=1.5)
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError):
            return False

        names = {(item.get("name", "") or "").strip().lower() for item in payload.get("models", [])}
        wanted = (model or "").strip().lower()
        if wanted in names:
            return True
        return ":" not in wanted and f"{wanted}:latest" in names

    def is_available(self, agent_key: str, model: str) -> bool:
        return bool(self._base_url(agent_key)) and self._model_exists(self._base_url(agent_key), model)

    def create(self, agent_key: str, model: str, temperature: float) -> Any:
        from langchain_ollama import ChatOllama

        return ChatOllama(model=model, base_url=self._base_url(agent_key), temperature=temperature)


class ModelFactory:
    """Provider registry + resolution strategy."""

    def __init__(self) -> None:
        self.providers: dict[str, BaseModelProvider] = {
            OpenAIProvider.name: OpenAIProvider(),
            OllamaProvider.name: OllamaProvider(),
        }

    def resolve_provider(self, agent_key: str, model: str) -> BaseModelProvider | None:
        provider_name = settings.get_agent_provider(agent_key).lower()
        if provider_name in {"none", "off", "template"}:
            return None
        if provider_name and provider_name != "auto":
            provider = self.providers.get(provider_name)
            if provider is None:
                raise ValueError(f"Unknown provider: {provider_name}")
            return provider

        # Auto: OpenAI-compatible when credentials exist, else a local Ollama model.
        for name in (OpenAIProvider.name, OllamaProvider.name):
            if self.providers[name].is_available(agent_key, model):
                return self.providers[name]
        return None

    def create_chat_model(self, agent_key: str, default_model: str, temperature: float) -> Any | None:
        model = settings.get_agent_model(agent_key, default_model)
        provider = self.resolve_provider(agent_key, model)
        if provider is None:
            _logger.info("[llm] no provider available for %s, model=%s", agent_key, model)
            return None
        _logger.info("[llm] %s -> provider=%s model=%s", agent_key, provider.name, model)
        return provider.create(agent_key=agent_key, model=model, temperature=temperature)


_FACTORY = ModelFactory()


def get_chat_model(agent_key: str, default_model: str = "gpt-4o-mini", temperature: float = 0.2) -> Any | None:
    """Chat model for ``agent_key``, or None when no provider can serve it."""
    try:
        return _FACTORY.create_chat_model(agent_key, default_model, temperature)
    except Exception as exc:
        _logger.warning("[llm] failed to create chat model for %s: %s", agent_key, exc)
        return None
