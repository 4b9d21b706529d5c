"""LLM module."""

from visitguard.llm.model_factory import get_chat_model

__all__ = ["get_chat_model"]
