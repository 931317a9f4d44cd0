"""Chat-model initialisation — single place to swap providers.

Supports two modes:

1. **Ollama** (default) — ``ChatOllama`` against ``OLLAMA_BASE_URL``.
2. **OpenAI-compatible** — set ``LLM_PROVIDER=openai``; ``LLM_BASE_URL``
   may point at any server exposing ``/v1/chat/completions`` (Ollama,
   vLLM, ...).  A dummy API key (``"EMPTY"``) is used when none is set.

Both clients are built with the configured request timeout.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from rag_workshop.backends import model_call

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel
    from langchain_core.messages import BaseMessage

    from rag_workshop.config import Settings

logger = logging.getLogger(__name__)


def get_chat_model(
    settings: Settings,
    *,
    temperature: float | None = None,
    model: str | None = None,
    json_mode: bool = False,
) -> BaseChatModel:
    """Return the configured chat model.

    Parameters
    ----------
    settings:
        Application settings.
    temperature:
        Overrides ``settings.chat_temperature``.
    model:
        Overrides ``settings.chat_model``.
    json_mode:
        Ask the backend to constrain its output to a JSON document.
    """
    temperature = settings.chat_temperature if temperature is None else temperature
    model = model or settings.chat_model

    if settings.llm_provider == "openai":
        from langchain_openai import ChatOpenAI

        kwargs: dict[str, Any] = {
            "model": model,
            "temperature": temperature,
            "timeout": settings.request_timeout_seconds,
        }
        if settings.llm_base_url:
            logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
            kwargs["base_url"] = settings.llm_base_url
            # local servers don't need a real key; the client requires a non-empty value
            kwargs["api_key"] = settings.openai_api_key or "EMPTY"
        else:
            kwargs["api_key"] = settings.openai_api_key
        if json_mode:
            kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}
        return ChatOpenAI(**kwargs)

    from langchain_ollama import ChatOllama

    kwargs = {
        "model": model,
        "base_url": settings.ollama_base_url,
        "temperature": temperature,
        "client_kwargs": {"timeout": settings.request_timeout_seconds},
    }
    if json_mode:
        kwargs["format"] = "json"
    return ChatOllama(**kwargs)


def message_text(message: Any) -> str:
    """Return the plain-text content of a model message or chunk."""
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    # multi-part content: keep the text parts only
    return "".join(
        part if isinstance(part, str) else part.get("text", "")
        for part in content
        if isinstance(part, (str, dict))
    )


def complete(model: Any, messages: list[BaseMessage]) -> str:
    """Invoke *model* once and return its text answer.

    Raises
    ------
    ModelUnavailable
        The chat backend is unreachable (``ModelTimeout`` on expiry).
    """
    with model_call("chat"):
        response = model.invoke(messages)
    return message_text(response)
