from __future__ import annotations

import os
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

_SUPPORTED = ("openai", "openai_compat", "local", "openrouter")


def get_chat_model(
    model_name: str,
    provider: str,
    model_parameters: dict[str, Any] | None = None,
    *,
    max_retries: int = 0,
    request_timeout: float = 60.0,
    base_url: str | None = None,
    api_key: str | None = None,
) -> BaseChatModel:
    """
    Return a LangChain chat model with a bounded timeout.

    provider:
      - "openai"                → ChatOpenAI (OpenAI API)
      - "openrouter"            → ChatOpenAI pointed at OpenRouter
      - "openai_compat"/"local" → ChatOpenAI pointed at a custom base_url (vLLM, llama.cpp, ...)

    Notes:
      - Retries are off by default: a failed extraction fails the request.
      - The model must support JSON-schema structured output for extraction.
    """
    model_parameters = dict(model_parameters or {})
    provider = provider.lower()

    if provider == "openai":
        kwargs: dict[str, Any] = {}
        if base_url:
            kwargs["base_url"] = base_url
        return ChatOpenAI(
            model=model_name,
            api_key=api_key,
            max_retries=max_retries,
            timeout=request_timeout,
            **kwargs,
            **model_parameters,
        )  # type: ignore[no-any-return]

    if provider in ("openai_compat", "local"):
        _base_url = base_url or os.getenv("OPENAI_BASE_URL") or "http://localhost:8080/v1"
        _api_key = api_key or os.getenv("OPENAI_API_KEY") or "sk-local"

        return ChatOpenAI(
            model=model_name,
            base_url=_base_url,
            api_key=_api_key,  # type: ignore
            max_retries=max_retries,
            timeout=request_timeout,
            **model_parameters,
        )  # type: ignore[no-any-return]

    if provider == "openrouter":
        _api_key = api_key or os.getenv("OPENROUTER_API_KEY")
        _base_url = base_url or os.getenv("OPENROUTER_BASE_URL") or "https://openrouter.ai/api/v1"
        return ChatOpenAI(
            model=model_name,
            api_key=_api_key,
            base_url=_base_url,
            max_retries=max_retries,
            timeout=request_timeout,
            **model_parameters,
        )

    raise ValueError(f"Unsupported provider '{provider}'. " f"Supported providers are: {', '.join(_SUPPORTED)}")
