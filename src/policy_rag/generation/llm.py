"""Chat-model initialisation — single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenAI-compatible server** — set ``LLM_BASE_URL`` (vLLM, LiteLLM,
   …).  ``ChatOpenAI`` works unchanged against ``/v1/chat/completions``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from langchain_openai import ChatOpenAI

from policy_rag.config import settings as default_settings

if TYPE_CHECKING:
    from policy_rag.config import Settings

logger = logging.getLogger(__name__)


def get_llm(settings: Settings = default_settings) -> ChatOpenAI:
    """Return the configured chat model with token streaming enabled."""
    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": settings.llm_temperature,
        "api_key": settings.openai_api_key,
        "streaming": True,
    }
    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # Self-hosted servers often need no key; LangChain requires a non-empty value.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    return ChatOpenAI(**kwargs)
