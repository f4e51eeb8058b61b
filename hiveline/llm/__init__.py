"""Provider adapters over LangChain and LiteLLM."""

from __future__ import annotations

from hiveline.llm.factory import get_llm
from hiveline.llm.provider import (
    ChatProvider,
    EchoProvider,
    LiteLLMProvider,
    ProviderResponse,
    to_langchain_messages,
)

__all__ = [
    "ChatProvider",
    "EchoProvider",
    "LiteLLMProvider",
    "ProviderResponse",
    "get_llm",
    "to_langchain_messages",
]
