"""Provider adapters: one async ``complete()`` call per chat request."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from hiveline.cost.types import TokenUsage
from hiveline.errors import APIError, ProviderTimeoutError
from hiveline.llm.factory import get_llm

logger = logging.getLogger(__name__)

_ROLE_MAP: dict[str, type[BaseMessage]] = {
    "system": SystemMessage,
    "user": HumanMessage,
    "human": HumanMessage,
    "assistant": AIMessage,
    "ai": AIMessage,
}


@dataclass(frozen=True)
class ProviderResponse:
    content: str
    usage: TokenUsage
    model: str
    cached: bool = False


class ChatProvider(ABC):
    """Async chat-completion interface used by the orchestrator."""

    name: str = "provider"

    @abstractmethod
    async def complete(
        self,
        model: str,
        messages: Sequence[Mapping[str, Any]],
        temperature: float | None = None,
    ) -> ProviderResponse: ...


def to_langchain_messages(messages: Sequence[Mapping[str, Any]]) -> list[BaseMessage]:
    """Convert ``{"role": ..., "content": ...}`` dicts to LangChain messages."""
    converted: list[BaseMessage] = []
    for m in messages:
        cls = _ROLE_MAP.get(str(m.get("role", "user")).lower(), HumanMessage)
        converted.append(cls(content=m.get("content", "")))
    return converted


class LiteLLMProvider(ChatProvider):
    """Any LiteLLM-supported model through LangChain's chat interface."""

    name = "litellm"

    def __init__(
        self,
        timeout: float | None = 120.0,
        llm_factory: Callable[..., BaseChatModel] = get_llm,
    ) -> None:
        self.timeout = timeout
        self._llm_factory = llm_factory

    async def complete(
        self,
        model: str,
        messages: Sequence[Mapping[str, Any]],
        temperature: float | None = None,
    ) -> ProviderResponse:
        llm = (
            self._llm_factory(model)
            if temperature is None
            else self._llm_factory(model, temperature)
        )
        try:
            response = await asyncio.wait_for(
                llm.ainvoke(to_langchain_messages(messages)), timeout=self.timeout
            )
        except TimeoutError as e:
            raise ProviderTimeoutError(
                f"{model} did not respond within {self.timeout}s", timeout=self.timeout
            ) from e
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            if _is_litellm_timeout(e) or status_code == 408:
                raise ProviderTimeoutError(f"{model} timed out: {e}", timeout=self.timeout) from e
            if isinstance(status_code, int):
                raise APIError(str(e), provider=self.name, status_code=status_code) from e
            raise

        usage_meta = getattr(response, "usage_metadata", None) or {}
        content = response.content if isinstance(response.content, str) else str(response.content)
        return ProviderResponse(
            content=content,
            usage=TokenUsage(
                model=model,
                prompt_tokens=usage_meta.get("input_tokens", 0),
                completion_tokens=usage_meta.get("output_tokens", 0),
            ),
            model=model,
        )


class EchoProvider(ChatProvider):
    """Offline provider: echoes the last user message. For dry runs and tests."""

    name = "echo"

    def __init__(self, prefix: str = "echo: ") -> None:
        self.prefix = prefix
        self.calls = 0

    async def complete(
        self,
        model: str,
        messages: Sequence[Mapping[str, Any]],
        temperature: float | None = None,
    ) -> ProviderResponse:
        self.calls += 1
        last_user = next(
            (str(m.get("content", "")) for m in reversed(messages) if m.get("role") == "user"),
            "",
        )
        content = f"{self.prefix}{last_user}"
        prompt_chars = sum(len(str(m.get("content", ""))) for m in messages)
        return ProviderResponse(
            content=content,
            usage=TokenUsage(
                model=model,
                prompt_tokens=_estimate_tokens(prompt_chars),
                completion_tokens=_estimate_tokens(len(content)),
            ),
            model=model,
        )


def _is_litellm_timeout(error: BaseException) -> bool:
    import litellm

    return isinstance(error, litellm.Timeout)


def _estimate_tokens(chars: int) -> int:
    # ~4 characters per token
    return max(1, (chars + 3) // 4) if chars else 0
