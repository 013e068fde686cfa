"""LLM providers — ABC, OpenAI and Anthropic implementations, fallback and mocks."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from copilot_gateway.engine.models import (
    FinishReason,
    LLMMessage,
    LLMRequest,
    LLMResult,
    Role,
    TokenUsage,
    ToolCallRequest,
)
from copilot_gateway.exceptions import LLMProviderError

if TYPE_CHECKING:
    from copilot_gateway.config import GatewaySettings

logger = logging.getLogger(__name__)


class LLMProvider(ABC):
    """Abstract completion backend. Returns a complete (non-streaming) response.

    ``is_available`` only inspects local configuration; it never touches the
    network. ``complete`` raises ``LLMProviderError`` on upstream failure.
    """

    name: str = "base"

    @abstractmethod
    def is_available(self) -> bool: ...

    @abstractmethod
    async def complete(self, request: LLMRequest) -> LLMResult: ...


def _usage(prompt: Any, completion: Any) -> TokenUsage:
    p = prompt if isinstance(prompt, int) else 0
    c = completion if isinstance(completion, int) else 0
    return TokenUsage(prompt_tokens=p, completion_tokens=c, total_tokens=p + c)


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Discarding unparseable tool arguments: %.200s", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


# ---------------------------------------------------------------------------
# OpenAI implementation
# ---------------------------------------------------------------------------

_OPENAI_FINISH = {
    "stop": FinishReason.STOP,
    "tool_calls": FinishReason.TOOL_CALLS,
    "function_call": FinishReason.TOOL_CALLS,
    "length": FinishReason.LENGTH,
    "content_filter": FinishReason.CONTENT_FILTER,
}


class OpenAIProvider(LLMProvider):
    name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
    ) -> None:
        self._model = model
        self._client = None
        if api_key:
            # Late import so the rest of the package works without openai installed
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=api_key, timeout=timeout)

    def is_available(self) -> bool:
        return self._client is not None

    async def complete(self, request: LLMRequest) -> LLMResult:
        if self._client is None:
            raise LLMProviderError("OpenAI API key not configured", provider=self.name)

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": [{"role": m.role.value, "content": m.content} for m in request.messages],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if request.stop:
            kwargs["stop"] = request.stop
        if request.tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.parameters or {"type": "object", "properties": {}},
                    },
                }
                for t in request.tools
            ]

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except Exception as exc:
            raise LLMProviderError(f"OpenAI API error: {exc}", provider=self.name) from exc

        if not getattr(response, "choices", None):
            raise LLMProviderError("OpenAI returned no choices", provider=self.name)
        choice = response.choices[0]

        tool_calls = None
        if getattr(choice.message, "tool_calls", None):
            tool_calls = [
                ToolCallRequest(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=_parse_arguments(tc.function.arguments),
                )
                for tc in choice.message.tool_calls
            ]

        usage = getattr(response, "usage", None)
        return LLMResult(
            content=choice.message.content or "",
            tool_calls=tool_calls,
            usage=_usage(
                getattr(usage, "prompt_tokens", 0),
                getattr(usage, "completion_tokens", 0),
            ),
            finish_reason=_OPENAI_FINISH.get(choice.finish_reason or "stop", FinishReason.STOP),
        )


# ---------------------------------------------------------------------------
# Anthropic implementation
# ---------------------------------------------------------------------------

_ANTHROPIC_FINISH = {
    "end_turn": FinishReason.STOP,
    "stop_sequence": FinishReason.STOP,
    "tool_use": FinishReason.TOOL_CALLS,
    "max_tokens": FinishReason.LENGTH,
    "refusal": FinishReason.CONTENT_FILTER,
}


def fold_messages(messages: list[LLMMessage]) -> tuple[str, list[dict[str, str]]]:
    """Split out the system prompt and merge consecutive same-role turns.

    The Messages API wants alternating user/assistant turns starting with
    ``user``, and takes the system prompt as a separate argument.
    """
    system_parts: list[str] = []
    folded: list[dict[str, str]] = []
    for m in messages:
        if m.role == Role.SYSTEM:
            system_parts.append(m.content)
            continue
        if folded and folded[-1]["role"] == m.role.value:
            folded[-1]["content"] += "\n\n" + m.content
        else:
            folded.append({"role": m.role.value, "content": m.content})
    if folded and folded[0]["role"] != Role.USER.value:
        folded.insert(0, {"role": Role.USER.value, "content": "(início da conversa)"})
    return "\n\n".join(system_parts), folded


class AnthropicProvider(LLMProvider):
    name = "anthropic"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-3-5-haiku-latest",
        timeout: float = 30.0,
    ) -> None:
        self._model = model
        self._client = None
        if api_key:
            import anthropic

            self._client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)

    def is_available(self) -> bool:
        return self._client is not None

    async def complete(self, request: LLMRequest) -> LLMResult:
        if self._client is None:
            raise LLMProviderError("Anthropic API key not configured", provider=self.name)

        system, messages = fold_messages(request.messages)
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": request.max_tokens,
            "messages": messages,
            "temperature": request.temperature,
        }
        if system:
            kwargs["system"] = system
        if request.stop:
            kwargs["stop_sequences"] = request.stop
        if request.tools:
            kwargs["tools"] = [
                {
                    "name": t.name,
                    "description": t.description,
                    "input_schema": t.parameters or {"type": "object", "properties": {}},
                }
                for t in request.tools
            ]

        logger.debug("anthropic request model=%s messages=%d", self._model, len(messages))
        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as exc:
            raise LLMProviderError(f"Anthropic API error: {exc}", provider=self.name) from exc

        texts: list[str] = []
        tool_calls: list[ToolCallRequest] = []
        for block in getattr(response, "content", None) or []:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                texts.append(getattr(block, "text", "") or "")
            elif block_type == "tool_use":
                tool_calls.append(ToolCallRequest(
                    id=getattr(block, "id", ""),
                    name=getattr(block, "name", ""),
                    arguments=_parse_arguments(getattr(block, "input", None)),
                ))

        usage = getattr(response, "usage", None)
        stop_reason = getattr(response, "stop_reason", None) or "end_turn"
        return LLMResult(
            content="".join(texts),
            tool_calls=tool_calls or None,
            usage=_usage(
                getattr(usage, "input_tokens", 0),
                getattr(usage, "output_tokens", 0),
            ),
            finish_reason=_ANTHROPIC_FINISH.get(stop_reason, FinishReason.STOP),
        )


# ---------------------------------------------------------------------------
# Fallback selector
# ---------------------------------------------------------------------------

class FallbackLLMProvider(LLMProvider):
    """Routes to *primary*; on ``LLMProviderError`` retries once on *fallback*.

    A primary that is not available is skipped without a call.
    """

    def __init__(self, primary: LLMProvider | None, fallback: LLMProvider) -> None:
        self.primary = primary
        self.fallback = fallback
        self.name = primary.name if primary is not None else fallback.name

    def is_available(self) -> bool:
        return self.fallback.is_available() or bool(self.primary and self.primary.is_available())

    async def complete(self, request: LLMRequest) -> LLMResult:
        if self.primary is not None and self.primary.is_available():
            try:
                return await self.primary.complete(request)
            except LLMProviderError as exc:
                logger.warning(
                    "provider=%s failed, falling back to %s: %s",
                    self.primary.name, self.fallback.name, exc,
                )
        return await self.fallback.complete(request)


def select_llm(settings: GatewaySettings) -> LLMProvider:
    """Build the provider chain once, from settings.

    An explicit ``llm_provider`` wins; ``auto`` prefers Anthropic, then
    OpenAI, whichever has a key. The fallback is always the fake provider.
    """
    from copilot_gateway.engine.fake_llm import FakeLLMProvider

    fake = FakeLLMProvider()
    timeout = settings.llm_timeout_seconds

    choice = settings.llm_provider
    if choice == "auto":
        if settings.anthropic_api_key:
            choice = "anthropic"
        elif settings.openai_api_key:
            choice = "openai"

    primary: LLMProvider | None = None
    if choice == "anthropic":
        primary = AnthropicProvider(settings.anthropic_api_key, settings.anthropic_model, timeout)
    elif choice == "openai":
        primary = OpenAIProvider(settings.openai_api_key, settings.openai_model, timeout)

    if primary is not None and not primary.is_available():
        logger.warning("provider=%s has no API key configured; using %s", primary.name, fake.name)
        primary = None

    logger.info("LLM provider: %s (fallback %s)", primary.name if primary else fake.name, fake.name)
    return FallbackLLMProvider(primary, fake)


# ---------------------------------------------------------------------------
# Test mock: deterministic, pre-loaded responses
# ---------------------------------------------------------------------------

class MockLLMProvider(LLMProvider):
    """Returns pre-configured responses in order. Used in unit tests."""

    name = "mock"

    def __init__(self, responses: list[LLMResult | str]) -> None:
        self._responses = [
            r if isinstance(r, LLMResult) else LLMResult(content=r) for r in responses
        ]
        self._call_index = 0
        self.requests: list[LLMRequest] = []

    def is_available(self) -> bool:
        return True

    async def complete(self, request: LLMRequest) -> LLMResult:
        self.requests.append(request)
        if self._call_index >= len(self._responses):
            return LLMResult(content="[mock responses exhausted]")
        result = self._responses[self._call_index]
        self._call_index += 1
        return result

    @property
    def call_count(self) -> int:
        return self._call_index
