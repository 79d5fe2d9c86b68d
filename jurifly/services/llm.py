# =============================================================================
# LLM Providers — Hosted Model Backend for Prompt Flows
# =============================================================================
#
# Every prompt flow ends in one `LLMProvider.complete()` call. Two provider
# families are supported:
#   - Anthropic (Claude) through the native SDK
#   - Any OpenAI-compatible endpoint (OpenAI, Gemini, DeepSeek, ...) through
#     the OpenAI SDK with a custom base_url
#
# DESIGN DECISION: Protocol (structural typing), matching DocumentStore in
# store.py. The flow runner and the tests only need an object with
# `provider_type` and an async `complete()`.
#
# DESIGN DECISION: JSON output is requested the way each API supports it.
# OpenAI-compatible APIs take `response_format={"type": "json_object"}`;
# Claude gets an assistant turn pre-filled with "{", and the brace is put
# back in front of the returned text.
#
# Timeouts and retries are the SDKs' own (LLM_TIMEOUT_SECONDS,
# LLM_MAX_RETRIES). A call that still fails raises; the flows router refunds.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from jurifly.config import settings
from jurifly.errors import ConfigurationError

logger = logging.getLogger(__name__)

Message = dict[str, str]

_JSON_PREFILL = "{"


@dataclass
class LLMResponse:
    """
    One completion, whichever provider produced it.

    Usage is reported as input_tokens / output_tokens for both families
    (OpenAI calls them prompt_tokens / completion_tokens).
    """

    content: str
    model: str
    input_tokens: int
    output_tokens: int


class LLMProvider(Protocol):
    """What the flow runner needs from a model backend."""

    provider_type: str

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_output: bool = False,
    ) -> LLMResponse:
        """
        Args:
            messages: {"role": "user" | "assistant", "content": ...} dicts.
            system: System prompt.
            temperature: Overrides LLM_TEMPERATURE.
            max_tokens: Overrides LLM_MAX_TOKENS.
            json_output: Ask the API for a bare JSON object.
        """
        ...


class _HostedProvider:
    """Model name and sampling defaults shared by both SDK adapters."""

    provider_type = "unknown"

    def __init__(self, model: str | None) -> None:
        self.model = model or settings.llm_model
        self.temperature = settings.llm_temperature
        self.max_tokens = settings.llm_max_tokens

    def _sampling(
        self, temperature: float | None, max_tokens: int | None,
    ) -> dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
        }


class AnthropicProvider(_HostedProvider):
    """Claude via AsyncAnthropic. The system prompt is a top-level kwarg."""

    provider_type = "anthropic"

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        from anthropic import AsyncAnthropic

        key = api_key or settings.llm_api_key or settings.anthropic_api_key
        if not key:
            raise ConfigurationError(
                "The AI service is not configured: set LLM_API_KEY or "
                "ANTHROPIC_API_KEY."
            )
        super().__init__(model)
        self._client = AsyncAnthropic(
            api_key=key,
            timeout=settings.llm_timeout_seconds,
            max_retries=settings.llm_max_retries,
        )
        logger.info("Initialized AnthropicProvider (model=%s)", self.model)

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_output: bool = False,
    ) -> LLMResponse:
        request = self._sampling(temperature, max_tokens)
        if json_output:
            messages = [*messages, {"role": "assistant", "content": _JSON_PREFILL}]
        request["messages"] = messages
        if system:
            request["system"] = system

        response = await self._client.messages.create(**request)
        text = "".join(
            block.text for block in response.content if block.type == "text"
        )
        if json_output:
            text = _JSON_PREFILL + text

        return LLMResponse(
            content=text,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


class OpenAICompatibleProvider(_HostedProvider):
    """
    Any chat-completions API. Switching vendor is a config change:

        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://generativelanguage.googleapis.com/v1beta/openai/
        LLM_MODEL=gemini-2.0-flash
    """

    provider_type = "openai_compatible"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        from openai import AsyncOpenAI

        key = api_key or settings.llm_api_key or settings.openai_api_key
        if not key:
            raise ConfigurationError(
                "The AI service is not configured: set LLM_API_KEY or "
                "OPENAI_API_KEY."
            )
        super().__init__(model)
        self.base_url = base_url or settings.llm_base_url
        self._client = AsyncOpenAI(
            api_key=key,
            base_url=self.base_url,
            timeout=settings.llm_timeout_seconds,
            max_retries=settings.llm_max_retries,
        )
        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self.model, self.base_url or "default",
        )

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_output: bool = False,
    ) -> LLMResponse:
        request = self._sampling(temperature, max_tokens)
        request["messages"] = (
            [{"role": "system", "content": system}, *messages] if system else messages
        )
        if json_output:
            request["response_format"] = {"type": "json_object"}

        response = await self._client.chat.completions.create(**request)
        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model or self.model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


_PROVIDERS: dict[str, type[_HostedProvider]] = {
    "anthropic": AnthropicProvider,
    "openai_compatible": OpenAICompatibleProvider,
}

# Lazy singleton: SDK clients pool their own connections
_provider: LLMProvider | None = None


def get_llm_provider() -> LLMProvider:
    """
    Return the provider selected by LLM_PROVIDER.

    Raises:
        ConfigurationError: unknown provider, or no API key for it. The
            error handler answers 503.
    """
    global _provider
    if _provider is None:
        provider_class = _PROVIDERS.get(settings.llm_provider)
        if provider_class is None:
            raise ConfigurationError(
                f"Unknown LLM_PROVIDER '{settings.llm_provider}'. "
                f"Use one of: {', '.join(_PROVIDERS)}."
            )
        _provider = provider_class()
    return _provider
