# =============================================================================
# Unit Tests — LLM Provider Adapters
# =============================================================================
#
# The SDK clients are replaced with mocks after construction, so these tests
# check how each adapter shapes its request and normalises the reply without
# any network access.
# =============================================================================

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from jurifly.errors import ConfigurationError
from jurifly.services import llm as llm_module
from jurifly.services.llm import (
    AnthropicProvider,
    OpenAICompatibleProvider,
    get_llm_provider,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _anthropic(text: str) -> AnthropicProvider:
    provider = AnthropicProvider(api_key="test-key", model="claude-sonnet-4-6")
    provider._client = MagicMock()
    provider._client.messages.create = AsyncMock(return_value=SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        model="claude-sonnet-4-6",
        usage=SimpleNamespace(input_tokens=11, output_tokens=7),
    ))
    return provider


def _openai(text: str | None, usage=True) -> OpenAICompatibleProvider:
    provider = OpenAICompatibleProvider(api_key="test-key", model="gpt-4o-mini")
    provider._client = MagicMock()
    provider._client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        model="gpt-4o-mini",
        usage=SimpleNamespace(prompt_tokens=5, completion_tokens=3) if usage else None,
    ))
    return provider


USER = [{"role": "user", "content": "Explain CAC"}]


class TestAnthropicProvider:
    """Tests for the Claude adapter."""

    def test_system_prompt_is_a_kwarg(self):
        provider = _anthropic("Hello")
        response = _run(provider.complete(USER, system="Be brief."))

        kwargs = provider._client.messages.create.call_args.kwargs
        assert kwargs["system"] == "Be brief."
        assert all(m["role"] != "system" for m in kwargs["messages"])
        assert response.content == "Hello"
        assert (response.input_tokens, response.output_tokens) == (11, 7)

    def test_json_output_prefills_brace(self):
        provider = _anthropic('"a": 1}')
        response = _run(provider.complete(USER, json_output=True))

        kwargs = provider._client.messages.create.call_args.kwargs
        assert kwargs["messages"][-1] == {"role": "assistant", "content": "{"}
        assert response.content == '{"a": 1}'

    def test_overrides(self):
        provider = _anthropic("x")
        _run(provider.complete(USER, temperature=0.0, max_tokens=50))
        kwargs = provider._client.messages.create.call_args.kwargs
        assert kwargs["temperature"] == 0.0
        assert kwargs["max_tokens"] == 50

    def test_missing_key_raises(self):
        with patch.object(llm_module, "settings") as mock_settings:
            mock_settings.llm_api_key = None
            mock_settings.anthropic_api_key = ""
            with pytest.raises(ConfigurationError):
                AnthropicProvider()


class TestOpenAICompatibleProvider:
    """Tests for the chat-completions adapter."""

    def test_system_prompt_is_first_message(self):
        provider = _openai("Hi")
        _run(provider.complete(USER, system="Be brief."))
        messages = provider._client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "Be brief."}
        assert messages[1] == USER[0]

    def test_json_output_sets_response_format(self):
        provider = _openai('{"a": 1}')
        _run(provider.complete(USER, json_output=True))
        kwargs = provider._client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}

    def test_missing_usage_and_content(self):
        response = _run(_openai(None, usage=False).complete(USER))
        assert response.content == ""
        assert (response.input_tokens, response.output_tokens) == (0, 0)


class TestFactory:
    """Tests for get_llm_provider()."""

    def test_unknown_provider_raises(self, monkeypatch):
        monkeypatch.setattr(llm_module, "_provider", None)
        monkeypatch.setattr(llm_module.settings, "llm_provider", "carrier-pigeon")
        with pytest.raises(ConfigurationError) as exc_info:
            get_llm_provider()
        assert exc_info.value.status_code == 503

    def test_singleton(self, monkeypatch):
        sentinel = MagicMock()
        monkeypatch.setattr(llm_module, "_provider", sentinel)
        assert get_llm_provider() is sentinel
