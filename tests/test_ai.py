"""Summary: Tests for the AI abstraction layer.

Importance: Ensures providers return normalized completions for routing and generation.
Alternatives: Skip AI testing and rely on manual verification.
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any

import pytest

from autoply.ai import (
    AiProviderFactory,
    ChatCompletion,
    MockAiProvider,
    OpenRouterProvider,
    ToolCall,
    _parse_completion,
    estimate_tokens,
)
from autoply.config import AppConfig
from autoply.tools import TOOLS


class _FakeResponse:
    def __init__(self, payload: dict[str, Any]) -> None:
        self._body = json.dumps(payload).encode("utf-8")

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *_args: object) -> None:
        return None


def test_mock_ai_provider_returns_response() -> None:
    """Summary: Verify mock AI provider returns deterministic text.

    Importance: Confirms basic AI abstraction behavior for tests.
    Alternatives: Use live providers in integration tests only.
    """

    provider = MockAiProvider()
    response, latency = provider.generate_text("Hello", "route")
    assert "[mock:route]" in response
    assert latency >= 0
    completion = provider.complete([{"role": "user", "content": "Hi"}], TOOLS, "generate")
    assert completion.content == "[mock:generate] Hi"
    assert completion.tool_calls == ()


def test_parse_completion_reads_tool_calls() -> None:
    """Summary: Verify tool calls in a chat-completions payload become ToolCall records.

    Importance: The generator loop depends on ids and raw arguments surviving parsing.
    Alternatives: Decode arguments eagerly into dicts at the provider boundary.
    """

    raw = {
        "choices": [
            {
                "message": {
                    "content": None,
                    "tool_calls": [
                        {
                            "id": "call_9",
                            "type": "function",
                            "function": {"name": "generate_email", "arguments": {"jobTitle": "SRE"}},
                        }
                    ],
                }
            }
        ]
    }
    completion = _parse_completion(raw, 12)
    assert completion.content == ""
    assert completion.tool_calls == (
        ToolCall(id="call_9", name="generate_email", arguments='{"jobTitle": "SRE"}'),
    )
    assert completion.latency_ms == 12


def test_parse_completion_without_choices_raises() -> None:
    """Summary: Verify a payload without choices is treated as a provider failure.

    Importance: Empty upstream replies must not look like a finished generation.
    Alternatives: Return an empty completion and let callers guess.
    """

    with pytest.raises(RuntimeError):
        _parse_completion({"error": {"message": "rate limited"}}, 0)


def test_as_message_replays_tool_calls() -> None:
    """Summary: Verify an assistant turn with tool calls is replayed in wire format.

    Importance: Tool results are only accepted after the matching assistant message.
    Alternatives: Rebuild assistant messages inside the generator.
    """

    completion = ChatCompletion(
        content="", tool_calls=(ToolCall(id="c1", name="generate_email", arguments="{}"),)
    )
    message = completion.as_message()
    assert message["role"] == "assistant"
    assert message["tool_calls"][0]["function"] == {"name": "generate_email", "arguments": "{}"}


def test_openrouter_provider_posts_tools(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify the request carries model, tools, and bearer auth.

    Importance: Tool declarations drive the drafting loop.
    Alternatives: Only test against the live endpoint.
    """

    captured: dict[str, Any] = {}

    def _fake_urlopen(request: Any, timeout: int) -> _FakeResponse:
        captured["url"] = request.full_url
        captured["auth"] = request.get_header("Authorization")
        captured["body"] = json.loads(request.data.decode("utf-8"))
        return _FakeResponse({"choices": [{"message": {"content": "Hello"}}]})

    monkeypatch.setattr("urllib.request.urlopen", _fake_urlopen)
    provider = OpenRouterProvider("sk-test", "heavy-model", "https://openrouter.test/api/v1/")
    completion = provider.complete([{"role": "user", "content": "Hi"}], TOOLS, "generate")
    assert completion.content == "Hello"
    assert captured["url"] == "https://openrouter.test/api/v1/chat/completions"
    assert captured["auth"] == "Bearer sk-test"
    assert captured["body"]["model"] == "heavy-model"
    assert captured["body"]["tool_choice"] == "auto"
    text, _ = provider.generate_text("Route this", "route")
    assert text == "Hello"
    assert "tools" not in captured["body"]


def test_factory_builds_light_and_heavy_models(config: AppConfig) -> None:
    """Summary: Verify the factory builds providers for the configured light and heavy models.

    Importance: Routing and drafting deliberately use different models.
    Alternatives: Use a single model for every purpose.
    """

    openrouter = dataclasses.replace(config, ai_provider="openrouter", openrouter_api_key="sk")
    factory = AiProviderFactory(openrouter)
    assert factory.build_light().model == "light-model"
    assert factory.build_heavy().model == "heavy-model"
    assert isinstance(AiProviderFactory(config).build_light(), MockAiProvider)


def test_factory_requires_api_key_for_openrouter(config: AppConfig) -> None:
    """Summary: Verify OpenRouter cannot be selected without an API key.

    Importance: Misconfiguration should fail at startup, not on the first user message.
    Alternatives: Defer the check until the first request.
    """

    with pytest.raises(ValueError):
        AiProviderFactory(dataclasses.replace(config, ai_provider="openrouter")).build_heavy()


def test_estimate_tokens_has_floor() -> None:
    assert estimate_tokens("") == 1
    assert estimate_tokens("a" * 40) == 10
