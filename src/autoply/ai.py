"""Summary: AI provider abstraction and implementations.

Importance: Centralizes LLM access for the light router and heavy generator models.
Alternatives: Call provider SDKs directly in each service.
"""

from __future__ import annotations

import json
import time
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from autoply.config import AppConfig


@dataclass(frozen=True)
class ToolCall:
    """Summary: A function call requested by the model.

    Importance: Keeps raw JSON arguments until the tool runner validates them.
    Alternatives: Parse arguments eagerly and fail the whole completion on bad JSON.
    """

    id: str
    name: str
    arguments: str


@dataclass(frozen=True)
class ChatCompletion:
    """Summary: One assistant turn returned by a chat completion call."""

    content: str
    tool_calls: tuple[ToolCall, ...] = ()
    latency_ms: int = 0

    def as_message(self) -> dict[str, Any]:
        """Summary: Convert the completion into an OpenAI-style assistant message.

        Importance: Lets the generation loop replay the model's own turn before tool results.
        Alternatives: Rebuild the message from scratch in the caller.
        """

        message: dict[str, Any] = {"role": "assistant", "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in self.tool_calls
            ]
        return message


class AiProvider(ABC):
    """Summary: Abstract interface for AI text generation.

    Importance: Allows switching between mock and hosted models without refactors.
    Alternatives: Use a single vendor SDK and accept lock-in risk.
    """

    model: str = "mock"

    @abstractmethod
    def generate_text(self, prompt: str, purpose: str) -> tuple[str, int]:
        """Summary: Generate a response for a single prompt.

        Importance: Used by the router, which needs one shot and no tools.
        Alternatives: Route everything through chat completions.
        """

    @abstractmethod
    def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        purpose: str,
    ) -> ChatCompletion:
        """Summary: Run one chat completion step with optional tool declarations.

        Importance: Drives the bounded tool-calling loop in the generator.
        Alternatives: Let a framework own the agent loop.
        """


class MockAiProvider(AiProvider):
    """Summary: Deterministic AI provider for local testing.

    Importance: Enables offline workflows and repeatable tests.
    Alternatives: Use a small local LLM for all development tasks.
    """

    def generate_text(self, prompt: str, purpose: str) -> tuple[str, int]:
        started = time.time()
        response = f"[mock:{purpose}] {prompt[-240:]}"
        latency_ms = int((time.time() - started) * 1000)
        return response, latency_ms

    def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        purpose: str,
    ) -> ChatCompletion:
        last_user = next(
            (item.get("content") or "" for item in reversed(messages) if item.get("role") == "user"),
            "",
        )
        return ChatCompletion(content=f"[mock:{purpose}] {last_user[:240]}")


class OpenRouterProvider(AiProvider):
    """Summary: AI provider using the OpenAI-compatible chat completions API.

    Importance: OpenRouter exposes many light and heavy models behind one endpoint.
    Alternatives: Use the OpenAI API directly or a different aggregator.
    """

    def __init__(self, api_key: str, model: str, base_url: str, timeout: int = 60) -> None:
        """Summary: Initialize the provider for one model.

        Importance: Router and generator each get their own instance and model.
        Alternatives: Pass the model name per request.
        """

        self._api_key = api_key
        self.model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def generate_text(self, prompt: str, purpose: str) -> tuple[str, int]:
        completion = self.complete([{"role": "user", "content": prompt}], None, purpose)
        return completion.content, completion.latency_ms

    def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        purpose: str,
    ) -> ChatCompletion:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": 0.2,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        started = time.time()
        raw = self._post(payload)
        latency_ms = int((time.time() - started) * 1000)
        return _parse_completion(raw, latency_ms)

    def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        request = urllib.request.Request(
            url=f"{self._base_url}/chat/completions",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                return json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            error_body = exc.read().decode("utf-8", errors="replace")
            raise RuntimeError(f"OpenRouter request failed: {error_body or exc.reason}") from exc
        except urllib.error.URLError as exc:
            raise RuntimeError(f"OpenRouter request failed: {exc}") from exc


def _parse_completion(raw: dict[str, Any], latency_ms: int) -> ChatCompletion:
    """Summary: Normalize a chat completion payload.

    Importance: Tolerates null content and missing tool call fields.
    Alternatives: Use provider-specific response classes.
    """

    choices = raw.get("choices") or []
    if not choices:
        raise RuntimeError(f"Completion returned no choices: {raw.get('error') or raw}")
    message = choices[0].get("message") or {}
    calls = []
    for index, item in enumerate(message.get("tool_calls") or []):
        function = item.get("function") or {}
        arguments = function.get("arguments") or "{}"
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        calls.append(
            ToolCall(
                id=item.get("id") or f"call_{index}",
                name=function.get("name", ""),
                arguments=arguments,
            )
        )
    return ChatCompletion(
        content=message.get("content") or "",
        tool_calls=tuple(calls),
        latency_ms=latency_ms,
    )


@dataclass(frozen=True)
class AiProviderFactory:
    """Summary: Factory for selecting AI providers from configuration.

    Importance: Keeps light/heavy model selection logic centralized.
    Alternatives: Wire providers manually at the application entrypoint.
    """

    config: AppConfig

    def build_light(self) -> AiProvider:
        return self._build(self.config.light_model)

    def build_heavy(self) -> AiProvider:
        return self._build(self.config.heavy_model)

    def _build(self, model: str) -> AiProvider:
        if self.config.ai_provider == "openrouter":
            if not self.config.openrouter_api_key:
                raise ValueError("OPENROUTER_API_KEY is required for openrouter provider")
            return OpenRouterProvider(
                self.config.openrouter_api_key, model, self.config.openrouter_base_url
            )
        return MockAiProvider()


def estimate_tokens(text: str) -> int:
    """Summary: Estimate tokens from text length.

    Importance: Provides a rough metric for AI usage auditing.
    Alternatives: Use provider token counters or tiktoken.
    """

    return max(1, len(text) // 4)
