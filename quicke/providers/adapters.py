"""Provider Adapters — protocol-level handling for each model provider.

Each adapter sends a chat completion to its provider over HTTP and returns
the answer text, or raises ProviderError with a classified ErrorType.

Provider-specific behaviors:
  - OpenAI / DeepSeek: standard chat completions
  - OpenRouter: OpenAI-compatible, "middle-out" prompt compression,
    nested {"error": {...}} payloads on 200 responses
  - Anthropic: Messages API, system prompt outside the message list
  - Google: generateContent, "assistant" role renamed to "model",
    finishReason SAFETY treated as an empty answer
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

import httpx

from quicke.core.metrics import PROVIDER_LATENCY
from quicke.dispatch.errors import ErrorType, ProviderError, classify_error
from quicke.providers.models import ProviderName

logger = logging.getLogger(__name__)

Message = dict[str, str]


class BaseProviderAdapter(ABC):
    """Base class for all provider adapters."""

    provider: ProviderName

    def __init__(self, api_key: str, timeout: float = 60.0, **kwargs):
        self.api_key = api_key
        self.timeout = timeout

    async def complete(self, model: str, messages: list[Message]) -> str:
        """Send a chat completion and return the answer text."""
        start = time.monotonic()
        try:
            text = await self._send(model, messages)
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"{self.provider.value} timeout after {self.timeout}s", ErrorType.TIMEOUT
            ) from e
        except httpx.TransportError as e:
            raise ProviderError(
                f"Network error while connecting to {self.provider.value}: {e}", ErrorType.NETWORK_ERROR
            ) from e
        finally:
            elapsed = time.monotonic() - start
            PROVIDER_LATENCY.labels(provider=self.provider.value).observe(elapsed)
            logger.debug(
                "%s call for %s took %.2fs",
                self.provider.value,
                model,
                elapsed,
                extra={"provider": self.provider.value, "model_id": model},
            )

        if not text or not text.strip():
            raise ProviderError("Empty response received", ErrorType.EMPTY_RESPONSE)
        return text

    @abstractmethod
    async def _send(self, model: str, messages: list[Message]) -> str:
        """Provider-specific request; returns raw answer text."""
        ...

    def _raise_for_status(self, resp: httpx.Response) -> None:
        """Map an HTTP error response to ProviderError."""
        if resp.status_code < 400:
            return
        detail = _error_detail(resp)
        message = f"{self.provider.value} error {resp.status_code}: {detail}"
        error = ProviderError(message, status_code=resp.status_code)
        error.error_type = classify_error(error)
        raise error


def _error_detail(resp: httpx.Response) -> str:
    """Best-effort human-readable error from a provider error body."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:300] or resp.reason_phrase
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error)
    if error:
        return str(error)
    return str(data)[:300]


# ---------------------------------------------------------------------------
# OpenAI-compatible adapters (OpenAI, DeepSeek, OpenRouter)
# ---------------------------------------------------------------------------


class OpenAICompatAdapter(BaseProviderAdapter):
    """Chat Completions over the OpenAI wire format."""

    api_url: str = ""

    def _payload(self, model: str, messages: list[Message]) -> dict:
        return {"model": model, "messages": messages}

    async def _send(self, model: str, messages: list[Message]) -> str:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                self.api_url,
                json=self._payload(model, messages),
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )

        self._raise_for_status(resp)
        data = resp.json()

        # OpenRouter reports upstream failures inside a 200 body
        if isinstance(data.get("error"), dict):
            error = data["error"]
            code = error.get("code") if isinstance(error.get("code"), int) else 0
            exc = ProviderError(f"{self.provider.value} error: {error.get('message', error)}", status_code=code)
            exc.error_type = classify_error(exc)
            raise exc

        choices = data.get("choices") or []
        if not choices:
            return ""
        return choices[0].get("message", {}).get("content") or ""


class OpenAIAdapter(OpenAICompatAdapter):
    provider = ProviderName.OPENAI
    api_url = "https://api.openai.com/v1/chat/completions"


class DeepSeekAdapter(OpenAICompatAdapter):
    provider = ProviderName.DEEPSEEK
    api_url = "https://api.deepseek.com/chat/completions"


class OpenRouterAdapter(OpenAICompatAdapter):
    provider = ProviderName.OPENROUTER
    api_url = "https://openrouter.ai/api/v1/chat/completions"

    def _payload(self, model: str, messages: list[Message]) -> dict:
        payload = super()._payload(model, messages)
        payload["transforms"] = ["middle-out"]
        return payload


# ---------------------------------------------------------------------------
# Anthropic Adapter
# ---------------------------------------------------------------------------


class AnthropicAdapter(BaseProviderAdapter):
    """Anthropic Messages API adapter."""

    provider = ProviderName.ANTHROPIC
    api_url = "https://api.anthropic.com/v1/messages"
    api_version = "2023-06-01"

    def __init__(self, api_key: str, timeout: float = 60.0, max_tokens: int = 5000, **kwargs):
        super().__init__(api_key, timeout=timeout)
        self.max_tokens = max_tokens

    async def _send(self, model: str, messages: list[Message]) -> str:
        system = "\n\n".join(m["content"] for m in messages if m.get("role") == "system")
        payload = {
            "model": model,
            "max_tokens": self.max_tokens,
            "messages": [m for m in messages if m.get("role") != "system"],
        }
        if system:
            payload["system"] = system

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                self.api_url,
                json=payload,
                headers={
                    "x-api-key": self.api_key,
                    "anthropic-version": self.api_version,
                    "Content-Type": "application/json",
                },
            )

        self._raise_for_status(resp)
        data = resp.json()
        return "".join(block.get("text", "") for block in data.get("content", []) if block.get("type") == "text")


# ---------------------------------------------------------------------------
# Google Gemini Adapter
# ---------------------------------------------------------------------------


class GeminiAdapter(BaseProviderAdapter):
    """Google Gemini generateContent adapter."""

    provider = ProviderName.GOOGLE
    api_url_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    async def _send(self, model: str, messages: list[Message]) -> str:
        contents = [
            {
                "role": "model" if m.get("role") == "assistant" else "user",
                "parts": [{"text": m["content"]}],
            }
            for m in messages
            if m.get("role") != "system"
        ]
        payload: dict = {
            "contents": contents,
            "generationConfig": {
                "temperature": 1.0,
                "topP": 0.8,
                "topK": 40,
                "maxOutputTokens": 12192,
            },
        }

        # System instruction (separate from contents in Gemini API)
        system = "\n\n".join(m["content"] for m in messages if m.get("role") == "system")
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                self.api_url_template.format(model=model),
                json=payload,
                params={"key": self.api_key},
                headers={"Content-Type": "application/json"},
            )

        self._raise_for_status(resp)
        data = resp.json()

        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        candidate = candidates[0]
        if candidate.get("finishReason") == "SAFETY":
            logger.info(
                "Gemini %s answer blocked by safety filter",
                model,
                extra={"provider": self.provider.value, "model_id": model},
            )
            return ""
        parts = candidate.get("content", {}).get("parts", [])
        return "".join(part.get("text", "") for part in parts)


# ---------------------------------------------------------------------------
# Adapter registry
# ---------------------------------------------------------------------------

ADAPTER_REGISTRY: dict[ProviderName, type[BaseProviderAdapter]] = {
    ProviderName.OPENAI: OpenAIAdapter,
    ProviderName.ANTHROPIC: AnthropicAdapter,
    ProviderName.GOOGLE: GeminiAdapter,
    ProviderName.DEEPSEEK: DeepSeekAdapter,
    ProviderName.OPENROUTER: OpenRouterAdapter,
}


def get_adapter(provider: ProviderName, api_key: str, **kwargs) -> BaseProviderAdapter:
    """Factory: get the appropriate adapter for a provider."""
    cls = ADAPTER_REGISTRY.get(provider)
    if cls is None:
        raise ValueError(f"No adapter registered for provider: {provider}")
    return cls(api_key=api_key, **kwargs)
