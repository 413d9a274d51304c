"""Provider Gateway — turns one prompt into a fan-out across models.

Main entry point for asking several models the same question:
  1. Resolves each model id to a provider and upstream model name
  2. Builds one zero-argument invocation per model id
  3. Runs them through the RequestDispatcher (concurrency, retries)
  4. Returns one outcome per model id

Usage:
    gateway = ProviderGateway(api_keys={"openai": "sk-...", "anthropic": "..."})
    results = await gateway.ask("Explain backoff", ["gpt-4o", "claude-3-7"])
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from quicke.core.config import settings
from quicke.dispatch.dispatcher import RequestDispatcher
from quicke.dispatch.errors import ErrorType, ProviderError, get_error_message
from quicke.dispatch.types import Invocation, ModelOutcome
from quicke.providers.adapters import BaseProviderAdapter, Message, get_adapter
from quicke.providers.models import ProviderName, resolve_model

logger = logging.getLogger(__name__)


def format_messages(prompt: str | Sequence[Message]) -> list[Message]:
    """Normalize a prompt into a chat message list."""
    if isinstance(prompt, str):
        return [{"role": "user", "content": prompt}]
    return [dict(m) for m in prompt]


class ProviderGateway:
    """Fan-out orchestrator.

    Integrates:
      - Model registry: model id → provider + upstream name
      - Provider adapters: protocol-specific HTTP calls
      - RequestDispatcher: bounded concurrency, retries, aggregation
    """

    def __init__(
        self,
        api_keys: dict[str, str] | None = None,
        dispatcher: RequestDispatcher | None = None,
        timeout: float | None = None,
        adapter_kwargs: dict[str, dict] | None = None,
    ):
        """
        Args:
            api_keys: Mapping of provider name → API key (defaults to settings)
            dispatcher: Shared dispatcher (defaults to one built from settings)
            timeout: Per-call provider timeout in seconds
            adapter_kwargs: Extra kwargs per provider (e.g. max_tokens for Anthropic)
        """
        self.api_keys = settings.provider_api_keys if api_keys is None else api_keys
        self.dispatcher = dispatcher or RequestDispatcher()
        self.timeout = timeout if timeout is not None else settings.provider_timeout_seconds

        self._adapters: dict[ProviderName, BaseProviderAdapter] = {}
        self._adapter_kwargs = adapter_kwargs or {
            ProviderName.ANTHROPIC.value: {"max_tokens": settings.anthropic_max_tokens},
        }

    def _get_adapter(self, provider: ProviderName) -> BaseProviderAdapter | None:
        """Get or create adapter for a provider."""
        if provider not in self._adapters:
            api_key = self.api_keys.get(provider.value, "")
            if not api_key:
                return None
            kwargs = self._adapter_kwargs.get(provider.value, {})
            self._adapters[provider] = get_adapter(provider, api_key, timeout=self.timeout, **kwargs)
        return self._adapters[provider]

    def build_invocations(
        self,
        prompt: str | Sequence[Message],
        model_ids: Sequence[str],
    ) -> dict[str, Invocation]:
        """One zero-argument invocation per model id.

        Unknown models and missing API keys become invocations that fail
        with a non-retryable ProviderError, so they still show up in the
        aggregate result.
        """
        messages = format_messages(prompt)
        invocations: dict[str, Invocation] = {}

        for model_id in model_ids:
            spec = resolve_model(model_id)
            if spec is None:
                invocations[model_id] = _failing(
                    get_error_message(ErrorType.MODEL_UNAVAILABLE, model_id),
                    ErrorType.MODEL_UNAVAILABLE,
                )
                continue

            adapter = self._get_adapter(spec.provider)
            if adapter is None:
                invocations[model_id] = _failing(
                    get_error_message(ErrorType.API_KEY_MISSING, model_id, spec.provider.value),
                    ErrorType.API_KEY_MISSING,
                )
                continue

            invocations[model_id] = _bind(adapter, spec.upstream_id, messages)

        return invocations

    async def ask(
        self,
        prompt: str | Sequence[Message],
        model_ids: Sequence[str],
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, ModelOutcome]:
        """Ask every model the same prompt; returns one outcome per model id."""
        invocations = self.build_invocations(prompt, model_ids)
        results = await self.dispatcher.process_requests(invocations, metadata)

        failed = [model_id for model_id, outcome in results.items() if not outcome.ok]
        logger.info("Fan-out finished: %d ok, %d failed", len(results) - len(failed), len(failed))
        return results

    def get_status(self) -> dict:
        """Get gateway status."""
        return {
            "dispatcher": self.dispatcher.get_stats(),
            "configured_providers": sorted(self.api_keys.keys()),
        }


def _bind(adapter: BaseProviderAdapter, upstream_id: str, messages: list[Message]) -> Invocation:
    async def invoke() -> str:
        return await adapter.complete(upstream_id, messages)

    return invoke


def _failing(message: str, error_type: ErrorType) -> Invocation:
    async def invoke() -> str:
        raise ProviderError(message, error_type)

    return invoke
