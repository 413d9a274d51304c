"""Core types for the request dispatcher."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from quicke.dispatch.errors import ErrorType

# Zero-argument provider call producing the model's text
Invocation = Callable[[], Awaitable[str]]


# ---------------------------------------------------------------------------
# Dispatcher config
# ---------------------------------------------------------------------------


@dataclass
class DispatcherConfig:
    """Concurrency and retry configuration for a RequestDispatcher."""

    max_concurrent_requests: int = 5
    retry_count: int = 2  # Retries after the first attempt
    retry_delay_ms: int = 1000  # Base delay for exponential backoff
    max_queue_size: int | None = None  # None = unbounded

    @classmethod
    def from_settings(cls) -> DispatcherConfig:
        from quicke.core.config import settings

        return cls(
            max_concurrent_requests=settings.dispatcher_max_concurrent_requests,
            retry_count=settings.dispatcher_retry_count,
            retry_delay_ms=settings.dispatcher_retry_delay_ms,
            max_queue_size=settings.dispatcher_max_queue_size,
        )


# ---------------------------------------------------------------------------
# Job: one queued unit of work
# ---------------------------------------------------------------------------


@dataclass
class Job:
    """A queued provider call paired with its retry state and completion handle."""

    model_id: str
    invocation: Invocation
    future: asyncio.Future
    metadata: dict[str, Any] = field(default_factory=dict)
    retries: int = 0  # Retries already scheduled

    @property
    def attempts(self) -> int:
        return self.retries + 1

    def resolve(self, outcome: ModelOutcome) -> None:
        if not self.future.done():
            self.future.set_result(outcome)


# ---------------------------------------------------------------------------
# Model outcome: one entry of the aggregate result
# ---------------------------------------------------------------------------


@dataclass
class ModelOutcome:
    """Terminal result for one model: either text or an error, never both."""

    model_id: str
    text: str | None = None
    error: str | None = None
    error_type: ErrorType | None = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, model_id: str, text: str, attempts: int = 1) -> ModelOutcome:
        return cls(model_id=model_id, text=text, attempts=attempts)

    @classmethod
    def failure(
        cls,
        model_id: str,
        error: str,
        error_type: ErrorType = ErrorType.UNKNOWN_ERROR,
        attempts: int = 1,
    ) -> ModelOutcome:
        return cls(model_id=model_id, error=error, error_type=error_type, attempts=attempts)

    def to_dict(self) -> dict:
        """Serialize to the JSON shape the UI expects."""
        if self.ok:
            return {"text": self.text}
        return {
            "error": self.error,
            "error_type": self.error_type.value if self.error_type else ErrorType.UNKNOWN_ERROR.value,
        }
