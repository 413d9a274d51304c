"""Request Dispatcher — bounded-concurrency fan-out with retry and backoff.

Runs one invocation per model id and aggregates the outcomes:
  1. Every (model_id, invocation) pair becomes a Job at the queue tail
  2. Jobs are admitted in queue order while execution slots are free
  3. A settled job frees its slot and the queue is drained again at once
  4. Failed jobs are retried after an exponential backoff,
     re-entering at the HEAD of the queue
  5. Exhausted or cancelled jobs resolve to an error outcome; the batch
     never raises

Backoff strategy:
  delay = retry_delay_ms * 2^(retry - 1)    (retry = 1, 2, ...)

Usage:
    dispatcher = RequestDispatcher(DispatcherConfig(max_concurrent_requests=3))
    results = await dispatcher.process_requests({
        "gpt-4o": lambda: call_openai(prompt),
        "claude-3-7": lambda: call_anthropic(prompt),
    })
    results["gpt-4o"].to_dict()  # {"text": "..."} or {"error": "..."}
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Mapping
from typing import Any

from quicke.core.metrics import DISPATCH_ACTIVE, DISPATCH_OUTCOMES, DISPATCH_RETRIES
from quicke.dispatch.errors import ErrorType, classify_error, describe_error, get_error_message, is_retryable
from quicke.dispatch.types import DispatcherConfig, Invocation, Job, ModelOutcome

logger = logging.getLogger(__name__)


class RequestDispatcher:
    """Bounded-concurrency job queue with head-of-line retry requeue.

    All queue and slot bookkeeping happens on the event loop thread, so no
    locking is needed. A single dispatcher may serve several concurrent
    process_requests() calls; they share the same slots and queue.
    """

    def __init__(self, config: DispatcherConfig | None = None):
        self.config = config or DispatcherConfig.from_settings()
        if self.config.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")

        self._queue: deque[Job] = deque()
        self._active: int = 0
        self._peak_active: int = 0
        self._tasks: set[asyncio.Task] = set()

    async def process_requests(
        self,
        requests: Mapping[str, Invocation],
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, ModelOutcome]:
        """Run every invocation and return one outcome per model id.

        Never raises for invocation failures: each model id maps to either a
        text outcome or an error outcome once all jobs are terminal.
        """
        if not requests:
            return {}

        loop = asyncio.get_running_loop()
        jobs = [
            Job(
                model_id=model_id,
                invocation=invocation,
                future=loop.create_future(),
                metadata=dict(metadata or {}),
            )
            for model_id, invocation in requests.items()
        ]

        logger.info("Dispatching %d requests (max_concurrent=%d)", len(jobs), self.config.max_concurrent_requests)

        for job in jobs:
            self._enqueue(job)
            self._dispatch()

        outcomes = await asyncio.gather(*(job.future for job in jobs))
        return {job.model_id: outcome for job, outcome in zip(jobs, outcomes)}

    def _enqueue(self, job: Job) -> None:
        max_size = self.config.max_queue_size
        if max_size is not None and len(self._queue) >= max_size:
            logger.warning("Queue full (%d), rejecting %s", max_size, job.model_id, extra=_log_context(job))
            self._settle(
                job,
                ModelOutcome.failure(
                    job.model_id,
                    get_error_message(ErrorType.QUEUE_FULL, job.model_id),
                    ErrorType.QUEUE_FULL,
                    attempts=0,
                ),
            )
            return
        self._queue.append(job)

    def _dispatch(self) -> None:
        """Admit queued jobs while execution slots are free."""
        while self._active < self.config.max_concurrent_requests and self._queue:
            job = self._queue.popleft()
            self._active += 1
            self._peak_active = max(self._peak_active, self._active)
            DISPATCH_ACTIVE.inc()

            logger.debug(
                "Starting %s (attempt %d, active=%d)",
                job.model_id,
                job.attempts,
                self._active,
                extra=_log_context(job),
            )
            task = asyncio.ensure_future(self._execute(job))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _execute(self, job: Job) -> None:
        try:
            text = await job.invocation()
        except asyncio.CancelledError:
            self._settle_cancelled(job)
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
        except Exception as e:
            try:
                self._handle_failure(job, e)
            except Exception:
                logger.exception("Error while handling failure of %s", job.model_id, extra=_log_context(job))
                self._settle(job, ModelOutcome.failure(job.model_id, "Request failed", attempts=job.attempts))
        else:
            self._settle(job, ModelOutcome.success(job.model_id, text, attempts=job.attempts))
        finally:
            self._release_slot()
            self._dispatch()

    def _release_slot(self) -> None:
        self._active -= 1
        DISPATCH_ACTIVE.dec()

    def _handle_failure(self, job: Job, error: Exception) -> None:
        message = describe_error(error)

        if job.retries < self.config.retry_count and is_retryable(error):
            job.retries += 1
            delay = self.calculate_backoff(job.retries, self.config.retry_delay_ms)
            DISPATCH_RETRIES.inc()

            logger.info(
                "Retrying %s (retry %d/%d) in %.3fs: %s",
                job.model_id,
                job.retries,
                self.config.retry_count,
                delay,
                message,
                extra=_log_context(job),
            )
            asyncio.get_running_loop().call_later(delay, self._requeue, job)
            return

        logger.warning(
            "Request for %s failed after %d attempts: %s",
            job.model_id,
            job.attempts,
            message,
            extra=_log_context(job),
        )
        self._settle(
            job,
            ModelOutcome.failure(job.model_id, message, classify_error(error), attempts=job.attempts),
        )

    def _settle_cancelled(self, job: Job) -> None:
        # An invocation cancelled from inside (e.g. an awaited future was cancelled)
        logger.warning("Request for %s was cancelled", job.model_id, extra=_log_context(job))
        self._settle(
            job,
            ModelOutcome.failure(
                job.model_id,
                get_error_message(ErrorType.CANCELLED, job.model_id),
                ErrorType.CANCELLED,
                attempts=job.attempts,
            ),
        )

    def _requeue(self, job: Job) -> None:
        """Put a retried job at the head of the queue and drain again."""
        self._queue.appendleft(job)
        self._dispatch()

    def _settle(self, job: Job, outcome: ModelOutcome) -> None:
        DISPATCH_OUTCOMES.labels(status="success" if outcome.ok else "error").inc()
        job.resolve(outcome)

    @staticmethod
    def calculate_backoff(retry: int, retry_delay_ms: float = 1000) -> float:
        """Delay in seconds before the given retry (1-based).

        Formula: retry_delay_ms * 2^(retry - 1), converted to seconds.
        """
        return retry_delay_ms * (2 ** (retry - 1)) / 1000

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    def get_stats(self) -> dict:
        """Get dispatcher statistics."""
        return {
            "queued": len(self._queue),
            "active": self._active,
            "max_concurrent_requests": self.config.max_concurrent_requests,
            "peak_active": self._peak_active,
        }


def _log_context(job: Job) -> dict[str, Any]:
    """Per-job fields for structured log records."""
    return {"model_id": job.model_id, "attempt": job.attempts, "job_metadata": job.metadata}
