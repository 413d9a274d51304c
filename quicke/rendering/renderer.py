"""Stream Renderer — paced "typing" output for arriving model text.

Decouples how fast text arrives from how it is shown:
  - add_text() reconciles the full text seen so far against what is
    already rendered and queues only the new delta
  - a timer-driven loop emits each delta in fixed-size chunks,
    sleeping len(chunk) * speed / chunk_size ms between chunks
  - deltas longer than long_response_threshold use doubled chunks and
    the faster max_typing_speed_ms, bounding wall-clock time
  - reset() invalidates every scheduled continuation by bumping the
    render generation

Runs on the asyncio event loop via loop.call_later; no threads.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Pause between deltas so concurrent add_text() calls can merge into the queue
DELTA_PAUSE_SECONDS = 0.010


def _noop(_text: str) -> None:
    return None


@dataclass
class RendererConfig:
    """Pacing configuration for a StreamRenderer."""

    chunk_size: int = 100
    typing_speed_ms: float = 30.0  # Per chunk_size characters
    max_typing_speed_ms: float = 5.0  # Used for long deltas
    long_response_threshold: int = 1000

    @classmethod
    def from_settings(cls) -> RendererConfig:
        from quicke.core.config import settings

        return cls(
            chunk_size=settings.renderer_chunk_size,
            typing_speed_ms=settings.renderer_typing_speed_ms,
            max_typing_speed_ms=settings.renderer_max_typing_speed_ms,
            long_response_threshold=settings.renderer_long_response_threshold,
        )


class StreamRenderer:
    """Per-response pacing state machine (Idle <-> Rendering).

    Usage:
        renderer = StreamRenderer(on_chunk=show, on_complete=done)

        # As the provider delivers text (full text so far each time)
        renderer.add_text("Hello")
        renderer.add_text("Hello, world", is_complete=True)

        # Retarget to another response mid-flight
        renderer.reset()
    """

    def __init__(
        self,
        config: RendererConfig | None = None,
        on_chunk: Callable[[str], None] | None = None,
        on_complete: Callable[[str], None] | None = None,
    ):
        self.config = config or RendererConfig.from_settings()
        self.on_chunk = on_chunk or _noop
        self.on_complete = on_complete or _noop

        self.pending: deque[str] = deque()
        self.current_text: str = ""
        self.is_rendering: bool = False

        self._target: str = ""  # Full text once everything pending is rendered
        self._chunks: deque[tuple[str, float]] = deque()  # Active delta schedule
        self._generation: int = 0
        self._handle: asyncio.TimerHandle | None = None
        self._complete_requested: bool = False
        self._completed: bool = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add_text(self, text: str, is_complete: bool = False) -> None:
        """Feed the full text received so far. Never raises."""
        if not isinstance(text, str):
            logger.warning("Non-string text (%s), rendering immediately", type(text).__name__)
            self._fallback("" if text is None else str(text))
            return

        try:
            if is_complete:
                self._complete_requested = True

            if text:
                self._reconcile(text)

            if self.is_rendering:
                return
            if self.pending:
                self._start()
            else:
                self._maybe_complete()
        except Exception:
            logger.exception("Renderer error, falling back to immediate display")
            self._fallback(text)

    def reset(self) -> None:
        """Drop all state; continuations scheduled before this call become no-ops."""
        self._invalidate()
        self.pending.clear()
        self.current_text = ""
        self._target = ""
        self._complete_requested = False
        self._completed = False

    def plan(self, delta: str) -> list[tuple[str, float]]:
        """Chunk schedule for a delta: (chunk, delay in seconds after emitting it)."""
        config = self.config
        if len(delta) > config.long_response_threshold:
            size = config.chunk_size * 2
            speed = config.max_typing_speed_ms
        else:
            size = config.chunk_size
            speed = config.typing_speed_ms

        return [
            (chunk, len(chunk) * speed / config.chunk_size / 1000)
            for chunk in (delta[i : i + size] for i in range(0, len(delta), size))
        ]

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _reconcile(self, text: str) -> None:
        if text.startswith(self._target):
            # Forward extension of everything already queued
            delta = text[len(self._target) :]
            if delta:
                self.pending.append(delta)
        elif text.startswith(self.current_text):
            # Rendered prefix still valid, queued-but-unrendered text was rewritten
            self._invalidate()
            self.pending.clear()
            if len(text) > len(self.current_text):
                self.pending.append(text[len(self.current_text) :])
            logger.debug("Pending text rewritten, keeping %d rendered chars", len(self.current_text))
        else:
            # Diverged: full replacement
            self._invalidate()
            self.pending.clear()
            self.pending.append(text)
            self.current_text = ""
            logger.debug("Text diverged from rendered prefix, restarting")
        self._target = text

    # ------------------------------------------------------------------
    # Render loop
    # ------------------------------------------------------------------

    def _start(self) -> None:
        # Resolve the loop first so a missing loop fails before any state changes
        asyncio.get_running_loop()
        self.is_rendering = True
        self._next_delta(self._generation)

    def _next_delta(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._handle = None

        if not self.pending:
            self.is_rendering = False
            self._maybe_complete()
            return

        self._chunks = deque(self.plan(self.pending.popleft()))
        self._next_chunk(generation)

    def _next_chunk(self, generation: int) -> None:
        if generation != self._generation:
            return
        loop = asyncio.get_running_loop()

        if not self._chunks:
            self._handle = loop.call_later(DELTA_PAUSE_SECONDS, self._next_delta, generation)
            return

        chunk, delay = self._chunks.popleft()
        self.current_text += chunk
        self._emit_chunk(self.current_text)

        # The sink may have reset or retargeted the renderer
        if generation == self._generation:
            self._handle = loop.call_later(delay, self._next_chunk, generation)

    def _invalidate(self) -> None:
        """Cancel the scheduled continuation and stop the active loop."""
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._chunks.clear()
        self.is_rendering = False

    def _maybe_complete(self) -> None:
        if self._complete_requested and not self._completed:
            self._completed = True
            self._emit_complete(self.current_text)

    # ------------------------------------------------------------------
    # Degraded path & sink calls
    # ------------------------------------------------------------------

    def _fallback(self, text: str) -> None:
        self._invalidate()
        self.pending.clear()
        self.current_text = text
        self._target = text
        self._emit_chunk(text)
        if not self._completed:
            self._completed = True
            self._emit_complete(text)

    def _emit_chunk(self, text: str) -> None:
        try:
            self.on_chunk(text)
        except Exception:
            logger.exception("on_chunk callback failed")

    def _emit_complete(self, text: str) -> None:
        try:
            self.on_complete(text)
        except Exception:
            logger.exception("on_complete callback failed")
