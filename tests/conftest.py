import asyncio

import pytest

from quicke.dispatch.types import DispatcherConfig
from quicke.rendering.renderer import RendererConfig


@pytest.fixture
def fast_dispatcher_config() -> DispatcherConfig:
    """Small backoff so retry tests finish in milliseconds."""
    return DispatcherConfig(max_concurrent_requests=3, retry_count=2, retry_delay_ms=10)


@pytest.fixture
def fast_renderer_config() -> RendererConfig:
    """Tiny chunks and ~1ms per chunk."""
    return RendererConfig(chunk_size=4, typing_speed_ms=1.0, max_typing_speed_ms=0.5, long_response_threshold=20)


class RenderSink:
    """Collects renderer callbacks for assertions."""

    def __init__(self):
        self.chunks: list[str] = []
        self.completions: list[str] = []
        self.done = asyncio.Event()

    def on_chunk(self, text: str) -> None:
        self.chunks.append(text)

    def on_complete(self, text: str) -> None:
        self.completions.append(text)
        self.done.set()

    async def wait_done(self, timeout: float = 2.0) -> None:
        await asyncio.wait_for(self.done.wait(), timeout)


@pytest.fixture
def sink() -> RenderSink:
    return RenderSink()
