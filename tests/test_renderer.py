"""Tests for the paced stream renderer."""

from __future__ import annotations

import asyncio

import pytest

from quicke.rendering.renderer import RendererConfig, StreamRenderer


def _renderer(config: RendererConfig, sink) -> StreamRenderer:
    return StreamRenderer(config, on_chunk=sink.on_chunk, on_complete=sink.on_complete)


# ==========================================================================
# Test: Pacing plan
# ==========================================================================


class TestRenderPlan:
    def test_config_defaults(self):
        config = RendererConfig()
        assert config.chunk_size == 100
        assert config.typing_speed_ms == 30.0
        assert config.max_typing_speed_ms == 5.0
        assert config.long_response_threshold == 1000

    def test_short_delta_uses_default_chunks(self):
        renderer = StreamRenderer(RendererConfig())
        plan = renderer.plan("x" * 250)

        assert [len(chunk) for chunk, _ in plan] == [100, 100, 50]
        # len(chunk) * 30ms / 100
        assert [delay for _, delay in plan] == pytest.approx([0.030, 0.030, 0.015])

    def test_long_delta_uses_double_chunks_and_fast_speed(self):
        renderer = StreamRenderer(RendererConfig())
        plan = renderer.plan("x" * 1100)

        assert [len(chunk) for chunk, _ in plan] == [200] * 5 + [100]
        # len(chunk) * 5ms / 100
        assert plan[0][1] == pytest.approx(0.010)
        assert plan[-1][1] == pytest.approx(0.005)

    def test_long_vs_short_total_time_ratio(self):
        text = "y" * 1500
        long_plan = StreamRenderer(RendererConfig()).plan(text)
        short_plan = StreamRenderer(RendererConfig(long_response_threshold=2000)).plan(text)

        long_total = sum(delay for _, delay in long_plan)
        short_total = sum(delay for _, delay in short_plan)

        assert len(long_plan) < len(short_plan)
        assert short_total / long_total == pytest.approx(30.0 / 5.0)

    def test_empty_delta_has_no_chunks(self):
        assert StreamRenderer(RendererConfig()).plan("") == []

    def test_chunks_preserve_text(self):
        text = "line one\nline two\n" * 20
        plan = StreamRenderer(RendererConfig(chunk_size=7)).plan(text)
        assert "".join(chunk for chunk, _ in plan) == text


# ==========================================================================
# Test: Rendering
# ==========================================================================


class TestStreamRenderer:
    @pytest.mark.asyncio
    async def test_renders_in_chunks_and_completes(self, fast_renderer_config, sink):
        renderer = _renderer(fast_renderer_config, sink)

        renderer.add_text("Hello world!", is_complete=True)
        await sink.wait_done()

        assert sink.chunks == ["Hell", "Hello wo", "Hello world!"]
        assert sink.completions == ["Hello world!"]
        assert renderer.current_text == "Hello world!"
        assert not renderer.is_rendering

    @pytest.mark.asyncio
    async def test_extension_emits_only_delta(self, fast_renderer_config, sink):
        renderer = _renderer(fast_renderer_config, sink)

        renderer.add_text("AB")
        renderer.add_text("ABCD", is_complete=True)
        await sink.wait_done()

        assert sink.chunks == ["AB", "ABCD"]
        assert renderer.current_text == "ABCD"

    @pytest.mark.asyncio
    async def test_divergence_resets_and_rebuilds(self, sink):
        renderer = _renderer(RendererConfig(chunk_size=1, typing_speed_ms=1.0), sink)

        renderer.add_text("AB")
        await asyncio.sleep(0.05)
        assert renderer.current_text == "AB"

        renderer.add_text("XY", is_complete=True)
        await sink.wait_done()

        assert sink.chunks == ["A", "AB", "X", "XY"]
        assert renderer.current_text == "XY"
        assert sink.completions == ["XY"]

    @pytest.mark.asyncio
    async def test_incremental_stream_never_duplicates(self, fast_renderer_config, sink):
        renderer = _renderer(fast_renderer_config, sink)
        full = "The quick brown fox jumps over the lazy dog"

        # Provider delivers the full text so far, faster than it renders
        for end in range(5, len(full) + 1, 5):
            renderer.add_text(full[:end])
        renderer.add_text(full, is_complete=True)
        await sink.wait_done()

        assert renderer.current_text == full
        assert sink.completions == [full]
        for before, after in zip(sink.chunks, sink.chunks[1:]):
            assert after.startswith(before)

    @pytest.mark.asyncio
    async def test_rewritten_pending_text_replaced(self, sink):
        renderer = _renderer(RendererConfig(chunk_size=2, typing_speed_ms=20.0), sink)

        renderer.add_text("ABCDEF")
        assert renderer.current_text == "AB"

        renderer.add_text("ABXY", is_complete=True)
        await sink.wait_done()

        assert renderer.current_text == "ABXY"
        assert "ABCD" not in sink.chunks

    @pytest.mark.asyncio
    async def test_empty_complete_fires_once(self, fast_renderer_config, sink):
        renderer = _renderer(fast_renderer_config, sink)

        renderer.add_text("", is_complete=True)
        renderer.add_text("", is_complete=True)
        await asyncio.sleep(0.02)

        assert sink.completions == [""]
        assert sink.chunks == []

    @pytest.mark.asyncio
    async def test_complete_with_nothing_pending_fires_once(self, fast_renderer_config, sink):
        renderer = _renderer(fast_renderer_config, sink)

        renderer.add_text("done")
        await asyncio.sleep(0.05)
        assert sink.completions == []

        renderer.add_text("done", is_complete=True)
        assert sink.completions == ["done"]

        renderer.add_text("done", is_complete=True)
        await asyncio.sleep(0.02)
        assert sink.completions == ["done"]

    @pytest.mark.asyncio
    async def test_completion_requested_while_rendering(self, fast_renderer_config, sink):
        renderer = _renderer(fast_renderer_config, sink)

        renderer.add_text("abcdefghijklmnop")
        assert renderer.is_rendering
        renderer.add_text("abcdefghijklmnop", is_complete=True)
        assert sink.completions == []

        await sink.wait_done()
        assert sink.completions == ["abcdefghijklmnop"]

    @pytest.mark.asyncio
    async def test_no_complete_without_request(self, fast_renderer_config, sink):
        renderer = _renderer(fast_renderer_config, sink)

        renderer.add_text("still streaming")
        await asyncio.sleep(0.1)

        assert renderer.current_text == "still streaming"
        assert not renderer.is_rendering
        assert sink.completions == []

    @pytest.mark.asyncio
    async def test_reset_mid_render_silences_old_loop(self, sink):
        renderer = _renderer(RendererConfig(chunk_size=4, typing_speed_ms=80.0), sink)

        renderer.add_text("abcdefghijkl", is_complete=True)
        assert sink.chunks == ["abcd"]

        renderer.reset()
        assert renderer.current_text == ""
        assert not renderer.pending
        assert not renderer.is_rendering

        await asyncio.sleep(0.2)
        assert sink.chunks == ["abcd"]
        assert sink.completions == []

    @pytest.mark.asyncio
    async def test_reset_allows_new_session(self, fast_renderer_config, sink):
        renderer = _renderer(fast_renderer_config, sink)

        renderer.add_text("first", is_complete=True)
        await sink.wait_done()

        renderer.reset()
        sink.done.clear()
        renderer.add_text("second", is_complete=True)
        await sink.wait_done()

        assert sink.completions == ["first", "second"]
        assert renderer.current_text == "second"

    @pytest.mark.asyncio
    async def test_sink_reset_inside_callback(self, fast_renderer_config, sink):
        renderer = _renderer(fast_renderer_config, sink)

        def reset_on_first(text: str) -> None:
            sink.on_chunk(text)
            renderer.reset()

        renderer.on_chunk = reset_on_first
        renderer.add_text("abcdefgh", is_complete=True)
        await asyncio.sleep(0.05)

        assert sink.chunks == ["abcd"]
        assert sink.completions == []

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_stop_rendering(self, fast_renderer_config, sink):
        calls = 0

        def flaky_sink(text: str) -> None:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("ui glitch")
            sink.on_chunk(text)

        renderer = StreamRenderer(fast_renderer_config, on_chunk=flaky_sink, on_complete=sink.on_complete)
        renderer.add_text("abcdefgh", is_complete=True)
        await sink.wait_done()

        assert sink.chunks == ["abcdefgh"]
        assert sink.completions == ["abcdefgh"]


# ==========================================================================
# Test: Degraded path
# ==========================================================================


class TestRendererFallback:
    @pytest.mark.asyncio
    async def test_non_string_rendered_immediately(self, fast_renderer_config, sink):
        renderer = _renderer(fast_renderer_config, sink)

        renderer.add_text(12345)

        assert sink.chunks == ["12345"]
        assert sink.completions == ["12345"]
        assert renderer.current_text == "12345"

    @pytest.mark.asyncio
    async def test_none_rendered_as_empty(self, fast_renderer_config, sink):
        renderer = _renderer(fast_renderer_config, sink)

        renderer.add_text(None, is_complete=True)

        assert sink.chunks == [""]
        assert sink.completions == [""]

    @pytest.mark.asyncio
    async def test_fallback_stops_active_loop(self, sink):
        renderer = _renderer(RendererConfig(chunk_size=2, typing_speed_ms=40.0), sink)

        renderer.add_text("abcdefgh")
        renderer.add_text(["not", "text"])
        await asyncio.sleep(0.1)

        assert sink.chunks == ["ab", "['not', 'text']"]

    def test_without_event_loop_renders_immediately(self, fast_renderer_config, sink):
        renderer = _renderer(fast_renderer_config, sink)

        renderer.add_text("no loop here")

        assert sink.chunks == ["no loop here"]
        assert sink.completions == ["no loop here"]
        assert not renderer.is_rendering
