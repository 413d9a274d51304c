"""
run_fanout.py — End-to-end fan-out check against real providers

Runs the whole core in one go:
  1. Loads settings (.env) and configures logging / Sentry
  2. Fans one prompt out to the selected models through the dispatcher
  3. Replays each answer through a StreamRenderer, printing the paced output
  4. Prints a summary of successes and errors

Usage:
    python run_fanout.py "Explain exponential backoff" gpt-4o-mini claude-3-5 gemini-flash
"""

import asyncio
import logging
import sys
import time

from quicke.core.config import settings, validate_settings
from quicke.core.logging import setup_logging
from quicke.core.sentry import init_sentry
from quicke.providers.gateway import ProviderGateway
from quicke.rendering.renderer import StreamRenderer

logger = logging.getLogger("run_fanout")

DEFAULT_PROMPT = "In two sentences, what is exponential backoff?"
DEFAULT_MODELS = ["gpt-4o-mini", "claude-3-5", "gemini-flash", "deepseek-chat"]


async def render(model_id: str, text: str) -> None:
    """Pace one answer to stdout the way the UI would show it."""
    done = asyncio.Event()
    printed = 0

    def on_chunk(accumulated: str) -> None:
        nonlocal printed
        sys.stdout.write(accumulated[printed:])
        sys.stdout.flush()
        printed = len(accumulated)

    def on_complete(_final: str) -> None:
        done.set()

    renderer = StreamRenderer(on_chunk=on_chunk, on_complete=on_complete)
    print(f"\n── {model_id} " + "─" * max(0, 50 - len(model_id)))
    renderer.add_text(text, is_complete=True)
    await done.wait()
    print()


async def main() -> None:
    setup_logging()
    validate_settings()
    init_sentry()

    args = sys.argv[1:]
    prompt = args[0] if args else DEFAULT_PROMPT
    model_ids = args[1:] or DEFAULT_MODELS

    print("=" * 60)
    print(f"  Prompt: {prompt}")
    print(f"  Models: {', '.join(model_ids)}")
    print(f"  Providers with keys: {', '.join(sorted(settings.provider_api_keys)) or 'none'}")
    print("=" * 60)

    gateway = ProviderGateway()
    start = time.monotonic()
    results = await gateway.ask(prompt, model_ids)
    elapsed = time.monotonic() - start

    for model_id, outcome in results.items():
        if outcome.ok:
            await render(model_id, outcome.text)
        else:
            print(f"\n── {model_id}: ❌ [{outcome.error_type.value}] {outcome.error}")

    errors = sum(1 for outcome in results.values() if not outcome.ok)
    print("\n" + "=" * 60)
    print(f"  ✅ Done in {elapsed:.1f}s: {len(results) - errors} answers, {errors} errors")
    print(f"  Dispatcher: {gateway.dispatcher.get_stats()}")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
