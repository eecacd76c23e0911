from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path

from .client import BridgeClient
from .config import BridgeSettings, load_settings
from .errors import BridgeError
from .prompt import format_context_block
from .providers import ProviderRegistry
from .tracing import EXPORTERS, init_telemetry, shutdown_telemetry
from .types import Cancelled, CompletionRequest, Provider, Token

EXIT_CANCELLED = 130


def _read_context(paths: list[str], max_chars: int) -> list[str]:
    blocks = []
    for raw in paths:
        path = Path(raw)
        content = path.read_text(encoding="utf-8", errors="replace")
        blocks.append(format_context_block(str(path), path.suffix.lstrip("."), content, max_chars))
    return blocks


def _load_settings(args) -> BridgeSettings:
    return BridgeSettings.load(Path(args.config)) if args.config else load_settings()


def _build_request(args, settings) -> CompletionRequest:
    request = settings.build_request(
        args.prompt,
        args.provider,
        model=args.model,
        system_prompt=args.system,
        max_tokens=args.max_tokens,
        local_endpoint=args.endpoint,
        context_chunks=_read_context(args.context, args.context_chars) if args.context else None,
    )
    if args.image:
        request.attach_png(Path(args.image).read_bytes())
    return request


async def _ask(client: BridgeClient, request: CompletionRequest, stream: bool) -> int:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, client.cancel)
    except (NotImplementedError, RuntimeError):
        # Windows event loops have no signal handlers; Ctrl+C aborts instead
        pass

    try:
        if stream:

            def sink(event):
                if isinstance(event, Token):
                    print(event.delta, end="", flush=True)

            result = await client.stream(request, sink)
            print()
            if not isinstance(result, Cancelled):
                print(f"[aibridge] model={result.model} chars={len(result.text)}")
        else:
            result = await client.complete(request)
            if not isinstance(result, Cancelled):
                print(result.text)
                tokens = result.tokens_used if result.tokens_used is not None else "n/a"
                print(f"[aibridge] model={result.model} tokens={tokens}")
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass

    if isinstance(result, Cancelled):
        print("[aibridge] Cancelled")
        return EXIT_CANCELLED
    return 0


def cmd_ask(args) -> int:
    """Send one prompt and print the answer."""
    try:
        settings = _load_settings(args)
        request = _build_request(args, settings)
        exporting = init_telemetry(settings.telemetry, exporter=args.trace)
    except (OSError, ValueError) as e:
        print(f"[aibridge] {e}")
        return 2

    try:
        return asyncio.run(_ask(BridgeClient(), request, args.stream))
    except BridgeError as e:
        print(f"[aibridge] {e}")
        return 1
    except ValueError as e:
        print(f"[aibridge] {e}")
        return 2
    finally:
        if exporting:
            shutdown_telemetry()


def cmd_providers(args) -> int:
    """List supported providers with their endpoints and default models."""
    registry = ProviderRegistry.default()
    for provider in registry.providers():
        sample = CompletionRequest(
            prompt="", provider=provider, local_endpoint="http://127.0.0.1:1234"
        )
        adapter = registry.resolve(sample)
        endpoint = adapter.endpoint_url() if provider is not Provider.LOCAL else "<endpoint>"
        print(f"{provider.value:<11} {adapter.label:<11} {adapter.default_model:<28} {endpoint}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="aibridge", description="Multi-provider AI completion bridge")
    sub = parser.add_subparsers(dest="cmd")

    p_ask = sub.add_parser("ask", help="Send a prompt to a provider")
    p_ask.add_argument("prompt")
    p_ask.add_argument("--provider", choices=[p.value for p in Provider])
    p_ask.add_argument("--model")
    p_ask.add_argument("--system", help="System prompt")
    p_ask.add_argument("--image", help="PNG file to attach")
    p_ask.add_argument("--context", nargs="*", default=[], help="Files added as read-only context")
    p_ask.add_argument("--context-chars", type=int, default=20000, help="Per-file character cap")
    p_ask.add_argument("--max-tokens", type=int)
    p_ask.add_argument("--endpoint", help="Local server URL (local provider)")
    p_ask.add_argument("--stream", action="store_true", help="Print tokens as they arrive")
    p_ask.add_argument("--config", help="Path to aibridge.toml")
    p_ask.add_argument(
        "--trace", choices=EXPORTERS, help="Export spans (overrides the [telemetry] exporter)"
    )
    p_ask.set_defaults(func=cmd_ask)

    p_list = sub.add_parser("providers", help="List supported providers")
    p_list.set_defaults(func=cmd_providers)

    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
