"""
CLI subcommand implementations for chorus.

Subcommands::

    chorus providers
    chorus ask    --provider P [--model M] PROMPT
    chorus refine DRAFT [--author-model M] [--analyst-model M] [--initialize]
"""

import argparse
import sys

from chorus_platform.providers import ProviderRegistry, build_default_registry
from chorus_platform.runtime.config import (
    API_KEY_ENV_VARS,
    REFINER_FALLBACK_PROVIDERS,
    REFINER_MAX_VARIANTS,
    REFINER_PREFERRED_MODELS,
    REFINER_TIMEOUT_SECONDS,
)
from core.domain import PromptRequest
from core.errors import NoProviderAvailableError
from core.refiner import PromptRefiner


def _build_registry(args) -> ProviderRegistry:
    api_keys = {}
    if getattr(args, "anthropic_api_key", None):
        api_keys["anthropic"] = args.anthropic_api_key
    if getattr(args, "openai_api_key", None):
        api_keys["openai"] = args.openai_api_key
    return build_default_registry(api_keys)


# ---------------------------------------------------------------------------
# Subcommand: providers
# ---------------------------------------------------------------------------

async def cmd_providers(args):
    registry = _build_registry(args)
    ids = registry.provider_ids()
    if not ids:
        print("No providers configured.")
        print(f"  Set one of: {', '.join(API_KEY_ENV_VARS.values())}")
        return

    availability = await registry.refresh_availability()
    print(f"\n{'Provider':<12}  {'Available':<9}  {'Streaming':<9}  {'Continuation'}")
    print("-" * 50)
    for pid in ids:
        caps = registry.get_adapter(pid).capabilities
        print(
            f"{pid:<12}  {'yes' if availability.get(pid) else 'no':<9}  "
            f"{'yes' if caps.supports_streaming else 'no':<9}  "
            f"{'yes' if caps.supports_continuation else 'no'}"
        )


# ---------------------------------------------------------------------------
# Subcommand: ask
# ---------------------------------------------------------------------------

async def cmd_ask(args):
    registry = _build_registry(args)
    adapter = registry.get_adapter(args.provider)
    if adapter is None:
        print(f"Error: Unknown or unconfigured provider '{args.provider}'.", file=sys.stderr)
        sys.exit(1)

    def on_chunk(chunk):
        if adapter.capabilities.supports_streaming:
            print(chunk.text or "", end="", flush=True)

    meta = {"model": args.model} if args.model else {}
    envelope = await adapter.send_prompt(PromptRequest(original_prompt=args.prompt, meta=meta), on_chunk)
    if not envelope.ok:
        print(f"\nError ({envelope.error_code}): {envelope.meta.get('error', '')}", file=sys.stderr)
        sys.exit(1)

    if adapter.capabilities.supports_streaming:
        print()
    else:
        print(envelope.text)


# ---------------------------------------------------------------------------
# Subcommand: refine
# ---------------------------------------------------------------------------

async def cmd_refine(args):
    refiner = PromptRefiner(
        _build_registry(args),
        fallback_providers=REFINER_FALLBACK_PROVIDERS,
        preferred_models=REFINER_PREFERRED_MODELS,
        timeout_seconds=REFINER_TIMEOUT_SECONDS,
        max_variants=REFINER_MAX_VARIANTS,
    )
    try:
        result = await refiner.refine(
            args.draft,
            author_model_id=args.author_model,
            analyst_model_id=args.analyst_model,
            is_initialize=args.initialize,
        )
    except NoProviderAvailableError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if result is None:
        print("Error: Refinement produced no result; your draft is unchanged.", file=sys.stderr)
        sys.exit(1)

    print("\n" + "=" * 60)
    print("REFINED PROMPT")
    print("=" * 60)
    print(result.authored)
    if result.explanation:
        print(f"\nExplanation:\n{result.explanation}")
    if not args.initialize:
        print(f"\nAudit:\n{result.audit}")
        for i, variant in enumerate(result.variants, 1):
            print(f"\nVariant {i}:\n{variant}")


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chorus",
        description="chorus: parallel multi-provider prompting with prompt refinement",
    )
    parser.add_argument("--anthropic-api-key", help="Anthropic API key (or set ANTHROPIC_API_KEY)")
    parser.add_argument("--openai-api-key", help="OpenAI API key (or set OPENAI_API_KEY)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- providers ---
    subparsers.add_parser("providers", help="List configured providers")

    # --- ask ---
    p_ask = subparsers.add_parser("ask", help="Send one prompt to one provider")
    p_ask.add_argument("--provider", required=True, help="Provider id (e.g. claude, chatgpt)")
    p_ask.add_argument("--model", help="Model short name (e.g. sonnet, gpt-4o)")
    p_ask.add_argument("prompt", help="Prompt text")

    # --- refine ---
    p_refine = subparsers.add_parser("refine", help="Refine a draft prompt")
    p_refine.add_argument("draft", help="Draft prompt or fragment")
    p_refine.add_argument("--author-model", help="Provider id for the Author stage")
    p_refine.add_argument("--analyst-model", help="Provider id for the Analyst stage")
    p_refine.add_argument(
        "--initialize", action="store_true",
        help="Single-stage refinement for the first turn of a conversation",
    )

    return parser


async def main(argv=None):
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "providers":
        await cmd_providers(args)
    elif args.command == "ask":
        await cmd_ask(args)
    elif args.command == "refine":
        await cmd_refine(args)
