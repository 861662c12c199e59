#!/usr/bin/env python3
"""
Context budget CLI.

Inspect model context windows and run the shrink pipeline on a saved
conversation (a JSON list of ``{"role": ..., "content": ...}`` messages).

Usage:
    python -m context_budget.cli.context_budget resolve openai gpt4o
    python -m context_budget.cli.context_budget estimate ./conversation.json
    python -m context_budget.cli.context_budget shrink ./conversation.json --target-ratio 0.5

Examples:
    # Which registry entry does a decorated model name hit?
    python -m context_budget.cli.context_budget resolve anthropic anthropic/claude-3.7-sonnet-20250219

    # Shrink a conversation for a specific model
    python -m context_budget.cli.context_budget shrink ./conversation.json --provider groq --model llama-3.1-8b-instant
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from context_budget.configuration.config import ContextBudgetSettings, get_settings
from context_budget.configuration.factories import (
    create_context_window_resolver,
    create_shrink_pipeline,
)
from context_budget.domain.model import MessageList, ShrinkOptions
from context_budget.infrastructure.context.token_estimator import estimate_tokens
from context_budget.infrastructure.llm.model_registry import find_best_match

logger = logging.getLogger("context_budget.cli")


def load_messages(path: Path) -> MessageList:
    """Load a JSON list of messages."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list) or not all(isinstance(m, dict) for m in data):
        raise ValueError(f"{path} must contain a JSON list of message objects")
    return data


def cmd_resolve(args: argparse.Namespace, settings: ContextBudgetSettings) -> int:
    resolver = create_context_window_resolver(settings)
    match = find_best_match(args.model)
    context_window = asyncio.run(resolver.get_max_context_tokens(args.provider, args.model))

    print(f"Model:           {args.model}")
    if match:
        print(f"Normalized:      {match.normalized}")
        print(f"Matched pattern: {match.pattern} (score {match.score})")
        print(f"Max output:      {match.spec.max_output_tokens or 'unknown'}")
    else:
        print("Matched pattern: none (provider/global fallback)")
    print(f"Context window:  {context_window}")
    return 0


def cmd_estimate(args: argparse.Namespace, settings: ContextBudgetSettings) -> int:
    messages = load_messages(args.path)
    print(f"{len(messages)} messages, ~{estimate_tokens(messages)} tokens")
    return 0


def cmd_shrink(args: argparse.Namespace, settings: ContextBudgetSettings) -> int:
    messages = load_messages(args.path)
    pipeline = create_shrink_pipeline(settings)

    def on_progress(current: int, total: int, message: str) -> None:
        print(message, file=sys.stderr)

    options = ShrinkOptions(
        messages=messages,
        target_ratio=args.target_ratio,
        last_n_messages=args.last_n,
        provider_id=args.provider,
        model=args.model,
        on_progress=on_progress,
    )
    result = asyncio.run(pipeline.shrink(options))

    output = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
    if args.output:
        args.output.write_text(output, encoding="utf-8")
        print(
            f"Wrote {len(result.messages)} messages to {args.output} "
            f"(~{result.est_tokens_before} -> ~{result.est_tokens_after} tokens, "
            f"strategies: {', '.join(result.applied_strategies) or 'none'})"
        )
    else:
        print(output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect model context windows and shrink conversations to budget",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s resolve openai gpt4o
  %(prog)s estimate ./conversation.json
  %(prog)s shrink ./conversation.json --target-ratio 0.5 -o ./shrunk.json
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve = subparsers.add_parser("resolve", help="Resolve a model's context window")
    resolve.add_argument("provider", help="Provider id (openai, anthropic, groq, ...)")
    resolve.add_argument("model", help="Model name, prefixes and date suffixes allowed")
    resolve.set_defaults(handler=cmd_resolve)

    estimate = subparsers.add_parser("estimate", help="Estimate tokens of a conversation file")
    estimate.add_argument("path", type=Path, help="JSON file with a list of messages")
    estimate.set_defaults(handler=cmd_estimate)

    shrink = subparsers.add_parser("shrink", help="Shrink a conversation file to budget")
    shrink.add_argument("path", type=Path, help="JSON file with a list of messages")
    shrink.add_argument("--provider", help="Provider id (defaults to CONTEXT_PROVIDER_ID)")
    shrink.add_argument("--model", help="Model name (defaults to CONTEXT_MODEL)")
    shrink.add_argument("--target-ratio", type=float, help="Fraction of the window to target")
    shrink.add_argument("--last-n", type=int, help="Messages kept verbatim at the tail")
    shrink.add_argument("-o", "--output", type=Path, help="Write the result here")
    shrink.set_defaults(handler=cmd_shrink)

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return args.handler(args, settings)
    except (OSError, ValueError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
