"""
Command-line adapter for promptbench.

Architectural role:
- Exposes comparison, dataset, catalog, validation, and server commands.
- Resolves API keys from the environment / key files (`provider_config.load_key`).
- Delegates all generation to `promptbench.core.engine` through a router
  built by `create_router`.

Commands:
- `compare PROMPT -t provider:model [-t ...]`: one prompt, many models.
- `batch TEMPLATE_FILE ITEMS_FILE -t provider:model`: template over a JSON array
  or JSONL dataset; results print in dataset order, progress in completion order.
- `models PROVIDER`: catalog entries from the aggregator listing.
- `validate`: sequential smoke test of the given targets.
- `serve`: run the proxy API with uvicorn.

Error handling strategy:
- Malformed target specs and unreadable files exit with status 2.
- Generation failures print inline as `ERROR: ...` and set exit status 1.

Side effects:
- Writes results to stdout, progress and logs to stderr.
"""

from dotenv import load_dotenv

load_dotenv()

import argparse
import asyncio
import json
import logging
import os
import sys

from promptbench.core.engine import ModelTarget, run_comparison, run_dataset
from promptbench.core.environment import RuntimeEnvironment
from promptbench.core.router import create_router
from promptbench.core.types import (
    ImageParams,
    ImageResult,
    Provider,
    is_failure,
)
from promptbench.llm.catalog import filter_for_provider, group_by_type
from promptbench.llm.discovery import fetch_aggregator_models
from promptbench.llm.errors import AdapterError
from promptbench.llm.provider_config import resolve_api_key
from promptbench.validation.runner import ModelConfig, run_validation, summarize


logger = logging.getLogger(__name__)

SEPARATOR = "-" * 60


# =========================================================
# ARGUMENT HELPERS
# =========================================================

def parse_target(value: str) -> ModelTarget:
    """Parse `provider:model` (the model part may itself contain `/` and `:`)."""
    provider, sep, model = value.partition(":")
    if not sep or not model:
        raise argparse.ArgumentTypeError(f"Expected provider:model, got {value!r}")
    try:
        return ModelTarget(provider=Provider.parse(provider), model=model)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def load_items(path: str) -> list[dict]:
    """Load dataset items from a JSON array or a JSONL file."""
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()

    stripped = text.lstrip()
    if stripped.startswith("["):
        items = json.loads(stripped)
    else:
        items = [json.loads(line) for line in text.splitlines() if line.strip()]

    if not all(isinstance(item, dict) for item in items):
        raise ValueError("Dataset items must be JSON objects")
    return items


def collect_keys() -> dict[Provider, str]:
    return {provider: resolve_api_key(provider) or "" for provider in Provider}


def format_result(result) -> str:
    if is_failure(result):
        return f"ERROR: {result.error}"
    if isinstance(result, ImageResult):
        return f"[image] {result.image_url[:120]}  ({result.latency_ms} ms)"
    tokens = f", {result.tokens} tokens" if result.tokens is not None else ""
    return f"{result.content}\n({result.latency_ms} ms{tokens})"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="promptbench", description="Compare AI model outputs.")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "WARNING"))
    parser.add_argument(
        "--direct",
        action="store_true",
        help="Call providers directly instead of through the proxy server.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    compare = sub.add_parser("compare", help="Send one prompt to several models.")
    compare.add_argument("prompt")
    compare.add_argument("-t", "--target", action="append", type=parse_target, required=True)
    compare.add_argument("--size", default=ImageParams.size)

    batch = sub.add_parser("batch", help="Run a prompt template over a dataset.")
    batch.add_argument("template_file")
    batch.add_argument("items_file")
    batch.add_argument("-t", "--target", type=parse_target, required=True)

    models = sub.add_parser("models", help="List catalog entries for a provider.")
    models.add_argument("provider")

    validate = sub.add_parser("validate", help="Smoke-test models sequentially.")
    validate.add_argument("-t", "--target", action="append", type=parse_target, required=True)
    validate.add_argument("--type", choices=("text", "image"), default="text")

    serve = sub.add_parser("serve", help="Run the proxy API server.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser


# =========================================================
# COMMANDS
# =========================================================

async def cmd_compare(args, router) -> int:
    outputs = await run_comparison(
        router,
        args.prompt,
        args.target,
        collect_keys(),
        image=ImageParams(size=args.size),
    )
    status = 0
    for output in outputs:
        print(SEPARATOR)
        print(f"{output.target.provider.value}:{output.target.display_label}")
        print(format_result(output.result))
        if is_failure(output.result):
            status = 1
    print(SEPARATOR)
    return status


async def cmd_batch(args, router) -> int:
    with open(args.template_file, "r", encoding="utf-8") as f:
        template = f.read()
    items = load_items(args.items_file)
    total = len(items)
    done = []

    def progress(slot):
        done.append(slot.index)
        print(f"[{len(done)}/{total}] item {slot.index} finished", file=sys.stderr)

    target = args.target
    key = resolve_api_key(target.provider) or ""
    results = await run_dataset(router, template, target, items, key, on_progress=progress)

    status = 0
    for index, result in enumerate(results):
        print(SEPARATOR)
        print(f"item {index}")
        print(format_result(result))
        if is_failure(result):
            status = 1
    print(SEPARATOR)
    return status


def cmd_models(args) -> int:
    provider = Provider.parse(args.provider)
    try:
        rows = fetch_aggregator_models()
    except AdapterError as exc:
        print(f"ERROR: {exc.message}", file=sys.stderr)
        return 1

    for model_type, entries in group_by_type(filter_for_provider(rows, provider)).items():
        print(f"{model_type}:")
        for entry in entries:
            print(f"  {entry.value:<50} {entry.label}")
    return 0


async def cmd_validate(args, router) -> int:
    models = [
        ModelConfig(provider=t.provider, model=t.model, label=t.display_label, type=args.type)
        for t in args.target
    ]

    def progress(result):
        detail = result.error or f"{result.latency_ms} ms"
        print(f"{result.status:<8} {result.provider.value}:{result.model}  {detail}")

    results = await run_validation(router, models, collect_keys(), on_progress=progress)
    summary = summarize(results)
    print(SEPARATOR)
    print(
        f"passed {summary.passed}/{summary.tested}, skipped {summary.skipped}, "
        f"avg latency {summary.avg_latency_ms} ms, tokens {summary.total_tokens}"
    )
    return 1 if summary.failed else 0


def cmd_serve(args) -> int:
    import uvicorn

    uvicorn.run("promptbench.api.http_api:app", host=args.host, port=args.port)
    return 0


# =========================================================
# ENTRYPOINT
# =========================================================

def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=str(args.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        return cmd_serve(args)
    if args.command == "models":
        try:
            return cmd_models(args)
        except ValueError as exc:
            parser.error(str(exc))

    router = create_router(RuntimeEnvironment.DESKTOP if args.direct else None)

    try:
        if args.command == "compare":
            return asyncio.run(cmd_compare(args, router))
        if args.command == "batch":
            return asyncio.run(cmd_batch(args, router))
        if args.command == "validate":
            return asyncio.run(cmd_validate(args, router))
    except (OSError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
