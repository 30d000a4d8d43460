"""Concurrent batch execution with input-ordered results.

Execution model:
    `run_batch` allocates one `BatchSlot` per item before scheduling anything, then
    launches every call at once with `asyncio.gather`. Each task writes only its own
    slot, so the slot index is the only synchronization needed on a single event
    loop.

Ordering guarantees:
    - The returned list is in input order, regardless of completion order.
    - `on_progress` fires in completion order, once per slot, as each call settles.

Concurrency policy:
    Fan-out is unbounded. Dataset sizes are human-curated and small; callers that
    need a cap must wrap `generate_one` with their own semaphore.

Failure semantics:
    An exception from `generate_one` is captured as a `Failure` in that item's slot.
    Sibling calls are never cancelled. There is no retry and no cancellation of
    in-flight calls; a caller abandoning a batch simply discards the result.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence

from promptbench.core.types import BatchSlot, Failure, GenerationResult, is_failure
from promptbench.llm.errors import to_failure


logger = logging.getLogger(__name__)

GenerateOne = Callable[[Any], Awaitable[GenerationResult]]
ProgressCallback = Callable[[BatchSlot], None]


async def run_batch(
    items: Sequence[Any],
    generate_one: GenerateOne,
    on_progress: ProgressCallback | None = None,
) -> list[GenerationResult]:
    """Run `generate_one` for every item concurrently.

    Args:
        items: Ordered batch input (for example dataset rows).
        generate_one: Async function producing a result for one item.
        on_progress: Optional callback receiving each settled slot in completion
            order. Exceptions raised by the callback are logged and ignored so UI
            code cannot break the batch.

    Returns:
        One result per item, `results[k]` belonging to `items[k]`.

    Edge cases:
        - Empty input returns `[]` without scheduling anything.
        - A single item behaves exactly like a direct call to `generate_one`.
    """
    slots = allocate_slots(items)
    if not slots:
        return []

    async def settle(slot: BatchSlot) -> None:
        try:
            result = await generate_one(slot.item)
        except Exception as exc:
            logger.warning("Batch item %d raised %s", slot.index, exc.__class__.__name__)
            result = to_failure(exc, fallback="Generation failed")

        slot.settle(result)

        if on_progress is not None:
            try:
                on_progress(slot)
            except Exception:
                logger.exception("Batch progress callback failed for item %d", slot.index)

    await asyncio.gather(*(settle(slot) for slot in slots))

    failures = sum(1 for slot in slots if is_failure(slot.result))
    logger.info("Batch finished: %d items, %d failed", len(slots), failures)
    return [slot.result for slot in slots]


def allocate_slots(items: Sequence[Any]) -> list[BatchSlot]:
    """Pre-size the output: one pending slot per input position."""
    return [BatchSlot(index=index, item=item) for index, item in enumerate(items)]


def summarize_batch(results: Sequence[GenerationResult]) -> dict[str, int]:
    """Count successes and failures for progress displays."""
    failed = sum(1 for result in results if isinstance(result, Failure))
    return {"total": len(results), "succeeded": len(results) - failed, "failed": failed}
