"""Comparison and dataset-run orchestration.

Architectural role:
    Sits between API/CLI entrypoints and the dispatch layer. Builds
    `GenerationRequest`s for the two user workflows and fans them out through
    `run_batch`:

    - `run_comparison`: one prompt, many (provider, model) targets, side by side.
    - `run_dataset`: one prompt template, one target, many dataset items.

Control-flow model:
    1. Resolve each target's modality (explicit, or image when the classifier
       recognizes an image model).
    2. Render the prompt (dataset runs only).
    3. Route every request concurrently through the injected `DispatchRouter`.
    4. Return results in input order.

Error handling strategy:
    Everything below the router already returns `Failure` values; batch execution
    adds per-item isolation for anything unexpected. No call here raises for
    provider problems.

Determinism:
    Request construction and ordering are deterministic. Generated content is not.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from promptbench.core.batch import ProgressCallback, run_batch
from promptbench.core.router import DispatchRouter
from promptbench.core.types import (
    GenerationRequest,
    GenerationResult,
    ImageParams,
    Modality,
    Provider,
)
from promptbench.llm.model_utils import is_image_model
from promptbench.prompting.template import render_template


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelTarget:
    """One (provider, model) column in a comparison.

    Attributes:
        provider: Target provider.
        model: Aggregator-form slug as selected from the catalog.
        label: Display label; defaults to the slug.
        modality: Explicit request path. `None` infers image vs text from the
            model name.
    """

    provider: Provider
    model: str
    label: str = ""
    modality: Modality | None = None

    @property
    def display_label(self) -> str:
        return self.label or self.model

    def resolved_modality(self) -> Modality:
        if self.modality is not None:
            return Modality(self.modality)
        if is_image_model(self.provider, self.model):
            return Modality.IMAGE
        return Modality.TEXT


@dataclass(frozen=True)
class ComparisonOutput:
    target: ModelTarget
    result: GenerationResult


async def run_comparison(
    router: DispatchRouter,
    prompt: str,
    targets: Sequence[ModelTarget],
    api_keys: Mapping[Provider, str],
    image: ImageParams | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[ComparisonOutput]:
    """Send one prompt to every target concurrently.

    Args:
        router: Dispatch router (direct or proxied).
        prompt: Prompt text sent unchanged to every target.
        targets: Ordered comparison columns.
        api_keys: Caller keys by provider; missing keys surface as per-target
            configuration failures.
        image: Image parameters for targets on the image path.
        on_progress: Optional completion-order callback (see `run_batch`).

    Returns:
        One `ComparisonOutput` per target, in target order.
    """

    async def generate_one(target: ModelTarget) -> GenerationResult:
        modality = target.resolved_modality()
        request = GenerationRequest(
            prompt=prompt,
            provider=target.provider,
            model=target.model,
            api_key=api_keys.get(Provider.parse(target.provider), "") or "",
            image=image if modality == Modality.IMAGE else None,
        )
        return await router.generate(request, modality)

    logger.info("Running comparison across %d targets", len(targets))
    results = await run_batch(targets, generate_one, on_progress)
    return [ComparisonOutput(target, result) for target, result in zip(targets, results)]


async def run_dataset(
    router: DispatchRouter,
    template: str,
    target: ModelTarget,
    items: Sequence[Mapping[str, Any]],
    api_key: str = "",
    image: ImageParams | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[GenerationResult]:
    """Render `template` for every dataset item and run all items concurrently.

    Returns:
        One result per item, in item order.
    """
    modality = target.resolved_modality()

    async def generate_one(item: Mapping[str, Any]) -> GenerationResult:
        request = GenerationRequest(
            prompt=render_template(template, item),
            provider=target.provider,
            model=target.model,
            api_key=api_key,
            image=image if modality == Modality.IMAGE else None,
        )
        return await router.generate(request, modality)

    logger.info("Running dataset of %d items on %s", len(items), target.display_label)
    return await run_batch(items, generate_one, on_progress)
