"""API validation runs: smoke-test configured models end to end.

Role in pipeline:
    Sends a short fixed prompt to each selected model through a `DispatchRouter`
    and records one `ValidationResult` per model. Used by the CLI and the proxy API to
    check that keys, slugs, and endpoints still work.

Modes:
    - `quick`: one designated model per provider.
    - `full`: every configured model.
    - `individual`: models selected by `"<provider>:<model>"` key.

Execution model:
    Sequential on purpose, one model at a time, so a validation sweep does not trip
    provider rate limits. Each call is bounded by `TEST_TIMEOUT_SECONDS` on top of
    the adapter's own timeout.

Failure handling:
    Models without a key are reported as `skipped` without any network call.
    Router failures and the outer timeout become `failed` results.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Sequence

from promptbench.core.router import DispatchRouter
from promptbench.core.types import (
    GenerationRequest,
    ImageResult,
    Modality,
    Provider,
    TextResult,
    is_failure,
)
from promptbench.llm.model_utils import supports_modality


logger = logging.getLogger(__name__)

TEST_TIMEOUT_SECONDS = 30
TEXT_TEST_PROMPT = "Say 'Hello, I am working correctly!' in one sentence."
IMAGE_TEST_PROMPT = "A simple red apple on a white background"

MODES = ("quick", "full", "individual")


@dataclass(frozen=True)
class ModelConfig:
    provider: Provider
    model: str
    label: str = ""
    type: str = "text"

    @property
    def key(self) -> str:
        return f"{Provider.parse(self.provider).value}:{self.model}"


@dataclass
class ValidationResult:
    """Outcome of one model check.

    `status` is one of `success`, `failed`, or `skipped`.
    """

    provider: Provider
    model: str
    model_label: str
    status: str
    type: str
    content: str | None = None
    image_url: str | None = None
    tokens: int | None = None
    latency_ms: int | None = None
    error: str | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ValidationSummary:
    total: int
    tested: int
    passed: int
    failed: int
    skipped: int
    avg_latency_ms: int
    total_tokens: int


def validation_prompt(model: ModelConfig) -> str:
    if model.type == "image":
        return IMAGE_TEST_PROMPT if supports_modality(model.provider, Modality.IMAGE) else ""
    return TEXT_TEST_PROMPT


async def check_model(router: DispatchRouter, model: ModelConfig, api_key: str) -> ValidationResult:
    """Run one validation request bounded by `TEST_TIMEOUT_SECONDS`."""
    modality = Modality.IMAGE if model.type == "image" else Modality.TEXT
    request = GenerationRequest(
        prompt=validation_prompt(model),
        provider=Provider.parse(model.provider),
        model=model.model,
        api_key=api_key,
    )
    result = ValidationResult(
        provider=request.provider,
        model=model.model,
        model_label=model.label or model.model,
        status="failed",
        type=model.type,
    )

    started = time.perf_counter()
    try:
        outcome = await asyncio.wait_for(router.generate(request, modality), TEST_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        result.error = f"Request timeout ({TEST_TIMEOUT_SECONDS}s)"
        return result
    result.latency_ms = int(round((time.perf_counter() - started) * 1000))

    if is_failure(outcome):
        result.error = outcome.error
    elif isinstance(outcome, ImageResult):
        result.status = "success"
        result.image_url = outcome.image_url
    elif isinstance(outcome, TextResult):
        result.status = "success"
        result.content = outcome.content
        result.tokens = outcome.tokens
    return result


def models_for_mode(
    mode: str,
    all_models: Sequence[ModelConfig],
    selected: Iterable[str] = (),
    test_models: Mapping[Provider, str] | None = None,
) -> list[ModelConfig]:
    """Select the models a validation run covers.

    Args:
        mode: `quick`, `full`, or `individual`.
        all_models: Every configured model.
        selected: `"<provider>:<model>"` keys for `individual` mode.
        test_models: Designated model per provider for `quick` mode.

    Raises:
        ValueError: Unknown mode.
    """
    if mode == "quick":
        picked = []
        for provider, model_id in (test_models or {}).items():
            provider = Provider.parse(provider)
            match = next(
                (m for m in all_models if Provider.parse(m.provider) == provider and m.model == model_id),
                None,
            )
            if match is not None:
                picked.append(match)
        return picked
    if mode == "full":
        return list(all_models)
    if mode == "individual":
        wanted = set(selected)
        return [m for m in all_models if m.key in wanted]
    raise ValueError(f"Unknown validation mode: {mode}")


async def run_validation(
    router: DispatchRouter,
    models: Sequence[ModelConfig],
    api_keys: Mapping[Provider, str],
    on_progress: Callable[[ValidationResult], None] | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> list[ValidationResult]:
    """Validate `models` one at a time.

    Local providers run without a key; hosted providers without one are skipped.
    `should_stop` is checked before each model.
    """
    results = []
    for model in models:
        if should_stop is not None and should_stop():
            logger.info("Validation stopped after %d models", len(results))
            break

        provider = Provider.parse(model.provider)
        api_key = api_keys.get(provider) or ""

        if not api_key and not provider.is_local:
            result = ValidationResult(
                provider=provider,
                model=model.model,
                model_label=model.label or model.model,
                status="skipped",
                type=model.type,
                error="API key not configured",
            )
        else:
            result = await check_model(router, model, api_key)

        results.append(result)
        if on_progress is not None:
            on_progress(result)
    return results


def summarize(results: Sequence[ValidationResult]) -> ValidationSummary:
    passed = [r for r in results if r.status == "success"]
    failed = [r for r in results if r.status == "failed"]
    skipped = [r for r in results if r.status == "skipped"]
    latencies = [r.latency_ms for r in passed if r.latency_ms is not None]
    return ValidationSummary(
        total=len(results),
        tested=len(passed) + len(failed),
        passed=len(passed),
        failed=len(failed),
        skipped=len(skipped),
        avg_latency_ms=int(round(sum(latencies) / len(latencies))) if latencies else 0,
        total_tokens=sum(r.tokens or 0 for r in results),
    )
