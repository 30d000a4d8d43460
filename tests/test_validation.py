import asyncio

import pytest

from promptbench.core.types import Failure, ImageResult, Modality, Provider, TextResult
from promptbench.validation import runner
from promptbench.validation.runner import (
    IMAGE_TEST_PROMPT,
    TEXT_TEST_PROMPT,
    ModelConfig,
    check_model,
    models_for_mode,
    run_validation,
    summarize,
)


class ScriptedRouter:
    """Router stand-in returning canned results per model id."""

    def __init__(self, outcomes=None, delay=0):
        self.outcomes = outcomes or {}
        self.delay = delay
        self.calls = []

    async def generate(self, request, modality=Modality.TEXT):
        self.calls.append((request, modality))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.outcomes.get(request.model, TextResult("Hello, I am working correctly!", 12, 5))


MODELS = [
    ModelConfig(Provider.OPENAI, "gpt-4o", "GPT-4o"),
    ModelConfig(Provider.OPENAI, "dall-e-3", "DALL-E 3", "image"),
    ModelConfig(Provider.ANTHROPIC, "claude-3-haiku", "Claude 3 Haiku"),
    ModelConfig(Provider.OLLAMA, "llama3.2", "Llama 3.2"),
]


def test_model_key():
    assert MODELS[0].key == "openai:gpt-4o"


def test_models_for_mode():
    assert models_for_mode("full", MODELS) == MODELS
    assert models_for_mode("individual", MODELS, ["ollama:llama3.2"]) == [MODELS[3]]
    assert models_for_mode("quick", MODELS, test_models={"anthropic": "claude-3-haiku", Provider.GEMINI: "x"}) == [
        MODELS[2]
    ]


def test_unknown_mode_is_rejected():
    with pytest.raises(ValueError, match="Unknown validation mode: thorough"):
        models_for_mode("thorough", MODELS)


@pytest.mark.asyncio
async def test_run_validation_is_sequential_and_skips_missing_keys():
    router = ScriptedRouter(
        {
            "dall-e-3": ImageResult("https://img.example/apple.png", None, 800),
            "llama3.2": Failure("Cannot connect to Ollama. Start it with: ollama serve"),
        }
    )
    seen = []

    results = await run_validation(router, MODELS, {Provider.OPENAI: "sk"}, on_progress=lambda r: seen.append(r.model))

    assert [r.status for r in results] == ["success", "success", "skipped", "failed"]
    assert seen == ["gpt-4o", "dall-e-3", "claude-3-haiku", "llama3.2"]
    assert results[2].error == "API key not configured"
    assert results[3].error.startswith("Cannot connect to Ollama")

    prompts = [(request.prompt, modality) for request, modality in router.calls]
    assert prompts == [
        (TEXT_TEST_PROMPT, Modality.TEXT),
        (IMAGE_TEST_PROMPT, Modality.IMAGE),
        (TEXT_TEST_PROMPT, Modality.TEXT),
    ]


@pytest.mark.asyncio
async def test_should_stop_halts_before_next_model():
    router = ScriptedRouter()
    results = await run_validation(
        router,
        MODELS,
        {Provider.OPENAI: "sk"},
        should_stop=lambda: len(router.calls) >= 1,
    )
    assert [r.model for r in results] == ["gpt-4o"]


@pytest.mark.asyncio
async def test_check_model_times_out(monkeypatch):
    monkeypatch.setattr(runner, "TEST_TIMEOUT_SECONDS", 0.05)
    router = ScriptedRouter(delay=1)

    result = await check_model(router, MODELS[0], "sk")

    assert result.status == "failed"
    assert result.error == "Request timeout (0.05s)"


def test_summarize():
    results = [
        runner.ValidationResult(Provider.OPENAI, "a", "a", "success", "text", tokens=10, latency_ms=100),
        runner.ValidationResult(Provider.OPENAI, "b", "b", "success", "text", tokens=5, latency_ms=200),
        runner.ValidationResult(Provider.OPENAI, "c", "c", "failed", "text", error="x"),
        runner.ValidationResult(Provider.GEMINI, "d", "d", "skipped", "text"),
    ]

    summary = summarize(results)

    assert summary.total == 4
    assert summary.tested == 3
    assert summary.passed == 2
    assert summary.failed == 1
    assert summary.skipped == 1
    assert summary.avg_latency_ms == 150
    assert summary.total_tokens == 15
