import pytest

from promptbench.core.types import Modality, Provider
from promptbench.llm.model_utils import is_image_model, supports_modality


@pytest.mark.parametrize(
    "provider, model_id",
    [
        (Provider.OPENAI, "dall-e-3"),
        (Provider.OPENAI, "openai/dall-e-2"),
        (Provider.OPENAI, "gpt-image-1"),
        (Provider.OPENAI, "openai/gpt-5-image-mini"),
        (Provider.OPENAI, "openai/dall-e-3/latest"),
        (Provider.OPENAI, "DALL-E-3"),
        (Provider.GEMINI, "imagen-3.0-generate-002"),
        (Provider.GEMINI, "gemini-2.5-flash-image-preview"),
        (Provider.GEMINI, "gemini-2.0-flash-preview-image-generation"),
        (Provider.GEMINI, "google/gemini-3-pro-image"),
        (Provider.OPENROUTER, "providers/stable-diffusion/xl/v2"),
        (Provider.OPENROUTER, "midjourney/v6"),
        (Provider.OPENROUTER, "openai/gpt-5-image"),
    ],
)
def test_recognizes_image_models(provider, model_id):
    assert is_image_model(provider, model_id) is True


@pytest.mark.parametrize(
    "provider, model_id",
    [
        (Provider.GEMINI, "gemini-imagine-pro"),
        (Provider.GEMINI, "gemini-2.5-pro"),
        (Provider.OPENAI, "gpt-4-doll"),
        (Provider.OPENAI, "gpt-4-vision"),
        (Provider.OPENAI, "gpt-4o"),
        (Provider.OPENAI, "dall-everything"),
        (Provider.OPENAI, ""),
        (Provider.ANTHROPIC, "claude-image-3"),
        (Provider.OLLAMA, "dall-e-3"),
        (Provider.LMSTUDIO, "stable-diffusion"),
        (Provider.OPENROUTER, "stable-diffusionish/model"),
    ],
)
def test_rejects_non_image_models(provider, model_id):
    assert is_image_model(provider, model_id) is False


def test_accepts_provider_wire_names():
    assert is_image_model("openai", "dall-e-3") is True


@pytest.mark.parametrize(
    "provider, modality, expected",
    [
        (Provider.OPENAI, Modality.IMAGE, True),
        (Provider.GEMINI, Modality.IMAGE, True),
        (Provider.ANTHROPIC, Modality.IMAGE, False),
        (Provider.OPENROUTER, Modality.IMAGE, False),
        (Provider.OLLAMA, Modality.IMAGE, False),
        (Provider.OPENAI, Modality.RESPONSES, True),
        (Provider.GEMINI, Modality.RESPONSES, False),
        (Provider.LMSTUDIO, Modality.TEXT, True),
    ],
)
def test_supports_modality(provider, modality, expected):
    assert supports_modality(provider, modality) is expected
