"""Model classification helpers.

`is_image_model` decides whether a (provider, model) pair targets an image
generation model. Matching is case-insensitive and runs per `/`-separated path
segment with word boundaries, so `openai/dall-e-3/latest` matches while
`gemini-imagine-pro` does not.

`supports_modality` is the single capability table consulted by both dispatch
paths and by the proxy API, which keeps the two paths symmetric.
"""

import re

from promptbench.core.types import Modality, Provider


_OPENAI_IMAGE_PATTERNS = (
    re.compile(r"\bdall-e\b"),
    re.compile(r"\bgpt-(?:[a-z0-9.]+-)*image\b"),
)

_GEMINI_IMAGE_PATTERNS = (
    re.compile(r"\bimagen\b"),
    re.compile(r"-image-preview\b"),
    re.compile(r"-image-generation\b"),
    re.compile(r"-(?:flash|pro)-image\b"),
)

_OPENROUTER_IMAGE_PATTERNS = _OPENAI_IMAGE_PATTERNS + _GEMINI_IMAGE_PATTERNS + (
    re.compile(r"\bstable-diffusion\b"),
    re.compile(r"\bmidjourney\b"),
)

IMAGE_MODEL_PATTERNS = {
    Provider.OPENAI: _OPENAI_IMAGE_PATTERNS,
    Provider.GEMINI: _GEMINI_IMAGE_PATTERNS,
    Provider.OPENROUTER: _OPENROUTER_IMAGE_PATTERNS,
    Provider.ANTHROPIC: (),
    Provider.OLLAMA: (),
    Provider.LMSTUDIO: (),
}

IMAGE_PROVIDERS = frozenset({Provider.OPENAI, Provider.GEMINI})
RESPONSES_PROVIDERS = frozenset({Provider.OPENAI})


def is_image_model(provider: Provider, model_id: str) -> bool:
    """Return whether `model_id` names an image generation model.

    Args:
        provider: Provider whose naming conventions apply.
        model_id: Aggregator or native slug, optionally with extra path segments.

    Returns:
        `True` only when a recognized image-model pattern matches a whole token.
        Empty ids and text-only providers return `False`.
    """
    if not model_id:
        return False

    patterns = IMAGE_MODEL_PATTERNS[Provider.parse(provider)]
    if not patterns:
        return False

    for segment in model_id.lower().split("/"):
        if any(pattern.search(segment) for pattern in patterns):
            return True
    return False


def supports_modality(provider: Provider, modality: Modality) -> bool:
    """Return whether `provider` has a request path for `modality`."""
    provider = Provider.parse(provider)
    modality = Modality(modality)

    if modality == Modality.TEXT:
        return True
    if modality == Modality.IMAGE:
        return provider in IMAGE_PROVIDERS
    if modality == Modality.RESPONSES:
        return provider in RESPONSES_PROVIDERS
    raise ValueError(f"Unknown modality: {modality}")
