"""Aggregator-slug to provider-native slug transformation.

Architectural role:
    The only place where an aggregator slug (`anthropic/claude-3-opus`) becomes the
    identifier a provider's API expects (`claude-3-opus-20240229`). Dispatchers
    call `transform_model_slug` immediately before invoking an adapter.

Provider handling:
    - OpenRouter, Ollama, LM Studio: pass-through.
    - OpenAI, Gemini: table lookup for name divergences, otherwise strip the
      `openai/` / `google/` prefix.
    - Anthropic: table lookup, then dated-id pass-through, otherwise fail.

Failure model:
    Unknown Anthropic slugs raise `UnknownModelError` synchronously instead of
    forwarding an id the API is certain to reject.

Determinism:
    Pure and deterministic. Repeated application is a no-op for every slug that
    transforms without error.
"""

import re

from promptbench.core.types import Provider
from promptbench.llm.errors import UnknownModelError
from promptbench.llm.model_maps import (
    ANTHROPIC_MODEL_MAP,
    GEMINI_MODEL_MAP,
    OPENAI_MODEL_MAP,
)


# Aggregator namespace segment per provider.
AGGREGATOR_PREFIXES = {
    Provider.OPENAI: "openai",
    Provider.ANTHROPIC: "anthropic",
    Provider.GEMINI: "google",
}

_DATED_SLUG = re.compile(r"\d{8}$")


def strip_provider_prefix(slug: str, prefix: str) -> str:
    """Remove a leading `<prefix>/` segment when present."""
    marker = f"{prefix}/"
    if slug.startswith(marker):
        return slug[len(marker):]
    return slug


def transform_model_slug(provider: Provider, slug: str) -> str:
    """Map an aggregator slug to the native slug for `provider`.

    Args:
        provider: Target provider.
        slug: Aggregator-form (or already native) model slug.

    Returns:
        Native model identifier.

    Raises:
        UnknownModelError: Anthropic slug with no table entry and no date suffix.
        ValueError: Unknown provider value.
    """
    provider = Provider.parse(provider)

    if provider in (Provider.OPENROUTER, Provider.OLLAMA, Provider.LMSTUDIO):
        return slug

    if provider == Provider.OPENAI:
        bare = strip_provider_prefix(slug, AGGREGATOR_PREFIXES[provider])
        return OPENAI_MODEL_MAP.get(bare, bare)

    if provider == Provider.GEMINI:
        bare = strip_provider_prefix(slug, AGGREGATOR_PREFIXES[provider])
        return GEMINI_MODEL_MAP.get(bare, bare)

    if provider == Provider.ANTHROPIC:
        return _transform_anthropic(slug)

    raise ValueError(f"Unknown provider: {provider}")


def _transform_anthropic(slug: str) -> str:
    bare = strip_provider_prefix(slug, AGGREGATOR_PREFIXES[Provider.ANTHROPIC])

    mapped = ANTHROPIC_MODEL_MAP.get(bare)
    if mapped:
        return mapped

    if _DATED_SLUG.search(bare):
        return bare

    raise UnknownModelError(
        Provider.ANTHROPIC,
        slug,
        hint=(
            "Add a mapping to ANTHROPIC_MODEL_MAP in promptbench/llm/model_maps.py "
            "or use a dated model id."
        ),
    )
