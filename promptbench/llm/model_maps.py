"""Static aggregator-to-native model slug tables.

This module holds data only. `model_transformer` reads these tables; nothing else
is allowed to encode a mapping between aggregator slugs and provider-native slugs.

Maintenance model:
    - Anthropic requires exact dated identifiers. Every active and deprecated model
      needs an entry here (hyphen and dot spellings, plus the dated id mapping to
      itself). A missing entry makes the transformer fail loudly.
    - Retired Anthropic ids are listed separately so the catalog filter can hide
      them. They must not appear in `ANTHROPIC_MODEL_MAP`.
    - OpenAI and Gemini entries cover product-name divergences only; slugs that
      differ just by the provider prefix need no entry.

Keys are unprefixed; the transformer strips the provider segment before lookup.
"""


# =========================================================
# ANTHROPIC
# =========================================================
# Source: https://docs.anthropic.com/en/docs/about-claude/models

ANTHROPIC_ACTIVE_MODELS = (
    "claude-opus-4-5-20251101",
    "claude-sonnet-4-5-20250929",
    "claude-haiku-4-5-20251001",
    "claude-opus-4-1-20250805",
    "claude-opus-4-20250514",
    "claude-sonnet-4-20250514",
    "claude-3-haiku-20240307",
)

# Still served by the API but scheduled for retirement; must stay selectable.
ANTHROPIC_DEPRECATED_MODELS = (
    "claude-3-opus-20240229",
    "claude-3-5-haiku-20241022",
    "claude-3-7-sonnet-20250219",
)

# Substrings of ids that no longer work against the live API.
ANTHROPIC_RETIRED_PATTERNS = (
    "claude-2.0",
    "claude-2.1",
    "claude-2-",
    "claude-instant",
    "claude-3-sonnet-",
    "claude-3.5-sonnet",
    "claude-3-5-sonnet",
)

ANTHROPIC_MODEL_MAP = {
    # Claude 4.5
    "claude-opus-4-5": "claude-opus-4-5-20251101",
    "claude-opus-4.5": "claude-opus-4-5-20251101",
    "claude-opus-4-5-20251101": "claude-opus-4-5-20251101",
    "claude-sonnet-4-5": "claude-sonnet-4-5-20250929",
    "claude-sonnet-4.5": "claude-sonnet-4-5-20250929",
    "claude-sonnet-4-5-20250929": "claude-sonnet-4-5-20250929",
    "claude-haiku-4-5": "claude-haiku-4-5-20251001",
    "claude-haiku-4.5": "claude-haiku-4-5-20251001",
    "claude-haiku-4-5-20251001": "claude-haiku-4-5-20251001",

    # Claude 4
    "claude-opus-4": "claude-opus-4-20250514",
    "claude-opus-4-20250514": "claude-opus-4-20250514",
    "claude-opus-4-1": "claude-opus-4-1-20250805",
    "claude-opus-4.1": "claude-opus-4-1-20250805",
    "claude-opus-4-1-20250805": "claude-opus-4-1-20250805",
    "claude-sonnet-4": "claude-sonnet-4-20250514",
    "claude-sonnet-4-20250514": "claude-sonnet-4-20250514",

    # Claude 3
    "claude-3-haiku": "claude-3-haiku-20240307",
    "claude-3-haiku-20240307": "claude-3-haiku-20240307",

    # Deprecated
    "claude-3-opus": "claude-3-opus-20240229",
    "claude-3-opus-20240229": "claude-3-opus-20240229",
    "claude-3.5-haiku": "claude-3-5-haiku-20241022",
    "claude-3-5-haiku": "claude-3-5-haiku-20241022",
    "claude-3-5-haiku-20241022": "claude-3-5-haiku-20241022",
    "claude-3.7-sonnet": "claude-3-7-sonnet-20250219",
    "claude-3-7-sonnet": "claude-3-7-sonnet-20250219",
    "claude-3.7-sonnet-20250219": "claude-3-7-sonnet-20250219",
    "claude-3-7-sonnet-20250219": "claude-3-7-sonnet-20250219",
}


# =========================================================
# OPENAI
# =========================================================
# Aggregator names for image models differ from the native image endpoint names.

OPENAI_MODEL_MAP = {
    "gpt-5-image": "gpt-image-1",
    "gpt-5-image-mini": "gpt-image-1-mini",
    "gpt-5-chat": "gpt-5-chat-latest",
}


# =========================================================
# GEMINI
# =========================================================

GEMINI_MODEL_MAP = {
    # Word order differs between the aggregator and the native API.
    "gemini-flash-2.0-exp": "gemini-2.0-flash-exp",
    "gemini-2.0-flash-exp": "gemini-2.0-flash-exp",

    # Dotted major versions.
    "gemini-3.0-pro": "gemini-3-pro",
    "gemini-3.0-flash": "gemini-3-flash",

    # Preview-only releases.
    "gemini-3-pro-image": "gemini-3-pro-image-preview",
    "gemini-2.5-pro-preview": "gemini-2.5-pro",
}
