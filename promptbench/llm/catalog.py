"""Model catalog filtering for provider model pickers.

Architectural role:
    Converts raw model listings (from the aggregator listing or a provider's own
    discovery endpoint) into the `CatalogEntry` subset that is callable and worth
    surfacing for one provider.

Filtering pipeline (`filter_for_provider`):
    1. Ownership: literal match on the listing's developer field, or on the
       aggregator id prefix for rows without one.
    2. Global exclusions shared by every provider (audio, speech, realtime,
       moderation, embeddings).
    3. Provider rules: open-source variants, retired Anthropic ids, Gemma.
    4. Modality restriction for direct providers.
    5. Label cleanup and descending sort by label.

Raw row shapes accepted:
    - Listing rows: `{"id", "type", "info": {"name", "developer"}}`
    - Directory rows: `{"id", "name"}` with a provider-prefixed id.

Determinism:
    Pure and order-stable for identical input.
"""

import re
from collections import OrderedDict
from typing import Iterable

from promptbench.core.types import CatalogEntry, Provider
from promptbench.llm.model_maps import ANTHROPIC_RETIRED_PATTERNS
from promptbench.llm.model_transformer import AGGREGATOR_PREFIXES
from promptbench.llm.model_utils import is_image_model


# Developer names as they appear in listings. These differ from the enum values
# ("Open AI" with a space) and are matched literally.
PROVIDER_OWNER_NAMES = {
    Provider.OPENAI: "Open AI",
    Provider.ANTHROPIC: "Anthropic",
    Provider.GEMINI: "Google",
}

GLOBAL_EXCLUDED_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"audio",
        r"speech",
        r"\btts\b",
        r"whisper",
        r"transcribe",
        r"realtime",
        r"moderation",
        r"embedding",
        r"\bstt\b",
    )
)

OPEN_SOURCE_PATTERNS = ("gpt-oss", "-oss-")

ALLOWED_TYPES = {
    Provider.OPENAI: frozenset({"chat-completion", "responses", "image"}),
    Provider.ANTHROPIC: frozenset({"chat-completion"}),
    Provider.GEMINI: frozenset({"chat-completion", "image"}),
}

POPULAR_OPENROUTER_PREFIXES = (
    "openai/",
    "anthropic/",
    "google/",
    "meta-llama/",
    "mistralai/",
    "deepseek/",
    "qwen/",
)

_RESPONSES_FAMILY = re.compile(r"^(?:[a-z-]+/)?o\d(?:-|$)")
_LABEL_PREFIX = re.compile(r"^[^:]{1,40}:\s+")


# =========================================================
# ROW ACCESSORS
# =========================================================

def _row_id(row: dict) -> str:
    return str(row.get("id") or "")


def _row_owner(row: dict) -> str | None:
    info = row.get("info")
    if isinstance(info, dict) and info.get("developer") is not None:
        return str(info["developer"])
    if row.get("owned_by") is not None:
        return str(row["owned_by"])
    return None


def _row_name(row: dict) -> str:
    info = row.get("info")
    if isinstance(info, dict) and info.get("name"):
        return str(info["name"])
    return str(row.get("name") or "")


def infer_model_type(provider: Provider, model_id: str) -> str:
    """Infer a modality tag for rows that do not carry one."""
    if is_image_model(provider, model_id):
        return "image"
    if _RESPONSES_FAMILY.match(model_id.lower()):
        return "responses"
    return "chat-completion"


def clean_label(name: str, fallback: str) -> str:
    """Strip a `"<Owner>: "` display prefix (`"OpenAI: GPT-4o"` -> `"GPT-4o"`)."""
    label = _LABEL_PREFIX.sub("", name.strip()) if name else ""
    return label or fallback


# =========================================================
# PREDICATES
# =========================================================

def is_owned_by(row: dict, provider: Provider) -> bool:
    if provider not in PROVIDER_OWNER_NAMES:
        return True
    owner = _row_owner(row)
    if owner is not None:
        return owner == PROVIDER_OWNER_NAMES[provider]
    return _row_id(row).startswith(f"{AGGREGATOR_PREFIXES[provider]}/")


def is_globally_excluded(model_id: str, model_type: str = "") -> bool:
    return any(
        pattern.search(model_id) or (model_type and pattern.search(model_type))
        for pattern in GLOBAL_EXCLUDED_PATTERNS
    )


def is_excluded_for_provider(provider: Provider, model_id: str) -> bool:
    """Apply provider-specific exclusion rules to a lowercased id."""
    model_id = model_id.lower()
    if provider == Provider.OPENAI:
        return any(marker in model_id for marker in OPEN_SOURCE_PATTERNS)
    if provider == Provider.ANTHROPIC:
        return any(marker in model_id for marker in ANTHROPIC_RETIRED_PATTERNS)
    if provider == Provider.GEMINI:
        return "gemma" in model_id
    return False


# =========================================================
# FILTERS
# =========================================================

def filter_for_provider(raw_models: Iterable[dict], provider: Provider) -> list[CatalogEntry]:
    """Filter and sort a raw listing into catalog entries for one provider.

    Args:
        raw_models: Listing rows as decoded from JSON.
        provider: Provider the picker is populated for.

    Returns:
        Catalog entries sorted descending by label. `value` keeps the row id
        unchanged; aggregator ids are transformed later at dispatch time.

    Edge cases:
        - Rows without an `id` are skipped.
        - Duplicate ids keep the first occurrence.
    """
    provider = Provider.parse(provider)
    allowed = ALLOWED_TYPES.get(provider)
    entries: "OrderedDict[str, CatalogEntry]" = OrderedDict()

    for row in raw_models or ():
        if not isinstance(row, dict):
            continue
        model_id = _row_id(row)
        if not model_id or model_id in entries:
            continue
        if not is_owned_by(row, provider):
            continue

        model_type = str(row.get("type") or infer_model_type(provider, model_id))

        if is_globally_excluded(model_id, model_type):
            continue
        if is_excluded_for_provider(provider, model_id):
            continue
        if allowed is not None and model_type not in allowed:
            continue

        entries[model_id] = CatalogEntry(
            value=model_id,
            label=clean_label(_row_name(row), model_id),
            type=model_type,
        )

    return sort_entries(entries.values())


def sort_entries(entries: Iterable[CatalogEntry]) -> list[CatalogEntry]:
    """Sort descending by label so newer version numbers surface first."""
    return sorted(entries, key=lambda entry: (entry.label.casefold(), entry.label), reverse=True)


def popular_openrouter_models(raw_models: Iterable[dict]) -> list[CatalogEntry]:
    """Narrow the aggregator listing to well-known model families."""
    rows = [
        row for row in raw_models or ()
        if isinstance(row, dict) and _row_id(row).startswith(POPULAR_OPENROUTER_PREFIXES)
    ]
    return filter_for_provider(rows, Provider.OPENROUTER)


def group_by_type(entries: Iterable[CatalogEntry]) -> dict[str, list[CatalogEntry]]:
    """Bucket entries by modality tag, preserving entry order within buckets."""
    groups: dict[str, list[CatalogEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.type, []).append(entry)
    return groups


def entries_from_local_listing(model_ids: Iterable[str]) -> list[CatalogEntry]:
    """Build entries from a local server's model id list (Ollama, LM Studio)."""
    return sort_entries(
        CatalogEntry(value=model_id, label=model_id, type="chat-completion")
        for model_id in dict.fromkeys(model_ids)
        if model_id
    )
