"""Model discovery against provider listing endpoints.

Architectural role:
    Produces raw model listings for `promptbench.llm.catalog`:

    - `fetch_aggregator_models`: public aggregator listing, no key required.
      Synchronous (`requests`), cached in-process, served stale on refresh failure.
    - `ModelDiscovery`: keyed listing endpoints of OpenAI, Anthropic, and Gemini,
      queried concurrently with `httpx.AsyncClient`.

Provider rules:
    - OpenAI: keep chat/image/reasoning families, drop fine-tunes, legacy
      completion engines, moderation, and `-instruct` models.
    - Anthropic: paginated with `has_more` / `last_id`; drop Claude 2 and Instant.
    - Gemini: paginated with `nextPageToken`; keep `gemini-` / `imagen-`, drop
      Gemma, legacy `text-` / `embedding-` models, and AQA.

Failure handling model:
    Keyed discovery never raises: each provider yields a `ProviderDiscoveryResult`
    with `success=False` and a sanitized error. The aggregator fetch raises
    `AdapterError` only when no cached listing exists.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx
import requests

from promptbench.core.types import Provider
from promptbench.llm.catalog import PROVIDER_OWNER_NAMES
from promptbench.llm.errors import AdapterError, extract_error_message, sanitize_error
from promptbench.llm.provider_config import (
    AGGREGATOR_CACHE_SECONDS,
    AGGREGATOR_MODELS_URL,
    ANTHROPIC_VERSION,
    CLIENT_CONFIG,
    PROVIDERS,
    ClientConfig,
)


logger = logging.getLogger(__name__)

OPENAI_INCLUDE_PREFIXES = (
    "gpt-",
    "o1",
    "o3",
    "o4",
    "dall-e-",
    "gpt-image",
    "chatgpt-",
    "text-",
    "whisper-",
    "tts-",
)

OPENAI_EXCLUDE_PATTERNS = (
    re.compile(r"^ft:"),
    re.compile(r"^ft-"),
    re.compile(r"^davinci"),
    re.compile(r"^curie"),
    re.compile(r"^babbage"),
    re.compile(r"^ada"),
    re.compile(r"moderation"),
    re.compile(r"-instruct$"),
)

ANTHROPIC_EXCLUDE_PATTERNS = (
    re.compile(r"^claude-2"),
    re.compile(r"^claude-instant"),
)

GEMINI_INCLUDE_PREFIXES = ("gemini-", "imagen-")

GEMINI_EXCLUDE_PATTERNS = (
    re.compile(r"gemma", re.IGNORECASE),
    re.compile(r"^text-"),
    re.compile(r"^embedding-"),
    re.compile(r"^aqa", re.IGNORECASE),
)


@dataclass(frozen=True)
class DiscoveredModel:
    id: str
    provider: Provider
    display_name: str = ""
    model_type: str = "chat-completion"
    owned_by: str = ""

    def to_listing_row(self) -> dict[str, Any]:
        """Shape the model like an aggregator listing row for `filter_for_provider`."""
        return {
            "id": self.id,
            "type": self.model_type,
            "info": {"name": self.display_name or self.id, "developer": self.owned_by},
        }


@dataclass
class ProviderDiscoveryResult:
    provider: Provider
    success: bool
    models: list[DiscoveredModel] = field(default_factory=list)
    error: str | None = None
    discovered_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider.value,
            "success": self.success,
            "models": [
                {
                    "id": model.id,
                    "displayName": model.display_name,
                    "modelType": model.model_type,
                    "ownedBy": model.owned_by,
                }
                for model in self.models
            ],
            "error": self.error,
            "discoveredAt": int(self.discovered_at * 1000),
        }


# =========================================================
# TYPE INFERENCE
# =========================================================

def infer_openai_type(model_id: str) -> str:
    model_id = model_id.lower()
    if model_id.startswith("dall-e") or "gpt-image" in model_id:
        return "image"
    if "realtime" in model_id:
        return "realtime"
    if "embedding" in model_id:
        return "embedding"
    if "whisper" in model_id or "transcribe" in model_id or "audio" in model_id:
        return "audio"
    if model_id.startswith("tts-") or "-tts" in model_id:
        return "tts"
    if re.match(r"^o\d", model_id):
        return "responses"
    return "chat-completion"


def infer_gemini_type(model_id: str, methods: list[str]) -> str:
    """Infer by name first, then by `supportedGenerationMethods`."""
    model_id = model_id.lower()
    if model_id.startswith("imagen-"):
        return "image"
    if "embedding" in model_id:
        return "embedding"
    if "tts" in model_id or "native-audio" in model_id:
        return "audio"
    if "generateImage" in methods:
        return "image"
    if "embedContent" in methods:
        return "embedding"
    if "generateContent" in methods:
        return "image" if re.search(r"-image(?:-|$)", model_id) else "chat-completion"
    return "unknown"


# =========================================================
# KEYED DISCOVERY
# =========================================================

class ModelDiscovery:
    """Query provider model-listing endpoints with caller keys.

    Args:
        config: Timeout configuration.
        transport: Optional `httpx` transport for tests.
    """

    def __init__(
        self,
        config: ClientConfig = CLIENT_CONFIG,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport

    async def _get(self, provider: Provider, url: str, headers=None, params=None) -> Any:
        async with httpx.AsyncClient(timeout=self.config.timeout_seconds, transport=self._transport) as client:
            response = await client.get(url, headers=headers, params=params)
        if not response.is_success:
            try:
                message = extract_error_message(response.json())
            except ValueError:
                message = None
            raise AdapterError(message or f"{provider.label} API error: HTTP {response.status_code}")
        return response.json()

    async def _run(self, provider: Provider, operation) -> ProviderDiscoveryResult:
        started = time.time()
        try:
            models = await operation
        except AdapterError as exc:
            error = exc.message
        except httpx.TimeoutException:
            error = f"{provider.label} request timed out after {self.config.timeout_seconds:g}s"
        except httpx.RequestError:
            error = f"Cannot connect to {provider.label}"
        except (AttributeError, KeyError, TypeError, ValueError):
            error = f"Invalid response from {provider.label}"
        else:
            models.sort(key=lambda model: model.id, reverse=True)
            logger.info("%s discovery found %d models", provider.label, len(models))
            return ProviderDiscoveryResult(provider, True, models, discovered_at=started)

        error = sanitize_error(error)
        logger.warning("%s discovery failed: %s", provider.label, error)
        return ProviderDiscoveryResult(provider, False, [], error, discovered_at=started)

    # -----------------------------------------------------
    # OpenAI
    # -----------------------------------------------------

    async def discover_openai(self, api_key: str) -> ProviderDiscoveryResult:
        return await self._run(Provider.OPENAI, self._openai_models(api_key))

    async def _openai_models(self, api_key: str) -> list[DiscoveredModel]:
        data = await self._get(
            Provider.OPENAI,
            PROVIDERS[Provider.OPENAI]["models_url"],
            headers={"Authorization": f"Bearer {api_key}"},
        )
        models = []
        for row in data.get("data") or []:
            model_id = row["id"]
            if not model_id.startswith(OPENAI_INCLUDE_PREFIXES):
                continue
            if any(pattern.search(model_id) for pattern in OPENAI_EXCLUDE_PATTERNS):
                continue
            models.append(
                DiscoveredModel(
                    id=model_id,
                    provider=Provider.OPENAI,
                    display_name=model_id,
                    model_type=infer_openai_type(model_id),
                    owned_by=PROVIDER_OWNER_NAMES[Provider.OPENAI],
                )
            )
        return models

    # -----------------------------------------------------
    # Anthropic
    # -----------------------------------------------------

    async def discover_anthropic(self, api_key: str) -> ProviderDiscoveryResult:
        return await self._run(Provider.ANTHROPIC, self._anthropic_models(api_key))

    async def _anthropic_models(self, api_key: str) -> list[DiscoveredModel]:
        headers = {"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION}
        params: dict[str, Any] = {"limit": 100}
        models = []

        while True:
            data = await self._get(
                Provider.ANTHROPIC,
                PROVIDERS[Provider.ANTHROPIC]["models_url"],
                headers=headers,
                params=params,
            )
            for row in data.get("data") or []:
                model_id = row["id"]
                if any(pattern.search(model_id) for pattern in ANTHROPIC_EXCLUDE_PATTERNS):
                    continue
                models.append(
                    DiscoveredModel(
                        id=model_id,
                        provider=Provider.ANTHROPIC,
                        display_name=row.get("display_name") or model_id,
                        model_type="chat-completion",
                        owned_by=PROVIDER_OWNER_NAMES[Provider.ANTHROPIC],
                    )
                )
            if not data.get("has_more") or not data.get("last_id"):
                return models
            params = {"limit": 100, "after_id": data["last_id"]}

    # -----------------------------------------------------
    # Gemini
    # -----------------------------------------------------

    async def discover_gemini(self, api_key: str) -> ProviderDiscoveryResult:
        return await self._run(Provider.GEMINI, self._gemini_models(api_key))

    async def _gemini_models(self, api_key: str) -> list[DiscoveredModel]:
        params: dict[str, Any] = {"key": api_key, "pageSize": 100}
        models = []

        while True:
            data = await self._get(
                Provider.GEMINI,
                PROVIDERS[Provider.GEMINI]["models_url"],
                params=params,
            )
            for row in data.get("models") or []:
                model_id = str(row["name"]).removeprefix("models/")
                if not model_id.lower().startswith(GEMINI_INCLUDE_PREFIXES):
                    continue
                if any(pattern.search(model_id) for pattern in GEMINI_EXCLUDE_PATTERNS):
                    continue
                models.append(
                    DiscoveredModel(
                        id=model_id,
                        provider=Provider.GEMINI,
                        display_name=row.get("displayName") or model_id,
                        model_type=infer_gemini_type(model_id, row.get("supportedGenerationMethods") or []),
                        owned_by=PROVIDER_OWNER_NAMES[Provider.GEMINI],
                    )
                )
            token = data.get("nextPageToken")
            if not token:
                return models
            params = {"key": api_key, "pageSize": 100, "pageToken": token}

    # -----------------------------------------------------
    # Fan-out and verification
    # -----------------------------------------------------

    async def discover_all(self, api_keys: Mapping[Provider, str]) -> dict[Provider, ProviderDiscoveryResult]:
        """Discover concurrently for every provider with a configured key."""
        runners = {
            Provider.OPENAI: self.discover_openai,
            Provider.ANTHROPIC: self.discover_anthropic,
            Provider.GEMINI: self.discover_gemini,
        }
        selected = [(provider, api_keys.get(provider)) for provider in runners if api_keys.get(provider)]
        results = await asyncio.gather(*(runners[provider](key) for provider, key in selected))
        return {result.provider: result for result in results}

    async def verify_model(self, provider: Provider, api_key: str, model_id: str) -> bool:
        """Return whether the provider's listing endpoint knows `model_id`."""
        provider = Provider.parse(provider)
        if provider == Provider.OPENAI:
            url, headers, params = (
                f"{PROVIDERS[provider]['models_url']}/{model_id}",
                {"Authorization": f"Bearer {api_key}"},
                None,
            )
        elif provider == Provider.ANTHROPIC:
            url, headers, params = (
                f"{PROVIDERS[provider]['models_url']}/{model_id}",
                {"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION},
                None,
            )
        elif provider == Provider.GEMINI:
            url, headers, params = (
                f"{PROVIDERS[provider]['models_url']}/{model_id}",
                None,
                {"key": api_key},
            )
        else:
            return False

        try:
            await self._get(provider, url, headers=headers, params=params)
            return True
        except (AdapterError, httpx.RequestError, ValueError):
            return False


# =========================================================
# AGGREGATOR LISTING
# =========================================================

_AGGREGATOR_CACHE: dict[str, Any] = {"rows": None, "fetched_at": 0.0}


def fetch_aggregator_models(force: bool = False) -> list[dict]:
    """Return the public aggregator listing rows (`data[]`).

    Args:
        force: Bypass the in-process cache.

    Returns:
        Listing rows, served from cache when younger than
        `AGGREGATOR_CACHE_SECONDS`.

    Raises:
        AdapterError: Fetch failed and no cached listing exists.
    """
    now = time.time()
    cached = _AGGREGATOR_CACHE["rows"]
    if not force and cached is not None and now - _AGGREGATOR_CACHE["fetched_at"] < AGGREGATOR_CACHE_SECONDS:
        return cached

    try:
        response = requests.get(AGGREGATOR_MODELS_URL, timeout=CLIENT_CONFIG.timeout_seconds)
        response.raise_for_status()
        rows = response.json().get("data") or []
    except (requests.exceptions.RequestException, ValueError, AttributeError) as err:
        if cached is not None:
            logger.warning("Model listing refresh failed, serving cached listing: %s", err.__class__.__name__)
            return cached
        status_code = getattr(getattr(err, "response", None), "status_code", None)
        message = "Failed to fetch model listing"
        if status_code:
            message = f"{message} (HTTP {status_code})"
        raise AdapterError(message) from err

    _AGGREGATOR_CACHE["rows"] = rows
    _AGGREGATOR_CACHE["fetched_at"] = now
    logger.info("Fetched %d models from aggregator listing", len(rows))
    return rows


def clear_aggregator_cache() -> None:
    _AGGREGATOR_CACHE["rows"] = None
    _AGGREGATOR_CACHE["fetched_at"] = 0.0
