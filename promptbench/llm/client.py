"""Provider-specific transport adapters for generation requests.

Architectural role:
    One adapter per upstream API. Each builds the provider's native request body,
    calls its HTTP endpoint with `httpx.AsyncClient`, and reduces the response to
    the shared result contract in `promptbench.core.types`.

Model invocation flow:
    dispatcher -> `transform_model_slug` -> `get_adapter(provider)` ->
    `generate_text(native_model, prompt, api_key)` -> `TextResult | Failure`.
    Image and responses-API calls follow the same path through
    `generate_image` / `generate_response`.

Retry behavior:
    No retry loop is implemented. Each HTTP call is attempted once, bounded by
    `ClientConfig.timeout_seconds`.

Failure handling model:
    Adapters never raise. `_guard` converts every failure into a sanitized
    `Failure`:
    - non-2xx status -> provider envelope message (`UPSTREAM`)
    - malformed body -> `Invalid response from <provider>` (`UPSTREAM`)
    - timeout -> `<provider> request timed out after <n>s` (`TIMEOUT`)
    - transport error -> `Cannot connect to <provider>` (`NETWORK`)
    - missing key / unsupported modality -> `CONFIGURATION`, before any I/O

Determinism:
    Request construction is deterministic. Output text, token counts, and latency
    are not.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Awaitable

import httpx

from promptbench.core.types import (
    Failure,
    FailureKind,
    GenerationResult,
    ImageParams,
    Modality,
    Provider,
    TextResult,
)
from promptbench.image.client import request_gemini_image, request_openai_image
from promptbench.llm.errors import (
    AdapterError,
    UnsupportedProviderError,
    extract_error_message,
    sanitize_error,
)
from promptbench.llm.model_utils import supports_modality
from promptbench.llm.provider_config import (
    ANTHROPIC_VERSION,
    CLIENT_CONFIG,
    PROVIDERS,
    ClientConfig,
    local_base_url,
)


logger = logging.getLogger(__name__)

ANTHROPIC_NOT_AVAILABLE = (
    "This model is not available through Anthropic's direct API. "
    "Try using the OpenRouter provider instead."
)


def elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))


def estimate_tokens(*texts: str) -> int:
    """Rough token estimate (four characters per token) for APIs without usage data."""
    return math.ceil(sum(len(text or "") for text in texts) / 4)


# =========================================================
# BASE ADAPTER
# =========================================================

class ProviderAdapter:
    """Shared HTTP plumbing and failure reduction for provider adapters.

    Subclasses implement `_text` (and optionally `_image` / `_response`) and may
    raise `AdapterError`, `httpx` errors, or lookup errors on malformed bodies;
    the public methods convert all of them to `Failure`.

    Args:
        config: Timeouts and local endpoints.
        transport: Optional `httpx` transport, used by tests to mock upstreams.
    """

    provider: Provider
    requires_key = True

    def __init__(
        self,
        config: ClientConfig = CLIENT_CONFIG,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport

    @property
    def label(self) -> str:
        return self.provider.label

    # -----------------------------------------------------
    # Public contract
    # -----------------------------------------------------

    async def generate_text(self, model: str, prompt: str, api_key: str = "") -> GenerationResult:
        """Generate text with a native model id. Never raises."""
        missing = self._missing_key(api_key)
        if missing:
            return missing
        logger.debug("%s text request model=%s", self.label, model)
        return await self._guard(self._text(model, prompt, api_key))

    async def generate_image(
        self,
        model: str,
        prompt: str,
        api_key: str = "",
        params: ImageParams | None = None,
    ) -> GenerationResult:
        """Generate an image with a native model id. Never raises."""
        if not self.supports(Modality.IMAGE):
            return Failure(str(UnsupportedProviderError(self.provider.value, "image")), FailureKind.CONFIGURATION)
        missing = self._missing_key(api_key)
        if missing:
            return missing
        logger.debug("%s image request model=%s", self.label, model)
        return await self._guard(self._image(model, prompt, api_key, params or ImageParams()))

    async def generate_response(self, model: str, prompt: str, api_key: str = "") -> GenerationResult:
        """Generate text through a responses-style endpoint. Never raises."""
        if not self.supports(Modality.RESPONSES):
            return Failure(str(UnsupportedProviderError(self.provider.value, "responses")), FailureKind.CONFIGURATION)
        missing = self._missing_key(api_key)
        if missing:
            return missing
        logger.debug("%s responses request model=%s", self.label, model)
        return await self._guard(self._response(model, prompt, api_key))

    def supports(self, modality: Modality) -> bool:
        return supports_modality(self.provider, modality)

    # -----------------------------------------------------
    # Provider hooks
    # -----------------------------------------------------

    async def _text(self, model: str, prompt: str, api_key: str) -> GenerationResult:
        raise NotImplementedError

    async def _image(self, model: str, prompt: str, api_key: str, params: ImageParams) -> GenerationResult:
        raise NotImplementedError

    async def _response(self, model: str, prompt: str, api_key: str) -> GenerationResult:
        raise NotImplementedError

    def timeout_message(self, timeout: float) -> str:
        return f"{self.label} request timed out after {timeout:g}s"

    def connection_message(self) -> str:
        return f"Cannot connect to {self.label}"

    def error_from_response(self, response: httpx.Response) -> AdapterError:
        """Reduce a non-2xx response to an `AdapterError`."""
        try:
            message = extract_error_message(response.json())
        except ValueError:
            message = None
        return AdapterError(
            message or f"{self.label} API error: HTTP {response.status_code}",
            FailureKind.UPSTREAM,
            status_code=response.status_code,
        )

    # -----------------------------------------------------
    # Transport
    # -----------------------------------------------------

    async def _request_json(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Raises:
            AdapterError: Non-2xx status, or a timeout reported with the bound
                that was actually applied.
            httpx.RequestError: Other transport failures.
            ValueError: Body is not JSON.
        """
        timeout = timeout or self.config.timeout_seconds
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    json=payload,
                )
        except httpx.TimeoutException as exc:
            raise AdapterError(self.timeout_message(timeout), FailureKind.TIMEOUT) from exc

        if not response.is_success:
            raise self.error_from_response(response)
        return response.json()

    async def _post_json(self, url, headers, payload, params=None, timeout=None):
        return await self._request_json("POST", url, headers, payload, params, timeout)

    async def _get_json(self, url, headers=None, params=None, timeout=None):
        return await self._request_json("GET", url, headers, None, params, timeout)

    async def _guard(self, operation: Awaitable[GenerationResult]) -> GenerationResult:
        try:
            return await operation
        except AdapterError as exc:
            failure = Failure(sanitize_error(exc.message), exc.kind)
        except httpx.RequestError:
            failure = Failure(self.connection_message(), FailureKind.NETWORK)
        except (AttributeError, KeyError, IndexError, TypeError, ValueError):
            failure = Failure(f"Invalid response from {self.label}", FailureKind.UPSTREAM)

        logger.warning("%s request failed (%s): %s", self.label, failure.kind.value, failure.error)
        return failure

    def _missing_key(self, api_key: str) -> Failure | None:
        if self.requires_key and not api_key:
            return Failure(f"{self.label} API key is required", FailureKind.CONFIGURATION)
        return None


# =========================================================
# OPENAI-COMPATIBLE CHAT
# =========================================================

class OpenAICompatibleAdapter(ProviderAdapter):
    """Chat-completions adapter for APIs speaking the OpenAI wire format."""

    def chat_url(self) -> str:
        return PROVIDERS[self.provider]["url"]

    def headers(self, api_key: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    async def _text(self, model: str, prompt: str, api_key: str) -> GenerationResult:
        started = time.perf_counter()
        data = await self._post_json(
            self.chat_url(),
            self.headers(api_key),
            {"model": model, "messages": [{"role": "user", "content": prompt}]},
        )
        content = data["choices"][0]["message"]["content"] or ""
        usage = data.get("usage") or {}
        return TextResult(
            content=content,
            tokens=usage.get("total_tokens"),
            latency_ms=elapsed_ms(started),
        )


class OpenAIAdapter(OpenAICompatibleAdapter):
    provider = Provider.OPENAI

    async def _image(self, model, prompt, api_key, params):
        return await request_openai_image(self, model, prompt, api_key, params)

    async def _response(self, model: str, prompt: str, api_key: str) -> GenerationResult:
        started = time.perf_counter()
        data = await self._post_json(
            PROVIDERS[Provider.OPENAI]["responses_url"],
            self.headers(api_key),
            {"model": model, "input": prompt},
        )

        content = data.get("output_text")
        if not content:
            parts = []
            for item in data.get("output") or []:
                if item.get("type") != "message":
                    continue
                for block in item.get("content") or []:
                    if block.get("type") == "output_text":
                        parts.append(block.get("text", ""))
            content = "".join(parts)

        usage = data.get("usage") or {}
        return TextResult(
            content=content,
            tokens=usage.get("total_tokens"),
            latency_ms=elapsed_ms(started),
        )


class OpenRouterAdapter(OpenAICompatibleAdapter):
    provider = Provider.OPENROUTER

    def headers(self, api_key: str) -> dict[str, str]:
        headers = super().headers(api_key)
        headers["X-Title"] = "promptbench"
        return headers


# =========================================================
# LOCAL SERVERS
# =========================================================

class LocalServerAdapter(OpenAICompatibleAdapter):
    """Adapter for self-hosted OpenAI-compatible servers.

    No key is required. Timeouts and connection errors carry startup hints since
    the usual cause is a server that is not running.
    """

    requires_key = False
    start_hint = ""

    def base_url(self) -> str:
        return local_base_url(self.provider, self.config)

    def chat_url(self) -> str:
        return self.base_url() + PROVIDERS[self.provider]["url"]

    def timeout_message(self, timeout: float) -> str:
        return f"{super().timeout_message(timeout)}. Is {self.label} running?"

    def connection_message(self) -> str:
        return f"Cannot connect to {self.label}. {self.start_hint}"

    async def list_models(self) -> list[str]:
        """Return model ids served by the local server (empty when unreachable)."""
        try:
            data = await self._get_json(
                self.base_url() + PROVIDERS[self.provider]["models_url"],
                timeout=self.config.health_timeout_seconds,
            )
            return self._model_ids(data)
        except (AdapterError, httpx.RequestError, AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("%s model listing failed: %s", self.label, exc.__class__.__name__)
            return []

    async def check_health(self) -> bool:
        """Return whether the local server answers its model listing endpoint."""
        try:
            await self._get_json(
                self.base_url() + PROVIDERS[self.provider]["models_url"],
                timeout=self.config.health_timeout_seconds,
            )
            return True
        except (AdapterError, httpx.RequestError, ValueError):
            return False

    def _model_ids(self, data: Any) -> list[str]:
        raise NotImplementedError


class OllamaAdapter(LocalServerAdapter):
    provider = Provider.OLLAMA
    start_hint = "Start it with: ollama serve"

    def _model_ids(self, data):
        return [model["name"] for model in data.get("models") or []]


class LMStudioAdapter(LocalServerAdapter):
    provider = Provider.LMSTUDIO
    start_hint = "Open LM Studio and start the local server."

    def _model_ids(self, data):
        return [model["id"] for model in data.get("data") or []]


# =========================================================
# ANTHROPIC
# =========================================================

class AnthropicAdapter(ProviderAdapter):
    provider = Provider.ANTHROPIC

    def error_from_response(self, response: httpx.Response) -> AdapterError:
        error = super().error_from_response(response)
        try:
            body = response.json()
        except ValueError:
            body = None
        error_type = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error_type = body["error"].get("type")
        if response.status_code == 404 or error_type == "not_found_error":
            return AdapterError(ANTHROPIC_NOT_AVAILABLE, FailureKind.UPSTREAM, response.status_code)
        return error

    async def _text(self, model: str, prompt: str, api_key: str) -> GenerationResult:
        started = time.perf_counter()
        data = await self._post_json(
            PROVIDERS[Provider.ANTHROPIC]["url"],
            {
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            {
                "model": model,
                "max_tokens": self.config.anthropic_max_tokens,
                "messages": [{"role": "user", "content": prompt}],
            },
        )

        content = "".join(
            block.get("text", "")
            for block in data["content"]
            if block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        tokens = None
        if usage:
            tokens = int(usage.get("input_tokens") or 0) + int(usage.get("output_tokens") or 0)
        return TextResult(content=content, tokens=tokens, latency_ms=elapsed_ms(started))


# =========================================================
# GEMINI
# =========================================================

class GeminiAdapter(ProviderAdapter):
    provider = Provider.GEMINI

    def generate_url(self, model: str) -> str:
        return PROVIDERS[Provider.GEMINI]["url"].format(model=model)

    async def _text(self, model: str, prompt: str, api_key: str) -> GenerationResult:
        started = time.perf_counter()
        data = await self._post_json(
            self.generate_url(model),
            {"Content-Type": "application/json"},
            {"contents": [{"parts": [{"text": prompt}]}]},
            params={"key": api_key},
        )

        parts = gemini_candidate_parts(data)
        content = "".join(part.get("text", "") for part in parts)
        usage = data.get("usageMetadata") or {}
        tokens = usage.get("totalTokenCount") or estimate_tokens(prompt, content)
        return TextResult(content=content, tokens=tokens, latency_ms=elapsed_ms(started))

    async def _image(self, model, prompt, api_key, params):
        return await request_gemini_image(self, model, prompt, api_key)


def gemini_candidate_parts(data: dict) -> list[dict]:
    """Return the first candidate's parts, surfacing prompt blocks as errors."""
    candidates = data.get("candidates") or []
    if not candidates:
        reason = (data.get("promptFeedback") or {}).get("blockReason")
        if reason:
            raise AdapterError(f"Gemini blocked the prompt: {reason}")
        raise AdapterError("No candidates returned from Gemini")
    return candidates[0]["content"]["parts"]


# =========================================================
# FACTORY
# =========================================================

ADAPTERS = {
    Provider.OPENAI: OpenAIAdapter,
    Provider.ANTHROPIC: AnthropicAdapter,
    Provider.OPENROUTER: OpenRouterAdapter,
    Provider.GEMINI: GeminiAdapter,
    Provider.OLLAMA: OllamaAdapter,
    Provider.LMSTUDIO: LMStudioAdapter,
}


def get_adapter(
    provider: Provider,
    config: ClientConfig = CLIENT_CONFIG,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProviderAdapter:
    """Build the adapter for `provider`.

    Raises:
        ValueError: Unknown provider value.
    """
    return ADAPTERS[Provider.parse(provider)](config=config, transport=transport)


def create_adapters(
    config: ClientConfig = CLIENT_CONFIG,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[Provider, ProviderAdapter]:
    return {provider: get_adapter(provider, config, transport) for provider in Provider}
