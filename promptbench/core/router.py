"""Dispatch routing between direct provider calls and the proxy API.

Architectural role:
    `DispatchRouter` is the single entry point UI/CLI code uses to run one
    generation. It owns no environment logic: the dispatch strategy is injected at
    construction, and `create_router` picks it once from the environment probe.

Strategies:
    - `DirectDispatcher`: transform slug, then call the provider adapter in-process.
      Used by the desktop shell and by the proxy API itself.
    - `ProxyDispatcher`: POST the request to the same-origin proxy API, which runs
      a `DirectDispatcher` server-side, and parse the relayed JSON.

Symmetry:
    Both strategies return the same result classes for the same request. The
    required-field and capability checks run in the router before either
    strategy is called, and the proxy maps HTTP status back to `FailureKind`, so
    callers cannot tell the paths apart.

Failure handling model:
    Nothing raises past the router. Configuration errors, transport errors, and
    unexpected exceptions all become `Failure` values.
"""

from __future__ import annotations

import logging
from typing import Mapping, Protocol

import httpx

from promptbench.core.environment import RuntimeEnvironment, detect_environment
from promptbench.core.types import (
    Failure,
    FailureKind,
    GenerationRequest,
    GenerationResult,
    Modality,
    Provider,
    failure_kind_for_status,
    request_to_payload,
    result_from_payload,
)
from promptbench.llm.client import ProviderAdapter, create_adapters
from promptbench.llm.errors import PromptbenchError, UnsupportedProviderError, to_failure
from promptbench.llm.model_transformer import transform_model_slug
from promptbench.llm.model_utils import supports_modality
from promptbench.llm.provider_config import CLIENT_CONFIG, ClientConfig


logger = logging.getLogger(__name__)

MISSING_PARAMETERS = "Missing required parameters"

PROXY_ENDPOINTS = {
    Modality.TEXT: "/api/generate",
    Modality.IMAGE: "/api/generate-image",
    Modality.RESPONSES: "/api/generate-response",
}


class Dispatcher(Protocol):
    """Strategy interface shared by direct and proxied dispatch."""

    async def dispatch(self, request: GenerationRequest, modality: Modality) -> GenerationResult:
        ...


# =========================================================
# DIRECT
# =========================================================

class DirectDispatcher:
    """Transform-then-call dispatch against provider APIs.

    Args:
        adapters: Adapter per provider. Defaults to one adapter per `Provider`.
    """

    def __init__(self, adapters: Mapping[Provider, ProviderAdapter] | None = None) -> None:
        self._adapters = dict(adapters) if adapters is not None else create_adapters()

    async def dispatch(self, request: GenerationRequest, modality: Modality) -> GenerationResult:
        try:
            provider = Provider.parse(request.provider)
            native_model = transform_model_slug(provider, request.model)
        except PromptbenchError as exc:
            return to_failure(exc)
        except ValueError:
            return Failure(str(UnsupportedProviderError(str(request.provider))), FailureKind.CONFIGURATION)

        adapter = self._adapters.get(provider)
        if adapter is None:
            return Failure(str(UnsupportedProviderError(provider.value)), FailureKind.CONFIGURATION)

        if modality == Modality.IMAGE:
            return await adapter.generate_image(native_model, request.prompt, request.api_key, request.image)
        if modality == Modality.RESPONSES:
            return await adapter.generate_response(native_model, request.prompt, request.api_key)
        return await adapter.generate_text(native_model, request.prompt, request.api_key)


# =========================================================
# PROXY
# =========================================================

class ProxyDispatcher:
    """Relay requests through the same-origin proxy API.

    The caller's key travels in the request body and is not persisted server-side.

    Args:
        base_url: Proxy API root.
        timeout: Upper bound per call. Slightly above the adapter bound so the
            server's own timeout message is the one normally surfaced.
        transport: Optional `httpx` transport (tests mount the ASGI app here).
    """

    def __init__(
        self,
        base_url: str = CLIENT_CONFIG.proxy_url,
        timeout: float = CLIENT_CONFIG.timeout_seconds + 5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def dispatch(self, request: GenerationRequest, modality: Modality) -> GenerationResult:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(PROXY_ENDPOINTS[modality], json=request_to_payload(request))
        except httpx.TimeoutException:
            return Failure(f"Server request timed out after {self.timeout:g}s", FailureKind.TIMEOUT)
        except httpx.RequestError:
            return Failure("Cannot connect to server", FailureKind.NETWORK)

        try:
            data = response.json()
        except ValueError:
            return Failure(
                f"Server error: HTTP {response.status_code}",
                failure_kind_for_status(response.status_code),
            )

        if response.is_success:
            return result_from_payload(data)
        if isinstance(data, dict) and "error" in data:
            return result_from_payload(data, failure_kind_for_status(response.status_code))
        return Failure(f"Server error: HTTP {response.status_code}", failure_kind_for_status(response.status_code))


# =========================================================
# ROUTER
# =========================================================

class DispatchRouter:
    """Run generation requests through an injected dispatch strategy."""

    def __init__(self, dispatcher: Dispatcher) -> None:
        self.dispatcher = dispatcher

    async def generate_text(self, request: GenerationRequest) -> GenerationResult:
        return await self._route(request, Modality.TEXT)

    async def generate_image(self, request: GenerationRequest) -> GenerationResult:
        return await self._route(request, Modality.IMAGE)

    async def generate_response(self, request: GenerationRequest) -> GenerationResult:
        return await self._route(request, Modality.RESPONSES)

    async def generate(self, request: GenerationRequest, modality: Modality = Modality.TEXT) -> GenerationResult:
        """Route `request` on the path named by `modality`."""
        return await self._route(request, Modality(modality))

    async def _route(self, request: GenerationRequest, modality: Modality) -> GenerationResult:
        if not (request.prompt and request.provider and request.model):
            return Failure(MISSING_PARAMETERS, FailureKind.CONFIGURATION)

        try:
            provider = Provider.parse(request.provider)
        except ValueError:
            return Failure(str(UnsupportedProviderError(str(request.provider))), FailureKind.CONFIGURATION)

        if not supports_modality(provider, modality):
            return Failure(
                str(UnsupportedProviderError(provider.value, modality.value)),
                FailureKind.CONFIGURATION,
            )

        logger.debug(
            "Routing %s request provider=%s model=%s via %s",
            modality.value,
            provider.value,
            request.model,
            type(self.dispatcher).__name__,
        )
        try:
            return await self.dispatcher.dispatch(request, modality)
        except Exception as exc:
            logger.exception("Dispatcher raised for provider=%s model=%s", provider.value, request.model)
            return to_failure(exc, fallback="Generation failed")


def create_router(
    environment: RuntimeEnvironment | None = None,
    config: ClientConfig = CLIENT_CONFIG,
) -> DispatchRouter:
    """Build a router whose strategy matches the runtime environment."""
    environment = environment or detect_environment()
    if environment == RuntimeEnvironment.DESKTOP:
        return DispatchRouter(DirectDispatcher(create_adapters(config)))
    return DispatchRouter(ProxyDispatcher(config.proxy_url, config.timeout_seconds + 5))
