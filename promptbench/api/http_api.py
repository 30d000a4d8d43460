"""
HTTP proxy API for the promptbench dispatch layer.

Architectural role:
- Serve the web path of `promptbench.core.router.ProxyDispatcher`.
- Perform the transform-then-call sequence server-side with a `DirectDispatcher`
  so browser clients never talk to providers directly.
- Expose model listings for pickers.

Endpoint responsibilities:
- `POST /api/generate`: text generation.
- `POST /api/generate-image`: image generation.
- `POST /api/generate-response`: OpenAI responses-API generation.
- `GET /api/models`: raw aggregator listing (cached).
- `GET /api/catalog/{provider}`: filtered catalog entries for one provider.
- `GET /api/provider-models`: keyed discovery using server-side keys.
- `POST /api/validation/test`: validation sweep using server-side keys.

Input validation behavior:
- Missing `prompt`, `provider`, or `model` -> HTTP 400 "Missing required parameters".
- Unknown provider -> HTTP 400 "Unsupported provider: X".

Error transport convention:
- Every failure is returned as `{"error": str}`. Status reflects the failure
  kind (400 configuration, 502 upstream, 503 network, 504 timeout) so the proxy
  client can rebuild the same `Failure` the direct path would have produced.

Side effects:
- Caller API keys are used for the single upstream call and never stored or logged.
- Emits debug logs only when `DEBUG == "true"`.
- Loads environment variables at import time via `load_dotenv()`.
"""

from dotenv import load_dotenv

load_dotenv()

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from promptbench.core.router import MISSING_PARAMETERS, DirectDispatcher, DispatchRouter
from promptbench.core.types import (
    FAILURE_STATUS_CODES,
    GenerationRequest,
    ImageParams,
    Modality,
    Provider,
    is_failure,
    to_payload,
)
from promptbench.llm.catalog import filter_for_provider
from promptbench.llm.discovery import ModelDiscovery, fetch_aggregator_models
from promptbench.llm.errors import AdapterError, UnsupportedProviderError
from promptbench.llm.provider_config import resolve_api_key
from promptbench.validation.runner import ModelConfig, run_validation, summarize


logger = logging.getLogger(__name__)

# Sensitive request/response debug logging is opt-in.
DEBUG = os.getenv("DEBUG") == "true"


# ============================================================
# Request Schema
# ============================================================

class GenerateBody(BaseModel):
    """Proxy request body.

    Note:
    - `apiKey` may be empty for local providers; hosted adapters reject an empty
      key with the same message on both dispatch paths.
    """

    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(min_length=1)
    provider: str = Field(min_length=1)
    model: str = Field(min_length=1)
    api_key: str = Field(default="", alias="apiKey")
    size: str | None = None
    quality: str | None = None
    style: str | None = None


class ValidationModel(BaseModel):
    provider: str
    model: str
    label: str = ""
    type: str = "text"


class ValidationBody(BaseModel):
    models: list[ValidationModel]


# ============================================================
# Application
# ============================================================

def create_app(router: DispatchRouter | None = None, discovery: ModelDiscovery | None = None) -> FastAPI:
    """Build the proxy application.

    Args:
        router: Router used for generation. Defaults to direct dispatch, which is
            what makes this server the far end of the proxy path.
        discovery: Keyed discovery service for `/api/provider-models`.
    """
    app = FastAPI(title="promptbench")
    app.state.router = router or DispatchRouter(DirectDispatcher())
    app.state.discovery = discovery or ModelDiscovery()

    @app.exception_handler(RequestValidationError)
    async def missing_parameters(request: Request, exc: RequestValidationError):
        if DEBUG:
            logger.debug("Rejected request to %s: %s", request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"error": MISSING_PARAMETERS})

    async def generate(body: GenerateBody, modality: Modality):
        try:
            provider = Provider.parse(body.provider)
        except ValueError:
            return JSONResponse(
                status_code=400,
                content={"error": str(UnsupportedProviderError(body.provider))},
            )

        image = None
        if modality == Modality.IMAGE:
            image = ImageParams(size=body.size or ImageParams.size, quality=body.quality, style=body.style)

        request = GenerationRequest(
            prompt=body.prompt,
            provider=provider,
            model=body.model,
            api_key=body.api_key,
            image=image,
        )
        if DEBUG:
            logger.debug("Proxy %s request: provider=%s model=%s", modality.value, provider.value, body.model)

        result = await app.state.router.generate(request, modality)

        if is_failure(result):
            return JSONResponse(status_code=FAILURE_STATUS_CODES[result.kind], content=to_payload(result))
        return to_payload(result)

    # ------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------

    @app.post("/api/generate")
    async def generate_text(body: GenerateBody):
        return await generate(body, Modality.TEXT)

    @app.post("/api/generate-image")
    async def generate_image(body: GenerateBody):
        return await generate(body, Modality.IMAGE)

    @app.post("/api/generate-response")
    async def generate_response(body: GenerateBody):
        return await generate(body, Modality.RESPONSES)

    # ------------------------------------------------------------
    # Model Listing
    # ------------------------------------------------------------

    @app.get("/api/models")
    def list_models():
        """Return the aggregator listing as `{"data": [...]}`."""
        try:
            return {"data": fetch_aggregator_models()}
        except AdapterError as exc:
            return JSONResponse(status_code=502, content={"error": exc.message})

    @app.get("/api/catalog/{provider}")
    def catalog(provider: str):
        """Return catalog entries for one provider from the aggregator listing."""
        try:
            target = Provider.parse(provider)
        except ValueError:
            return JSONResponse(status_code=400, content={"error": str(UnsupportedProviderError(provider))})
        try:
            rows = fetch_aggregator_models()
        except AdapterError as exc:
            return JSONResponse(status_code=502, content={"error": exc.message})
        return {"models": [entry.to_dict() for entry in filter_for_provider(rows, target)]}

    @app.get("/api/provider-models")
    async def provider_models():
        """Run keyed discovery for every provider with a server-side key."""
        keys = {
            provider: resolve_api_key(provider)
            for provider in (Provider.OPENAI, Provider.ANTHROPIC, Provider.GEMINI)
        }
        results = await app.state.discovery.discover_all({p: k for p, k in keys.items() if k})
        return {
            "providers": {provider.value: result.to_dict() for provider, result in results.items()},
            "configured": [provider.value for provider, key in keys.items() if key],
        }

    # ------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------

    @app.post("/api/validation/test")
    async def validation_test(body: ValidationBody):
        """Validate models sequentially with server-side keys."""
        models = []
        for item in body.models:
            try:
                provider = Provider.parse(item.provider)
            except ValueError:
                return JSONResponse(status_code=400, content={"error": str(UnsupportedProviderError(item.provider))})
            models.append(ModelConfig(provider=provider, model=item.model, label=item.label, type=item.type))

        keys = {provider: resolve_api_key(provider) or "" for provider in Provider}
        results = await run_validation(app.state.router, models, keys)
        summary = summarize(results)
        return {
            "results": [
                {
                    "provider": Provider.parse(r.provider).value,
                    "model": r.model,
                    "modelLabel": r.model_label,
                    "status": r.status,
                    "type": r.type,
                    "latency": r.latency_ms,
                    "tokens": r.tokens,
                    "error": r.error,
                }
                for r in results
            ],
            "summary": {
                "total": summary.total,
                "tested": summary.tested,
                "passed": summary.passed,
                "failed": summary.failed,
                "skipped": summary.skipped,
                "avgLatency": summary.avg_latency_ms,
                "totalTokens": summary.total_tokens,
            },
        }

    return app


app = create_app()
