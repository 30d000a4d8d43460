"""Shared request/result contracts for dispatch, batching, and catalog code.

Architectural role:
    Defines the closed provider set, the generation request shape, and the tagged
    result union returned by every adapter, dispatcher, and batch call. API and CLI
    layers serialize these values with `to_payload` and parse them back with
    `result_from_payload`.

Result contract:
    A generation produces exactly one of `TextResult`, `ImageResult`, or `Failure`.
    Consumers branch on `is_failure` / `is_text` / `is_image` rather than on field
    presence, because `tokens` and `revised_prompt` are optional within their
    variants.

Wire format:
    - text:    `{"content", "tokens", "latency"}`
    - image:   `{"imageUrl", "revisedPrompt", "latency"}`
    - failure: `{"error"}`
    A payload carrying an `error` key is always a failure.

Determinism:
    All types are immutable value objects except `BatchSlot`, which transitions
    from pending to settled exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


# =========================================================
# ENUMERATIONS
# =========================================================

class Provider(str, Enum):
    """Upstream generation providers.

    Four hosted APIs plus two local OpenAI-compatible servers. Values are the
    lowercase names used on the wire and in configuration.
    """

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OPENROUTER = "openrouter"
    GEMINI = "gemini"
    OLLAMA = "ollama"
    LMSTUDIO = "lmstudio"

    @classmethod
    def parse(cls, value: "str | Provider") -> "Provider":
        """Resolve a provider from its wire name.

        Raises:
            ValueError: If `value` names no known provider.
        """
        if isinstance(value, Provider):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown provider: {value}") from None

    @property
    def label(self) -> str:
        return PROVIDER_LABELS[self]

    @property
    def is_local(self) -> bool:
        return self in (Provider.OLLAMA, Provider.LMSTUDIO)


PROVIDER_LABELS = {
    Provider.OPENAI: "OpenAI",
    Provider.ANTHROPIC: "Anthropic",
    Provider.OPENROUTER: "OpenRouter",
    Provider.GEMINI: "Gemini",
    Provider.OLLAMA: "Ollama",
    Provider.LMSTUDIO: "LM Studio",
}


class Modality(str, Enum):
    """Request paths a provider may support."""

    TEXT = "text"
    IMAGE = "image"
    RESPONSES = "responses"


class FailureKind(str, Enum):
    """Failure taxonomy used for status mapping and operator diagnostics.

    `CONFIGURATION` failures happen before any network call (unknown slug,
    unsupported provider/modality, missing key). `TIMEOUT` is kept apart from
    `NETWORK` so slow providers can be told from unreachable ones.
    """

    CONFIGURATION = "configuration"
    UPSTREAM = "upstream"
    TIMEOUT = "timeout"
    NETWORK = "network"


# =========================================================
# REQUEST
# =========================================================

@dataclass(frozen=True)
class ImageParams:
    """Pass-through image options. Only OpenAI reads `quality` and `style`."""

    size: str = "1024x1024"
    quality: str | None = None
    style: str | None = None


@dataclass(frozen=True)
class GenerationRequest:
    """One generation call in aggregator-slug form.

    Attributes:
        prompt: Fully rendered prompt text.
        provider: Target provider.
        model: Aggregator-form slug; dispatchers transform it before calling out.
        api_key: Caller secret. Excluded from `repr` and never persisted.
        image: Optional image parameters for the image path.
    """

    prompt: str
    provider: Provider
    model: str
    api_key: str = field(default="", repr=False)
    image: ImageParams | None = None


# =========================================================
# RESULTS
# =========================================================

@dataclass(frozen=True)
class TextResult:
    content: str
    tokens: int | None
    latency_ms: int


@dataclass(frozen=True)
class ImageResult:
    image_url: str
    revised_prompt: str | None
    latency_ms: int


@dataclass(frozen=True)
class Failure:
    """Single human-readable error, rendered inline where a success would be."""

    error: str
    kind: FailureKind = FailureKind.UPSTREAM


GenerationResult = Union[TextResult, ImageResult, Failure]


def is_failure(result: Any) -> bool:
    return isinstance(result, Failure)


def is_text(result: Any) -> bool:
    return isinstance(result, TextResult)


def is_image(result: Any) -> bool:
    return isinstance(result, ImageResult)


@dataclass(frozen=True)
class CatalogEntry:
    """Selectable model as shown to users.

    Attributes:
        value: Call parameter. Aggregator-sourced values still go through the
            slug transformer before any direct provider call.
        label: Display name.
        type: Modality tag (`chat-completion`, `responses`, `image`, ...).
    """

    value: str
    label: str
    type: str = "chat-completion"

    def to_dict(self) -> dict[str, str]:
        return {"value": self.value, "label": self.label, "type": self.type}


# =========================================================
# BATCH SLOT
# =========================================================

@dataclass
class BatchSlot:
    """Index-addressed output cell owned by exactly one batch task.

    Invariant:
        A slot is written once. Its `index` equals the position of `item` in the
        batch input and never changes after allocation.
    """

    index: int
    item: Any
    result: GenerationResult | None = None

    @property
    def pending(self) -> bool:
        return self.result is None

    def settle(self, result: GenerationResult) -> None:
        """Store the outcome for this slot.

        Raises:
            RuntimeError: If the slot was already settled.
        """
        if self.result is not None:
            raise RuntimeError(f"Batch slot {self.index} already settled")
        self.result = result


# =========================================================
# WIRE SERIALIZATION
# =========================================================

def to_payload(result: GenerationResult) -> dict[str, Any]:
    """Serialize a result to its JSON boundary shape."""
    if isinstance(result, Failure):
        return {"error": result.error}
    if isinstance(result, ImageResult):
        return {
            "imageUrl": result.image_url,
            "revisedPrompt": result.revised_prompt,
            "latency": result.latency_ms,
        }
    return {
        "content": result.content,
        "tokens": result.tokens,
        "latency": result.latency_ms,
    }


def result_from_payload(
    data: Any,
    failure_kind: FailureKind = FailureKind.UPSTREAM,
) -> GenerationResult:
    """Parse a JSON boundary payload back into a result value.

    Args:
        data: Decoded JSON body.
        failure_kind: Kind assigned when the payload carries `error`.

    Returns:
        A result variant. Bodies that are neither a failure nor a recognizable
        success become `Failure("Invalid response from server")`.
    """
    if not isinstance(data, dict):
        return Failure("Invalid response from server")

    if "error" in data:
        error = data.get("error")
        if isinstance(error, dict):
            error = error.get("message")
        return Failure(str(error or "Unknown error"), failure_kind)

    latency = int(data.get("latency") or 0)

    if "imageUrl" in data:
        return ImageResult(
            image_url=str(data["imageUrl"]),
            revised_prompt=data.get("revisedPrompt"),
            latency_ms=latency,
        )

    if "content" in data:
        tokens = data.get("tokens")
        return TextResult(
            content=str(data["content"] or ""),
            tokens=int(tokens) if tokens is not None else None,
            latency_ms=latency,
        )

    return Failure("Invalid response from server")


# HTTP status per failure kind at the proxy boundary; the proxy client maps the
# status back so both dispatch paths report the same kind.
FAILURE_STATUS_CODES = {
    FailureKind.CONFIGURATION: 400,
    FailureKind.UPSTREAM: 502,
    FailureKind.NETWORK: 503,
    FailureKind.TIMEOUT: 504,
}


def failure_kind_for_status(status_code: int) -> FailureKind:
    for kind, code in FAILURE_STATUS_CODES.items():
        if code == status_code:
            return kind
    if 400 <= status_code < 500:
        return FailureKind.CONFIGURATION
    return FailureKind.UPSTREAM


def request_to_payload(request: GenerationRequest) -> dict[str, Any]:
    """Serialize a request to the proxy API body (`apiKey` in camelCase)."""
    payload: dict[str, Any] = {
        "prompt": request.prompt,
        "provider": Provider.parse(request.provider).value,
        "model": request.model,
        "apiKey": request.api_key,
    }
    if request.image is not None:
        payload["size"] = request.image.size
        if request.image.quality:
            payload["quality"] = request.image.quality
        if request.image.style:
            payload["style"] = request.image.style
    return payload
