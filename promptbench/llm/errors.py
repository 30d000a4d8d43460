"""Exception types and error-text helpers for the LLM layer.

Error handling strategy:
    Pure modules (`model_transformer`, `model_utils`, `catalog`) raise the typed
    exceptions defined here. I/O modules (adapters, dispatchers, the proxy API)
    never let them escape and convert them into `Failure` values instead.

Sanitization:
    Every error string that leaves an adapter passes through `sanitize_error`,
    which redacts credential material that upstream services sometimes echo back
    (header values, query-string keys, bearer tokens).
"""

import re

from promptbench.core.types import Failure, FailureKind, Provider


class PromptbenchError(Exception):
    """Base class for configuration errors raised before any network call."""


class UnknownModelError(PromptbenchError):
    """Raised when a slug has no native mapping for a mapping-table provider."""

    def __init__(self, provider: Provider, slug: str, hint: str = "") -> None:
        self.provider = provider
        self.slug = slug
        message = f"Unknown {provider.label} model: {slug}."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)


class UnsupportedProviderError(PromptbenchError):
    """Raised when a provider cannot serve the requested modality."""

    def __init__(self, provider: str, modality: str = "") -> None:
        self.provider = provider
        self.modality = modality
        if modality == "image":
            message = f"Unsupported provider for image generation: {provider}"
        elif modality == "responses":
            message = f"Unsupported provider for responses API: {provider}"
        else:
            message = f"Unsupported provider: {provider}"
        super().__init__(message)


class AdapterError(Exception):
    """Provider call failure already reduced to one display message.

    Raised inside adapters and caught at the adapter boundary, where it becomes a
    `Failure` carrying the same message and kind.
    """

    def __init__(self, message: str, kind: FailureKind = FailureKind.UPSTREAM, status_code: int | None = None) -> None:
        self.message = message
        self.kind = kind
        self.status_code = status_code
        super().__init__(message)


def extract_error_message(data) -> str | None:
    """Pull a message out of a provider error envelope.

    Handles `{"error": {"message"}}` (OpenAI, Anthropic, Gemini, OpenRouter),
    `{"error": "..."}`, `{"message": "..."}` and list-wrapped variants.
    """
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        return None

    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if message:
            return str(message)
    elif isinstance(error, str) and error:
        return error

    message = data.get("message")
    if isinstance(message, str) and message:
        return message
    return None


# Order matters: header-shaped patterns first so the generic key pattern does not
# leave a dangling "Bearer" prefix behind.
_REDACTIONS = (
    (re.compile(r"(authorization[\"']?\s*[:=]\s*[\"']?)(bearer\s+)?[^\s\"',}]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(x-api-key[\"']?\s*[:=]\s*[\"']?)[^\s\"',}]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(api_?key[\"']?\s*[:=]\s*[\"']?)[^\s\"',}]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"([?&]key=)[^&\s\"']+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"\bBearer\s+[A-Za-z0-9._\-]+"), "Bearer [REDACTED]"),
    (re.compile(r"\bsk-[A-Za-z0-9_\-]{8,}"), "[REDACTED]"),
)


def sanitize_error(text: str) -> str:
    """Redact credential material from an error string.

    Args:
        text: Raw error text, possibly containing echoed headers or URLs.

    Returns:
        Text with header values, `key=` query values, and bearer/`sk-` tokens
        replaced by `[REDACTED]`.
    """
    if not text:
        return text
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


def to_failure(
    error: BaseException | str,
    fallback: str = "Request failed",
    kind: FailureKind | None = None,
) -> Failure:
    """Reduce an exception or message to a sanitized `Failure`.

    Configuration errors keep their message verbatim and default to
    `FailureKind.CONFIGURATION`; everything else defaults to `UPSTREAM`.
    """
    if isinstance(error, PromptbenchError):
        return Failure(sanitize_error(str(error)), kind or FailureKind.CONFIGURATION)
    message = str(error) if error else ""
    return Failure(sanitize_error(message or fallback), kind or FailureKind.UPSTREAM)
