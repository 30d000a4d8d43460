"""Provider/runtime configuration for the LLM layer.

Architectural role:
    Centralizes provider endpoints, network timeouts, and credential lookup for
    `promptbench.llm.client`, `promptbench.image.client`, discovery, and the
    proxy API.

Model call flow integration:
    - Adapters read endpoint URLs from `PROVIDERS` and timeouts from `CLIENT_CONFIG`.
    - The proxy API and CLI resolve server-side keys through `resolve_api_key`.
    - `promptbench.core.router` reads `CLIENT_CONFIG.proxy_url` for the web path.

Determinism:
    Deterministic for a fixed process environment and key files. Values are resolved
    at import time (plus runtime key-file reads in `load_key`).

Failure behavior:
    Missing key material is represented as `None`; adapters turn an empty key for a
    hosted provider into a configuration `Failure`.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from promptbench.core.types import Provider

load_dotenv()


@dataclass(frozen=True)
class ClientConfig:
    """Network configuration shared by adapters and dispatchers.

    Fields are read from environment variables at import time.

    Relevant environment variables:
        - `PROMPTBENCH_TIMEOUT_SECONDS`: upper bound per generation call.
        - `PROMPTBENCH_HEALTH_TIMEOUT_SECONDS`: local server health probes.
        - `PROMPTBENCH_PROXY_URL`: base URL of the proxy API for the web path.
        - `OLLAMA_BASE_URL`, `LMSTUDIO_BASE_URL`: local server roots.
        - `ANTHROPIC_MAX_TOKENS`: `max_tokens` sent to the messages API.
    """

    timeout_seconds: float = float(os.getenv("PROMPTBENCH_TIMEOUT_SECONDS", "30"))
    health_timeout_seconds: float = float(os.getenv("PROMPTBENCH_HEALTH_TIMEOUT_SECONDS", "3"))
    proxy_url: str = os.getenv("PROMPTBENCH_PROXY_URL", "http://127.0.0.1:8000").rstrip("/")
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434").rstrip("/")
    lmstudio_base_url: str = os.getenv("LMSTUDIO_BASE_URL", "http://localhost:1234").rstrip("/")
    anthropic_max_tokens: int = int(os.getenv("ANTHROPIC_MAX_TOKENS", "4096"))


CLIENT_CONFIG = ClientConfig()


# Hosted endpoints per provider. Local providers are rooted at `ClientConfig`
# base URLs and listed with their path only.
PROVIDERS = {

    Provider.OPENAI: {
        "url": "https://api.openai.com/v1/chat/completions",
        "responses_url": "https://api.openai.com/v1/responses",
        "images_url": "https://api.openai.com/v1/images/generations",
        "models_url": "https://api.openai.com/v1/models",
        "key_file": "config/openai.key",
    },

    Provider.ANTHROPIC: {
        "url": "https://api.anthropic.com/v1/messages",
        "models_url": "https://api.anthropic.com/v1/models",
        "key_file": "config/anthropic.key",
    },

    Provider.OPENROUTER: {
        "url": "https://openrouter.ai/api/v1/chat/completions",
        "models_url": "https://openrouter.ai/api/v1/models",
        "key_file": "config/openrouter.key",
    },

    Provider.GEMINI: {
        "url": "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
        "models_url": "https://generativelanguage.googleapis.com/v1beta/models",
        "key_file": "config/gemini.key",
    },

    Provider.OLLAMA: {
        "url": "/v1/chat/completions",
        "models_url": "/api/tags",
        "key_file": None,
    },

    Provider.LMSTUDIO: {
        "url": "/v1/chat/completions",
        "models_url": "/v1/models",
        "key_file": None,
    },

}

ANTHROPIC_VERSION = "2023-06-01"

# Public listing used to populate pickers before any key is configured.
AGGREGATOR_MODELS_URL = os.getenv(
    "PROMPTBENCH_MODELS_URL", "https://openrouter.ai/api/v1/models"
)
AGGREGATOR_CACHE_SECONDS = int(os.getenv("PROMPTBENCH_MODELS_CACHE_SECONDS", "300"))


def load_key(path):
    """Load API key from environment override or key file.

    Resolution order:
        1. Environment variable inferred from file stem (for example
           `config/openai.key` -> `OPENAI_API_KEY`).
        2. Raw file contents at `path`.

    Args:
        path: Configured key file path or `None`.

    Returns:
        Key string or `None` when not available.

    Edge cases:
        - `None` path returns `None`.
        - Missing file returns `None`.
    """
    if not path:
        return None
    key_name = os.path.splitext(os.path.basename(path))[0].upper() + "_API_KEY"
    env_value = os.getenv(key_name)
    if env_value:
        return env_value
    if not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return f.read().strip() or None


def resolve_api_key(provider: Provider) -> str | None:
    """Resolve the server-side key for `provider` (always `None` for local servers)."""
    return load_key(PROVIDERS[Provider.parse(provider)]["key_file"])


def local_base_url(provider: Provider, config: ClientConfig = CLIENT_CONFIG) -> str:
    if provider == Provider.OLLAMA:
        return config.ollama_base_url
    if provider == Provider.LMSTUDIO:
        return config.lmstudio_base_url
    raise ValueError(f"Not a local provider: {provider}")
