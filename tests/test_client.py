"""Adapter tests against mocked provider APIs."""

import httpx
import pytest

from promptbench.core.types import (
    Failure,
    FailureKind,
    ImageParams,
    ImageResult,
    Provider,
    TextResult,
)
from promptbench.llm.client import (
    ANTHROPIC_NOT_AVAILABLE,
    ADAPTERS,
    AnthropicAdapter,
    GeminiAdapter,
    LMStudioAdapter,
    OllamaAdapter,
    OpenAIAdapter,
    OpenRouterAdapter,
    get_adapter,
)
from promptbench.llm.errors import AdapterError


OPENAI_CHAT = "https://api.openai.com/v1/chat/completions"
OPENAI_IMAGES = "https://api.openai.com/v1/images/generations"
OPENAI_RESPONSES = "https://api.openai.com/v1/responses"
ANTHROPIC_MESSAGES = "https://api.anthropic.com/v1/messages"
GEMINI_FLASH = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"


def chat_body(content, total_tokens=None):
    body = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    if total_tokens is not None:
        body["usage"] = {"total_tokens": total_tokens}
    return body


def test_factory_covers_every_provider(config):
    assert set(ADAPTERS) == set(Provider)
    for provider in Provider:
        assert get_adapter(provider, config).provider == provider


# =========================================================
# OPENAI
# =========================================================

@pytest.mark.asyncio
async def test_openai_text(config, upstream):
    upstream.json("POST", OPENAI_CHAT, chat_body("Hello there", 21))
    adapter = OpenAIAdapter(config, upstream.transport)

    result = await adapter.generate_text("gpt-4o", "Say hello", "sk-test")

    assert isinstance(result, TextResult)
    assert result.content == "Hello there"
    assert result.tokens == 21
    assert result.latency_ms >= 0
    request = upstream.requests[-1]
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert upstream.last_body() == {"model": "gpt-4o", "messages": [{"role": "user", "content": "Say hello"}]}


@pytest.mark.asyncio
async def test_missing_key_fails_before_any_request(config, upstream):
    adapter = OpenAIAdapter(config, upstream.transport)

    result = await adapter.generate_text("gpt-4o", "hi", "")

    assert result == Failure("OpenAI API key is required", FailureKind.CONFIGURATION)
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_error_envelope_message_is_surfaced(config, upstream):
    upstream.json(
        "POST",
        OPENAI_CHAT,
        {"error": {"message": "The model `gpt-9` does not exist", "type": "invalid_request_error"}},
        status_code=404,
    )
    adapter = OpenAIAdapter(config, upstream.transport)

    result = await adapter.generate_text("gpt-9", "hi", "sk-test")

    assert result == Failure("The model `gpt-9` does not exist", FailureKind.UPSTREAM)


@pytest.mark.asyncio
async def test_error_without_envelope_falls_back_to_status(config, upstream):
    upstream.add("POST", OPENAI_CHAT, lambda request: httpx.Response(500, text="<html>oops</html>"))
    adapter = OpenAIAdapter(config, upstream.transport)

    result = await adapter.generate_text("gpt-4o", "hi", "sk-test")

    assert result.error == "OpenAI API error: HTTP 500"


@pytest.mark.asyncio
async def test_echoed_credentials_are_redacted(config, upstream):
    upstream.json(
        "POST",
        OPENAI_CHAT,
        {"error": {"message": "Incorrect API key provided: sk-abcdefghijklmnop1234"}},
        status_code=401,
    )
    adapter = OpenAIAdapter(config, upstream.transport)

    result = await adapter.generate_text("gpt-4o", "hi", "sk-abcdefghijklmnop1234")

    assert "sk-abcdefghijklmnop1234" not in result.error
    assert "[REDACTED]" in result.error


@pytest.mark.asyncio
async def test_malformed_body_is_invalid_response(config, upstream):
    upstream.json("POST", OPENAI_CHAT, {"choices": []})
    adapter = OpenAIAdapter(config, upstream.transport)

    result = await adapter.generate_text("gpt-4o", "hi", "sk-test")

    assert result == Failure("Invalid response from OpenAI", FailureKind.UPSTREAM)


@pytest.mark.asyncio
async def test_timeout_is_reported_with_bound(config, upstream):
    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    upstream.add("POST", OPENAI_CHAT, slow)
    adapter = OpenAIAdapter(config, upstream.transport)

    result = await adapter.generate_text("gpt-4o", "hi", "sk-test")

    assert result == Failure("OpenAI request timed out after 30s", FailureKind.TIMEOUT)


@pytest.mark.asyncio
async def test_dalle_image_request_parameters(config, upstream):
    upstream.json(
        "POST",
        OPENAI_IMAGES,
        {"data": [{"url": "https://img.example/cat.png", "revised_prompt": "A fluffy cat"}]},
    )
    adapter = OpenAIAdapter(config, upstream.transport)

    result = await adapter.generate_image(
        "dall-e-3", "a cat", "sk-test", ImageParams(size="1024x1792", quality="hd", style="vivid")
    )

    assert result == ImageResult("https://img.example/cat.png", "A fluffy cat", result.latency_ms)
    assert upstream.last_body() == {
        "model": "dall-e-3",
        "prompt": "a cat",
        "n": 1,
        "size": "1024x1792",
        "response_format": "url",
        "quality": "hd",
        "style": "vivid",
    }


@pytest.mark.asyncio
async def test_gpt_image_returns_data_url_and_omits_dalle_parameters(config, upstream):
    upstream.json("POST", OPENAI_IMAGES, {"data": [{"b64_json": "aGVsbG8="}]})
    adapter = OpenAIAdapter(config, upstream.transport)

    result = await adapter.generate_image("gpt-image-1", "a dog", "sk-test", ImageParams(quality="high"))

    assert result.image_url == "data:image/png;base64,aGVsbG8="
    assert result.revised_prompt == "a dog"
    body = upstream.last_body()
    assert "response_format" not in body
    assert "quality" not in body


@pytest.mark.asyncio
async def test_empty_image_data_is_a_failure(config, upstream):
    upstream.json("POST", OPENAI_IMAGES, {"data": []})
    adapter = OpenAIAdapter(config, upstream.transport)

    result = await adapter.generate_image("dall-e-3", "a cat", "sk-test")

    assert result == Failure("No image data returned from OpenAI", FailureKind.UPSTREAM)


@pytest.mark.asyncio
async def test_responses_api_collects_output_text(config, upstream):
    upstream.json(
        "POST",
        OPENAI_RESPONSES,
        {
            "output": [
                {"type": "reasoning", "summary": []},
                {"type": "message", "content": [{"type": "output_text", "text": "Forty-two."}]},
            ],
            "usage": {"total_tokens": 57},
        },
    )
    adapter = OpenAIAdapter(config, upstream.transport)

    result = await adapter.generate_response("o3", "meaning of life?", "sk-test")

    assert result.content == "Forty-two."
    assert result.tokens == 57
    assert upstream.last_body() == {"model": "o3", "input": "meaning of life?"}


# =========================================================
# ANTHROPIC
# =========================================================

@pytest.mark.asyncio
async def test_anthropic_text(config, upstream):
    upstream.json(
        "POST",
        ANTHROPIC_MESSAGES,
        {
            "content": [{"type": "text", "text": "Bonjour"}],
            "usage": {"input_tokens": 10, "output_tokens": 5},
        },
    )
    adapter = AnthropicAdapter(config, upstream.transport)

    result = await adapter.generate_text("claude-3-opus-20240229", "hello in french", "ak-test")

    assert result.content == "Bonjour"
    assert result.tokens == 15
    request = upstream.requests[-1]
    assert request.headers["x-api-key"] == "ak-test"
    assert request.headers["anthropic-version"] == "2023-06-01"
    assert upstream.last_body()["max_tokens"] == 4096


@pytest.mark.asyncio
async def test_anthropic_unknown_model_suggests_openrouter(config, upstream):
    upstream.json(
        "POST",
        ANTHROPIC_MESSAGES,
        {"type": "error", "error": {"type": "not_found_error", "message": "model: claude-x"}},
        status_code=404,
    )
    adapter = AnthropicAdapter(config, upstream.transport)

    result = await adapter.generate_text("claude-x", "hi", "ak-test")

    assert result == Failure(ANTHROPIC_NOT_AVAILABLE, FailureKind.UPSTREAM)


@pytest.mark.asyncio
async def test_anthropic_has_no_image_path(config, upstream):
    adapter = AnthropicAdapter(config, upstream.transport)

    result = await adapter.generate_image("claude-3-opus-20240229", "a cat", "ak-test")

    assert result == Failure("Unsupported provider for image generation: anthropic", FailureKind.CONFIGURATION)
    assert upstream.requests == []


# =========================================================
# GEMINI
# =========================================================

@pytest.mark.asyncio
async def test_gemini_text_sends_key_as_query_parameter(config, upstream):
    upstream.json(
        "POST",
        GEMINI_FLASH,
        {
            "candidates": [{"content": {"parts": [{"text": "Hi!"}]}}],
            "usageMetadata": {"totalTokenCount": 9},
        },
    )
    adapter = GeminiAdapter(config, upstream.transport)

    result = await adapter.generate_text("gemini-2.5-flash", "hello", "g-key")

    assert result.content == "Hi!"
    assert result.tokens == 9
    assert upstream.requests[-1].url.params["key"] == "g-key"


@pytest.mark.asyncio
async def test_gemini_estimates_tokens_without_usage(config, upstream):
    upstream.json("POST", GEMINI_FLASH, {"candidates": [{"content": {"parts": [{"text": "abcd"}]}}]})
    adapter = GeminiAdapter(config, upstream.transport)

    result = await adapter.generate_text("gemini-2.5-flash", "12345678", "g-key")

    assert result.tokens == 3


@pytest.mark.asyncio
async def test_gemini_blocked_prompt(config, upstream):
    upstream.json("POST", GEMINI_FLASH, {"promptFeedback": {"blockReason": "SAFETY"}})
    adapter = GeminiAdapter(config, upstream.transport)

    result = await adapter.generate_text("gemini-2.5-flash", "hello", "g-key")

    assert result.error == "Gemini blocked the prompt: SAFETY"


@pytest.mark.asyncio
async def test_gemini_image_inline_data(config, upstream):
    url = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash-image-preview:generateContent"
    upstream.json(
        "POST",
        url,
        {
            "candidates": [
                {
                    "content": {
                        "parts": [
                            {"text": "Here is your fox."},
                            {"inlineData": {"mimeType": "image/jpeg", "data": "Zm94"}},
                        ]
                    }
                }
            ]
        },
    )
    adapter = GeminiAdapter(config, upstream.transport)

    result = await adapter.generate_image("gemini-2.5-flash-image-preview", "a fox", "g-key")

    assert result.image_url == "data:image/jpeg;base64,Zm94"
    assert result.revised_prompt == "Here is your fox."
    assert upstream.last_body()["generationConfig"] == {"responseModalities": ["TEXT", "IMAGE"]}


# =========================================================
# OPENROUTER / LOCAL
# =========================================================

@pytest.mark.asyncio
async def test_openrouter_passes_aggregator_slug(config, upstream):
    upstream.json("POST", "https://openrouter.ai/api/v1/chat/completions", chat_body("routed"))
    adapter = OpenRouterAdapter(config, upstream.transport)

    result = await adapter.generate_text("anthropic/claude-3-opus", "hi", "or-key")

    assert result == TextResult("routed", None, result.latency_ms)
    assert upstream.last_body()["model"] == "anthropic/claude-3-opus"


@pytest.mark.asyncio
async def test_ollama_needs_no_key(config, upstream):
    upstream.json("POST", "http://localhost:11434/v1/chat/completions", chat_body("local", 4))
    adapter = OllamaAdapter(config, upstream.transport)

    result = await adapter.generate_text("llama3.2", "hi")

    assert result.content == "local"
    assert "Authorization" not in upstream.requests[-1].headers


@pytest.mark.asyncio
async def test_ollama_connection_error_has_start_hint(config):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    adapter = OllamaAdapter(config, httpx.MockTransport(refuse))

    result = await adapter.generate_text("llama3.2", "hi")

    assert result == Failure("Cannot connect to Ollama. Start it with: ollama serve", FailureKind.NETWORK)


@pytest.mark.asyncio
async def test_lmstudio_timeout_asks_whether_server_is_running(config):
    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    adapter = LMStudioAdapter(config, httpx.MockTransport(slow))

    result = await adapter.generate_text("qwen3-8b", "hi")

    assert result.kind == FailureKind.TIMEOUT
    assert result.error == "LM Studio request timed out after 30s. Is LM Studio running?"


@pytest.mark.asyncio
async def test_local_model_listing_and_health(config, upstream):
    upstream.json("GET", "http://localhost:11434/api/tags", {"models": [{"name": "llama3.2"}, {"name": "mistral"}]})
    upstream.json("GET", "http://localhost:1234/v1/models", {"data": [{"id": "qwen3-8b"}]})

    ollama = OllamaAdapter(config, upstream.transport)
    lmstudio = LMStudioAdapter(config, upstream.transport)

    assert await ollama.list_models() == ["llama3.2", "mistral"]
    assert await lmstudio.list_models() == ["qwen3-8b"]
    assert await ollama.check_health() is True


@pytest.mark.asyncio
async def test_unreachable_local_server_lists_nothing(config):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    adapter = OllamaAdapter(config, httpx.MockTransport(refuse))

    assert await adapter.list_models() == []
    assert await adapter.check_health() is False


@pytest.mark.asyncio
async def test_local_listing_timeout_reports_health_bound(config):
    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    adapter = OllamaAdapter(config, httpx.MockTransport(slow))

    with pytest.raises(AdapterError) as excinfo:
        await adapter._get_json("http://localhost:11434/api/tags", timeout=config.health_timeout_seconds)

    assert excinfo.value.kind == FailureKind.TIMEOUT
    assert excinfo.value.message == "Ollama request timed out after 3s. Is Ollama running?"
    assert await adapter.list_models() == []


# =========================================================
# MALFORMED BODIES
# =========================================================

GEMINI_IMAGE = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash-image-preview:generateContent"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [[], "x"])
@pytest.mark.parametrize(
    "adapter_class, url, call, label",
    [
        (GeminiAdapter, GEMINI_FLASH, lambda a: a.generate_text("gemini-2.5-flash", "hi", "g-key"), "Gemini"),
        (
            GeminiAdapter,
            GEMINI_IMAGE,
            lambda a: a.generate_image("gemini-2.5-flash-image-preview", "a fox", "g-key"),
            "Gemini",
        ),
        (OpenAIAdapter, OPENAI_RESPONSES, lambda a: a.generate_response("o3", "hi", "sk-test"), "OpenAI"),
        (OpenAIAdapter, OPENAI_IMAGES, lambda a: a.generate_image("dall-e-3", "a cat", "sk-test"), "OpenAI"),
        (OpenAIAdapter, OPENAI_CHAT, lambda a: a.generate_text("gpt-4o", "hi", "sk-test"), "OpenAI"),
        (AnthropicAdapter, ANTHROPIC_MESSAGES, lambda a: a.generate_text("claude-3-opus-20240229", "hi", "ak"), "Anthropic"),
    ],
)
async def test_non_object_body_becomes_invalid_response(config, upstream, body, adapter_class, url, call, label):
    upstream.json("POST", url, body)

    result = await call(adapter_class(config, upstream.transport))

    assert result == Failure(f"Invalid response from {label}", FailureKind.UPSTREAM)


@pytest.mark.asyncio
async def test_non_object_usage_and_content_blocks(config, upstream):
    upstream.json("POST", OPENAI_CHAT, {"choices": [{"message": {"content": "ok"}}], "usage": ["bad"]})
    upstream.json("POST", ANTHROPIC_MESSAGES, {"content": ["bad"], "usage": {}})

    openai = await OpenAIAdapter(config, upstream.transport).generate_text("gpt-4o", "hi", "sk-test")
    anthropic = await AnthropicAdapter(config, upstream.transport).generate_text("claude-3-opus-20240229", "hi", "ak")

    assert openai == Failure("Invalid response from OpenAI", FailureKind.UPSTREAM)
    assert anthropic == Failure("Invalid response from Anthropic", FailureKind.UPSTREAM)
