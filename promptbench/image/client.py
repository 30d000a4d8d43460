"""Image-generation request builders for OpenAI and Gemini.

Processing flow:
    1. The owning adapter (`OpenAIAdapter` / `GeminiAdapter` in
       `promptbench.llm.client`) has already checked modality support and the key.
    2. Build the provider-native JSON body from the prompt and `ImageParams`.
    3. Submit it through the adapter's `_post_json` transport.
    4. Reduce the body to an `ImageResult` (hosted URL or `data:` URL).

Parameter handling:
    - OpenAI: `n=1`, `size` always; `response_format=url` only for DALL-E models
      (GPT image models reject it); `quality` / `style` only for `dall-e-3`.
    - Gemini: `responseModalities=["TEXT", "IMAGE"]`; size/quality/style are not
      forwarded.

Base64:
    Inline image bytes are passed through as a `data:<mime>;base64,...` URL and
    never decoded here.

Error handling strategy:
    Missing image data raises `AdapterError`; the adapter's guard turns it into a
    `Failure`. Revised prompts fall back to the caller's prompt.
"""

import time

from promptbench.core.types import ImageParams, ImageResult, Provider
from promptbench.llm.errors import AdapterError
from promptbench.llm.provider_config import PROVIDERS


def _elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))


async def request_openai_image(adapter, model: str, prompt: str, api_key: str, params: ImageParams) -> ImageResult:
    """Generate one image through the OpenAI images endpoint.

    Args:
        adapter: `OpenAIAdapter` providing headers and transport.
        model: Native model id (`dall-e-3`, `gpt-image-1`, ...).
        prompt: Prompt text.
        api_key: OpenAI key.
        params: Size/quality/style pass-through.

    Returns:
        `ImageResult` with a hosted URL or a `data:image/png;base64,...` URL.

    Failure scenarios:
        - Empty `data` array -> "No image data returned from OpenAI"
        - Entry without `url` or `b64_json` -> "No image URL returned from OpenAI"
    """
    started = time.perf_counter()
    is_dalle = model.startswith("dall-e")

    payload = {
        "model": model,
        "prompt": prompt,
        "n": 1,
        "size": params.size,
    }
    if is_dalle:
        payload["response_format"] = "url"
    if model == "dall-e-3":
        if params.quality:
            payload["quality"] = params.quality
        if params.style:
            payload["style"] = params.style

    data = await adapter._post_json(
        PROVIDERS[Provider.OPENAI]["images_url"],
        adapter.headers(api_key),
        payload,
    )

    items = data.get("data") or []
    if not items:
        raise AdapterError("No image data returned from OpenAI")

    item = items[0]
    image_url = item.get("url")
    if not image_url and item.get("b64_json"):
        image_url = f"data:image/png;base64,{item['b64_json']}"
    if not image_url:
        raise AdapterError("No image URL returned from OpenAI")

    return ImageResult(
        image_url=image_url,
        revised_prompt=item.get("revised_prompt") or prompt,
        latency_ms=_elapsed_ms(started),
    )


async def request_gemini_image(adapter, model: str, prompt: str, api_key: str) -> ImageResult:
    """Generate one image through Gemini `generateContent` with image output.

    The first inline image part becomes the result URL; text parts, when present,
    become the revised prompt.
    """
    started = time.perf_counter()

    data = await adapter._post_json(
        adapter.generate_url(model),
        {"Content-Type": "application/json"},
        {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        },
        params={"key": api_key},
    )

    candidates = data.get("candidates") or []
    parts = candidates[0]["content"]["parts"] if candidates else []

    image_url = None
    texts = []
    for part in parts:
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data") and image_url is None:
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            image_url = f"data:{mime_type};base64,{inline['data']}"
        elif part.get("text"):
            texts.append(part["text"])

    if not image_url:
        raise AdapterError("No image data returned from Gemini")

    return ImageResult(
        image_url=image_url,
        revised_prompt="".join(texts).strip() or prompt,
        latency_ms=_elapsed_ms(started),
    )
