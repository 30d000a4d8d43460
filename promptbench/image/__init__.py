"""Image generation package.

Scope:
    Request/response handling for OpenAI image endpoints and Gemini image models.
    Called by the OpenAI and Gemini adapters in `promptbench.llm.client`.

Non-goals:
    - No file download or on-disk storage; inline images are returned as data URLs.
"""
