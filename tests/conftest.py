"""Shared pytest fixtures.

Upstream provider APIs are replaced with `httpx.MockTransport` handlers so no test
touches the network.
"""

import json

import httpx
import pytest

from promptbench.core.environment import detect_environment
from promptbench.llm.discovery import clear_aggregator_cache
from promptbench.llm.provider_config import ClientConfig


@pytest.fixture(autouse=True)
def reset_process_caches():
    detect_environment.cache_clear()
    clear_aggregator_cache()
    yield
    detect_environment.cache_clear()
    clear_aggregator_cache()


@pytest.fixture
def config():
    return ClientConfig(
        timeout_seconds=30,
        health_timeout_seconds=3,
        proxy_url="http://testserver",
        ollama_base_url="http://localhost:11434",
        lmstudio_base_url="http://localhost:1234",
        anthropic_max_tokens=4096,
    )


class RecordingUpstream:
    """Route-table mock for provider APIs.

    Routes are keyed by `(method, host, path)` and map to a response factory
    (`callable(request) -> httpx.Response`). Every request is recorded.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, url, handler):
        parsed = httpx.URL(url)
        self.routes[(method, parsed.host, parsed.path)] = handler

    def json(self, method, url, body, status_code=200):
        self.add(method, url, lambda request: httpx.Response(status_code, json=body))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.host, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": {"message": f"No route for {request.url.path}"}})
        return handler(request)

    @property
    def transport(self):
        return httpx.MockTransport(self)

    def last_body(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def upstream():
    return RecordingUpstream()
