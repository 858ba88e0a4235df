import json

import httpx
import pytest
from fastapi.testclient import TestClient

from relay_proxy import create_app
from src.config import Config
from src.relay_handler import RelayHandler

UPSTREAM_URL = "https://upstream.test/inference/v1/chat/completions"


class RelayTestConfig(Config):
    FIREWORKS_API_KEY = "test-key"
    FIREWORKS_API_URL = UPSTREAM_URL
    COD_LOGGING = True


class FakeUpstream:
    """记录上游请求并返回预设响应"""

    def __init__(self):
        self.requests = []
        self.responder = lambda request: httpx.Response(200, json={"choices": []})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    @property
    def last_payload(self) -> dict:
        return json.loads(self.last_request.content)


def byte_stream(*chunks, error=None):
    async def generate():
        for chunk in chunks:
            yield chunk
        if error is not None:
            raise error
    return generate()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def make_client(upstream):
    def _make(config=RelayTestConfig, observer=None):
        handler = RelayHandler(config, observer=observer, transport=httpx.MockTransport(upstream))
        return TestClient(create_app(config, handler))
    return _make


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def chat_body():
    return {
        "model": "accounts/fireworks/models/deepseek-r1",
        "messages": [{"role": "user", "content": "What is 17 * 23?"}],
    }
