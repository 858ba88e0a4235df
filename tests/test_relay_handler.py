import httpx
import pytest

from src.observability import RelayObserver
from tests.conftest import RelayTestConfig, UPSTREAM_URL, byte_stream

CORS = {
    "access-control-allow-origin": "*",
    "access-control-allow-methods": "GET, POST, OPTIONS",
    "access-control-allow-headers": "Content-Type, Authorization",
}


def assert_cors(response):
    for name, value in CORS.items():
        assert response.headers[name] == value


class NoKeyConfig(RelayTestConfig):
    FIREWORKS_API_KEY = ""


class ExplodingObserver(RelayObserver):
    def on_request(self, request):
        raise RuntimeError("observer broke")

    def on_stream_chunk(self, stats, text):
        raise RuntimeError("observer broke")

    def on_completion(self, request, data):
        raise RuntimeError("observer broke")


# 方法与CORS

def test_options_returns_empty_200_with_cors(client, upstream):
    response = client.request("OPTIONS", "/api/chat", content=b"not even json")
    assert response.status_code == 200
    assert response.content == b""
    assert_cors(response)
    assert upstream.requests == []


@pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE"])
def test_other_methods_are_rejected(client, upstream, method):
    response = client.request(method, "/api/chat")
    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}
    assert_cors(response)
    assert upstream.requests == []


@pytest.mark.parametrize("path", ["/", "/some/deep/path", "/docs", "/redoc", "/openapi.json"])
def test_any_path_reaches_handler(client, path):
    response = client.get(path)
    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}
    assert_cors(response)


def test_head_is_rejected_without_openapi_schema(client):
    response = client.head("/api/chat")
    assert response.status_code == 405
    assert_cors(response)
    assert client.app.openapi_url is None


# 校验

def test_missing_api_key_is_configuration_error(make_client, upstream, chat_body):
    response = make_client(config=NoKeyConfig).post("/api/chat", json=chat_body)
    assert response.status_code == 500
    body = response.json()
    assert "configuration" in body["error"].lower()
    assert body["message"] == "API key not configured. Please check server environment variables."
    assert_cors(response)
    assert upstream.requests == []


@pytest.mark.parametrize("body", [
    {"messages": [{"role": "user", "content": "hi"}]},
    {"model": "m"},
    {"model": "", "messages": [{"role": "user", "content": "hi"}]},
    {"model": "m", "messages": []},
    {"model": "m", "messages": None},
])
def test_missing_required_fields(client, upstream, body):
    response = client.post("/api/chat", json=body)
    assert response.status_code == 400
    assert response.json() == {
        "error": "Bad request",
        "message": "Missing required fields: model and messages",
    }
    assert_cors(response)
    assert upstream.requests == []


def test_invalid_json_body(client, upstream):
    response = client.post(
        "/api/chat", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Bad request"
    assert upstream.requests == []


def test_non_object_body(client):
    response = client.post("/api/chat", json=[1, 2, 3])
    assert response.status_code == 400
    assert response.json()["error"] == "Bad request"


@pytest.mark.parametrize("field, value", [
    ("temperature", True),
    ("temperature", "0.5"),
    ("max_tokens", "100"),
    ("stream", "no"),
    ("stream", 1),
    ("model", 42),
])
def test_wrong_types_are_rejected_not_coerced(client, upstream, chat_body, field, value):
    response = client.post("/api/chat", json={**chat_body, field: value})
    assert response.status_code == 400
    assert response.json()["error"] == "Bad request"
    assert_cors(response)
    assert upstream.requests == []


def test_malformed_messages_are_forwarded_as_is(client, upstream):
    messages = ["just a string", {"no_content": True}]
    response = client.post("/api/chat", json={"model": "m", "messages": messages})
    assert response.status_code == 200
    assert upstream.last_payload["messages"] == messages


# 非流式

def test_non_stream_success_is_relayed_verbatim(client, upstream, chat_body):
    upstream_body = {
        "id": "cmpl-1",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": "391"}}],
        "usage": {"total_tokens": 12, "completion_tokens": 3},
        "extra": {"nested": [1, None, "x"]},
    }
    upstream.responder = lambda request: httpx.Response(200, json=upstream_body)

    response = client.post("/api/chat", json=chat_body)

    assert response.status_code == 200
    assert response.json() == upstream_body
    assert_cors(response)


def test_non_stream_upstream_request_shape(client, upstream, chat_body):
    client.post("/api/chat", json=chat_body)

    request = upstream.last_request
    assert request.method == "POST"
    assert str(request.url) == UPSTREAM_URL
    assert request.headers["authorization"] == "Bearer test-key"
    assert request.headers["content-type"] == "application/json"
    assert request.headers.get("accept") != "text/event-stream"
    assert upstream.last_payload["stream"] is False
    assert len(upstream.requests) == 1


def test_non_stream_upstream_error_is_wrapped(client, upstream, chat_body):
    upstream.responder = lambda request: httpx.Response(429, text="rate limit exceeded")

    response = client.post("/api/chat", json=chat_body)

    assert response.status_code == 429
    assert response.json() == {"error": "API request failed", "message": "rate limit exceeded"}
    assert_cors(response)
    assert len(upstream.requests) == 1


def test_upstream_timeout_maps_to_504(client, upstream, chat_body):
    def responder(request):
        raise httpx.ReadTimeout("read timed out", request=request)
    upstream.responder = responder

    response = client.post("/api/chat", json=chat_body)

    assert response.status_code == 504
    assert response.json()["error"] == "Upstream timeout"


def test_unexpected_failure_is_internal_error(client, upstream, chat_body):
    def responder(request):
        raise httpx.ConnectError("connection refused", request=request)
    upstream.responder = responder

    response = client.post("/api/chat", json=chat_body)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "message": "connection refused"}
    assert_cors(response)


def test_observer_failures_do_not_affect_response(make_client, upstream, chat_body):
    upstream_body = {"choices": [{"message": {"content": "ok"}}]}
    upstream.responder = lambda request: httpx.Response(200, json=upstream_body)

    response = make_client(observer=ExplodingObserver()).post("/api/chat", json=chat_body)

    assert response.status_code == 200
    assert response.json() == upstream_body


# 流式

def test_stream_relays_chunks_in_order(client, upstream, chat_body):
    chunks = [
        b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n',
        b'data: {"choices":[{"delta":{"content":"lo"}}]}\n\n',
        b"data: [DONE]\n\n",
    ]
    upstream.responder = lambda request: httpx.Response(
        200, headers={"Content-Type": "text/event-stream"}, content=byte_stream(*chunks)
    )

    response = client.post("/api/chat", json={**chat_body, "stream": True})

    assert response.status_code == 200
    assert response.content == b"".join(chunks)
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["connection"] == "keep-alive"
    assert_cors(response)


def test_stream_upstream_request_shape(client, upstream, chat_body):
    upstream.responder = lambda request: httpx.Response(200, content=byte_stream(b"data: x\n\n"))

    client.post("/api/chat", json={**chat_body, "stream": True})

    request = upstream.last_request
    assert request.headers["accept"] == "text/event-stream"
    assert request.headers["authorization"] == "Bearer test-key"
    assert upstream.last_payload["stream"] is True


def test_stream_interruption_appends_error_event(client, upstream, chat_body):
    upstream.responder = lambda request: httpx.Response(
        200,
        content=byte_stream(b"data: c1\n\n", error=httpx.ReadError("upstream went away")),
    )

    response = client.post("/api/chat", json={**chat_body, "stream": True})

    assert response.status_code == 200
    assert response.content == b'data: c1\n\ndata: {"error": "Streaming interrupted"}\n\n'


def test_stream_upstream_error_is_buffered_json(client, upstream, chat_body):
    upstream.responder = lambda request: httpx.Response(503, text="model overloaded")

    response = client.post("/api/chat", json={**chat_body, "stream": True})

    assert response.status_code == 503
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {"error": "API request failed", "message": "model overloaded"}
    assert_cors(response)


@pytest.mark.parametrize("upstream_response", [
    httpx.Response(204),
    httpx.Response(200, headers={"Content-Length": "0"}, content=b""),
])
def test_stream_without_body(client, upstream, chat_body, upstream_response):
    upstream.responder = lambda request: upstream_response

    response = client.post("/api/chat", json={**chat_body, "stream": True})

    assert response.status_code == 500
    assert response.json() == {"error": "No response body from API"}
    assert_cors(response)


def test_stream_survives_observer_failures(make_client, upstream, chat_body):
    upstream.responder = lambda request: httpx.Response(
        200, content=byte_stream(b"data: a\n\n", b"data: b\n\n")
    )

    response = make_client(observer=ExplodingObserver()).post(
        "/api/chat", json={**chat_body, "stream": True}
    )

    assert response.content == b"data: a\n\ndata: b\n\n"
