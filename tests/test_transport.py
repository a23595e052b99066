"""Tests for the workflow transport: retries, timeouts, modes and content types."""

from __future__ import annotations

import json
import time

import httpx
import pytest

from news_briefing.config import TransportConfig
from news_briefing.errors import ConfigurationError, TransportError, TransportErrorKind, UpstreamWorkflowError
from news_briefing.fetch.client import WorkflowClient
from news_briefing.types import WorkflowRequest

RUN_URL = "https://api.example.com/ext/v1/workflows/run"


def _cfg(**overrides) -> TransportConfig:
    values = {
        "endpoint": "api.example.com",
        "api_key": "test-key",
        "backoff_base": 0.0,
        "timeout_seconds": 30.0,
        "max_retries": 3,
    }
    values.update(overrides)
    return TransportConfig(**values)


def _succeeded(outputs=None) -> httpx.Response:
    return httpx.Response(200, json={"data": {"status": "succeeded", "outputs": outputs or {}}})


def _sse(*events: dict) -> bytes:
    return "".join(f"data: {json.dumps(event)}\n\n" for event in events).encode("utf-8")


class _Recorder:
    """Serves a fixed sequence of responses and records each request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class _ChunkedBody(httpx.SyncByteStream):
    """Response body delivered in chunks, optionally with a pause before each."""

    def __init__(self, chunks: list[bytes], pause: float = 0.0):
        self.chunks = chunks
        self.pause = pause

    def __iter__(self):
        for chunk in self.chunks:
            if self.pause:
                time.sleep(self.pause)
            yield chunk


def test_blocking_request_sends_expected_headers_and_body():
    recorder = _Recorder(_succeeded({"result": "x"}))
    client = WorkflowClient(_cfg(), transport=httpx.MockTransport(recorder))

    response = client.run(WorkflowRequest(inputs={"days": 1}, mode="blocking", user="tester"))

    assert response.status == "succeeded"
    assert response.outputs == {"result": "x"}
    request = recorder.requests[0]
    assert str(request.url) == RUN_URL
    assert request.headers["Authorization"] == "Bearer test-key"
    assert request.headers["Content-Type"] == "application/json"
    assert "text/event-stream" not in request.headers.get("Accept", "")
    assert json.loads(request.content) == {"inputs": {"days": 1}, "mode": "blocking", "user": "tester"}


def test_missing_api_key_fails_without_network(monkeypatch):
    monkeypatch.delenv("MISO_API_KEY", raising=False)
    recorder = _Recorder(_succeeded())
    client = WorkflowClient(_cfg(api_key=None), transport=httpx.MockTransport(recorder))

    with pytest.raises(ConfigurationError, match="MISO_API_KEY"):
        client.run(WorkflowRequest())

    assert recorder.requests == []


def test_missing_endpoint_fails_without_network(monkeypatch):
    monkeypatch.delenv("MISO_ENDPOINT", raising=False)
    recorder = _Recorder(_succeeded())
    client = WorkflowClient(_cfg(endpoint=None), transport=httpx.MockTransport(recorder))

    with pytest.raises(ConfigurationError, match="endpoint"):
        client.run(WorkflowRequest())

    assert recorder.requests == []


def test_api_key_read_from_environment(monkeypatch):
    monkeypatch.setenv("MISO_API_KEY", "env-key")
    recorder = _Recorder(_succeeded())
    client = WorkflowClient(_cfg(api_key=None), transport=httpx.MockTransport(recorder))

    client.run(WorkflowRequest())

    assert recorder.requests[0].headers["Authorization"] == "Bearer env-key"


def test_server_errors_are_retried_until_success():
    recorder = _Recorder(
        httpx.Response(500),
        httpx.Response(500),
        httpx.Response(500),
        _succeeded({"result": "ok"}),
    )
    client = WorkflowClient(_cfg(max_retries=3), transport=httpx.MockTransport(recorder))

    response = client.run(WorkflowRequest())

    assert response.outputs == {"result": "ok"}
    assert len(recorder.requests) == 4


def test_server_errors_exhaust_retries():
    recorder = _Recorder(httpx.Response(502), httpx.Response(503), httpx.Response(500))
    client = WorkflowClient(_cfg(max_retries=2), transport=httpx.MockTransport(recorder))

    with pytest.raises(TransportError) as excinfo:
        client.run(WorkflowRequest())

    assert excinfo.value.kind is TransportErrorKind.SERVER_ERROR
    assert excinfo.value.status == 500
    assert len(recorder.requests) == 3


def test_client_error_is_not_retried():
    recorder = _Recorder(httpx.Response(401, json={"message": "bad key"}), _succeeded())
    client = WorkflowClient(_cfg(), transport=httpx.MockTransport(recorder))

    with pytest.raises(TransportError) as excinfo:
        client.run(WorkflowRequest())

    assert excinfo.value.kind is TransportErrorKind.CLIENT_ERROR
    assert excinfo.value.status == 401
    assert not excinfo.value.retryable
    assert len(recorder.requests) == 1


def test_connection_errors_are_retried():
    request = httpx.Request("POST", RUN_URL)
    recorder = _Recorder(
        httpx.ConnectError("refused", request=request),
        httpx.ConnectError("refused", request=request),
        _succeeded({"result": "ok"}),
    )
    client = WorkflowClient(_cfg(max_retries=2), transport=httpx.MockTransport(recorder))

    response = client.run(WorkflowRequest())

    assert response.status == "succeeded"
    assert len(recorder.requests) == 3


def test_connection_error_after_last_retry_is_network_error():
    request = httpx.Request("POST", RUN_URL)
    recorder = _Recorder(httpx.ConnectError("refused", request=request))
    client = WorkflowClient(_cfg(max_retries=0), transport=httpx.MockTransport(recorder))

    with pytest.raises(TransportError) as excinfo:
        client.run(WorkflowRequest())

    assert excinfo.value.kind is TransportErrorKind.NETWORK_ERROR


def test_html_page_on_200_is_unexpected_content_type():
    html = httpx.Response(200, headers={"content-type": "text/html"}, content=b"<html>proxy error</html>")
    recorder = _Recorder(html, _succeeded())
    client = WorkflowClient(_cfg(), transport=httpx.MockTransport(recorder))

    with pytest.raises(TransportError) as excinfo:
        client.run(WorkflowRequest())

    assert excinfo.value.kind is TransportErrorKind.UNEXPECTED_CONTENT_TYPE
    assert len(recorder.requests) == 1


def test_read_timeout_is_not_retried():
    request = httpx.Request("POST", RUN_URL)
    recorder = _Recorder(httpx.ReadTimeout("slow", request=request), _succeeded())
    client = WorkflowClient(_cfg(), transport=httpx.MockTransport(recorder))

    with pytest.raises(TransportError) as excinfo:
        client.run(WorkflowRequest())

    assert excinfo.value.kind is TransportErrorKind.TIMEOUT
    assert len(recorder.requests) == 1


def test_exhausted_deadline_makes_no_call():
    recorder = _Recorder(_succeeded())
    client = WorkflowClient(_cfg(timeout_seconds=0), transport=httpx.MockTransport(recorder))

    with pytest.raises(TransportError) as excinfo:
        client.run(WorkflowRequest())

    assert excinfo.value.kind is TransportErrorKind.TIMEOUT
    assert recorder.requests == []


def test_backoff_past_deadline_times_out(monkeypatch):
    slept: list[float] = []
    monkeypatch.setattr("news_briefing.fetch.client.time.sleep", slept.append)
    recorder = _Recorder(httpx.Response(500), _succeeded())
    client = WorkflowClient(
        _cfg(timeout_seconds=5, backoff_base=100.0),
        transport=httpx.MockTransport(recorder),
    )

    with pytest.raises(TransportError) as excinfo:
        client.run(WorkflowRequest())

    assert excinfo.value.kind is TransportErrorKind.TIMEOUT
    assert slept == []
    assert len(recorder.requests) == 1


def test_backoff_grows_linearly(monkeypatch):
    slept: list[float] = []
    monkeypatch.setattr("news_briefing.fetch.client.time.sleep", slept.append)
    recorder = _Recorder(httpx.Response(500), httpx.Response(500), httpx.Response(500), _succeeded())
    client = WorkflowClient(
        _cfg(timeout_seconds=60, backoff_base=0.5, max_retries=3),
        transport=httpx.MockTransport(recorder),
    )

    client.run(WorkflowRequest())

    assert slept == [0.5, 1.0, 1.5]


def test_streaming_uses_last_workflow_finished_event():
    body = _sse(
        {"event": "workflow_started", "data": {}},
        {"event": "iteration_completed", "data": {"outputs": {"output": ["provisional"]}}},
        {"event": "workflow_finished", "data": {"status": "succeeded", "outputs": {"output": ["final"]}}},
    )
    recorder = _Recorder(httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body))
    client = WorkflowClient(_cfg(), transport=httpx.MockTransport(recorder))

    response = client.run(WorkflowRequest(mode="streaming"))

    assert recorder.requests[0].headers["Accept"] == "text/event-stream"
    assert response.mode == "streaming"
    assert response.event == "workflow_finished"
    assert response.outputs == {"output": ["final"]}


def test_streaming_falls_back_to_latest_event_with_outputs():
    body = _sse(
        {"event": "iteration_completed", "data": {"outputs": {"output": ["first"]}}},
        {"event": "iteration_completed", "data": {"outputs": {"output": ["second"]}}},
        {"event": "node_finished", "data": {"title": "no outputs here"}},
    )
    recorder = _Recorder(httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body))
    client = WorkflowClient(_cfg(), transport=httpx.MockTransport(recorder))

    response = client.run(WorkflowRequest(mode="streaming"))

    assert response.event == "iteration_completed"
    assert response.outputs == {"output": ["second"]}


def test_streaming_without_outputs_is_workflow_error():
    body = _sse({"event": "workflow_started", "data": {}})
    recorder = _Recorder(httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body))
    client = WorkflowClient(_cfg(), transport=httpx.MockTransport(recorder))

    with pytest.raises(UpstreamWorkflowError) as excinfo:
        client.run(WorkflowRequest(mode="streaming"))

    assert excinfo.value.status == "incomplete"


def test_streaming_request_answered_with_json_is_parsed_as_blocking():
    recorder = _Recorder(_succeeded({"result": "json"}))
    client = WorkflowClient(_cfg(), transport=httpx.MockTransport(recorder))

    response = client.run(WorkflowRequest(mode="streaming"))

    assert response.outputs == {"result": "json"}


def test_streaming_server_error_is_retried():
    body = _sse({"event": "workflow_finished", "data": {"status": "succeeded", "outputs": {"result": "s"}}})
    recorder = _Recorder(
        httpx.Response(503),
        httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body),
    )
    client = WorkflowClient(_cfg(), transport=httpx.MockTransport(recorder))

    response = client.run(WorkflowRequest(mode="streaming"))

    assert response.outputs == {"result": "s"}
    assert len(recorder.requests) == 2


def test_unknown_mode_is_configuration_error():
    recorder = _Recorder(_succeeded())
    client = WorkflowClient(_cfg(), transport=httpx.MockTransport(recorder))

    with pytest.raises(ConfigurationError):
        client.run(WorkflowRequest(mode="polling"))

    assert recorder.requests == []


def test_slow_blocking_body_is_cut_off_at_the_deadline():
    body = json.dumps({"data": {"status": "succeeded", "outputs": {}}}).encode("utf-8")
    size = len(body) // 6 + 1
    chunks = [body[i : i + size] for i in range(0, len(body), size)]
    slow = httpx.Response(200, headers={"content-type": "application/json"}, stream=_ChunkedBody(chunks, pause=0.25))
    recorder = _Recorder(slow, _succeeded())
    client = WorkflowClient(_cfg(timeout_seconds=0.5), transport=httpx.MockTransport(recorder))

    started = time.monotonic()
    with pytest.raises(TransportError) as excinfo:
        client.run(WorkflowRequest())

    assert excinfo.value.kind is TransportErrorKind.TIMEOUT
    assert time.monotonic() - started < 1.2
    assert len(recorder.requests) == 1


def test_slow_streaming_body_is_cut_off_at_the_deadline():
    event = _sse({"event": "workflow_finished", "data": {"status": "succeeded", "outputs": {"output": ["x"]}}})
    slow = httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        stream=_ChunkedBody([b": keep-alive\n\n"] * 5 + [event], pause=0.25),
    )
    client = WorkflowClient(_cfg(timeout_seconds=0.5), transport=httpx.MockTransport(_Recorder(slow)))

    with pytest.raises(TransportError) as excinfo:
        client.run(WorkflowRequest(mode="streaming"))

    assert excinfo.value.kind is TransportErrorKind.TIMEOUT


def test_undecodable_body_is_unexpected_content_type():
    broken = httpx.Response(
        200,
        headers={"content-type": "application/json", "content-encoding": "gzip"},
        stream=_ChunkedBody([b"not gzip"]),
    )
    recorder = _Recorder(broken, _succeeded())
    client = WorkflowClient(_cfg(), transport=httpx.MockTransport(recorder))

    with pytest.raises(TransportError) as excinfo:
        client.run(WorkflowRequest())

    assert excinfo.value.kind is TransportErrorKind.UNEXPECTED_CONTENT_TYPE
    assert len(recorder.requests) == 1


def test_other_request_errors_are_network_errors():
    request = httpx.Request("POST", RUN_URL)
    recorder = _Recorder(httpx.TooManyRedirects("redirect loop", request=request))
    client = WorkflowClient(_cfg(max_retries=0), transport=httpx.MockTransport(recorder))

    with pytest.raises(TransportError) as excinfo:
        client.run(WorkflowRequest())

    assert excinfo.value.kind is TransportErrorKind.NETWORK_ERROR
