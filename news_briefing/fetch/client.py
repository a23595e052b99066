"""
HTTP transport for the workflow engine.

Supports the two response modes of the workflow-run API:
1. blocking: one POST answered by a single JSON document
2. streaming: one POST answered by a Server-Sent-Event stream

Both share the retry policy (5xx and connection failures are retried with
linear backoff, 4xx fails immediately) and a single wall-clock deadline that
covers every attempt, the backoff sleeps, and the streaming read.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Iterator

import httpx

from ..config import TransportConfig, get_api_key, get_endpoint
from ..errors import ConfigurationError, TransportError, TransportErrorKind, UpstreamWorkflowError
from ..logging_utils import log_event, truncate_text
from ..types import WorkflowRequest, WorkflowResponse
from .endpoint import normalize_endpoint
from .envelope import parse_blocking_body
from .sse import iter_sse_events, select_stream_outputs

logger = logging.getLogger(__name__)

MODES = ("blocking", "streaming")


class WorkflowClient:
    """Calls the workflow-run endpoint and returns the response envelope.

    Args:
        cfg: Transport settings (endpoint, credential, timeout, retries)
        transport: Optional httpx transport, used to substitute the network in tests
    """

    def __init__(self, cfg: TransportConfig, transport: httpx.BaseTransport | None = None):
        self.cfg = cfg
        self.transport = transport

    def run(self, request: WorkflowRequest) -> WorkflowResponse:
        """Execute one workflow run with retries under the configured deadline.

        Raises:
            ConfigurationError: endpoint or API key missing, invalid endpoint URL, or unknown mode
            TransportError: HTTP/network failure, timeout, or non-JSON response
            UpstreamWorkflowError: unknown response shape, or a stream without outputs
        """
        endpoint = get_endpoint(self.cfg)
        if not endpoint:
            raise ConfigurationError(
                "Workflow endpoint is not configured; set transport.endpoint "
                f"or the {self.cfg.endpoint_env} environment variable."
            )
        api_key = get_api_key(self.cfg)
        if not api_key:
            raise ConfigurationError(
                "Workflow API key is not configured; set transport.api_key "
                f"or the {self.cfg.api_key_env} environment variable."
            )
        if request.mode not in MODES:
            raise ConfigurationError(f"Unsupported workflow mode {request.mode!r}; use one of {MODES}.")

        url = normalize_endpoint(endpoint)
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if request.mode == "streaming":
            headers["Accept"] = "text/event-stream"

        deadline = time.monotonic() + self.cfg.timeout_seconds
        attempt = 0
        while True:
            if time.monotonic() >= deadline:
                raise TransportError(TransportErrorKind.TIMEOUT, "Workflow call deadline exceeded")
            log_event(logger, "Workflow request", url=url, mode=request.mode, attempt=attempt + 1)
            try:
                return self._attempt(url, headers, request, deadline)
            except TransportError as exc:
                attempt += 1
                if not exc.retryable or attempt > self.cfg.max_retries:
                    raise
                # Linear backoff: backoff_base, 2 * backoff_base, ...
                delay = self.cfg.backoff_base * attempt
                log_event(
                    logger,
                    "Workflow request failed, retrying",
                    level=logging.WARNING,
                    error=str(exc),
                    kind=exc.kind.value,
                    retry=attempt,
                    delay_seconds=delay,
                )
                if time.monotonic() + delay >= deadline:
                    raise TransportError(
                        TransportErrorKind.TIMEOUT, "Workflow call deadline exceeded during backoff"
                    ) from exc
                time.sleep(delay)

    def _attempt(
        self,
        url: str,
        headers: dict[str, str],
        request: WorkflowRequest,
        deadline: float,
    ) -> WorkflowResponse:
        remaining = max(deadline - time.monotonic(), 0.001)
        try:
            with httpx.Client(
                timeout=remaining,
                trust_env=self.cfg.trust_env,
                transport=self.transport,
            ) as client:
                return self._exchange(client, url, headers, request, deadline)
        except httpx.TimeoutException as exc:
            raise TransportError(TransportErrorKind.TIMEOUT, f"{type(exc).__name__}: {exc}") from exc
        except httpx.DecodingError as exc:
            raise TransportError(
                TransportErrorKind.UNEXPECTED_CONTENT_TYPE, f"Response body could not be decoded: {exc}"
            ) from exc
        except httpx.RequestError as exc:
            raise TransportError(TransportErrorKind.NETWORK_ERROR, f"{type(exc).__name__}: {exc}") from exc
        except httpx.InvalidURL as exc:
            raise ConfigurationError(f"Invalid workflow endpoint {url!r}: {exc}") from exc

    def _exchange(
        self,
        client: httpx.Client,
        url: str,
        headers: dict[str, str],
        request: WorkflowRequest,
        deadline: float,
    ) -> WorkflowResponse:
        with client.stream("POST", url, headers=headers, json=request.to_body()) as resp:
            content_type = resp.headers.get("content-type", "").lower()
            if resp.status_code >= 400:
                _raise_for_status(resp.status_code, _read_until(resp, deadline))

            if request.mode == "blocking" or "json" in content_type:
                body = _read_until(resp, deadline)
                return parse_blocking_body(_json_body(content_type, body))
            if "text/event-stream" not in content_type:
                raise TransportError(
                    TransportErrorKind.UNEXPECTED_CONTENT_TYPE,
                    f"Expected an event stream, got {content_type or 'no content type'}",
                )

            events = list(iter_sse_events(_lines_until(resp, deadline)))

        log_event(logger, "Workflow stream closed", events=len(events))
        selected = select_stream_outputs(events)
        if selected is None:
            raise UpstreamWorkflowError("incomplete", "Event stream closed without any workflow outputs")
        return selected


def fetch_workflow(
    request: WorkflowRequest,
    cfg: TransportConfig,
    transport: httpx.BaseTransport | None = None,
) -> WorkflowResponse:
    """Run the workflow once and return its response envelope."""
    return WorkflowClient(cfg, transport=transport).run(request)


def _read_until(resp: httpx.Response, deadline: float) -> bytes:
    chunks: list[bytes] = []
    for chunk in resp.iter_bytes():
        if time.monotonic() >= deadline:
            raise TransportError(TransportErrorKind.TIMEOUT, "Workflow response exceeded the call deadline")
        chunks.append(chunk)
    return b"".join(chunks)


def _lines_until(resp: httpx.Response, deadline: float) -> Iterator[str]:
    for line in resp.iter_lines():
        if time.monotonic() >= deadline:
            raise TransportError(TransportErrorKind.TIMEOUT, "Workflow stream exceeded the call deadline")
        yield line


def _preview(body: bytes) -> str:
    return truncate_text(body.decode("utf-8", errors="replace"), 200)


def _raise_for_status(status: int, body: bytes) -> None:
    if status < 400:
        return
    log_event(
        logger,
        "Workflow request rejected",
        level=logging.WARNING,
        status=status,
        body_preview=_preview(body),
    )
    if status < 500:
        raise TransportError(TransportErrorKind.CLIENT_ERROR, "Workflow request rejected", status=status)
    raise TransportError(TransportErrorKind.SERVER_ERROR, "Workflow server error", status=status)


def _json_body(content_type: str, body: bytes) -> Any:
    if "json" not in content_type:
        log_event(
            logger,
            "Workflow response is not JSON",
            level=logging.WARNING,
            content_type=content_type,
            body_preview=_preview(body),
        )
        raise TransportError(
            TransportErrorKind.UNEXPECTED_CONTENT_TYPE,
            f"Expected a JSON response, got {content_type or 'no content type'}",
        )
    try:
        return json.loads(body)
    except ValueError as exc:
        raise TransportError(
            TransportErrorKind.UNEXPECTED_CONTENT_TYPE, "Response body is not valid JSON"
        ) from exc
