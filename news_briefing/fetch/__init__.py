"""
Workflow engine transport.

This package handles endpoint normalization, the blocking and streaming
workflow-run calls, SSE decoding, and response envelope checks.
"""

from .client import WorkflowClient, fetch_workflow
from .endpoint import normalize_endpoint
from .envelope import ensure_succeeded, parse_blocking_body
from .sse import iter_sse_events, select_stream_outputs

__all__ = [
    "WorkflowClient",
    "fetch_workflow",
    "normalize_endpoint",
    "ensure_succeeded",
    "parse_blocking_body",
    "iter_sse_events",
    "select_stream_outputs",
]
