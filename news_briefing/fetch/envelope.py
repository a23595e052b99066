"""Workflow response envelope checks."""

from __future__ import annotations

from typing import Any

from ..errors import UpstreamWorkflowError
from ..types import WorkflowResponse


def parse_blocking_body(body: Any) -> WorkflowResponse:
    """Extract the envelope from a blocking-mode JSON document.

    The expected shape is `{"data": {"status": ..., "outputs": ..., "error"?: ...}}`.
    Anything else raises UpstreamWorkflowError with status "unexpected".
    """
    data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(data, dict) or "status" not in data:
        keys = sorted(body.keys()) if isinstance(body, dict) else type(body).__name__
        raise UpstreamWorkflowError("unexpected", f"Unexpected workflow response shape: {keys}")
    return WorkflowResponse(
        status=str(data.get("status")),
        outputs=data.get("outputs"),
        error=data.get("error"),
        mode="blocking",
    )


def ensure_succeeded(response: WorkflowResponse) -> WorkflowResponse:
    """Raise UpstreamWorkflowError unless the workflow reports success."""
    if response.status == "succeeded":
        return response
    if response.status == "failed":
        raise UpstreamWorkflowError("failed", f"Workflow failed: {response.error or 'no error detail'}")
    if response.status == "running":
        raise UpstreamWorkflowError("running", "Workflow is still running; results are not ready yet")
    raise UpstreamWorkflowError(response.status, f"Workflow ended with status {response.status!r}")
