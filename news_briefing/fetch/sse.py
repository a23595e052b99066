"""
Server-Sent-Event decoding for streaming workflow runs.

Frames are `data: <json>` lines terminated by a blank line. Multiple data
lines in one frame are joined with newlines. `event:` fields and comment
lines (starting with ':') are accepted; frames whose data is not JSON are
skipped with a warning.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Iterator

from ..logging_utils import log_event, truncate_text
from ..types import WorkflowResponse

logger = logging.getLogger(__name__)

FINISHED_EVENT = "workflow_finished"


def iter_sse_events(lines: Iterable[str]) -> Iterator[dict[str, Any]]:
    """Decode SSE lines into JSON event objects.

    When the JSON payload has no "event" key, the frame's `event:` field is
    copied into it.
    """
    data_lines: list[str] = []
    event_name: str | None = None

    for raw_line in lines:
        line = raw_line.rstrip("\r\n")
        if not line:
            event = _dispatch(data_lines, event_name)
            data_lines, event_name = [], None
            if event is not None:
                yield event
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "data":
            data_lines.append(value)
        elif name == "event":
            event_name = value

    event = _dispatch(data_lines, event_name)
    if event is not None:
        yield event


def _dispatch(data_lines: list[str], event_name: str | None) -> dict[str, Any] | None:
    if not data_lines:
        return None
    data = "\n".join(data_lines)
    try:
        obj = json.loads(data)
    except json.JSONDecodeError:
        log_event(
            logger,
            "Skipping non-JSON SSE frame",
            level=logging.WARNING,
            frame_preview=truncate_text(data, 200),
        )
        return None
    if not isinstance(obj, dict):
        return None
    if event_name and "event" not in obj:
        obj["event"] = event_name
    return obj


def select_stream_outputs(events: list[dict[str, Any]]) -> WorkflowResponse | None:
    """Pick the authoritative payload from a decoded event sequence.

    The most recent `workflow_finished` event wins. Without one, the stream
    is scanned backward for the most recent event of any type that carries
    an `outputs` field. Returns None when no event carries outputs.
    """
    for event in reversed(events):
        if event.get("event") == FINISHED_EVENT:
            data = _event_data(event)
            return WorkflowResponse(
                status=str(data.get("status") or "succeeded"),
                outputs=data.get("outputs"),
                error=data.get("error"),
                mode="streaming",
                event=FINISHED_EVENT,
            )

    for event in reversed(events):
        data = _event_data(event)
        if "outputs" in data:
            return WorkflowResponse(
                status="succeeded",
                outputs=data.get("outputs"),
                mode="streaming",
                event=str(event.get("event") or "unknown"),
            )
        if "outputs" in event:
            return WorkflowResponse(
                status="succeeded",
                outputs=event.get("outputs"),
                mode="streaming",
                event=str(event.get("event") or "unknown"),
            )
    return None


def _event_data(event: dict[str, Any]) -> dict[str, Any]:
    data = event.get("data")
    return data if isinstance(data, dict) else {}
