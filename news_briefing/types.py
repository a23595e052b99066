"""
Core data types for the news briefing pipeline.

This module defines the structures passed between pipeline stages:
- RawItemRecord: Untyped upstream record (alias for a plain dict)
- NewsItem: Canonical, normalized news entry returned to the caller
- WorkflowRequest: Body of the workflow-run call
- WorkflowResponse: Envelope extracted from a blocking or streaming response
- IngestStats / IngestResult: Outcome of one refresh
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

RawItemRecord = dict[str, Any]

STATUS_OK = "ok"
STATUS_NO_DATA = "no_data"

# Placeholders filled in by the normalizer; they carry no identity for dedup.
URL_SENTINEL = "#"
UNTITLED_PREFIX = "Untitled #"


@dataclass
class NewsItem:
    """A normalized news entry.

    Attributes:
        id: Opaque identifier, unique within one refresh
        title: Headline with any trailing " - <press>" suffix removed
        summary: One-line description (upstream or generated)
        source: Publisher name, "unknown" when not determinable
        published_at: Timezone-aware publication time
        category: Taxonomy category, upstream category, or "other"
        relevance_score: Integer in [0, 100]
        url: Absolute link or "#" when absent
    """
    id: str
    title: str
    summary: str
    source: str
    published_at: datetime
    category: str
    relevance_score: int
    url: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "source": self.source,
            "publishedAt": self.published_at.isoformat(),
            "category": self.category,
            "relevanceScore": self.relevance_score,
            "url": self.url,
        }


@dataclass
class WorkflowRequest:
    """Body of a workflow-run request.

    `inputs` is opaque to the pipeline and forwarded as-is.
    """
    inputs: dict[str, Any] = field(default_factory=dict)
    mode: str = "blocking"
    user: str = "news-briefing"

    def to_body(self) -> dict[str, Any]:
        return {"inputs": self.inputs, "mode": self.mode, "user": self.user}


@dataclass
class WorkflowResponse:
    """Envelope extracted from the upstream response.

    Attributes:
        status: Workflow status ("succeeded", "failed", "running", ...)
        outputs: The `outputs` value, usually a mapping
        error: Error text reported by the workflow, if any
        mode: "blocking" or "streaming"
        event: SSE event name that carried the outputs (streaming only)
    """
    status: str
    outputs: Any = None
    error: str | None = None
    mode: str = "blocking"
    event: str | None = None


@dataclass
class IngestStats:
    """Counters collected during one pipeline run."""
    raw_records: int = 0
    normalized: int = 0
    malformed: int = 0
    duplicates: int = 0
    stale: int = 0


@dataclass
class IngestResult:
    """Final outcome of a refresh.

    status is "ok" when at least one item survived, otherwise "no_data".
    A "no_data" result means the upstream call itself succeeded.
    """
    status: str
    items: list[NewsItem] = field(default_factory=list)
    stats: IngestStats = field(default_factory=IngestStats)

    @property
    def is_empty(self) -> bool:
        return self.status == STATUS_NO_DATA
