"""
Pipeline orchestration for one news briefing refresh.

This module coordinates the stages:
1. Run the workflow (blocking or streaming) and check its status
2. Unwrap the outputs into raw records
3. Normalize, classify and score each record
4. Deduplicate
5. Drop stale items and rank by relevance

Transport, configuration and workflow errors propagate to the caller. A
malformed record only costs that record. An empty result is reported as
status "no_data", not as an exception.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import Any

import httpx

from .config import AppConfig, PipelineConfig
from .core.dedup import dedup_items
from .core.ranking import filter_and_rank
from .errors import ParseError
from .fetch.client import WorkflowClient
from .fetch.envelope import ensure_succeeded
from .logging_utils import log_event
from .parse.normalizer import normalize_item, source_timezone
from .parse.unwrap import unwrap_outputs
from .types import STATUS_NO_DATA, STATUS_OK, IngestResult, IngestStats, NewsItem, RawItemRecord, WorkflowRequest

logger = logging.getLogger(__name__)


def run_pipeline(
    cfg: AppConfig,
    now: datetime | None = None,
    transport: httpx.BaseTransport | None = None,
) -> IngestResult:
    """Fetch the latest briefing from the workflow engine and process it.

    Args:
        cfg: Application configuration
        now: Reference time for defaults and recency (current UTC time if None)
        transport: Optional httpx transport override

    Returns:
        IngestResult with ranked items, or status "no_data"

    Raises:
        ConfigurationError, TransportError, UpstreamWorkflowError
    """
    request = WorkflowRequest(
        inputs=dict(cfg.transport.inputs),
        mode=cfg.transport.mode,
        user=cfg.transport.user,
    )
    response = WorkflowClient(cfg.transport, transport=transport).run(request)
    ensure_succeeded(response)
    log_event(logger, "Workflow succeeded", mode=response.mode, event=response.event)
    return process_outputs(response.outputs, cfg.pipeline, now=now)


def process_outputs(
    outputs: Any,
    cfg: PipelineConfig | None = None,
    now: datetime | None = None,
) -> IngestResult:
    """Run every post-transport stage on a workflow `outputs` value."""
    cfg = cfg or PipelineConfig()
    now = _aware(now or datetime.now(timezone.utc))
    stats = IngestStats()

    records = unwrap_outputs(outputs)
    stats.raw_records = len(records)

    items = normalize_records(records, now, source_timezone(cfg.source_utc_offset_hours))
    stats.normalized = len(items)
    stats.malformed = stats.raw_records - stats.normalized

    if cfg.dedup_enabled:
        unique = dedup_items(items, threshold=cfg.title_similarity_threshold)
        stats.duplicates = len(items) - len(unique)
        items = unique

    ranked = filter_and_rank(items, now, timedelta(hours=cfg.recency_window_hours))
    stats.stale = len(items) - len(ranked)

    status = STATUS_OK if ranked else STATUS_NO_DATA
    log_event(
        logger,
        "Ingestion finished",
        result_status=status,
        raw_records=stats.raw_records,
        normalized=stats.normalized,
        malformed=stats.malformed,
        duplicates=stats.duplicates,
        stale=stats.stale,
        kept=len(ranked),
    )
    return IngestResult(status=status, items=ranked, stats=stats)


def normalize_records(
    records: list[RawItemRecord],
    now: datetime,
    source_tz: timezone = timezone.utc,
) -> list[NewsItem]:
    """Normalize each record; a record that fails is dropped and logged."""
    items: list[NewsItem] = []
    for index, record in enumerate(records):
        try:
            items.append(normalize_item(record, index, now, source_tz))
        except (ParseError, TypeError, ValueError) as exc:
            log_event(
                logger,
                "Dropping malformed news record",
                level=logging.WARNING,
                record_index=index,
                error=f"{type(exc).__name__}: {exc}",
            )
    return items


def _aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
