"""Normalization of raw upstream records into NewsItem objects."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
import re
from typing import Any
import uuid

from ..core.classify import categorize, score
from ..errors import ParseError
from ..types import UNTITLED_PREFIX, URL_SENTINEL, NewsItem, RawItemRecord

UNKNOWN_SOURCE = "unknown"
SOURCE_SEPARATOR = " - "

_ID_CATEGORY_RE = re.compile(r"^([^-]+)-\d+$")
_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATE_TIME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})\s+(\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?.*)$")


def normalize_item(
    raw: RawItemRecord,
    fallback_index: int,
    now: datetime,
    source_tz: timezone = timezone.utc,
) -> NewsItem:
    """Build a NewsItem from one raw record, filling defaults.

    Args:
        raw: Upstream record
        fallback_index: Position of the record, used for the placeholder title
        now: Ingestion time, used when the record has no usable date
        source_tz: Zone assumed for upstream dates that carry none

    Raises:
        ParseError: If `raw` is not a mapping
    """
    if not isinstance(raw, Mapping):
        raise ParseError(f"record {fallback_index} is a {type(raw).__name__}, not an object")

    explicit_source = _text(raw.get("press")) or _text(raw.get("source"))
    raw_title = _text(raw.get("title"))
    if raw_title:
        title, source = split_title_source(raw_title, explicit_source)
    else:
        title, source = f"{UNTITLED_PREFIX}{fallback_index}", explicit_source or UNKNOWN_SOURCE

    hint = category_hint(raw)
    category = categorize(title, hint)
    summary = _text(raw.get("summary")) or f"{hint or category} related news."

    return NewsItem(
        id=uuid.uuid4().hex,
        title=title,
        summary=summary,
        source=source,
        published_at=parse_published_at(raw.get("date") or raw.get("pub_date"), now, source_tz),
        category=category,
        relevance_score=score(title, raw.get("score")),
        url=_text(raw.get("url")) or _text(raw.get("link")) or URL_SENTINEL,
    )


def split_title_source(title: str, explicit_source: str | None = None) -> tuple[str, str]:
    """Split "Headline - Press" into (headline, press).

    An explicit source keeps the title untouched. Without one, the text after
    the last " - " is the source; no separator gives source "unknown".

    Examples:
        >>> split_title_source("A - B - Press")
        ('A - B', 'Press')
        >>> split_title_source("Headline", "Daily")
        ('Headline', 'Daily')
    """
    if explicit_source:
        return title, explicit_source
    head, sep, tail = title.rpartition(SOURCE_SEPARATOR)
    if sep and head.strip() and tail.strip():
        return head.strip(), tail.strip()
    return title, UNKNOWN_SOURCE


def category_hint(raw: Mapping[str, Any]) -> str | None:
    """Upstream category with brackets stripped, or the prefix of an "<category>-<n>" id."""
    category = raw.get("category")
    if isinstance(category, str):
        cleaned = category.replace("[", "").replace("]", "").strip()
        if cleaned:
            return cleaned
    item_id = raw.get("id")
    if isinstance(item_id, str):
        match = _ID_CATEGORY_RE.match(item_id.strip())
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


def parse_published_at(value: Any, now: datetime, source_tz: timezone = timezone.utc) -> datetime:
    """Parse an upstream date, falling back to `now`.

    Accepts "YYYY-MM-DD" (midnight), "YYYY-MM-DD HH:MM[:SS]", ISO-8601 with
    or without a zone, and RFC 2822 dates as used in RSS feeds.
    """
    if not isinstance(value, str) or not value.strip():
        return now
    text = value.strip()
    try:
        if _DATE_ONLY_RE.match(text):
            text = f"{text}T00:00:00"
        else:
            match = _DATE_TIME_RE.match(text)
            if match:
                text = f"{match.group(1)}T{match.group(2)}"
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value.strip())
        except (TypeError, ValueError, IndexError):
            return now
        if parsed is None:
            return now
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=source_tz)
    return parsed


def source_timezone(offset_hours: float) -> timezone:
    """Fixed-offset zone for naive upstream dates; 0 or None means UTC.

    Fractional offsets are allowed (5.5 for IST). The offset must stay inside
    the 24-hour range `datetime.timezone` accepts.
    """
    if not offset_hours:
        return timezone.utc
    return timezone(timedelta(hours=offset_hours))


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None
