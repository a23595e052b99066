"""
Payload unwrapping for workflow outputs.

The workflow engine returns its news payload in inconsistent shapes:
- a JSON object with a `news_briefing` array, encoded as a string
- the same string quoted again (JSON inside JSON, up to three levels)
- a Markdown fenced block (```json ... ```) around any of the above
- a list of strings, one JSON array per category
- an object whose first array-valued field holds the records

Every value goes through one decode step (`decode_payload`) that yields a
tagged Payload; the record strategies below dispatch on its kind. None of the
functions in this module raise on bad input: failures degrade to "no records"
and are logged as parse diagnostics.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
import json
import logging
import re
from typing import Any

from ..errors import ParseError
from ..logging_utils import log_event, truncate_text
from ..types import RawItemRecord

logger = logging.getLogger(__name__)

MAX_DECODE_DEPTH = 3
NEWS_ARRAY_KEY = "news_briefing"
PREFERRED_KEY = "result"
NEWS_MARKERS = ("news_briefing", "news", "title")

_FENCE_RE = re.compile(r"```[\w+-]*\s*(.*?)\s*```", re.DOTALL)


class PayloadKind(str, Enum):
    STRING = "string"
    OBJECT = "object"
    ARRAY = "array"


@dataclass
class Payload:
    """Result of decoding one upstream value.

    STRING payloads hold opaque text that could not be decoded further.
    """
    kind: PayloadKind
    value: Any


def extract_fenced_block(text: str) -> str:
    """Return the inner text of the first fenced block, or the text unchanged.

    Both language-tagged (```json) and bare (```) fences are recognized, on one
    line or spread over several. A fence without a closing marker is left as
    literal text.
    """
    if "```" not in text:
        return text
    match = _FENCE_RE.search(text)
    if match is None:
        return text
    return match.group(1).strip()


def decode_json_string(text: str, max_depth: int = MAX_DECODE_DEPTH) -> Any:
    """Decode a possibly multiply-encoded JSON string.

    Each level parses the string as JSON, or failing that, the inner text of a
    fenced block. Decoding stops when the result is no longer a string, when
    parsing fails, or after `max_depth` levels; in the last two cases the
    remaining string is returned as text.
    """
    value: Any = text
    for _ in range(max_depth):
        if not isinstance(value, str):
            break
        try:
            value = json.loads(value)
            continue
        except ValueError:
            pass
        try:
            value = json.loads(extract_fenced_block(value))
        except ValueError:
            break
    return value


def decode_payload(value: Any) -> Payload:
    """Decode an upstream value into a tagged Payload."""
    if isinstance(value, str):
        value = decode_json_string(value)
    if isinstance(value, Mapping):
        return Payload(PayloadKind.OBJECT, dict(value))
    if isinstance(value, list):
        return Payload(PayloadKind.ARRAY, value)
    if isinstance(value, str):
        return Payload(PayloadKind.STRING, value)
    return Payload(PayloadKind.STRING, "" if value is None else str(value))


def records_from_payload(payload: Payload) -> list[RawItemRecord]:
    """Apply the object/array strategies to one decoded payload."""
    if payload.kind is PayloadKind.OBJECT:
        return records_from_object(payload.value)
    if payload.kind is PayloadKind.ARRAY:
        return records_from_array(payload.value)
    return []


def records_from_object(obj: dict[str, Any]) -> list[RawItemRecord]:
    """Use `news_briefing`, else the first non-empty array-valued field."""
    briefing = obj.get(NEWS_ARRAY_KEY)
    if isinstance(briefing, list):
        return _only_records(briefing)
    for key, value in obj.items():
        if isinstance(value, list) and value:
            log_event(logger, "Using alternate array field as news list", level=logging.DEBUG, field=key)
            return records_from_array(value)
    return []


def records_from_array(items: list[Any]) -> list[RawItemRecord]:
    """Collect records from an array.

    Mapping elements are records. String elements are per-category JSON
    arrays (array-of-categories shape) and are decoded independently; nested
    lists are flattened one level.
    """
    if any(isinstance(item, str) for item in items):
        return records_from_category_strings(items)
    records: list[RawItemRecord] = []
    for item in items:
        if isinstance(item, list):
            records.extend(_only_records(item))
        else:
            records.extend(_only_records([item]))
    return records


def records_from_category_strings(elements: list[Any]) -> list[RawItemRecord]:
    """Decode a list with one JSON array (as a string) per category.

    Blank and "[]" elements are skipped silently. An element that fails to
    decode is skipped and logged; the others are still used.
    """
    records: list[RawItemRecord] = []
    for index, element in enumerate(elements):
        if isinstance(element, Mapping):
            records.append(dict(element))
            continue
        if isinstance(element, list):
            records.extend(_only_records(element))
            continue
        text = element.strip() if isinstance(element, str) else ""
        if not text or text == "[]":
            continue
        try:
            records.extend(_category_records(text))
        except ParseError as exc:
            log_event(
                logger,
                "Skipping undecodable category element",
                level=logging.WARNING,
                element_index=index,
                error=str(exc),
                preview=truncate_text(text, 200),
            )
    return records


def _category_records(text: str) -> list[RawItemRecord]:
    payload = decode_payload(text)
    if payload.kind is PayloadKind.STRING:
        raise ParseError("element is not a JSON array or object")
    if payload.kind is PayloadKind.OBJECT:
        return records_from_object(payload.value)
    return _only_records(payload.value)


def _only_records(items: list[Any]) -> list[RawItemRecord]:
    records: list[RawItemRecord] = []
    for index, item in enumerate(items):
        if isinstance(item, Mapping):
            records.append(dict(item))
        else:
            log_event(
                logger,
                "Dropping non-object news record",
                level=logging.WARNING,
                record_index=index,
                record_type=type(item).__name__,
            )
    return records


def candidate_keys(outputs: Mapping[str, Any]) -> list[str]:
    """Order `outputs` keys for key discovery.

    `result` first, then keys whose raw string value mentions a news marker,
    then the first key. Keys whose decoded value is an array are appended by
    `unwrap_outputs` after these have been tried.
    """
    ordered: list[str] = []
    if PREFERRED_KEY in outputs:
        ordered.append(PREFERRED_KEY)
    for key, value in outputs.items():
        if isinstance(value, str) and any(marker in value for marker in NEWS_MARKERS):
            if key not in ordered:
                ordered.append(key)
    keys = list(outputs.keys())
    if keys and keys[0] not in ordered:
        ordered.append(keys[0])
    return ordered


def unwrap_outputs(outputs: Any) -> list[RawItemRecord]:
    """Turn a workflow `outputs` value into raw news records.

    Candidate keys are tried in discovery order; the first one that yields at
    least one record wins. After those, any key whose decoded value is an
    array is tried. Returns an empty list when nothing matches.
    """
    if not isinstance(outputs, Mapping):
        return records_from_payload(decode_payload(outputs))

    tried: set[str] = set()
    for key in candidate_keys(outputs):
        tried.add(key)
        records = records_from_payload(decode_payload(outputs[key]))
        if records:
            log_event(logger, "News records found", output_key=key, records=len(records))
            return records

    for key, value in outputs.items():
        if key in tried:
            continue
        payload = decode_payload(value)
        if payload.kind is not PayloadKind.ARRAY:
            continue
        records = records_from_array(payload.value)
        if records:
            log_event(logger, "News records found in array output", output_key=key, records=len(records))
            return records

    log_event(
        logger,
        "No news records found in workflow outputs",
        level=logging.WARNING,
        output_keys=list(outputs.keys()),
    )
    return []
