"""
Payload decoding and record normalization.

This package turns workflow outputs into raw records and raw records into
NewsItem objects.
"""

from .normalizer import normalize_item, parse_published_at, split_title_source
from .unwrap import Payload, PayloadKind, decode_json_string, decode_payload, extract_fenced_block, unwrap_outputs

__all__ = [
    "normalize_item",
    "parse_published_at",
    "split_title_source",
    "Payload",
    "PayloadKind",
    "decode_json_string",
    "decode_payload",
    "extract_fenced_block",
    "unwrap_outputs",
]
