"""
News item deduplication using URL matching and fuzzy title comparison.

This module removes duplicate items based on:
1. Exact URL matches (the "#" placeholder never counts as a match)
2. Fuzzy title similarity, limited to items that cannot be told apart by URL:
   the same source, or at least one item without a URL

Placeholder titles ("Untitled #n") are never compared, and titles whose
numbers differ ("3분기" vs "4분기") are never treated as the same story.
"""

from __future__ import annotations

import re

from rapidfuzz import fuzz

from ..types import UNTITLED_PREFIX, URL_SENTINEL, NewsItem

_NUMBER_RE = re.compile(r"\d+")


def dedup_items(items: list[NewsItem], threshold: int = 92) -> list[NewsItem]:
    """Remove duplicate items from a list.

    Args:
        items: Normalized items in arrival order
        threshold: Similarity threshold (0-100) for fuzzy title matching.
                   Default 92 means titles must be 92% similar to be duplicates.

    Returns:
        Deduplicated list of items, preserving original order
    """
    seen_urls: set[str] = set()
    kept: list[NewsItem] = []

    for item in items:
        if item.url != URL_SENTINEL and item.url in seen_urls:
            continue
        if any(_is_similar(item, existing, threshold) for existing in kept):
            continue
        if item.url != URL_SENTINEL:
            seen_urls.add(item.url)
        kept.append(item)

    return kept


def _is_similar(item: NewsItem, existing: NewsItem, threshold: int) -> bool:
    if item.title.startswith(UNTITLED_PREFIX) or existing.title.startswith(UNTITLED_PREFIX):
        return False
    distinct_urls = item.url != URL_SENTINEL and existing.url != URL_SENTINEL
    if distinct_urls and item.source != existing.source:
        return False
    if _NUMBER_RE.findall(item.title) != _NUMBER_RE.findall(existing.title):
        return False
    return fuzz.ratio(item.title, existing.title) >= threshold
