"""Recency filtering, ranking and category helpers for normalized items."""

from __future__ import annotations

from datetime import datetime, timedelta

from ..types import NewsItem

DEFAULT_WINDOW = timedelta(hours=24)
ALL_CATEGORIES = "all"


def filter_recent(items: list[NewsItem], now: datetime, window: timedelta = DEFAULT_WINDOW) -> list[NewsItem]:
    """Keep items published at or after `now - window`."""
    cutoff = now - window
    return [item for item in items if item.published_at >= cutoff]


def rank_items(items: list[NewsItem]) -> list[NewsItem]:
    """Order by relevance score, highest first; ties keep arrival order."""
    return sorted(items, key=lambda item: item.relevance_score, reverse=True)


def filter_and_rank(items: list[NewsItem], now: datetime, window: timedelta = DEFAULT_WINDOW) -> list[NewsItem]:
    return rank_items(filter_recent(items, now, window))


def filter_by_category(items: list[NewsItem], category: str | None) -> list[NewsItem]:
    """Items in `category`; None or "all" returns every item."""
    if category is None or category == ALL_CATEGORIES:
        return list(items)
    return [item for item in items if item.category == category]


def unique_categories(items: list[NewsItem]) -> list[str]:
    """Distinct categories in order of first appearance."""
    return list(dict.fromkeys(item.category for item in items))
