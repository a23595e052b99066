"""
Core domain logic.

This package contains classification, scoring, deduplication and ranking,
independent of how the news payload was fetched or decoded.
"""

from .classify import CATEGORY_KEYWORDS, DEFAULT_CATEGORY, categorize, score
from .dedup import dedup_items
from .ranking import filter_and_rank, filter_by_category, filter_recent, rank_items, unique_categories

__all__ = [
    "CATEGORY_KEYWORDS",
    "DEFAULT_CATEGORY",
    "categorize",
    "score",
    "dedup_items",
    "filter_and_rank",
    "filter_by_category",
    "filter_recent",
    "rank_items",
    "unique_categories",
]
