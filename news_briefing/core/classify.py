"""
Keyword classification and relevance scoring.

The taxonomy is an ordered list: several categories share keywords
(renewable energy overlaps with solar and wind, grid with transmission), and
the first matching entry wins.
"""

from __future__ import annotations

import math
from typing import Any

DEFAULT_CATEGORY = "other"

# Sentinels meaning "no category supplied"; "기타" is the upstream's own default.
UNKNOWN_CATEGORIES = frozenset({"", "기타", "other", "unknown"})

CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("한전", ("한전", "한국전력", "KEPCO")),
    ("SMR", ("SMR", "소형모듈원자로", "소형원자로")),
    ("원전", ("원전", "원자력", "핵발전", "원자력발전소", "원자로")),
    ("송전", ("송전", "송전선", "송전망", "전력망", "송배전")),
    ("ESS", ("ESS", "에너지저장장치", "배터리", "저장시스템")),
    ("정전", ("정전", "전력공급", "전기공급", "블랙아웃")),
    ("전력망", ("전력망", "전력계통", "전력시스템", "그리드")),
    ("열병합", ("열병합", "열병합발전", "CHP")),
    ("풍력", ("풍력", "풍력발전", "해상풍력", "육상풍력")),
    ("태양광", ("태양광", "태양광발전", "솔라", "PV")),
    ("RE100", ("RE100", "재생에너지100", "재생에너지")),
    ("수소", ("수소", "수소경제", "연료전지", "그린수소", "블루수소")),
    ("암모니아", ("암모니아", "NH3", "암모니아연료")),
    ("LNG", ("LNG", "액화천연가스", "가스터미널")),
    ("재생에너지", ("재생에너지", "신재생", "태양광", "풍력", "수력")),
    ("석유화학", ("석유화학", "정유", "화학", "플라스틱")),
    ("원유", ("원유", "유가", "석유", "OPEC")),
)

ORGANIZATION_KEYWORDS: tuple[str, ...] = ("GS", "E&R", "에너지", "자원")

BASE_SCORE = 70
KEYWORD_BONUS = 10
MAX_SCORE = 100


def categorize(title: str, explicit_category: str | None = None) -> str:
    """Return the upstream category when given, else the first keyword match.

    Matching is a case-sensitive substring test against `title`.
    """
    if explicit_category is not None and explicit_category.strip() not in UNKNOWN_CATEGORIES:
        return explicit_category
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in title for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def score(title: str, explicit_score: Any = None) -> int:
    """Relevance score in [0, 100].

    A numeric upstream score wins (clamped into range); otherwise the score is
    70 plus 10 per organization keyword found in the title, capped at 100.
    """
    explicit = coerce_score(explicit_score)
    if explicit is not None:
        return explicit
    matches = sum(1 for keyword in ORGANIZATION_KEYWORDS if keyword in title)
    return min(BASE_SCORE + KEYWORD_BONUS * matches, MAX_SCORE)


def coerce_score(value: Any) -> int | None:
    """Interpret an upstream score, or None when it is not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)) or math.isnan(value) or math.isinf(value):
        return None
    return max(0, min(MAX_SCORE, int(round(value))))
