"""
Lexical relevance scoring.

Scores are additive and saturate at 100: keyword hits in the title weigh 8,
in the body 3, purpose words 2, plus up to 10 points of quality bonuses.
"""
from typing import Iterable, Optional

TITLE_KEYWORD_WEIGHT = 8
BODY_KEYWORD_WEIGHT = 3
PURPOSE_WORD_WEIGHT = 2
PURPOSE_MIN_WORD_LENGTH = 3

ANNOTATION_WEIGHT = 5
MAX_ANNOTATION_BONUS = 20

MIN_SCORE = 0
MAX_SCORE = 100


def _clamp(score: int) -> int:
    return min(MAX_SCORE, max(MIN_SCORE, score))


def _count(haystack: str, needle: str) -> int:
    """Non-overlapping occurrences; both arguments are expected lower-cased."""
    if not needle:
        return 0
    return haystack.count(needle)


def purpose_words(purpose: Optional[str]) -> list[str]:
    if not purpose:
        return []
    return [word for word in purpose.lower().split() if len(word) > PURPOSE_MIN_WORD_LENGTH]


def quality_bonus(title: str, content: str) -> int:
    bonus = 0
    if len(content) > 500:
        bonus += 3
    if len(content) > 1000:
        bonus += 2
    if len(title) > 20:
        bonus += 2
    title_lower = title.lower()
    if "research" in title_lower or "study" in title_lower:
        bonus += 3
    return bonus


def score_relevance(
    title: str,
    content: str,
    keywords: Iterable[str],
    purpose: Optional[str] = None,
) -> int:
    """Relevance of one item to a workspace, clamped to [0, 100]."""
    title_lower = title.lower()
    content_lower = content.lower()
    score = 0

    for keyword in keywords:
        keyword_lower = keyword.strip().lower()
        score += _count(title_lower, keyword_lower) * TITLE_KEYWORD_WEIGHT
        score += _count(content_lower, keyword_lower) * BODY_KEYWORD_WEIGHT

    full_text = f"{title_lower} {content_lower}"
    for word in purpose_words(purpose):
        score += _count(full_text, word) * PURPOSE_WORD_WEIGHT

    score += quality_bonus(title, content)
    return _clamp(score)


def recalculate_for_annotation_count(base_score: int, annotation_count: int) -> int:
    """Rewards annotated content: +5 per annotation, at most +20."""
    bonus = min(MAX_ANNOTATION_BONUS, max(0, annotation_count) * ANNOTATION_WEIGHT)
    return _clamp(base_score + bonus)
