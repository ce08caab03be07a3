"""Keyword extraction and matching shared by the capsule and preflight generators."""

import re
from typing import Callable, Iterable, List, TypeVar

T = TypeVar("T")

STOPWORDS = frozenset({
    'the', 'and', 'for', 'this', 'that', 'with', 'from', 'are', 'was', 'has', 'have',
})
MIN_KEYWORD_LENGTH = 3

_SEPARATORS = re.compile(r'[\s,.\-_/\\|]+')


def extract_keywords(text: str) -> List[str]:
    """Lowercased words of at least three characters, minus stopwords."""
    return [
        word for word in _SEPARATORS.split((text or '').lower())
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOPWORDS
    ]


def matches_keywords(text: str, keywords: Iterable[str]) -> bool:
    """Case-insensitive substring match against any keyword."""
    lower = (text or '').lower()
    return any(keyword in lower for keyword in keywords)


def filter_relevant(items: Iterable[T], text_of: Callable[[T], str], keywords: List[str]) -> List[T]:
    """Items whose concatenated text matches any keyword."""
    return [item for item in items if matches_keywords(text_of(item), keywords)]


def landmine_text(landmine) -> str:
    return f"{landmine.description} {landmine.file} {landmine.why}"


def decision_text(decision) -> str:
    return f"{decision.decision} {decision.rejected} {decision.why}"


def loop_text(loop) -> str:
    return f"{loop.description} {loop.context}"


def vocab_text(entry) -> str:
    return f"{entry.term} {entry.definition}"
