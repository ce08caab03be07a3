"""Tokenizer service for token estimation and budget truncation."""

import math
import re
from typing import Dict, Iterable, List, Mapping, NamedTuple, Union


TOKENS_PER_WORD = 1.3
TRUNCATION_MARKER = '\n\n[...truncated to fit budget]'

_WHITESPACE = re.compile(r'\s+')


class FitResult(NamedTuple):
    """Text fitted to a budget."""
    text: str
    truncated: bool


def _split_words(text: str) -> List[str]:
    return [word for word in _WHITESPACE.split(text) if word]


def count_tokens(text: str) -> int:
    """Approximate model tokens as ceil(words * 1.3)."""
    if not text:
        return 0
    return math.ceil(len(_split_words(text)) * TOKENS_PER_WORD)


def fit_to_budget(text: str, budget: int) -> FitResult:
    """
    Truncate text at a word boundary so it fits a token budget.

    The appended marker costs a few tokens of its own, so callers must
    tolerate a small overshoot.
    """
    if count_tokens(text) <= budget:
        return FitResult(text, False)

    words = _split_words(text)
    target_words = max(0, math.floor(budget / TOKENS_PER_WORD))
    return FitResult(' '.join(words[:target_words]) + TRUNCATION_MARKER, True)


class WordEstimator:
    """Whitespace word count scaled by TOKENS_PER_WORD."""

    def count(self, text: str) -> int:
        return count_tokens(text)

    def fit(self, text: str, budget: int) -> FitResult:
        return fit_to_budget(text, budget)


ESTIMATORS = {"words": WordEstimator}


class TokenizerService:
    """Token estimates for store documents and compiled sections."""

    def __init__(self, backend: str = "words"):
        """
        Args:
            backend: Estimator name; only 'words' exists
        """
        if backend not in ESTIMATORS:
            raise ValueError(f"Unsupported token estimator '{backend}' (available: {', '.join(ESTIMATORS)})")
        self.estimator = ESTIMATORS[backend]()

    def count_tokens(self, text: Union[str, Iterable[str], Mapping[str, str]]) -> int:
        """Estimate one document, or the sum over a list or mapping of documents."""
        if isinstance(text, str):
            return self.estimator.count(text)
        if isinstance(text, Mapping):
            return sum(self.estimator.count(str(content)) for content in text.values())
        return sum(self.estimator.count(item) for item in text)

    def fit_to_budget(self, text: str, budget: int) -> FitResult:
        return self.estimator.fit(text, budget)

    def count_tokens_with_breakdown(self, sections: Mapping[str, str]) -> Dict[str, int]:
        """
        Per-document estimates keyed like the input, plus a 'total' entry.

        Args:
            sections: Document name to text

        Returns:
            Name to token estimate, with the sum under 'total'
        """
        breakdown = {name: self.estimator.count(content) for name, content in sections.items()}
        breakdown["total"] = sum(breakdown.values())
        return breakdown
