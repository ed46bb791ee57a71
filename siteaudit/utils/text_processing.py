"""Text processing utilities for page content analysis."""

import re
from collections.abc import Iterable

STOPWORDS = frozenset({
    "a", "about", "above", "after", "again", "against", "all", "also", "am",
    "an", "and", "any", "are", "as", "at", "be", "because", "been", "before",
    "being", "below", "best", "between", "both", "but", "by", "can", "could",
    "did", "do", "does", "doing", "down", "during", "each", "every", "few",
    "for", "from", "further", "get", "had", "has", "have", "having", "he",
    "her", "here", "hers", "him", "his", "how", "i", "if", "in", "into", "is",
    "it", "its", "itself", "just", "me", "more", "most", "my", "new", "no",
    "nor", "not", "now", "of", "off", "on", "once", "only", "or", "other",
    "our", "ours", "out", "over", "own", "page", "same", "she", "should",
    "so", "some", "such", "than", "that", "the", "their", "them", "then",
    "there", "these", "they", "this", "those", "through", "to", "too",
    "under", "until", "up", "us", "very", "was", "we", "were", "what",
    "when", "where", "which", "while", "who", "whom", "why", "will", "with",
    "would", "you", "your", "yours", "home", "welcome",
})

_TOKEN_RE = re.compile(r"[a-z0-9]+(?:['’][a-z]+)?")
_QUESTION_WORDS = (
    "what", "why", "how", "when", "where", "who", "which", "can", "does",
    "do", "is", "are", "should", "will",
)


def count_words(text: str) -> int:
    """Count whitespace-delimited tokens in text.

    Args:
        text: Input text.

    Returns:
        Word count.
    """
    return len(text.split())


def normalise_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def tokenize_keywords(*texts: str, min_length: int = 3) -> set[str]:
    """Lower-cased, stopword-free vocabulary of *texts*.

    Examples:
        >>> sorted(tokenize_keywords("The Best Running Shoes", "Shoes for trail running"))
        ['running', 'shoes', 'trail']
    """
    tokens: set[str] = set()
    for text in texts:
        for token in _TOKEN_RE.findall((text or "").lower()):
            if len(token) < min_length or token in STOPWORDS or token.isdigit():
                continue
            tokens.add(token)
    return tokens


def jaccard_similarity(left: Iterable[str], right: Iterable[str]) -> float:
    """Jaccard index of two token collections (0.0 when both are empty)."""
    a, b = set(left), set(right)
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def is_question_heading(text: str) -> bool:
    """Heuristic: does a heading read like an FAQ question?"""
    text = normalise_whitespace(text)
    if not text:
        return False
    if text.endswith("?"):
        return True
    first = text.split(" ", 1)[0].lower().strip(".,:;")
    return first in _QUESTION_WORDS and len(text.split()) >= 3
