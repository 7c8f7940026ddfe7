"""Stop-word filtered keyword extraction for the keyword search path."""

from __future__ import annotations

import re

# Query filler in English and Spanish, the two languages the mirrored
# workspace is written in.
STOP_WORDS = frozenset(
    {
        # English
        "the", "and", "for", "are", "but", "not", "you", "all", "any", "can",
        "had", "her", "was", "one", "our", "out", "has", "him", "his", "how",
        "its", "may", "who", "did", "get", "let", "she", "too", "use", "what",
        "when", "where", "which", "why", "with", "about", "from", "into",
        "that", "this", "there", "their", "them", "they", "then", "than",
        "have", "does", "tell", "know", "explain", "describe", "information",
        "please", "some", "something", "anything", "would", "could", "should",
        # Spanish
        "qué", "que", "sabes", "sobre", "información", "tienes", "conoces",
        "dime", "explica", "cuéntame", "los", "las", "del", "por", "para",
        "con", "una", "uno", "unos", "unas", "como", "cómo", "cuál", "cual",
        "quién", "quien", "dónde", "donde", "cuándo", "cuando", "esta", "este",
        "esto", "eso", "esa", "ese", "hay", "son", "fue", "más", "mas",
    }
)

_PUNCTUATION = re.compile(r"[¿?¡!.,;:()\[\]{}\"'`]")


def extract_keywords(text: str) -> list[str]:
    """Return the distinct significant words of *text*, in order of appearance.

    Words are lowercased, stripped of punctuation, longer than two
    characters and not stop words.
    """
    words = _PUNCTUATION.sub(" ", text.lower()).split()
    seen: dict[str, None] = {}
    for word in words:
        if len(word) > 2 and word not in STOP_WORDS:
            seen.setdefault(word, None)
    return list(seen)


def keyword_score(keywords: list[str], text: str) -> float:
    """Fraction of *keywords* found (case-insensitively) in *text*."""
    if not keywords:
        return 0.0
    lowered = text.lower()
    return sum(1 for k in keywords if k in lowered) / len(keywords)
