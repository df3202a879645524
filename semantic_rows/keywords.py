"""
TF-IDF keyword extraction for a group of texts.

Term frequency is counted across the whole group and document frequency
within it, so a term that appears in every text scores zero.
"""

import asyncio
import math
import re
from typing import Dict, List, Sequence

from semantic_rows.constants import DEFAULT_TOP_KEYWORDS, MIN_KEYWORD_LENGTH

STOP_WORDS = frozenset(
    [
        "the", "be", "to", "of", "and", "a", "in", "that", "have", "i",
        "it", "for", "not", "on", "with", "he", "as", "you", "do", "at",
        "this", "but", "his", "by", "from", "they", "we", "say", "her", "she",
        "or", "an", "will", "my", "one", "all", "would", "there", "their",
    ]
)  # fmt: skip

_NON_WORD = re.compile(r"[^\w\s]")


def tokenize(text: str) -> List[str]:
    """Lowercase words of at least MIN_KEYWORD_LENGTH characters, stop words removed."""
    words = _NON_WORD.sub(" ", text.lower()).split()
    return [word for word in words if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS]


def top_keywords(texts: Sequence[str], n: int = DEFAULT_TOP_KEYWORDS) -> List[str]:
    """
    Rank the terms of a text group by TF-IDF.

    Args:
        texts: Texts of one group (e.g. one topic's rows)
        n: Number of keywords to return

    Returns:
        Up to n terms, highest score first; equal scores keep first-seen order
    """
    if not texts or n <= 0:
        return []

    term_freq: Dict[str, int] = {}
    doc_freq: Dict[str, int] = {}
    for text in texts:
        tokens = tokenize(text or "")
        for token in tokens:
            term_freq[token] = term_freq.get(token, 0) + 1
        for token in set(tokens):
            doc_freq[token] = doc_freq.get(token, 0) + 1

    num_docs = len(texts)
    scores = {term: tf * math.log(num_docs / doc_freq[term]) for term, tf in term_freq.items()}
    ranked = sorted(scores, key=lambda term: scores[term], reverse=True)
    return ranked[:n]


async def extract_top_keywords(texts: Sequence[str], n: int = DEFAULT_TOP_KEYWORDS) -> List[str]:
    """Async wrapper around top_keywords, run off the event loop."""
    return await asyncio.to_thread(top_keywords, list(texts), n)
