"""Trigram string similarity.

Mirrors PostgreSQL's pg_trgm ``similarity()`` so that the same thresholds
apply whether the store is SQLite (where this function is registered as a
SQL function) or PostgreSQL (where the extension provides it natively).
"""

import re
from functools import lru_cache
from typing import Optional

_WORD_RE = re.compile(r"[^\W_]+", re.UNICODE)


@lru_cache(maxsize=4096)
def trigrams(value: str) -> frozenset[str]:
    """Return the pg_trgm trigram set of a string.

    Each alphanumeric word is lower-cased and padded with two spaces in front
    and one behind before the 3-character windows are taken.
    """
    result = set()
    for word in _WORD_RE.findall(value.lower()):
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            result.add(padded[i : i + 3])
    return frozenset(result)


def trigram_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Return the trigram similarity of two strings in [0, 1].

    The score is the number of shared trigrams divided by the number of
    distinct trigrams in either string. Missing or empty input scores 0.
    """
    if not a or not b:
        return 0.0
    left = trigrams(a)
    right = trigrams(b)
    if not left or not right:
        return 0.0
    union = len(left | right)
    return len(left & right) / union
