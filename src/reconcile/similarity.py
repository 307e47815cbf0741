"""
Similarity Engine

Pairwise decision: are two tasks the same real-world item?

Hard constraints are checked first (project, subtask, due date, modification
window); then titles are compared with an exact / containment / bigram Dice
cascade. Short strings produce spurious high similarity, hence the length
and ratio floors.
"""

import re
import unicodedata
from collections import Counter
from functools import lru_cache

from .models import CanonicalTask

MIN_COMPARE_LENGTH = 4
CONTAINMENT_MIN_RATIO = 0.4
DICE_THRESHOLD = 0.92
DICE_MIN_LENGTH = 8

URL_RE = re.compile(r'https?://\S+')


@lru_cache(maxsize=4096)
def normalize_title(title: str) -> str:
    """Lowercase, drop URLs, drop every punctuation/symbol/whitespace character"""
    text = URL_RE.sub('', (title or '').lower())
    return ''.join(
        ch for ch in text
        if not ch.isspace() and unicodedata.category(ch)[0] not in ('P', 'S')
    )


def _bigrams(text: str) -> Counter:
    return Counter(text[i:i + 2] for i in range(len(text) - 1))


def dice_similarity(a: str, b: str) -> float:
    """
    Dice coefficient over character-bigram multisets

    Returns:
        2 * |shared bigrams| / (len(a) + len(b) - 2), in [0, 1]
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0

    shared = sum((_bigrams(a) & _bigrams(b)).values())
    return (2 * shared) / (len(a) + len(b) - 2)


def titles_match(title_a: str, title_b: str) -> bool:
    """Title half of the duplicate test, on cleaned (not yet normalized) titles"""
    na = normalize_title(title_a)
    nb = normalize_title(title_b)
    if not na or not nb:
        return False

    if na == nb:
        return True
    if len(na) < MIN_COMPARE_LENGTH or len(nb) < MIN_COMPARE_LENGTH:
        return False

    shorter, longer = (na, nb) if len(na) <= len(nb) else (nb, na)
    if shorter in longer and len(shorter) >= MIN_COMPARE_LENGTH:
        if len(shorter) / len(longer) >= CONTAINMENT_MIN_RATIO:
            return True

    if dice_similarity(na, nb) >= DICE_THRESHOLD and len(shorter) >= DICE_MIN_LENGTH:
        return True

    return False


def is_duplicate(a: CanonicalTask, b: CanonicalTask, window_ms: float) -> bool:
    """
    Decide whether two tasks describe the same item

    Args:
        a, b: Candidate tasks (already bucketed together)
        window_ms: Maximum allowed gap between modification times

    Returns:
        True if every hard constraint holds and the titles match
    """
    if a.project_id != b.project_id:
        return False
    if a.parent_id or b.parent_id:
        return False

    if a.due_local_date or b.due_local_date:
        if a.due_local_date != b.due_local_date:
            return False

    if a.modified_at_ms is not None and b.modified_at_ms is not None:
        if abs(a.modified_at_ms - b.modified_at_ms) > window_ms:
            return False

    return titles_match(a.title, b.title)
