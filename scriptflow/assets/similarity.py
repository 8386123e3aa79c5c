"""
Name similarity for asset matching.

Scores blend token overlap (Jaccard over words, plus CJK bigrams since CJK
text has no word boundaries), character-bigram Dice, and a containment boost.
"""

import re
from collections import Counter
from typing import List, Optional

from scriptflow.core.config import MatchingConfig

_BRACKETS_RE = re.compile(r"[()（）【】\[\]{}'\"`]")
_NON_WORD_RE = re.compile(r"[\W_]+")
_WHITESPACE_RE = re.compile(r"\s+")
_CJK_RUN_RE = re.compile(r"^[\u4e00-\u9fff]+$")

_DEFAULT_CONFIG = MatchingConfig()


def normalize_name(text: Optional[str]) -> str:
    """Lowercase, strip brackets/quotes and punctuation, collapse whitespace."""
    value = str(text or "").lower()
    value = _BRACKETS_RE.sub(" ", value)
    value = _NON_WORD_RE.sub(" ", value)
    return _WHITESPACE_RE.sub(" ", value).strip()


def tokenize(text: Optional[str]) -> List[str]:
    """Whitespace tokens plus overlapping bigrams of every pure-CJK token."""
    normalized = normalize_name(text)
    if not normalized:
        return []

    segments = normalized.split(" ")
    tokens = dict.fromkeys(segments)
    for segment in segments:
        if len(segment) > 1 and _CJK_RUN_RE.match(segment):
            for i in range(len(segment) - 1):
                tokens.setdefault(segment[i:i + 2])
    return list(tokens)


def jaccard(tokens_a: List[str], tokens_b: List[str]) -> float:
    if not tokens_a or not tokens_b:
        return 0.0
    set_a, set_b = set(tokens_a), set(tokens_b)
    union = set_a | set_b
    return len(set_a & set_b) / len(union) if union else 0.0


def dice_bigram(a: Optional[str], b: Optional[str]) -> float:
    """Multiset Dice coefficient over character bigrams, ignoring whitespace."""
    s1 = normalize_name(a).replace(" ", "")
    s2 = normalize_name(b).replace(" ", "")
    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0
    if len(s1) < 2 or len(s2) < 2:
        return 0.0

    grams = Counter(s1[i:i + 2] for i in range(len(s1) - 1))
    intersection = 0
    for i in range(len(s2) - 1):
        gram = s2[i:i + 2]
        if grams[gram] > 0:
            intersection += 1
            grams[gram] -= 1
    return (2 * intersection) / ((len(s1) - 1) + (len(s2) - 1))


def name_similarity(a: Optional[str], b: Optional[str], config: MatchingConfig = None) -> float:
    """Base similarity in [0, 1]; identical normalized names score 1."""
    config = config or _DEFAULT_CONFIG
    na = normalize_name(a)
    nb = normalize_name(b)
    if not na or not nb:
        return 0.0
    if na == nb:
        return 1.0

    contains = config.contains_boost if (na in nb or nb in na) else 0.0
    token_score = jaccard(tokenize(na), tokenize(nb))
    bigram_score = dice_bigram(na, nb)
    return min(1.0, token_score * config.token_weight + bigram_score * config.bigram_weight + contains)
