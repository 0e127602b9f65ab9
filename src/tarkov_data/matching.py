"""
Name normalization and fuzzy matching between wiki and API quest names.

Wiki link text, page titles and tarkov.dev names drift in punctuation,
casing and suffixes ("The Punisher - Part 1" vs "The Punisher Part 1").
The thresholds below were tuned against the live datasets; change them
only with evidence from a full reconciliation run.
"""

import re

MAX_CONTAINMENT_RESIDUAL = 5
TOKEN_MATCH_THRESHOLD = 0.70
MIN_TOKEN_LENGTH = 3
STOP_WORDS: frozenset[str] = frozenset({"the", "part", "quest", "mission", "task"})

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    return _NON_ALNUM.sub("-", name.lower()).strip("-")


def normalize_name(name: str) -> str:
    return " ".join(_NON_ALNUM.sub(" ", name.lower()).split())


def compact_name(name: str) -> str:
    return normalize_name(name).replace(" ", "")


def _tokens(normalized: str) -> set[str]:
    return {
        word
        for word in normalized.split()
        if len(word) >= MIN_TOKEN_LENGTH and word not in STOP_WORDS
    }


def _containment_residual(first: str, second: str) -> str | None:
    if second in first:
        longer, shorter = first, second
    elif first in second:
        longer, shorter = second, first
    else:
        return None
    return longer.replace(shorter, "", 1).replace(" ", "")


def names_match(first: str, second: str) -> bool:
    a = normalize_name(first)
    b = normalize_name(second)
    if not a or not b:
        return False

    if a == b:
        return True

    residual = _containment_residual(a, b)
    if residual is not None and len(residual) <= MAX_CONTAINMENT_RESIDUAL:
        return True

    tokens_a = _tokens(a)
    tokens_b = _tokens(b)
    if not tokens_a or not tokens_b:
        return False

    overlap = len(tokens_a & tokens_b) / max(len(tokens_a), len(tokens_b))
    return overlap >= TOKEN_MATCH_THRESHOLD
