# attendance_monitor/services/name_similarity.py
import re
import unicodedata
from typing import List, Set

from rapidfuzz.distance import Levenshtein

HIGH_CONFIDENCE_THRESHOLD = 0.80
MEDIUM_CONFIDENCE_THRESHOLD = 0.65
SUGGESTION_THRESHOLD = 0.55

# Two participants sharing an email are almost certainly the same person.
SHARED_EMAIL_SCORE = 0.95

CONTAINMENT_WEIGHT = 0.4
EDIT_WEIGHT = 0.3
TOKEN_WEIGHT = 0.3

INITIAL_BOOST = 0.10
SHORT_FORM_BOOST = 0.08
ABBREVIATION_BOOST_MAX = 0.20

_PUNCTUATION = re.compile(r"[^\w\s]")


def normalize_name(name: str) -> str:
    """
    Comparison form of a display name.

    Lowercase, accents removed ("José" -> "jose"), punctuation removed,
    outer whitespace trimmed. Applying it twice gives the same result.
    """
    text = unicodedata.normalize("NFD", name.lower())
    text = "".join(c for c in text if not unicodedata.combining(c))
    text = _PUNCTUATION.sub("", text)
    return text.strip()


def _tokens(normalized: str) -> List[str]:
    return normalized.split()


def _tokens_match(a: str, b: str) -> bool:
    return a == b or a in b or b in a


def _directed_token_containment(source: List[str], target: List[str]) -> int:
    return sum(1 for token in source if any(_tokens_match(token, other) for other in target))


def containment_score(a: str, b: str) -> float:
    """
    How much of one normalized name is found inside the other.

    A literal substring scores len(shorter) / len(longer). Otherwise tokens
    of the smaller token list are matched against the other list (equal, or
    one token containing the other) and the match count is divided by the
    larger token count.
    """
    shorter, longer = (a, b) if len(a) < len(b) else (b, a)
    if shorter in longer:
        return len(shorter) / len(longer) if longer else 1.0

    tokens_a = _tokens(a)
    tokens_b = _tokens(b)
    denominator = max(len(tokens_a), len(tokens_b))
    if denominator == 0:
        return 0.0

    if len(tokens_a) < len(tokens_b):
        matches = _directed_token_containment(tokens_a, tokens_b)
    elif len(tokens_b) < len(tokens_a):
        matches = _directed_token_containment(tokens_b, tokens_a)
    else:
        matches = max(
            _directed_token_containment(tokens_a, tokens_b),
            _directed_token_containment(tokens_b, tokens_a),
        )

    return matches / denominator


def edit_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / longest


def token_similarity(a: str, b: str) -> float:
    """
    Jaccard similarity of the whitespace token sets.
    """
    set_a: Set[str] = set(_tokens(a))
    set_b: Set[str] = set(_tokens(b))

    if not set_a and not set_b:
        return 1.0
    if not set_a or not set_b:
        return 0.0

    return len(set_a & set_b) / len(set_a | set_b)


def _one_way_boost(source: Set[str], target: Set[str]) -> float:
    boost = 0.0
    for token in source:
        if len(token) == 1:
            if any(other.startswith(token) for other in target):
                boost += INITIAL_BOOST
        elif len(token) == 2 and token.endswith("s"):
            if any(other.startswith(token[0]) for other in target):
                boost += SHORT_FORM_BOOST
    return boost


def abbreviation_boost(a: str, b: str) -> float:
    """
    Bonus for initials ("g" vs "giorgio") and two-letter short forms ending
    in "s", counted in both directions and capped at 0.20.
    """
    set_a = set(_tokens(a))
    set_b = set(_tokens(b))
    boost = _one_way_boost(set_a, set_b) + _one_way_boost(set_b, set_a)
    return min(ABBREVIATION_BOOST_MAX, boost)


def name_similarity(name_a: str, name_b: str) -> float:
    """
    Symmetric similarity score in [0, 1] between two display names.

    Rules
    -----
    - identical after normalization -> 1.0
    - otherwise 0.4 * containment + 0.3 * edit + 0.3 * token Jaccard,
      plus the abbreviation boost, capped at 1.0
    """
    a = normalize_name(name_a)
    b = normalize_name(name_b)

    if a == b:
        return 1.0

    blended = (
        CONTAINMENT_WEIGHT * containment_score(a, b)
        + EDIT_WEIGHT * edit_similarity(a, b)
        + TOKEN_WEIGHT * token_similarity(a, b)
    )
    return min(1.0, blended + abbreviation_boost(a, b))


def participant_similarity(name_a: str, email_a: str, name_b: str, email_b: str) -> float:
    """
    Name similarity, raised to at least 0.95 when both participants report
    the same non-empty email (case-insensitive, trimmed).
    """
    score = name_similarity(name_a, name_b)

    left = (email_a or "").strip().lower()
    right = (email_b or "").strip().lower()
    if left and left == right:
        score = max(score, SHARED_EMAIL_SCORE)

    return score


def confidence_level(score: float) -> str:
    if score >= HIGH_CONFIDENCE_THRESHOLD:
        return "high"
    if score >= MEDIUM_CONFIDENCE_THRESHOLD:
        return "medium"
    return "low"
