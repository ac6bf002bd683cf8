"""
FeedSteer Similarity Matcher

Resolves a desired category label to the most similar chip actually on the
page. This module is STATELESS and DETERMINISTIC.

Scoring (case-insensitive):
    exact label            → 1.0 (returned immediately)
    otherwise              → max(substring score, edit-distance score)

Substring score:
    chip shorter than 4    → 1.0 on exact match, else 0
    chip contains pref     → 0.9
    pref contains chip     → 0.7 (× len ratio when ratio < 0.5)
    word overlap           → 0.5 × overlapping / max(word counts)

Edit-distance score:
    (1 - levenshtein / max length) × 0.3
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from core.schemas.inputs import Candidate


# =============================================================================
# Constants
# =============================================================================

EXACT_SCORE = 1.0
EXACT_SUBSTRING_SCORE = 0.9
SUBSTRING_SCORE = 0.7
PARTIAL_SCORE = 0.5
EDIT_DISTANCE_WEIGHT = 0.3

# Chips shorter than this ("All", "New") never fuzzy-match
MIN_FUZZY_LENGTH = 4
MIN_LENGTH_RATIO = 0.5


@dataclass(frozen=True)
class MatchResult:
    """A candidate and its similarity score in [0, 1]."""
    candidate: Candidate
    score: float


# =============================================================================
# Distance & Scores
# =============================================================================

def levenshtein_distance(a: str, b: str) -> int:
    """Classic DP edit distance with unit insert/delete/substitute cost."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current[j] = min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            )
        previous = current
    return previous[-1]


def substring_score(preferred: str, candidate: str) -> float:
    """Containment / word-overlap score for two lowercased labels."""
    if len(candidate) < MIN_FUZZY_LENGTH:
        return EXACT_SCORE if candidate == preferred else 0.0

    if preferred in candidate:
        return EXACT_SUBSTRING_SCORE

    if candidate in preferred:
        ratio = len(candidate) / len(preferred)
        return SUBSTRING_SCORE if ratio >= MIN_LENGTH_RATIO else SUBSTRING_SCORE * ratio

    preferred_words = preferred.split()
    candidate_words = candidate.split()
    if not preferred_words or not candidate_words:
        return 0.0

    common = [
        word for word in preferred_words
        if any(word in other or other in word for other in candidate_words)
    ]
    if common:
        return PARTIAL_SCORE * (len(common) / max(len(preferred_words), len(candidate_words)))
    return 0.0


def edit_distance_score(preferred: str, candidate: str) -> float:
    max_length = max(len(preferred), len(candidate))
    if max_length == 0:
        return EDIT_DISTANCE_WEIGHT
    distance = levenshtein_distance(preferred, candidate)
    return (1 - distance / max_length) * EDIT_DISTANCE_WEIGHT


# =============================================================================
# Matching
# =============================================================================

def score_candidates(preferred: str, candidates: Sequence[Candidate]) -> List[MatchResult]:
    """Score every candidate against the preferred label, in input order."""
    preferred_lower = preferred.lower()
    results: List[MatchResult] = []
    for candidate in candidates:
        text = candidate.text.lower()
        if text == preferred_lower:
            score = EXACT_SCORE
        else:
            score = max(
                substring_score(preferred_lower, text),
                edit_distance_score(preferred_lower, text),
            )
        results.append(MatchResult(candidate=candidate, score=score))
    return results


def best_match(preferred: str, candidates: Sequence[Candidate]) -> Optional[MatchResult]:
    """
    Find the most similar candidate to the preferred label.

    Returns:
        The highest-scoring MatchResult (first occurrence wins ties), or None
        when there are no candidates or the preferred label is empty.
    """
    if not preferred or not candidates:
        return None

    preferred_lower = preferred.lower()
    for candidate in candidates:
        if candidate.text.lower() == preferred_lower:
            return MatchResult(candidate=candidate, score=EXACT_SCORE)

    best: Optional[MatchResult] = None
    for result in score_candidates(preferred, candidates):
        # Strict comparison keeps the earliest candidate on ties
        if best is None or result.score > best.score:
            best = result
    return best


def match(preferred: str, candidates: Sequence[Candidate]) -> Optional[Candidate]:
    """Return the best-matching candidate, or None."""
    result = best_match(preferred, candidates)
    return result.candidate if result else None
