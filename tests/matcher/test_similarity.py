"""
Similarity Matcher Unit Tests

Tests for chip matching: exact resolution, the substring and edit-distance
strategies, tie-breaking, and the Levenshtein metric properties.
"""

import itertools

import pytest

from core.matcher import (
    EDIT_DISTANCE_WEIGHT,
    best_match,
    edit_distance_score,
    levenshtein_distance,
    match,
    score_candidates,
    substring_score,
)
from core.schemas.inputs import Candidate


def chips(*texts):
    return [Candidate(text=text, position=i) for i, text in enumerate(texts)]


SAMPLE_STRINGS = ["", "a", "all", "gaming", "gaminng", "music", "live music", "news", "nwes", "Mixes"]


# =============================================================================
# Exact Matching
# =============================================================================

class TestExactMatch:
    """Verbatim candidates always win with score 1.0."""

    @pytest.mark.parametrize("preferred", ["All", "Gaming", "Music", "Live", "Podcasts"])
    def test_verbatim_candidate_scores_one(self, preferred):
        candidates = chips("All", "Gaming", "Music", "Live", "Podcasts")

        result = best_match(preferred, candidates)

        assert result.candidate.text == preferred
        assert result.score == 1.0

    def test_exact_match_is_case_insensitive(self):
        result = best_match("gaming", chips("Music", "Gaming"))

        assert result.candidate.text == "Gaming"
        assert result.score == 1.0

    def test_exact_match_beats_earlier_substring(self):
        """An exact match later in the list wins over an earlier containment."""
        assert match("Music", chips("Live Music", "Music")).text == "Music"


# =============================================================================
# Fuzzy Matching
# =============================================================================

class TestFuzzyMatch:
    """Non-exact resolution."""

    def test_typo_resolves_by_edit_distance(self):
        """'Gaminng' is one deletion away from 'Gaming'."""
        assert match("Gaminng", chips("Gaming", "Music", "News")).text == "Gaming"

    def test_containing_candidate_preferred(self):
        assert match("Gaming", chips("News", "PC Gaming", "Music")).text == "PC Gaming"

    def test_short_candidate_never_fuzzy_matches(self):
        """'All' must not win just because it is contained in the preference."""
        result = best_match("All Music", chips("All", "Music"))

        assert result.candidate.text == "Music"

    def test_containment_outranks_edit_distance(self):
        candidates = chips("Cooking", "Cooling")
        scores = [r.score for r in score_candidates("Cookin", candidates)]

        assert scores[0] >= scores[1]
        assert match("Cookin", candidates).text == "Cooking"

    def test_equal_scores_return_first(self):
        candidates = chips("zzzz", "yyyy")

        result = best_match("qqqq", candidates)

        assert result.candidate.text == "zzzz"
        assert result.score == 0.0

    def test_empty_candidates_return_none(self):
        assert match("Gaming", []) is None
        assert best_match("Gaming", []) is None

    def test_empty_preference_returns_none(self):
        assert match("", chips("Gaming")) is None

    def test_deterministic(self):
        candidates = chips("Music", "Live Music", "Music Videos", "Mixes", "News")
        results = {match("Musik", candidates).text for _ in range(20)}

        assert len(results) == 1


# =============================================================================
# Substring Strategy
# =============================================================================

class TestSubstringScore:
    """Scores are computed on lowercased labels."""

    def test_candidate_contains_preferred(self):
        assert substring_score("gaming", "pc gaming") == 0.9

    def test_preferred_contains_candidate_long_enough(self):
        assert substring_score("live music", "music") == 0.7

    def test_preferred_contains_candidate_scaled_by_ratio(self):
        score = substring_score("classical music", "music")

        assert score == pytest.approx(0.7 * 5 / 15)

    def test_word_overlap(self):
        # "music" overlaps; 1 of max(2, 2) words
        assert substring_score("rock music", "music videos") == pytest.approx(0.25)

    def test_no_overlap(self):
        assert substring_score("cooking", "news feed") == 0.0

    @pytest.mark.parametrize("candidate", ["all", "new", "tv", "a"])
    def test_short_candidate_requires_exact(self, candidate):
        assert substring_score(candidate, candidate) == 1.0
        for preferred in (candidate + "s", "all music", "news", "x" + candidate):
            if preferred != candidate:
                assert substring_score(preferred, candidate) == 0.0


# =============================================================================
# Edit-Distance Strategy
# =============================================================================

class TestEditDistanceScore:

    def test_identical_labels_get_full_weight(self):
        assert edit_distance_score("music", "music") == pytest.approx(EDIT_DISTANCE_WEIGHT)

    def test_one_edit(self):
        assert edit_distance_score("gaminng", "gaming") == pytest.approx((1 - 1 / 7) * 0.3)

    def test_completely_different(self):
        assert edit_distance_score("abc", "xyz") == 0.0


# =============================================================================
# Levenshtein Metric
# =============================================================================

class TestLevenshteinDistance:

    @pytest.mark.parametrize("a, b, expected", [
        ("", "", 0),
        ("", "abc", 3),
        ("kitten", "sitting", 3),
        ("flaw", "lawn", 2),
        ("gaminng", "gaming", 1),
        ("news", "nwes", 2),
    ])
    def test_known_distances(self, a, b, expected):
        assert levenshtein_distance(a, b) == expected

    def test_zero_iff_equal(self):
        for a, b in itertools.product(SAMPLE_STRINGS, repeat=2):
            assert (levenshtein_distance(a, b) == 0) == (a == b)

    def test_symmetric(self):
        for a, b in itertools.product(SAMPLE_STRINGS, repeat=2):
            assert levenshtein_distance(a, b) == levenshtein_distance(b, a)

    def test_triangle_inequality(self):
        for a, b, c in itertools.product(SAMPLE_STRINGS, repeat=3):
            assert levenshtein_distance(a, c) <= levenshtein_distance(a, b) + levenshtein_distance(b, c)
