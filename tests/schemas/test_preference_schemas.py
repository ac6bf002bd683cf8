"""
Pydantic Schema Validation Tests

Tests for preference rules (activity windows and overlap detection),
the closed message union, and page ingress payloads.
"""

from datetime import datetime

import pytest
from pydantic import ValidationError

from core.schemas.inputs import (
    Candidate,
    CandidateInsertPayload,
    GetCandidatesMessage,
    MessageType,
    PreferenceSource,
    SelectCandidateMessage,
    SessionSource,
    TimePreference,
    parse_message,
)


def rule(start, end, days=(0, 1, 2, 3, 4, 5, 6), enabled=True, preference="Gaming"):
    return TimePreference(
        preference=preference,
        days=list(days),
        start_hour=start,
        end_hour=end,
        enabled=enabled,
    )


# Sunday 2024-01-07 at the given hour
def sunday(hour):
    return datetime(2024, 1, 7, hour, 0)


# =============================================================================
# Enums
# =============================================================================

class TestEnums:

    def test_message_type_values(self):
        assert MessageType.GET_CANDIDATES == "GET_CANDIDATES"
        assert MessageType.SELECT_CANDIDATE == "SELECT_CANDIDATE"

    def test_preference_source_maps_to_session_source(self):
        assert PreferenceSource.GLOBAL.session_source == SessionSource.MANUAL
        assert PreferenceSource.TIME.session_source == SessionSource.TIME_SCOPED

    def test_session_source_values(self):
        assert SessionSource.MANUAL == "manual"
        assert SessionSource.TIME_SCOPED == "time_pref"


# =============================================================================
# Time Preference Activity
# =============================================================================

class TestTimePreferenceActivity:
    """[start, end) windows, wrapping overnight when start > end."""

    def test_overnight_window(self):
        overnight = rule(22, 6, days=[0])

        assert overnight.is_active_at(sunday(23))
        assert overnight.is_active_at(sunday(2))
        assert not overnight.is_active_at(sunday(10))

    def test_same_day_window_bounds(self):
        daytime = rule(9, 17, days=[0])

        assert daytime.is_active_at(sunday(9))
        assert daytime.is_active_at(sunday(16))
        assert not daytime.is_active_at(sunday(17))
        assert not daytime.is_active_at(sunday(8))

    def test_weekday_uses_sunday_zero(self):
        weekdays = rule(0, 23, days=[1, 2, 3, 4, 5])

        assert not weekdays.is_active_at(sunday(12))
        assert weekdays.is_active_at(datetime(2024, 1, 8, 12))   # Monday
        assert not weekdays.is_active_at(datetime(2024, 1, 6, 12))  # Saturday

    def test_disabled_rule_never_active(self):
        assert not rule(0, 23, enabled=False).is_active_at(sunday(12))

    def test_time_range_label(self):
        assert rule(22, 6).time_range == "22-6"
        assert rule(22, 6).is_overnight
        assert not rule(6, 22).is_overnight


# =============================================================================
# Time Preference Validation
# =============================================================================

class TestTimePreferenceValidation:

    def test_empty_window_rejected(self):
        with pytest.raises(ValidationError):
            rule(8, 8)

    @pytest.mark.parametrize("hour", [-1, 24])
    def test_hour_out_of_range_rejected(self, hour):
        with pytest.raises(ValidationError):
            rule(hour, 5)

    def test_invalid_day_rejected(self):
        with pytest.raises(ValidationError):
            rule(9, 17, days=[7])

    def test_no_days_rejected(self):
        with pytest.raises(ValidationError):
            rule(9, 17, days=[])

    def test_days_deduplicated_and_sorted(self):
        assert rule(9, 17, days=[5, 1, 5]).days == [1, 5]

    def test_id_generated(self):
        assert rule(9, 17).id != rule(9, 17).id


# =============================================================================
# Overlap Detection
# =============================================================================

class TestTimePreferenceOverlap:
    """Boundary cases for same-day and overnight windows."""

    @pytest.mark.parametrize("a, b, expected", [
        ((9, 17), (17, 20), False),   # touching end/start
        ((9, 17), (16, 18), True),
        ((9, 17), (10, 12), True),    # nested
        ((22, 6), (5, 8), True),      # overnight tail
        ((22, 6), (6, 22), False),    # exact complement
        ((22, 6), (23, 2), True),     # both overnight
        ((20, 2), (1, 3), True),
        ((20, 2), (2, 20), False),
        ((0, 1), (23, 0), False),
        ((18, 3), (12, 19), True),    # overnight head
    ])
    def test_hour_overlap(self, a, b, expected):
        first, second = rule(*a), rule(*b)

        assert first.overlaps(second) is expected
        assert second.overlaps(first) is expected

    def test_disjoint_days_never_overlap(self):
        assert not rule(9, 17, days=[1]).overlaps(rule(9, 17, days=[2]))

    def test_disabled_rules_never_overlap(self):
        assert not rule(9, 17).overlaps(rule(9, 17, enabled=False))


# =============================================================================
# Messages
# =============================================================================

class TestMessages:
    """The message union is discriminated on "type"."""

    def test_parse_get_candidates(self):
        message = parse_message({"type": "GET_CANDIDATES"})

        assert isinstance(message, GetCandidatesMessage)

    def test_parse_select_candidate(self):
        message = parse_message({
            "type": "SELECT_CANDIDATE",
            "text": "Gaming",
            "clear_temporary_fallback": True,
        })

        assert isinstance(message, SelectCandidateMessage)
        assert message.text == "Gaming"
        assert message.clear_temporary_fallback is True

    def test_select_defaults(self):
        message = parse_message({"type": "SELECT_CANDIDATE", "text": "Music"})

        assert message.clear_temporary_fallback is False

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_message({"type": "CLICK_EVERYTHING"})

    def test_select_requires_text(self):
        with pytest.raises(ValidationError):
            parse_message({"type": "SELECT_CANDIDATE"})


# =============================================================================
# Page Ingress
# =============================================================================

class TestPagePayloads:

    def test_candidate_labels_stripped(self):
        payload = CandidateInsertPayload(candidates=[" All ", "Gaming", "  "])

        assert payload.candidates == ["All", "Gaming"]

    def test_duplicate_labels_rejected(self):
        with pytest.raises(ValidationError):
            CandidateInsertPayload(candidates=["Music", "Music"])

    def test_candidate_requires_text(self):
        with pytest.raises(ValidationError):
            Candidate(text="", position=0)
