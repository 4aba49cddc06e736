"""
Swipe Arena - Base Classes Tests

Tests for enums, phase rules, and the Delta value object.
"""

import pytest

from src.engine.base import (
    MAX_PHASE,
    PHASE_RULES,
    CardStatus,
    Delta,
    TurnPhase,
    other_team,
)


class TestCardStatus:
    """Tests for CardStatus enum."""

    def test_stored_values(self):
        assert CardStatus.IN_DECK.value == "deck"
        assert CardStatus.RESOLVED.value == "guessed"

    def test_lookup_by_value(self):
        assert CardStatus("guessed") is CardStatus.RESOLVED


class TestTurnPhase:
    """Tests for TurnPhase enum."""

    def test_all_states_defined(self):
        expected = {
            "AWAITING_START", "TURN_READY", "TURN_ACTIVE",
            "TURN_ENDED", "PHASE_ADVANCING", "SESSION_FINISHED",
        }
        assert {s.name for s in TurnPhase} == expected


class TestPhaseRules:
    """Tests for the per-phase rule table."""

    def test_one_rule_per_phase(self):
        assert sorted(PHASE_RULES) == list(range(1, MAX_PHASE + 1))

    def test_phase_one_forbids_skipping(self):
        assert PHASE_RULES[1].can_skip is False

    @pytest.mark.parametrize("phase", [2, 3])
    def test_later_phases_allow_skipping(self, phase):
        assert PHASE_RULES[phase].can_skip is True


class TestOtherTeam:
    def test_alternates(self):
        assert other_team(1) == 2
        assert other_team(2) == 1


class TestDelta:
    """Tests for Delta dataclass."""

    def test_empty_delta(self):
        delta = Delta()
        assert delta.is_empty
        assert delta.present_fields == ()

    def test_present_fields(self):
        delta = Delta(phase=2, turn_active=False)
        assert delta.present_fields == ("phase", "turn_active")

    def test_false_flag_is_present(self):
        assert "turn_active" in Delta(turn_active=False).present_fields

    def test_zero_time_is_present(self):
        assert Delta(time_remaining=0).present_fields == ("time_remaining",)

    def test_frozen(self):
        delta = Delta(phase=1)
        with pytest.raises(AttributeError):
            delta.phase = 2
