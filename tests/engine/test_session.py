"""Tests for src/engine/session.py — the session aggregate and delta merge."""

import pytest

from src.engine.base import Delta
from src.engine.session import Session, apply_delta, validate_delta


@pytest.fixture
def session(session_id) -> Session:
    return Session(session_id=session_id)


class TestSession:
    def test_defaults(self, session):
        assert session.phase == 1
        assert session.active_team == 1
        assert session.scores == {1: 0, 2: 0}
        assert not session.turn_active
        assert session.time_remaining == 30

    def test_partial_scores_filled(self, session_id):
        assert Session(session_id=session_id, scores={2: 4}).scores == {1: 0, 2: 4}

    def test_invalid_phase(self, session_id):
        with pytest.raises(ValueError, match="Phase"):
            Session(session_id=session_id, phase=4)

    def test_time_above_duration(self, session_id):
        with pytest.raises(ValueError, match="Time remaining"):
            Session(session_id=session_id, time_remaining=31)

    def test_copy_is_detached(self, session):
        copy = session.copy()
        copy.scores[1] = 9
        assert session.scores[1] == 0


class TestApplyDelta:
    def test_applies_present_fields_only(self, session):
        changed = apply_delta(session, Delta(phase=2))
        assert changed == ("phase",)
        assert session.phase == 2
        assert session.active_team == 1

    def test_scores_merge_per_team(self, session):
        session.scores = {1: 3, 2: 5}
        apply_delta(session, Delta(scores={1: 4}))
        assert session.scores == {1: 4, 2: 5}

    def test_duplicate_delta_is_idempotent(self, session):
        delta = Delta(scores={1: 1})
        apply_delta(session, delta)
        assert apply_delta(session, delta) == ()
        assert session.scores[1] == 1

    def test_out_of_order_and_duplicate_converge(self, session):
        for delta in (Delta(scores={1: 1}), Delta(phase=2), Delta(scores={1: 1})):
            apply_delta(session, delta)
        assert session.scores[1] == 1
        assert session.phase == 2

    def test_last_observed_write_wins(self, session):
        apply_delta(session, Delta(active_team=2))
        apply_delta(session, Delta(active_team=1))
        assert session.active_team == 1

    def test_zero_time_ends_turn(self, session):
        session.turn_active = True
        changed = apply_delta(session, Delta(time_remaining=0))
        assert not session.turn_active
        assert "turn_active" in changed

    def test_finished_is_sticky(self, session):
        apply_delta(session, Delta(finished=True))
        apply_delta(session, Delta(finished=False))
        assert session.finished


class TestValidateDelta:
    def test_accepts_valid(self):
        delta = Delta(scores={1: 2}, active_team=2, phase=3, time_remaining=10)
        assert validate_delta(delta, turn_duration=30) is delta

    @pytest.mark.parametrize("delta", [
        Delta(phase=4),
        Delta(active_team=3),
        Delta(scores={1: -1}),
        Delta(time_remaining=45),
        Delta(resolved_card="card-a", resolved_phase=0),
    ])
    def test_rejects_out_of_range(self, delta):
        with pytest.raises(ValueError):
            validate_delta(delta, turn_duration=30)
