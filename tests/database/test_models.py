"""Tests for src/database/models.py — row models and score encoding."""

import pytest

from src.database.models import (
    DeckEntry,
    GameSession,
    decode_scores,
    encode_scores,
    team_key,
)
from src.engine.base import CardStatus


class TestScoreEncoding:
    def test_team_key(self):
        assert team_key(1) == "team1"

    def test_encode(self):
        assert encode_scores({1: 3, 2: 0}) == {"team1": 3, "team2": 0}

    def test_decode(self):
        assert decode_scores({"team1": 3, "team2": 1}) == {1: 3, 2: 1}

    @pytest.mark.parametrize("key", ["team3", "teamX", "red"])
    def test_decode_rejects_unknown_keys(self, key):
        with pytest.raises(ValueError):
            decode_scores({key: 1})


class TestGameSession:
    def test_to_session(self, session_id):
        row = GameSession.model_validate({
            "id": session_id,
            "code": "AB12",
            "status": "playing",
            "current_team": 2,
            "phase": 3,
            "scores": {"team1": 4, "team2": 6},
        })
        session = row.to_session(turn_duration=45)
        assert session.session_id == session_id
        assert session.phase == 3
        assert session.active_team == 2
        assert session.scores == {1: 4, 2: 6}
        assert session.turn_active is False
        assert session.time_remaining == 45
        assert session.finished is False

    def test_missing_phase_defaults_to_one(self, session_id):
        row = GameSession.model_validate({"id": session_id, "phase": None})
        assert row.to_session(30).phase == 1

    def test_finished_status(self, session_id):
        row = GameSession.model_validate({"id": session_id, "status": "finished"})
        assert row.to_session(30).finished is True


class TestDeckEntry:
    def test_status_from_stored_value(self, session_id):
        entry = DeckEntry.model_validate(
            {"game_id": session_id, "card_id": "c1", "status": "guessed"}
        )
        assert entry.status is CardStatus.RESOLVED

    def test_default_status(self, session_id):
        entry = DeckEntry(game_id=session_id, card_id="c1")
        assert entry.status is CardStatus.IN_DECK
