"""
Swipe Arena - Database Models

Pydantic models that mirror the Supabase table schemas.
"""

from datetime import datetime
from typing import Mapping
from uuid import UUID

from pydantic import BaseModel, Field

from src.engine.base import TEAMS, CardStatus
from src.engine.session import Session


def team_key(team: int) -> str:
    """Column/wire key for a team's score ("team1", "team2")."""
    return f"team{team}"


def encode_scores(scores: Mapping[int, int]) -> dict[str, int]:
    """Engine scores -> stored/wire form."""
    return {team_key(team): points for team, points in scores.items()}


def decode_scores(raw: Mapping[str, int]) -> dict[int, int]:
    """Stored/wire scores -> engine form.

    Raises:
        ValueError: If a key does not name a known team
    """
    scores: dict[int, int] = {}
    for key, points in raw.items():
        if not key.startswith("team") or not key[4:].isdigit():
            raise ValueError(f"Unknown score key {key!r}.")
        team = int(key[4:])
        if team not in TEAMS:
            raise ValueError(f"Unknown team in score key {key!r}.")
        scores[team] = points
    return scores


class GameSession(BaseModel):
    """Mirrors the `games` table."""

    id: UUID
    code: str | None = Field(default=None, max_length=6)
    status: str = "setup"
    current_team: int = 1
    phase: int | None = 1
    scores: dict[str, int] = Field(
        default_factory=lambda: {team_key(team): 0 for team in TEAMS}
    )
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    def to_session(self, turn_duration: int) -> Session:
        """Build the engine aggregate. Turn and timer fields are never stored."""
        return Session(
            session_id=str(self.id),
            phase=self.phase or 1,
            active_team=self.current_team,
            scores=decode_scores(self.scores),
            turn_active=False,
            time_remaining=turn_duration,
            turn_duration=turn_duration,
            finished=self.status == "finished",
        )


class DeckEntry(BaseModel):
    """Mirrors the `game_cards` table."""

    game_id: UUID
    card_id: str
    status: CardStatus = CardStatus.IN_DECK

    model_config = {"from_attributes": True}
