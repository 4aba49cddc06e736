"""
Swipe Arena - Game Engine Base Classes

This module defines the foundational enums and value objects used throughout
the engine. Value objects are frozen dataclasses so they can be shared between
the coordinator, the broadcast codec and tests without defensive copies.
"""

from dataclasses import dataclass, fields
from enum import Enum, auto


MAX_PHASE = 3
DEFAULT_TURN_DURATION = 30
TEAMS = (1, 2)


class CardStatus(Enum):
    """Resolution status of a card within the current phase.

    Values are the strings stored in the ``game_cards.status`` column.
    """
    IN_DECK = "deck"
    RESOLVED = "guessed"


class TurnPhase(Enum):
    """States of the per-client turn/phase state machine."""
    AWAITING_START = auto()
    TURN_READY = auto()
    TURN_ACTIVE = auto()
    TURN_ENDED = auto()
    PHASE_ADVANCING = auto()
    SESSION_FINISHED = auto()


@dataclass(frozen=True)
class PhaseRule:
    """
    Rule-set applied to the card set during one phase.

    Attributes:
        number: Phase number (1-3)
        name: Short identifier of the rule-set
        can_skip: Whether the current card may be sent to the back of the deck
    """
    number: int
    name: str
    can_skip: bool


PHASE_RULES: dict[int, PhaseRule] = {
    1: PhaseRule(number=1, name="describe", can_skip=False),
    2: PhaseRule(number=2, name="one_word", can_skip=True),
    3: PhaseRule(number=3, name="mime", can_skip=True),
}


def other_team(team: int) -> int:
    """Return the team that plays after ``team``."""
    return 2 if team == 1 else 1


@dataclass(frozen=True)
class Delta:
    """
    Partial, best-effort update to a session broadcast between clients.

    Every field is optional; ``None`` means "not carried by this delta".

    Attributes:
        scores: Absolute per-team scores (team id -> points)
        active_team: Team currently playing
        phase: Current phase number
        turn_active: Whether a turn is running
        time_remaining: Seconds left in the running turn
        finished: Set once the last phase is exhausted
        resolved_card: Card id the sender just resolved
        resolved_phase: Phase in which ``resolved_card`` was resolved
    """
    scores: dict[int, int] | None = None
    active_team: int | None = None
    phase: int | None = None
    turn_active: bool | None = None
    time_remaining: int | None = None
    finished: bool | None = None
    resolved_card: str | None = None
    resolved_phase: int | None = None

    @property
    def present_fields(self) -> tuple[str, ...]:
        """Names of the fields this delta carries."""
        return tuple(f.name for f in fields(self) if getattr(self, f.name) is not None)

    @property
    def is_empty(self) -> bool:
        return not self.present_fields
