"""
Swipe Arena - Session State

The canonical per-client record of a session and the per-field merge used to
reconcile inbound deltas.
"""

from dataclasses import dataclass, field, replace

from src.engine.base import DEFAULT_TURN_DURATION, MAX_PHASE, TEAMS, Delta
from src.engine.validators import (
    validate_phase,
    validate_scores,
    validate_team,
    validate_time_remaining,
)


@dataclass
class Session:
    """
    Mutable session aggregate owned by a single coordinator.

    Attributes:
        session_id: Identity of the shared game
        phase: Current phase (1-3)
        active_team: Team currently playing (1 or 2)
        scores: Points per team
        turn_active: Whether a turn is running
        time_remaining: Seconds left in the turn
        turn_duration: Full length of a turn in seconds
        finished: Set once the last phase is exhausted
    """
    session_id: str
    phase: int = 1
    active_team: int = 1
    scores: dict[int, int] = field(default_factory=lambda: {team: 0 for team in TEAMS})
    turn_active: bool = False
    time_remaining: int = DEFAULT_TURN_DURATION
    turn_duration: int = DEFAULT_TURN_DURATION
    finished: bool = False

    def __post_init__(self) -> None:
        validate_phase(self.phase)
        validate_team(self.active_team)
        self.scores = {team: 0 for team in TEAMS} | validate_scores(self.scores)
        validate_time_remaining(self.time_remaining, self.turn_duration)

    def copy(self) -> "Session":
        """Detached copy, safe to hand to observers."""
        return replace(self, scores=dict(self.scores))


def validate_delta(delta: Delta, turn_duration: int, max_phase: int = MAX_PHASE) -> Delta:
    """
    Check every present field of a delta.

    Raises:
        ValueError: If a present field is out of range
    """
    if delta.scores is not None:
        validate_scores(delta.scores)
    if delta.active_team is not None:
        validate_team(delta.active_team)
    if delta.phase is not None:
        validate_phase(delta.phase, max_phase)
    if delta.time_remaining is not None:
        validate_time_remaining(delta.time_remaining, turn_duration)
    if delta.resolved_phase is not None:
        validate_phase(delta.resolved_phase, max_phase)
    return delta


def apply_delta(session: Session, delta: Delta) -> tuple[str, ...]:
    """
    Merge a delta into a session, field by field.

    A present field overwrites the local value unconditionally (last observed
    write wins); absent fields are left alone. Scores merge per team, so a
    delta naming one team never clears the other. Applying the same delta
    twice leaves the session unchanged.

    Args:
        session: Session to mutate in place
        delta: Incoming partial update (already validated)

    Returns:
        Names of the session fields whose value changed
    """
    changed: list[str] = []

    if delta.scores is not None:
        merged = session.scores | delta.scores
        if merged != session.scores:
            session.scores = merged
            changed.append("scores")

    for name in ("active_team", "phase", "turn_active", "time_remaining"):
        value = getattr(delta, name)
        if value is not None and getattr(session, name) != value:
            setattr(session, name, value)
            changed.append(name)

    if delta.finished and not session.finished:
        session.finished = True
        changed.append("finished")

    # A turn with no time left is over.
    if session.turn_active and session.time_remaining == 0:
        session.turn_active = False
        if "turn_active" not in changed:
            changed.append("turn_active")

    return tuple(changed)
