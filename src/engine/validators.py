"""
Swipe Arena - Input Validation Utilities

Provides validation functions for session fields and deltas. All validators
either return validated data or raise descriptive ValueError exceptions.
"""

from typing import Mapping, Sequence

from src.engine.base import MAX_PHASE, TEAMS


def validate_phase(phase: int, max_phase: int = MAX_PHASE) -> int:
    """
    Validate a phase number.

    Args:
        phase: Phase number to validate
        max_phase: Highest phase of a session

    Returns:
        Validated phase

    Raises:
        ValueError: If phase is not an integer between 1 and max_phase
    """
    if not isinstance(phase, int) or isinstance(phase, bool):
        raise ValueError(f"Phase must be an integer, got {type(phase).__name__}.")

    if not (1 <= phase <= max_phase):
        raise ValueError(f"Phase must be between 1 and {max_phase}, got {phase}.")

    return phase


def validate_team(team: int) -> int:
    """
    Validate a team id.

    Raises:
        ValueError: If team is not 1 or 2
    """
    if not isinstance(team, int) or isinstance(team, bool):
        raise ValueError(f"Team must be an integer, got {type(team).__name__}.")

    if team not in TEAMS:
        raise ValueError(f"Team must be one of {TEAMS}, got {team}.")

    return team


def validate_scores(scores: Mapping[int, int]) -> dict[int, int]:
    """
    Validate a per-team score mapping.

    Args:
        scores: Mapping of team id to points (a subset of teams is allowed)

    Returns:
        Validated scores as a new dict

    Raises:
        ValueError: If a team id is unknown or a score is negative
    """
    validated: dict[int, int] = {}
    for team, points in scores.items():
        validate_team(team)
        if not isinstance(points, int) or isinstance(points, bool):
            raise ValueError(f"Score must be an integer, got {type(points).__name__}.")
        if points < 0:
            raise ValueError(f"Score cannot be negative, got {points}.")
        validated[team] = points
    return validated


def validate_time_remaining(seconds: int, turn_duration: int) -> int:
    """
    Validate remaining turn time.

    Raises:
        ValueError: If seconds is outside [0, turn_duration]
    """
    if not isinstance(seconds, int) or isinstance(seconds, bool):
        raise ValueError(f"Time remaining must be an integer, got {type(seconds).__name__}.")

    if not (0 <= seconds <= turn_duration):
        raise ValueError(
            f"Time remaining must be between 0 and {turn_duration}, got {seconds}."
        )

    return seconds


def validate_turn_duration(seconds: int) -> int:
    """Validate a configured turn duration (whole positive seconds)."""
    if not isinstance(seconds, int) or isinstance(seconds, bool):
        raise ValueError(f"Turn duration must be an integer, got {type(seconds).__name__}.")

    if seconds <= 0:
        raise ValueError(f"Turn duration must be positive, got {seconds}.")

    return seconds


def validate_card_ids(card_ids: Sequence[str]) -> tuple[str, ...]:
    """
    Validate a list of opaque card ids.

    Returns:
        Validated ids as a tuple, order preserved

    Raises:
        ValueError: If an id is empty or duplicated
    """
    seen: set[str] = set()
    for card_id in card_ids:
        if not card_id:
            raise ValueError("Card id cannot be empty.")
        if card_id in seen:
            raise ValueError(f"Duplicate card id {card_id}.")
        seen.add(card_id)

    return tuple(card_ids)
