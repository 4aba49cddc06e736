"""
Swipe Arena Game Engine.

Pure Python session logic with zero UI/database dependencies.
Handles the card deck, the turn clock, and per-field delta merging.
"""

from src.engine.base import (
    MAX_PHASE,
    PHASE_RULES,
    CardStatus,
    Delta,
    PhaseRule,
    TurnPhase,
)
from src.engine.clock import TurnClock
from src.engine.deck import CardProvider, LocalDeckView
from src.engine.session import Session, apply_delta

__all__ = [
    # Data Classes
    "Delta",
    "PhaseRule",
    "Session",
    # Enums
    "CardStatus",
    "TurnPhase",
    # Constants
    "MAX_PHASE",
    "PHASE_RULES",
    # Models
    "CardProvider",
    "LocalDeckView",
    "TurnClock",
    "apply_delta",
]
