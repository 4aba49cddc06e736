"""
Swipe Arena - Realtime Event Definitions

Event types driving the turn state machine and the broadcast wire format of
session deltas.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

from src.database.models import decode_scores, encode_scores
from src.engine.base import Delta
from src.engine.errors import InvalidDelta

DELTA_EVENT = "delta"


class SyncEvent(Enum):
    """User actions dispatched to the sync coordinator."""

    START_TURN = auto()
    RESOLVE = auto()
    SKIP = auto()
    NEXT_TURN = auto()


@dataclass(frozen=True)
class DeltaEnvelope:
    """A decoded delta together with the session it targets."""

    session_id: str
    delta: Delta


# Delta attribute -> wire key
_WIRE_KEYS: dict[str, str] = {
    "active_team": "activeTeam",
    "phase": "phase",
    "turn_active": "turnActive",
    "time_remaining": "timeRemaining",
    "finished": "finished",
    "resolved_card": "resolvedCard",
    "resolved_phase": "resolvedPhase",
}

_WIRE_TYPES: dict[str, type] = {
    "active_team": int,
    "phase": int,
    "turn_active": bool,
    "time_remaining": int,
    "finished": bool,
    "resolved_card": str,
    "resolved_phase": int,
}


def session_topic(session_id: str) -> str:
    """Broadcast topic shared by every client of a session."""
    return f"session:{session_id}"


def encode_delta(session_id: str, delta: Delta) -> dict[str, Any]:
    """Serialize a delta to the broadcast payload. Absent fields are omitted."""
    payload: dict[str, Any] = {"sessionId": session_id}
    if delta.scores is not None:
        payload["scores"] = encode_scores(delta.scores)
    for attr, key in _WIRE_KEYS.items():
        value = getattr(delta, attr)
        if value is not None:
            payload[key] = value
    return payload


def decode_delta(payload: dict[str, Any]) -> DeltaEnvelope:
    """Parse a broadcast payload.

    Unknown keys are ignored so newer clients can add fields.

    Raises:
        InvalidDelta: If the payload is not a mapping, has no session id,
            or carries a field of the wrong type
    """
    if not isinstance(payload, dict):
        raise InvalidDelta(f"Delta payload must be an object, got {type(payload).__name__}.")

    session_id = payload.get("sessionId")
    if not isinstance(session_id, str) or not session_id:
        raise InvalidDelta("Delta payload has no session id.")

    values: dict[str, Any] = {}
    raw_scores = payload.get("scores")
    if raw_scores is not None:
        if not isinstance(raw_scores, dict):
            raise InvalidDelta("Delta scores must be an object.", session_id)
        try:
            values["scores"] = decode_scores(raw_scores)
        except (ValueError, AttributeError) as exc:
            raise InvalidDelta(str(exc), session_id) from exc

    for attr, key in _WIRE_KEYS.items():
        value = payload.get(key)
        if value is None:
            continue
        expected = _WIRE_TYPES[attr]
        # bool is an int subclass; keep flags and numbers apart
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise InvalidDelta(
                f"Delta field {key} must be {expected.__name__}, got {type(value).__name__}.",
                session_id,
            )
        values[attr] = value

    return DeltaEnvelope(session_id=session_id, delta=Delta(**values))
