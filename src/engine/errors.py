"""
Swipe Arena - Error Taxonomy

Every error here is handled inside the sync coordinator; none of them is
fatal to a client.
"""


class SyncError(Exception):
    """Base exception for session synchronization errors."""

    def __init__(self, message: str, session_id: str | None = None) -> None:
        self.session_id = session_id
        super().__init__(message)


class TransientStoreError(SyncError):
    """A persistence call failed. Local state keeps the optimistic update."""

    def __init__(
        self,
        message: str,
        session_id: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.operation = operation
        super().__init__(message, session_id)


class EmptyDeck(SyncError):
    """Resolve or skip was requested against an empty deck."""


class AlreadyResolved(SyncError):
    """A card was resolved a second time within the same phase."""

    def __init__(self, card_id: str, session_id: str | None = None) -> None:
        self.card_id = card_id
        super().__init__(f"Card {card_id} is already resolved.", session_id)


class StaleDelta(SyncError):
    """A delta arrived for a session that is no longer active locally."""


class InvalidDelta(SyncError):
    """A delta payload could not be decoded or carried out-of-range values."""


class SessionNotFound(SyncError):
    """The store has no session with the requested id."""
