"""
Swipe Arena - Card Deck Model

Process-local view of the cards still to be guessed in the current phase.
The head of the deck is the card on screen. Order is private to each client;
only the set of resolved cards is shared through the store.
"""

from collections import deque
from typing import Protocol, Sequence

from src.engine.base import PHASE_RULES
from src.engine.errors import AlreadyResolved, EmptyDeck
from src.engine.validators import validate_card_ids, validate_phase


class CardProvider(Protocol):
    """Supplies the ordered card subset for a new session."""

    def sample(self, all_cards: Sequence[str], n: int) -> list[str]:
        ...


class LocalDeckView:
    """
    Ordered rotation of unresolved card ids for one phase.

    Attributes:
        phase: Phase whose rules apply (phase 1 forbids skipping)
    """

    def __init__(
        self,
        card_ids: Sequence[str] = (),
        remaining: Sequence[str] | None = None,
        phase: int = 1,
    ) -> None:
        self._cards: tuple[str, ...] = ()
        self._queue: deque[str] = deque()
        self._resolved: set[str] = set()
        self.phase = 1
        self.rebuild(card_ids, phase=phase, remaining=remaining)

    def rebuild(
        self,
        card_ids: Sequence[str],
        phase: int,
        remaining: Sequence[str] | None = None,
    ) -> None:
        """Reset the view for ``phase``.

        Args:
            card_ids: Full card set of the session
            phase: Phase the view is rebuilt for
            remaining: Cards still in the deck (e.g. on rejoin mid-phase);
                defaults to the full card set
        """
        self.phase = validate_phase(phase)
        self._cards = validate_card_ids(card_ids)
        known = set(self._cards)
        if remaining is None:
            remaining = self._cards
        unknown = [c for c in remaining if c not in known]
        if unknown:
            raise ValueError(f"Remaining cards not in card set: {unknown}.")
        self._queue = deque(validate_card_ids(remaining))
        self._resolved = known - set(self._queue)

    # -- Queries ----------------------------------------------------------

    def draw(self) -> str | None:
        """Return the current card, or None when the deck is empty."""
        return self._queue[0] if self._queue else None

    @property
    def can_skip(self) -> bool:
        return PHASE_RULES[self.phase].can_skip

    @property
    def total(self) -> int:
        """Size of the full card set."""
        return len(self._cards)

    @property
    def resolved_count(self) -> int:
        return len(self._resolved)

    @property
    def remaining(self) -> tuple[str, ...]:
        return tuple(self._queue)

    @property
    def card_ids(self) -> tuple[str, ...]:
        return self._cards

    @property
    def is_complete(self) -> bool:
        """True once every card of the set is resolved in this phase."""
        return bool(self._cards) and self.resolved_count == self.total

    def is_resolved(self, card_id: str) -> bool:
        return card_id in self._resolved

    def __len__(self) -> int:
        return len(self._queue)

    # -- Mutations --------------------------------------------------------

    def resolve_current(self) -> str:
        """Mark the head resolved and advance.

        Returns:
            The resolved card id. Check ``is_complete`` for phase completion.

        Raises:
            EmptyDeck: If there is no current card
        """
        if not self._queue:
            raise EmptyDeck("Cannot resolve: deck is empty.")
        return self.resolve(self._queue[0])

    def resolve(self, card_id: str) -> str:
        """Mark a specific card resolved, wherever it sits in the deck.

        Raises:
            AlreadyResolved: If the card was resolved earlier this phase
            EmptyDeck: If the deck is empty
            KeyError: If the card is not part of the session
        """
        if card_id in self._resolved:
            raise AlreadyResolved(card_id)
        if not self._queue:
            raise EmptyDeck("Cannot resolve: deck is empty.")
        if card_id not in self._queue:
            raise KeyError(card_id)
        self._queue.remove(card_id)
        self._resolved.add(card_id)
        return card_id

    def skip_current(self) -> bool:
        """Rotate the head to the tail.

        Returns:
            True if the deck rotated, False when skipping is not allowed
            in the current phase.

        Raises:
            EmptyDeck: If there is no current card
        """
        if not self._queue:
            raise EmptyDeck("Cannot skip: deck is empty.")
        if not self.can_skip:
            return False
        self._queue.rotate(-1)
        return True

    def discard(self, card_id: str) -> bool:
        """Drop a card another client resolved. No score effect.

        Returns:
            True if the card was still in the local deck.
        """
        if card_id not in self._queue:
            return False
        self._queue.remove(card_id)
        self._resolved.add(card_id)
        return True
