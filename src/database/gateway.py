"""
Swipe Arena - Persistence Gateway

The durable source of truth as seen by the sync coordinator. Every write is a
targeted partial update; no call retries on failure.
"""

from __future__ import annotations

from typing import Sequence

from supabase import AsyncClient

from src.database.deck import DeckManager
from src.database.models import DeckEntry
from src.database.session import SessionManager
from src.engine.base import DEFAULT_TURN_DURATION, CardStatus
from src.engine.deck import CardProvider
from src.engine.errors import SessionNotFound
from src.engine.session import Session


class PersistenceGateway:
    """Async facade over the `games` and `game_cards` tables.

    All methods may raise TransientStoreError.
    """

    def __init__(self, client: AsyncClient) -> None:
        self._sessions = SessionManager(client)
        self._deck = DeckManager(client)

    async def get_session(
        self, session_id: str, turn_duration: int = DEFAULT_TURN_DURATION
    ) -> Session:
        """Load the persisted subset of a session.

        Raises:
            SessionNotFound: If no row exists for ``session_id``
        """
        row = await self._sessions.get(session_id)
        if row is None:
            raise SessionNotFound(f"Session {session_id} does not exist.", session_id)
        return row.to_session(turn_duration)

    async def update_session(
        self,
        session_id: str,
        *,
        scores: dict[int, int] | None = None,
        active_team: int | None = None,
        phase: int | None = None,
        finished: bool | None = None,
    ) -> None:
        """Write only the given session fields."""
        await self._sessions.update(
            session_id,
            scores=scores,
            current_team=active_team,
            phase=phase,
            status="finished" if finished else None,
        )

    async def list_deck_entries(
        self, session_id: str, status: CardStatus | None = None
    ) -> list[DeckEntry]:
        return await self._deck.list_by_session(session_id, status)

    async def update_deck_entry(
        self, session_id: str, card_id: str, status: CardStatus
    ) -> None:
        await self._deck.set_status(session_id, card_id, status)

    async def reset_deck_entries(
        self, session_id: str, status: CardStatus = CardStatus.IN_DECK
    ) -> int:
        return await self._deck.reset(session_id, status)

    async def insert_deck_entries(
        self, session_id: str, card_ids: Sequence[str]
    ) -> list[DeckEntry]:
        return await self._deck.insert(session_id, card_ids)


async def seed_deck(
    gateway: PersistenceGateway,
    session_id: str,
    all_cards: Sequence[str],
    provider: CardProvider,
    deck_size: int,
) -> list[str]:
    """Sample the session's card set and store it as in-deck entries.

    Returns:
        The sampled card ids, in provider order
    """
    card_ids = list(provider.sample(all_cards, min(deck_size, len(all_cards))))
    await gateway.insert_deck_entries(session_id, card_ids)
    return card_ids
