"""
Swipe Arena - Deck Manager

CRUD operations for the `game_cards` table.
"""

from typing import Sequence

from supabase import AsyncClient

from src.database.client import execute
from src.database.models import DeckEntry
from src.engine.base import CardStatus


class DeckManager:
    """Manages per-session card resolution rows in Supabase."""

    def __init__(self, client: AsyncClient) -> None:
        self.client = client
        self.table = client.table("game_cards")

    async def list_by_session(
        self, session_id: str, status: CardStatus | None = None
    ) -> list[DeckEntry]:
        """List the session's cards, optionally filtered by status."""
        query = self.table.select("game_id, card_id, status").eq("game_id", session_id)
        if status is not None:
            query = query.eq("status", status.value)
        data = await execute(query, operation="list_deck_entries", session_id=session_id)
        return [DeckEntry.model_validate(row) for row in data.data]

    async def set_status(
        self, session_id: str, card_id: str, status: CardStatus
    ) -> DeckEntry | None:
        """Set one card's status."""
        data = await execute(
            self.table
            .update({"status": status.value})
            .eq("game_id", session_id)
            .eq("card_id", card_id),
            operation="update_deck_entry",
            session_id=session_id,
        )
        if data.data:
            return DeckEntry.model_validate(data.data[0])
        return None

    async def reset(self, session_id: str, status: CardStatus = CardStatus.IN_DECK) -> int:
        """Set every card of the session to ``status``.

        Returns:
            Number of rows updated
        """
        data = await execute(
            self.table
            .update({"status": status.value})
            .eq("game_id", session_id),
            operation="reset_deck_entries",
            session_id=session_id,
        )
        return len(data.data or [])

    async def insert(self, session_id: str, card_ids: Sequence[str]) -> list[DeckEntry]:
        """Create one in-deck row per card."""
        if not card_ids:
            return []
        data = await execute(
            self.table
            .insert([
                {
                    "game_id": session_id,
                    "card_id": card_id,
                    "status": CardStatus.IN_DECK.value,
                }
                for card_id in card_ids
            ]),
            operation="insert_deck_entries",
            session_id=session_id,
        )
        return [DeckEntry.model_validate(row) for row in data.data]
