"""
Swipe Arena - Session Manager

CRUD operations for the `games` table.
"""

from supabase import AsyncClient

from src.database.client import execute
from src.database.models import GameSession, encode_scores


class SessionManager:
    """Manages the shared session row in Supabase."""

    def __init__(self, client: AsyncClient) -> None:
        self.client = client
        self.table = client.table("games")

    async def get(self, session_id: str) -> GameSession | None:
        """Get the session row."""
        data = await execute(
            self.table
            .select("*")
            .eq("id", session_id),
            operation="get_session",
            session_id=session_id,
        )
        if data.data:
            return GameSession.model_validate(data.data[0])
        return None

    async def update(
        self,
        session_id: str,
        *,
        scores: dict[int, int] | None = None,
        current_team: int | None = None,
        phase: int | None = None,
        status: str | None = None,
    ) -> GameSession | None:
        """Update session columns. Only provided fields are written."""
        updates: dict = {}
        if scores is not None:
            updates["scores"] = encode_scores(scores)
        if current_team is not None:
            updates["current_team"] = current_team
        if phase is not None:
            updates["phase"] = phase
        if status is not None:
            updates["status"] = status

        if not updates:
            return await self.get(session_id)

        data = await execute(
            self.table
            .update(updates)
            .eq("id", session_id),
            operation="update_session",
            session_id=session_id,
        )
        if data.data:
            return GameSession.model_validate(data.data[0])
        return None
