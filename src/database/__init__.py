"""
Swipe Arena Database Layer.

Supabase integration for session rows and per-card deck entries.
"""

from src.database.client import get_supabase_client
from src.database.deck import DeckManager
from src.database.gateway import PersistenceGateway, seed_deck
from src.database.models import DeckEntry, GameSession
from src.database.session import SessionManager

__all__ = [
    "get_supabase_client",
    "DeckEntry",
    "DeckManager",
    "GameSession",
    "PersistenceGateway",
    "SessionManager",
    "seed_deck",
]
