"""
Swipe Arena - Test Configuration and Fixtures

In-memory stand-ins for the persistence gateway and the broadcast channel,
plus factories for coordinators wired to them.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from src.database.models import DeckEntry
from src.engine.base import CardStatus, Delta
from src.engine.errors import SessionNotFound, TransientStoreError
from src.engine.session import Session
from src.realtime.events import DeltaEnvelope, decode_delta, encode_delta
from src.realtime.subscriptions import Subscription
from src.realtime.sync_manager import SyncCoordinator

SESSION_ID = "6d1f3c2a-8b4e-4c7d-9a10-2e5b7f9c0d11"
OTHER_SESSION_ID = "0b7e9d4c-1a2f-4e3b-8c5d-6f7a8b9c0d1e"


# =============================================================================
# PERSISTENCE
# =============================================================================

class FakeGateway:
    """Dict-backed PersistenceGateway shared by every client of a test."""

    def __init__(
        self,
        session_id: str,
        card_ids: list[str],
        *,
        phase: int = 1,
        active_team: int = 1,
        scores: dict[int, int] | None = None,
        finished: bool = False,
    ) -> None:
        self.session_id = session_id
        self.row: dict[str, Any] = {
            "phase": phase,
            "active_team": active_team,
            "scores": dict(scores or {1: 0, 2: 0}),
            "finished": finished,
        }
        self.entries: dict[str, CardStatus] = {c: CardStatus.IN_DECK for c in card_ids}
        self.calls: list[tuple[str, Any]] = []
        self.failing: set[str] = set()

    def _check(self, operation: str) -> None:
        if operation in self.failing:
            raise TransientStoreError(f"{operation} failed", self.session_id, operation)

    async def get_session(self, session_id: str, turn_duration: int = 30) -> Session:
        self._check("get_session")
        if session_id != self.session_id:
            raise SessionNotFound(f"Session {session_id} does not exist.", session_id)
        return Session(
            session_id=session_id,
            phase=self.row["phase"],
            active_team=self.row["active_team"],
            scores=dict(self.row["scores"]),
            time_remaining=turn_duration,
            turn_duration=turn_duration,
            finished=self.row["finished"],
        )

    async def update_session(self, session_id: str, **fields: Any) -> None:
        self.calls.append(("update_session", dict(fields)))
        self._check("update_session")
        for name, value in fields.items():
            if value is not None:
                self.row[name] = dict(value) if name == "scores" else value

    async def list_deck_entries(
        self, session_id: str, status: CardStatus | None = None
    ) -> list[DeckEntry]:
        self._check("list_deck_entries")
        return [
            DeckEntry(game_id=session_id, card_id=card_id, status=card_status)
            for card_id, card_status in self.entries.items()
            if status is None or card_status is status
        ]

    async def update_deck_entry(self, session_id: str, card_id: str, status: CardStatus) -> None:
        self.calls.append(("update_deck_entry", (card_id, status)))
        self._check("update_deck_entry")
        self.entries[card_id] = status

    async def reset_deck_entries(
        self, session_id: str, status: CardStatus = CardStatus.IN_DECK
    ) -> int:
        self.calls.append(("reset_deck_entries", status))
        self._check("reset_deck_entries")
        for card_id in self.entries:
            self.entries[card_id] = status
        return len(self.entries)

    async def insert_deck_entries(self, session_id: str, card_ids: list[str]) -> list[DeckEntry]:
        self.calls.append(("insert_deck_entries", list(card_ids)))
        self._check("insert_deck_entries")
        for card_id in card_ids:
            self.entries[card_id] = CardStatus.IN_DECK
        return await self.list_deck_entries(session_id)

    def resolved(self) -> set[str]:
        return {c for c, s in self.entries.items() if s is CardStatus.RESOLVED}


# =============================================================================
# BROADCAST
# =============================================================================

class FakeHub:
    """Broadcast fan-out between FakeChannels.

    Messages travel through the real wire codec. With ``auto`` set they are
    delivered as soon as they are published; otherwise they wait in
    ``outbox`` until ``flush`` so tests can drop, duplicate or reorder them.
    """

    def __init__(self, auto: bool = True) -> None:
        self.auto = auto
        self.subscribers: list[tuple[FakeChannel, Callable[[DeltaEnvelope], None]]] = []
        self.outbox: list[tuple[FakeChannel, dict[str, Any]]] = []

    def send(self, sender: FakeChannel, session_id: str, delta: Delta) -> None:
        self.outbox.append((sender, encode_delta(session_id, delta)))
        if self.auto:
            self.flush()

    def flush(self) -> None:
        while self.outbox:
            sender, payload = self.outbox.pop(0)
            for channel, on_delta in list(self.subscribers):
                if channel is not sender:
                    on_delta(decode_delta(payload))


class FakeChannel:
    """BroadcastChannel stand-in attached to a FakeHub."""

    def __init__(self, hub: FakeHub) -> None:
        self.hub = hub
        self.published: list[Delta] = []
        self.fail_subscribe = False

    async def subscribe(
        self, session_id: str, on_delta: Callable[[DeltaEnvelope], None]
    ) -> Subscription:
        if self.fail_subscribe:
            raise ConnectionError("realtime unavailable")
        self.hub.subscribers.append((self, on_delta))
        return Subscription(session_id, self)

    def publish(self, session_id: str, delta: Delta) -> None:
        self.published.append(delta)
        self.hub.send(self, session_id, delta)

    async def unsubscribe(self, handle: Subscription) -> None:
        self.hub.subscribers = [s for s in self.hub.subscribers if s[0] is not self]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def session_id() -> str:
    return SESSION_ID


@pytest.fixture
def other_session_id() -> str:
    return OTHER_SESSION_ID


@pytest.fixture
def card_ids() -> list[str]:
    return ["card-a", "card-b", "card-c"]


@pytest.fixture
def gateway(card_ids: list[str]) -> FakeGateway:
    return FakeGateway(SESSION_ID, card_ids)


@pytest.fixture
def hub() -> FakeHub:
    return FakeHub()


@pytest.fixture
def make_coordinator(gateway: FakeGateway, hub: FakeHub):
    """Factory for manually clocked coordinators sharing the same store and hub."""

    def _make(**kwargs: Any) -> SyncCoordinator:
        channel = FakeChannel(hub)
        kwargs.setdefault("turn_duration", 30)
        kwargs.setdefault("tick_interval", None)
        return SyncCoordinator(SESSION_ID, gateway, channel, **kwargs)

    return _make


@pytest.fixture
async def client(make_coordinator):
    """A single joined coordinator."""
    coordinator = make_coordinator()
    await coordinator.join()
    yield coordinator
    await coordinator.leave()


@pytest.fixture
async def peers(make_coordinator):
    """Two joined coordinators on the same session."""
    first = make_coordinator()
    second = make_coordinator()
    await first.join()
    await second.join()
    yield first, second
    await first.leave()
    await second.leave()
