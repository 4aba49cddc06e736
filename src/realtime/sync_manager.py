"""
Swipe Arena - Session Sync Coordinator

Per-client turn/phase state machine. Ties the local session aggregate, the
card deck and the turn clock to the persistence gateway (source of truth) and
the broadcast channel (sub-second sync between devices).

Everything runs on one asyncio loop: user actions, clock ticks and inbound
deltas are handled synchronously in arrival order, and store writes are
queued to a single background writer so they land in the order they were
made locally.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from src.config.settings import Settings, get_settings
from src.database.client import get_supabase_client
from src.database.gateway import PersistenceGateway
from src.engine.base import MAX_PHASE, CardStatus, Delta, TurnPhase, other_team
from src.engine.clock import TurnClock
from src.engine.deck import LocalDeckView
from src.engine.errors import (
    AlreadyResolved,
    EmptyDeck,
    InvalidDelta,
    StaleDelta,
    TransientStoreError,
)
from src.engine.session import Session, apply_delta, validate_delta
from src.engine.validators import validate_turn_duration
from src.realtime.events import DeltaEnvelope, SyncEvent
from src.realtime.subscriptions import BroadcastChannel, Subscription

logger = logging.getLogger(__name__)

_ACCEPTS_NEXT_TURN = (TurnPhase.TURN_READY, TurnPhase.TURN_ACTIVE, TurnPhase.TURN_ENDED)


class SyncCoordinator:
    """Keeps one client's view of a session consistent with its peers.

    Entry points for the presentation layer (``request_*``) are synchronous:
    local state changes immediately, the durable write happens in the
    background and a delta is published to peers. Inbound deltas are merged
    field by field, last observed write wins.
    """

    def __init__(
        self,
        session_id: str,
        gateway: PersistenceGateway,
        channel: BroadcastChannel,
        *,
        turn_duration: int = 30,
        tick_interval: float | None = 1.0,
        max_phase: int = MAX_PHASE,
        tick_broadcast_every: int = 2,
    ) -> None:
        self.session_id = session_id
        self.turn_duration = validate_turn_duration(turn_duration)
        self.max_phase = max_phase
        self._gateway = gateway
        self._channel = channel
        self._broadcast_every = tick_broadcast_every

        self._session = Session(
            session_id=session_id,
            time_remaining=turn_duration,
            turn_duration=turn_duration,
        )
        self._deck = LocalDeckView()
        self._clock = TurnClock(self._on_tick, self._on_expire, tick_interval)
        self._state = TurnPhase.AWAITING_START
        self._owns_clock = False
        self._left = False

        self._subscription: Subscription | None = None
        self._poll_task: asyncio.Task | None = None
        self._writes: asyncio.Queue | None = None
        self._writer: asyncio.Task | None = None
        # Writes not yet finished, and a running count of every write queued
        self._inflight_writes = 0
        self._write_seq = 0

        # Writes that failed, re-sent with the next user action
        self._pending_fields: set[str] = set()
        self._pending_entries: dict[str, CardStatus] = {}
        self._pending_reset = False

        self._listeners: list[Callable[[Session], None]] = []

    # -- Observable state --------------------------------------------------

    @property
    def state(self) -> TurnPhase:
        return self._state

    @property
    def snapshot(self) -> Session:
        """Detached copy of the local session."""
        return self._session.copy()

    @property
    def current_card(self) -> str | None:
        return self._deck.draw()

    @property
    def deck(self) -> LocalDeckView:
        return self._deck

    @property
    def can_skip(self) -> bool:
        return self._state is TurnPhase.TURN_ACTIVE and self._deck.can_skip

    @property
    def owns_clock(self) -> bool:
        """True while this client is timing the running turn."""
        return self._owns_clock

    def add_listener(self, callback: Callable[[Session], None]) -> None:
        """Register a callback invoked with a snapshot after every change."""
        self._listeners.append(callback)

    def _notify(self) -> None:
        snapshot = self.snapshot
        for callback in list(self._listeners):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Error in session listener")

    # -- Lifecycle ---------------------------------------------------------

    async def join(
        self,
        *,
        use_polling_fallback: bool = True,
        poll_interval: float = 2.0,
    ) -> Session:
        """Load the session from the store and start listening for deltas.

        If the broadcast subscription fails and ``use_polling_fallback`` is
        set, the persisted session row is polled instead.

        Raises:
            SessionNotFound: If the session does not exist
            TransientStoreError: If the initial load fails
        """
        if self._state is not TurnPhase.AWAITING_START:
            logger.warning("Session %s already joined", self.session_id)
            return self.snapshot

        self._start_writer()
        try:
            await self._load()
        except Exception:
            self._stop_writer()
            raise

        try:
            self._subscription = await self._channel.subscribe(self.session_id, self._on_delta)
            logger.info("Realtime sync active for session %s", self.session_id)
        except Exception:
            logger.exception("Broadcast subscription failed for session %s", self.session_id)
            if not use_polling_fallback:
                self._stop_writer()
                self._state = TurnPhase.AWAITING_START
                raise
            logger.info("Falling back to polling for session %s", self.session_id)
            self._poll_task = asyncio.get_running_loop().create_task(
                self._poll_loop(poll_interval), name=f"poll-{self.session_id[:8]}"
            )

        return self.snapshot

    async def resync(self) -> Session:
        """Discard local divergence and reload from the store."""
        if self._left:
            raise StaleDelta(f"Session {self.session_id} was left.", self.session_id)
        self._stop_clock()
        await self._load()
        return self.snapshot

    async def leave(self) -> None:
        """Stop the clock and stop listening. The session stays live for peers."""
        if self._left:
            return
        self._left = True
        self._stop_clock()

        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
        if self._subscription is not None:
            await self._channel.unsubscribe(self._subscription)
            self._subscription = None

        await self.drain()
        self._stop_writer()
        logger.info("Left session %s", self.session_id)

    async def drain(self) -> None:
        """Wait until every queued store write has been attempted."""
        if self._writes is not None:
            await self._writes.join()

    async def _load(self) -> None:
        session = await self._gateway.get_session(self.session_id, self.turn_duration)
        entries = await self._gateway.list_deck_entries(self.session_id)

        card_ids = [entry.card_id for entry in entries]
        remaining = [e.card_id for e in entries if e.status is CardStatus.IN_DECK]
        self._session = session
        self._deck.rebuild(card_ids, phase=session.phase, remaining=remaining)
        self._owns_clock = False

        if session.finished:
            self._state = TurnPhase.SESSION_FINISHED
        else:
            self._state = TurnPhase.TURN_READY
            if self._deck.is_complete:
                # The previous phase was exhausted but never advanced.
                logger.warning("Session %s loaded with an exhausted deck", self.session_id)
                self._advance_phase()

        logger.info(
            "Loaded session %s: phase %d, team %d, %d/%d cards left",
            self.session_id, session.phase, session.active_team,
            len(self._deck), self._deck.total,
        )
        self._notify()

    # -- User actions ------------------------------------------------------

    def request_start_turn(self) -> bool:
        """Start the active team's turn on this device."""
        if not self._accepts(SyncEvent.START_TURN, (TurnPhase.TURN_READY,)):
            return False
        if not len(self._deck):
            logger.warning("Cannot start a turn on session %s: deck is empty", self.session_id)
            return False

        self._retry_pending()
        self._session.turn_active = True
        self._session.time_remaining = self.turn_duration
        self._clock.stop()
        self._clock.start(self.turn_duration)
        self._owns_clock = True
        self._state = TurnPhase.TURN_ACTIVE

        self._publish(Delta(
            active_team=self._session.active_team,
            turn_active=True,
            time_remaining=self.turn_duration,
        ))
        logger.info("Team %d started a turn on session %s", self._session.active_team, self.session_id)
        self._notify()
        return True

    def request_resolve_current(self, card_id: str | None = None) -> bool:
        """Score the current card (or ``card_id``) for the active team.

        Returns:
            True if a card was resolved and scored.
        """
        if not self._accepts(SyncEvent.RESOLVE, (TurnPhase.TURN_ACTIVE,)):
            return False

        try:
            if card_id is None:
                resolved = self._deck.resolve_current()
            else:
                resolved = self._deck.resolve(card_id)
        except EmptyDeck:
            logger.warning("Resolve ignored on session %s: deck is empty", self.session_id)
            return False
        except AlreadyResolved as exc:
            logger.info("Resolve ignored on session %s: %s", self.session_id, exc)
            return False
        except KeyError:
            logger.warning("Resolve ignored on session %s: unknown card %s", self.session_id, card_id)
            return False

        self._retry_pending()
        team = self._session.active_team
        self._session.scores[team] += 1
        self._write_session(scores=dict(self._session.scores))
        self._write_entries({resolved: CardStatus.RESOLVED})
        self._publish(Delta(
            scores=dict(self._session.scores),
            resolved_card=resolved,
            resolved_phase=self._session.phase,
        ))

        if self._deck.is_complete:
            self._end_turn(exhausted=True)
        self._notify()
        return True

    def request_skip_current(self) -> bool:
        """Send the current card to the back of the local deck.

        Returns:
            True if the deck rotated. Skipping is refused in phase 1.
        """
        if not self._accepts(SyncEvent.SKIP, (TurnPhase.TURN_ACTIVE,)):
            return False
        try:
            rotated = self._deck.skip_current()
        except EmptyDeck:
            logger.warning("Skip ignored on session %s: deck is empty", self.session_id)
            return False
        if rotated:
            self._notify()
        return rotated

    def request_next_turn(self) -> bool:
        """Hand play to the other team. Stops a running turn first."""
        if not self._accepts(SyncEvent.NEXT_TURN, _ACCEPTS_NEXT_TURN):
            return False

        self._retry_pending()
        self._stop_clock()
        self._session.active_team = other_team(self._session.active_team)
        self._session.turn_active = False
        self._session.time_remaining = self.turn_duration
        self._state = TurnPhase.TURN_READY

        self._write_session(active_team=self._session.active_team)
        self._publish(Delta(
            active_team=self._session.active_team,
            turn_active=False,
            time_remaining=self.turn_duration,
        ))
        logger.info("Session %s passed to team %d", self.session_id, self._session.active_team)
        self._notify()
        return True

    def _accepts(self, event: SyncEvent, states: tuple[TurnPhase, ...]) -> bool:
        if self._left or self._state not in states:
            logger.debug(
                "Ignoring %s on session %s in state %s", event.name, self.session_id, self._state.name
            )
            return False
        return True

    # -- Turn clock --------------------------------------------------------

    def _on_tick(self, remaining: int) -> None:
        self._session.time_remaining = remaining
        if self._owns_clock and remaining % self._broadcast_every == 0:
            self._publish(Delta(time_remaining=remaining))
        self._notify()

    def _on_expire(self) -> None:
        self._session.time_remaining = 0
        self._session.turn_active = False
        owned, self._owns_clock = self._owns_clock, False
        if self._state is TurnPhase.TURN_ACTIVE:
            self._state = TurnPhase.TURN_ENDED
        if owned:
            self._publish(Delta(turn_active=False, time_remaining=0))
            logger.info("Turn expired on session %s", self.session_id)
        self._notify()

    def _stop_clock(self) -> None:
        self._clock.stop()
        self._owns_clock = False

    def _follow_remote_clock(self) -> None:
        """Restart the display countdown from the last received time."""
        self._stop_clock()
        if self._session.time_remaining > 0:
            self._clock.start(self._session.time_remaining)

    # -- Turn and phase transitions ----------------------------------------

    def _end_turn(self, *, exhausted: bool) -> None:
        self._stop_clock()
        self._session.turn_active = False
        self._state = TurnPhase.TURN_ENDED
        if exhausted:
            self._advance_phase()
        else:
            self._publish(Delta(turn_active=False, time_remaining=self._session.time_remaining))

    def _advance_phase(self) -> None:
        self._state = TurnPhase.PHASE_ADVANCING
        next_phase = self._session.phase + 1
        if next_phase > self.max_phase:
            self._finish()
            return

        self._session.phase = next_phase
        self._session.turn_active = False
        self._session.time_remaining = self.turn_duration
        self._deck.rebuild(self._deck.card_ids, phase=next_phase)

        # Entry writes from the finished phase are superseded by the reset.
        self._pending_entries.clear()
        self._write_session(phase=next_phase)
        self._enqueue(self._persist_reset)
        self._publish(Delta(
            phase=next_phase,
            turn_active=False,
            time_remaining=self.turn_duration,
        ))
        self._state = TurnPhase.TURN_READY
        logger.info("Session %s advanced to phase %d", self.session_id, next_phase)

    def _finish(self) -> None:
        self._stop_clock()
        self._session.turn_active = False
        self._session.finished = True
        self._state = TurnPhase.SESSION_FINISHED
        self._write_session(finished=True)
        self._publish(Delta(finished=True, turn_active=False))
        logger.info("Session %s finished", self.session_id)

    # -- Inbound deltas ----------------------------------------------------

    def _on_delta(self, envelope: DeltaEnvelope) -> None:
        """Broadcast callback. Stale and invalid deltas are dropped."""
        try:
            self._apply_remote(envelope)
        except StaleDelta as exc:
            logger.debug("Dropped stale delta: %s", exc)
        except InvalidDelta as exc:
            logger.warning("Dropped invalid delta: %s", exc)

    def _apply_remote(self, envelope: DeltaEnvelope) -> None:
        if envelope.session_id != self.session_id:
            raise StaleDelta(f"Delta for foreign session {envelope.session_id}.", envelope.session_id)
        if self._left or self._state in (TurnPhase.AWAITING_START, TurnPhase.SESSION_FINISHED):
            raise StaleDelta(
                f"Session {self.session_id} is not active locally ({self._state.name}).",
                self.session_id,
            )

        delta = envelope.delta
        try:
            validate_delta(delta, self.turn_duration, self.max_phase)
        except ValueError as exc:
            raise InvalidDelta(str(exc), self.session_id) from exc

        changed = apply_delta(self._session, delta)
        self._reconcile(changed, delta)
        if changed or delta.resolved_card is not None:
            self._notify()

    def _reconcile(self, changed: tuple[str, ...], delta: Delta) -> None:
        """Re-derive the state machine after a merge."""
        if "finished" in changed:
            self._stop_clock()
            self._session.turn_active = False
            self._state = TurnPhase.SESSION_FINISHED
            logger.info("Session %s finished by a peer", self.session_id)
            return

        if "phase" in changed:
            self._deck.rebuild(self._deck.card_ids, phase=self._session.phase)
            self._pending_entries.clear()
        elif delta.resolved_card is not None and delta.resolved_phase == self._session.phase:
            # A resolve from an earlier phase must not empty the rebuilt deck.
            self._deck.discard(delta.resolved_card)

        if self._session.turn_active:
            if "turn_active" in changed or ("time_remaining" in changed and not self._owns_clock):
                self._follow_remote_clock()
            self._state = TurnPhase.TURN_ACTIVE
            return

        if self._clock.active:
            self._stop_clock()
        if "phase" in changed or "active_team" in changed:
            self._state = TurnPhase.TURN_READY
        elif "turn_active" in changed:
            self._state = TurnPhase.TURN_ENDED

    async def _poll_loop(self, interval: float) -> None:
        """Feed the persisted session row in as a delta, periodically."""
        while not self._left:
            await asyncio.sleep(interval)
            seq = self._write_seq
            try:
                stored = await self._gateway.get_session(self.session_id, self.turn_duration)
            except TransientStoreError as exc:
                logger.warning("Polling error for session %s: %s", self.session_id, exc)
                continue
            except Exception:
                logger.exception("Polling error for session %s", self.session_id)
                continue
            # The row may predate local writes that have not landed yet.
            if self._inflight_writes or self._pending_fields or seq != self._write_seq:
                logger.debug("Skipping poll of session %s: local writes pending", self.session_id)
                continue
            self._on_delta(DeltaEnvelope(
                session_id=self.session_id,
                delta=Delta(
                    scores=stored.scores,
                    active_team=stored.active_team,
                    phase=stored.phase,
                    finished=stored.finished or None,
                ),
            ))

    # -- Outbound ----------------------------------------------------------

    def _publish(self, delta: Delta) -> None:
        try:
            self._channel.publish(self.session_id, delta)
        except Exception:
            logger.exception("Error publishing delta on session %s", self.session_id)

    def _start_writer(self) -> None:
        if self._writer is None:
            self._writes = asyncio.Queue()
            self._writer = asyncio.get_running_loop().create_task(
                self._write_loop(), name=f"writer-{self.session_id[:8]}"
            )

    def _stop_writer(self) -> None:
        if self._writer is not None:
            self._writer.cancel()
        self._writer = None
        self._writes = None
        self._inflight_writes = 0

    async def _write_loop(self) -> None:
        assert self._writes is not None
        while True:
            op = await self._writes.get()
            try:
                await op()
            except Exception:
                logger.exception("Unexpected error writing session %s", self.session_id)
            finally:
                self._inflight_writes -= 1
                self._writes.task_done()

    def _enqueue(self, op: Callable[[], Awaitable[None]]) -> None:
        if self._writes is None:
            logger.warning("Write dropped on session %s: not joined", self.session_id)
            return
        self._inflight_writes += 1
        self._write_seq += 1
        self._writes.put_nowait(op)

    def _field_value(self, name: str) -> Any:
        if name == "scores":
            return dict(self._session.scores)
        return getattr(self._session, name)

    def _write_session(self, **fields: Any) -> None:
        """Queue a partial session write, folding in earlier failed fields."""
        for name in self._pending_fields:
            fields.setdefault(name, self._field_value(name))
        self._pending_fields.clear()
        if not fields:
            return

        async def op() -> None:
            try:
                await self._gateway.update_session(self.session_id, **fields)
            except TransientStoreError as exc:
                self._pending_fields.update(fields)
                logger.warning(
                    "Store write of %s failed for session %s: %s",
                    ", ".join(sorted(fields)), self.session_id, exc,
                )

        self._enqueue(op)

    def _write_entries(self, entries: dict[str, CardStatus]) -> None:
        """Queue deck entry writes, folding in earlier failed ones."""
        entries = {**self._pending_entries, **entries}
        self._pending_entries.clear()
        if not entries:
            return
        phase = self._session.phase

        async def op() -> None:
            for card_id, status in entries.items():
                try:
                    await self._gateway.update_deck_entry(self.session_id, card_id, status)
                except TransientStoreError as exc:
                    if self._session.phase == phase:
                        self._pending_entries.setdefault(card_id, status)
                    logger.warning(
                        "Store write of card %s failed for session %s: %s",
                        card_id, self.session_id, exc,
                    )

        self._enqueue(op)

    async def _persist_reset(self) -> None:
        """Reset every deck entry, then re-mark cards already resolved locally."""
        try:
            await self._gateway.reset_deck_entries(self.session_id, CardStatus.IN_DECK)
        except TransientStoreError as exc:
            self._pending_reset = True
            logger.warning("Deck reset failed for session %s: %s", self.session_id, exc)
            return
        self._pending_reset = False

        resolved = {
            card_id: CardStatus.RESOLVED
            for card_id in self._deck.card_ids
            if self._deck.is_resolved(card_id)
        }
        for card_id, status in resolved.items():
            try:
                await self._gateway.update_deck_entry(self.session_id, card_id, status)
            except TransientStoreError as exc:
                self._pending_entries.setdefault(card_id, status)
                logger.warning(
                    "Store write of card %s failed for session %s: %s",
                    card_id, self.session_id, exc,
                )

    def _retry_pending(self) -> None:
        """Re-queue writes that failed earlier. Runs on every user action."""
        if self._pending_reset:
            self._pending_reset = False
            self._enqueue(self._persist_reset)
        if self._pending_fields:
            self._write_session()
        if self._pending_entries:
            self._write_entries({})


async def connect_session(
    session_id: str,
    settings: Settings | None = None,
) -> SyncCoordinator:
    """Build a coordinator wired to Supabase and join the session.

    Args:
        session_id: UUID of the session to join.
        settings: Overrides the environment settings.

    Returns:
        The joined coordinator.
    """
    settings = settings or get_settings()
    client = await get_supabase_client()
    coordinator = SyncCoordinator(
        session_id,
        PersistenceGateway(client),
        BroadcastChannel(client),
        turn_duration=settings.turn_duration,
        tick_interval=settings.tick_interval,
        max_phase=settings.max_phase,
        tick_broadcast_every=settings.tick_broadcast_every,
    )
    await coordinator.join()
    return coordinator
