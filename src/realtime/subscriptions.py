"""
Swipe Arena - Broadcast Channel

Best-effort publish/subscribe of session deltas over Supabase Realtime
broadcast. Runs on the caller's asyncio loop; publishing never waits for
delivery.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

from supabase import AsyncClient

from src.engine.base import Delta
from src.engine.errors import InvalidDelta
from src.realtime.events import DELTA_EVENT, DeltaEnvelope, decode_delta, encode_delta, session_topic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Subscription:
    """Handle returned by ``BroadcastChannel.subscribe``."""

    session_id: str
    channel: Any


class BroadcastChannel:
    """Manages one Supabase Realtime broadcast channel per session.

    Delivery, ordering and deduplication are not guaranteed. Callbacks run on
    the event loop that owns the realtime connection.
    """

    def __init__(self, client: AsyncClient) -> None:
        self._client = client
        self._channels: dict[str, Any] = {}
        self._sends: set[asyncio.Task] = set()

    async def subscribe(
        self,
        session_id: str,
        on_delta: Callable[[DeltaEnvelope], None],
    ) -> Subscription:
        """Listen for deltas published on a session's topic.

        Args:
            session_id: Session to watch.
            on_delta: Callback receiving each decoded delta.

        Returns:
            Handle to pass to ``unsubscribe``.
        """
        if session_id in self._channels:
            logger.warning("Already subscribed to session %s", session_id)
            return Subscription(session_id, self._channels[session_id])

        channel = self._client.realtime.channel(session_topic(session_id))
        channel.on_broadcast(
            DELTA_EVENT,
            lambda message: self._handle_message(message, session_id, on_delta),
        )
        await channel.subscribe(
            callback=lambda state, err: self._on_subscribe_state(state, err, session_id)
        )

        self._channels[session_id] = channel
        logger.info("Subscribed to session %s", session_id)
        return Subscription(session_id, channel)

    def publish(self, session_id: str, delta: Delta) -> None:
        """Send a delta to every other subscriber. Fire-and-forget."""
        channel = self._channels.get(session_id)
        if channel is None:
            logger.debug("Not subscribed to session %s; delta not sent", session_id)
            return

        payload = encode_delta(session_id, delta)
        task = asyncio.get_running_loop().create_task(
            channel.send_broadcast(DELTA_EVENT, payload)
        )
        self._sends.add(task)
        task.add_done_callback(self._on_sent)

    def _on_sent(self, task: asyncio.Task) -> None:
        self._sends.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Broadcast send failed: %s", exc)

    def _handle_message(
        self,
        message: dict[str, Any],
        session_id: str,
        on_delta: Callable[[DeltaEnvelope], None],
    ) -> None:
        """Decode a broadcast message and dispatch it."""
        try:
            payload = message.get("payload", message)
            envelope = decode_delta(payload)
        except InvalidDelta as exc:
            logger.warning("Dropping malformed delta on session %s: %s", session_id, exc)
            return
        except Exception:
            logger.exception("Error decoding delta on session %s", session_id)
            return

        try:
            on_delta(envelope)
        except Exception:
            logger.exception("Error handling delta on session %s", session_id)

    def _on_subscribe_state(
        self, state: Any, error: Exception | None, session_id: str
    ) -> None:
        """Log subscription state changes."""
        if error:
            logger.error("Subscription error for session %s: %s", session_id, error)
        else:
            logger.debug("Channel for session %s state: %s", session_id, state)

    async def unsubscribe(self, handle: Subscription) -> None:
        """Stop listening on a session's topic."""
        channel = self._channels.pop(handle.session_id, None)
        if channel is None:
            return

        try:
            await channel.unsubscribe()
            await self._client.realtime.remove_channel(channel)
        except Exception:
            logger.exception("Error unsubscribing from session %s", handle.session_id)

        logger.info("Unsubscribed from session %s", handle.session_id)

    async def unsubscribe_all(self) -> None:
        """Unsubscribe from every session."""
        for session_id, channel in list(self._channels.items()):
            await self.unsubscribe(Subscription(session_id, channel))

    @property
    def active_subscriptions(self) -> list[str]:
        """Return list of session IDs with active subscriptions."""
        return list(self._channels.keys())

    async def shutdown(self) -> None:
        """Flush in-flight sends and drop every channel."""
        if self._sends:
            await asyncio.gather(*self._sends, return_exceptions=True)
        await self.unsubscribe_all()
