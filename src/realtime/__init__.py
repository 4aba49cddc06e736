"""
Swipe Arena Real-time Sync.

Broadcast subscriptions and turn coordination for multi-device sessions.
"""

from src.realtime.events import DeltaEnvelope, SyncEvent
from src.realtime.subscriptions import BroadcastChannel, Subscription
from src.realtime.sync_manager import SyncCoordinator, connect_session

__all__ = [
    "BroadcastChannel",
    "DeltaEnvelope",
    "Subscription",
    "SyncCoordinator",
    "SyncEvent",
    "connect_session",
]
