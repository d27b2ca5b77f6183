"""Hub event types and the in-process event bus."""

from .models import (
    Event,
    CommandOutcome,
    OutcomeStatus,
    TriggerFired,
    ConnectionStateChanged,
    ConnectionState,
)
from .bus import EventBus, Subscription

__all__ = [
    # Models
    "Event",
    "CommandOutcome",
    "OutcomeStatus",
    "TriggerFired",
    "ConnectionStateChanged",
    "ConnectionState",
    # Bus
    "EventBus",
    "Subscription",
]
