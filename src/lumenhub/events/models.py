"""Event types published on the hub event bus."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar


class OutcomeStatus(Enum):
    """Whether a command reached the device successfully."""

    OK = "Ok"
    FAILED = "Failed"


class ConnectionState(Enum):
    """State transitions reported by connection pools."""

    CONNECTED = "connected"  # New connection dialed
    DIAL_FAILED = "dial_failed"  # Dial raised or timed out
    DISCARDED = "discarded"  # Unhealthy connection closed
    CLOSED = "closed"  # Pool shut down


@dataclass(frozen=True)
class Event:
    """Base class for everything published on the EventBus."""

    event_type: ClassVar[str] = "event"

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary for UI streams."""
        return {"type": self.event_type}


@dataclass(frozen=True)
class CommandOutcome(Event):
    """Result of attempting one command.

    Published once per ticket, in completion order (not enqueue order).
    """

    event_type: ClassVar[str] = "command_outcome"

    ticket: str
    command_kind: str
    target_device_id: str | None
    status: OutcomeStatus
    error_kind: Any = None  # lumenhub.exceptions.ErrorKind
    message: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)
    parent_ticket: str | None = None  # Set for scene constituents

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "ticket": self.ticket,
            "commandKind": self.command_kind,
            "targetDeviceId": self.target_device_id,
            "status": self.status.value,
            "errorKind": self.error_kind.value if self.error_kind else None,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "parentTicket": self.parent_ticket,
        }


@dataclass(frozen=True)
class TriggerFired(Event):
    """A recipe trigger fired and its action was scheduled."""

    event_type: ClassVar[str] = "trigger_fired"

    recipe_id: str
    recipe_name: str
    trigger_type: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "recipeId": self.recipe_id,
            "recipeName": self.recipe_name,
            "triggerType": self.trigger_type,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ConnectionStateChanged(Event):
    """A hub connection pool opened, lost or closed a connection."""

    event_type: ClassVar[str] = "connection_state"

    pool: str
    state: ConnectionState
    message: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "pool": self.pool,
            "state": self.state.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
