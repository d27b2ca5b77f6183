"""Logical commands: what a caller wants to happen, independent of wire format.

Commands are a closed set of frozen dataclasses so the dispatcher and
builders can match them exhaustively. Each carries denormalized
identifiers (zone address, owning device) which the processor fills in
from a registry snapshot when a caller leaves them empty.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Union

if TYPE_CHECKING:
    from ..system.models import Device, Scene, Zone


class CommandKind(Enum):
    """Wire-independent command variants."""

    ZONE_SET_LEVEL = "zone_set_level"
    ZONE_TURN_ON = "zone_turn_on"
    ZONE_TURN_OFF = "zone_turn_off"
    BUTTON_PRESS = "button_press"
    BUTTON_RELEASE = "button_release"
    SCENE_SET = "scene_set"


@dataclass(frozen=True)
class ZoneSetLevel:
    """Set a zone's output level (0-100)."""

    kind: ClassVar[CommandKind] = CommandKind.ZONE_SET_LEVEL

    zone_id: str
    level: float
    zone_address: str = ""
    device_id: str = ""
    zone_name: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= float(self.level) <= 100.0:
            raise ValueError(f"level must be within [0, 100], got {self.level}")

    @classmethod
    def for_zone(cls, zone: "Zone", level: float) -> "ZoneSetLevel":
        return cls(
            zone_id=zone.id,
            level=level,
            zone_address=zone.address,
            device_id=zone.device_id,
            zone_name=zone.name,
        )


@dataclass(frozen=True)
class ZoneTurnOn:
    """Turn a zone fully on; equivalent to ZoneSetLevel(level=100)."""

    kind: ClassVar[CommandKind] = CommandKind.ZONE_TURN_ON

    zone_id: str
    zone_address: str = ""
    device_id: str = ""
    zone_name: str = ""

    @classmethod
    def for_zone(cls, zone: "Zone") -> "ZoneTurnOn":
        return cls(zone.id, zone.address, zone.device_id, zone.name)


@dataclass(frozen=True)
class ZoneTurnOff:
    """Turn a zone off; equivalent to ZoneSetLevel(level=0)."""

    kind: ClassVar[CommandKind] = CommandKind.ZONE_TURN_OFF

    zone_id: str
    zone_address: str = ""
    device_id: str = ""
    zone_name: str = ""

    @classmethod
    def for_zone(cls, zone: "Zone") -> "ZoneTurnOff":
        return cls(zone.id, zone.address, zone.device_id, zone.name)


@dataclass(frozen=True)
class ButtonPress:
    """Press a button on a keypad or remote."""

    kind: ClassVar[CommandKind] = CommandKind.BUTTON_PRESS

    device_id: str
    button_address: str
    device_address: str = ""

    @classmethod
    def for_device(cls, device: "Device", button_address: str) -> "ButtonPress":
        return cls(device.id, button_address, device.address)


@dataclass(frozen=True)
class ButtonRelease:
    """Release a previously pressed button."""

    kind: ClassVar[CommandKind] = CommandKind.BUTTON_RELEASE

    device_id: str
    button_address: str
    device_address: str = ""

    @classmethod
    def for_device(cls, device: "Device", button_address: str) -> "ButtonRelease":
        return cls(device.id, button_address, device.address)


@dataclass(frozen=True)
class SceneSet:
    """Activate a scene; fans out into the scene's commands."""

    kind: ClassVar[CommandKind] = CommandKind.SCENE_SET

    scene_id: str
    scene_name: str = ""

    @classmethod
    def for_scene(cls, scene: "Scene") -> "SceneSet":
        return cls(scene.id, scene.name)


Command = Union[ZoneSetLevel, ZoneTurnOn, ZoneTurnOff, ButtonPress, ButtonRelease, SceneSet]

ZONE_COMMANDS = (ZoneSetLevel, ZoneTurnOn, ZoneTurnOff)
BUTTON_COMMANDS = (ButtonPress, ButtonRelease)

_COMMAND_TYPES: dict[str, type] = {
    cls.kind.value: cls
    for cls in (ZoneSetLevel, ZoneTurnOn, ZoneTurnOff, ButtonPress, ButtonRelease, SceneSet)
}


def command_to_dict(command: Command) -> dict[str, Any]:
    """Convert a command to a dictionary for persistence (e.g. inside scenes)."""
    data: dict[str, Any] = {"kind": command.kind.value}
    data.update(command.__dict__)
    return data


def command_from_dict(data: dict[str, Any]) -> Command:
    """Create a command from a dictionary produced by command_to_dict.

    Raises:
        ValueError: If the kind is unknown or fields are invalid
    """
    values = dict(data)
    kind = values.pop("kind", None)
    cls = _COMMAND_TYPES.get(kind)
    if cls is None:
        raise ValueError(f"Unknown command kind: {kind}")
    try:
        return cls(**values)
    except TypeError as e:
        raise ValueError(f"Invalid fields for {kind}: {e}") from e


@dataclass(frozen=True)
class Ticket:
    """Handle identifying one enqueued command."""

    id: str = field(default_factory=lambda: f"cmd_{uuid.uuid4().hex[:12]}")
    command_kind: str = ""
    parent: str | None = None

    @classmethod
    def for_command(cls, command: Command, parent: str | None = None) -> "Ticket":
        return cls(command_kind=command.kind.value, parent=parent)

    def __str__(self) -> str:
        return self.id
