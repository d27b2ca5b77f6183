"""Data model for the device registry.

Devices form a two-level tree: hubs own a connection descriptor, and
child devices reference their hub by id. Zones, buttons and sensors are
features of a device. Scenes are named, ordered lists of commands.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from ..commands.models import Command, command_from_dict, command_to_dict


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class FeatureType(Enum):
    """Kinds of device features."""

    ZONE = "zone"
    BUTTON = "button"
    SENSOR = "sensor"


class ZoneType(Enum):
    """What a zone controls."""

    LIGHT = "light"
    SHADE = "shade"
    SWITCH = "switch"
    UNKNOWN = "unknown"


class OutputType(Enum):
    """Whether a zone can dim or only switch."""

    CONTINUOUS = "continuous"
    BINARY = "binary"


@dataclass(frozen=True)
class ConnectionInfo:
    """How to reach a hub.

    ``network`` selects a vendor network driver (e.g. "lutron") that wraps
    the generic ``protocol`` driver with a login handshake. When absent,
    the protocol name is used as the driver kind.
    """

    address: str
    protocol: str = "tcp"
    network: str | None = None
    auth_token: str | None = field(default=None, repr=False)

    @property
    def driver_kind(self) -> str:
        return self.network or self.protocol

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "protocol": self.protocol,
            "network": self.network,
            "authToken": self.auth_token,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConnectionInfo":
        return cls(
            address=data["address"],
            protocol=data.get("protocol", "tcp"),
            network=data.get("network"),
            auth_token=data.get("authToken"),
        )


@dataclass
class Feature:
    """Something addressable on a device (zone, button, sensor)."""

    feature_type: ClassVar[FeatureType]

    address: str
    name: str = ""
    description: str = ""
    device_id: str = ""
    id: str = field(default_factory=lambda: _new_id("feat"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.feature_type.value,
            "address": self.address,
            "name": self.name,
            "description": self.description,
            "deviceId": self.device_id,
        }


@dataclass
class Zone(Feature):
    """An output channel, typically a light or shade."""

    feature_type: ClassVar[FeatureType] = FeatureType.ZONE

    zone_type: ZoneType = ZoneType.LIGHT
    output: OutputType = OutputType.CONTINUOUS
    id: str = field(default_factory=lambda: _new_id("zone"))

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(zoneType=self.zone_type.value, output=self.output.value)
        return data


@dataclass
class Button(Feature):
    """A keypad or remote button."""

    feature_type: ClassVar[FeatureType] = FeatureType.BUTTON

    id: str = field(default_factory=lambda: _new_id("btn"))


@dataclass
class Sensor(Feature):
    """A readable value exposed by a device."""

    feature_type: ClassVar[FeatureType] = FeatureType.SENSOR

    attribute: str = ""
    id: str = field(default_factory=lambda: _new_id("sensor"))

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["attribute"] = self.attribute
        return data


_FEATURE_TYPES: dict[str, type[Feature]] = {
    FeatureType.ZONE.value: Zone,
    FeatureType.BUTTON.value: Button,
    FeatureType.SENSOR.value: Sensor,
}


def feature_from_dict(data: dict[str, Any]) -> Feature:
    """Create a feature from a dictionary produced by Feature.to_dict."""
    cls = _FEATURE_TYPES.get(data.get("type", ""))
    if cls is None:
        raise ValueError(f"Unknown feature type: {data.get('type')}")
    kwargs: dict[str, Any] = {
        "id": data["id"],
        "address": data["address"],
        "name": data.get("name", ""),
        "description": data.get("description", ""),
        "device_id": data.get("deviceId", ""),
    }
    if cls is Zone:
        kwargs["zone_type"] = ZoneType(data.get("zoneType", ZoneType.LIGHT.value))
        kwargs["output"] = OutputType(data.get("output", OutputType.CONTINUOUS.value))
    elif cls is Sensor:
        kwargs["attribute"] = data.get("attribute", "")
    return cls(**kwargs)


@dataclass
class Device:
    """A physical device.

    A device with no ``hub_id`` is a hub: it carries the connection
    descriptor and every command for it or its children is written to
    its connection pool. A device with a ``hub_id`` is a child of that hub.

    Devices are treated as values by the registry: edits replace the
    device in a new snapshot rather than mutating a shared instance.
    """

    name: str
    model_number: str = ""
    address: str = ""  # Local address on the hub, e.g. a Lutron integration id
    hub_id: str | None = None
    connection: ConnectionInfo | None = None
    local_id: str = ""
    description: str = ""
    features: list[Feature] = field(default_factory=list)
    id: str = field(default_factory=lambda: _new_id("dev"))

    def __post_init__(self) -> None:
        for feature in self.features:
            if not feature.device_id:
                feature.device_id = self.id

    @property
    def is_hub(self) -> bool:
        return self.hub_id is None

    @property
    def zones(self) -> list[Zone]:
        return [f for f in self.features if isinstance(f, Zone)]

    @property
    def buttons(self) -> list[Button]:
        return [f for f in self.features if isinstance(f, Button)]

    @property
    def sensors(self) -> list[Sensor]:
        return [f for f in self.features if isinstance(f, Sensor)]

    def feature(self, feature_type: FeatureType, address: str) -> Feature | None:
        """Find a feature by type and local address."""
        for f in self.features:
            if f.feature_type == feature_type and f.address == address:
                return f
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "localId": self.local_id,
            "name": self.name,
            "description": self.description,
            "modelNumber": self.model_number,
            "address": self.address,
            "hubId": self.hub_id,
            "connection": self.connection.to_dict() if self.connection else None,
            "features": [f.to_dict() for f in self.features],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Device":
        connection = data.get("connection")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            model_number=data.get("modelNumber", ""),
            address=data.get("address", ""),
            hub_id=data.get("hubId"),
            connection=ConnectionInfo.from_dict(connection) if connection else None,
            local_id=data.get("localId", ""),
            description=data.get("description", ""),
            features=[feature_from_dict(f) for f in data.get("features", [])],
        )


@dataclass
class Scene:
    """A named, ordered list of commands.

    Scenes may contain SceneSet commands; expansion is recursive and a
    scene already on the expansion path is skipped.
    """

    name: str
    commands: list[Command] = field(default_factory=list)
    description: str = ""
    id: str = field(default_factory=lambda: _new_id("scene"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "commands": [command_to_dict(c) for c in self.commands],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Scene":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            description=data.get("description", ""),
            commands=[command_from_dict(c) for c in data.get("commands", [])],
        )
