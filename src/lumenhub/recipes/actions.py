"""Recipe actions: command emitters invoked once per trigger firing."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from ..commands.models import (
    ButtonPress,
    ButtonRelease,
    Command,
    SceneSet,
    ZoneSetLevel,
    ZoneTurnOff,
    ZoneTurnOn,
)
from ..exceptions import CommandError
from .ingredients import Ingredient, IngredientType, serialize_value

if TYPE_CHECKING:
    from ..system.system import System


class Action(ABC):
    """Base class for recipe actions.

    ``execute`` runs to completion from the caller's point of view; the
    recipe engine runs each invocation in its own task.
    """

    type_id: ClassVar[str] = ""
    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    ingredients: ClassVar[tuple[Ingredient, ...]] = ()

    @classmethod
    @abstractmethod
    def from_ingredients(cls, values: dict[str, Any]) -> "Action":
        """Create an action from parsed ingredient values keyed by id."""
        ...

    def to_ingredients(self) -> dict[str, Any]:
        return {}

    @classmethod
    def template(cls) -> dict[str, Any]:
        return {
            "type": cls.type_id,
            "name": cls.name,
            "description": cls.description,
            "ingredients": [i.to_dict() for i in cls.ingredients],
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type_id,
            "ingredients": {
                k: serialize_value(v) for k, v in self.to_ingredients().items() if v is not None
            },
        }

    @abstractmethod
    async def execute(self, system: "System") -> None:
        """Perform the action.

        Raises:
            LumenError: If the action could not be completed
        """
        ...


class CommandAction(Action):
    """Action that submits one command and waits for its outcome."""

    @abstractmethod
    def command(self) -> Command:
        ...

    async def execute(self, system: "System") -> None:
        outcome = await system.processor.submit(self.command())
        if not outcome.ok:
            raise CommandError(
                outcome.message or f"{outcome.command_kind} failed",
                kind=outcome.error_kind,
            )


def _level_range(value: float) -> None:
    if not 0 <= value <= 100:
        raise ValueError("must be between 0 and 100")


_ZONE = Ingredient("zoneId", "Zone", IngredientType.ZONE_ID, "Zone to control")
_DEVICE = Ingredient("deviceId", "Device", IngredientType.DEVICE_ID, "Keypad or remote")
_BUTTON = Ingredient(
    "buttonAddress", "Button", IngredientType.STRING, "Button address on the device"
)


class ZoneSetLevelAction(CommandAction):
    type_id = "zone_set_level"
    name = "Set zone level"
    description = "Sets a zone to a level between 0 and 100"
    ingredients = (
        _ZONE,
        Ingredient(
            "level", "Level", IngredientType.FLOAT, "Level (0-100)", validator=_level_range
        ),
    )

    def __init__(self, zone_id: str, level: float):
        self.zone_id = zone_id
        self.level = level

    @classmethod
    def from_ingredients(cls, values: dict[str, Any]) -> "ZoneSetLevelAction":
        return cls(zone_id=values["zoneId"], level=values["level"])

    def to_ingredients(self) -> dict[str, Any]:
        return {"zoneId": self.zone_id, "level": self.level}

    def command(self) -> Command:
        return ZoneSetLevel(zone_id=self.zone_id, level=self.level)


class ZoneTurnOnAction(CommandAction):
    type_id = "zone_turn_on"
    name = "Turn zone on"
    description = "Turns a zone fully on"
    ingredients = (_ZONE,)

    def __init__(self, zone_id: str):
        self.zone_id = zone_id

    @classmethod
    def from_ingredients(cls, values: dict[str, Any]) -> "ZoneTurnOnAction":
        return cls(zone_id=values["zoneId"])

    def to_ingredients(self) -> dict[str, Any]:
        return {"zoneId": self.zone_id}

    def command(self) -> Command:
        return ZoneTurnOn(zone_id=self.zone_id)


class ZoneTurnOffAction(CommandAction):
    type_id = "zone_turn_off"
    name = "Turn zone off"
    description = "Turns a zone off"
    ingredients = (_ZONE,)

    def __init__(self, zone_id: str):
        self.zone_id = zone_id

    @classmethod
    def from_ingredients(cls, values: dict[str, Any]) -> "ZoneTurnOffAction":
        return cls(zone_id=values["zoneId"])

    def to_ingredients(self) -> dict[str, Any]:
        return {"zoneId": self.zone_id}

    def command(self) -> Command:
        return ZoneTurnOff(zone_id=self.zone_id)


class SceneSetAction(CommandAction):
    type_id = "scene_set"
    name = "Activate scene"
    description = "Runs every command in a scene"
    ingredients = (Ingredient("sceneId", "Scene", IngredientType.SCENE_ID, "Scene to activate"),)

    def __init__(self, scene_id: str):
        self.scene_id = scene_id

    @classmethod
    def from_ingredients(cls, values: dict[str, Any]) -> "SceneSetAction":
        return cls(scene_id=values["sceneId"])

    def to_ingredients(self) -> dict[str, Any]:
        return {"sceneId": self.scene_id}

    def command(self) -> Command:
        return SceneSet(scene_id=self.scene_id)


class ButtonPressAction(CommandAction):
    type_id = "button_press"
    name = "Press button"
    description = "Presses a keypad button"
    ingredients = (_DEVICE, _BUTTON)

    def __init__(self, device_id: str, button_address: str):
        self.device_id = device_id
        self.button_address = button_address

    @classmethod
    def from_ingredients(cls, values: dict[str, Any]) -> "ButtonPressAction":
        return cls(device_id=values["deviceId"], button_address=values["buttonAddress"])

    def to_ingredients(self) -> dict[str, Any]:
        return {"deviceId": self.device_id, "buttonAddress": self.button_address}

    def command(self) -> Command:
        return ButtonPress(device_id=self.device_id, button_address=self.button_address)


class ButtonReleaseAction(ButtonPressAction):
    type_id = "button_release"
    name = "Release button"
    description = "Releases a keypad button"

    def command(self) -> Command:
        return ButtonRelease(device_id=self.device_id, button_address=self.button_address)
