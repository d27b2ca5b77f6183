"""CookBooks: catalogs of trigger and action templates."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .actions import (
    Action,
    ButtonPressAction,
    ButtonReleaseAction,
    SceneSetAction,
    ZoneSetLevelAction,
    ZoneTurnOffAction,
    ZoneTurnOnAction,
)
from .triggers import CronTrigger, EventTrigger, IntervalTrigger, TimeTrigger, Trigger


@dataclass
class CookBook:
    """A named set of trigger and action templates offered to recipe authors."""

    id: str
    name: str
    description: str = ""
    logo_url: str = ""
    triggers: list[type[Trigger]] = field(default_factory=list)
    actions: list[type[Action]] = field(default_factory=list)

    def trigger(self, type_id: str) -> type[Trigger] | None:
        for cls in self.triggers:
            if cls.type_id == type_id:
                return cls
        return None

    def action(self, type_id: str) -> type[Action] | None:
        for cls in self.actions:
            if cls.type_id == type_id:
                return cls
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "logoUrl": self.logo_url,
            "triggers": [t.template() for t in self.triggers],
            "actions": [a.template() for a in self.actions],
        }


CORE_COOKBOOK = CookBook(
    id="core",
    name="Core",
    description="Time, schedule and event triggers; zone, scene and button actions",
    triggers=[TimeTrigger, IntervalTrigger, CronTrigger, EventTrigger],
    actions=[
        ZoneSetLevelAction,
        ZoneTurnOnAction,
        ZoneTurnOffAction,
        SceneSetAction,
        ButtonPressAction,
        ButtonReleaseAction,
    ],
)
