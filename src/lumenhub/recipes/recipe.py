"""Recipe: a user-owned trigger/action automation."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from .actions import Action
from .triggers import Trigger

RECIPE_VERSION = "1"


@dataclass
class Recipe:
    """Couples one Trigger with one Action.

    The enabled flag lives on the trigger so disabling takes effect at
    the event source.
    """

    name: str
    trigger: Trigger
    action: Action
    description: str = ""
    id: str = field(default_factory=lambda: f"recipe_{uuid.uuid4().hex[:12]}")
    version: str = RECIPE_VERSION

    @property
    def enabled(self) -> bool:
        return self.trigger.enabled

    def to_dict(self) -> dict[str, Any]:
        """Serialized form accepted by RecipeManager.unmarshal_new_recipe."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "enabled": self.enabled,
            "version": self.version,
            "trigger": self.trigger.to_dict(),
            "action": self.action.to_dict(),
        }
