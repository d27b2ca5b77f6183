"""Recipe engine: user-defined trigger/action automations.

Key components:
- Ingredient: Typed parameter of a trigger or action template
- Trigger: Event source producing a stream of firings
- Action: Command emitter run once per firing
- CookBook: Catalog of trigger and action templates
- Recipe: One trigger coupled with one action
- RecipeManager: Registers, enables, deletes and supervises recipes
"""

from .ingredients import Ingredient, IngredientType, serialize_value
from .triggers import (
    Trigger,
    TimeTrigger,
    IntervalTrigger,
    CronTrigger,
    EventTrigger,
    parse_filter,
)
from .actions import (
    Action,
    CommandAction,
    ZoneSetLevelAction,
    ZoneTurnOnAction,
    ZoneTurnOffAction,
    SceneSetAction,
    ButtonPressAction,
    ButtonReleaseAction,
)
from .cookbook import CookBook, CORE_COOKBOOK
from .recipe import Recipe, RECIPE_VERSION
from .manager import RecipeManager

__all__ = [
    # Ingredients
    "Ingredient",
    "IngredientType",
    "serialize_value",
    # Triggers
    "Trigger",
    "TimeTrigger",
    "IntervalTrigger",
    "CronTrigger",
    "EventTrigger",
    "parse_filter",
    # Actions
    "Action",
    "CommandAction",
    "ZoneSetLevelAction",
    "ZoneTurnOnAction",
    "ZoneTurnOffAction",
    "SceneSetAction",
    "ButtonPressAction",
    "ButtonReleaseAction",
    # CookBooks
    "CookBook",
    "CORE_COOKBOOK",
    # Recipes
    "Recipe",
    "RECIPE_VERSION",
    "RecipeManager",
]
