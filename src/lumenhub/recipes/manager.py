"""RecipeManager: lifecycle of recipes and their supervisor tasks.

For every started recipe a supervisor task consumes the trigger's fire
stream. Each firing publishes a TriggerFired event and runs the action
in its own task, so a slow action never delays the next firing. Failed
actions are logged and dropped.

Usage:
    recipe = system.recipes.unmarshal_new_recipe({
        "name": "Porch on at dusk",
        "trigger": {"type": "cron", "ingredients": {"expression": "30 19 * * *"}},
        "action": {"type": "zone_turn_on", "ingredients": {"zoneId": porch.id}},
    })
    await system.recipes.register_and_start(recipe)
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Iterable

from ..events.models import TriggerFired
from ..exceptions import RecipeNotFoundError, RecipeUnmarshalError
from .cookbook import CORE_COOKBOOK, CookBook
from .ingredients import Ingredient
from .recipe import RECIPE_VERSION, Recipe

if TYPE_CHECKING:
    from ..system.registry import RegistrySnapshot
    from ..system.system import System

logger = logging.getLogger(__name__)


class RecipeManager:
    """Owns the live set of recipes for a System."""

    def __init__(
        self,
        system: "System",
        cookbooks: Iterable[CookBook] | None = None,
        action_timeout: float | None = None,
    ):
        """Initialize the manager.

        Args:
            system: Owning system (processor, registry, event bus)
            cookbooks: Template catalogs (default: the core cookbook)
            action_timeout: Seconds an action may run (None = no limit)
        """
        self._system = system
        self._action_timeout = action_timeout
        self._cookbooks: dict[str, CookBook] = {}
        for cookbook in cookbooks if cookbooks is not None else [CORE_COOKBOOK]:
            self.add_cookbook(cookbook)
        self._recipes: dict[str, Recipe] = {}
        self._supervisors: dict[str, asyncio.Task] = {}
        self._actions: set[asyncio.Task] = set()

    # ==================== CookBooks ====================

    def add_cookbook(self, cookbook: CookBook) -> None:
        if cookbook.id in self._cookbooks:
            logger.warning(f"Replacing cookbook '{cookbook.id}'")
        self._cookbooks[cookbook.id] = cookbook

    @property
    def cookbooks(self) -> list[CookBook]:
        return list(self._cookbooks.values())

    def cookbook_by_id(self, cookbook_id: str) -> CookBook | None:
        return self._cookbooks.get(cookbook_id)

    # ==================== Lookup ====================

    @property
    def recipes(self) -> list[Recipe]:
        """All recipes, sorted by name."""
        return sorted(self._recipes.values(), key=lambda r: r.name.lower())

    def recipe_by_id(self, recipe_id: str) -> Recipe | None:
        return self._recipes.get(recipe_id)

    def is_running(self, recipe_id: str) -> bool:
        task = self._supervisors.get(recipe_id)
        return task is not None and not task.done()

    @property
    def active_actions(self) -> int:
        return len(self._actions)

    # ==================== Unmarshal ====================

    def unmarshal_new_recipe(self, data: Any) -> Recipe:
        """Build a recipe from its serialized description.

        Expected shape:
            {"id"?, "name", "description"?, "enabled"?, "version"?,
             "trigger": {"type", "ingredients": {...}},
             "action": {"type", "ingredients": {...}}}

        Raises:
            RecipeUnmarshalError: Identifying the offending field
        """
        if not isinstance(data, dict):
            raise RecipeUnmarshalError(
                "recipe", RecipeUnmarshalError.INVALID, "Recipe must be an object"
            )

        name = data.get("name")
        if not name:
            raise RecipeUnmarshalError(
                "name", RecipeUnmarshalError.REQUIRED, "Recipe name is required"
            )
        if not isinstance(name, str):
            raise RecipeUnmarshalError(
                "name", RecipeUnmarshalError.INVALID, "Recipe name must be a string"
            )

        enabled = data.get("enabled", True)
        if not isinstance(enabled, bool):
            raise RecipeUnmarshalError(
                "enabled", RecipeUnmarshalError.INVALID, "enabled must be true or false"
            )

        snapshot = self._system.registry.snapshot()
        trigger = self._unmarshal_part(data, "trigger", snapshot)
        action = self._unmarshal_part(data, "action", snapshot)
        trigger.set_enabled(enabled)

        kwargs: dict[str, Any] = {}
        if data.get("id"):
            kwargs["id"] = str(data["id"])
        return Recipe(
            name=name,
            trigger=trigger,
            action=action,
            description=str(data.get("description") or ""),
            version=str(data.get("version") or RECIPE_VERSION),
            **kwargs,
        )

    def _unmarshal_part(self, data: dict, part: str, snapshot: "RegistrySnapshot") -> Any:
        section = data.get(part)
        if section is None:
            raise RecipeUnmarshalError(
                part, RecipeUnmarshalError.REQUIRED, f"Recipe {part} is required"
            )
        if not isinstance(section, dict):
            raise RecipeUnmarshalError(
                part, RecipeUnmarshalError.INVALID, f"Recipe {part} must be an object"
            )

        type_id = section.get("type")
        if not type_id:
            raise RecipeUnmarshalError(
                f"{part}.type", RecipeUnmarshalError.REQUIRED, f"{part} type is required"
            )
        template = self._find_template(part, type_id)
        if template is None:
            raise RecipeUnmarshalError(
                f"{part}.type",
                RecipeUnmarshalError.UNKNOWN,
                f"No cookbook provides a {part} of type '{type_id}'",
            )

        raw = section.get("ingredients") or {}
        if not isinstance(raw, dict):
            raise RecipeUnmarshalError(
                f"{part}.ingredients",
                RecipeUnmarshalError.INVALID,
                f"{part} ingredients must be an object",
            )
        declared = {i.id for i in template.ingredients}
        for key in raw:
            if key not in declared:
                raise RecipeUnmarshalError(
                    key,
                    RecipeUnmarshalError.UNKNOWN,
                    f"'{key}' is not an ingredient of {part} '{type_id}'",
                )

        values = {
            i.id: self._parse_ingredient(i, raw.get(i.id), snapshot)
            for i in template.ingredients
        }
        try:
            return template.from_ingredients(values)
        except (ValueError, TypeError) as e:
            raise RecipeUnmarshalError(part, RecipeUnmarshalError.INVALID, str(e)) from e

    def _find_template(self, part: str, type_id: str) -> Any:
        for cookbook in self._cookbooks.values():
            found = cookbook.trigger(type_id) if part == "trigger" else cookbook.action(type_id)
            if found is not None:
                return found
        return None

    @staticmethod
    def _parse_ingredient(
        ingredient: Ingredient, value: Any, snapshot: "RegistrySnapshot"
    ) -> Any:
        if value is None or value == "":
            if ingredient.required and ingredient.default is None:
                raise RecipeUnmarshalError(
                    ingredient.id,
                    RecipeUnmarshalError.REQUIRED,
                    f"{ingredient.name} is required",
                )
            return ingredient.default

        try:
            parsed = ingredient.parse(value)
        except ValueError as e:
            raise RecipeUnmarshalError(
                ingredient.id,
                RecipeUnmarshalError.INVALID,
                f"{ingredient.name}: {e}",
            ) from e

        kind = ingredient.reference_kind
        if kind is not None:
            table = {
                "zone": snapshot.zones,
                "scene": snapshot.scenes,
                "device": snapshot.devices,
            }[kind]
            if parsed not in table:
                raise RecipeUnmarshalError(
                    ingredient.id,
                    RecipeUnmarshalError.INVALID,
                    f"{ingredient.name}: unknown {kind} '{parsed}'",
                )
        return parsed

    # ==================== Lifecycle ====================

    def register(self, recipe: Recipe) -> None:
        """Add a recipe to the live set and start it if enabled.

        A trigger that fails to start leaves the recipe unregistered.

        Raises:
            ValueError: If a recipe with the same id is registered
        """
        if recipe.id in self._recipes:
            raise ValueError(f"Recipe already registered: {recipe.id}")
        recipe.trigger.attach(self._system)
        if recipe.enabled:
            self._start(recipe)
        self._recipes[recipe.id] = recipe
        logger.info(
            f"Registered recipe '{recipe.name}' ({recipe.id}), "
            f"{'enabled' if recipe.enabled else 'disabled'}"
        )

    def restore(self, items: Iterable[dict[str, Any]]) -> list[Recipe]:
        """Unmarshal and register persisted recipes at startup (no save)."""
        restored = []
        for item in items:
            recipe = self.unmarshal_new_recipe(item)
            self.register(recipe)
            restored.append(recipe)
        if restored:
            logger.info(f"Restored {len(restored)} recipe(s)")
        return restored

    async def register_and_start(self, recipe: Recipe) -> None:
        """Register a new recipe, then persist.

        Raises:
            PersistenceError: If the mutation observer fails
        """
        self.register(recipe)
        await self._system.save(self)

    async def enable_recipe(self, recipe_id: str, enabled: bool) -> Recipe:
        """Enable or disable a recipe, then persist. Idempotent.

        Firings are suppressed before this returns when disabling.

        Raises:
            RecipeNotFoundError: If the id is unknown
            PersistenceError: If the mutation observer fails
        """
        recipe = self._get(recipe_id)
        recipe.trigger.set_enabled(enabled)
        if enabled and not recipe.trigger.started:
            self._start(recipe)
        logger.info(f"Recipe '{recipe.name}' {'enabled' if enabled else 'disabled'}")
        await self._system.save(self)
        return recipe

    async def delete_recipe(self, recipe_id: str) -> Recipe:
        """Stop and remove a recipe, then persist.

        Raises:
            RecipeNotFoundError: If the id is unknown
            PersistenceError: If the mutation observer fails
        """
        recipe = self._get(recipe_id)
        recipe.trigger.stop()
        supervisor = self._supervisors.pop(recipe_id, None)
        if supervisor is not None:
            await supervisor
        del self._recipes[recipe_id]
        logger.info(f"Deleted recipe '{recipe.name}' ({recipe_id})")
        await self._system.save(self)
        return recipe

    async def stop(self) -> None:
        """Stop every trigger and wait for supervisors and running actions."""
        for recipe in self._recipes.values():
            recipe.trigger.stop()
        if self._supervisors:
            await asyncio.gather(*self._supervisors.values(), return_exceptions=True)
            self._supervisors.clear()
        if self._actions:
            await asyncio.gather(*self._actions, return_exceptions=True)
        logger.info("Recipe manager stopped")

    def to_list(self) -> list[dict[str, Any]]:
        """Serialized recipes for persistence."""
        return [r.to_dict() for r in self.recipes]

    # ==================== Runtime ====================

    def _get(self, recipe_id: str) -> Recipe:
        recipe = self._recipes.get(recipe_id)
        if recipe is None:
            raise RecipeNotFoundError(recipe_id)
        return recipe

    def _start(self, recipe: Recipe) -> None:
        stream, _done = recipe.trigger.start()
        self._supervisors[recipe.id] = asyncio.get_running_loop().create_task(
            self._supervise(recipe, stream)
        )

    async def _supervise(self, recipe: Recipe, stream: AsyncIterator[dict[str, Any]]) -> None:
        logger.debug(f"Supervisor for recipe '{recipe.name}' started")
        async for data in stream:
            # Firings queued before a disable are dropped here
            if not recipe.enabled:
                continue
            self._system.events.publish(
                TriggerFired(
                    recipe_id=recipe.id,
                    recipe_name=recipe.name,
                    trigger_type=recipe.trigger.type_id,
                    data=data,
                )
            )
            task = asyncio.get_running_loop().create_task(self._run_action(recipe))
            self._actions.add(task)
            task.add_done_callback(self._actions.discard)
        logger.debug(f"Supervisor for recipe '{recipe.name}' exited")

    async def _run_action(self, recipe: Recipe) -> None:
        try:
            if self._action_timeout is not None:
                await asyncio.wait_for(
                    recipe.action.execute(self._system), self._action_timeout
                )
            else:
                await recipe.action.execute(self._system)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Recipe '{recipe.name}' action {recipe.action.type_id} failed: {e}")
