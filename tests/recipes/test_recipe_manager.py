"""Tests for RecipeManager lifecycle, unmarshalling and persistence."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from lumenhub.events import TriggerFired
from lumenhub.exceptions import PersistenceError, RecipeNotFoundError, RecipeUnmarshalError
from lumenhub.recipes import (
    CookBook,
    EventTrigger,
    IntervalTrigger,
    Recipe,
    TimeTrigger,
    ZoneSetLevelAction,
    ZoneTurnOnAction,
)
from lumenhub.testing import CallbackAction, ManualTrigger


async def eventually(predicate, timeout: float = 2.0) -> None:
    """Poll until predicate() is true or fail after timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


def hourly(action: dict, **extra) -> dict:
    return {
        "name": "Hourly",
        "trigger": {"type": "interval", "ingredients": {"seconds": 3600}},
        "action": action,
        **extra,
    }


class TestRecipeRuntime:
    """Tests for firing, enabling and disabling recipes."""

    @pytest.mark.asyncio
    async def test_disable_stops_action_until_reenabled(self, system):
        """Five firings run the action five times; disabled firings do nothing."""
        trigger = ManualTrigger()
        action = CallbackAction()
        recipe = Recipe(name="Counter", trigger=trigger, action=action)
        system.recipes.register(recipe)

        for _ in range(5):
            assert trigger.fire()
        await eventually(lambda: action.count == 5)

        await system.recipes.enable_recipe(recipe.id, False)
        for _ in range(5):
            assert not trigger.fire()
        await asyncio.sleep(0.05)

        assert action.count == 5
        assert not recipe.enabled

        await system.recipes.enable_recipe(recipe.id, True)
        assert trigger.fire()
        await eventually(lambda: action.count == 6)

    @pytest.mark.asyncio
    async def test_queued_firings_dropped_after_disable(self, system):
        trigger = ManualTrigger()
        action = CallbackAction()
        recipe = Recipe(name="Burst", trigger=trigger, action=action)
        system.recipes.register(recipe)

        for _ in range(3):
            trigger.fire()
        # Disable before the supervisor gets a chance to run
        await system.recipes.enable_recipe(recipe.id, False)
        await asyncio.sleep(0.05)

        assert action.count == 0

    @pytest.mark.asyncio
    async def test_enable_is_idempotent(self, system):
        recipe = Recipe(name="Twice", trigger=ManualTrigger(), action=CallbackAction())
        system.recipes.register(recipe)

        await system.recipes.enable_recipe(recipe.id, True)
        await system.recipes.enable_recipe(recipe.id, True)

        assert recipe.enabled
        assert system.recipes.is_running(recipe.id)

    @pytest.mark.asyncio
    async def test_firing_publishes_trigger_event(self, system):
        sub = system.events.subscribe(TriggerFired)
        trigger = ManualTrigger()
        recipe = Recipe(name="Porch", trigger=trigger, action=CallbackAction())
        system.recipes.register(recipe)

        trigger.fire({"source": "test"})
        event = await sub.get(timeout=2)

        assert event.recipe_id == recipe.id
        assert event.trigger_type == "manual"
        assert event.data == {"source": "test"}

    @pytest.mark.asyncio
    async def test_failed_action_does_not_stop_recipe(self, system):
        trigger = ManualTrigger()
        action = CallbackAction(fail_with=RuntimeError("no such light"))
        recipe = Recipe(name="Flaky", trigger=trigger, action=action)
        system.recipes.register(recipe)

        trigger.fire()
        trigger.fire()
        await eventually(lambda: action.count == 2)

        assert system.recipes.is_running(recipe.id)

    @pytest.mark.asyncio
    async def test_slow_action_does_not_delay_next_firing(self, system):
        release = asyncio.Event()

        async def block(_system) -> None:
            await release.wait()

        trigger = ManualTrigger()
        action = CallbackAction(callback=block)
        system.recipes.register(Recipe(name="Slow", trigger=trigger, action=action))

        trigger.fire()
        trigger.fire()
        await eventually(lambda: action.count == 2)
        assert system.recipes.active_actions == 2

        release.set()
        await eventually(lambda: system.recipes.active_actions == 0)

    @pytest.mark.asyncio
    async def test_command_action_reaches_device(self, system, hub, builder):
        trigger = ManualTrigger()
        system.recipes.register(
            Recipe(name="Lights on", trigger=trigger, action=ZoneTurnOnAction("h1-z1"))
        )

        trigger.fire()
        await eventually(lambda: len(builder.calls) == 1)

        assert builder.calls == [("set_level", 100.0, "1")]

    @pytest.mark.asyncio
    async def test_finished_trigger_ends_supervisor(self, system):
        trigger = ManualTrigger()
        recipe = Recipe(name="Once", trigger=trigger, action=CallbackAction())
        system.recipes.register(recipe)

        trigger.finish()
        await eventually(lambda: not system.recipes.is_running(recipe.id))

    @pytest.mark.asyncio
    async def test_disabled_recipe_starts_on_enable(self, system):
        trigger = ManualTrigger()
        trigger.set_enabled(False)
        recipe = Recipe(name="Later", trigger=trigger, action=CallbackAction())
        system.recipes.register(recipe)

        assert not system.recipes.is_running(recipe.id)

        await system.recipes.enable_recipe(recipe.id, True)

        assert system.recipes.is_running(recipe.id)

    @pytest.mark.asyncio
    async def test_stop_ends_all_supervisors(self, system):
        recipes = [
            Recipe(name=f"R{i}", trigger=ManualTrigger(), action=CallbackAction())
            for i in range(3)
        ]
        for recipe in recipes:
            system.recipes.register(recipe)

        await system.recipes.stop()

        assert not any(system.recipes.is_running(r.id) for r in recipes)
        assert all(r.trigger.stopped for r in recipes)

    @pytest.mark.asyncio
    async def test_aware_time_recipe(self, system):
        at = datetime.now(timezone.utc) + timedelta(milliseconds=50)
        action = CallbackAction()
        recipe = Recipe(name="Sunrise", trigger=TimeTrigger(at=at), action=action)

        system.recipes.register(recipe)

        assert system.recipes.recipe_by_id(recipe.id) is recipe
        await eventually(lambda: action.count == 1)

    @pytest.mark.asyncio
    async def test_trigger_start_failure_leaves_recipe_unregistered(self, system):
        class Unplugged(ManualTrigger):
            def _on_start(self) -> None:
                raise RuntimeError("sensor offline")

        recipe = Recipe(name="Motion", trigger=Unplugged(), action=CallbackAction())

        with pytest.raises(RuntimeError):
            system.recipes.register(recipe)

        assert system.recipes.recipe_by_id(recipe.id) is None
        assert not recipe.trigger.started
        assert not system.recipes.is_running(recipe.id)

    @pytest.mark.asyncio
    async def test_trigger_fired_recipes_do_not_loop(self, system):
        """Event recipes on trigger_fired fire once per outside firing."""
        first, second = CallbackAction(), CallbackAction()
        system.recipes.register(
            Recipe(name="Echo", trigger=EventTrigger("trigger_fired"), action=first)
        )
        system.recipes.register(
            Recipe(name="Echo again", trigger=EventTrigger("trigger_fired"), action=second)
        )
        await asyncio.sleep(0.01)

        system.events.publish(
            TriggerFired(recipe_id="porch", recipe_name="Porch", trigger_type="cron")
        )
        await eventually(lambda: first.count == 1 and second.count == 1)
        await asyncio.sleep(0.1)

        assert (first.count, second.count) == (1, 1)
        assert system.recipes.active_actions == 0


class TestRecipeRegistry:
    """Tests for register/delete bookkeeping."""

    @pytest.mark.asyncio
    async def test_recipes_sorted_by_name(self, system):
        for name in ("porch", "Attic", "kitchen"):
            system.recipes.register(
                Recipe(name=name, trigger=ManualTrigger(), action=CallbackAction())
            )

        assert [r.name for r in system.recipes.recipes] == ["Attic", "kitchen", "porch"]

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, system):
        recipe = Recipe(name="One", trigger=ManualTrigger(), action=CallbackAction())
        system.recipes.register(recipe)

        with pytest.raises(ValueError):
            system.recipes.register(
                Recipe(name="Two", trigger=ManualTrigger(), action=CallbackAction(), id=recipe.id)
            )

    @pytest.mark.asyncio
    async def test_delete_stops_and_removes(self, system):
        trigger = ManualTrigger()
        recipe = Recipe(name="Gone", trigger=trigger, action=CallbackAction())
        system.recipes.register(recipe)

        deleted = await system.recipes.delete_recipe(recipe.id)

        assert deleted is recipe
        assert trigger.stopped
        assert system.recipes.recipe_by_id(recipe.id) is None
        assert not system.recipes.is_running(recipe.id)

    @pytest.mark.asyncio
    async def test_unknown_recipe(self, system):
        with pytest.raises(RecipeNotFoundError):
            await system.recipes.enable_recipe("recipe_missing", True)
        with pytest.raises(RecipeNotFoundError):
            await system.recipes.delete_recipe("recipe_missing")


class TestRecipePersistence:
    """Tests for saves through the mutation observer."""

    @pytest.mark.asyncio
    async def test_mutations_are_saved(self, system, observer):
        system.bind_observer(observer)
        recipe = Recipe(name="Saved", trigger=ManualTrigger(), action=CallbackAction())

        await system.recipes.register_and_start(recipe)
        assert observer.saves[-1][0]["name"] == "Saved"
        assert observer.saves[-1][0]["enabled"] is True

        await system.recipes.enable_recipe(recipe.id, False)
        assert observer.saves[-1][0]["enabled"] is False

        await system.recipes.delete_recipe(recipe.id)
        assert observer.saves[-1] == []
        assert len(observer.saves) == 3

    @pytest.mark.asyncio
    async def test_failed_save_surfaces(self, system, failing_observer):
        system.bind_observer(failing_observer)
        recipe = Recipe(name="Unsaved", trigger=ManualTrigger(), action=CallbackAction())
        system.recipes.register(recipe)

        with pytest.raises(PersistenceError):
            await system.recipes.enable_recipe(recipe.id, False)

        # The in-memory change stands
        assert not recipe.enabled

    @pytest.mark.asyncio
    async def test_restore_does_not_save(self, system, hub, observer):
        system.bind_observer(observer)

        restored = system.recipes.restore(
            [hourly({"type": "zone_turn_on", "ingredients": {"zoneId": "h1-z1"}}, id="r1")]
        )

        assert [r.id for r in restored] == ["r1"]
        assert system.recipes.is_running("r1")
        assert observer.saves == []


class TestUnmarshal:
    """Tests for unmarshal_new_recipe validation."""

    @pytest.mark.asyncio
    async def test_valid_recipe(self, system, hub):
        recipe = system.recipes.unmarshal_new_recipe(
            {
                "name": "Dim at night",
                "description": "Kitchen to 30%",
                "trigger": {"type": "cron", "ingredients": {"expression": "0 22 * * *"}},
                "action": {
                    "type": "zone_set_level",
                    "ingredients": {"zoneId": "h1-z1", "level": "30"},
                },
            }
        )

        assert recipe.name == "Dim at night"
        assert recipe.enabled
        assert recipe.trigger.expression == "0 22 * * *"
        assert isinstance(recipe.action, ZoneSetLevelAction)
        assert recipe.action.level == 30.0

    @pytest.mark.asyncio
    async def test_missing_zone_reports_param(self, system, hub):
        with pytest.raises(RecipeUnmarshalError) as exc_info:
            system.recipes.unmarshal_new_recipe(hourly({"type": "zone_turn_on"}))

        error = exc_info.value
        assert error.param_id == "zoneId"
        assert error.error_type == "required"
        assert error.to_dict()["paramId"] == "zoneId"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data,param_id,error_type",
        [
            ("not an object", "recipe", "invalid"),
            ({"trigger": {}, "action": {}}, "name", "required"),
            ({"name": 5}, "name", "invalid"),
            ({"name": "x", "enabled": "yes"}, "enabled", "invalid"),
            ({"name": "x"}, "trigger", "required"),
            ({"name": "x", "trigger": []}, "trigger", "invalid"),
            ({"name": "x", "trigger": {}}, "trigger.type", "required"),
            ({"name": "x", "trigger": {"type": "sunset"}}, "trigger.type", "unknown"),
            (
                {"name": "x", "trigger": {"type": "interval", "ingredients": ["seconds"]}},
                "trigger.ingredients",
                "invalid",
            ),
            (
                {"name": "x", "trigger": {"type": "interval", "ingredients": {"seconds": -1}}},
                "seconds",
                "invalid",
            ),
            (
                {"name": "x", "trigger": {"type": "cron", "ingredients": {"expression": "nope"}}},
                "expression",
                "invalid",
            ),
            (
                {"name": "x", "trigger": {"type": "time", "ingredients": {}}},
                "trigger",
                "invalid",
            ),
            (
                {"name": "x", "trigger": {"type": "event", "ingredients": {"eventType": "x", "filter": "bad"}}},
                "filter",
                "invalid",
            ),
        ],
    )
    async def test_invalid_descriptions(self, system, data, param_id, error_type):
        with pytest.raises(RecipeUnmarshalError) as exc_info:
            system.recipes.unmarshal_new_recipe(data)

        assert exc_info.value.param_id == param_id
        assert exc_info.value.error_type == error_type

    @pytest.mark.asyncio
    async def test_level_out_of_range(self, system, hub):
        with pytest.raises(RecipeUnmarshalError) as exc_info:
            system.recipes.unmarshal_new_recipe(
                hourly(
                    {"type": "zone_set_level", "ingredients": {"zoneId": "h1-z1", "level": 150}}
                )
            )

        assert exc_info.value.param_id == "level"
        assert exc_info.value.error_type == "invalid"

    @pytest.mark.asyncio
    async def test_zone_must_exist(self, system, hub):
        with pytest.raises(RecipeUnmarshalError) as exc_info:
            system.recipes.unmarshal_new_recipe(
                hourly({"type": "zone_turn_off", "ingredients": {"zoneId": "h1-z9"}})
            )

        assert exc_info.value.param_id == "zoneId"
        assert "unknown zone" in exc_info.value.description

    @pytest.mark.asyncio
    async def test_unknown_ingredient_key(self, system, hub):
        with pytest.raises(RecipeUnmarshalError) as exc_info:
            system.recipes.unmarshal_new_recipe(
                hourly({"type": "zone_turn_on", "ingredients": {"zoneId": "h1-z1", "lvl": 5}})
            )

        assert exc_info.value.param_id == "lvl"
        assert exc_info.value.error_type == "unknown"

    @pytest.mark.asyncio
    async def test_unknown_action_type(self, system):
        with pytest.raises(RecipeUnmarshalError) as exc_info:
            system.recipes.unmarshal_new_recipe(hourly({"type": "send_email"}))

        assert exc_info.value.param_id == "action.type"
        assert exc_info.value.error_type == "unknown"

    @pytest.mark.asyncio
    async def test_disabled_and_id_preserved(self, system, hub):
        recipe = system.recipes.unmarshal_new_recipe(
            hourly(
                {"type": "zone_turn_on", "ingredients": {"zoneId": "h1-z1"}},
                id="recipe_fixed",
                enabled=False,
            )
        )

        assert recipe.id == "recipe_fixed"
        assert not recipe.enabled

    @pytest.mark.asyncio
    async def test_serialized_form_reloads(self, system, hub):
        original = system.recipes.unmarshal_new_recipe(
            hourly({"type": "zone_turn_on", "ingredients": {"zoneId": "h1-z1"}})
        )

        reloaded = system.recipes.unmarshal_new_recipe(original.to_dict())

        assert reloaded.to_dict() == original.to_dict()
        assert isinstance(reloaded.trigger, IntervalTrigger)

    @pytest.mark.asyncio
    async def test_additional_cookbook(self, system):
        system.recipes.add_cookbook(
            CookBook(id="test", name="Test", triggers=[ManualTrigger], actions=[CallbackAction])
        )

        recipe = system.recipes.unmarshal_new_recipe(
            {"name": "Custom", "trigger": {"type": "manual"}, "action": {"type": "callback"}}
        )

        assert isinstance(recipe.trigger, ManualTrigger)
        assert system.recipes.cookbook_by_id("test") is not None
        assert len(system.recipes.cookbooks) == 2
