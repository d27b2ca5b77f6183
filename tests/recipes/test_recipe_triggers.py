"""Tests for recipe triggers, ingredients and cookbooks."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from lumenhub.events import CommandOutcome, OutcomeStatus, TriggerFired
from lumenhub.exceptions import ConfigurationError, ErrorKind
from lumenhub.recipes import (
    CORE_COOKBOOK,
    CronTrigger,
    EventTrigger,
    Ingredient,
    IngredientType,
    IntervalTrigger,
    TimeTrigger,
    ZoneTurnOnAction,
    parse_filter,
    serialize_value,
)


async def drain(stream, timeout: float = 2.0) -> list[dict]:
    async def collect() -> list[dict]:
        return [item async for item in stream]

    return await asyncio.wait_for(collect(), timeout)


async def first(stream) -> dict:
    async for item in stream:
        return item
    raise AssertionError("stream ended without firing")


class TestTimeTrigger:
    """Tests for one-shot time triggers."""

    @pytest.mark.asyncio
    async def test_fires_once_after_delay(self):
        trigger = TimeTrigger(after=0.01)
        stream, done = trigger.start()

        firings = await drain(stream)

        assert len(firings) == 1
        assert "firedAt" in firings[0]
        assert done.is_set()
        assert trigger.fire_count == 1

    @pytest.mark.asyncio
    async def test_past_time_fires_immediately(self):
        trigger = TimeTrigger(at=datetime.now() - timedelta(minutes=5))
        stream, _ = trigger.start()

        assert len(await drain(stream, timeout=0.5)) == 1

    @pytest.mark.asyncio
    async def test_aware_time(self):
        """Times with a UTC offset are scheduled in their own zone."""
        trigger = TimeTrigger(at=datetime.now(timezone.utc) + timedelta(milliseconds=20))
        stream, _ = trigger.start()

        firings = await drain(stream)

        assert len(firings) == 1
        assert firings[0]["firedAt"].endswith("+00:00")

    @pytest.mark.asyncio
    async def test_failed_start_can_be_retried(self):
        class Flaky(TimeTrigger):
            attempts = 0

            def _on_start(self) -> None:
                type(self).attempts += 1
                if self.attempts == 1:
                    raise RuntimeError("clock unavailable")
                super()._on_start()

        trigger = Flaky(after=0.01)
        with pytest.raises(RuntimeError):
            trigger.start()
        assert not trigger.started

        stream, _ = trigger.start()
        assert len(await drain(stream)) == 1

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_firing(self):
        trigger = TimeTrigger(after=10)
        stream, done = trigger.start()

        trigger.stop()

        assert await drain(stream) == []
        assert done.is_set()

    def test_requires_at_or_after(self):
        with pytest.raises(ValueError):
            TimeTrigger()

    def test_to_dict_omits_unset(self):
        assert TimeTrigger(after=30).to_dict() == {
            "type": "time",
            "ingredients": {"after": 30},
        }


class TestIntervalTrigger:
    """Tests for repeating interval triggers."""

    @pytest.mark.asyncio
    async def test_count_limits_firings(self):
        trigger = IntervalTrigger(seconds=0.01, count=3)
        stream, done = trigger.start()

        assert len(await drain(stream)) == 3
        assert done.is_set()

    @pytest.mark.asyncio
    async def test_disabled_trigger_is_silent(self):
        trigger = IntervalTrigger(seconds=0.01)
        trigger.set_enabled(False)
        trigger.start()

        await asyncio.sleep(0.05)
        trigger.stop()

        assert trigger.fire_count == 0

    @pytest.mark.asyncio
    async def test_start_twice_fails(self):
        trigger = IntervalTrigger(seconds=60)
        trigger.start()

        with pytest.raises(RuntimeError):
            trigger.start()
        trigger.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        trigger = IntervalTrigger(seconds=60)
        stream, done = trigger.start()

        trigger.stop()
        trigger.stop()

        assert await drain(stream) == []
        assert done.is_set()

    def test_stop_before_start(self):
        trigger = IntervalTrigger(seconds=60)
        trigger.stop()

        assert trigger.stopped
        assert not trigger.started

    def test_seconds_must_be_positive(self):
        with pytest.raises(ValueError):
            IntervalTrigger(seconds=0)


class TestCronTrigger:
    """Tests for cron schedule triggers."""

    def test_next_run(self):
        trigger = CronTrigger("0 7 * * 1-5")

        # 2024-01-06 is a Saturday
        assert trigger.next_run(datetime(2024, 1, 6, 12, 0)) == datetime(2024, 1, 8, 7, 0)
        assert trigger.next_run(datetime(2024, 1, 8, 6, 59)) == datetime(2024, 1, 8, 7, 0)

    def test_invalid_expression(self):
        with pytest.raises(ValueError, match="invalid cron"):
            CronTrigger("every morning")

    @pytest.mark.asyncio
    async def test_stop_ends_stream(self):
        trigger = CronTrigger("* * * * *")
        stream, done = trigger.start()

        trigger.stop()

        assert await drain(stream) == []
        assert done.is_set()


class TestEventTrigger:
    """Tests for event bus triggers."""

    @pytest.mark.asyncio
    async def test_fires_on_matching_event(self, system):
        trigger = EventTrigger("command_outcome", "status=Failed, errorKind=Overloaded")
        trigger.attach(system)
        stream, _ = trigger.start()

        for ticket, status, kind in [
            ("cmd_ok", OutcomeStatus.OK, None),
            ("cmd_busy", OutcomeStatus.FAILED, ErrorKind.OVERLOADED),
        ]:
            system.events.publish(
                CommandOutcome(
                    ticket=ticket,
                    command_kind="zone_turn_on",
                    target_device_id="h1",
                    status=status,
                    error_kind=kind,
                )
            )

        data = await asyncio.wait_for(first(stream), 2)
        trigger.stop()

        assert data["ticket"] == "cmd_busy"
        assert trigger.fire_count == 1

    @pytest.mark.asyncio
    async def test_requires_system(self):
        with pytest.raises(ConfigurationError):
            EventTrigger("command_outcome").start()

    def test_other_event_types_ignored(self):
        trigger = EventTrigger("trigger_fired")
        outcome = CommandOutcome(
            ticket="cmd_1",
            command_kind="zone_turn_on",
            target_device_id=None,
            status=OutcomeStatus.OK,
        )

        assert not trigger.matches(outcome)

    def test_event_recipe_firings_ignored(self):
        trigger = EventTrigger("trigger_fired")

        def fired(trigger_type: str) -> TriggerFired:
            return TriggerFired(recipe_id="r1", recipe_name="Porch", trigger_type=trigger_type)

        assert trigger.matches(fired("cron"))
        assert not trigger.matches(fired("event"))


class TestFilters:
    """Tests for key=value event filters."""

    def test_parse_filter(self):
        assert parse_filter("status=Failed, commandKind = scene_set") == {
            "status": "Failed",
            "commandKind": "scene_set",
        }
        assert parse_filter("") == {}

    @pytest.mark.parametrize("text", ["status", "=Failed", "a=1,b"])
    def test_malformed_filter(self, text):
        with pytest.raises(ValueError):
            parse_filter(text)


class TestIngredients:
    """Tests for ingredient parsing."""

    @pytest.mark.parametrize(
        "kind,raw,expected",
        [
            (IngredientType.INTEGER, "5", 5),
            (IngredientType.INTEGER, 4.0, 4),
            (IngredientType.FLOAT, 3, 3.0),
            (IngredientType.FLOAT, " 2.5 ", 2.5),
            (IngredientType.BOOLEAN, "TRUE", True),
            (IngredientType.BOOLEAN, False, False),
            (IngredientType.DATETIME, "2024-05-01T19:30:00", datetime(2024, 5, 1, 19, 30)),
            (
                IngredientType.DATETIME,
                "2024-05-01T19:30:00+02:00",
                datetime(2024, 5, 1, 19, 30, tzinfo=timezone(timedelta(hours=2))),
            ),
            (IngredientType.ZONE_ID, "zone_1", "zone_1"),
        ],
    )
    def test_parse(self, kind, raw, expected):
        assert Ingredient("x", "X", kind).parse(raw) == expected

    @pytest.mark.parametrize(
        "kind,raw",
        [
            (IngredientType.INTEGER, 2.5),
            (IngredientType.INTEGER, True),
            (IngredientType.FLOAT, "abc"),
            (IngredientType.FLOAT, None),
            (IngredientType.BOOLEAN, "yes"),
            (IngredientType.STRING, 12),
            (IngredientType.DATETIME, "tomorrow"),
        ],
    )
    def test_parse_rejects(self, kind, raw):
        with pytest.raises(ValueError):
            Ingredient("x", "X", kind).parse(raw)

    def test_validator_runs_after_parse(self):
        def even(value: int) -> None:
            if value % 2:
                raise ValueError("must be even")

        ingredient = Ingredient("n", "N", IngredientType.INTEGER, validator=even)

        assert ingredient.parse("4") == 4
        with pytest.raises(ValueError, match="even"):
            ingredient.parse("3")

    def test_reference_kind(self):
        assert Ingredient("z", "Z", IngredientType.ZONE_ID).reference_kind == "zone"
        assert Ingredient("s", "S", IngredientType.STRING).reference_kind is None

    def test_serialize_value(self):
        assert serialize_value(datetime(2024, 1, 1, 8)) == "2024-01-01T08:00:00"
        assert serialize_value(7) == 7


class TestCookBook:
    """Tests for the core cookbook catalog."""

    def test_lookup(self):
        assert CORE_COOKBOOK.trigger("cron") is CronTrigger
        assert CORE_COOKBOOK.action("zone_turn_on") is ZoneTurnOnAction
        assert CORE_COOKBOOK.trigger("sunset") is None
        assert CORE_COOKBOOK.action("send_email") is None

    def test_to_dict_lists_templates(self):
        data = CORE_COOKBOOK.to_dict()

        assert data["id"] == "core"
        assert [t["type"] for t in data["triggers"]] == ["time", "interval", "cron", "event"]
        level = next(a for a in data["actions"] if a["type"] == "zone_set_level")
        assert [i["id"] for i in level["ingredients"]] == ["zoneId", "level"]
        assert level["ingredients"][0]["type"] == "zone_id"
