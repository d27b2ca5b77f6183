"""Recipe triggers: event sources that fire at arbitrary times.

A trigger is started once and produces a lazy stream of firings:

    stream, done = trigger.start()
    async for data in stream:
        ...            # one item per firing
    # done is set once the stream has ended

``set_enabled(False)`` suppresses firings at the source without tearing
down timers or subscriptions; ``stop()`` ends the stream cooperatively.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, AsyncIterator, ClassVar

from croniter import croniter

from ..events.bus import Subscription
from ..events.models import Event, TriggerFired
from ..exceptions import ConfigurationError
from .ingredients import Ingredient, IngredientType, serialize_value

if TYPE_CHECKING:
    from ..system.system import System

logger = logging.getLogger(__name__)

_STOP = object()


class Trigger(ABC):
    """Base class for recipe triggers.

    Subclasses declare their template (``type_id``, ``name``,
    ``ingredients``), build themselves in ``from_ingredients`` and start
    their timers or subscriptions in ``_on_start``. They report firings
    with ``_fire(data)`` and call ``_finish()`` when they will never fire
    again.
    """

    type_id: ClassVar[str] = ""
    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    ingredients: ClassVar[tuple[Ingredient, ...]] = ()

    def __init__(self) -> None:
        self._enabled = True
        self._queue: asyncio.Queue | None = None
        self._done = asyncio.Event()
        self._stopped = False
        self._system: "System | None" = None
        self.fire_count = 0

    # ==================== Template ====================

    @classmethod
    @abstractmethod
    def from_ingredients(cls, values: dict[str, Any]) -> "Trigger":
        """Create a trigger from parsed ingredient values keyed by id."""
        ...

    def to_ingredients(self) -> dict[str, Any]:
        """Ingredient values that recreate this trigger."""
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

    # ==================== Lifecycle ====================

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def started(self) -> bool:
        return self._queue is not None

    @property
    def stopped(self) -> bool:
        return self._stopped

    def set_enabled(self, enabled: bool) -> None:
        """Suppress (False) or resume (True) firings. Takes effect immediately."""
        self._enabled = enabled

    def attach(self, system: "System") -> None:
        """Give the trigger access to the system (event bus, registry)."""
        self._system = system

    def start(self) -> tuple[AsyncIterator[dict[str, Any]], asyncio.Event]:
        """Begin producing firings.

        Returns:
            (fire stream, done event set when the stream has ended)

        Raises:
            RuntimeError: If the trigger was already started
        """
        if self._queue is not None:
            raise RuntimeError(f"Trigger {self.type_id} already started")
        self._queue = asyncio.Queue()
        try:
            self._on_start()
        except BaseException:
            self._queue = None
            raise
        return self._stream(), self._done

    def stop(self) -> None:
        """End the fire stream. Safe to call more than once."""
        if self._stopped:
            return
        self._stopped = True
        if self._queue is None:
            self._done.set()
            return
        self._on_stop()
        self._queue.put_nowait(_STOP)

    async def _stream(self) -> AsyncIterator[dict[str, Any]]:
        try:
            while True:
                item = await self._queue.get()
                if item is _STOP:
                    return
                yield item
        finally:
            self._done.set()

    def _fire(self, data: dict[str, Any] | None = None) -> bool:
        """Emit one firing. Returns False if suppressed."""
        if self._stopped or self._queue is None or not self._enabled:
            return False
        self.fire_count += 1
        self._queue.put_nowait(dict(data or {}))
        return True

    def _finish(self) -> None:
        """No further firings are possible."""
        logger.debug(f"Trigger {self.type_id} finished after {self.fire_count} firing(s)")
        self.stop()

    def _on_start(self) -> None:
        pass

    def _on_stop(self) -> None:
        pass


class TimeTrigger(Trigger):
    """Fires once at a point in time (``at``) or after a delay (``after``)."""

    type_id = "time"
    name = "Time"
    description = "Fires once at a specific time"
    ingredients = (
        Ingredient("at", "At", IngredientType.DATETIME, "When to fire", required=False),
        Ingredient(
            "after", "After", IngredientType.FLOAT, "Seconds from start", required=False
        ),
    )

    def __init__(self, at: datetime | None = None, after: float | None = None):
        super().__init__()
        if at is None and after is None:
            raise ValueError("TimeTrigger needs 'at' or 'after'")
        self.at = at
        self.after = after
        self._handle: asyncio.TimerHandle | None = None

    @classmethod
    def from_ingredients(cls, values: dict[str, Any]) -> "TimeTrigger":
        return cls(at=values.get("at"), after=values.get("after"))

    def to_ingredients(self) -> dict[str, Any]:
        return {"at": self.at, "after": self.after}

    def _on_start(self) -> None:
        if self.at is not None:
            # Naive values are local time; aware ones compare in their own zone
            delay = (self.at - datetime.now(self.at.tzinfo)).total_seconds()
        else:
            delay = self.after
        delay = max(delay, 0.0)
        self._handle = asyncio.get_running_loop().call_later(delay, self._on_time)
        logger.debug(f"Time trigger scheduled to fire in {delay:.2f}s")

    def _on_time(self) -> None:
        self._handle = None
        tz = self.at.tzinfo if self.at is not None else None
        self._fire({"firedAt": datetime.now(tz).isoformat()})
        self._finish()

    def _on_stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


def _positive(value: float) -> None:
    if value <= 0:
        raise ValueError("must be greater than zero")


class IntervalTrigger(Trigger):
    """Fires every ``seconds``, optionally only ``count`` times."""

    type_id = "interval"
    name = "Interval"
    description = "Fires repeatedly at a fixed interval"
    ingredients = (
        Ingredient(
            "seconds", "Seconds", IngredientType.FLOAT, "Interval length", validator=_positive
        ),
        Ingredient(
            "count",
            "Count",
            IngredientType.INTEGER,
            "Stop after this many firings",
            required=False,
            validator=_positive,
        ),
    )

    def __init__(self, seconds: float, count: int | None = None):
        super().__init__()
        _positive(seconds)
        self.seconds = seconds
        self.count = count
        self._task: asyncio.Task | None = None

    @classmethod
    def from_ingredients(cls, values: dict[str, Any]) -> "IntervalTrigger":
        return cls(seconds=values["seconds"], count=values.get("count"))

    def to_ingredients(self) -> dict[str, Any]:
        return {"seconds": self.seconds, "count": self.count}

    def _on_start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        fired = 0
        while self.count is None or fired < self.count:
            await asyncio.sleep(self.seconds)
            if self._fire({"firedAt": datetime.now().isoformat()}):
                fired += 1
        self._finish()

    def _on_stop(self) -> None:
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()


def _valid_cron(expression: str) -> None:
    if not croniter.is_valid(expression):
        raise ValueError(f"invalid cron expression '{expression}'")


class CronTrigger(Trigger):
    """Fires on a 5-field cron schedule (e.g. ``"0 7 * * 1-5"``)."""

    type_id = "cron"
    name = "Schedule"
    description = "Fires on a cron schedule"
    ingredients = (
        Ingredient(
            "expression",
            "Cron expression",
            IngredientType.STRING,
            "Standard 5-field cron expression",
            validator=_valid_cron,
        ),
    )

    def __init__(self, expression: str):
        super().__init__()
        _valid_cron(expression)
        self.expression = expression
        self._task: asyncio.Task | None = None

    @classmethod
    def from_ingredients(cls, values: dict[str, Any]) -> "CronTrigger":
        return cls(expression=values["expression"])

    def to_ingredients(self) -> dict[str, Any]:
        return {"expression": self.expression}

    def next_run(self, base: datetime | None = None) -> datetime:
        return croniter(self.expression, base or datetime.now()).get_next(datetime)

    def _on_start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            due = self.next_run()
            delay = (due - datetime.now()).total_seconds()
            logger.debug(f"Cron trigger '{self.expression}' next fires at {due.isoformat()}")
            await asyncio.sleep(max(delay, 0.0))
            self._fire({"scheduledFor": due.isoformat()})
            # Step past the due minute so it does not fire twice
            await asyncio.sleep(max((due + timedelta(seconds=1) - datetime.now()).total_seconds(), 0))

    def _on_stop(self) -> None:
        if self._task is not None:
            self._task.cancel()


def parse_filter(text: str) -> dict[str, str]:
    """Parse ``"key=value,key2=value2"`` into a dict.

    Raises:
        ValueError: If a pair has no '='
    """
    result: dict[str, str] = {}
    for pair in filter(None, (p.strip() for p in text.split(","))):
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"expected key=value, got '{pair}'")
        result[key.strip()] = value.strip()
    return result


def _valid_filter(text: str) -> None:
    parse_filter(text)


class EventTrigger(Trigger):
    """Fires when a matching event is published on the system EventBus.

    The filter compares fields of the event's ``to_dict()`` form, e.g.
    ``"status=Failed,errorKind=TransportUnavailable"``.

    TriggerFired events published for event-triggered recipes never
    match, so recipes listening on ``trigger_fired`` cannot feed
    themselves or each other in a loop.
    """

    type_id = "event"
    name = "Event"
    description = "Fires when a matching hub event is published"
    ingredients = (
        Ingredient(
            "eventType",
            "Event type",
            IngredientType.STRING,
            "command_outcome, trigger_fired or connection_state",
        ),
        Ingredient(
            "filter",
            "Filter",
            IngredientType.STRING,
            "Comma separated key=value pairs the event must match",
            required=False,
            default="",
            validator=_valid_filter,
        ),
    )

    def __init__(self, event_type: str, event_filter: str = ""):
        super().__init__()
        self.event_type = event_type
        self.event_filter = event_filter
        self._match = parse_filter(event_filter)
        self._subscription: Subscription | None = None
        self._task: asyncio.Task | None = None

    @classmethod
    def from_ingredients(cls, values: dict[str, Any]) -> "EventTrigger":
        return cls(event_type=values["eventType"], event_filter=values.get("filter") or "")

    def to_ingredients(self) -> dict[str, Any]:
        return {"eventType": self.event_type, "filter": self.event_filter}

    def matches(self, event: Event) -> bool:
        if event.event_type != self.event_type:
            return False
        if isinstance(event, TriggerFired) and event.trigger_type == self.type_id:
            return False
        data = event.to_dict()
        return all(str(data.get(k)) == v for k, v in self._match.items())

    def _on_start(self) -> None:
        if self._system is None:
            raise ConfigurationError("EventTrigger must be attached to a system before start")
        self._subscription = self._system.events.subscribe(predicate=self.matches)
        self._task = asyncio.get_running_loop().create_task(self._run(self._subscription))

    async def _run(self, subscription: Subscription) -> None:
        async for event in subscription:
            self._fire(event.to_dict())

    def _on_stop(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
        if self._task is not None:
            self._task.cancel()
