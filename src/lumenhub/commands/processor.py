"""Command processor: ordered dispatch of logical commands to hubs.

Flow for each command:

    enqueue() -> intake queue -> dispatcher -> hub lane task
                                                 |- builder lookup + build
                                                 |- pool acquire (FIFO)
                                                 |- wait for previous command on the hub
                                                 |- emit, release
                                                 '- publish CommandOutcome

A single dispatcher pops the intake queue, resolves the target device
and hub from a registry snapshot, and starts one task per command on
the hub's lane. Lanes for different hubs run in parallel. Within a lane
connections are acquired in arrival order (pool waiters are FIFO) and
emitters run one after another, so commands to a hub complete in
enqueue order. Acquisition failures are reported as soon as they happen.

SceneSet commands are expanded by the dispatcher in one step, so the
i-th constituent reaches its lane before the (i+1)-th.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..config import ProcessorConfig
from ..events.bus import Subscription
from ..events.models import CommandOutcome, OutcomeStatus
from ..exceptions import (
    CommandError,
    ErrorKind,
    OverloadedError,
    ShutdownError,
    UnknownEntityError,
    UnsupportedError,
)
from .models import (
    BUTTON_COMMANDS,
    ZONE_COMMANDS,
    Command,
    SceneSet,
    Ticket,
)

if TYPE_CHECKING:
    from ..system.models import Device
    from ..system.registry import RegistrySnapshot
    from ..system.system import System

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass
class _WorkItem:
    """One command on its way through the processor."""

    ticket: Ticket
    command: Command
    acquire_timeout: float
    counted: bool = True  # Counts against intake_size (top-level commands)
    device: "Device | None" = None
    hub: "Device | None" = None
    children: list[asyncio.Future] = field(default_factory=list)

    @property
    def target_device_id(self) -> str | None:
        if self.device is not None:
            return self.device.id
        return getattr(self.command, "device_id", None) or None


class _HubLane:
    """Per-hub ordering state."""

    def __init__(self, hub_id: str):
        self.hub_id = hub_id
        self.tail: asyncio.Task | None = None


class CommandProcessor:
    """Serializes logical commands into the physical world.

    Example:
        processor = system.processor
        await processor.start()

        ticket = processor.enqueue(ZoneSetLevel(zone_id="zone_1", level=42.5))
        outcome = await processor.wait(ticket)
        if not outcome.ok:
            print(outcome.error_kind, outcome.message)

        await processor.shutdown()
    """

    def __init__(self, system: "System", config: ProcessorConfig | None = None):
        self._system = system
        self.config = config or ProcessorConfig()

        self._intake: asyncio.Queue | None = None
        self._dispatcher: asyncio.Task | None = None
        self._lanes: dict[str, _HubLane] = {}
        self._tasks: set[asyncio.Task] = set()
        self._futures: dict[str, asyncio.Future] = {}
        self._completed: OrderedDict[str, CommandOutcome] = OrderedDict()
        self._pending = 0
        self._idle: asyncio.Event | None = None
        self._running = False
        self._closing = False

    # ==================== Lifecycle ====================

    @property
    def running(self) -> bool:
        return self._running and not self._closing

    @property
    def pending(self) -> int:
        """Top-level commands enqueued but not yet completed."""
        return self._pending

    async def start(self) -> None:
        """Start the dispatcher. Idempotent."""
        if self._running:
            return
        if self._closing:
            raise ShutdownError("Command processor has been shut down")
        self._intake = asyncio.Queue()
        self._idle = asyncio.Event()
        self._idle.set()
        self._dispatcher = asyncio.create_task(self._dispatch_loop())
        self._running = True
        logger.info(f"Command processor started (intake size {self.config.intake_size})")

    async def shutdown(self, grace: float | None = None) -> None:
        """Stop accepting work and wind down.

        New enqueues are rejected with ShutdownError. Commands already
        accepted are dispatched and in-flight emitters run to completion
        (up to grace seconds), then every hub pool is closed. Anything
        still running after that is cancelled, so no task holds a
        connection when this returns.
        """
        if not self._running or self._closing:
            return
        self._closing = True
        grace = self._system.config.connections.shutdown_grace if grace is None else grace
        logger.info("Command processor shutting down")

        self._intake.put_nowait(_STOP)
        await self._dispatcher

        if self._tasks:
            _, still_running = await asyncio.wait(set(self._tasks), timeout=grace)
            if still_running:
                logger.warning(
                    f"{len(still_running)} command(s) still running after {grace}s grace"
                )

        await self._system.close_pools(grace)

        if self._tasks:
            for task in self._tasks:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)

        for ticket_id, future in list(self._futures.items()):
            if not future.done():
                future.set_result(
                    CommandOutcome(
                        ticket=ticket_id,
                        command_kind="",
                        target_device_id=None,
                        status=OutcomeStatus.FAILED,
                        error_kind=ErrorKind.SHUTDOWN,
                        message="Processor shut down before the command completed",
                    )
                )
        self._futures.clear()
        self._running = False
        logger.info("Command processor stopped")

    # ==================== Intake ====================

    def enqueue(self, command: Command, acquire_timeout: float | None = None) -> Ticket:
        """Accept a command for dispatch.

        Args:
            command: Command variant to execute
            acquire_timeout: Connection wait for this command (default from config)

        Returns:
            Ticket identifying the work item

        Raises:
            ShutdownError: If the processor is not running
            OverloadedError: If intake_size commands are already pending
        """
        if self._closing or not self._running:
            raise ShutdownError("Command processor is not accepting commands")
        if self._pending >= self.config.intake_size:
            raise OverloadedError(
                f"Command intake full ({self.config.intake_size} pending)"
            )

        ticket = Ticket.for_command(command)
        item = _WorkItem(
            ticket=ticket,
            command=command,
            acquire_timeout=(
                self.config.acquire_timeout if acquire_timeout is None else acquire_timeout
            ),
        )
        self._futures[ticket.id] = asyncio.get_running_loop().create_future()
        self._pending += 1
        self._idle.clear()
        self._intake.put_nowait(item)
        logger.debug(f"Enqueued {command.kind.value} as {ticket.id}")
        return ticket

    async def wait(self, ticket: Ticket | str, timeout: float | None = None) -> CommandOutcome:
        """Wait for a command's outcome.

        Raises:
            UnknownEntityError: If the ticket is unknown or its outcome expired
            asyncio.TimeoutError: If timeout elapses first
        """
        ticket_id = ticket.id if isinstance(ticket, Ticket) else ticket
        outcome = self._completed.get(ticket_id)
        if outcome is not None:
            return outcome
        future = self._futures.get(ticket_id)
        if future is None:
            raise UnknownEntityError("ticket", ticket_id)
        return await asyncio.wait_for(asyncio.shield(future), timeout)

    async def submit(
        self,
        command: Command,
        acquire_timeout: float | None = None,
        timeout: float | None = None,
    ) -> CommandOutcome:
        """Enqueue a command and wait for its outcome."""
        ticket = self.enqueue(command, acquire_timeout)
        return await self.wait(ticket, timeout)

    def subscribe(self, buffer: int | None = None) -> Subscription:
        """Stream of every CommandOutcome."""
        return self._system.events.subscribe(CommandOutcome, buffer=buffer)

    async def join(self) -> None:
        """Wait until every accepted command has completed."""
        if self._idle is None:
            return
        await self._idle.wait()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # ==================== Dispatcher ====================

    async def _dispatch_loop(self) -> None:
        while True:
            item = await self._intake.get()
            if item is _STOP:
                break
            try:
                self._dispatch(item, self._system.registry.snapshot())
            except Exception as e:
                logger.exception(f"Dispatch of {item.ticket.id} failed: {e}")
                self._complete(item, OutcomeStatus.FAILED, ErrorKind.INTERNAL, str(e))

    def _dispatch(self, item: _WorkItem, snapshot: "RegistrySnapshot") -> None:
        if isinstance(item.command, SceneSet):
            self._expand_scene(item, snapshot, frozenset())
            return

        try:
            item.command, item.device, item.hub = self._resolve(item.command, snapshot)
        except CommandError as e:
            self._complete(item, OutcomeStatus.FAILED, e.kind, e.message)
            return

        lane = self._lanes.get(item.hub.id)
        if lane is None:
            lane = self._lanes[item.hub.id] = _HubLane(item.hub.id)
        previous = lane.tail
        lane.tail = self._spawn(self._run(item, previous))

    def _resolve(
        self, command: Command, snapshot: "RegistrySnapshot"
    ) -> tuple[Command, "Device", "Device"]:
        """Find target device and hub, filling in denormalized fields."""
        if isinstance(command, ZONE_COMMANDS):
            zone = snapshot.zone(command.zone_id)
            device = snapshot.device(zone.device_id)
            command = dataclasses.replace(
                command,
                zone_address=command.zone_address or zone.address,
                device_id=command.device_id or zone.device_id,
                zone_name=command.zone_name or zone.name,
            )
        elif isinstance(command, BUTTON_COMMANDS):
            device = snapshot.device(command.device_id)
            if not command.device_address:
                command = dataclasses.replace(command, device_address=device.address)
        else:
            raise UnsupportedError(f"Unknown command variant: {type(command).__name__}")
        return command, device, snapshot.hub_for(device)

    def _expand_scene(
        self,
        item: _WorkItem,
        snapshot: "RegistrySnapshot",
        path: frozenset[str],
    ) -> None:
        """Dispatch a scene's commands in order; the scene completes after them."""
        scene = snapshot.scenes.get(item.command.scene_id)
        if scene is None:
            self._complete(
                item,
                OutcomeStatus.FAILED,
                ErrorKind.UNKNOWN_ENTITY,
                f"Unknown scene: {item.command.scene_id}",
            )
            return

        path = path | {scene.id}
        logger.debug(f"Expanding scene '{scene.name}' ({len(scene.commands)} command(s))")
        loop = asyncio.get_running_loop()

        for command in scene.commands:
            if isinstance(command, SceneSet) and command.scene_id in path:
                logger.warning(
                    f"Scene '{scene.name}' includes scene {command.scene_id} "
                    "already being expanded; skipping"
                )
                continue
            child = _WorkItem(
                ticket=Ticket.for_command(command, parent=item.ticket.id),
                command=command,
                acquire_timeout=item.acquire_timeout,
                counted=False,
            )
            future = loop.create_future()
            self._futures[child.ticket.id] = future
            item.children.append(future)
            if isinstance(command, SceneSet):
                self._expand_scene(child, snapshot, path)
            else:
                self._dispatch(child, snapshot)

        if not item.children:
            self._complete(item, OutcomeStatus.OK)
            return
        self._spawn(self._finish_scene(item))

    async def _finish_scene(self, item: _WorkItem) -> None:
        outcomes = await asyncio.gather(*(asyncio.shield(f) for f in item.children))
        failed = [o for o in outcomes if not o.ok]
        if not failed:
            self._complete(item, OutcomeStatus.OK)
            return
        first = failed[0]
        self._complete(
            item,
            OutcomeStatus.FAILED,
            first.error_kind,
            f"{len(failed)} of {len(outcomes)} scene command(s) failed: {first.message}",
        )

    # ==================== Hub lanes ====================

    async def _run(self, item: _WorkItem, previous: asyncio.Task | None) -> None:
        command, device, hub = item.command, item.device, item.hub
        try:
            builder = self._system.extensions.builder_for(device.model_number)
            if builder is None:
                raise UnsupportedError(
                    f"No command builder registered for model '{device.model_number}'"
                )
            emitter = builder.build(command, self._system)
            pool = self._system.pool_for(hub)

            async with pool.connection(item.acquire_timeout) as conn:
                if previous is not None and not previous.done():
                    # Keep per-hub completion order when connections are parallel
                    await asyncio.wait({previous})
                await emitter(conn)

        except CommandError as e:
            self._complete(item, OutcomeStatus.FAILED, e.kind, e.message)
        except (OSError, asyncio.TimeoutError) as e:
            self._complete(
                item, OutcomeStatus.FAILED, ErrorKind.DEVICE_REJECTED, str(e) or type(e).__name__
            )
        except asyncio.CancelledError:
            self._complete(
                item, OutcomeStatus.FAILED, ErrorKind.SHUTDOWN, "Cancelled during shutdown"
            )
            raise
        except Exception as e:
            logger.exception(f"Unexpected error running {item.ticket.id}: {e}")
            self._complete(item, OutcomeStatus.FAILED, ErrorKind.INTERNAL, str(e))
        else:
            self._complete(item, OutcomeStatus.OK)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ==================== Outcomes ====================

    def _complete(
        self,
        item: _WorkItem,
        status: OutcomeStatus,
        error_kind: ErrorKind | None = None,
        message: str | None = None,
    ) -> None:
        outcome = CommandOutcome(
            ticket=item.ticket.id,
            command_kind=item.command.kind.value,
            target_device_id=item.target_device_id,
            status=status,
            error_kind=error_kind,
            message=message,
            parent_ticket=item.ticket.parent,
        )

        self._remember(outcome)
        future = self._futures.pop(item.ticket.id, None)
        if future is not None and not future.done():
            future.set_result(outcome)

        if item.counted:
            self._pending -= 1
            if self._pending == 0:
                self._idle.set()

        if outcome.ok:
            logger.debug(f"{item.ticket.id} {outcome.command_kind} ok")
        elif error_kind == ErrorKind.INTERNAL:
            logger.error(f"{item.ticket.id} {outcome.command_kind} failed: {message}")
        else:
            logger.info(
                f"{item.ticket.id} {outcome.command_kind} failed "
                f"({error_kind.value if error_kind else '?'}): {message}"
            )

        self._system.events.publish(outcome)

    def _remember(self, outcome: CommandOutcome) -> None:
        retention = self.config.outcome_retention
        if retention <= 0:
            return
        self._completed[outcome.ticket] = outcome
        while len(self._completed) > retention:
            self._completed.popitem(last=False)
