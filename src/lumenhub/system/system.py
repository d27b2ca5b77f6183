"""System: the top-level handle owning every core subsystem.

There are no process-wide singletons; a System owns its registry,
extension tables, event bus, command processor, recipe manager and hub
connection pools, and is passed explicitly to anything that needs them.

Example:
    system = System(config=HubConfig.from_env(), observer=JsonFileObserver(path))
    ExtensionManager().discover_and_load()  # then .populate(system)

    async with system:
        await system.registry.add_device(hub)
        outcome = await system.processor.submit(ZoneTurnOn("zone_1"))
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Mapping

from ..commands.processor import CommandProcessor
from ..config import HubConfig
from ..connections.pool import ConnectionPool
from ..events.bus import EventBus
from ..exceptions import (
    LumenError,
    PersistenceError,
    PoolClosedError,
    TransportUnavailableError,
    UnknownEntityError,
)
from ..extensions.registry import ExtensionRegistry
from ..recipes.manager import RecipeManager
from .models import Device, Feature, Scene, Zone
from .registry import DeviceRegistry

if TYPE_CHECKING:
    from ..connections.drivers import NetworkDriver

logger = logging.getLogger(__name__)


class MutationObserver(ABC):
    """Persistence hook bound by the host.

    The recipe manager calls System.save() after registering, enabling or
    deleting a recipe. Hosts call it themselves after editing the device
    registry. The core does not retry; errors surface to the caller.
    """

    @abstractmethod
    async def save(self, system: "System", recipes: RecipeManager) -> None:
        ...


class System:
    """Owns the registry, extensions, events, processor, recipes and pools."""

    def __init__(
        self,
        name: str = "home",
        config: HubConfig | None = None,
        extensions: ExtensionRegistry | None = None,
        observer: MutationObserver | None = None,
    ):
        """Initialize the system.

        Args:
            name: Display name of the installation
            config: Hub configuration (default: HubConfig())
            extensions: Pre-populated builder and driver tables
            observer: Persistence hook called by save()
        """
        self.name = name
        self.config = config or HubConfig()
        self.events = EventBus(self.config.events.subscriber_buffer)
        self.registry = DeviceRegistry()
        self.extensions = extensions or ExtensionRegistry()
        self.processor = CommandProcessor(self, self.config.processor)
        self.recipes = RecipeManager(self, action_timeout=self.config.recipes.action_timeout)
        self._observer = observer
        self._pools: dict[str, ConnectionPool] = {}
        self._pools_closed = False

    # ==================== Lookup ====================

    @property
    def devices(self) -> Mapping[str, Device]:
        return self.registry.snapshot().devices

    @property
    def zones(self) -> Mapping[str, Zone]:
        return self.registry.snapshot().zones

    @property
    def scenes(self) -> Mapping[str, Scene]:
        return self.registry.snapshot().scenes

    def device_by_id(self, device_id: str) -> Device | None:
        return self.devices.get(device_id)

    def zone_by_id(self, zone_id: str) -> Zone | None:
        return self.zones.get(zone_id)

    def scene_by_id(self, scene_id: str) -> Scene | None:
        return self.scenes.get(scene_id)

    def hub_for(self, device: Device) -> Device:
        """Raises UnknownEntityError if the device's hub is not registered."""
        return self.registry.snapshot().hub_for(device)

    def is_dupe_device(self, device: Device) -> Device | None:
        """Find an already registered device that is the same physical device.

        Hubs match on model and connection address; children match on hub
        and local address. Used by importers before adding devices.
        """
        for existing in self.devices.values():
            if existing.id == device.id:
                return existing
            if existing.model_number != device.model_number:
                continue
            if device.is_hub and existing.is_hub:
                if (
                    device.connection is not None
                    and existing.connection is not None
                    and existing.connection.address == device.connection.address
                ):
                    return existing
            elif (
                existing.hub_id == device.hub_id
                and device.address
                and existing.address == device.address
            ):
                return existing
        return None

    def is_dupe_feature(self, device: Device, feature: Feature) -> Feature | None:
        """Find a feature of the same type at the same address on the registered device."""
        registered = self.device_by_id(device.id) or device
        return registered.feature(feature.feature_type, feature.address)

    # ==================== Registry edits ====================

    async def remove_device(self, device_id: str) -> Device:
        """Remove a device and close its pool if it was a hub."""
        device = await self.registry.remove_device(device_id)
        await self.discard_pool(device_id)
        return device

    # ==================== Connection pools ====================

    def pool_for(self, hub: Device) -> ConnectionPool:
        """Connection pool of a hub, created on first use.

        Raises:
            TransportUnavailableError: If the hub has no usable connection
            PoolClosedError: If pools have been shut down
        """
        if self._pools_closed:
            raise PoolClosedError(hub.id)
        pool = self._pools.get(hub.id)
        if pool is not None and not pool.closed:
            return pool

        if hub.connection is None:
            raise TransportUnavailableError(f"Hub '{hub.name}' has no connection configured")
        kind = hub.connection.driver_kind
        driver = self.extensions.network_for(kind)
        if driver is None:
            raise TransportUnavailableError(f"No network driver registered for '{kind}'")

        builder = self.extensions.builder_for(hub.model_number)
        health_check = getattr(builder, "health_check", None) or driver.is_alive
        settings = self.config.connections
        info = hub.connection

        pool = ConnectionPool(
            hub.id,
            lambda: self._dial(driver, info),
            capacity=settings.pool_capacity,
            dial_timeout=settings.dial_timeout,
            acquire_timeout=self.config.processor.acquire_timeout,
            health_check=health_check,
            events=self.events,
        )
        self._pools[hub.id] = pool
        logger.debug(f"Created connection pool for hub '{hub.name}' ({kind})")
        return pool

    async def _dial(self, driver: "NetworkDriver", info) -> "object":
        return await driver.dial(info, self.config.connections.write_timeout)

    @property
    def pools(self) -> Mapping[str, ConnectionPool]:
        return dict(self._pools)

    async def discard_pool(self, hub_id: str, grace: float | None = None) -> None:
        """Close a hub's pool, e.g. after its connection details changed."""
        pool = self._pools.pop(hub_id, None)
        if pool is not None:
            await pool.close(self.config.connections.shutdown_grace if grace is None else grace)

    async def close_pools(self, grace: float | None = None) -> None:
        """Close every pool; no new pools are created afterwards."""
        self._pools_closed = True
        grace = self.config.connections.shutdown_grace if grace is None else grace
        pools = list(self._pools.values())
        self._pools.clear()
        if pools:
            await asyncio.gather(*(p.close(grace) for p in pools))

    # ==================== Persistence ====================

    def bind_observer(self, observer: MutationObserver | None) -> None:
        self._observer = observer

    async def save(self, recipes: RecipeManager | None = None) -> None:
        """Forward to the bound MutationObserver (no-op when none is bound).

        Raises:
            PersistenceError: If the observer fails
        """
        if self._observer is None:
            return
        try:
            await self._observer.save(self, recipes or self.recipes)
        except LumenError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save system '{self.name}'", e) from e

    # ==================== Lifecycle ====================

    async def start(self) -> None:
        self._pools_closed = False
        await self.processor.start()
        logger.info(f"System '{self.name}' started")

    async def shutdown(self, grace: float | None = None) -> None:
        """Stop recipes, drain the processor, close pools and the event bus."""
        await self.recipes.stop()
        await self.processor.shutdown(grace)
        await self.close_pools(grace)
        self.events.close()
        logger.info(f"System '{self.name}' shut down")

    async def __aenter__(self) -> "System":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    def entity(self, entity_type: str, entity_id: str):
        """Generic lookup used by the HTTP layer.

        Raises:
            UnknownEntityError: If nothing matches
        """
        table = {"device": self.devices, "zone": self.zones, "scene": self.scenes}.get(entity_type)
        if table is None or entity_id not in table:
            raise UnknownEntityError(entity_type, entity_id)
        return table[entity_id]
