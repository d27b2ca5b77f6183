"""Device registry with snapshot reads and a single writer.

Readers call ``snapshot()`` and get an immutable view that never changes
underneath them. Writers go through ``edit()``, which holds the registry
lock, stages changes on copies, validates the result and swaps the new
snapshot in atomically. A reader never observes a half-applied edit.

Usage:
    async with registry.edit() as edit:
        edit.add_device(hub)
        edit.add_device(keypad)

    snap = registry.snapshot()
    zone = snap.zones["zone_1234"]
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import AsyncIterator, Mapping

from ..exceptions import RegistryError, UnknownEntityError
from .models import Device, Feature, Scene, Zone

logger = logging.getLogger(__name__)

_EMPTY: Mapping = MappingProxyType({})


@dataclass(frozen=True)
class RegistrySnapshot:
    """Point-in-time view of devices, zones and scenes."""

    devices: Mapping[str, Device] = field(default_factory=lambda: _EMPTY)
    zones: Mapping[str, Zone] = field(default_factory=lambda: _EMPTY)
    scenes: Mapping[str, Scene] = field(default_factory=lambda: _EMPTY)
    version: int = 0

    def device(self, device_id: str) -> Device:
        try:
            return self.devices[device_id]
        except KeyError:
            raise UnknownEntityError("device", device_id) from None

    def zone(self, zone_id: str) -> Zone:
        try:
            return self.zones[zone_id]
        except KeyError:
            raise UnknownEntityError("zone", zone_id) from None

    def scene(self, scene_id: str) -> Scene:
        try:
            return self.scenes[scene_id]
        except KeyError:
            raise UnknownEntityError("scene", scene_id) from None

    def hub_for(self, device: Device) -> Device:
        """Resolve the hub a device's commands are written to."""
        if device.is_hub:
            return device
        hub = self.devices.get(device.hub_id)
        if hub is None:
            raise UnknownEntityError("hub", device.hub_id)
        return hub

    def children_of(self, hub_id: str) -> list[Device]:
        return [d for d in self.devices.values() if d.hub_id == hub_id]


class RegistryEdit:
    """Staged changes applied by DeviceRegistry.edit()."""

    def __init__(self, base: RegistrySnapshot):
        self._devices: dict[str, Device] = dict(base.devices)
        self._scenes: dict[str, Scene] = dict(base.scenes)
        self.removed_devices: list[Device] = []

    # ==================== Devices ====================

    def add_device(self, device: Device) -> Device:
        if device.id in self._devices:
            raise RegistryError(f"Device already registered: {device.id}")
        self._devices[device.id] = device
        return device

    def update_device(self, device: Device) -> Device:
        if device.id not in self._devices:
            raise UnknownEntityError("device", device.id)
        self._devices[device.id] = device
        return device

    def remove_device(self, device_id: str) -> Device:
        device = self._devices.pop(device_id, None)
        if device is None:
            raise UnknownEntityError("device", device_id)
        self.removed_devices.append(device)
        return device

    # ==================== Features ====================

    def add_feature(self, device_id: str, feature: Feature) -> Feature:
        """Attach a feature, replacing the device value in the new snapshot."""
        device = self._devices.get(device_id)
        if device is None:
            raise UnknownEntityError("device", device_id)
        feature.device_id = device_id
        self._devices[device_id] = dataclasses.replace(
            device, features=[*device.features, feature]
        )
        return feature

    def remove_feature(self, device_id: str, feature_id: str) -> None:
        device = self._devices.get(device_id)
        if device is None:
            raise UnknownEntityError("device", device_id)
        remaining = [f for f in device.features if f.id != feature_id]
        if len(remaining) == len(device.features):
            raise UnknownEntityError("feature", feature_id)
        self._devices[device_id] = dataclasses.replace(device, features=remaining)

    # ==================== Scenes ====================

    def add_scene(self, scene: Scene) -> Scene:
        if scene.id in self._scenes:
            raise RegistryError(f"Scene already registered: {scene.id}")
        self._scenes[scene.id] = scene
        return scene

    def update_scene(self, scene: Scene) -> Scene:
        if scene.id not in self._scenes:
            raise UnknownEntityError("scene", scene.id)
        self._scenes[scene.id] = scene
        return scene

    def remove_scene(self, scene_id: str) -> Scene:
        scene = self._scenes.pop(scene_id, None)
        if scene is None:
            raise UnknownEntityError("scene", scene_id)
        return scene

    # ==================== Commit ====================

    def build(self, version: int) -> RegistrySnapshot:
        """Validate staged state and produce the next snapshot.

        Raises:
            RegistryError: If the staged state violates an invariant
        """
        zones: dict[str, Zone] = {}
        for device in self._devices.values():
            if device.hub_id is not None:
                hub = self._devices.get(device.hub_id)
                if hub is None:
                    raise RegistryError(
                        f"Device '{device.id}' references unknown hub '{device.hub_id}'"
                    )
                if not hub.is_hub:
                    raise RegistryError(
                        f"Device '{device.id}' references '{hub.id}', which is not a hub"
                    )
            seen: set[tuple] = set()
            for feature in device.features:
                key = (feature.feature_type, feature.address)
                if key in seen:
                    raise RegistryError(
                        f"Device '{device.id}' has two {feature.feature_type.value} "
                        f"features at address '{feature.address}'"
                    )
                seen.add(key)
                if isinstance(feature, Zone):
                    if feature.id in zones:
                        raise RegistryError(f"Zone id registered twice: {feature.id}")
                    zones[feature.id] = feature

        return RegistrySnapshot(
            devices=MappingProxyType(self._devices),
            zones=MappingProxyType(zones),
            scenes=MappingProxyType(self._scenes),
            version=version,
        )


class DeviceRegistry:
    """Owns the authoritative device, zone and scene tables."""

    def __init__(self) -> None:
        self._snapshot = RegistrySnapshot()
        self._lock = asyncio.Lock()

    def snapshot(self) -> RegistrySnapshot:
        """Current immutable view. Safe to hold across awaits."""
        return self._snapshot

    @asynccontextmanager
    async def edit(self) -> AsyncIterator[RegistryEdit]:
        """Apply a batch of changes atomically.

        If the block raises, or the result fails validation, the registry
        is left unchanged.
        """
        async with self._lock:
            staged = RegistryEdit(self._snapshot)
            yield staged
            snapshot = staged.build(self._snapshot.version + 1)
            self._snapshot = snapshot
            logger.debug(
                f"Registry v{snapshot.version}: {len(snapshot.devices)} device(s), "
                f"{len(snapshot.zones)} zone(s), {len(snapshot.scenes)} scene(s)"
            )

    # ==================== Convenience ====================

    async def add_device(self, device: Device) -> Device:
        async with self.edit() as edit:
            return edit.add_device(device)

    async def remove_device(self, device_id: str) -> Device:
        async with self.edit() as edit:
            return edit.remove_device(device_id)

    async def add_feature(self, device_id: str, feature: Feature) -> Feature:
        async with self.edit() as edit:
            return edit.add_feature(device_id, feature)

    async def add_scene(self, scene: Scene) -> Scene:
        async with self.edit() as edit:
            return edit.add_scene(scene)

    async def remove_scene(self, scene_id: str) -> Scene:
        async with self.edit() as edit:
            return edit.remove_scene(scene_id)
