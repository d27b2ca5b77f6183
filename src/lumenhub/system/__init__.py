"""Device registry and the System handle.

Example:
    from lumenhub.system import System, Device, ConnectionInfo, Zone

    system = System()
    hub = Device("Bridge", model_number="l-bdgpro2-wh",
                 connection=ConnectionInfo("192.168.1.20:23", protocol="lutron"))
    await system.registry.add_device(hub)
"""

from .models import (
    Button,
    ConnectionInfo,
    Device,
    Feature,
    FeatureType,
    OutputType,
    Scene,
    Sensor,
    Zone,
    ZoneType,
    feature_from_dict,
)
from .registry import DeviceRegistry, RegistryEdit, RegistrySnapshot
from .system import MutationObserver, System

__all__ = [
    "System",
    "MutationObserver",
    "DeviceRegistry",
    "RegistryEdit",
    "RegistrySnapshot",
    "Device",
    "ConnectionInfo",
    "Feature",
    "FeatureType",
    "Zone",
    "ZoneType",
    "OutputType",
    "Button",
    "Sensor",
    "Scene",
    "feature_from_dict",
]
