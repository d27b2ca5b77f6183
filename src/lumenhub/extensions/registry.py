"""Lookup tables from model id to CommandBuilder and network kind to driver."""

from __future__ import annotations

import logging

from ..connections.drivers import NetworkDriver, TcpDriver, UdpDriver
from .builders import CommandBuilder

logger = logging.getLogger(__name__)


class ExtensionRegistry:
    """Owned by a System; populated at startup by the ExtensionManager.

    The generic ``tcp`` and ``udp`` drivers are registered up front so
    hubs without a vendor network driver can still be dialed.
    """

    def __init__(self) -> None:
        self._builders: dict[str, CommandBuilder] = {}
        self._networks: dict[str, NetworkDriver] = {
            "tcp": TcpDriver(),
            "udp": UdpDriver(),
        }

    # ==================== Builders ====================

    def register_builder(self, builder: CommandBuilder, model_id: str | None = None) -> None:
        """Register a builder under its model id (or an explicit alias)."""
        key = model_id or builder.model_id
        if key in self._builders:
            logger.warning(f"Replacing command builder for model '{key}'")
        self._builders[key] = builder
        logger.debug(f"Registered command builder for model '{key}'")

    def unregister_builder(self, model_id: str) -> CommandBuilder | None:
        return self._builders.pop(model_id, None)

    def builder_for(self, model_id: str) -> CommandBuilder | None:
        """Builder for a device model, or None if the model is unknown."""
        return self._builders.get(model_id)

    @property
    def models(self) -> list[str]:
        return sorted(self._builders)

    # ==================== Networks ====================

    def register_network(self, kind: str, driver: NetworkDriver) -> None:
        if kind in self._networks:
            logger.warning(f"Replacing network driver for '{kind}'")
        self._networks[kind] = driver
        logger.debug(f"Registered network driver '{kind}'")

    def network_for(self, kind: str) -> NetworkDriver | None:
        return self._networks.get(kind)

    @property
    def networks(self) -> list[str]:
        return sorted(self._networks)
