"""Flux WiFi extension: command builder and network driver."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ...types import Extension, ExtensionInfo
from .builder import MODEL_ID, FluxWifiCommandBuilder
from .network import FluxWifiDriver

if TYPE_CHECKING:
    from ....connections.drivers import NetworkDriver
    from ....system.system import System
    from ...builders import CommandBuilder


class FluxWifiExtension(Extension):
    """Support for Flux WiFi / Magic Home LED controllers.

    Configuration (lumenhub.yaml):
        extensions:
          fluxwifi:
            config:
              query_timeout: 1.0
    """

    def __init__(self) -> None:
        self._query_timeout = 1.0

    @property
    def info(self) -> ExtensionInfo:
        return ExtensionInfo(
            name="fluxwifi",
            version="1.0.0",
            description="Flux WiFi LED controllers",
            author="lumenhub",
            requires_core=">=0.1.0",
            provides_models=[MODEL_ID],
            provides_networks=["fluxwifi"],
        )

    def initialize(self, config: dict[str, Any]) -> None:
        self._query_timeout = float(config.get("query_timeout", 1.0))

    def register_cmd_builders(
        self, system: "System", table: dict[str, "CommandBuilder"]
    ) -> None:
        builder = FluxWifiCommandBuilder(query_timeout=self._query_timeout)
        table[builder.model_id] = builder

    def register_networks(self, system: "System", table: dict[str, "NetworkDriver"]) -> None:
        table["fluxwifi"] = FluxWifiDriver()
