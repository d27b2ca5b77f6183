"""Lutron extension: command builder and telnet network driver."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ...types import Extension, ExtensionInfo
from .builder import DEFAULT_MODEL, LutronCommandBuilder
from .network import LutronDriver
from .protocol import MODELS

if TYPE_CHECKING:
    from ....connections.drivers import NetworkDriver
    from ....system.system import System
    from ...builders import CommandBuilder

logger = logging.getLogger(__name__)


class LutronExtension(Extension):
    """Support for Lutron Smart Bridge Pro.

    Configuration (lumenhub.yaml):
        extensions:
          lutron:
            enabled: true
            config:
              release_sends_press: false
              prompt_timeout: 2.0
    """

    def __init__(self) -> None:
        self._release_sends_press = False
        self._prompt_timeout = 2.0

    @property
    def info(self) -> ExtensionInfo:
        return ExtensionInfo(
            name="lutron",
            version="1.0.0",
            description="Lutron Smart Bridge Pro integration protocol",
            author="lumenhub",
            requires_core=">=0.1.0",
            provides_models=list(MODELS),
            provides_networks=["lutron"],
        )

    def initialize(self, config: dict[str, Any]) -> None:
        self._release_sends_press = bool(config.get("release_sends_press", False))
        self._prompt_timeout = float(config.get("prompt_timeout", 2.0))

    def register_cmd_builders(
        self, system: "System", table: dict[str, "CommandBuilder"]
    ) -> None:
        for model in MODELS:
            table[model] = LutronCommandBuilder(
                model, release_sends_press=self._release_sends_press
            )
        logger.debug(f"Lutron builders registered (default model {DEFAULT_MODEL})")

    def register_networks(self, system: "System", table: dict[str, "NetworkDriver"]) -> None:
        table["lutron"] = LutronDriver(prompt_timeout=self._prompt_timeout)
