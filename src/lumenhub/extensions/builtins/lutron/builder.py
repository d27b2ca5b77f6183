"""Command builder for Lutron bridges."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ....commands.models import (
    ButtonPress,
    ButtonRelease,
    Command,
    ZoneSetLevel,
    ZoneTurnOff,
    ZoneTurnOn,
)
from ...builders import CommandBuilder, Emitter
from .protocol import LutronBridge, bridge_from_model_number

if TYPE_CHECKING:
    from ....connections.transport import Transport
    from ....system.system import System

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "l-bdgpro2-wh"


class LutronCommandBuilder(CommandBuilder):
    """Translates zone and button commands into integration protocol lines.

    Args:
        model_id: Bridge model number
        release_sends_press: Emit a press for ButtonRelease, for
            installations that rely on the bridge's own press handling
    """

    def __init__(self, model_id: str = DEFAULT_MODEL, release_sends_press: bool = False):
        super().__init__()
        self._model_id = model_id
        self.release_sends_press = release_sends_press

    @property
    def model_id(self) -> str:
        return self._model_id

    def create_vendor(self) -> LutronBridge:
        return bridge_from_model_number(self._model_id)

    def build(self, command: Command, system: "System") -> Emitter:
        bridge: LutronBridge = self.vendor

        if isinstance(command, (ZoneSetLevel, ZoneTurnOn, ZoneTurnOff)):
            if isinstance(command, ZoneTurnOn):
                level = 100.0
            elif isinstance(command, ZoneTurnOff):
                level = 0.0
            else:
                level = float(command.level)
            address = command.zone_address

            async def set_level(writer: "Transport") -> None:
                await bridge.set_level(level, address, writer)

            return set_level

        if isinstance(command, ButtonPress):

            async def press(writer: "Transport") -> None:
                await bridge.button_press(command.device_address, command.button_address, writer)

            return press

        if isinstance(command, ButtonRelease):
            if self.release_sends_press:

                async def release_as_press(writer: "Transport") -> None:
                    await bridge.button_press(
                        command.device_address, command.button_address, writer
                    )

                return release_as_press

            async def release(writer: "Transport") -> None:
                await bridge.button_release(command.device_address, command.button_address, writer)

            return release

        raise self.unsupported(command)
