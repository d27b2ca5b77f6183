"""Command builder for Flux WiFi controllers.

Each controller is its own hub with a single zone, so the zone address
is not part of the wire output.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ....commands.models import Command, ZoneSetLevel, ZoneTurnOff, ZoneTurnOn
from ....exceptions import DeviceRejectedError
from ...builders import CommandBuilder, Emitter
from .protocol import STATE_QUERY, STATE_REPLY_LENGTH, decode_state, encode_set_level, frame

if TYPE_CHECKING:
    from ....connections.transport import Transport
    from ....system.system import System

logger = logging.getLogger(__name__)

MODEL_ID = "fluxwifi"


class FluxWifiCommandBuilder(CommandBuilder):
    """Zone commands only; button commands are unsupported."""

    def __init__(self, model_id: str = MODEL_ID, query_timeout: float = 1.0):
        super().__init__()
        self._model_id = model_id
        self.query_timeout = query_timeout

    @property
    def model_id(self) -> str:
        return self._model_id

    def build(self, command: Command, system: "System") -> Emitter:
        if isinstance(command, ZoneTurnOn):
            level = 100.0
        elif isinstance(command, ZoneTurnOff):
            level = 0.0
        elif isinstance(command, ZoneSetLevel):
            level = float(command.level)
        else:
            raise self.unsupported(command)

        payload = encode_set_level(level)

        async def set_level(writer: "Transport") -> None:
            await writer.write(payload)

        return set_level

    async def health_check(self, transport: "Transport") -> bool:
        """Query controller state; a parseable reply means the link is alive."""
        try:
            await transport.write(frame(STATE_QUERY))
            decode_state(await self._read_state(transport))
        except DeviceRejectedError as e:
            logger.debug(f"Flux WiFi liveness check failed: {e}")
            return False
        return True

    async def _read_state(self, transport: "Transport") -> bytes:
        """Collect reads until a whole state reply has arrived."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.query_timeout
        reply = b""
        while len(reply) < STATE_REPLY_LENGTH:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise DeviceRejectedError(
                    f"Short state reply from {transport.name} ({len(reply)} bytes)"
                )
            chunk = await transport.read(remaining)
            if not chunk:
                raise DeviceRejectedError(f"{transport.name} closed the connection")
            reply += chunk
        return reply
