"""Lutron integration protocol encoding.

Lutron bridges accept ASCII commands over telnet:

    #OUTPUT,<integration id>,1,<level>      set a zone level (0.00-100.00)
    #DEVICE,<integration id>,<button>,3     press a keypad button
    #DEVICE,<integration id>,<button>,4     release a keypad button
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ....connections.transport import Transport
from ....exceptions import UnsupportedError

logger = logging.getLogger(__name__)

LINE_END = "\r\n"

ACTION_SET_LEVEL = 1
ACTION_PRESS = 3
ACTION_RELEASE = 4

# Supported bridge models and their display names
MODELS: dict[str, str] = {
    "l-bdgpro2-wh": "Smart Bridge Pro",
}


def encode_set_level(zone_address: str, level: float) -> bytes:
    return f"#OUTPUT,{zone_address},{ACTION_SET_LEVEL},{level:.2f}{LINE_END}".encode("ascii")


def encode_button(device_address: str, button_address: str, action: int) -> bytes:
    return f"#DEVICE,{device_address},{button_address},{action}{LINE_END}".encode("ascii")


@dataclass(frozen=True)
class LutronBridge:
    """Vendor handle for one bridge model."""

    model_number: str
    name: str

    async def set_level(self, level: float, zone_address: str, writer: Transport) -> None:
        await writer.write(encode_set_level(zone_address, level))

    async def button_press(
        self, device_address: str, button_address: str, writer: Transport
    ) -> None:
        await writer.write(encode_button(device_address, button_address, ACTION_PRESS))

    async def button_release(
        self, device_address: str, button_address: str, writer: Transport
    ) -> None:
        await writer.write(encode_button(device_address, button_address, ACTION_RELEASE))


def bridge_from_model_number(model_number: str) -> LutronBridge:
    """Look up the bridge handle for a model number.

    Raises:
        UnsupportedError: If the model is not a known Lutron bridge
    """
    name = MODELS.get(model_number)
    if name is None:
        raise UnsupportedError(f"Unknown Lutron model: {model_number}")
    return LutronBridge(model_number=model_number, name=name)
