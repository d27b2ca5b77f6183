"""Flux WiFi (Magic Home) LED controller wire format.

Controllers listen on TCP port 5577 for short binary frames. Every frame
ends with an 8-bit additive checksum of the preceding bytes.
"""

from __future__ import annotations

from dataclasses import dataclass

from ....exceptions import ProtocolError

PORT = 5577

POWER_ON = bytes([0x71, 0x23, 0x0F])
POWER_OFF = bytes([0x71, 0x24, 0x0F])
STATE_QUERY = bytes([0x81, 0x8A, 0x8B])

SET_COLOR = 0x31
STATE_REPLY = 0x81
STATE_REPLY_LENGTH = 14

POWER_STATE_ON = 0x23


def checksum(data: bytes) -> int:
    return sum(data) & 0xFF


def frame(payload: bytes) -> bytes:
    """Append the checksum to a payload."""
    return payload + bytes([checksum(payload)])


def level_to_byte(level: float) -> int:
    """Scale a 0-100 level to the controller's 0-255 channel range."""
    return max(0, min(255, round(level * 255 / 100)))


def encode_power(on: bool) -> bytes:
    return frame(POWER_ON if on else POWER_OFF)


def encode_warm_white(level: float) -> bytes:
    """Warm white channel at level, RGB channels off."""
    return frame(bytes([SET_COLOR, 0, 0, 0, level_to_byte(level), 0x00, 0x0F]))


def encode_set_level(level: float) -> bytes:
    """Frames for a zone level: off at 0, otherwise on plus warm white."""
    if level <= 0:
        return encode_power(False)
    return encode_power(True) + encode_warm_white(level)


@dataclass(frozen=True)
class ControllerState:
    """Decoded reply to STATE_QUERY."""

    power_on: bool
    red: int
    green: int
    blue: int
    warm_white: int


def decode_state(data: bytes) -> ControllerState:
    """Parse a state reply.

    Raises:
        ProtocolError: If the reply is short, of the wrong type or fails its checksum
    """
    if len(data) < STATE_REPLY_LENGTH:
        raise ProtocolError(f"Short state reply ({len(data)} bytes)")
    data = data[:STATE_REPLY_LENGTH]
    if data[0] != STATE_REPLY:
        raise ProtocolError(f"Unexpected reply type 0x{data[0]:02x}")
    if checksum(data[:-1]) != data[-1]:
        raise ProtocolError("State reply checksum mismatch")
    return ControllerState(
        power_on=data[2] == POWER_STATE_ON,
        red=data[6],
        green=data[7],
        blue=data[8],
        warm_white=data[9],
    )
