"""Flux WiFi (Magic Home) LED controller support."""

from .builder import MODEL_ID, FluxWifiCommandBuilder
from .extension import FluxWifiExtension
from .network import FluxWifiDriver
from .protocol import (
    ControllerState,
    decode_state,
    encode_power,
    encode_set_level,
    encode_warm_white,
    frame,
)

__all__ = [
    "FluxWifiExtension",
    "FluxWifiCommandBuilder",
    "FluxWifiDriver",
    "MODEL_ID",
    "ControllerState",
    "decode_state",
    "encode_power",
    "encode_set_level",
    "encode_warm_white",
    "frame",
]
