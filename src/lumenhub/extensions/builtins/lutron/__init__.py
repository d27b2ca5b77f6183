"""Lutron Smart Bridge Pro support.

Zones are addressed by integration id; keypad buttons by the keypad's
integration id plus a component number. The bridge speaks a line based
ASCII protocol over telnet (port 23) after a login handshake.

Usage:
    from lumenhub.extensions.builtins.lutron import LutronCommandBuilder

    builder = LutronCommandBuilder("l-bdgpro2-wh")
    emit = builder.build(ZoneSetLevel("zone_1", 42.5, zone_address="12"), system)
    await emit(transport)  # writes b"#OUTPUT,12,1,42.50\\r\\n"
"""

from .builder import LutronCommandBuilder
from .extension import LutronExtension
from .network import LutronDriver, parse_credentials
from .protocol import (
    MODELS,
    LutronBridge,
    bridge_from_model_number,
    encode_button,
    encode_set_level,
)

__all__ = [
    "LutronExtension",
    "LutronCommandBuilder",
    "LutronDriver",
    "LutronBridge",
    "MODELS",
    "bridge_from_model_number",
    "encode_button",
    "encode_set_level",
    "parse_credentials",
]
