"""Vendors bundled with lumenhub.

    lutron     Smart Bridge Pro over the telnet integration protocol
    fluxwifi   Flux WiFi / Magic Home LED controllers on TCP 5577

Both are enabled unless lumenhub.yaml says otherwise:

    extensions:
      fluxwifi: false
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lumenhub.extensions.types import Extension

logger = logging.getLogger(__name__)

# "module:Class", imported on first use so vendor modules stay out of core imports
BUILTIN_EXTENSIONS: dict[str, str] = {
    "lutron": "lumenhub.extensions.builtins.lutron:LutronExtension",
    "fluxwifi": "lumenhub.extensions.builtins.fluxwifi:FluxWifiExtension",
}


def get_builtin_extension(name: str) -> type["Extension"] | None:
    target = BUILTIN_EXTENSIONS.get(name)
    if target is None:
        return None
    module_path, _, attr = target.partition(":")
    try:
        return getattr(importlib.import_module(module_path), attr)
    except (ImportError, AttributeError) as e:
        logger.warning(f"Bundled extension {name} could not be imported: {e}")
        return None


def discover_builtin_extensions() -> dict[str, type["Extension"]]:
    classes = {name: get_builtin_extension(name) for name in BUILTIN_EXTENSIONS}
    return {name: cls for name, cls in classes.items() if cls is not None}


__all__ = [
    "BUILTIN_EXTENSIONS",
    "get_builtin_extension",
    "discover_builtin_extensions",
]
