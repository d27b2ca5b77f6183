"""Finding plugin classes.

Bundled vendors are listed in ``builtins.BUILTIN_EXTENSIONS``. Anything
else is found through the ``lumenhub.extensions`` entry point group, so a
separately installed package only needs:

    [project.entry-points."lumenhub.extensions"]
    acme = "lumenhub_acme:AcmeExtension"
"""

from __future__ import annotations

import logging
from importlib.metadata import entry_points
from typing import TYPE_CHECKING

from .builtins import discover_builtin_extensions, get_builtin_extension

if TYPE_CHECKING:
    from .types import Extension

logger = logging.getLogger(__name__)

EXTENSION_GROUP = "lumenhub.extensions"


def _installed() -> dict[str, type["Extension"]]:
    found: dict[str, type[Extension]] = {}
    for ep in entry_points(group=EXTENSION_GROUP):
        try:
            found[ep.name] = ep.load()
        except Exception as e:
            # One broken package must not hide the others
            logger.warning(f"Skipping extension entry point {ep.name} ({ep.value}): {e}")
    return found


def discover_extensions(include_builtins: bool = True) -> dict[str, type["Extension"]]:
    """Map plugin name to class.

    An installed plugin with the same name as a bundled one replaces it.
    """
    found = discover_builtin_extensions() if include_builtins else {}
    installed = _installed()
    for name in installed.keys() & found.keys():
        logger.info(f"Installed extension {name} overrides the bundled one")
    found.update(installed)
    logger.debug(f"Extensions available: {', '.join(sorted(found)) or 'none'}")
    return found


def load_extension(name: str) -> type["Extension"] | None:
    """Class for one plugin name, bundled first, or None."""
    return get_builtin_extension(name) or _installed().get(name)
