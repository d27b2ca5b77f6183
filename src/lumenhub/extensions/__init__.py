"""Vendor plugins for lumenhub.

Everything vendor-specific (wire formats, login handshakes, default
ports, recipe templates) lives in extensions. The core only knows the
tables they fill:

- ExtensionRegistry: model id -> CommandBuilder, network kind -> driver
- RecipeManager cookbooks: cookbook id -> CookBook

Plugins come from the bundled ``builtins`` package and from the
``lumenhub.extensions`` entry point group. lumenhub.yaml enables,
disables and configures them.

Example:
    from lumenhub import System
    from lumenhub.extensions import ExtensionManager

    manager = ExtensionManager(config_path="lumenhub.yaml")
    manager.discover_and_load()

    system = System(config=manager.config.hub_config())
    manager.populate(system)
"""

from __future__ import annotations

import logging
from graphlib import CycleError, TopologicalSorter
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .builders import CommandBuilder, Emitter
from .config import ExtensionConfig, LumenExtensionConfig, load_config, parse_config
from .discovery import EXTENSION_GROUP, discover_extensions, load_extension
from .registry import ExtensionRegistry
from .types import (
    Extension,
    ExtensionDependencyError,
    ExtensionError,
    ExtensionInfo,
    ExtensionLoadError,
    ExtensionNotFoundError,
)

if TYPE_CHECKING:
    from ..connections.drivers import NetworkDriver
    from ..system.system import System

logger = logging.getLogger(__name__)


class ExtensionManager:
    """Starts enabled plugins and copies what they provide into a System.

    One manager can populate several Systems (tests do this); each call
    to ``populate`` asks every plugin for fresh builders and drivers.
    """

    def __init__(
        self,
        config_path: Path | str | None = None,
        config: LumenExtensionConfig | None = None,
    ):
        self._config = config if config is not None else load_config(config_path)
        # Insertion order is start order
        self._started: dict[str, Extension] = {}

    @property
    def config(self) -> LumenExtensionConfig:
        return self._config

    @property
    def loaded_extensions(self) -> list[str]:
        return list(self._started)

    def discover_and_load(self, include_builtins: bool = True) -> None:
        """Start every discovered plugin that lumenhub.yaml does not disable.

        Raises:
            ExtensionDependencyError: A plugin requires one that is
                missing or disabled.
            ExtensionLoadError: A plugin's ``initialize()`` raised, or
                plugins require each other in a cycle.
        """
        found = discover_extensions(include_builtins=include_builtins)
        enabled = {
            name: cls for name, cls in found.items() if self._config.is_extension_enabled(name)
        }
        skipped = sorted(set(found) - set(enabled))
        if skipped:
            logger.debug(f"Extensions disabled by config: {', '.join(skipped)}")

        for name in self._start_order(enabled):
            self._start(name, enabled[name](), self._config.get_extension_config(name))

        logger.info(
            f"Started {len(self._started)} of {len(found)} discovered extension(s)"
        )

    def add(self, extension: Extension, config: dict[str, Any] | None = None) -> None:
        """Start an already constructed plugin, bypassing discovery."""
        self._start(extension.info.name, extension, config or {})

    def _start_order(self, enabled: dict[str, type[Extension]]) -> list[str]:
        graph: dict[str, list[str]] = {}
        for name, cls in enabled.items():
            requires = cls().info.requires_extensions
            missing = [dep for dep in requires if dep not in enabled]
            if missing:
                raise ExtensionDependencyError(name, missing)
            graph[name] = requires

        try:
            return list(TopologicalSorter(graph).static_order())
        except CycleError as e:
            cycle = " -> ".join(e.args[1])
            raise ExtensionLoadError(e.args[1][0], f"dependency cycle {cycle}") from e

    def _start(self, name: str, extension: Extension, config: dict[str, Any]) -> None:
        try:
            extension.initialize(config)
        except Exception as e:
            raise ExtensionLoadError(name, f"{type(e).__name__}: {e}") from e
        self._started[name] = extension
        logger.info(f"Extension {name} {extension.info.version} started")

    def populate(self, system: "System") -> None:
        """Register builders, drivers and cookbooks from every started plugin."""
        for name, extension in self._started.items():
            builders: dict[str, CommandBuilder] = {}
            extension.register_cmd_builders(system, builders)
            for model_id, builder in builders.items():
                system.extensions.register_builder(builder, model_id=model_id)

            drivers: dict[str, NetworkDriver] = {}
            extension.register_networks(system, drivers)
            for kind, driver in drivers.items():
                system.extensions.register_network(kind, driver)

            cookbooks = extension.get_cookbooks()
            for cookbook in cookbooks:
                system.recipes.add_cookbook(cookbook)

            logger.debug(
                f"{name}: models={sorted(builders)} networks={sorted(drivers)} "
                f"cookbooks={[c.id for c in cookbooks]}"
            )

    def shutdown(self) -> None:
        """Stop plugins newest first. A failing plugin does not stop the rest."""
        while self._started:
            name, extension = self._started.popitem()
            try:
                extension.shutdown()
            except Exception as e:
                logger.warning(f"Extension {name} raised during shutdown: {e}")

    def get_extension(self, name: str) -> Extension:
        try:
            return self._started[name]
        except KeyError:
            raise ExtensionNotFoundError(name) from None


__all__ = [
    "Extension",
    "ExtensionInfo",
    "ExtensionConfig",
    "LumenExtensionConfig",
    "CommandBuilder",
    "Emitter",
    "ExtensionRegistry",
    "ExtensionError",
    "ExtensionNotFoundError",
    "ExtensionLoadError",
    "ExtensionDependencyError",
    "discover_extensions",
    "load_extension",
    "EXTENSION_GROUP",
    "load_config",
    "parse_config",
    "ExtensionManager",
]
