"""Vendor plugin contract.

A vendor plugin ("extension") teaches the hub how to talk to one family
of hardware. During startup the ExtensionManager asks every enabled
plugin to fill three tables on a System:

    model id      -> CommandBuilder   (register_cmd_builders)
    network kind  -> NetworkDriver    (register_networks)
    cookbook id   -> CookBook         (get_cookbooks)

A minimal plugin only fills the builder table:

    class AcmeExtension(Extension):
        @property
        def info(self) -> ExtensionInfo:
            return ExtensionInfo(name="acme", version="1.0.0",
                                 description="Acme dimmers",
                                 provides_models=["acme-d1"])

        def initialize(self, config: dict) -> None:
            self._fade = config.get("fade", 0)

        def register_cmd_builders(self, system, table) -> None:
            table["acme-d1"] = AcmeBuilder(fade=self._fade)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..exceptions import LumenError

if TYPE_CHECKING:
    from ..connections.drivers import NetworkDriver
    from ..recipes.cookbook import CookBook
    from ..system.system import System
    from .builders import CommandBuilder


@dataclass
class ExtensionInfo:
    """Static description of a plugin.

    Read before ``initialize()`` so the manager can order plugins by
    ``requires_extensions`` and report what each one adds.

    Attributes:
        name: Key used in lumenhub.yaml and for dependency references.
        version: Plugin version, logged at load time.
        description: One line shown in listings.
        author: Vendor or maintainer.
        requires_core: lumenhub version range the plugin was written for.
        requires_extensions: Plugins that must be loaded first.
        provides_models: Device model ids the plugin has builders for.
        provides_networks: Network kinds the plugin has drivers for.
    """

    name: str
    version: str
    description: str = ""
    author: str = ""
    requires_core: str = ">=0.1.0"
    requires_extensions: list[str] = field(default_factory=list)
    provides_models: list[str] = field(default_factory=list)
    provides_networks: list[str] = field(default_factory=list)


class Extension(ABC):
    """Base class for vendor plugins.

    The manager constructs the class with no arguments, passes its
    lumenhub.yaml ``config:`` block to ``initialize()``, then calls the
    ``register_*`` hooks once per System. ``shutdown()`` runs when the
    manager is torn down, in reverse load order.
    """

    @property
    @abstractmethod
    def info(self) -> ExtensionInfo: ...

    @abstractmethod
    def initialize(self, config: dict[str, Any]) -> None:
        """Apply the plugin's settings.

        Raising here aborts loading; the manager reports it as
        ExtensionLoadError.
        """

    def shutdown(self) -> None:
        pass

    def register_cmd_builders(
        self, system: "System", table: dict[str, "CommandBuilder"]
    ) -> None:
        pass

    def register_networks(
        self, system: "System", table: dict[str, "NetworkDriver"]
    ) -> None:
        pass

    def get_cookbooks(self) -> list["CookBook"]:
        return []


class ExtensionError(LumenError):
    """A plugin could not be found, ordered or started."""


class ExtensionNotFoundError(ExtensionError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No extension named '{name}' is loaded")


class ExtensionLoadError(ExtensionError):
    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Extension '{name}' did not start: {reason}")


class ExtensionDependencyError(ExtensionError):
    def __init__(self, name: str, missing: list[str]) -> None:
        self.name = name
        self.missing = missing
        super().__init__(
            f"Extension '{name}' needs {', '.join(missing)}, which "
            f"{'is' if len(missing) == 1 else 'are'} not enabled"
        )
