"""Command builders: vendor translators from logical commands to wire output.

A builder is registered under a device model identifier. For each
command the processor calls ``build()``, which returns an *emitter*: a
coroutine function that writes the command to a transport. Builders
never acquire connections themselves.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from ..commands.models import Command
from ..exceptions import UnsupportedError

if TYPE_CHECKING:
    from ..connections.transport import Transport
    from ..system.system import System

logger = logging.getLogger(__name__)

Emitter = Callable[["Transport"], Awaitable[None]]


class CommandBuilder(ABC):
    """Per-model factory of command emitters.

    Subclasses implement ``model_id`` and ``build``. A builder may hold a
    vendor handle that is created on first use by ``create_vendor()``.

    Builders that can cheaply check an idle connection define an async
    ``health_check(transport) -> bool`` method; pools for hubs of that
    model use it before handing out idle connections.
    """

    health_check: Callable[["Transport"], Awaitable[bool]] | None = None

    def __init__(self) -> None:
        self._vendor: Any = None

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Model identifier this builder is registered under."""
        ...

    @abstractmethod
    def build(self, command: Command, system: "System") -> Emitter:
        """Produce an emitter bound to command.

        Args:
            command: Command with denormalized identifiers filled in
            system: Owning system, for registry lookups if needed

        Returns:
            Coroutine function taking a transport

        Raises:
            UnsupportedError: If this builder cannot translate the command
        """
        ...

    def create_vendor(self) -> Any:
        """Construct the vendor handle for this model."""
        return None

    @property
    def vendor(self) -> Any:
        """Vendor handle, created lazily from the model id."""
        if self._vendor is None:
            self._vendor = self.create_vendor()
            logger.debug(f"Created vendor handle for model '{self.model_id}'")
        return self._vendor

    def unsupported(self, command: Command) -> UnsupportedError:
        """Error for a command variant this builder does not handle."""
        return UnsupportedError(
            f"Model '{self.model_id}' does not support {command.kind.value}"
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.model_id}>"
