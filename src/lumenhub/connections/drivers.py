"""Network drivers: how to open a transport for a connection descriptor.

The ExtensionRegistry maps a network kind (``"tcp"``, ``"udp"``,
``"lutron"``...) to a driver. Vendor extensions register drivers that
wrap the generic ones with login handshakes or vendor default ports.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ..exceptions import ConfigurationError
from .transport import Transport, open_tcp, open_udp

if TYPE_CHECKING:
    from ..system.models import ConnectionInfo

logger = logging.getLogger(__name__)


def parse_address(address: str, default_port: int | None = None) -> tuple[str, int]:
    """Split ``host:port`` into its parts.

    Args:
        address: Address string, e.g. "192.168.1.20:23" or "bridge.local"
        default_port: Port used when the address carries none

    Returns:
        (host, port)

    Raises:
        ConfigurationError: If no port can be determined
    """
    host, sep, port = address.rpartition(":")
    if not sep:
        host, port = address, ""
    if not port:
        if default_port is None:
            raise ConfigurationError(f"Address '{address}' has no port")
        return host, default_port
    try:
        return host, int(port)
    except ValueError as e:
        raise ConfigurationError(f"Invalid port in address '{address}'", e)


class NetworkDriver(ABC):
    """Opens transports for one network kind."""

    kind: str = ""
    default_port: int | None = None

    @abstractmethod
    async def dial(self, info: "ConnectionInfo", write_timeout: float = 5.0) -> Transport:
        """Open a new transport to the hub described by info.

        The caller bounds this with the dial timeout.
        """
        ...

    async def is_alive(self, transport: Transport) -> bool:
        """Cheap liveness check for idle transports."""
        return not transport.closed


class TcpDriver(NetworkDriver):
    """Plain TCP connections."""

    kind = "tcp"

    def __init__(self, default_port: int | None = None):
        if default_port is not None:
            self.default_port = default_port

    async def dial(self, info: "ConnectionInfo", write_timeout: float = 5.0) -> Transport:
        host, port = parse_address(info.address, self.default_port)
        logger.debug(f"Dialing tcp://{host}:{port}")
        return await open_tcp(host, port, write_timeout)


class UdpDriver(NetworkDriver):
    """Connected UDP endpoints."""

    kind = "udp"

    def __init__(self, default_port: int | None = None):
        if default_port is not None:
            self.default_port = default_port

    async def dial(self, info: "ConnectionInfo", write_timeout: float = 5.0) -> Transport:
        host, port = parse_address(info.address, self.default_port)
        logger.debug(f"Opening udp://{host}:{port}")
        return await open_udp(host, port, write_timeout)
