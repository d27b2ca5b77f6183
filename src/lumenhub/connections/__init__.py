"""Hub transports, network drivers and per-hub connection pools."""

from .transport import (
    Transport,
    StreamTransport,
    DatagramTransport,
    open_tcp,
    open_udp,
)
from .drivers import NetworkDriver, TcpDriver, UdpDriver, parse_address
from .pool import ConnectionPool, Dialer, HealthCheck

__all__ = [
    # Transports
    "Transport",
    "StreamTransport",
    "DatagramTransport",
    "open_tcp",
    "open_udp",
    # Drivers
    "NetworkDriver",
    "TcpDriver",
    "UdpDriver",
    "parse_address",
    # Pool
    "ConnectionPool",
    "Dialer",
    "HealthCheck",
]
