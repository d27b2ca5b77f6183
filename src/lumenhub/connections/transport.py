"""Writable transports to hub devices.

A Transport is the "writer" handed to command emitters. Two concrete
transports cover the wire protocols used by the bundled vendors:

- StreamTransport: TCP via asyncio streams (Lutron telnet, Flux WiFi)
- DatagramTransport: UDP endpoints
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from ..exceptions import DeviceRejectedError

logger = logging.getLogger(__name__)


class Transport(ABC):
    """A live connection to a hub.

    Writes are bounded by the transport's write timeout. A failed write
    raises DeviceRejectedError so the processor discards the connection.
    """

    def __init__(self, name: str, write_timeout: float = 5.0):
        self.name = name
        self.write_timeout = write_timeout

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """Write bytes to the device."""
        ...

    async def read_until(self, separator: bytes, timeout: float = 5.0) -> bytes:
        """Read until separator (stream transports only)."""
        raise NotImplementedError(f"{type(self).__name__} does not support reads")

    async def read(self, timeout: float = 5.0) -> bytes:
        """Read whatever the device sends next."""
        raise NotImplementedError(f"{type(self).__name__} does not support reads")

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        ...

    @property
    @abstractmethod
    def closed(self) -> bool:
        """Whether the underlying connection is gone."""
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class StreamTransport(Transport):
    """TCP transport over asyncio streams."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        name: str,
        write_timeout: float = 5.0,
    ):
        super().__init__(name, write_timeout)
        self._reader = reader
        self._writer = writer

    async def write(self, data: bytes) -> None:
        if self.closed:
            raise DeviceRejectedError(f"Connection to {self.name} is closed")
        try:
            self._writer.write(data)
            await asyncio.wait_for(self._writer.drain(), self.write_timeout)
        except asyncio.TimeoutError as e:
            raise DeviceRejectedError(
                f"Write to {self.name} timed out after {self.write_timeout}s", e
            )
        except (OSError, ConnectionError) as e:
            raise DeviceRejectedError(f"Write to {self.name} failed: {e}", e)
        logger.debug(f"Wrote {len(data)} bytes to {self.name}")

    async def read_until(self, separator: bytes, timeout: float = 5.0) -> bytes:
        try:
            return await asyncio.wait_for(self._reader.readuntil(separator), timeout)
        except asyncio.IncompleteReadError as e:
            raise DeviceRejectedError(f"{self.name} closed the connection", e)
        except asyncio.TimeoutError as e:
            raise DeviceRejectedError(f"Read from {self.name} timed out", e)

    async def read(self, timeout: float = 5.0) -> bytes:
        try:
            return await asyncio.wait_for(self._reader.read(4096), timeout)
        except asyncio.TimeoutError as e:
            raise DeviceRejectedError(f"Read from {self.name} timed out", e)

    async def close(self) -> None:
        if self._writer.is_closing():
            return
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (OSError, ConnectionError) as e:
            logger.debug(f"Error closing {self.name}: {e}")

    @property
    def closed(self) -> bool:
        return self._writer.is_closing() or self._reader.at_eof()


class _DatagramProtocol(asyncio.DatagramProtocol):
    """Collects inbound datagrams and tracks connection loss."""

    def __init__(self) -> None:
        self.received: asyncio.Queue[bytes] = asyncio.Queue()
        self.lost = False
        self.error: Exception | None = None

    def datagram_received(self, data: bytes, addr) -> None:
        self.received.put_nowait(data)

    def error_received(self, exc: Exception) -> None:
        self.error = exc

    def connection_lost(self, exc: Exception | None) -> None:
        self.lost = True


class DatagramTransport(Transport):
    """UDP transport bound to one remote address."""

    def __init__(
        self,
        transport: asyncio.DatagramTransport,
        protocol: _DatagramProtocol,
        name: str,
        write_timeout: float = 5.0,
    ):
        super().__init__(name, write_timeout)
        self._transport = transport
        self._protocol = protocol

    async def write(self, data: bytes) -> None:
        if self.closed:
            raise DeviceRejectedError(f"Endpoint {self.name} is closed")
        if self._protocol.error is not None:
            error, self._protocol.error = self._protocol.error, None
            raise DeviceRejectedError(f"Endpoint {self.name} reported: {error}", error)
        self._transport.sendto(data)
        logger.debug(f"Sent {len(data)} byte datagram to {self.name}")

    async def read(self, timeout: float = 5.0) -> bytes:
        try:
            return await asyncio.wait_for(self._protocol.received.get(), timeout)
        except asyncio.TimeoutError as e:
            raise DeviceRejectedError(f"No datagram from {self.name}", e)

    async def close(self) -> None:
        self._transport.close()

    @property
    def closed(self) -> bool:
        return self._protocol.lost or self._transport.is_closing()


async def open_tcp(
    host: str,
    port: int,
    write_timeout: float = 5.0,
) -> StreamTransport:
    """Open a TCP stream transport. Callers bound the dial with a timeout."""
    reader, writer = await asyncio.open_connection(host, port)
    return StreamTransport(reader, writer, f"tcp://{host}:{port}", write_timeout)


async def open_udp(
    host: str,
    port: int,
    write_timeout: float = 5.0,
) -> DatagramTransport:
    """Open a UDP endpoint connected to host:port."""
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.create_datagram_endpoint(
        _DatagramProtocol, remote_addr=(host, port)
    )
    return DatagramTransport(transport, protocol, f"udp://{host}:{port}", write_timeout)
