"""Telnet network driver for Lutron bridges."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ....connections.drivers import TcpDriver
from ....connections.transport import Transport
from ....exceptions import DeviceRejectedError, DialError

if TYPE_CHECKING:
    from ....system.models import ConnectionInfo

logger = logging.getLogger(__name__)

DEFAULT_PORT = 23
DEFAULT_LOGIN = "lutron"
DEFAULT_PASSWORD = "integration"

LOGIN_PROMPT = b"login: "
PASSWORD_PROMPT = b"password: "
READY_PROMPT = b"GNET> "


def parse_credentials(auth_token: str | None) -> tuple[str, str]:
    """Split a ``user:password`` auth token, falling back to bridge defaults."""
    if not auth_token:
        return DEFAULT_LOGIN, DEFAULT_PASSWORD
    user, sep, password = auth_token.partition(":")
    if not sep:
        return user, DEFAULT_PASSWORD
    return user, password


class LutronDriver(TcpDriver):
    """Dials the bridge and completes the telnet login before use."""

    kind = "lutron"
    default_port = DEFAULT_PORT

    def __init__(self, prompt_timeout: float = 2.0):
        super().__init__()
        self.prompt_timeout = prompt_timeout

    async def dial(self, info: "ConnectionInfo", write_timeout: float = 5.0) -> Transport:
        transport = await super().dial(info, write_timeout)
        user, password = parse_credentials(info.auth_token)
        try:
            await self.login(transport, user, password)
        except DeviceRejectedError as e:
            await transport.close()
            raise DialError(f"Lutron login to {info.address} failed", e)
        logger.info(f"Logged in to Lutron bridge at {info.address}")
        return transport

    async def login(self, transport: Transport, user: str, password: str) -> None:
        await transport.read_until(LOGIN_PROMPT, self.prompt_timeout)
        await transport.write(f"{user}\r\n".encode("ascii"))
        await transport.read_until(PASSWORD_PROMPT, self.prompt_timeout)
        await transport.write(f"{password}\r\n".encode("ascii"))
        await transport.read_until(READY_PROMPT, self.prompt_timeout)
