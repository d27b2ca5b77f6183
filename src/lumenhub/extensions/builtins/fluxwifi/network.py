"""Network driver for Flux WiFi controllers."""

from ....connections.drivers import TcpDriver
from .protocol import PORT


class FluxWifiDriver(TcpDriver):
    """Plain TCP on the controller's fixed port."""

    kind = "fluxwifi"
    default_port = PORT
