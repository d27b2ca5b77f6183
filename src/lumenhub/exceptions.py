"""Standard exception hierarchy for lumenhub.

All lumenhub exceptions inherit from LumenError, making it easy
to catch all library-specific errors.

Exception Hierarchy:
    LumenError (base)
    ├── ConfigurationError - Invalid configuration
    ├── CommandError - Base for dispatch errors (carries an ErrorKind)
    │   ├── UnsupportedError - No builder, or builder can't translate command
    │   ├── UnknownEntityError - Id resolved to no device/zone/scene
    │   ├── TransportUnavailableError - Pool acquisition failed
    │   │   ├── PoolTimeoutError - Acquisition wait elapsed
    │   │   ├── DialError - Could not open a connection to the hub
    │   │   └── PoolClosedError - Pool is shutting down
    │   ├── DeviceRejectedError - Device returned an error
    │   │   └── ProtocolError - Response could not be parsed
    │   ├── OverloadedError - Intake queue full
    │   ├── ShutdownError - Core is closing
    │   └── InternalError - Bug / unexpected state
    ├── RegistryError - Device registry invariant violated
    ├── RecipeUnmarshalError - Recipe description failed validation
    ├── RecipeNotFoundError - Recipe id is not registered
    └── PersistenceError - Mutation observer failed

Extension loading errors (ExtensionError and subclasses) live in
lumenhub.extensions.types and also derive from LumenError.
"""

from enum import Enum


class ErrorKind(Enum):
    """Stable, machine-readable failure kinds carried by outcomes."""

    UNSUPPORTED = "Unsupported"
    UNKNOWN_ENTITY = "UnknownEntity"
    TRANSPORT_UNAVAILABLE = "TransportUnavailable"
    DEVICE_REJECTED = "DeviceRejected"
    OVERLOADED = "Overloaded"
    SHUTDOWN = "Shutdown"
    INTERNAL = "Internal"

    @property
    def http_status(self) -> int:
        """Status code the HTTP layer should answer with for this kind."""
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    ErrorKind.UNSUPPORTED: 400,
    ErrorKind.UNKNOWN_ENTITY: 400,
    ErrorKind.TRANSPORT_UNAVAILABLE: 503,
    ErrorKind.DEVICE_REJECTED: 502,
    ErrorKind.OVERLOADED: 429,
    ErrorKind.SHUTDOWN: 503,
    ErrorKind.INTERNAL: 500,
}


class LumenError(Exception):
    """Base exception for all lumenhub errors.

    Catch this to handle any library-specific exception:
        try:
            ticket = system.processor.enqueue(cmd)
        except LumenError as e:
            logger.error(f"Hub error: {e}")
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        if self.cause:
            return f"{super().__str__()} (caused by: {self.cause})"
        return super().__str__()


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(LumenError):
    """Invalid configuration.

    Raised when HubConfig has invalid settings, missing required
    values, or incompatible options.
    """

    pass


# =============================================================================
# Command Errors
# =============================================================================


class CommandError(LumenError):
    """Base exception for command dispatch errors.

    Every subclass pins a stable ErrorKind so outcomes and the HTTP
    boundary can translate failures without inspecting messages.
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        kind: ErrorKind | None = None,
    ):
        super().__init__(message, cause)
        if kind is not None:
            self.kind = kind

    @property
    def message(self) -> str:
        return self.args[0] if self.args else ""


class UnsupportedError(CommandError):
    """No builder for the device model, or the builder cannot translate the command."""

    kind = ErrorKind.UNSUPPORTED


class UnknownEntityError(CommandError):
    """An id resolved to no device, zone or scene."""

    kind = ErrorKind.UNKNOWN_ENTITY

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(f"Unknown {entity_type}: {entity_id}")
        self.entity_type = entity_type
        self.entity_id = entity_id


class TransportUnavailableError(CommandError):
    """No transport could be obtained for the hub."""

    kind = ErrorKind.TRANSPORT_UNAVAILABLE


class PoolTimeoutError(TransportUnavailableError):
    """Raised when a pool acquisition wait elapses."""

    def __init__(self, pool_name: str, timeout: float):
        super().__init__(
            f"Timed out after {timeout:.2f}s waiting for a connection to '{pool_name}'"
        )
        self.pool_name = pool_name
        self.timeout = timeout


class DialError(TransportUnavailableError):
    """Opening a new connection to a hub failed.

    Raised when:
    - The address cannot be resolved or refuses the connection
    - The dial exceeds its timeout
    - A vendor login handshake fails
    """

    pass


class PoolClosedError(TransportUnavailableError):
    """Raised when acquiring from a pool that is closing or closed."""

    def __init__(self, pool_name: str):
        super().__init__(f"Connection pool '{pool_name}' is closed")
        self.pool_name = pool_name


class DeviceRejectedError(CommandError):
    """The device returned an error, or the write failed mid-command.

    The connection used for the command is discarded.
    """

    kind = ErrorKind.DEVICE_REJECTED


class ProtocolError(DeviceRejectedError):
    """A device response could not be parsed."""

    pass


class OverloadedError(CommandError):
    """The processor intake is full; callers may retry later."""

    kind = ErrorKind.OVERLOADED


class ShutdownError(CommandError):
    """The core is closing and accepts no more work."""

    kind = ErrorKind.SHUTDOWN


class InternalError(CommandError):
    """Unexpected state inside the core."""

    kind = ErrorKind.INTERNAL


# =============================================================================
# Registry Errors
# =============================================================================


class RegistryError(LumenError):
    """Device registry edit would violate a registry invariant.

    Raised when:
    - A child device references a hub that is not registered
    - A child device references another child as its hub
    - A device id or zone id is registered twice
    """

    pass


# =============================================================================
# Recipe Errors
# =============================================================================


class RecipeUnmarshalError(LumenError):
    """A recipe description failed validation.

    Carries enough structure for a UI to highlight the offending field:
        {"paramId": "zoneId", "errorType": "required", "description": "..."}
    """

    REQUIRED = "required"
    INVALID = "invalid"
    UNKNOWN = "unknown"

    def __init__(self, param_id: str, error_type: str, description: str):
        super().__init__(description)
        self.param_id = param_id
        self.error_type = error_type
        self.description = description

    def to_dict(self) -> dict[str, str]:
        """Convert to the wire shape used by the HTTP layer."""
        return {
            "paramId": self.param_id,
            "errorType": self.error_type,
            "description": self.description,
        }


class RecipeNotFoundError(LumenError):
    """Raised when a recipe id is not registered."""

    def __init__(self, recipe_id: str):
        super().__init__(f"Recipe not found: {recipe_id}")
        self.recipe_id = recipe_id


# =============================================================================
# Persistence Errors
# =============================================================================


class PersistenceError(LumenError):
    """The bound mutation observer failed to persist a change."""

    pass
