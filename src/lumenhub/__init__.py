"""lumenhub - Home automation hub core.

lumenhub turns logical intents ("set zone Z to 40%", "activate scene S")
into vendor wire commands on pooled hub connections, and runs user
recipes that couple triggers to those commands:
- Per-hub ordered command dispatch with structured outcomes
- Bounded connection pools with FIFO waiters and health checks
- Pluggable vendor builders and network drivers via extensions
- Recipe engine with time, interval, cron and event triggers
- In-process event bus for outcomes, firings and connection state

Example:
    from lumenhub import System, ExtensionManager, ZoneSetLevel

    system = System()
    manager = ExtensionManager()
    manager.discover_and_load()
    manager.populate(system)

    async with system:
        await system.registry.add_device(bridge)
        outcome = await system.processor.submit(ZoneSetLevel(zone_id, 42.5))
"""

__version__ = "0.1.0"

from lumenhub.config import (
    HubConfig,
    ProcessorConfig,
    ConnectionConfig,
    EventConfig,
    RecipeConfig,
)

from lumenhub.exceptions import (
    ErrorKind,
    LumenError,
    ConfigurationError,
    CommandError,
    UnsupportedError,
    UnknownEntityError,
    TransportUnavailableError,
    PoolTimeoutError,
    DialError,
    PoolClosedError,
    DeviceRejectedError,
    ProtocolError,
    OverloadedError,
    ShutdownError,
    InternalError,
    RegistryError,
    RecipeUnmarshalError,
    RecipeNotFoundError,
    PersistenceError,
)

from lumenhub.commands import (
    Command,
    CommandKind,
    ZoneSetLevel,
    ZoneTurnOn,
    ZoneTurnOff,
    ButtonPress,
    ButtonRelease,
    SceneSet,
    Ticket,
    CommandProcessor,
)

from lumenhub.events import (
    Event,
    EventBus,
    CommandOutcome,
    OutcomeStatus,
    TriggerFired,
    ConnectionStateChanged,
    ConnectionState,
)

from lumenhub.connections import (
    Transport,
    NetworkDriver,
    ConnectionPool,
)

from lumenhub.system import (
    System,
    MutationObserver,
    DeviceRegistry,
    Device,
    ConnectionInfo,
    Zone,
    ZoneType,
    OutputType,
    Button,
    Sensor,
    Scene,
)

from lumenhub.extensions import (
    Extension,
    ExtensionInfo,
    ExtensionManager,
    ExtensionRegistry,
    CommandBuilder,
)

from lumenhub.recipes import (
    Recipe,
    RecipeManager,
    CookBook,
    Trigger,
    Action,
)

__all__ = [
    "__version__",
    # Config
    "HubConfig",
    "ProcessorConfig",
    "ConnectionConfig",
    "EventConfig",
    "RecipeConfig",
    # Errors
    "ErrorKind",
    "LumenError",
    "ConfigurationError",
    "CommandError",
    "UnsupportedError",
    "UnknownEntityError",
    "TransportUnavailableError",
    "PoolTimeoutError",
    "DialError",
    "PoolClosedError",
    "DeviceRejectedError",
    "ProtocolError",
    "OverloadedError",
    "ShutdownError",
    "InternalError",
    "RegistryError",
    "RecipeUnmarshalError",
    "RecipeNotFoundError",
    "PersistenceError",
    # Commands
    "Command",
    "CommandKind",
    "ZoneSetLevel",
    "ZoneTurnOn",
    "ZoneTurnOff",
    "ButtonPress",
    "ButtonRelease",
    "SceneSet",
    "Ticket",
    "CommandProcessor",
    # Events
    "Event",
    "EventBus",
    "CommandOutcome",
    "OutcomeStatus",
    "TriggerFired",
    "ConnectionStateChanged",
    "ConnectionState",
    # Connections
    "Transport",
    "NetworkDriver",
    "ConnectionPool",
    # System
    "System",
    "MutationObserver",
    "DeviceRegistry",
    "Device",
    "ConnectionInfo",
    "Zone",
    "ZoneType",
    "OutputType",
    "Button",
    "Sensor",
    "Scene",
    # Extensions
    "Extension",
    "ExtensionInfo",
    "ExtensionManager",
    "ExtensionRegistry",
    "CommandBuilder",
    # Recipes
    "Recipe",
    "RecipeManager",
    "CookBook",
    "Trigger",
    "Action",
]
