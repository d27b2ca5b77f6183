"""Unified configuration for lumenhub.

HubConfig provides a clean way to configure all core components:
- Command processor intake and timeouts
- Connection pool sizing and transport timeouts
- Event bus buffering
- Recipe action execution
"""

from dataclasses import dataclass, field, fields
from typing import Any
import os

from .exceptions import ConfigurationError


@dataclass
class ProcessorConfig:
    """Configuration for the command processor."""

    intake_size: int = 256
    acquire_timeout: float = 5.0

    # How many completed outcomes stay available to wait()
    outcome_retention: int = 1024


@dataclass
class ConnectionConfig:
    """Configuration for hub connection pools and transports."""

    pool_capacity: int = 1
    dial_timeout: float = 3.0
    write_timeout: float = 5.0
    shutdown_grace: float = 10.0


@dataclass
class EventConfig:
    """Configuration for the event bus."""

    subscriber_buffer: int = 128


@dataclass
class RecipeConfig:
    """Configuration for the recipe engine."""

    action_timeout: float | None = None  # None = actions run to completion


@dataclass
class HubConfig:
    """Main configuration for lumenhub.

    Create from environment variables:
        config = HubConfig.from_env()

    Or specify directly:
        config = HubConfig(
            processor=ProcessorConfig(intake_size=64),
            connections=ConnectionConfig(pool_capacity=2),
        )
    """

    processor: ProcessorConfig = field(default_factory=ProcessorConfig)
    connections: ConnectionConfig = field(default_factory=ConnectionConfig)
    events: EventConfig = field(default_factory=EventConfig)
    recipes: RecipeConfig = field(default_factory=RecipeConfig)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigurationError: If any setting is out of range.
        """
        if self.processor.intake_size < 1:
            raise ConfigurationError("processor.intake_size must be >= 1")
        if self.processor.acquire_timeout <= 0:
            raise ConfigurationError("processor.acquire_timeout must be > 0")
        if self.processor.outcome_retention < 0:
            raise ConfigurationError("processor.outcome_retention must be >= 0")
        if self.connections.pool_capacity < 1:
            raise ConfigurationError("connections.pool_capacity must be >= 1")
        for name in ("dial_timeout", "write_timeout", "shutdown_grace"):
            if getattr(self.connections, name) < 0:
                raise ConfigurationError(f"connections.{name} must be >= 0")
        if self.events.subscriber_buffer < 1:
            raise ConfigurationError("events.subscriber_buffer must be >= 1")

    @classmethod
    def from_env(cls) -> "HubConfig":
        """Load configuration from environment variables.

        Environment variables:
        - LUMENHUB_INTAKE_SIZE: Max pending commands
        - LUMENHUB_ACQUIRE_TIMEOUT: Seconds to wait for a pool connection
        - LUMENHUB_OUTCOME_RETENTION: Completed outcomes kept for wait()
        - LUMENHUB_POOL_CAPACITY: Connections per hub
        - LUMENHUB_DIAL_TIMEOUT: Seconds allowed to open a connection
        - LUMENHUB_WRITE_TIMEOUT: Seconds allowed per transport write
        - LUMENHUB_SHUTDOWN_GRACE: Seconds pools wait for in-use connections
        - LUMENHUB_SUBSCRIBER_BUFFER: Events buffered per subscriber
        - LUMENHUB_ACTION_TIMEOUT: Seconds a recipe action may run
        """
        action_timeout = os.getenv("LUMENHUB_ACTION_TIMEOUT")
        try:
            return cls(
                processor=ProcessorConfig(
                    intake_size=int(os.getenv("LUMENHUB_INTAKE_SIZE", "256")),
                    acquire_timeout=float(os.getenv("LUMENHUB_ACQUIRE_TIMEOUT", "5.0")),
                    outcome_retention=int(
                        os.getenv("LUMENHUB_OUTCOME_RETENTION", "1024")
                    ),
                ),
                connections=ConnectionConfig(
                    pool_capacity=int(os.getenv("LUMENHUB_POOL_CAPACITY", "1")),
                    dial_timeout=float(os.getenv("LUMENHUB_DIAL_TIMEOUT", "3.0")),
                    write_timeout=float(os.getenv("LUMENHUB_WRITE_TIMEOUT", "5.0")),
                    shutdown_grace=float(os.getenv("LUMENHUB_SHUTDOWN_GRACE", "10.0")),
                ),
                events=EventConfig(
                    subscriber_buffer=int(os.getenv("LUMENHUB_SUBSCRIBER_BUFFER", "128")),
                ),
                recipes=RecipeConfig(
                    action_timeout=float(action_timeout) if action_timeout else None,
                ),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid LUMENHUB_* environment value: {e}", e)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HubConfig":
        """Create from a nested mapping (e.g. the ``core:`` section of lumenhub.yaml).

        Unknown sections or keys raise ConfigurationError so typos are not
        silently ignored.
        """
        sections = {
            "processor": ProcessorConfig,
            "connections": ConnectionConfig,
            "events": EventConfig,
            "recipes": RecipeConfig,
        }
        kwargs: dict[str, Any] = {}
        for section, values in (data or {}).items():
            if section not in sections:
                raise ConfigurationError(f"Unknown config section: {section}")
            section_cls = sections[section]
            allowed = {f.name for f in fields(section_cls)}
            unknown = set(values or {}) - allowed
            if unknown:
                raise ConfigurationError(
                    f"Unknown keys in '{section}': {', '.join(sorted(unknown))}"
                )
            kwargs[section] = section_cls(**(values or {}))
        return cls(**kwargs)

    @classmethod
    def default(cls) -> "HubConfig":
        """Create a default configuration (same as no-arg constructor)."""
        return cls()
