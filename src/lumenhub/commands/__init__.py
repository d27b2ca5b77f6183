"""Logical commands and the processor that dispatches them to hubs."""

from .models import (
    Command,
    CommandKind,
    ZoneSetLevel,
    ZoneTurnOn,
    ZoneTurnOff,
    ButtonPress,
    ButtonRelease,
    SceneSet,
    Ticket,
    ZONE_COMMANDS,
    BUTTON_COMMANDS,
    command_to_dict,
    command_from_dict,
)
from .processor import CommandProcessor

__all__ = [
    # Models
    "Command",
    "CommandKind",
    "ZoneSetLevel",
    "ZoneTurnOn",
    "ZoneTurnOff",
    "ButtonPress",
    "ButtonRelease",
    "SceneSet",
    "Ticket",
    "ZONE_COMMANDS",
    "BUTTON_COMMANDS",
    "command_to_dict",
    "command_from_dict",
    # Processor
    "CommandProcessor",
]
