"""Typed parameters of trigger and action templates."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable


class IngredientType(Enum):
    """Declared value types for ingredients."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    ZONE_ID = "zone_id"
    SCENE_ID = "scene_id"
    DEVICE_ID = "device_id"


REFERENCE_TYPES = {
    IngredientType.ZONE_ID: "zone",
    IngredientType.SCENE_ID: "scene",
    IngredientType.DEVICE_ID: "device",
}


@dataclass(frozen=True)
class Ingredient:
    """A typed parameter of a trigger or action template.

    ``validator`` receives the parsed value and raises ValueError to
    reject it.
    """

    id: str
    name: str
    type: IngredientType
    description: str = ""
    required: bool = True
    default: Any = None
    validator: Callable[[Any], None] | None = field(default=None, compare=False, repr=False)

    @property
    def reference_kind(self) -> str | None:
        """Registry entity this ingredient refers to, if any."""
        return REFERENCE_TYPES.get(self.type)

    def parse(self, value: Any) -> Any:
        """Convert a raw value to the declared type.

        Raises:
            ValueError: If the value does not parse or fails validation
        """
        parsed = _PARSERS[self.type](value)
        if self.validator is not None:
            self.validator(parsed)
        return parsed

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "required": self.required,
            "default": serialize_value(self.default),
        }


def serialize_value(value: Any) -> Any:
    """JSON-friendly form of a parsed ingredient value."""
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _parse_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {type(value).__name__}")
    return value


def _parse_integer(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("expected an integer, got a boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"expected an integer, got {value}")
        return int(value)
    if isinstance(value, str):
        return int(value.strip())
    raise ValueError(f"expected an integer, got {type(value).__name__}")


def _parse_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("expected a number, got a boolean")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise ValueError(f"expected a number, got {type(value).__name__}")


def _parse_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ValueError(f"expected true or false, got {value!r}")


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    raise ValueError(f"expected an ISO 8601 timestamp, got {type(value).__name__}")


_PARSERS: dict[IngredientType, Callable[[Any], Any]] = {
    IngredientType.STRING: _parse_string,
    IngredientType.INTEGER: _parse_integer,
    IngredientType.FLOAT: _parse_float,
    IngredientType.BOOLEAN: _parse_boolean,
    IngredientType.DATETIME: _parse_datetime,
    IngredientType.ZONE_ID: _parse_string,
    IngredientType.SCENE_ID: _parse_string,
    IngredientType.DEVICE_ID: _parse_string,
}
