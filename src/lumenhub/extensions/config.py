"""lumenhub.yaml: which plugins run, their settings, and core tuning.

    extensions:
      lutron:
        config:
          release_sends_press: false
      fluxwifi: false              # shorthand for enabled: false

    core:                          # same sections as HubConfig
      processor:
        intake_size: 128
      connections:
        write_timeout: ${LUMENHUB_WRITE_TIMEOUT}

``${VAR}`` references are expanded from the environment. Values that
become numbers or booleans after expansion are converted, so the core
section validates the same way whether a value was typed in or injected.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..config import HubConfig
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("lumenhub.yaml", "lumenhub.yml", ".lumenhub.yaml", ".lumenhub.yml")
SEARCH_DEPTH = 5


@dataclass
class ExtensionConfig:
    name: str
    enabled: bool = True
    config: dict[str, Any] = field(default_factory=dict)


@dataclass
class LumenExtensionConfig:
    """Parsed lumenhub.yaml. Plugins not mentioned are enabled with no settings."""

    extensions: dict[str, ExtensionConfig] = field(default_factory=dict)
    core: dict[str, Any] = field(default_factory=dict)
    source_path: Path | None = None

    def is_extension_enabled(self, name: str) -> bool:
        entry = self.extensions.get(name)
        return entry is None or entry.enabled

    def get_extension_config(self, name: str) -> dict[str, Any]:
        entry = self.extensions.get(name)
        return entry.config if entry is not None else {}

    def hub_config(self) -> HubConfig:
        """HubConfig with the ``core:`` overrides applied.

        Raises:
            ConfigurationError: Unknown section or key, or a value out of range.
        """
        try:
            return HubConfig.from_dict(self.core)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Bad core section in {self.source_path or 'config'}", e)


def load_config(path: Path | str | None = None) -> LumenExtensionConfig:
    """Read lumenhub.yaml.

    With no path, the working directory and its parents are searched.
    A missing file means defaults; an unreadable or malformed one raises
    ConfigurationError.
    """
    if path is None:
        found = _search(Path.cwd())
        if found is None:
            logger.debug("No lumenhub.yaml found; all extensions enabled with defaults")
            return LumenExtensionConfig()
        path = found
    path = Path(path)
    if not path.exists():
        logger.warning(f"{path} does not exist; using defaults")
        return LumenExtensionConfig()

    try:
        raw = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read {path}", e)
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping, got {type(raw).__name__}")

    logger.info(f"Loaded configuration from {path}")
    return parse_config(raw, path)


def _search(start: Path) -> Path | None:
    for directory in [start, *start.parents][:SEARCH_DEPTH]:
        for filename in CONFIG_FILENAMES:
            if (directory / filename).is_file():
                return directory / filename
    return None


def parse_config(raw: dict, source_path: Path | None = None) -> LumenExtensionConfig:
    """Build a LumenExtensionConfig from an already loaded mapping."""
    parsed = LumenExtensionConfig(source_path=source_path)

    for name, entry in (raw.get("extensions") or {}).items():
        if isinstance(entry, bool):
            parsed.extensions[name] = ExtensionConfig(name, enabled=entry)
        elif isinstance(entry, dict):
            parsed.extensions[name] = ExtensionConfig(
                name,
                enabled=bool(entry.get("enabled", True)),
                config=_expand(entry.get("config") or {}),
            )
        else:
            logger.warning(f"Ignoring extensions.{name}: expected a mapping or a boolean")

    parsed.core = _expand(raw.get("core") or {}, coerce=True)
    return parsed


def _expand(value: Any, coerce: bool = False) -> Any:
    if isinstance(value, dict):
        return {k: _expand(v, coerce) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand(v, coerce) for v in value]
    if not isinstance(value, str):
        return value

    expanded = os.path.expandvars(value)
    if coerce and expanded != value:
        try:
            scalar = yaml.safe_load(expanded)
        except yaml.YAMLError:
            return expanded
        if isinstance(scalar, (bool, int, float)):
            return scalar
    return expanded
