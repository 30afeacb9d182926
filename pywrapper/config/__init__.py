"""
pywrapper Configuration - TOML-based settings.

This module provides:
- The settings schema
- Loading and validation of the [pywrapper] table
- Process-wide access to the active settings

Example usage:
    from pywrapper import config

    config.load(Path("config/pywrapper.toml"))
    config.current().leak_check        # "warn"
    config.configure(int_as_float=True)
"""

import os
from pathlib import Path
from typing import Any

from pywrapper.config.schema import ConfigField, SchemaError, ValidationError, defaults
from pywrapper.config.settings import Settings
from pywrapper.config.toml_handler import TOMLError, read_toml, render_template

SECTION = "pywrapper"

ENV_VAR = "PYWRAPPER_CONFIG"

# Default config file path
DEFAULT_CONFIG_FILE = Path("config/pywrapper.toml")

SCHEMA: dict[str, ConfigField] = {
    "leak_check": ConfigField(
        str,
        "warn",
        "What finalize() does with references still alive",
        choices=["off", "warn", "raise"],
    ),
    "int_as_float": ConfigField(
        bool, False, "Let float targets accept runtime integers"
    ),
    "module_prefix": ConfigField(
        str, "pywrapper_script_", "Module name prefix for loaded scripts"
    ),
    "cache_scripts": ConfigField(
        bool, False, "Reuse the module already loaded from the same script path"
    ),
}

_settings: Settings | None = None


class ConfigError(Exception):
    """Base exception for config API errors."""

    pass


def _resolve_path(path: Path | str | None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_FILE


def load(path: Path | str | None = None) -> Settings:
    """
    Load settings from a TOML file and make them active.

    A missing file, or a file without a [pywrapper] table, yields defaults.

    Args:
        path: Settings file (default: $PYWRAPPER_CONFIG or config/pywrapper.toml)

    Returns:
        The active Settings

    Raises:
        ConfigError: If the file cannot be parsed or fails validation
    """
    global _settings

    config_file = _resolve_path(path)
    values: dict[str, Any] = {}
    try:
        if config_file.exists():
            values = read_toml(config_file).get(SECTION, {})
        _settings = Settings(SCHEMA, values, SECTION)
    except (TOMLError, SchemaError) as e:
        raise ConfigError(f"Failed to load settings from {config_file}: {e}") from e

    return _settings


def current() -> Settings:
    """Return the active settings, loading them on first use."""
    if _settings is None:
        return load()
    return _settings


def loaded() -> Settings | None:
    """Return the active settings if any are loaded, without reading a file."""
    return _settings


def configure(**overrides: Any) -> Settings:
    """
    Apply validated overrides to the active settings.

    Raises:
        ConfigError: If a field is unknown or a value is invalid
    """
    settings = current()
    for name, value in overrides.items():
        try:
            setattr(settings, name, value)
        except (AttributeError, ValidationError) as e:
            raise ConfigError(f"Invalid setting {name}={value!r}: {e}") from e
    return settings


def reset() -> Settings:
    """Restore default settings without reading any file."""
    global _settings
    _settings = Settings(SCHEMA, section=SECTION)
    return _settings


def write_default(path: Path | str) -> Path:
    """
    Write a commented settings template with default values.

    Args:
        path: Destination file

    Returns:
        The written path
    """
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(render_template(SECTION, SCHEMA, defaults(SCHEMA)), encoding="utf-8")
    return file_path


__all__ = [
    "SCHEMA",
    "ConfigError",
    "Settings",
    "configure",
    "current",
    "load",
    "loaded",
    "reset",
    "write_default",
]
