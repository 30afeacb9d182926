"""
TOML File I/O.

Reads settings files with tomllib and writes them with tomlkit, so comments
in a file a user has edited survive a save.
"""

import tomllib
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import TOMLKitError

from pywrapper.config.schema import ConfigField


class TOMLError(Exception):
    """Raised when a settings file cannot be read, parsed or written."""

    pass


def read_toml(file_path: Path) -> dict[str, Any]:
    """
    Parse a TOML file.

    Raises:
        TOMLError: If the file is missing, unreadable or not valid TOML
    """
    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise TOMLError(f"Settings file not found: {file_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise TOMLError(f"Failed to parse {file_path}: {e}") from e
    except OSError as e:
        raise TOMLError(f"Failed to read {file_path}: {e}") from e


def write_table(file_path: Path, section: str, values: dict[str, Any]) -> None:
    """
    Store values under one table of a TOML file.

    An existing file is edited in place: other tables, key order and
    comments are kept, and only the given keys change.

    Args:
        file_path: Settings file; created with its parent directories if missing
        section: Table name
        values: Keys and values to store

    Raises:
        TOMLError: If the file cannot be parsed or written
    """
    try:
        if file_path.exists():
            doc = tomlkit.parse(file_path.read_text(encoding="utf-8"))
        else:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            doc = tomlkit.document()

        if section not in doc:
            doc.add(section, tomlkit.table())
        table = doc[section]
        for key, value in values.items():
            table[key] = value

        file_path.write_text(tomlkit.dumps(doc), encoding="utf-8")
    except (OSError, TOMLKitError, TypeError, ValueError) as e:
        raise TOMLError(f"Failed to write {file_path}: {e}") from e


def render_template(section: str, schema: dict[str, ConfigField], values: dict[str, Any]) -> str:
    """
    Render a settings table with each field's description and choices as comments.

    Args:
        section: Table name
        schema: Field declarations, in output order
        values: Values to write; fields not given use their default

    Returns:
        TOML text
    """
    table = tomlkit.table()
    for name, field in schema.items():
        if field.description:
            table.add(tomlkit.comment(field.description))
        if field.choices is not None:
            table.add(tomlkit.comment("Choices: " + ", ".join(map(str, field.choices))))
        table.add(name, values.get(name, field.default))
        table.add(tomlkit.nl())

    doc = tomlkit.document()
    doc.add(tomlkit.comment(f"pywrapper settings ([{section}] table)"))
    doc.add(tomlkit.nl())
    doc.add(section, table)
    return tomlkit.dumps(doc)
