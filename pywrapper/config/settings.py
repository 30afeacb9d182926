"""
Settings Object.

Settings exposes the fields of one schema as attributes. Every assignment is
validated, and save() writes the values back into the settings file.
"""

from pathlib import Path
from typing import Any

from pywrapper.config.schema import ConfigField, check_table
from pywrapper.config.toml_handler import write_table


class Settings:
    """
    Validated settings values.

    Example:
        settings = Settings(SCHEMA, {"leak_check": "raise"})
        settings.leak_check            # "raise"
        settings.int_as_float = 1      # ValidationError: Expected type bool
        settings.save(Path("config/pywrapper.toml"))
    """

    __slots__ = ("_schema", "_section", "_values")

    def __init__(
        self,
        schema: dict[str, ConfigField],
        values: dict[str, Any] | None = None,
        section: str = "pywrapper",
    ):
        """
        Initialize Settings.

        Args:
            schema: Field declarations
            values: Values read from a settings table; missing fields take defaults
            section: Table the values are saved under

        Raises:
            ValidationError: If a field is unknown or a value is invalid
        """
        object.__setattr__(self, "_schema", schema)
        object.__setattr__(self, "_section", section)
        object.__setattr__(self, "_values", check_table(values or {}, schema))

    def __getattr__(self, name: str) -> Any:
        # Only reached for names that are not slots
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._values[name]
        except KeyError:
            raise AttributeError(f"Unknown setting '{name}'") from None

    def __setattr__(self, name: str, value: Any) -> None:
        field = self._schema.get(name)
        if field is None:
            raise AttributeError(f"Unknown setting '{name}'")
        field.validate(value)
        self._values[name] = value

    def as_dict(self) -> dict[str, Any]:
        """Copy of the current values."""
        return dict(self._values)

    def save(self, file_path: Path) -> None:
        """
        Write the current values into the settings table of a TOML file.

        Raises:
            TOMLError: If the file cannot be written
        """
        write_table(Path(file_path), self._section, self._values)

    def __repr__(self) -> str:
        return f"Settings([{self._section}] {self._values})"
