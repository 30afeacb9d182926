"""
Settings Schema.

Declares the fields of the [pywrapper] settings table and checks values
against them.

Key features:
- ConfigField: type, default, description and optional choices of one field
- check_table: merge a table over the defaults and report every bad field at once
"""

from dataclasses import dataclass
from typing import Any


class SchemaError(Exception):
    """Raised when a field declaration is inconsistent."""

    pass


class ValidationError(SchemaError):
    """Raised when a settings value does not satisfy its field."""

    pass


def _type_ok(expected: type, value: Any) -> bool:
    # True/False must not pass as integers
    if isinstance(value, bool) and expected is not bool:
        return False
    return isinstance(value, expected)


@dataclass(frozen=True)
class ConfigField:
    """
    One settings field.

    Attributes:
        type_: Python type every value must have
        default: Value used when the settings file omits the field
        description: Written as a comment above the field in generated files
        choices: Closed set of allowed values, if any
    """

    type_: type
    default: Any
    description: str = ""
    choices: tuple[Any, ...] | None = None

    def __post_init__(self):
        if self.choices is not None:
            object.__setattr__(self, "choices", tuple(self.choices))
            bad = [c for c in self.choices if not _type_ok(self.type_, c)]
            if bad:
                raise SchemaError(f"Choices {bad!r} do not match type {self.type_.__name__}")

        if not _type_ok(self.type_, self.default):
            raise SchemaError(
                f"Default {self.default!r} does not match type {self.type_.__name__}"
            )
        if self.choices is not None and self.default not in self.choices:
            raise SchemaError(f"Default {self.default!r} not in choices {list(self.choices)}")

    def validate(self, value: Any) -> None:
        """
        Check one value.

        Raises:
            ValidationError: If the type is wrong or the value is not an allowed choice
        """
        if not _type_ok(self.type_, value):
            raise ValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )
        if self.choices is not None and value not in self.choices:
            raise ValidationError(f"Value {value!r} not in allowed choices {list(self.choices)}")


def defaults(schema: dict[str, ConfigField]) -> dict[str, Any]:
    """Default value of every field."""
    return {name: field.default for name, field in schema.items()}


def check_table(table: dict[str, Any], schema: dict[str, ConfigField]) -> dict[str, Any]:
    """
    Merge a settings table over the schema defaults and validate the result.

    Args:
        table: Values read from the settings file; may omit fields
        schema: Field declarations

    Returns:
        Complete table with one value per field

    Raises:
        ValidationError: Listing every unknown field and every invalid value
    """
    problems = [f"Unknown configuration field: {name}" for name in table if name not in schema]

    merged = defaults(schema)
    merged.update((name, value) for name, value in table.items() if name in schema)
    for name, field in schema.items():
        try:
            field.validate(merged[name])
        except ValidationError as e:
            problems.append(f"Field '{name}': {e}")

    if problems:
        raise ValidationError("; ".join(problems))
    return merged
