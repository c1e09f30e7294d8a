"""Configuration validation framework with schema definitions.

A schema is a `ConfigItems` list of `ConfigField` entries. `ConfigValidator`
checks a configuration section against it: types, required fields, custom validators,
arrays of tables via `items` and close-match suggestions for unknown keys.
"""

import difflib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .config import BOOL_STRINGS

__all__ = [
    "ConfigField",
    "ConfigItems",
    "ConfigValidator",
    "format_config_error",
]


@dataclass
class ConfigField:  # pylint: disable=too-many-instance-attributes
    """Describes an expected configuration field.

    Attributes:
        name: The configuration key name
        field_type: Expected type or tuple of types for a union
        required: Whether the field is required
        default: Default value if not provided
        description: Human-readable description
        validator: Custom validator returning a list of error messages
        items: Schema applied to every table of an array of tables
    """

    name: str
    field_type: type | tuple[type, ...] = str
    required: bool = False
    default: Any = None
    description: str = ""
    validator: Callable[[Any], list[str]] | None = None
    items: "ConfigItems | None" = None

    @property
    def type_name(self) -> str:
        """Return human-readable type name (e.g., 'str', 'int or float')."""
        if isinstance(self.field_type, tuple):
            return " or ".join(typ.__name__ for typ in self.field_type)
        return self.field_type.__name__


class ConfigItems(list):
    """A list of ConfigField items."""

    def __init__(self, *args: ConfigField) -> None:
        super().__init__(args)


def format_config_error(section: str, field: str, message: str) -> str:
    """Format a configuration error message.

    Args:
        section: Section name
        field: Field name that has the error
        message: Error description
    """
    return f"[{section}] Config error for '{field}': {message}"


class ConfigValidator:
    """Validates a configuration section against a schema."""

    def __init__(self, config: dict, section: str, logger: logging.Logger) -> None:
        """Initialize the validator.

        Args:
            config: The configuration dictionary to validate
            section: Name of the section for error messages
            logger: Logger instance for warnings
        """
        self.config = config
        self.section = section
        self.log = logger

    def validate(self, schema: ConfigItems) -> list[str]:
        """Validate configuration against schema.

        Returns:
            List of error messages (empty if validation passed)
        """
        errors = []

        for field_def in schema:
            value = self.config.get(field_def.name)

            if value is None:
                if field_def.required:
                    errors.append(format_config_error(self.section, field_def.name, "Missing required field"))
                continue

            type_error = self._check_type(field_def, value)
            if type_error:
                errors.append(type_error)
                continue

            if field_def.validator:
                errors.extend(format_config_error(self.section, field_def.name, err) for err in field_def.validator(value))

            if field_def.items is not None:
                errors.extend(self._validate_tables(field_def, enumerate(value), field_def.items))

        return errors

    def _check_type(self, field_def: ConfigField, value: Any) -> str | None:  # noqa: ANN401
        """Return an error message if `value` doesn't match the declared type."""
        expected = field_def.field_type if isinstance(field_def.field_type, tuple) else (field_def.field_type,)
        for typ in expected:
            if typ is bool:
                if isinstance(value, bool) or (isinstance(value, str) and value.lower() in BOOL_STRINGS):
                    return None
            elif typ in {int, float}:
                if isinstance(value, int | float) and not isinstance(value, bool):
                    return None
            elif isinstance(value, typ):
                return None
        return format_config_error(self.section, field_def.name, f"Expected {field_def.type_name}, got {type(value).__name__}")

    def _validate_tables(self, field_def: ConfigField, entries: Any, schema: ConfigItems) -> list[str]:  # noqa: ANN401
        """Validate every nested table of a field."""
        errors: list[str] = []
        for key, child in entries:
            prefix = f"{self.section}.{field_def.name}[{key}]"
            if not isinstance(child, dict):
                errors.append(format_config_error(prefix, field_def.name, f"Expected table, got {type(child).__name__}"))
                continue
            child_validator = ConfigValidator(child, prefix, self.log)
            errors.extend(child_validator.validate(schema))
            errors.extend(child_validator.warn_unknown_keys(schema))
        return errors

    def warn_unknown_keys(self, schema: ConfigItems) -> list[str]:
        """Log warnings for unknown configuration keys.

        Returns:
            List of warning messages
        """
        warnings = []
        known_keys = [f.name for f in schema]

        for key in self.config:
            if key in known_keys:
                continue
            similar = difflib.get_close_matches(key, known_keys, n=1)
            if similar:
                msg = f"[{self.section}] Unknown option '{key}' (did you mean '{similar[0]}'?)"
            else:
                msg = f"[{self.section}] Unknown option '{key}' - will be ignored"
            self.log.warning(msg)
            warnings.append(msg)

        return warnings
