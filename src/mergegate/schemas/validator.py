"""JSON Schema checks for policy files and the decision line."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from jsonschema.exceptions import ValidationError
from jsonschema.validators import Draft202012Validator

from mergegate.utils.schema_registry import get_registry


class SchemaValidationError(ValueError):
    """Strict validation failure; ``errors`` holds one line per violation."""

    def __init__(self, schema_name: str, errors: list[str]) -> None:
        super().__init__(
            f"Schema validation failed for '{schema_name}':\n" + "\n".join(f"  - {msg}" for msg in errors)
        )
        self.schema_name = schema_name
        self.errors = errors


@lru_cache(maxsize=None)
def _validator(schema_name: str) -> Draft202012Validator:
    schema = get_registry().get_json(schema_name)
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def _location(error: ValidationError) -> list[str]:
    return [str(part) for part in error.absolute_path]


def schema_errors(data: Any, schema_name: str) -> list[str]:
    """Return violations as ``path: message`` lines ordered by path; empty if valid."""
    errors = sorted(_validator(schema_name).iter_errors(data), key=_location)
    return [
        f"{'.'.join(_location(error))}: {error.message}" if error.absolute_path else error.message
        for error in errors
    ]


def validate_data(data: Any, schema_name: str, strict: bool = True) -> tuple[bool, list[str]]:
    """Validate ``data`` against a packaged schema.

    With ``strict`` a failure raises :class:`SchemaValidationError`; otherwise
    the violations are returned. Unknown schema names raise ``KeyError``.
    """
    errors = schema_errors(data, schema_name)
    if errors and strict:
        raise SchemaValidationError(schema_name, errors)
    return not errors, errors
