"""Lookup of the JSON Schemas shipped in ``mergegate.schemas``.

Schemas are read through ``importlib.resources`` so validation behaves the
same from a checkout, a wheel, or a zipapp.
"""

import json
from dataclasses import dataclass, field
from importlib.resources import files
from typing import Any

SCHEMA_PACKAGE = "mergegate.schemas"
SCHEMA_SUFFIX = ".schema.json"


def _discover() -> tuple[str, ...]:
    return tuple(
        sorted(
            item.name.removesuffix(SCHEMA_SUFFIX)
            for item in files(SCHEMA_PACKAGE).iterdir()
            if item.name.endswith(SCHEMA_SUFFIX)
        )
    )


@dataclass(frozen=True)
class SchemaRegistry:
    """Names of packaged schemas (without the ``.schema.json`` suffix)."""

    available: tuple[str, ...] = field(default_factory=_discover)

    def get_text(self, name: str) -> str:
        """Return raw schema text; unknown names raise ``KeyError``."""
        canonical = name.removesuffix(SCHEMA_SUFFIX)
        if canonical not in self.available:
            raise KeyError(
                f"Schema '{canonical}' is not packaged with mergegate. "
                f"Available schemas: {', '.join(self.available) or '(none)'}"
            )
        return (files(SCHEMA_PACKAGE) / f"{canonical}{SCHEMA_SUFFIX}").read_text(encoding="utf-8")

    def get_json(self, name: str) -> dict[str, Any]:
        canonical = name.removesuffix(SCHEMA_SUFFIX)
        try:
            schema: dict[str, Any] = json.loads(self.get_text(canonical))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Packaged schema '{canonical}' is not valid JSON: {exc}") from exc
        return schema


_registry: SchemaRegistry | None = None


def get_registry() -> SchemaRegistry:
    """Return the process-wide registry, created on first use."""
    global _registry
    if _registry is None:
        _registry = SchemaRegistry()
    return _registry
