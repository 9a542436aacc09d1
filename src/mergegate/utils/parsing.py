"""Parsing helpers for loosely typed workflow inputs."""

from __future__ import annotations

TRUTHY = frozenset({"true", "1", "yes", "on"})


def parse_boolean(value: str | bool | None, default: bool = False) -> bool:
    """Interpret a workflow-style flag value; blank means ``default``."""
    if isinstance(value, bool):
        return value
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in TRUTHY


def split_repository(full_name: str) -> tuple[str, str]:
    """Split ``owner/repo`` into its two parts."""
    parts = full_name.strip().split("/")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Repository '{full_name}' must be in owner/repo form.")
    return parts[0], parts[1]
