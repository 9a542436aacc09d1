"""Shared helpers for mergegate."""
