"""Packaged JSON schemas for mergegate policy files and decision output."""
