"""mergegate - automated merge-eligibility gate for GitHub pull requests."""

__version__ = "0.1.0"
