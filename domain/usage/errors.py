"""Usage Bounded Context - Error Hierarchy."""

from __future__ import annotations


class UsageError(Exception):
    """Base error for usage accounting."""


class UsageStoreError(UsageError):
    """Persisted usage counters could not be read or written."""
