"""Domain Port(s) for persisted usage counters.

Counters are stored as JSON-compatible mappings keyed by ``usage_<YYYY-MM>``.
Backends are pluggable: a local file, an embedded key-value store or a remote
counter service all satisfy the same contract.
"""

from __future__ import annotations

from typing import Any, Protocol


class UsageStore(Protocol):
    """Port for a key-value store of monthly usage counters."""

    def get(self, key: str) -> dict[str, Any] | None:
        """Return the stored mapping, or None when the key is absent."""
        ...

    def put(self, key: str, value: dict[str, Any]) -> None:
        ...
