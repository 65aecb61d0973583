"""Infrastructure adapters for the usage bounded context.

In-memory and JSON-file implementations of the UsageStore port.
"""

from .stores import InMemoryUsageStore, JsonFileUsageStore

__all__ = ["InMemoryUsageStore", "JsonFileUsageStore"]
