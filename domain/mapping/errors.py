"""Mapping Bounded Context - Error Hierarchy.

Terminal failures of a single map mount attempt. None of these is fatal to
the hosting page: the view turns them into an error state with a retry
affordance.
"""

from __future__ import annotations


class MapError(Exception):
    """Base error for map bootstrap operations.

    Attributes:
        attempts: Number of attempts made before giving up
    """

    def __init__(self, message: str, attempts: int = 0) -> None:
        self.attempts = attempts
        super().__init__(message)


class ContainerNotReadyError(MapError):
    """Container never acquired non-zero width and height within the retry budget."""

    def __init__(self, width: float, height: float, attempts: int) -> None:
        self.width = width
        self.height = height
        super().__init__(
            f"Map container has no dimensions ({width}x{height}) "
            f"after {attempts} attempt(s)",
            attempts,
        )


class LibraryLoadFailedError(MapError):
    """Mapping library could not be imported."""


class MapConstructionError(MapError):
    """Library loaded and container sized, but the map could not be constructed."""


class MapNotReadyError(MapError):
    """Map was constructed but never signalled readiness."""
