"""Coverage Bounded Context - Error Hierarchy.

Custom exceptions for coverage-area validation, persistence and drawing.
"""

from __future__ import annotations


class CoverageError(Exception):
    """Base error for coverage-area operations."""


class InvalidGeometryError(CoverageError):
    """Geometry is not a structurally valid GeoJSON value.

    Attributes:
        area_id: Id of the offending record, when known
    """

    def __init__(self, message: str, area_id: str | None = None) -> None:
        self.area_id = area_id
        if area_id is not None:
            message = f"Coverage area {area_id}: {message}"
        super().__init__(message)


class InvalidAreaNameError(CoverageError):
    """Area name is empty or whitespace-only."""


class StorageOperationFailedError(CoverageError):
    """Create/update/delete/read against the storage collaborator failed.

    Attributes:
        operation: Short verb describing the failed call ("create", "rename", ...)
    """

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to {operation} coverage area{detail}")


class DrawingStateError(CoverageError):
    """Drawing session operation is not allowed in the current state."""
