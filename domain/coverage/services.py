"""Coverage Bounded Context - Domain Services.

Geometry validation and extent helpers for coverage areas, plus the
application service that mediates every call to the storage collaborator.
NO I/O here - persistence is implemented by infrastructure adapters under
`src/infrastructure/coverage/` via the `CoverageAreaRepository` port.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

import numpy as np
from shapely.errors import ShapelyError
from shapely.geometry import GeometryCollection, shape
from shapely.geometry.base import BaseGeometry

from domain.coverage.errors import (
    CoverageError,
    InvalidAreaNameError,
    InvalidGeometryError,
    StorageOperationFailedError,
)
from domain.coverage.repositories import CoverageAreaRepository
from domain.coverage.value_objects import AreaType, CoverageArea, GeoBounds, Investor

logger = logging.getLogger(__name__)

_GEOMETRY_TYPES = frozenset(
    {
        "Point",
        "MultiPoint",
        "LineString",
        "MultiLineString",
        "Polygon",
        "MultiPolygon",
        "GeometryCollection",
    }
)


# ---------------------------------------------------------------------------
# Geometry validation
# ---------------------------------------------------------------------------
def _shape_of(geometry: Any, area_id: str | None) -> BaseGeometry:
    if not isinstance(geometry, Mapping):
        raise InvalidGeometryError(
            f"expected a GeoJSON object, got {type(geometry).__name__}", area_id
        )
    kind = geometry.get("type")
    if not isinstance(kind, str) or not kind:
        raise InvalidGeometryError("GeoJSON 'type' is missing", area_id)

    if kind == "Feature":
        return _shape_of(geometry.get("geometry"), area_id)

    if kind == "FeatureCollection":
        features = geometry.get("features")
        if not isinstance(features, list) or not features:
            raise InvalidGeometryError("FeatureCollection has no features", area_id)
        return GeometryCollection([_shape_of(f, area_id) for f in features])

    if kind not in _GEOMETRY_TYPES:
        raise InvalidGeometryError(f"unsupported GeoJSON type {kind!r}", area_id)

    try:
        return shape(geometry)
    except (ShapelyError, ValueError, TypeError, KeyError, IndexError) as e:
        raise InvalidGeometryError(f"malformed {kind}: {e}", area_id) from e


def validate_geometry(geometry: Any, area_id: str | None = None) -> BaseGeometry:
    """Validate a GeoJSON payload and return it as a shapely geometry.

    Accepts a bare geometry, a Feature or a FeatureCollection.

    Raises:
        InvalidGeometryError: If the outer ``type`` is missing, the structure is
            malformed, the geometry is empty, or coordinates fall outside
            EPSG:4326 ranges.
    """
    geom = _shape_of(geometry, area_id)
    if geom.is_empty:
        raise InvalidGeometryError("geometry is empty", area_id)
    try:
        GeoBounds.from_xy(geom.bounds)
    except ValueError as e:
        raise InvalidGeometryError(f"coordinates out of range: {e}", area_id) from e
    return geom


def geometry_bounds(geometry: Any, area_id: str | None = None) -> GeoBounds:
    """Return the envelope of a (validated) GeoJSON payload."""
    return GeoBounds.from_xy(validate_geometry(geometry, area_id).bounds)


def combined_bounds(bounds: Iterable[GeoBounds]) -> GeoBounds | None:
    """Union of several envelopes, or None when there are none."""
    rows = [(b.west, b.south, b.east, b.north) for b in bounds]
    if not rows:
        return None
    arr = np.asarray(rows, dtype=np.float64)
    return GeoBounds(
        west=float(arr[:, 0].min()),
        south=float(arr[:, 1].min()),
        east=float(arr[:, 2].max()),
        north=float(arr[:, 3].max()),
    )


def _circle_radius(geometry: Any) -> float | None:
    if not isinstance(geometry, Mapping) or geometry.get("type") != "Feature":
        return None
    props = geometry.get("properties") or {}
    radius = props.get("radius") if isinstance(props, Mapping) else None
    if isinstance(radius, (int, float)) and radius > 0:
        return float(radius)
    return None


def infer_area_type(geometry: Any) -> AreaType:
    """Classify a drawn payload: a Feature with a ``radius`` is a circle."""
    return "circle" if _circle_radius(geometry) is not None else "polygon"


def normalize_area_name(name: str | None) -> str:
    """Trim a user-entered name.

    Raises:
        InvalidAreaNameError: If the name is empty or whitespace-only.
    """
    trimmed = (name or "").strip()
    if not trimmed:
        raise InvalidAreaNameError("Please enter a name for the coverage area")
    return trimmed


# ---------------------------------------------------------------------------
# Application service over the storage collaborator
# ---------------------------------------------------------------------------
class CoverageAreaService:
    """Create, rename, delete and list coverage areas.

    Every repository failure is logged and re-raised as
    StorageOperationFailedError. The service keeps no local copy of the
    records, so a failed mutation never leaves stale state to roll back;
    callers re-read after a successful write.
    """

    def __init__(self, repository: CoverageAreaRepository) -> None:
        self._repository = repository

    def list_for_owner(self, owner_id: int) -> list[CoverageArea]:
        return self._call("load", self._repository.list_areas, owner_id)

    def list_all(self, owner_id: int | None = None) -> list[CoverageArea]:
        """All areas for the global map, optionally filtered to one owner."""
        return self._call("load", self._repository.list_areas, owner_id)

    def list_investors(self) -> list[Investor]:
        return self._call("load investors for", self._repository.list_investors)

    def create(self, owner_id: int, name: str, geometry: Any) -> CoverageArea:
        clean_name = normalize_area_name(name)
        validate_geometry(geometry)
        area = self._call(
            "create",
            self._repository.insert,
            owner_id,
            clean_name,
            geometry,
            infer_area_type(geometry),
        )
        logger.info("Coverage area %s (%r) created for owner %s", area.id, area.name, owner_id)
        return area

    def rename(self, area_id: str, name: str) -> CoverageArea:
        clean_name = normalize_area_name(name)
        area = self._call("rename", self._repository.update_name, area_id, clean_name)
        logger.info("Coverage area %s renamed to %r", area_id, clean_name)
        return area

    def delete(self, area_id: str) -> None:
        self._call("delete", self._repository.delete, area_id)
        logger.info("Coverage area %s deleted", area_id)

    def _call(self, operation: str, fn: Any, *args: Any) -> Any:
        try:
            return fn(*args)
        except CoverageError:
            raise
        except Exception as e:
            logger.error("Failed to %s coverage area: %s", operation, e)
            raise StorageOperationFailedError(operation, e) from e
