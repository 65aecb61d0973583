"""Coverage Bounded Context - Value Objects.

Immutable records describing investor coverage areas and their extents.
All validation occurs at construction time via Pydantic.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

AreaType = Literal["polygon", "circle"]


# ---------------------------------------------------------------------------
# GeoBounds
# ---------------------------------------------------------------------------
class GeoBounds(BaseModel):
    """Geographic envelope in EPSG:4326 (Value Object).

    Unlike a raster extent, an envelope may be degenerate (a single point or a
    meridian-aligned line), so min == max is allowed on either axis.
    """

    west: float = Field(ge=-180, le=180)  # min longitude
    south: float = Field(ge=-90, le=90)  # min latitude
    east: float = Field(ge=-180, le=180)  # max longitude
    north: float = Field(ge=-90, le=90)  # max latitude

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_ordering(self) -> "GeoBounds":
        if self.west > self.east:
            raise ValueError(f"Invalid x ordering: west={self.west} > east={self.east}")
        if self.south > self.north:
            raise ValueError(
                f"Invalid y ordering: south={self.south} > north={self.north}"
            )
        return self

    @classmethod
    def from_xy(cls, bounds: tuple[float, float, float, float]) -> "GeoBounds":
        """Build from a shapely-style ``(minx, miny, maxx, maxy)`` tuple."""
        minx, miny, maxx, maxy = bounds
        return cls(west=minx, south=miny, east=maxx, north=maxy)

    def to_leaflet(self) -> list[list[float]]:
        """Return ``[[south, west], [north, east]]`` as Leaflet expects."""
        return [[self.south, self.west], [self.north, self.east]]


# ---------------------------------------------------------------------------
# Investor
# ---------------------------------------------------------------------------
class Investor(BaseModel):
    """Owning entity of coverage areas (read-only view)."""

    id: int
    company_name: str
    tier: int | None = None

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# CoverageArea
# ---------------------------------------------------------------------------
class CoverageArea(BaseModel):
    """Named geographic region of interest owned by an investor.

    ``geometry`` holds the raw GeoJSON payload exactly as stored. It is NOT
    validated here: rows with broken geometry must still load so they can be
    listed, renamed or deleted. Rendering code validates it per record via
    ``domain.coverage.services.validate_geometry``.
    """

    id: str = Field(min_length=1)
    owner_id: int
    name: str
    geometry: Any
    area_type: AreaType = "polygon"
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(frozen=True)

    def created_label(self) -> str:
        """Creation date as shown in popups and listings (e.g. 10/19/2026)."""
        return f"{self.created_at.month}/{self.created_at.day}/{self.created_at.year}"
