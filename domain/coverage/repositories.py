"""Domain Port(s) for coverage-area storage.

Defines interfaces (Protocols) that infrastructure adapters must implement.
No concrete I/O here.
"""

from __future__ import annotations

from typing import Any, Protocol

from .value_objects import AreaType, CoverageArea, Investor


class CoverageAreaRepository(Protocol):
    """Port for the remote data store holding coverage areas.

    Implementations live in infrastructure (e.g., the SQLAlchemy adapter).
    Any method may raise on transport or constraint failure; the application
    service wraps those errors for the UI.
    """

    def list_areas(self, owner_id: int | None = None) -> list[CoverageArea]:
        """Return areas, newest first, optionally filtered by owner."""
        ...

    def get(self, area_id: str) -> CoverageArea | None:
        ...

    def insert(
        self,
        owner_id: int,
        name: str,
        geometry: Any,
        area_type: AreaType,
    ) -> CoverageArea:
        """Persist a new area; id and timestamps are assigned by the store."""
        ...

    def update_name(self, area_id: str, name: str) -> CoverageArea:
        ...

    def delete(self, area_id: str) -> None:
        ...

    def list_investors(self) -> list[Investor]:
        ...
