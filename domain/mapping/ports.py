"""Domain Port(s) for map widgets.

Defines interfaces (Protocols) that mapping-library adapters must implement.
No concrete rendering here.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Protocol

from domain.coverage.value_objects import GeoBounds

from .value_objects import LatLng, LayerSpec, MapEvent

EventHandler = Callable[[MapEvent], None]


class MapContainer(Protocol):
    """Rendering target whose size can be measured (e.g. a DOM element)."""

    def measure(self) -> tuple[float, float]:
        """Return current (width, height) in CSS pixels; zero while unsized."""
        ...


class MapWidget(Protocol):
    """A live map instance with Mapbox-style source/layer management.

    Removing a layer also drops every handler bound to it, so a full
    teardown leaves no stale listeners behind.
    """

    def loaded(self) -> bool:
        ...

    def style_ready(self) -> bool:
        ...

    def layer_ids(self) -> list[str]:
        ...

    def source_ids(self) -> list[str]:
        ...

    def has_source(self, source_id: str) -> bool:
        ...

    def add_source(self, source_id: str, data: Mapping[str, Any]) -> None:
        """Add a GeoJSON source; raises ValueError if the id is taken."""
        ...

    def remove_source(self, source_id: str) -> None:
        ...

    def add_layer(self, layer: LayerSpec) -> None:
        """Add a layer; raises ValueError on duplicate id or unknown source."""
        ...

    def remove_layer(self, layer_id: str) -> None:
        ...

    def on(
        self, event: str, handler: EventHandler, layer_id: str | None = None
    ) -> None:
        ...

    def set_cursor(self, cursor: str) -> None:
        ...

    def open_popup(self, location: LatLng, html: str) -> None:
        ...

    def fit_bounds(self, bounds: GeoBounds, padding: int, max_zoom: int) -> None:
        ...

    def enable_draw(self) -> None:
        """Activate the polygon drawing tool."""
        ...

    def disable_draw(self) -> None:
        ...

    def clear_drawn(self) -> None:
        """Discard the draw tool's scratch shapes."""
        ...

    def remove(self) -> None:
        """Release the instance, its listeners and its DOM nodes."""
        ...


class MapLibrary(Protocol):
    """Asynchronously loadable mapping library that constructs widgets."""

    async def load(self) -> None:
        """Import the library; raises on failure and may be retried."""
        ...

    def create_map(
        self, container: MapContainer, center: LatLng, zoom: int
    ) -> MapWidget:
        """Construct a map with its base tile/style layer attached."""
        ...
