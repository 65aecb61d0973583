"""Mapping Bounded Context - Value Objects.

Layer descriptions and interaction events exchanged with map widgets.
Identifiers and paint keys follow Mapbox GL naming; adapters for other
libraries translate them.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Leaflet coordinate order: (latitude, longitude)
LatLng = tuple[float, float]

# ---------------------------------------------------------------------------
# Event names
# ---------------------------------------------------------------------------
CLICK = "click"
MOUSE_ENTER = "mouseenter"
MOUSE_LEAVE = "mouseleave"
LOAD = "load"
DRAW_CREATED = "draw.created"


class LayerSpec(BaseModel):
    """Rendering instruction drawing from a named source (Value Object).

    ``popup`` and ``tooltip`` are static hints for libraries that bind
    interaction content at build time; live widgets use event handlers.
    """

    id: str = Field(min_length=1)
    type: Literal["fill", "line"]
    source: str = Field(min_length=1)
    paint: dict[str, Any] = Field(default_factory=dict)
    popup: str | None = None
    tooltip: str | None = None

    model_config = ConfigDict(frozen=True)


class MapEvent(BaseModel):
    """Interaction event delivered to handlers registered with ``on()``."""

    type: str
    layer_id: str | None = None
    lnglat: LatLng | None = None  # (lat, lng) despite the Mapbox-style name
    feature: dict[str, Any] | None = None

    model_config = ConfigDict(frozen=True)
