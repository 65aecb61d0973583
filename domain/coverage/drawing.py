"""Coverage Drawing Session.

Drives the draw-then-name flow on an editable map:

    IDLE --start_drawing--> DRAWING --draw.created--> PENDING_NAME
    PENDING_NAME --commit(name)--> IDLE       (area persisted)
    DRAWING | PENDING_NAME --cancel--> IDLE  (scratch shape discarded)

A failed commit keeps the pending geometry so the user can retry with
another name or after the store recovers.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from domain.coverage.errors import CoverageError, DrawingStateError
from domain.coverage.services import CoverageAreaService, validate_geometry
from domain.coverage.value_objects import CoverageArea
from domain.mapping.ports import MapWidget
from domain.mapping.value_objects import DRAW_CREATED, MapEvent

logger = logging.getLogger(__name__)


class DrawingState(str, Enum):
    IDLE = "idle"
    DRAWING = "drawing"
    PENDING_NAME = "pending_name"


class DrawingSession:
    """Draw tool state for one owner on one mounted map."""

    def __init__(
        self, widget: MapWidget, service: CoverageAreaService, owner_id: int
    ) -> None:
        self.widget = widget
        self.service = service
        self.owner_id = owner_id
        self._state = DrawingState.IDLE
        self._pending: Any = None
        widget.on(DRAW_CREATED, self._handle_draw_event)

    @property
    def state(self) -> DrawingState:
        return self._state

    @property
    def pending_geometry(self) -> Any:
        return self._pending

    def start_drawing(self) -> None:
        if self._state is not DrawingState.IDLE:
            raise DrawingStateError(f"Cannot start drawing while {self._state.value}")
        self.widget.enable_draw()
        self._state = DrawingState.DRAWING
        logger.debug("Drawing started for owner %s", self.owner_id)

    def on_draw_created(self, feature: Any) -> None:
        """Accept a completed shape from the draw tool.

        Raises:
            DrawingStateError: No drawing in progress
            InvalidGeometryError: Shape is not valid GeoJSON
        """
        if self._state is not DrawingState.DRAWING:
            raise DrawingStateError(
                f"Unexpected drawn shape while {self._state.value}"
            )
        validate_geometry(feature)
        self._pending = feature
        self._state = DrawingState.PENDING_NAME

    def commit(self, name: str) -> CoverageArea:
        """Persist the pending shape under ``name`` and return to IDLE.

        Raises:
            DrawingStateError: Nothing is pending
            InvalidAreaNameError: Name is blank
            StorageOperationFailedError: Store rejected the insert
        """
        if self._state is not DrawingState.PENDING_NAME:
            raise DrawingStateError("No drawn area is waiting for a name")
        area = self.service.create(self.owner_id, name, self._pending)
        self._reset()
        return area

    def cancel(self) -> None:
        if self._state is DrawingState.IDLE:
            return
        self._reset()
        logger.debug("Drawing cancelled for owner %s", self.owner_id)

    def _handle_draw_event(self, event: MapEvent) -> None:
        try:
            self.on_draw_created(event.feature)
        except CoverageError as e:
            logger.warning("Ignoring drawn shape: %s", e)

    def _reset(self) -> None:
        self._pending = None
        self._state = DrawingState.IDLE
        self.widget.clear_drawn()
        self.widget.disable_draw()
