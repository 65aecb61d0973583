"""Map Bootstrapper.

Turns the asynchronous, race-prone start-up of a third-party map widget into
a single awaitable operation with a typed failure:

1) Load the mapping library (asynchronous import, retried on failure)
2) Wait for the container to acquire non-zero width and height
3) Construct the map (base tile/style layer attached by the library adapter)
4) Wait for the widget's ``load`` signal
5) Hand back a ready MapHandle owned by this bootstrapper

Steps 1-3 share one bounded retry budget with a short fixed backoff. The
handle is never published through module state; callers receive it and pass
it on explicitly.
"""

from __future__ import annotations

import asyncio
import logging

from domain.mapping.errors import (
    ContainerNotReadyError,
    LibraryLoadFailedError,
    MapConstructionError,
    MapError,
    MapNotReadyError,
)
from domain.mapping.ports import MapContainer, MapLibrary, MapWidget
from domain.mapping.value_objects import LOAD, LatLng, MapEvent
from shared.constants import (
    BOOTSTRAP_BACKOFF_S,
    BOOTSTRAP_MAX_ATTEMPTS,
    DEFAULT_CENTER,
    DEFAULT_ZOOM,
    READY_TIMEOUT_S,
)

logger = logging.getLogger(__name__)


class MapHandle:
    """Ready map instance bound to one container.

    ``destroy()`` must be called on unmount; it is safe to call twice.
    """

    def __init__(self, widget: MapWidget, container: MapContainer) -> None:
        self.widget = widget
        self.container = container
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        try:
            self.widget.remove()
        except Exception as e:
            logger.warning("Error during map cleanup: %s", e)
        logger.debug("Map instance destroyed")


class MapBootstrapper:
    """Owns at most one map instance and the task that creates it.

    Parameters
    ----------
    library: MapLibrary
        Adapter that imports the mapping library and constructs widgets.
    max_attempts: int
        Retry budget shared by library loading, container sizing and
        construction.
    backoff_s: float
        Fixed delay between attempts.
    ready_timeout_s: float
        How long to wait for the widget's ``load`` event after construction.
    """

    def __init__(
        self,
        library: MapLibrary,
        max_attempts: int = BOOTSTRAP_MAX_ATTEMPTS,
        backoff_s: float = BOOTSTRAP_BACKOFF_S,
        ready_timeout_s: float = READY_TIMEOUT_S,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.library = library
        self.max_attempts = max_attempts
        self.backoff_s = backoff_s
        self.ready_timeout_s = ready_timeout_s
        self._handle: MapHandle | None = None
        self._task: asyncio.Task[MapHandle] | None = None

    @property
    def handle(self) -> MapHandle | None:
        return self._handle

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def initialize(
        self,
        container: MapContainer,
        center: LatLng = DEFAULT_CENTER,
        zoom: int = DEFAULT_ZOOM,
    ) -> MapHandle:
        """Return a ready handle, creating the map if needed.

        Concurrent callers share the in-flight task, so only one map instance
        is ever constructed. Cancelling one caller does not cancel the shared
        task; use ``cancel()`` for that.

        Raises:
            ContainerNotReadyError: Container stayed unsized for every attempt
            LibraryLoadFailedError: Library import failed on every attempt
            MapConstructionError: Map constructor failed on every attempt
            MapNotReadyError: Map never signalled readiness
        """
        if self._handle is not None and not self._handle.destroyed:
            logger.debug("Map already initialized; reusing existing handle")
            return self._handle

        if self._task is None or self._task.done():
            self._task = asyncio.ensure_future(self._bootstrap(container, center, zoom))
        else:
            logger.debug("Map initialization already in progress; awaiting it")
        return await asyncio.shield(self._task)

    def cancel(self) -> None:
        """Cancel in-flight polling, if any."""
        if self._task is not None and not self._task.done():
            logger.debug("Cancelling in-flight map bootstrap")
            self._task.cancel()

    def destroy(self) -> None:
        """Cancel polling and release the map instance."""
        self.cancel()
        if self._handle is not None:
            self._handle.destroy()
            self._handle = None

    async def _bootstrap(
        self, container: MapContainer, center: LatLng, zoom: int
    ) -> MapHandle:
        last_error = MapError("Map bootstrap made no attempts")

        for attempt in range(1, self.max_attempts + 1):
            try:
                await self.library.load()
            except Exception as e:
                last_error = LibraryLoadFailedError(
                    f"Map library failed to load: {e}", attempt
                )
                logger.warning(
                    "Map library load failed (attempt %d/%d): %s",
                    attempt,
                    self.max_attempts,
                    e,
                )
            else:
                width, height = self._measure(container, attempt)
                if width > 0 and height > 0:
                    try:
                        widget = self.library.create_map(container, center, zoom)
                    except Exception as e:
                        last_error = MapConstructionError(
                            f"Map initialization failed: {e}", attempt
                        )
                        logger.warning(
                            "Map construction failed (attempt %d/%d): %s",
                            attempt,
                            self.max_attempts,
                            e,
                        )
                    else:
                        try:
                            await self._wait_ready(widget, attempt)
                        except MapError:
                            raise
                        except Exception as e:
                            raise MapNotReadyError(
                                f"Map readiness check failed: {e}", attempt
                            ) from e
                        self._handle = MapHandle(widget, container)
                        logger.info("Map initialized after %d attempt(s)", attempt)
                        return self._handle
                else:
                    last_error = ContainerNotReadyError(width, height, attempt)
                    logger.debug(
                        "Map container has no dimensions (attempt %d/%d), retrying",
                        attempt,
                        self.max_attempts,
                    )

            if attempt < self.max_attempts:
                await asyncio.sleep(self.backoff_s)

        logger.error("Map bootstrap gave up: %s", last_error)
        raise last_error

    def _measure(self, container: MapContainer, attempt: int) -> tuple[float, float]:
        try:
            return container.measure()
        except Exception as e:
            # A detached or unmeasurable container counts as unsized
            logger.warning(
                "Map container could not be measured (attempt %d/%d): %s",
                attempt,
                self.max_attempts,
                e,
            )
            return 0, 0

    async def _wait_ready(self, widget: MapWidget, attempt: int) -> None:
        if widget.loaded():
            return
        ready = asyncio.Event()

        def _on_load(_event: MapEvent) -> None:
            ready.set()

        widget.on(LOAD, _on_load)
        try:
            if not widget.loaded():
                await asyncio.wait_for(ready.wait(), timeout=self.ready_timeout_s)
        except asyncio.TimeoutError as e:
            widget.remove()
            raise MapNotReadyError(
                f"Map did not become ready within {self.ready_timeout_s}s", attempt
            ) from e
        except asyncio.CancelledError:
            # Never leave a half-initialized widget attached to a detached container
            widget.remove()
            raise
