"""Tests for CoverageMapView mount orchestration."""

from __future__ import annotations

import asyncio
import logging

import pytest

from domain.coverage.errors import StorageOperationFailedError
from domain.coverage.services import CoverageAreaService
from domain.mapping.bootstrapper import MapBootstrapper
from domain.mapping.errors import ContainerNotReadyError, MapError
from domain.mapping.synchronizer import CoverageLayerSynchronizer
from domain.mapping.value_objects import CLICK, DRAW_CREATED
from domain.mapping.view import CoverageMapView, MapViewState
from domain.usage.services import UsageGovernor
from infrastructure.usage import InMemoryUsageStore
from shared.constants import GLOBAL_COVERAGE_PREFIX
from tests.fakes import FailingUsageStore, FakeContainer, FakeMapLibrary, make_area, square

OCTOBER = "usage_2026-10"


class Harness:
    """One view plus handles on its collaborators."""

    def __init__(
        self,
        clock,
        repository,
        *,
        loads: int = 0,
        container: FakeContainer | None = None,
        owner_id: int | None = 1,
        editable: bool = False,
        store=None,
        max_attempts: int = 3,
    ) -> None:
        self.store = store if store is not None else InMemoryUsageStore(
            {
                OCTOBER: {
                    "map_loads": loads,
                    "geocoding_requests": 0,
                    "period_start": "2026-10-01T00:00:00+00:00",
                }
            }
        )
        self.library = FakeMapLibrary()
        self.container = container or FakeContainer()
        self.repository = repository
        self.governor = UsageGovernor(self.store, clock=clock)
        self.synchronizer = CoverageLayerSynchronizer(
            prefix=GLOBAL_COVERAGE_PREFIX if owner_id is None else "coverage-",
            palette_by_owner=owner_id is None,
        )
        self.view = CoverageMapView(
            bootstrapper=MapBootstrapper(
                self.library, max_attempts=max_attempts, backoff_s=0, ready_timeout_s=0.05
            ),
            governor=self.governor,
            synchronizer=self.synchronizer,
            container=self.container,
            service=CoverageAreaService(repository),
            owner_id=owner_id,
            editable=editable,
        )

    @property
    def widget(self):
        return self.library.widgets[-1]

    @property
    def map_loads(self) -> int:
        return self.governor.current().map_loads


def run(coro):
    return asyncio.run(coro)


# ===========================================================================
# Quota gate
# ===========================================================================
def test_quota_exhausted_shows_fallback_without_bootstrap(clock, repository):
    h = Harness(clock, repository, loads=50_000)

    state = run(h.view.mount())

    assert state is MapViewState.FALLBACK
    assert h.library.load_calls == 0
    assert h.library.widgets == []
    assert "50000 of 50000 monthly map loads used (100.0%)" in h.view.fallback.message
    assert h.map_loads == 50_000


def test_last_allowed_load_mounts_and_counts(clock, repository):
    h = Harness(clock, repository, loads=49_999)

    assert run(h.view.mount()) is MapViewState.READY
    assert h.map_loads == 50_000
    assert h.governor.can_load() is False


# ===========================================================================
# Mount and counting
# ===========================================================================
def test_mount_counts_one_load(clock, repository):
    h = Harness(clock, repository)

    async def scenario():
        await h.view.mount()
        await h.view.mount()

    run(scenario())

    assert h.view.state is MapViewState.READY
    assert h.map_loads == 1
    assert len(h.library.widgets) == 1


def test_usage_write_failure_does_not_block_map(clock, repository, caplog):
    h = Harness(clock, repository, store=FailingUsageStore(fail_put=True))

    with caplog.at_level(logging.ERROR, logger="domain.mapping.view"):
        state = run(h.view.mount())

    assert state is MapViewState.READY
    assert "Map load could not be recorded" in caplog.text


# ===========================================================================
# "Map ready AND areas loaded" in either order
# ===========================================================================
def test_areas_before_map(clock, repository):
    h = Harness(clock, repository)
    areas = [make_area("a", square(0, 0)), make_area("b", square(2, 2))]

    async def scenario():
        await h.view.set_areas(areas)
        assert h.view.last_sync is None
        await h.view.mount()

    run(scenario())

    assert h.view.last_sync.rendered == ("a", "b")
    assert len(h.widget.layer_ids()) == 4


def test_map_before_areas(clock, repository):
    h = Harness(clock, repository)
    areas = [make_area("a", square(0, 0)), make_area("b", square(2, 2))]

    async def scenario():
        await h.view.mount()
        assert h.view.last_sync is None
        await h.view.set_areas(areas)

    run(scenario())

    assert h.view.last_sync.rendered == ("a", "b")
    assert len(h.widget.layer_ids()) == 4


def test_no_sync_until_areas_loaded(clock, repository):
    h = Harness(clock, repository)

    run(h.view.mount())

    assert h.view.last_sync is None
    assert h.widget.layer_ids() == []


def test_list_change_resyncs(clock, repository):
    h = Harness(clock, repository)

    async def scenario():
        await h.view.mount()
        await h.view.set_areas([make_area("a", square(0, 0)), make_area("b", square(2, 2))])
        await h.view.set_areas([make_area("b", square(2, 2))])

    run(scenario())

    assert sorted(h.widget.layer_ids()) == ["coverage-fill-b", "coverage-line-b"]


# ===========================================================================
# Errors and retry
# ===========================================================================
def test_bootstrap_failure_sets_error_then_retry(clock, repository):
    container = FakeContainer((0, 0))
    h = Harness(clock, repository, container=container)

    async def scenario():
        first = await h.view.mount()
        error = h.view.error
        container.sizes = [(640, 480)]
        second = await h.view.retry()
        return first, error, second

    first, error, second = run(scenario())

    assert first is MapViewState.ERROR
    assert isinstance(error, ContainerNotReadyError)
    assert second is MapViewState.READY
    assert h.view.error is None
    assert h.map_loads == 1


def test_detached_container_ends_in_error_then_retry(clock, repository):
    container = FakeContainer(RuntimeError("element is detached"))
    h = Harness(clock, repository, container=container)

    async def scenario():
        first = await h.view.mount()
        error = h.view.error
        container.sizes = [(640, 480)]
        second = await h.view.retry()
        return first, error, second

    first, error, second = run(scenario())

    assert first is MapViewState.ERROR
    assert isinstance(error, ContainerNotReadyError)
    assert second is MapViewState.READY


def test_unexpected_bootstrap_error_is_retryable(clock, repository, monkeypatch, caplog):
    h = Harness(clock, repository)

    async def explode(*_args):
        raise RuntimeError("widget host vanished")

    monkeypatch.setattr(h.view.bootstrapper, "initialize", explode)
    with caplog.at_level(logging.ERROR, logger="domain.mapping.view"):
        first = run(h.view.mount())

    assert first is MapViewState.ERROR
    assert isinstance(h.view.error, MapError)
    assert "widget host vanished" in str(h.view.error)
    assert "Unexpected error while initializing map" in caplog.text

    monkeypatch.undo()
    assert run(h.view.retry()) is MapViewState.READY
    assert h.map_loads == 1


def test_retry_outside_error_is_ignored(clock, repository):
    h = Harness(clock, repository)

    async def scenario():
        await h.view.mount()
        return await h.view.retry()

    assert run(scenario()) is MapViewState.READY
    assert len(h.library.widgets) == 1


# ===========================================================================
# Unmount
# ===========================================================================
def test_unmount_tears_down_and_destroys(clock, repository):
    h = Harness(clock, repository)

    async def scenario():
        await h.view.set_areas([make_area("a", square(0, 0))])
        await h.view.mount()
        widget = h.widget
        await h.view.unmount()
        await h.view.unmount()
        return widget

    widget = run(scenario())

    assert h.view.state is MapViewState.UNMOUNTED
    assert widget.layer_ids() == []
    assert widget.source_ids() == []
    assert widget.removed == 1
    assert h.view.handle is None


def test_remount_counts_new_lifecycle(clock, repository):
    h = Harness(clock, repository)

    async def scenario():
        await h.view.mount()
        await h.view.unmount()
        await h.view.mount()

    run(scenario())

    assert h.view.state is MapViewState.READY
    assert h.map_loads == 2
    assert len(h.library.widgets) == 2


def test_unmount_during_bootstrap_builds_nothing(clock, repository):
    container = FakeContainer((0, 0))
    h = Harness(clock, repository, container=container, max_attempts=1000)
    h.view.bootstrapper.backoff_s = 0.005

    async def scenario():
        task = asyncio.ensure_future(h.view.mount())
        await asyncio.sleep(0.02)
        await h.view.unmount()
        return await task

    state = run(scenario())

    assert state is MapViewState.UNMOUNTED
    assert h.library.widgets == []
    assert h.map_loads == 0
    assert not h.view.bootstrapper.in_flight


# ===========================================================================
# Storage-backed views
# ===========================================================================
def test_refresh_areas_for_owner(clock, repository):
    service = CoverageAreaService(repository)
    mine = service.create(1, "Mine", square(0, 0))
    service.create(2, "Theirs", square(4, 4))
    h = Harness(clock, repository)

    async def scenario():
        await h.view.mount()
        return await h.view.refresh_areas()

    areas = run(scenario())

    assert [a.id for a in areas] == [mine.id]
    assert h.view.last_sync.rendered == (mine.id,)


def test_global_view_labels_investors(clock, repository):
    service = CoverageAreaService(repository)
    theirs = service.create(2, "Theirs", square(4, 4))
    h = Harness(clock, repository, owner_id=None)

    async def scenario():
        await h.view.mount()
        await h.view.refresh_areas()

    run(scenario())

    fill_id = f"global-coverage-fill-{theirs.id}"
    h.widget.fire(CLICK, layer_id=fill_id)
    assert "Birch &amp; Co" in h.widget.popups[-1][1]


def test_refresh_failure_propagates(clock, repository):
    h = Harness(clock, repository)
    repository.fail_with = ConnectionError("offline")

    with pytest.raises(StorageOperationFailedError):
        run(h.view.refresh_areas())


def test_editable_view_draws_and_resyncs(clock, repository):
    h = Harness(clock, repository, editable=True)
    drawn = {"type": "Feature", "properties": {}, "geometry": square(1, 1)}

    async def scenario():
        await h.view.mount()
        await h.view.refresh_areas()
        h.view.drawing.start_drawing()
        h.widget.fire(DRAW_CREATED, feature=drawn)
        return await h.view.commit_drawing("  Fresh area ")

    area = run(scenario())

    assert area.name == "Fresh area"
    assert h.view.last_sync.rendered == (area.id,)
    assert f"coverage-fill-{area.id}" in h.widget.layer_ids()


def test_editable_requires_owner(clock, repository):
    with pytest.raises(ValueError, match="owner_id"):
        Harness(clock, repository, owner_id=None, editable=True)
