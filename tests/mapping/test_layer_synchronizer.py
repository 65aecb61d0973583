"""Tests for CoverageLayerSynchronizer.

Covers idempotent rebuilds, per-record fault isolation, viewport fitting,
namespace isolation and the click/hover handlers bound to fill layers.
"""

from __future__ import annotations

import asyncio
import logging

import pytest

from domain.coverage.value_objects import GeoBounds, Investor
from domain.mapping.synchronizer import CoverageLayerSynchronizer
from domain.mapping.value_objects import CLICK, MOUSE_ENTER, MOUSE_LEAVE, LayerSpec
from shared.constants import (
    DEFAULT_FILL_COLOR,
    GLOBAL_COVERAGE_PREFIX,
    OWNER_PALETTE,
)
from tests.fakes import FakeMapWidget, make_area, square

AREA_A = make_area("a", square(-100.0, 30.0), name="Austin")
AREA_B = make_area("b", square(-90.0, 40.0, size=2.0), name="Boston")
AREA_C_BROKEN = make_area("c", {"type": "Polygon"}, name="Broken")


def _sync(synchronizer, widget, areas):
    return asyncio.run(synchronizer.sync(widget, areas))


def _ids(widget: FakeMapWidget, prefix: str = "coverage-") -> set[str]:
    return {i for i in widget.layer_ids() + widget.source_ids() if i.startswith(prefix)}


# ===========================================================================
# Rendering
# ===========================================================================
def test_each_area_gets_source_fill_and_line(widget):
    result = _sync(CoverageLayerSynchronizer(), widget, [AREA_A, AREA_B])

    assert result.rendered == ("a", "b")
    assert _ids(widget) == {
        "coverage-source-a",
        "coverage-fill-a",
        "coverage-line-a",
        "coverage-source-b",
        "coverage-fill-b",
        "coverage-line-b",
    }
    fill = widget.layers["coverage-fill-a"]
    line = widget.layers["coverage-line-a"]
    assert fill.paint == {"fill-color": "#3b82f6", "fill-opacity": 0.3}
    assert line.paint == {"line-color": "#1d4ed8", "line-width": 2, "line-opacity": 1}
    assert fill.tooltip == "Austin"


def test_sync_is_idempotent(widget):
    synchronizer = CoverageLayerSynchronizer()

    _sync(synchronizer, widget, [AREA_A, AREA_B])
    first = (sorted(widget.layer_ids()), sorted(widget.source_ids()))
    _sync(synchronizer, widget, [AREA_A, AREA_B])
    second = (sorted(widget.layer_ids()), sorted(widget.source_ids()))

    assert first == second
    assert len(widget.layer_ids()) == 4
    assert len(widget.handlers[(CLICK, "coverage-fill-a")]) == 1


def test_removed_area_disappears(widget):
    synchronizer = CoverageLayerSynchronizer()
    _sync(synchronizer, widget, [AREA_A, AREA_B])

    _sync(synchronizer, widget, [AREA_A])

    assert _ids(widget) == {"coverage-source-a", "coverage-fill-a", "coverage-line-a"}
    assert (CLICK, "coverage-fill-b") not in widget.handlers
    assert set(synchronizer.bindings) == {"a"}


def test_empty_list_clears_without_fitting(widget):
    synchronizer = CoverageLayerSynchronizer()
    _sync(synchronizer, widget, [AREA_A])
    widget.fitted.clear()

    result = _sync(synchronizer, widget, [])

    assert _ids(widget) == set()
    assert result.bounds is None
    assert widget.fitted == []


def test_concurrent_syncs_do_not_duplicate(widget):
    synchronizer = CoverageLayerSynchronizer()

    async def scenario():
        await asyncio.gather(
            synchronizer.sync(widget, [AREA_A, AREA_B]),
            synchronizer.sync(widget, [AREA_A, AREA_B]),
        )

    asyncio.run(scenario())

    assert len(_ids(widget)) == 6


# ===========================================================================
# Fault isolation
# ===========================================================================
def test_malformed_record_is_skipped_with_one_warning(widget, caplog):
    with caplog.at_level(logging.WARNING, logger="domain.mapping.synchronizer"):
        result = _sync(CoverageLayerSynchronizer(), widget, [AREA_A, AREA_B, AREA_C_BROKEN])

    skips = [r for r in caplog.records if "Skipping coverage area" in r.message]
    assert len(skips) == 1
    assert "c" in skips[0].getMessage()
    assert result.rendered == ("a", "b")
    assert result.skipped == ("c",)
    assert len(widget.layer_ids()) == 4
    assert not any(i.endswith("-c") for i in widget.layer_ids() + widget.source_ids())


def test_bounds_cover_only_valid_records(widget):
    """A and B render, malformed C is ignored for the viewport."""
    result = _sync(CoverageLayerSynchronizer(), widget, [AREA_A, AREA_B, AREA_C_BROKEN])

    expected = GeoBounds(west=-100.0, south=30.0, east=-88.0, north=42.0)
    assert result.bounds == expected
    assert widget.fitted == [(expected, 20, 12)]


def test_renderer_failure_rolls_back_that_record_only(widget):
    widget.fail_layers = {"coverage-line-b"}

    result = _sync(CoverageLayerSynchronizer(), widget, [AREA_A, AREA_B])

    assert result.rendered == ("a",)
    assert result.skipped == ("b",)
    assert _ids(widget) == {"coverage-source-a", "coverage-fill-a", "coverage-line-a"}
    assert (CLICK, "coverage-fill-b") not in widget.handlers


def test_duplicate_id_keeps_first_record(widget):
    twin = make_area("a", square(10.0, 10.0), name="Twin")

    result = _sync(CoverageLayerSynchronizer(), widget, [AREA_A, twin])

    assert result.rendered == ("a",)
    assert result.skipped == ("a",)
    assert widget.sources["coverage-source-a"] == AREA_A.geometry


# ===========================================================================
# Readiness and namespaces
# ===========================================================================
def test_not_ready_is_noop():
    widget = FakeMapWidget(loaded=False)

    result = _sync(CoverageLayerSynchronizer(), widget, [AREA_A])

    assert result.skipped_not_ready
    assert widget.layer_ids() == []


def test_style_not_ready_is_noop(widget):
    widget.style_is_ready = False

    result = _sync(CoverageLayerSynchronizer(), widget, [AREA_A])

    assert result.skipped_not_ready
    assert widget.source_ids() == []


def test_foreign_layers_are_untouched(widget):
    widget.add_source("basemap-labels", {"type": "FeatureCollection", "features": []})
    widget.add_layer(LayerSpec(id="basemap-labels-layer", type="line", source="basemap-labels"))
    per_owner = CoverageLayerSynchronizer()
    global_map = CoverageLayerSynchronizer(prefix=GLOBAL_COVERAGE_PREFIX)

    _sync(per_owner, widget, [AREA_A])
    _sync(global_map, widget, [AREA_B])
    _sync(per_owner, widget, [])

    assert "basemap-labels-layer" in widget.layer_ids()
    assert _ids(widget, GLOBAL_COVERAGE_PREFIX) == {
        "global-coverage-source-b",
        "global-coverage-fill-b",
        "global-coverage-line-b",
    }
    assert _ids(widget) == set()


def test_teardown_removes_namespace(widget):
    synchronizer = CoverageLayerSynchronizer()
    _sync(synchronizer, widget, [AREA_A, AREA_B])

    asyncio.run(synchronizer.teardown(widget))

    assert widget.layer_ids() == []
    assert widget.source_ids() == []
    assert synchronizer.bindings == {}


# ===========================================================================
# Interaction
# ===========================================================================
def test_click_opens_popup_at_cursor(widget):
    _sync(CoverageLayerSynchronizer(), widget, [AREA_A])

    widget.fire(CLICK, layer_id="coverage-fill-a", lnglat=(30.5, -99.5))

    location, html = widget.popups[-1]
    assert location == (30.5, -99.5)
    assert "<h3>Austin</h3>" in html
    assert "Type: polygon" in html
    assert "Created: 10/1/2026" in html


def test_click_without_position_uses_area_centre(widget):
    _sync(CoverageLayerSynchronizer(), widget, [AREA_A])

    widget.fire(CLICK, layer_id="coverage-fill-a")

    assert widget.popups[-1][0] == (30.5, -99.5)


def test_hover_sets_pointer_cursor(widget):
    _sync(CoverageLayerSynchronizer(), widget, [AREA_A])

    widget.fire(MOUSE_ENTER, layer_id="coverage-fill-a")
    assert widget.cursor == "pointer"

    widget.fire(MOUSE_LEAVE, layer_id="coverage-fill-a")
    assert widget.cursor == ""


def test_popup_escapes_name(widget):
    area = make_area("x", square(0, 0), name="<script>alert(1)</script>")

    _sync(CoverageLayerSynchronizer(), widget, [area])
    widget.fire(CLICK, layer_id="coverage-fill-x")

    html = widget.popups[-1][1]
    assert "<script>" not in html
    assert "&lt;script&gt;" in html


# ===========================================================================
# Global map: investor labels and palette
# ===========================================================================
INVESTORS = [Investor(id=7, company_name="Acme Capital"), Investor(id=9, company_name="Birch")]


def test_popup_names_investor():
    synchronizer = CoverageLayerSynchronizer(investors=INVESTORS)
    known = make_area("k", square(0, 0), owner_id=9)
    orphan = make_area("o", square(0, 0), owner_id=404)

    assert "Birch" in synchronizer.popup_html(known)
    assert "Unknown Investor" in synchronizer.popup_html(orphan)


def test_popup_without_investors_has_no_owner_line():
    html = CoverageLayerSynchronizer().popup_html(AREA_A)

    assert "Unknown Investor" not in html


@pytest.mark.parametrize(
    "owner_id,expected",
    [(7, OWNER_PALETTE[0]), (9, OWNER_PALETTE[1]), (404, DEFAULT_FILL_COLOR)],
)
def test_palette_by_owner(owner_id, expected):
    synchronizer = CoverageLayerSynchronizer(investors=INVESTORS, palette_by_owner=True)

    fill, line = synchronizer.colors_for(owner_id)

    assert fill == expected


def test_fixed_colours_without_palette():
    synchronizer = CoverageLayerSynchronizer(investors=INVESTORS)

    assert synchronizer.colors_for(9) == ("#3b82f6", "#1d4ed8")
