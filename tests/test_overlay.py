"""Tests for label placement and overlay drawing."""
import math

import numpy as np
import pytest

from board_overlay.entities import Frame, GridSpec, Point, Quadrilateral
from board_overlay.grid_projection import CellGeometry, GridGeometry, GridProjector
from board_overlay.overlay import FrameCompositor, build_overlay_plan, draw_overlay
from board_overlay.value_mapping import ValueMapping


@pytest.fixture
def geometry():
    return GridProjector(GridSpec(2, 2)).project(None, 400, 300)


@pytest.fixture
def mapping():
    return ValueMapping(values=(4, 2, 3, 1), highlighted_identity=3, highlighted_slot=2)


def test_every_cell_gets_index_and_value_labels(geometry, mapping):
    plan = build_overlay_plan(geometry, mapping)

    index_labels = [l for l in plan.labels if l.kind == "index"]
    value_labels = [l for l in plan.labels if l.kind == "value"]
    assert [l.text for l in index_labels] == ["#1", "#2", "#3", "#4"]
    assert [l.text for l in value_labels] == ["4", "2", "3", "1"]


def test_labels_sit_inside_their_cells(geometry, mapping):
    plan = build_overlay_plan(geometry, mapping, offset=5)

    for label in plan.labels:
        cell = geometry.cells[label.cell_index]
        assert cell.top_left.x < label.position.x < cell.bottom_right.x
        assert cell.top_left.y < label.position.y < cell.bottom_right.y

    first = next(l for l in plan.labels if l.kind == "index" and l.cell_index == 0)
    assert first.position.x == 5


def test_highlight_follows_slot(geometry, mapping):
    plan = build_overlay_plan(geometry, mapping)
    assert plan.highlight == geometry.cells[2].outline

    moved = ValueMapping(values=(3, 2, 4, 1), highlighted_identity=3, highlighted_slot=0)
    assert build_overlay_plan(geometry, moved).highlight == geometry.cells[0].outline

    gone = ValueMapping(values=(4, 2, 5, 1), highlighted_identity=3, highlighted_slot=None)
    assert build_overlay_plan(geometry, gone).highlight is None


def test_short_value_array_only_skips_missing_cells(geometry):
    plan = build_overlay_plan(geometry, ValueMapping(values=(7, 8)))

    assert {l.cell_index for l in plan.labels} == {0, 1}
    assert len(plan.segments) == 2


def test_non_finite_cell_is_skipped(geometry, mapping):
    nan = Point(math.nan, math.nan)
    broken = CellGeometry(top_left=nan, bottom_right=nan, index=1, row=0, col=1,
                          outline=(nan, nan, nan, nan))
    cells = list(geometry.cells)
    cells[1] = broken
    damaged = GridGeometry(quad=geometry.quad, segments=geometry.segments,
                           cells=cells, is_fallback=geometry.is_fallback)

    plan = build_overlay_plan(damaged, mapping)
    assert {l.cell_index for l in plan.labels} == {0, 2, 3}


def test_draw_overlay_leaves_input_untouched(geometry, mapping):
    image = np.zeros((300, 400, 3), dtype=np.uint8)
    plan = build_overlay_plan(geometry, mapping)

    drawn = draw_overlay(image, plan)

    assert not image.any()
    assert drawn.shape == image.shape
    assert drawn.any()


def test_board_outline_only_drawn_for_detected_board(mapping):
    quad = Quadrilateral(Point(50, 40), Point(350, 40), Point(350, 260), Point(50, 260))
    detected = GridProjector(GridSpec(2, 2)).project(quad, 400, 300)
    image = np.zeros((300, 400, 3), dtype=np.uint8)

    drawn = draw_overlay(image, build_overlay_plan(detected, mapping))

    # red outline along the left board edge
    assert tuple(drawn[100, 50]) == (0, 0, 255)


def test_compositor_keeps_latest_frame(geometry, mapping):
    compositor = FrameCompositor()
    assert compositor.latest() is None

    image = np.zeros((300, 400, 3), dtype=np.uint8)
    frame = Frame(image=image, width=400, height=300, timestamp=0.0)
    plan = build_overlay_plan(geometry, mapping)
    compositor.present(frame, plan)
    compositor.present(frame, plan)

    assert compositor.frames_presented == 2
    assert compositor.latest().shape == (300, 400, 3)
    assert not image.any()
