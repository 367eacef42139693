"""Tests for the overlay session and its three activities."""
import threading
import time
from unittest.mock import patch

import pytest

from board_overlay.config import OverlayConfig
from board_overlay.entities import GridSpec, Point, Quadrilateral
from board_overlay.exceptions import AcquisitionError
from board_overlay.session import OverlaySession

from conftest import BOARD_CORNERS, RecordingSink, SwappableFrameSource


def _wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def source(blank_image):
    return SwappableFrameSource(blank_image)


@pytest.fixture
def session(source, recording_sink):
    s = OverlaySession(source, recording_sink, OverlayConfig())
    s.start(GridSpec(4, 4), background=False)
    yield s
    s.stop()


def test_render_without_board_uses_full_frame(session, recording_sink):
    plan = session.render_tick()

    assert plan.is_fallback
    assert len(plan.segments) == 6
    assert len(plan.labels) == 32
    geometry = session.geometry()
    assert geometry.cells[0].bottom_right == (200, 150)
    assert geometry.cells[15].top_left == (600, 450)
    assert len(recording_sink.presented) == 1


def test_detection_hit_then_miss_retains_board(session, source, board_image, blank_image):
    source.image = board_image
    hit = session.detect_tick()
    assert hit.quad is not None
    for got, want in zip(hit.quad.corners, BOARD_CORNERS):
        assert got == pytest.approx(want, abs=4.0)

    source.image = blank_image
    miss = session.detect_tick()
    assert miss.quad == hit.quad
    assert miss.last_updated == hit.last_updated

    plan = session.render_tick()
    assert not plan.is_fallback
    assert plan.outline == hit.quad.corners


def test_repeated_misses_revert_to_full_frame(source, recording_sink, board_image, blank_image):
    s = OverlaySession(source, recording_sink, OverlayConfig(max_stale_misses=2))
    s.start(background=False)
    source.image = board_image
    assert s.detect_tick().quad is not None

    source.image = blank_image
    s.detect_tick()
    assert s.detect_tick().quad is None
    assert s.render_tick().is_fallback
    s.stop()


def test_value_tick_replaces_mapping_and_tracks_highlight(source, recording_sink):
    s = OverlaySession(source, recording_sink, OverlayConfig(highlight="max"))
    s.start(background=False)
    for _ in range(10):
        mapping = s.value_tick()
        assert sorted(mapping.values) == list(range(1, 17))
        assert mapping.values[mapping.highlighted_slot] == 16
    plan = s.render_tick()
    assert plan.highlight is not None
    s.stop()


def test_start_failure_is_surfaced(recording_sink, blank_image):
    source = SwappableFrameSource(blank_image)
    source.fail_on_start = True
    s = OverlaySession(source, recording_sink)
    with pytest.raises(AcquisitionError):
        s.start()
    assert not s.running


def test_frame_loss_stops_session(session, source):
    source.fail_on_get = True
    assert session.detect_tick() is None
    assert isinstance(session.error, AcquisitionError)
    assert not session.running


def test_stop_releases_source_and_discards_in_flight_result(session, source, board_image):
    session.stop()
    assert source.released

    source.image = board_image
    assert session.detect_tick() is None
    assert session.board.state.quad is None


def test_background_session_runs_all_activities(source, recording_sink, fast_config, board_image):
    source.image = board_image
    s = OverlaySession(source, recording_sink, fast_config)
    s.start(GridSpec(3, 5))
    initial_values = s.values.read()
    try:
        assert _wait_for(lambda: s.board.state.quad is not None)
        assert _wait_for(lambda: s.values.read() != initial_values)
        assert _wait_for(lambda: len(recording_sink.presented) >= 5)
    finally:
        s.stop()

    assert source.released
    count = len(recording_sink.presented)
    time.sleep(0.1)
    assert len(recording_sink.presented) == count

    _, plan = recording_sink.presented[-1]
    assert len(plan.segments) == (3 - 1) + (5 - 1)
    assert len(plan.labels) == 2 * 15


@pytest.mark.parametrize("overrides", [
    {"highlight": "abc"},
    {"projection_mode": "affine"},
    {"detect_interval": 0},
])
def test_failed_setup_releases_source(source, recording_sink, overrides):
    s = OverlaySession(source, recording_sink, OverlayConfig(**overrides))

    with pytest.raises(ValueError):
        s.start()

    assert source.started
    assert source.released
    assert not s.running
    s.stop()


def test_render_keeps_running_during_slow_detection(source, recording_sink, fast_config):
    def slow_detect(image, **kwargs):
        time.sleep(0.5)
        return None

    with patch('board_overlay.session.detect_board', side_effect=slow_detect):
        s = OverlaySession(source, recording_sink, fast_config)
        s.start()
        try:
            time.sleep(0.4)
            presented = len(recording_sink.presented)
        finally:
            s.stop()

    assert presented >= 8


def test_detection_finishing_after_stop_is_discarded(session, source):
    entered = threading.Event()
    release = threading.Event()
    quad = Quadrilateral(*(Point(x, y) for x, y in BOARD_CORNERS))
    results = []

    def blocking_detect(image, **kwargs):
        entered.set()
        release.wait(timeout=2.0)
        return quad

    with patch('board_overlay.session.detect_board', side_effect=blocking_detect):
        worker = threading.Thread(target=lambda: results.append(session.detect_tick()))
        worker.start()
        assert entered.wait(timeout=2.0)

        session.stop()
        release.set()
        worker.join(timeout=2.0)

    assert not worker.is_alive()
    assert results == [None]
    assert session.board.state.quad is None
    assert source.released
