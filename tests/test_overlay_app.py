"""Tests for still-image mode of the application."""
from unittest.mock import patch

import cv2
import pytest

from board_overlay.config import OverlayConfig
from board_overlay.overlay_app import BoardOverlayApp

from conftest import BOARD_CORNERS


@pytest.fixture
def board_path(tmp_path, board_image):
    path = tmp_path / "board.png"
    cv2.imwrite(str(path), board_image)
    return str(path)


def test_process_image_detects_board_and_saves_stages(board_path, tmp_path):
    output_dir = tmp_path / "out"
    app = BoardOverlayApp(OverlayConfig())

    result = app.process_image(board_path, str(output_dir))

    assert result['quad'] is not None
    for got, want in zip(result['quad'].corners, BOARD_CORNERS):
        assert got == pytest.approx(want, abs=4.0)
    assert result['overlay'].shape == (600, 800, 3)
    for stage in ('original', 'edges', 'detection', 'overlay'):
        assert (output_dir / f"board_{stage}.jpg").exists()


def test_process_image_matches_downscaled_detection(board_path):
    full = BoardOverlayApp(OverlayConfig(max_process_width=0), save_intermediate=False)
    reduced = BoardOverlayApp(OverlayConfig(max_process_width=400), save_intermediate=False)

    full_quad = full.process_image(board_path)['quad']
    reduced_quad = reduced.process_image(board_path)['quad']

    assert reduced_quad is not None
    for a, b in zip(full_quad.corners, reduced_quad.corners):
        assert a == pytest.approx(b, abs=6.0)


def test_opencv_failure_in_still_image_mode_is_a_miss(board_path):
    app = BoardOverlayApp(OverlayConfig(), save_intermediate=False)

    with patch('board_overlay.grid_detection.extract_polygons',
               side_effect=cv2.error("contour failure")):
        result = app.process_image(board_path)

    assert result['quad'] is None
    assert result['overlay'].shape == (600, 800, 3)
