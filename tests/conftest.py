"""Pytest configuration and shared fixtures for the board overlay tests."""
import logging
import random
import sys
import time
from pathlib import Path

import cv2
import numpy as np
import pytest

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from board_overlay.config import OverlayConfig
from board_overlay.entities import Frame, GridSpec
from board_overlay.exceptions import AcquisitionError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logging.getLogger('matplotlib').setLevel(logging.WARNING)

FRAME_W, FRAME_H = 800, 600

# A board seen slightly from the side: TL, TR, BR, BL
BOARD_CORNERS = [(150, 120), (620, 100), (660, 480), (130, 500)]


def draw_board(corners, width=FRAME_W, height=FRAME_H, background=30, fill=220):
    """Dark frame with one bright filled quadrilateral."""
    image = np.full((height, width, 3), background, dtype=np.uint8)
    pts = np.array(corners, dtype=np.int32).reshape(-1, 1, 2)
    cv2.fillPoly(image, [pts], (fill, fill, fill))
    return image


class SwappableFrameSource:
    """In-memory frame source whose image can be changed between ticks."""

    def __init__(self, image):
        self.image = image
        self.started = False
        self.released = False
        self.fail_on_get = False
        self.fail_on_start = False

    def start(self):
        if self.fail_on_start:
            raise AcquisitionError("camera denied")
        self.started = True
        h, w = self.image.shape[:2]
        return w, h

    def get_frame(self):
        if self.fail_on_get:
            raise AcquisitionError("camera unplugged")
        h, w = self.image.shape[:2]
        return Frame(image=self.image, width=w, height=h, timestamp=time.monotonic())

    def release(self):
        self.released = True


class RecordingSink:
    """Overlay sink that remembers what it was given."""

    def __init__(self):
        self.presented = []

    def present(self, frame, plan):
        self.presented.append((frame, plan))


@pytest.fixture
def grid_spec():
    return GridSpec(4, 4)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def blank_image():
    return np.full((FRAME_H, FRAME_W, 3), 30, dtype=np.uint8)


@pytest.fixture
def board_image():
    return draw_board(BOARD_CORNERS)


@pytest.fixture
def fast_config():
    """Config with short intervals so threaded tests finish quickly."""
    return OverlayConfig(detect_interval=0.05, value_interval=0.05, render_fps=50)


@pytest.fixture
def recording_sink():
    return RecordingSink()
