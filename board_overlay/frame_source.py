"""Frame sources feeding the detection and render activities."""

import logging
import threading
import time
from typing import Optional, Protocol, Tuple, Union

import cv2
import numpy as np

from .entities import Frame
from .exceptions import AcquisitionError

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    def start(self) -> Tuple[int, int]:
        """Open the source and return the frame (width, height)."""
        ...

    def get_frame(self) -> Frame:
        ...

    def release(self) -> None:
        ...


class StaticFrameSource:
    """Serves one still image forever. Used for single-image runs and tests."""

    def __init__(self, image: Union[str, np.ndarray]):
        self._image_input = image
        self._frame: Optional[Frame] = None

    def start(self) -> Tuple[int, int]:
        if isinstance(self._image_input, str):
            image = cv2.imread(self._image_input)
            if image is None:
                raise AcquisitionError(f"Could not load image from {self._image_input}")
        else:
            image = self._image_input
        if image is None or image.size == 0:
            raise AcquisitionError("Empty image given to StaticFrameSource")
        h, w = image.shape[:2]
        self._frame = Frame(image=image, width=w, height=h, timestamp=time.monotonic())
        return w, h

    def get_frame(self) -> Frame:
        if self._frame is None:
            raise AcquisitionError("Frame source not started")
        return self._frame

    def release(self) -> None:
        self._frame = None


class CameraFrameSource:
    """Webcam or video file read on a background capture thread.

    ``get_frame`` never blocks on the device: it hands out the most recent
    frame grabbed by the capture thread.
    """

    def __init__(self, source: Union[int, str] = 0, width: Optional[int] = None,
                 height: Optional[int] = None, max_read_failures: int = 30):
        """Initialize camera source.

        Args:
            source: Device index or video path (anything cv2.VideoCapture accepts)
            width: Requested frame width, or None for the device default
            height: Requested frame height, or None for the device default
            max_read_failures: Consecutive failed reads before the source is declared lost
        """
        self.source = source
        self.width = width
        self.height = height
        self.max_read_failures = max_read_failures

        self._capture: Optional[cv2.VideoCapture] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._frame_lock = threading.Lock()
        self._current: Optional[Frame] = None
        self._failure: Optional[str] = None

    def start(self) -> Tuple[int, int]:
        if self._running:
            logger.warning("Camera already running")
            return self._current.width, self._current.height

        try:
            self._capture = cv2.VideoCapture(self.source)
        except cv2.error as e:
            raise AcquisitionError(f"Failed to open camera {self.source}: {e}") from e

        if not self._capture.isOpened():
            self._cleanup()
            raise AcquisitionError(f"Failed to open camera {self.source}")

        if self.width:
            self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        if self.height:
            self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        # First frame is read synchronously so the stream size is known up front
        ok, image = self._capture.read()
        if not ok or image is None:
            self._cleanup()
            raise AcquisitionError(f"Camera {self.source} opened but returned no frame")

        h, w = image.shape[:2]
        self._current = Frame(image=image, width=w, height=h, timestamp=time.monotonic())
        self._failure = None
        self._running = True
        self._thread = threading.Thread(target=self._capture_loop, name="frame-capture", daemon=True)
        self._thread.start()
        logger.info(f"Camera opened: {w}x{h} from {self.source}")
        return w, h

    def _capture_loop(self):
        failures = 0
        while self._running:
            ok, image = self._capture.read()
            if ok and image is not None:
                failures = 0
                frame = Frame(image=image, width=image.shape[1], height=image.shape[0],
                              timestamp=time.monotonic())
                with self._frame_lock:
                    self._current = frame
                continue

            failures += 1
            if failures >= self.max_read_failures:
                self._failure = f"Camera {self.source} stopped delivering frames"
                logger.error(self._failure)
                self._running = False
                return
            time.sleep(0.05)

    def get_frame(self) -> Frame:
        if self._failure:
            raise AcquisitionError(self._failure)
        with self._frame_lock:
            frame = self._current
        if frame is None:
            raise AcquisitionError("Frame source not started")
        return frame

    def release(self) -> None:
        self._running = False
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)
        self._thread = None
        self._cleanup()
        logger.info("Camera released")

    def _cleanup(self):
        if self._capture is not None:
            self._capture.release()
        self._capture = None
        with self._frame_lock:
            self._current = None
