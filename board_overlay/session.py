"""
Overlay session: owns the shared state and drives the three activities.

- render: every display refresh, projects the grid from the current board
  and values and hands the result to the overlay sink
- detect: at a coarse interval, runs the detection pipeline on the current
  frame and publishes the board
- values: at its own interval, asks the value producer for a new array
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from .board_state import BoardStateCell
from .config import OverlayConfig
from .entities import BoardState, Frame, GridSpec
from .exceptions import AcquisitionError
from .frame_source import FrameSource
from .grid_detection import detect_board
from .grid_projection import GridGeometry, GridProjector
from .overlay import OverlayPlan, build_overlay_plan
from .scheduler import ActivityScheduler
from .value_mapping import ShuffleValueUpdater, ValueMapping, ValueMappingStore

logger = logging.getLogger(__name__)


class ValueUpdater(Protocol):
    def produce_values(self, rows: int, cols: int) -> Sequence[int]:
        ...


class OverlaySink(Protocol):
    def present(self, frame: Frame, plan: OverlayPlan) -> None:
        ...


@dataclass(frozen=True)
class RenderSnapshot:
    board: BoardState
    mapping: ValueMapping


class OverlaySession:
    """Session control surface: ``start(grid_spec)`` and ``stop()``."""

    def __init__(self, frame_source: FrameSource, sink: OverlaySink,
                 config: Optional[OverlayConfig] = None,
                 value_updater: Optional[ValueUpdater] = None):
        self.config = config or OverlayConfig()
        self.frame_source = frame_source
        self.sink = sink
        self.value_updater = value_updater or ShuffleValueUpdater()

        self.grid_spec: Optional[GridSpec] = None
        self.frame_size = (0, 0)
        self.board: Optional[BoardStateCell] = None
        self.values: Optional[ValueMappingStore] = None
        self.projector: Optional[GridProjector] = None
        self.error: Optional[Exception] = None

        self._scheduler: Optional[ActivityScheduler] = None
        self._source_released = True

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._scheduler is not None and not self._scheduler.cancelled

    def start(self, grid_spec: Optional[GridSpec] = None, background: bool = True):
        """
        Open the frame source, initialise shared state and start the activities.

        Args:
            grid_spec: Grid to project (defaults to the configured rows x cols)
            background: Start the periodic activity threads. With False the
                state is initialised and ticks are driven by the caller.

        Raises:
            AcquisitionError: If the frame source cannot be opened
        """
        if self.running:
            logger.warning("Session already running")
            return

        cfg = self.config
        self.grid_spec = grid_spec or GridSpec(cfg.rows, cfg.cols)
        self.error = None

        self.frame_size = self.frame_source.start()
        self._source_released = False
        self._scheduler = None
        try:
            self._setup(cfg, background)
        except BaseException:
            if self._scheduler is not None:
                self._scheduler.stop()
                self._scheduler = None
            self._source_released = True
            self.frame_source.release()
            raise

        logger.info(f"Session started: {self.grid_spec.rows}x{self.grid_spec.cols} grid on "
                    f"{self.frame_size[0]}x{self.frame_size[1]} frames")

    def _setup(self, cfg: OverlayConfig, background: bool):
        """Build the shared state and register the activities. The source is already open."""
        self.board = BoardStateCell(max_stale_misses=cfg.max_stale_misses)
        self.values = ValueMappingStore(self.grid_spec)
        if cfg.highlight == "max":
            self.values.highlight_max()
        elif cfg.highlight is not None:
            self.values.set_highlight(int(cfg.highlight))
        self.projector = GridProjector(self.grid_spec, cfg.projection_mode)

        self._scheduler = ActivityScheduler()
        self._scheduler.add("render", 1.0 / cfg.render_fps, self.render_tick)
        self._scheduler.add("detect", cfg.detect_interval, self.detect_tick)
        self._scheduler.add("values", cfg.value_interval, self.value_tick,
                            initial_delay=cfg.value_interval)
        if background:
            self._scheduler.start()

    def stop(self):
        """Halt all activities and release the frame source. Safe to call twice."""
        if self._scheduler is not None:
            self._scheduler.stop()
        if not self._source_released:
            self._source_released = True
            self.frame_source.release()
            logger.info("Session stopped")

    def _fail(self, error: Exception):
        logger.error(f"Frame source failure, stopping session: {error}")
        self.error = error
        if self._scheduler is not None:
            self._scheduler.request_stop()

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def snapshot(self) -> RenderSnapshot:
        return RenderSnapshot(board=self.board.state, mapping=self.values.snapshot())

    def geometry(self, snapshot: Optional[RenderSnapshot] = None) -> GridGeometry:
        snapshot = snapshot or self.snapshot()
        width, height = self.frame_size
        return self.projector.project(snapshot.board.quad, width, height)

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------
    def render_tick(self) -> Optional[OverlayPlan]:
        try:
            frame = self.frame_source.get_frame()
        except AcquisitionError as e:
            self._fail(e)
            return None

        snapshot = self.snapshot()
        plan = build_overlay_plan(self.projector.project(snapshot.board.quad, frame.width, frame.height),
                                  snapshot.mapping, font_scale=self.config.font_scale,
                                  offset=self.config.label_offset_px)
        self.sink.present(frame, plan)
        return plan

    def detect_tick(self) -> Optional[BoardState]:
        try:
            frame = self.frame_source.get_frame()
        except AcquisitionError as e:
            self._fail(e)
            return None

        cfg = self.config
        quad = detect_board(
            frame.image,
            min_area_ratio=cfg.min_area_ratio,
            min_area_px=cfg.min_area_px,
            policy=cfg.selection_policy,
            blur_kernel=cfg.blur_kernel,
            canny_low=cfg.canny_low,
            canny_high=cfg.canny_high,
            epsilon_ratio=cfg.epsilon_ratio,
            max_process_width=cfg.max_process_width,
        )

        if self._scheduler is not None and self._scheduler.cancelled:
            logger.debug("Session stopped during detection, discarding result")
            return None

        return self.board.publish(quad, time.monotonic())

    def value_tick(self) -> ValueMapping:
        rows, cols = self.grid_spec.rows, self.grid_spec.cols
        return self.values.replace(self.value_updater.produce_values(rows, cols))
