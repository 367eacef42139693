"""Overlay planning and drawing on top of camera frames."""

import logging
import math
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .entities import Frame, Point
from .grid_projection import GridGeometry, Segment
from .value_mapping import ValueMapping

logger = logging.getLogger(__name__)

FONT = cv2.FONT_HERSHEY_SIMPLEX

# BGR
GRID_COLOR = (255, 255, 255)
OUTLINE_COLOR = (0, 0, 255)
STATIC_LABEL_COLOR = (255, 255, 0)
VALUE_LABEL_COLOR = (0, 255, 0)
HIGHLIGHT_COLOR = (0, 255, 255)


@dataclass(frozen=True)
class LabelPlacement:
    position: Point  # text baseline origin, as cv2.putText expects
    text: str
    kind: str  # "index" or "value"
    cell_index: int


@dataclass
class OverlayPlan:
    outline: Tuple[Point, Point, Point, Point]
    segments: List[Segment]
    labels: List[LabelPlacement] = field(default_factory=list)
    highlight: Optional[Tuple[Point, Point, Point, Point]] = None
    is_fallback: bool = False


def _finite(*points: Point) -> bool:
    return all(math.isfinite(p.x) and math.isfinite(p.y) for p in points)


def build_overlay_plan(geometry: GridGeometry, mapping: ValueMapping,
                       font_scale: float = 0.6, thickness: int = 2,
                       offset: int = 5) -> OverlayPlan:
    """
    Place the two labels of every cell.

    The static label ``#n`` (1-based cell number) sits just inside the cell's
    top-left corner. The tracked value is right/bottom-aligned just inside the
    bottom-right corner, using the measured text size. A cell whose geometry
    or value cannot be resolved loses its decoration for this tick only.
    """
    plan = OverlayPlan(outline=geometry.quad.corners, segments=list(geometry.segments),
                       is_fallback=geometry.is_fallback)

    for cell in geometry.cells:
        try:
            if not _finite(cell.top_left, cell.bottom_right):
                raise ValueError("non-finite cell corners")
            value_text = str(mapping.values[cell.index])

            static_text = f"#{cell.index + 1}"
            (_, static_h), _ = cv2.getTextSize(static_text, FONT, font_scale, thickness)
            plan.labels.append(LabelPlacement(
                position=Point(cell.top_left.x + offset, cell.top_left.y + offset + static_h),
                text=static_text, kind="index", cell_index=cell.index))

            (value_w, _), baseline = cv2.getTextSize(value_text, FONT, font_scale, thickness)
            plan.labels.append(LabelPlacement(
                position=Point(cell.bottom_right.x - value_w - offset,
                               cell.bottom_right.y - offset - baseline),
                text=value_text, kind="value", cell_index=cell.index))
        except (IndexError, ValueError, OverflowError) as e:
            logger.debug(f"Skipping decoration of cell {cell.index}: {e}")
            continue

        if mapping.highlighted_slot == cell.index and _finite(*cell.outline):
            plan.highlight = cell.outline

    return plan


def _pt(p: Point) -> Tuple[int, int]:
    return int(round(p.x)), int(round(p.y))


def draw_overlay(image: np.ndarray, plan: OverlayPlan, font_scale: float = 0.6,
                 thickness: int = 2) -> np.ndarray:
    """Draw a plan onto a copy of ``image``."""
    canvas = image.copy()
    if canvas.ndim == 2:
        canvas = cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR)

    if not plan.is_fallback:
        outline = np.array([_pt(p) for p in plan.outline], dtype=np.int32).reshape(-1, 1, 2)
        cv2.polylines(canvas, [outline], True, OUTLINE_COLOR, 3)

    for start, end in plan.segments:
        try:
            cv2.line(canvas, _pt(start), _pt(end), GRID_COLOR, 2)
        except (ValueError, OverflowError) as e:
            logger.debug(f"Skipping segment {start}->{end}: {e}")

    if plan.highlight is not None:
        cell = np.array([_pt(p) for p in plan.highlight], dtype=np.int32).reshape(-1, 1, 2)
        cv2.polylines(canvas, [cell], True, HIGHLIGHT_COLOR, 3)

    for label in plan.labels:
        color = STATIC_LABEL_COLOR if label.kind == "index" else VALUE_LABEL_COLOR
        cv2.putText(canvas, label.text, _pt(label.position), FONT, font_scale, color, thickness)

    return canvas


class FrameCompositor:
    """Overlay sink that keeps the most recent composited frame.

    The render activity calls ``present`` from its thread; a display loop on
    the main thread polls ``latest``.
    """

    def __init__(self, font_scale: float = 0.6):
        self.font_scale = font_scale
        self._lock = threading.Lock()
        self._latest: Optional[np.ndarray] = None
        self.frames_presented = 0

    def present(self, frame: Frame, plan: OverlayPlan) -> None:
        composited = draw_overlay(frame.image, plan, self.font_scale)
        with self._lock:
            self._latest = composited
            self.frames_presented += 1

    def latest(self) -> Optional[np.ndarray]:
        with self._lock:
            return self._latest
