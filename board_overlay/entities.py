"""Domain entities (data-only structures) shared by the pipeline and the session.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import NamedTuple, Optional, Tuple

import numpy as np


class Point(NamedTuple):
    x: float
    y: float


@dataclass(frozen=True)
class Frame:
    """Immutable snapshot of one camera frame."""
    image: np.ndarray
    width: int
    height: int
    timestamp: float


@dataclass(frozen=True)
class GridSpec:
    rows: int = 4
    cols: int = 4

    def __post_init__(self):
        if int(self.rows) <= 0 or int(self.cols) <= 0:
            raise ValueError(f"GridSpec needs rows > 0 and cols > 0, got {self.rows}x{self.cols}")

    @property
    def cell_count(self) -> int:
        return self.rows * self.cols


@dataclass(frozen=True)
class Quadrilateral:
    """Four corners in canonical order: top-left, top-right, bottom-right, bottom-left."""
    tl: Point
    tr: Point
    br: Point
    bl: Point

    @property
    def corners(self) -> Tuple[Point, Point, Point, Point]:
        return (self.tl, self.tr, self.br, self.bl)

    def as_array(self) -> np.ndarray:
        return np.array(self.corners, dtype=np.float32)

    def area(self) -> float:
        # shoelace over TL -> TR -> BR -> BL
        pts = self.corners
        s = 0.0
        for i in range(4):
            x1, y1 = pts[i]
            x2, y2 = pts[(i + 1) % 4]
            s += x1 * y2 - x2 * y1
        return abs(s) / 2.0

    def scaled(self, sx: float, sy: float) -> "Quadrilateral":
        return Quadrilateral(*(Point(p.x * sx, p.y * sy) for p in self.corners))


@dataclass(frozen=True)
class BoardState:
    """Last published board location.

    ``quad`` is None when no board is known; the grid is then drawn over the
    whole frame. ``misses`` counts detection passes without a board since the
    last hit.
    """
    quad: Optional[Quadrilateral] = None
    last_updated: Optional[float] = None
    misses: int = 0
