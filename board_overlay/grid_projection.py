"""
Grid Projection Module

Projects an N x M grid onto a board quadrilateral. Grid dividers and cell
corners are blended from the four ordered board corners with bilinear
interpolation, which is cheap and needs no matrix inversion. It slightly
misplaces interior lines under strong perspective; the homography mode maps
the unit square through a full 3x3 projective transform instead.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .entities import GridSpec, Point, Quadrilateral

logger = logging.getLogger(__name__)

Segment = Tuple[Point, Point]


@dataclass(frozen=True)
class CellGeometry:
    top_left: Point
    bottom_right: Point
    index: int
    row: int
    col: int
    # Full cell outline (TL, TR, BR, BL) for highlight drawing
    outline: Tuple[Point, Point, Point, Point]


@dataclass(frozen=True)
class GridGeometry:
    quad: Quadrilateral
    segments: List[Segment]
    cells: List[CellGeometry]
    is_fallback: bool


def lerp(a: Point, b: Point, t: float) -> Point:
    """Linear blend of two points; exact at t=0 (a) and t=1 (b)."""
    return Point((1.0 - t) * a.x + t * b.x, (1.0 - t) * a.y + t * b.y)


def interpolate(quad: Quadrilateral, row_frac: float, col_frac: float) -> Point:
    """
    Bilinear interpolation over the four ordered corners.

    The top and bottom edges are first blended along the column fraction,
    then the two results are blended along the row fraction.

    Args:
        quad: Ordered board corners
        row_frac: Fraction from the top edge (0) to the bottom edge (1)
        col_frac: Fraction from the left edge (0) to the right edge (1)

    Returns:
        Point: Interpolated position in frame coordinates
    """
    top = lerp(quad.tl, quad.tr, col_frac)
    bottom = lerp(quad.bl, quad.br, col_frac)
    return lerp(top, bottom, row_frac)


def fallback_quad(width: float, height: float) -> Quadrilateral:
    """Axis-aligned rectangle spanning the whole frame."""
    return Quadrilateral(
        tl=Point(0.0, 0.0),
        tr=Point(float(width), 0.0),
        br=Point(float(width), float(height)),
        bl=Point(0.0, float(height)),
    )


def homography_from_unit_square(quad: Quadrilateral) -> np.ndarray:
    """
    Solve the 3x3 transform mapping the unit square onto the board.

    The unit square is laid out as (col_frac, row_frac), so (0,0) lands on
    TL, (1,0) on TR, (1,1) on BR and (0,1) on BL.

    References:
        - Hartley & Zisserman (2004), Chapter 4: "Estimation - 2D Projective Transformations"
    """
    unit_square = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=np.float32)
    return cv2.getPerspectiveTransform(unit_square, quad.as_array()).astype(np.float64)


class GridProjector:
    """
    Turns a board location into divider segments and per-cell geometry.

    All output is derived on demand; nothing is cached between calls so a
    new board published by the detection activity is picked up on the next
    render tick.
    """

    MODES = ("bilinear", "homography")

    def __init__(self, grid_spec: GridSpec, mode: str = "bilinear"):
        if mode not in self.MODES:
            raise ValueError(f"Unknown projection mode '{mode}'")
        self.grid_spec = grid_spec
        self.mode = mode

    def _point_fn(self, quad: Quadrilateral):
        if self.mode == "bilinear":
            return lambda row_frac, col_frac: interpolate(quad, row_frac, col_frac)

        matrix = homography_from_unit_square(quad)

        def project(row_frac, col_frac):
            x, y, w = matrix @ np.array([col_frac, row_frac, 1.0])
            return Point(float(x / w), float(y / w))

        return project

    def divider_segments(self, quad: Quadrilateral) -> List[Segment]:
        """
        Interior grid lines: (rows - 1) row dividers followed by (cols - 1)
        column dividers. The board outline itself is not included.
        """
        point_at = self._point_fn(quad)
        rows, cols = self.grid_spec.rows, self.grid_spec.cols

        segments = []
        for i in range(1, rows):
            alpha = i / rows
            # left edge (TL->BL) to right edge (TR->BR)
            segments.append((point_at(alpha, 0.0), point_at(alpha, 1.0)))
        for j in range(1, cols):
            beta = j / cols
            # top edge (TL->TR) to bottom edge (BL->BR)
            segments.append((point_at(0.0, beta), point_at(1.0, beta)))
        return segments

    def cell_geometries(self, quad: Quadrilateral) -> List[CellGeometry]:
        """Geometry for every cell, row-major, index = row * cols + col."""
        point_at = self._point_fn(quad)
        rows, cols = self.grid_spec.rows, self.grid_spec.cols

        cells = []
        for row in range(rows):
            for col in range(cols):
                r0, r1 = row / rows, (row + 1) / rows
                c0, c1 = col / cols, (col + 1) / cols
                top_left = point_at(r0, c0)
                bottom_right = point_at(r1, c1)
                outline = (top_left, point_at(r0, c1), bottom_right, point_at(r1, c0))
                cells.append(CellGeometry(
                    top_left=top_left,
                    bottom_right=bottom_right,
                    index=row * cols + col,
                    row=row,
                    col=col,
                    outline=outline,
                ))
        return cells

    def project(self, quad: Optional[Quadrilateral], width: float, height: float) -> GridGeometry:
        """
        Full grid geometry for one render tick.

        Args:
            quad: Detected board, or None to span the whole frame
            width: Frame width, used for the fallback rectangle
            height: Frame height, used for the fallback rectangle

        Returns:
            GridGeometry with the quad actually used, segments and cells
        """
        is_fallback = quad is None
        if is_fallback:
            quad = fallback_quad(width, height)
        return GridGeometry(
            quad=quad,
            segments=self.divider_segments(quad),
            cells=self.cell_geometries(quad),
            is_fallback=is_fallback,
        )
