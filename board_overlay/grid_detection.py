"""
Board Detection Module

This module locates the board quadrilateral in a raw camera frame using:
- Edge-map contour extraction (outer boundaries only)
- Douglas-Peucker polygon simplification
- Quadrilateral filtering by vertex count and enclosed area
- Coordinate-based corner ordering

References:
- Suzuki & Abe, "Topological Structural Analysis of Digitized Binary Images" (1985)
- Douglas & Peucker, "Algorithms for the reduction of the number of points" (1973)
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import cv2
import numpy as np

from .entities import Point, Quadrilateral
from .preprocessing import preprocess_frame, resize_image

logger = logging.getLogger(__name__)

# Corners closer than this (in pixels) are treated as the same corner
MIN_CORNER_DISTANCE = 1.0


@dataclass
class Polygon:
    """Simplified closed contour."""
    points: np.ndarray  # (K, 2)
    area: float

    @property
    def vertex_count(self) -> int:
        return len(self.points)


def extract_polygons(edges: np.ndarray, epsilon_ratio: float = 0.02) -> List[Polygon]:
    """
    Extract outer contours from an edge map and simplify each to a polygon.

    The simplification tolerance scales with the contour: epsilon is
    ``epsilon_ratio`` times the closed perimeter, so long noisy boundaries are
    flattened proportionally more than short ones.

    Args:
        edges: Binary edge map (e.g. from preprocess_frame)
        epsilon_ratio: Tolerance as a fraction of each contour's perimeter

    Returns:
        list: Polygons in extraction order
    """
    # RETR_EXTERNAL: nested contours are not needed
    # CHAIN_APPROX_SIMPLE: compresses straight runs to their end points
    contours, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

    polygons = []
    for contour in contours:
        perimeter = cv2.arcLength(contour, True)
        approx = cv2.approxPolyDP(contour, epsilon_ratio * perimeter, True)
        polygons.append(Polygon(points=approx.reshape(-1, 2), area=float(cv2.contourArea(approx))))
    return polygons


def order_corners(points: Iterable) -> Quadrilateral:
    """
    Order four corner points as [top-left, top-right, bottom-right, bottom-left].

    Points are sorted by y; the two smallest form the top pair and the two
    largest the bottom pair, and each pair is sorted by x. Polygon winding is
    not inspected, so the result is only reliable for convex boards seen
    roughly front-on: a board rotated past ~45 degrees may be mislabelled.

    Args:
        points: Four (x, y) pairs in any order

    Returns:
        Quadrilateral: Canonically ordered corners

    Raises:
        ValueError: If the input does not hold exactly four points
    """
    pts = [Point(float(p[0]), float(p[1])) for p in np.asarray(points, dtype=np.float64).reshape(-1, 2)]
    if len(pts) != 4:
        raise ValueError(f"Expected 4 corner points, got {len(pts)}")

    by_y = sorted(pts, key=lambda p: p.y)
    top = sorted(by_y[:2], key=lambda p: p.x)
    bottom = sorted(by_y[2:], key=lambda p: p.x)

    return Quadrilateral(tl=top[0], tr=top[1], br=bottom[1], bl=bottom[0])


def is_degenerate(quad: Quadrilateral, min_distance: float = MIN_CORNER_DISTANCE) -> bool:
    """
    Check whether ordered corners collapse to something that is not a board.

    A quadrilateral is degenerate when two corners coincide (fewer than four
    distinct points) or when it encloses no area.
    """
    corners = quad.as_array().astype(np.float64)
    for i in range(4):
        for j in range(i + 1, 4):
            if np.linalg.norm(corners[i] - corners[j]) < min_distance:
                return True

    return quad.area() <= 0.0


def min_area_for_frame(width: int, height: int, min_area_ratio: float,
                       min_area_px: Optional[float] = None) -> float:
    """Minimum board area in pixels for a frame size. An absolute override wins."""
    if min_area_px is not None:
        return float(min_area_px)
    return float(width * height * min_area_ratio)


def select_quadrilateral(polygons: Sequence[Polygon], min_area: float,
                         policy: str = "first") -> Optional[Quadrilateral]:
    """
    Pick the board among candidate polygons.

    Candidates must have exactly 4 vertices and an area strictly above
    ``min_area``. With ``policy="first"`` the first qualifying candidate in
    extraction order wins, which need not be the board when several large
    quadrilaterals are visible; ``policy="largest"`` takes the biggest one.

    Args:
        polygons: Candidates in extraction order
        min_area: Area threshold in square pixels
        policy: "first" or "largest"

    Returns:
        Quadrilateral or None if no candidate passes (or the winner is degenerate)
    """
    if policy not in ("first", "largest"):
        raise ValueError(f"Unknown selection policy '{policy}'")

    chosen = None
    for polygon in polygons:
        if polygon.vertex_count != 4 or polygon.area <= min_area:
            continue
        if policy == "first":
            chosen = polygon
            break
        if chosen is None or polygon.area > chosen.area:
            chosen = polygon

    if chosen is None:
        return None

    quad = order_corners(chosen.points)
    if is_degenerate(quad):
        logger.debug("Discarding degenerate quadrilateral %s", quad)
        return None
    return quad


def detect_board(image: np.ndarray,
                 min_area_ratio: float,
                 min_area_px: Optional[float] = None,
                 policy: str = "first",
                 blur_kernel: int = 5,
                 canny_low: int = 50,
                 canny_high: int = 150,
                 epsilon_ratio: float = 0.02,
                 max_process_width: int = 0) -> Optional[Quadrilateral]:
    """
    Run the full detection pipeline on one frame.

    Pipeline steps:
    1. Optionally downscale the frame for speed
    2. Preprocess (grayscale, blur, Canny)
    3. Extract and simplify outer contours
    4. Select and order the board quadrilateral
    5. Scale corners back to full-resolution coordinates

    A miss is not an error: no qualifying board, degenerate geometry and
    OpenCV failures inside the pipeline all come back as None.

    Args:
        image: Raw frame
        min_area_ratio: Minimum board area as a fraction of the frame area
        min_area_px: Absolute minimum area in full-resolution pixels (overrides the ratio)
        policy: Selection policy, "first" or "largest"
        max_process_width: Downscale frames wider than this before detection (0 disables)

    Returns:
        Quadrilateral in full-resolution frame coordinates, or None
    """
    try:
        working, scale = resize_image(image, max_width=max_process_width)
        h, w = working.shape[:2]
        area_px = None if min_area_px is None else min_area_px / (scale * scale)
        min_area = min_area_for_frame(w, h, min_area_ratio, area_px)

        edges = preprocess_frame(working, blur_kernel, canny_low, canny_high)
        polygons = extract_polygons(edges, epsilon_ratio)
        quad = select_quadrilateral(polygons, min_area, policy)
    except cv2.error as e:
        logger.warning(f"Detection pass failed inside OpenCV: {e}")
        return None

    logger.debug(f"Detection: {len(polygons)} polygons, min area {min_area:.0f}, "
                 f"board {'found' if quad is not None else 'missing'}")

    if quad is not None and scale != 1.0:
        quad = quad.scaled(scale, scale)
    return quad


def draw_detection(image: np.ndarray, polygons: Sequence[Polygon],
                   quad: Optional[Quadrilateral]) -> np.ndarray:
    """
    Visualize candidate polygons and the selected board on the image.

    Utility function for debugging and verification.

    Args:
        image: Original image
        polygons: Extracted candidates (drawn in green)
        quad: Selected board, or None (corners drawn as labelled red circles)

    Returns:
        numpy.ndarray: Image with drawn candidates and corners
    """
    output = image.copy()
    if output.ndim == 2:
        output = cv2.cvtColor(output, cv2.COLOR_GRAY2BGR)

    for polygon in polygons:
        cv2.polylines(output, [polygon.points.astype(np.int32).reshape(-1, 1, 2)], True, (0, 255, 0), 2)

    if quad is not None:
        for label, corner in zip(('TL', 'TR', 'BR', 'BL'), quad.corners):
            x, y = int(round(corner.x)), int(round(corner.y))
            cv2.circle(output, (x, y), 8, (0, 0, 255), -1)
            cv2.putText(output, label, (x + 12, y + 12),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 0, 0), 2)

    return output
