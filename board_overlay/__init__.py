"""
Board Grid Overlay - live perspective grid on a camera feed

This package contains modules for:
- Frame acquisition (camera stream or still image)
- Edge-map preprocessing
- Board quadrilateral detection and corner ordering
- Bilinear / projective grid projection
- Tracked per-cell values and the periodic activities that update them
"""

__version__ = "1.0.0"
__author__ = "Board Grid Overlay Team"
