#!/usr/bin/env python3
"""
Convenience script to overlay the grid on a still image.

This script provides a simple interface to the Board Grid Overlay pipeline.

Usage:
    python process_image.py --image board.jpg
    python process_image.py --image path/to/board.jpg --output my_output/
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from board_overlay.overlay_app import main

if __name__ == '__main__':
    main()
