"""
Entry point for running the overlay as a package.

Usage:
    python -m board_overlay
    python -m board_overlay --image path/to/board.jpg
"""

from .overlay_app import main

if __name__ == '__main__':
    main()
