#!/usr/bin/env python3
"""
Run board detection over all images and report which ones found a board.
"""

import sys
import os
import glob
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from board_overlay.config import load_config
from board_overlay.exceptions import AcquisitionError
from board_overlay.overlay_app import BoardOverlayApp


def main():
    """Process all .jpg images in the current directory."""
    logging.basicConfig(level=logging.WARNING, format='%(levelname)s - %(message)s')

    image_files = sorted(glob.glob("*.jpg"))

    if not image_files:
        print("No .jpg files found in current directory!")
        return

    print(f"Found {len(image_files)} images to process")
    print("=" * 60)

    app = BoardOverlayApp(load_config(), save_intermediate=True)
    output_dir = "output"

    results = {
        'detected': [],
        'fallback': [],
        'error': []
    }

    for i, image_path in enumerate(image_files, 1):
        print(f"\n[{i}/{len(image_files)}] Processing {image_path}...")

        try:
            result = app.process_image(image_path, output_dir)
        except AcquisitionError as e:
            print(f"Error processing {image_path}: {e}")
            results['error'].append(image_path)
            continue

        if result['quad'] is not None:
            results['detected'].append(image_path)
        else:
            results['fallback'].append(image_path)

    print("\n" + "=" * 60)
    print("SUMMARY")
    print("=" * 60)
    print(f"Board detected:   {len(results['detected'])}/{len(image_files)}")
    print(f"Full-frame grid:  {len(results['fallback'])}/{len(image_files)}")
    print(f"Errors:           {len(results['error'])}/{len(image_files)}")

    if results['fallback']:
        print(f"\nNo board found in: {', '.join(results['fallback'])}")

    print(f"\nOverlay images saved to: {output_dir}/")
    print("Look for files named: XX_overlay.jpg")


if __name__ == '__main__':
    main()
