"""
Board Grid Overlay - Main Application Module
"""

import argparse
import logging
import os
import sys

import cv2

from .config import OverlayConfig, load_config
from .entities import GridSpec
from .exceptions import AcquisitionError, ConfigError
from .frame_source import CameraFrameSource, StaticFrameSource
from .grid_detection import detect_board, draw_detection, extract_polygons, min_area_for_frame
from .overlay import FrameCompositor
from .preprocessing import preprocess_frame, show_stages
from .session import OverlaySession

logger = logging.getLogger(__name__)

WINDOW_NAME = "Board Grid Overlay"


class BoardOverlayApp:
    """
    Main class for the Board Grid Overlay application.

    Runs the overlay either live over a camera stream or once over a still
    image, saving the intermediate stages for inspection.
    """

    def __init__(self, config: OverlayConfig, save_intermediate=True):
        """
        Initialize the application.

        Args:
            config (OverlayConfig): Validated configuration
            save_intermediate (bool): Whether to save intermediate processing steps
        """
        self.config = config
        self.save_intermediate = save_intermediate
        self.intermediate_images = {}

    def process_image(self, image_path, output_dir='output', show=False):
        """
        Detect the board in one image and render the grid overlay on it.

        Pipeline steps:
        1. Load image
        2. Preprocess (grayscale, blur, Canny)
        3. Extract polygons and select the board
        4. Project the grid and draw labels

        Args:
            image_path (str): Path to the input image
            output_dir (str): Directory to save output images
            show (bool): Plot the preprocessing stages with matplotlib

        Returns:
            dict: Quad (or None), polygon count and the overlay image
        """
        cfg = self.config
        logger.info(f"Processing: {os.path.basename(image_path)}")

        source = StaticFrameSource(image_path)
        width, height = source.start()
        frame = source.get_frame()
        self.intermediate_images['original'] = frame.image
        logger.info(f"[1/4] Image size: {width}x{height}")

        if show:
            show_stages(frame.image, cfg.blur_kernel, cfg.canny_low, cfg.canny_high)

        logger.info("[2/4] Preprocessing (grayscale, blur, Canny)")
        edges = preprocess_frame(frame.image, cfg.blur_kernel, cfg.canny_low, cfg.canny_high)
        self.intermediate_images['edges'] = edges

        logger.info("[3/4] Extracting polygons and selecting the board")
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
        # Full-resolution candidates, only for the debug drawing
        polygons = extract_polygons(edges, cfg.epsilon_ratio)
        min_area = min_area_for_frame(width, height, cfg.min_area_ratio, cfg.min_area_px)
        self.intermediate_images['detection'] = draw_detection(frame.image, polygons, quad)
        if quad is None:
            logger.warning(f"      No board among {len(polygons)} polygons (min area {min_area:.0f}px), "
                           "using the full frame")
        else:
            logger.info(f"      Board corners: {[(round(p.x), round(p.y)) for p in quad.corners]}")

        logger.info("[4/4] Projecting the grid")
        compositor = FrameCompositor(cfg.font_scale)
        session = OverlaySession(source, compositor, cfg)
        session.start(GridSpec(cfg.rows, cfg.cols), background=False)
        try:
            session.board.publish(quad, frame.timestamp)
            session.render_tick()
            overlay = compositor.latest()
        finally:
            session.stop()
        self.intermediate_images['overlay'] = overlay

        if self.save_intermediate:
            self._save_results(image_path, output_dir)

        return {
            'quad': quad,
            'polygon_count': len(polygons),
            'overlay': overlay,
        }

    def _save_results(self, image_path, output_dir):
        """
        Save intermediate processing results to disk.

        Args:
            image_path (str): Original image path (for naming)
            output_dir (str): Output directory
        """
        os.makedirs(output_dir, exist_ok=True)
        base_name = os.path.splitext(os.path.basename(image_path))[0]

        for name, image in self.intermediate_images.items():
            output_path = os.path.join(output_dir, f"{base_name}_{name}.jpg")
            cv2.imwrite(output_path, image)

        logger.info(f"Saved {len(self.intermediate_images)} images to {output_dir}/")

    def run_live(self):
        """
        Overlay the grid on the camera stream until 'q' or Esc is pressed.

        Raises:
            AcquisitionError: If the camera cannot be opened or is lost
        """
        cfg = self.config
        source = CameraFrameSource(cfg.camera_source, cfg.camera_width, cfg.camera_height)
        compositor = FrameCompositor(cfg.font_scale)
        session = OverlaySession(source, compositor, cfg)

        try:
            session.start(GridSpec(cfg.rows, cfg.cols))
            while session.running:
                image = compositor.latest()
                if image is not None:
                    cv2.imshow(WINDOW_NAME, image)
                key = cv2.waitKey(max(1, int(1000 / cfg.render_fps))) & 0xFF
                if key in (ord('q'), 27):
                    break
        finally:
            session.stop()
            cv2.destroyAllWindows()

        if session.error is not None:
            raise session.error


def build_config(args) -> OverlayConfig:
    """Load the config file and apply command-line overrides."""
    cfg = load_config(args.config)
    overrides = {
        'rows': args.rows,
        'cols': args.cols,
        'selection_policy': args.selection,
        'projection_mode': args.projection,
        'max_stale_misses': args.max_misses,
        'camera_source': args.camera,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(cfg, key, value)
    if args.highlight is not None:
        cfg.highlight = args.highlight if args.highlight == 'max' else int(args.highlight)
    return cfg.validate()


def _camera_arg(value):
    return int(value) if value.isdigit() else value


def main():
    """
    Main entry point for the Board Grid Overlay application.

    Handles command-line arguments and runs live or still-image mode.
    """
    parser = argparse.ArgumentParser(
        description='Board Grid Overlay - project a grid onto a board seen by a camera',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Live overlay on the default camera:
    python -m board_overlay

  Live overlay on a 5x3 board, picking the largest quadrilateral:
    python -m board_overlay --rows 5 --cols 3 --selection largest

  Process a single image:
    python -m board_overlay --image board.jpg --output output
        """
    )

    parser.add_argument('--image', '-i',
                        help='Process a still image instead of the camera stream')
    parser.add_argument('--camera', '-c', type=_camera_arg,
                        help='Camera index or video file (default from config: 0)')
    parser.add_argument('--output', '-o', default='output',
                        help='Output directory for still-image mode (default: output)')
    parser.add_argument('--config', default='overlay_config.json',
                        help='JSON configuration file (default: overlay_config.json)')
    parser.add_argument('--rows', type=int, help='Grid rows')
    parser.add_argument('--cols', type=int, help='Grid columns')
    parser.add_argument('--selection', choices=['first', 'largest'],
                        help='Quadrilateral selection policy')
    parser.add_argument('--projection', choices=['bilinear', 'homography'],
                        help='Grid projection mode')
    parser.add_argument('--max-misses', type=int,
                        help='Consecutive detection misses before reverting to the full frame (0 = never)')
    parser.add_argument('--highlight',
                        help="Identity to highlight, or 'max' for the highest value")
    parser.add_argument('--no-save', action='store_true',
                        help='Do not save intermediate images')
    parser.add_argument('--show-stages', action='store_true',
                        help='Plot preprocessing stages (still-image mode)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Debug logging')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    try:
        config = build_config(args)
    except (ConfigError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)

    app = BoardOverlayApp(config, save_intermediate=not args.no_save)

    try:
        if args.image:
            if not os.path.exists(args.image):
                logger.error(f"Image file not found: {args.image}")
                sys.exit(1)
            app.process_image(args.image, args.output, show=args.show_stages)
        else:
            app.run_live()
    except AcquisitionError as e:
        logger.error(f"Could not acquire frames: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
