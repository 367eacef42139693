"""Image preprocessing utilities for board detection."""


import logging
from typing import Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert a BGR/BGRA frame to a single intensity channel (no-op for gray input)."""
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def preprocess_frame(image: np.ndarray,
                     blur_kernel: int = 5,
                     canny_low: int = 50,
                     canny_high: int = 150) -> np.ndarray:
    """
    Turn a raw frame into an edge map for contour extraction.

    Steps, in fixed order:
    1. Convert to single-channel intensity
    2. Gaussian blur with a square aperture to suppress sensor noise
    3. Canny edge detection with a low/high hysteresis pair

    Args:
        image: Raw frame (BGR, BGRA or grayscale)
        blur_kernel: Odd aperture of the smoothing kernel (default 5 -> 5x5)
        canny_low: Lower hysteresis threshold (default 50)
        canny_high: Upper hysteresis threshold (default 150)

    Returns:
        Binary edge map with the same height and width as the input

    References:
        - Canny, "A Computational Approach to Edge Detection" (1986)
    """
    gray = to_grayscale(image)
    smooth = cv2.GaussianBlur(gray, (blur_kernel, blur_kernel), 0)
    return cv2.Canny(smooth, canny_low, canny_high)


def resize_image(image: np.ndarray, max_width: int = 800) -> Tuple[np.ndarray, float]:
    """Resize while maintaining aspect ratio.

    Returns:
        (resized, scale) where scale maps resized coordinates back to the
        original (original = resized * scale). Images already narrow enough,
        or a max_width of 0, come back untouched with scale 1.0.
    """
    height, width = image.shape[:2]
    if max_width and width > max_width:
        ratio = max_width / width
        new_height = int(height * ratio)
        resized = cv2.resize(image, (max_width, new_height), interpolation=cv2.INTER_AREA)
        return resized, width / max_width
    return image, 1.0


def show_stages(image: np.ndarray, blur_kernel: int = 5, canny_low: int = 50, canny_high: int = 150):
    """
    Display the preprocessing stages side by side for threshold tuning.

    Args:
        image: Raw BGR frame
        blur_kernel, canny_low, canny_high: Same meaning as in preprocess_frame

    Returns:
        The matplotlib figure
    """
    import matplotlib.pyplot as plt

    gray = to_grayscale(image)
    smooth = cv2.GaussianBlur(gray, (blur_kernel, blur_kernel), 0)
    edges = cv2.Canny(smooth, canny_low, canny_high)
    logger.debug(f"Edge pixels: {int(np.count_nonzero(edges))} / {edges.size}")

    fig, axes = plt.subplots(1, 4, figsize=(16, 4))

    if image.ndim == 3:
        code = cv2.COLOR_BGRA2RGB if image.shape[2] == 4 else cv2.COLOR_BGR2RGB
        axes[0].imshow(cv2.cvtColor(image, code))
    else:
        axes[0].imshow(image, cmap='gray')
    axes[0].set_title('Original')

    axes[1].imshow(gray, cmap='gray')
    axes[1].set_title('Grayscale')

    axes[2].imshow(smooth, cmap='gray')
    axes[2].set_title(f'Blurred ({blur_kernel}x{blur_kernel})')

    axes[3].imshow(edges, cmap='gray')
    axes[3].set_title(f'Canny {canny_low}/{canny_high}')

    for ax in axes:
        ax.axis('off')

    plt.tight_layout()
    plt.show()

    return fig
