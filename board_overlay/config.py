"""Configuration dataclass and loading utilities.

Provides a strongly-typed configuration object that is handed to the
session and the app instead of module-level constants.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional
import json
import logging
import os

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

# 10,000 px^2 on a 640x480 stream, expressed relative to the frame area
REFERENCE_MIN_AREA_RATIO = 10000 / (640 * 480)

_DEFAULTS: Dict[str, Any] = {
    "rows": 4,
    "cols": 4,
    "blur_kernel": 5,
    "canny_low": 50,
    "canny_high": 150,
    "epsilon_ratio": 0.02,
    "min_area_ratio": REFERENCE_MIN_AREA_RATIO,
    "min_area_px": None,
    "selection_policy": "first",
    "max_process_width": 960,
    "projection_mode": "bilinear",
    "detect_interval": 1.0,
    "value_interval": 2.0,
    "render_fps": 30,
    "max_stale_misses": 5,
    "highlight": None,
    "camera_source": 0,
    "camera_width": 1280,
    "camera_height": 720,
    "label_offset_px": 5,
    "font_scale": 0.6,
}

SELECTION_POLICIES = ("first", "largest")
PROJECTION_MODES = ("bilinear", "homography")


@dataclass(slots=True)
class OverlayConfig:
    rows: int = _DEFAULTS["rows"]
    cols: int = _DEFAULTS["cols"]
    blur_kernel: int = _DEFAULTS["blur_kernel"]
    canny_low: int = _DEFAULTS["canny_low"]
    canny_high: int = _DEFAULTS["canny_high"]
    epsilon_ratio: float = _DEFAULTS["epsilon_ratio"]
    min_area_ratio: float = _DEFAULTS["min_area_ratio"]
    min_area_px: Optional[float] = _DEFAULTS["min_area_px"]
    selection_policy: str = _DEFAULTS["selection_policy"]
    max_process_width: int = _DEFAULTS["max_process_width"]
    projection_mode: str = _DEFAULTS["projection_mode"]
    detect_interval: float = _DEFAULTS["detect_interval"]
    value_interval: float = _DEFAULTS["value_interval"]
    render_fps: int = _DEFAULTS["render_fps"]
    max_stale_misses: int = _DEFAULTS["max_stale_misses"]
    # None, "max" or an integer identity
    highlight: Any = _DEFAULTS["highlight"]
    # Device index or video path, as accepted by cv2.VideoCapture
    camera_source: Any = _DEFAULTS["camera_source"]
    camera_width: int = _DEFAULTS["camera_width"]
    camera_height: int = _DEFAULTS["camera_height"]
    label_offset_px: int = _DEFAULTS["label_offset_px"]
    font_scale: float = _DEFAULTS["font_scale"]
    # Arbitrary extra values retained for forward compatibility
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        extra = d.pop("extra", {})
        d.update(extra)
        return d

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self, key, self.extra.get(key, default))

    def validate(self) -> "OverlayConfig":
        """Raise ConfigError on the first invalid setting, return self otherwise."""
        if int(self.rows) <= 0 or int(self.cols) <= 0:
            raise ConfigError(f"Grid must have positive rows/cols, got {self.rows}x{self.cols}")
        if self.blur_kernel <= 0 or self.blur_kernel % 2 == 0:
            raise ConfigError(f"blur_kernel must be a positive odd number, got {self.blur_kernel}")
        if not 0 <= self.canny_low <= self.canny_high:
            raise ConfigError(f"Invalid Canny thresholds {self.canny_low}/{self.canny_high}")
        if self.epsilon_ratio <= 0:
            raise ConfigError("epsilon_ratio must be positive")
        if self.min_area_ratio < 0 or (self.min_area_px is not None and self.min_area_px < 0):
            raise ConfigError("Minimum area must not be negative")
        if self.selection_policy not in SELECTION_POLICIES:
            raise ConfigError(f"Unknown selection policy '{self.selection_policy}'")
        if self.projection_mode not in PROJECTION_MODES:
            raise ConfigError(f"Unknown projection mode '{self.projection_mode}'")
        if self.detect_interval <= 0 or self.value_interval <= 0 or self.render_fps <= 0:
            raise ConfigError("Activity intervals and render_fps must be positive")
        if self.max_stale_misses < 0:
            raise ConfigError("max_stale_misses must be >= 0 (0 disables the bound)")
        if self.highlight is not None and self.highlight != "max" and not isinstance(self.highlight, int):
            raise ConfigError(f"highlight must be null, 'max' or an integer, got {self.highlight!r}")
        return self


def load_config(path: str = "overlay_config.json") -> OverlayConfig:
    """Load a config file, falling back to defaults for missing keys.

    A missing file yields the defaults. An unreadable or malformed file is a
    ConfigError so a typo never silently runs with defaults.
    """
    data: Dict[str, Any] = {}
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f) or {}
        except (OSError, ValueError) as e:
            raise ConfigError(f"Could not read config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must contain a JSON object")
        logger.info(f"Loaded configuration from {path}")
    merged = {**_DEFAULTS, **data}
    # capture unknown keys
    extra = {k: v for k, v in merged.items() if k not in _DEFAULTS}
    cfg = OverlayConfig(**{k: merged[k] for k in _DEFAULTS}, extra=extra)
    return cfg.validate()


def save_config(cfg: OverlayConfig, path: str = "overlay_config.json") -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(cfg.to_dict(), f, indent=2)


__all__ = ["OverlayConfig", "load_config", "save_config", "REFERENCE_MIN_AREA_RATIO"]
