"""
Utility Functions Module for VidEye Gaze-Gated Playback

This module contains utility functions for:
- Detector timestamps and logging setup
- Model asset download and caching
- Landmark cluster geometry
- Overlay drawing
"""

import logging
import os
import time
import urllib.request
from typing import Callable, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from .config import (
    COLORS, ENABLE_DEBUG_PRINTS, HIGHLIGHT_RADIUS, LOG_FORMAT,
    MODEL_CACHE_DIR, TEXT_FONT, TEXT_SCALE, TEXT_THICKNESS,
)

logger = logging.getLogger(__name__)

# =============================================================================
# TIMING AND LOGGING
# =============================================================================

class TimestampClock:
    """
    Strictly increasing millisecond timestamps for the landmark detector.

    MediaPipe's VIDEO running mode rejects a timestamp that is not greater
    than the previous one, so two frames landing in the same wall-clock
    millisecond are spread apart by one.
    """

    def __init__(self, time_fn: Callable[[], float] = time.time):
        self._time_fn = time_fn
        self._last_ms: Optional[int] = None

    def next_ms(self) -> int:
        now_ms = int(self._time_fn() * 1000)
        if self._last_ms is not None and now_ms <= self._last_ms:
            now_ms = self._last_ms + 1
        self._last_ms = now_ms
        return now_ms


def setup_logging(debug: bool = ENABLE_DEBUG_PRINTS) -> None:
    """Configure root logging for the command line application."""
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO,
                        format=LOG_FORMAT)

# =============================================================================
# MODEL ASSETS
# =============================================================================

def ensure_model_asset(model_path: str, model_url: str,
                       cache_dir: str = MODEL_CACHE_DIR) -> str:
    """
    Resolve the face landmarker model bundle, downloading it if needed.

    Args:
        model_path: Configured model path (used as-is when it exists)
        model_url: Download location for the bundle
        cache_dir: Directory the downloaded bundle is cached in

    Returns:
        Path to a model file that exists on disk

    Raises:
        OSError, ValueError: If the download fails or the URL is malformed;
            no partial file is left in the cache
    """
    if os.path.exists(model_path):
        return model_path

    cache_dir = os.path.expanduser(cache_dir)
    cached_path = os.path.join(cache_dir, os.path.basename(model_path))
    if os.path.exists(cached_path):
        return cached_path

    os.makedirs(cache_dir, exist_ok=True)
    logger.info("Downloading %s ...", os.path.basename(cached_path))
    partial_path = cached_path + '.part'
    try:
        urllib.request.urlretrieve(model_url, partial_path)
    except (OSError, ValueError):
        if os.path.exists(partial_path):
            os.remove(partial_path)
        raise
    os.replace(partial_path, cached_path)
    logger.info("✓ Saved model to %s", cached_path)
    return cached_path

# =============================================================================
# LANDMARK GEOMETRY
# =============================================================================

def cluster_mean(points: Sequence, axis: str = 'y') -> float:
    """
    Mean coordinate of a landmark cluster along one axis.

    Args:
        points: Landmark points with ``x`` and ``y`` attributes
        axis: 'x' or 'y'

    Returns:
        Arithmetic mean of the chosen coordinate
    """
    if not points:
        raise ValueError("Cannot average an empty landmark cluster")
    return sum(getattr(p, axis) for p in points) / len(points)

# =============================================================================
# VISUALIZATION UTILITY FUNCTIONS
# =============================================================================

def to_pixel(point, width: int, height: int) -> Tuple[int, int]:
    """Convert a normalized landmark to pixel coordinates, clamped to the canvas."""
    x = int(point.x * width)
    y = int(point.y * height)
    return max(0, min(width - 1, x)), max(0, min(height - 1, y))


def draw_eye_highlights(frame: np.ndarray, landmarks, width: int, height: int,
                        indices: Sequence[int], radius: int = HIGHLIGHT_RADIUS,
                        color: Tuple[int, int, int] = COLORS['landmarks']) -> np.ndarray:
    """
    Draw circles on selected landmarks (iris centres, face edges, nose tip).

    Args:
        frame: Canvas to draw on (modified in place)
        landmarks: LandmarkSet for this frame; nothing is drawn when empty
        width, height: Canvas size in pixels
        indices: Landmark indices to highlight
        radius: Circle radius in pixels
        color: BGR circle color

    Returns:
        The same frame, for chaining
    """
    if not landmarks:
        return frame

    for idx in indices:
        if idx >= len(landmarks):
            continue
        cv2.circle(frame, to_pixel(landmarks[idx], width, height), radius, color, 2)

    return frame


def add_info_text(frame: np.ndarray, text_lines: List[Tuple[str, Tuple[int, int, int]]],
                  start_y: int = 30, line_spacing: int = 25) -> np.ndarray:
    """
    Add multiple lines of colored status text to frame.

    Args:
        frame: Input frame
        text_lines: (text, BGR color) pairs to display
        start_y: Y coordinate for first line
        line_spacing: Vertical spacing between lines

    Returns:
        Frame with text added
    """
    for i, (text, color) in enumerate(text_lines):
        y_pos = start_y + (i * line_spacing)
        cv2.putText(frame, text, (10, y_pos), TEXT_FONT, TEXT_SCALE,
                    color, TEXT_THICKNESS)

    return frame
