"""
Capture Module for VidEye Gaze-Gated Playback

Camera (or video file) acquisition and the capture surface the frame loop
reads from.
"""

import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple

import cv2
import numpy as np

from .config import CAPTURE_READY_POLL_SEC, CAPTURE_READY_TIMEOUT_SEC, CaptureConstraints
from .errors import CaptureUnavailable

logger = logging.getLogger(__name__)

# =============================================================================
# CAMERA STREAM
# =============================================================================

class CameraStream:
    """A live OpenCV capture (camera device or video file)."""

    def __init__(self, capture: cv2.VideoCapture, source: Any):
        self._capture = capture
        self.source = source

    @property
    def live(self) -> bool:
        return self._capture is not None and self._capture.isOpened()

    def current_frame(self) -> Optional[np.ndarray]:
        """Read the next frame, or None if the stream has no frame to give."""
        if self._capture is None:
            return None
        ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        return frame

    def settings(self) -> Dict[str, float]:
        """Actual capture settings reported by the device."""
        if self._capture is None:
            return {}
        return {
            'width': int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
            'height': int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            'fps': self._capture.get(cv2.CAP_PROP_FPS),
        }

    def release(self) -> None:
        """Stop the capture and free the device (idempotent)."""
        capture, self._capture = self._capture, None
        if capture is not None:
            capture.release()
            logger.info("✓ Capture released (source %s)", self.source)


def _configure_camera(cap: cv2.VideoCapture, constraints: CaptureConstraints):
    """Apply requested resolution and frame rate to an opened camera."""
    if constraints.resolution != (0, 0):
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.resolution[0])
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.resolution[1])

    cap.set(cv2.CAP_PROP_FPS, constraints.frame_rate)

    width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    fps = cap.get(cv2.CAP_PROP_FPS)
    logger.info("  Resolution: %dx%d, frame rate: %.1f FPS", width, height, fps)


def acquire_stream(constraints: CaptureConstraints) -> CameraStream:
    """
    Open a capture stream matching the requested constraints.

    Args:
        constraints: Device indices, resolution, frame rate or a video file source

    Returns:
        Opened CameraStream

    Raises:
        CaptureUnavailable: If no camera or video file can be opened
    """
    if constraints.source is not None:
        logger.info("Opening video file: %s", constraints.source)
        cap = cv2.VideoCapture(constraints.source)
        if not cap.isOpened():
            cap.release()
            raise CaptureUnavailable(f"Could not open video file: {constraints.source}")
        logger.info("✓ Video opened successfully")
        return CameraStream(cap, constraints.source)

    indices = [constraints.camera_index]
    if constraints.backup_index is not None and constraints.backup_index != constraints.camera_index:
        indices.append(constraints.backup_index)

    for index in indices:
        cap = cv2.VideoCapture(index)
        if cap.isOpened():
            logger.info("✓ Camera opened successfully (index %d)", index)
            _configure_camera(cap, constraints)
            return CameraStream(cap, index)
        cap.release()
        logger.warning("⚠ Camera %d failed to open", index)

    raise CaptureUnavailable(f"No camera available (tried indices {indices})")

# =============================================================================
# CAPTURE SURFACE
# =============================================================================

class CaptureSurface:
    """
    The tracking surface a stream is bound to.

    Frame dimensions stay unknown until the bound stream delivers its first
    non-empty frame; the frame loop skips iterations until then. At most one
    session is active on a surface at a time.
    """

    def __init__(self, mirror: bool = False):
        self.mirror = mirror
        self.stream: Optional[CameraStream] = None
        self.dimensions: Optional[Tuple[int, int]] = None
        self.active_session = None
        self._lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self.stream is not None and self.dimensions is not None

    def bind(self, stream: CameraStream) -> None:
        with self._lock:
            self.stream = stream
            self.dimensions = None

    def detach(self) -> Optional[CameraStream]:
        """Unbind and return the current stream (the caller releases it)."""
        with self._lock:
            stream, self.stream = self.stream, None
            self.dimensions = None
        return stream

    def read_frame(self) -> Optional[np.ndarray]:
        """
        Read the current frame from the bound stream.

        Returns:
            BGR frame, or None when unbound or the stream has no frame yet
        """
        with self._lock:
            stream = self.stream
            if stream is None:
                return None
            frame = stream.current_frame()
            if frame is None or frame.size == 0:
                return None
            if self.mirror:
                frame = cv2.flip(frame, 1)
            height, width = frame.shape[:2]
            self.dimensions = (width, height)
            return frame

    def wait_until_ready(self, timeout: float = CAPTURE_READY_TIMEOUT_SEC,
                         poll_interval: float = CAPTURE_READY_POLL_SEC) -> bool:
        """Poll the bound stream until it reports frame dimensions."""
        deadline = time.monotonic() + timeout
        while True:
            if self.read_frame() is not None:
                width, height = self.dimensions
                logger.info("✓ Capture surface ready (%dx%d)", width, height)
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(poll_interval)
