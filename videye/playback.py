"""
Playback Controllers for VidEye Gaze-Gated Playback

The frame loop drives one of these with the gate's commands. ``play`` and
``pause`` are idempotent; a refused request raises PlaybackRejected.
"""

import logging
import threading
from typing import Optional

import cv2
import numpy as np

from .config import PLAYBACK_TOGGLE_KEY
from .errors import PlaybackRejected

logger = logging.getLogger(__name__)


class PlaybackController:
    """Base controller that only tracks play/pause state."""

    def __init__(self, playing: bool = False):
        self._playing = playing

    @property
    def is_playing(self) -> bool:
        return self._playing

    def play(self):
        self._playing = True

    def pause(self):
        self._playing = False

# =============================================================================
# KEY-PRESS CONTROLLER (BROWSER / DESKTOP PLAYERS)
# =============================================================================

class KeyPressPlaybackController(PlaybackController):
    """
    Controls whatever player has keyboard focus by sending its toggle key.

    The player only exposes a toggle, so the controller remembers the state it
    last set and only presses the key on an actual change.
    """

    def __init__(self, key: str = PLAYBACK_TOGGLE_KEY, playing: bool = True):
        # Imported here: pyautogui needs a display connection at import time
        import pyautogui

        super().__init__(playing)
        self._pyautogui = pyautogui
        self.key = key
        logger.info("✓ Key-press controller ready (toggle key %r)", key)

    def _toggle(self):
        try:
            self._pyautogui.press(self.key)
        except self._pyautogui.FailSafeException as e:
            raise PlaybackRejected(f"Key press blocked by pyautogui fail-safe: {e}") from e

    def play(self):
        if self._playing:
            return
        self._toggle()
        self._playing = True
        logger.info("▶ Resumed video")

    def pause(self):
        if not self._playing:
            return
        self._toggle()
        self._playing = False
        logger.info("⏸ Paused video")

# =============================================================================
# LOCAL VIDEO FILE PLAYER
# =============================================================================

class VideoFilePlayer(PlaybackController):
    """
    Plays a local media file in an OpenCV window.

    ``play``/``pause`` are called from the frame loop thread; ``next_frame``
    is called from the display thread and only advances while playing.
    """

    def __init__(self, path: str, loop: bool = False):
        super().__init__(False)
        self.path = path
        self.loop = loop
        self._capture: Optional[cv2.VideoCapture] = cv2.VideoCapture(path)
        self._last_frame: Optional[np.ndarray] = None
        self._ended = False
        self._lock = threading.Lock()

        if not self._capture.isOpened():
            logger.warning("⚠ Could not open media file: %s", path)
        else:
            logger.info("✓ Media file opened: %s", path)

    @property
    def fps(self) -> float:
        if self._capture is None:
            return 0.0
        return self._capture.get(cv2.CAP_PROP_FPS) or 0.0

    @property
    def ended(self) -> bool:
        return self._ended

    def play(self):
        with self._lock:
            if self._playing:
                return
            if self._capture is None or not self._capture.isOpened():
                raise PlaybackRejected(f"Media file is not available: {self.path}")
            if self._ended and not self.loop:
                raise PlaybackRejected("Media has reached the end")
            self._playing = True
        logger.info("▶ Playing %s", self.path)

    def pause(self):
        with self._lock:
            if not self._playing:
                return
            self._playing = False
        logger.info("⏸ Paused %s", self.path)

    def next_frame(self) -> Optional[np.ndarray]:
        """Advance one frame while playing; otherwise repeat the last frame."""
        with self._lock:
            if not self._playing or self._capture is None:
                return self._last_frame

            ok, frame = self._capture.read()
            if not ok and self.loop:
                self._capture.set(cv2.CAP_PROP_POS_FRAMES, 0)
                ok, frame = self._capture.read()
            if not ok:
                self._ended = True
                self._playing = False
                logger.info("✅ Media playback complete - end of file reached")
                return self._last_frame

            self._last_frame = frame
            return frame

    def release(self):
        with self._lock:
            capture, self._capture = self._capture, None
            self._playing = False
        if capture is not None:
            capture.release()
