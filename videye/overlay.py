"""
Overlay Renderer for VidEye Gaze-Gated Playback

Presentation only: draws the highlighted landmarks and status text for the
latest processed frame. Nothing here feeds back into the tracking loop.
"""

import threading
from typing import Optional, Sequence

import numpy as np

from .behavior_manager import GazeState, PlaybackCommand
from .config import COLORS, HIGHLIGHT_LANDMARK_IDS, HIGHLIGHT_RADIUS
from .utils import add_info_text, draw_eye_highlights


class OverlayRenderer:
    """Renders each processed frame into an annotated image for display."""

    def __init__(self, highlight_ids: Sequence[int] = HIGHLIGHT_LANDMARK_IDS,
                 radius: int = HIGHLIGHT_RADIUS, show_status: bool = True):
        self.highlight_ids = tuple(highlight_ids)
        self.radius = radius
        self.show_status = show_status
        self._latest: Optional[np.ndarray] = None
        self._lock = threading.Lock()

    def render(self, landmarks, width: int, height: int,
               frame: Optional[np.ndarray] = None, result=None) -> np.ndarray:
        """
        Draw one frame's overlay.

        Args:
            landmarks: LandmarkSet for the frame (empty = nothing highlighted)
            width, height: Canvas size in pixels
            frame: Camera frame to draw over; a black canvas when omitted
            result: FrameResult used for the status lines

        Returns:
            Annotated copy of the frame
        """
        if frame is None:
            canvas = np.zeros((height, width, 3), dtype=np.uint8)
        else:
            canvas = frame.copy()

        draw_eye_highlights(canvas, landmarks, width, height,
                            self.highlight_ids, self.radius)

        if self.show_status and result is not None:
            add_info_text(canvas, self._status_lines(result))

        with self._lock:
            self._latest = canvas
        return canvas

    def _status_lines(self, result):
        looking = result.gaze is GazeState.LOOKING
        gaze_text = "LOOKING" if looking else "NOT LOOKING"
        if result.distance is not None:
            gaze_text += f" ({result.distance:.3f})"
        elif not result.landmarks:
            gaze_text += " (no face)"

        if result.command is PlaybackCommand.PLAY:
            if result.pause_pending:
                playback = ("Playback: PLAY (pausing...)", COLORS['warning'])
            else:
                playback = ("Playback: PLAY", COLORS['success'])
        else:
            playback = ("Playback: PAUSE", COLORS['error'])

        return [
            (f"Gaze: {gaze_text}", COLORS['success'] if looking else COLORS['error']),
            playback,
        ]

    def latest(self) -> Optional[np.ndarray]:
        """Most recently rendered image, or None before the first frame."""
        with self._lock:
            return self._latest
