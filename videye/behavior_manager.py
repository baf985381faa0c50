"""
Behavior Manager Module for VidEye Gaze-Gated Playback

This module contains the playback decision components:
- GazeClassifier: Determines if the viewer is looking at the screen
- HysteresisGate: Debounces the raw gaze signal into play/pause commands
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .config import (
    DEBOUNCE_WINDOW_SEC, GAZE_AXIS, GAZE_THRESHOLD, LEFT_IRIS_IDS, RIGHT_IRIS_IDS,
    THRESHOLD_TOLERANCE,
)
from .utils import cluster_mean

logger = logging.getLogger(__name__)

# =============================================================================
# GAZE CLASSIFICATION
# =============================================================================

class GazeState(Enum):
    LOOKING = 'LOOKING'
    NOT_LOOKING = 'NOT_LOOKING'

    def __bool__(self) -> bool:
        return self is GazeState.LOOKING


@dataclass(frozen=True)
class GazeClassifier:
    """
    Gaze classification based on iris alignment.

    Averages each eye's iris cluster along one axis and compares the gap
    between the two eyes to a threshold. This is a heuristic, not a gaze-ray
    computation: with the default vertical axis a tilt of the pupils beyond
    ``threshold`` is taken as attention to the screen.

    Attributes:
        threshold: Minimum cluster gap (normalized coordinates) for "looking"
        left_iris: Landmark indices of the left iris cluster
        right_iris: Landmark indices of the right iris cluster
        axis: 'y' compares vertical means, 'x' horizontal means
    """
    threshold: float = GAZE_THRESHOLD
    left_iris: Tuple[int, ...] = LEFT_IRIS_IDS
    right_iris: Tuple[int, ...] = RIGHT_IRIS_IDS
    axis: str = GAZE_AXIS

    def __post_init__(self):
        if self.axis not in ('x', 'y'):
            raise ValueError(f"Gaze axis must be 'x' or 'y', got {self.axis!r}")
        if self.threshold < 0:
            raise ValueError(f"Gaze threshold must be >= 0, got {self.threshold}")
        if not self.left_iris or not self.right_iris:
            raise ValueError("Iris index sets must not be empty")

    @classmethod
    def from_config(cls, config) -> 'GazeClassifier':
        return cls(threshold=config.gaze_threshold,
                   left_iris=tuple(config.left_iris_ids),
                   right_iris=tuple(config.right_iris_ids),
                   axis=config.gaze_axis)

    def alignment_distance(self, landmarks) -> Optional[float]:
        """Absolute gap between the iris cluster means, or None without a face."""
        if not landmarks:
            return None
        left_mean = cluster_mean(landmarks.select(self.left_iris), self.axis)
        right_mean = cluster_mean(landmarks.select(self.right_iris), self.axis)
        return abs(left_mean - right_mean)

    def classify(self, landmarks) -> GazeState:
        """Classify one frame's landmarks; empty input is always NOT_LOOKING."""
        distance = self.alignment_distance(landmarks)
        if distance is None:
            return GazeState.NOT_LOOKING
        # Tolerance absorbs float error in the cluster means (0.42 - 0.40 < 0.02)
        if distance >= self.threshold - THRESHOLD_TOLERANCE:
            return GazeState.LOOKING
        return GazeState.NOT_LOOKING


def classify(landmarks, threshold: float = GAZE_THRESHOLD) -> GazeState:
    """Classify landmarks with the default iris clusters and axis."""
    return GazeClassifier(threshold=threshold).classify(landmarks)

# =============================================================================
# HYSTERESIS GATE (DEBOUNCED PLAY/PAUSE)
# =============================================================================

class PlaybackCommand(Enum):
    PLAY = 'PLAY'
    PAUSE = 'PAUSE'


class HysteresisGate:
    """
    Converts the raw per-frame gaze signal into a stable playback command.

    States:
        STABLE_PLAY: playing, no pause pending
        PENDING_PAUSE: playing, pause scheduled for ``pending_pause_deadline``
        STABLE_PAUSE: paused

    A LOOKING observation always returns to STABLE_PLAY and cancels a pending
    pause. The pause only fires on an observation made at or after the
    deadline, so PAUSE is never emitted within ``debounce_window`` of the last
    LOOKING observation.
    """

    def __init__(self, debounce_window: float = DEBOUNCE_WINDOW_SEC,
                 initial_command: PlaybackCommand = PlaybackCommand.PLAY):
        """
        Initialize the gate.

        Args:
            debounce_window: Seconds of continuous NOT_LOOKING before pausing
            initial_command: Command in effect before the first observation
        """
        if debounce_window < 0:
            raise ValueError(f"Debounce window must be >= 0, got {debounce_window}")

        self.debounce_window = float(debounce_window)
        self.initial_command = initial_command
        self.current_command = initial_command
        self.pending_pause_deadline: Optional[float] = None
        self.changed = False

        self.pauses_emitted = 0
        self.pauses_cancelled = 0

        logger.debug("Hysteresis gate initialized (debounce window: %.3fs)", debounce_window)

    @property
    def pause_pending(self) -> bool:
        return self.pending_pause_deadline is not None

    @property
    def state(self) -> str:
        if self.current_command is PlaybackCommand.PAUSE:
            return 'STABLE_PAUSE'
        return 'PENDING_PAUSE' if self.pause_pending else 'STABLE_PLAY'

    def observe(self, state: GazeState, now: float) -> PlaybackCommand:
        """
        Feed one frame's gaze state.

        Args:
            state: Instantaneous classifier output for this frame
            now: Monotonic time of the observation in seconds

        Returns:
            The playback command in effect after this observation; ``changed``
            tells whether it was just emitted
        """
        self.changed = False

        if state is GazeState.LOOKING:
            if self.pending_pause_deadline is not None:
                self.pending_pause_deadline = None
                self.pauses_cancelled += 1
                logger.debug("Pending pause cancelled at %.3f", now)
            if self.current_command is not PlaybackCommand.PLAY:
                self._emit(PlaybackCommand.PLAY)
            return self.current_command

        if self.pending_pause_deadline is None and self.current_command is PlaybackCommand.PLAY:
            self.pending_pause_deadline = now + self.debounce_window
            logger.debug("Pause scheduled for %.3f", self.pending_pause_deadline)

        if self.pending_pause_deadline is not None and now >= self.pending_pause_deadline:
            self.pending_pause_deadline = None
            self.pauses_emitted += 1
            self._emit(PlaybackCommand.PAUSE)

        return self.current_command

    def _emit(self, command: PlaybackCommand):
        self.current_command = command
        self.changed = True
        logger.info("Playback command: %s", command.value)

    def reset(self, command: Optional[PlaybackCommand] = None):
        """Drop any pending pause and return to ``command`` (or the initial command)."""
        self.current_command = command or self.initial_command
        self.pending_pause_deadline = None
        self.changed = False
        logger.info("🔄 Hysteresis gate reset (%s)", self.current_command.value)

    def get_status(self) -> Dict[str, Any]:
        return {
            'state': self.state,
            'command': self.current_command.value,
            'pending_pause_deadline': self.pending_pause_deadline,
            'debounce_window': self.debounce_window,
            'pauses_emitted': self.pauses_emitted,
            'pauses_cancelled': self.pauses_cancelled,
        }
