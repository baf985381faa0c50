"""
Configuration Module for VidEye Gaze-Gated Playback

This module contains all configuration constants, thresholds, and parameters
used throughout the VidEye tracking loop, plus the dataclasses the host
application hands to ``start_session``.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

# =============================================================================
# CAMERA PARAMETERS
# =============================================================================

# Camera selection and settings
CAMERA_INDEX = 0                      # Primary camera index (try 1 if 0 fails)
CAMERA_BACKUP_INDEX = 1               # Backup camera index
CAMERA_RESOLUTION = (640, 480)        # Requested camera resolution (width, height)
CAMERA_FPS = 30                       # Requested capture frame rate
MIRROR_FRAMES = True                  # Flip webcam frames horizontally (selfie view)

# Time allowed for the capture surface to report frame dimensions
CAPTURE_READY_TIMEOUT_SEC = 5.0
CAPTURE_READY_POLL_SEC = 0.05

# Consecutive empty reads after the first frame before the stream counts as lost
MAX_MISSED_FRAMES = 15

# =============================================================================
# FACE LANDMARKER MODEL
# =============================================================================

# MediaPipe Face Landmarker task bundle (downloaded on first use if missing)
MODEL_ASSET_URL = (
    'https://storage.googleapis.com/mediapipe-models/'
    'face_landmarker/face_landmarker/float16/1/face_landmarker.task'
)
MODEL_ASSET_PATH = 'face_landmarker.task'
MODEL_CACHE_DIR = '~/.cache/videye'

# This system tracks at most one face
MAX_NUM_FACES = 1
MIN_DETECTION_CONFIDENCE = 0.5
MIN_TRACKING_CONFIDENCE = 0.5

# MediaPipe mesh with refined iris: 468 face points + 10 iris points
CANONICAL_LANDMARK_COUNT = 478

# =============================================================================
# GAZE DETECTION PARAMETERS
# =============================================================================

# Iris landmark clusters (MediaPipe indices 468-477)
LEFT_IRIS_IDS = (468, 469, 470, 471)  # 4 points
RIGHT_IRIS_IDS = (473, 474, 475, 476) # 4 points

# Heuristic: pupils misaligned on GAZE_AXIS by at least GAZE_THRESHOLD
# (normalized coordinates) count as "looking at screen"
GAZE_THRESHOLD = 0.02
GAZE_AXIS = 'y'                       # 'y' = vertical alignment, 'x' = horizontal
THRESHOLD_TOLERANCE = 1e-9              # Gap within this of the threshold counts as equal

# =============================================================================
# PLAYBACK TIMING PARAMETERS
# =============================================================================

# Continuous "not looking" evidence required before pausing playback
DEBOUNCE_WINDOW_SEC = 0.3

# Key sent to the focused media player window by the key-press controller
PLAYBACK_TOGGLE_KEY = 'k'             # YouTube play/pause shortcut

# =============================================================================
# DISPLAY AND UI PARAMETERS
# =============================================================================

# Landmarks drawn by the overlay: iris centres, face edges, nose tip
HIGHLIGHT_LANDMARK_IDS = (468, 473, 234, 454, 4)
HIGHLIGHT_RADIUS = 6

# Visualization colors (BGR format for OpenCV)
COLORS = {
    'landmarks': (0, 0, 255),          # Red circles on highlighted points
    'status_text': (255, 255, 255),    # White for status text
    'warning': (0, 165, 255),          # Orange for pending pause
    'error': (0, 0, 255),              # Red for not looking / paused
    'success': (0, 255, 0)             # Green for looking / playing
}

# Text display parameters
TEXT_FONT = 0                          # cv2.FONT_HERSHEY_SIMPLEX
TEXT_SCALE = 0.7                       # Base text scale
TEXT_THICKNESS = 2                     # Default text thickness

TRACKING_WINDOW_NAME = 'VidEye Tracking'
PLAYER_WINDOW_NAME = 'VidEye Player'

# =============================================================================
# DEBUGGING AND LOGGING
# =============================================================================

ENABLE_DEBUG_PRINTS = False            # DEBUG-level logging (timer start/cancel)
LOG_FORMAT = '%(asctime)s %(levelname)-7s %(name)s: %(message)s'


# =============================================================================
# CONFIGURATION OBJECTS
# =============================================================================

@dataclass
class CaptureConstraints:
    """
    Camera request handed to the capture source.

    Attributes:
        camera_index: Primary device index
        backup_index: Device tried when the primary cannot be opened (None = no backup)
        resolution: Requested (width, height); (0, 0) keeps the device default
        frame_rate: Requested frames per second, also used to pace the frame loop
        source: Optional video file path used instead of a live camera
        mirror: Flip frames horizontally before detection
    """
    camera_index: int = CAMERA_INDEX
    backup_index: Optional[int] = CAMERA_BACKUP_INDEX
    resolution: Tuple[int, int] = CAMERA_RESOLUTION
    frame_rate: float = CAMERA_FPS
    source: Optional[str] = None
    mirror: bool = MIRROR_FRAMES

    def __post_init__(self):
        if len(self.resolution) != 2 or min(self.resolution) < 0:
            raise ValueError(f"Invalid resolution: {self.resolution}")
        if self.frame_rate <= 0:
            raise ValueError(f"Frame rate must be positive, got {self.frame_rate}")


@dataclass
class TrackingConfig:
    """Everything the host configures for one tracking session."""
    constraints: CaptureConstraints = field(default_factory=CaptureConstraints)
    gaze_threshold: float = GAZE_THRESHOLD
    debounce_window: float = DEBOUNCE_WINDOW_SEC
    gaze_axis: str = GAZE_AXIS
    left_iris_ids: Tuple[int, ...] = LEFT_IRIS_IDS
    right_iris_ids: Tuple[int, ...] = RIGHT_IRIS_IDS
    model_path: str = MODEL_ASSET_PATH
    model_url: str = MODEL_ASSET_URL
    min_detection_confidence: float = MIN_DETECTION_CONFIDENCE
    min_tracking_confidence: float = MIN_TRACKING_CONFIDENCE
    ready_timeout: float = CAPTURE_READY_TIMEOUT_SEC
    max_missed_frames: int = MAX_MISSED_FRAMES

    def __post_init__(self):
        if self.gaze_threshold < 0:
            raise ValueError(f"Gaze threshold must be >= 0, got {self.gaze_threshold}")
        if self.debounce_window < 0:
            raise ValueError(f"Debounce window must be >= 0, got {self.debounce_window}")
        if self.gaze_axis not in ('x', 'y'):
            raise ValueError(f"Gaze axis must be 'x' or 'y', got {self.gaze_axis!r}")
        if not self.left_iris_ids or not self.right_iris_ids:
            raise ValueError("Iris index sets must not be empty")
        if self.ready_timeout <= 0:
            raise ValueError(f"Ready timeout must be positive, got {self.ready_timeout}")
        if self.max_missed_frames < 1:
            raise ValueError(f"Max missed frames must be >= 1, got {self.max_missed_frames}")
