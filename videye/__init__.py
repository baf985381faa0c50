"""
VidEye: pause media playback when the viewer looks away from the screen.
"""

from .behavior_manager import GazeClassifier, GazeState, HysteresisGate, PlaybackCommand, classify
from .capture import CameraStream, CaptureSurface, acquire_stream
from .config import CaptureConstraints, TrackingConfig
from .detection_layers import FaceLandmarkDetector, LandmarkPoint, LandmarkSet
from .errors import (
    CaptureUnavailable, DetectionError, DetectorInitFailed, PlaybackRejected, VidEyeError,
)
from .frame_loop import FrameLoop, FrameResult
from .overlay import OverlayRenderer
from .playback import KeyPressPlaybackController, PlaybackController, VideoFilePlayer
from .session import Session, start_session

__version__ = '1.0.0'
