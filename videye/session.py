"""
Session Lifecycle for VidEye Gaze-Gated Playback

A Session binds one camera stream, one landmark detector and one running
frame loop to a capture surface. ``start_session`` either returns a running
session or raises with everything it acquired already released;
``Session.stop`` tears the session down in a fixed order: loop first, then
camera, then detector.
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional

from .behavior_manager import GazeClassifier, HysteresisGate, PlaybackCommand
from .capture import CaptureSurface, acquire_stream
from .config import TrackingConfig
from .detection_layers import create_detector
from .errors import CaptureUnavailable
from .frame_loop import FrameLoop

logger = logging.getLogger(__name__)


class Session:
    """One running tracking lifecycle on a capture surface."""

    def __init__(self, surface: CaptureSurface, stream, detector, loop: FrameLoop):
        self.surface = surface
        self.stream = stream
        self.detector = detector
        self.loop = loop
        self._stopped = False
        self._lock = threading.Lock()

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def running(self) -> bool:
        return not self._stopped and self.loop.running

    def stop(self) -> None:
        """
        Tear the session down (idempotent, safe from error paths).

        After this returns no iteration is running and the session holds no
        reference to the camera stream or the detector.
        """
        with self._lock:
            if self._stopped:
                return
            self._stopped = True

        logger.info("🧹 Stopping tracking session...")
        self.loop.stop()

        stream, self.stream = self.stream, None
        detector, self.detector = self.detector, None

        if self.surface.stream is stream:
            self.surface.detach()
        if stream is not None:
            _release_quietly(stream, "camera stream")
        if detector is not None:
            _release_quietly(detector, "landmark detector")

        if self.surface.active_session is self:
            self.surface.active_session = None

        logger.info("✅ Session stopped (%d frames processed)", self.loop.iterations)

    def get_status(self) -> Dict[str, Any]:
        result = self.loop.last_result
        return {
            'running': self.running,
            'frames': self.loop.iterations,
            'detection_failures': self.loop.detection_failures,
            'gaze': result.gaze.value if result else None,
            'alignment_distance': result.distance if result else None,
            'processing_time': result.processing_time if result else None,
            'gate': self.loop.gate.get_status(),
            'error': repr(self.loop.error) if self.loop.error else None,
            'stop_reason': self.loop.stop_reason,
        }

    def __enter__(self) -> 'Session':
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()


def _release_quietly(resource, name: str):
    try:
        resource.release()
    except Exception:
        logger.exception("⚠ Failed to release %s", name)


def start_session(config: TrackingConfig, surface: CaptureSurface, controller,
                  overlay=None,
                  detector_factory: Callable[[TrackingConfig], Any] = create_detector,
                  stream_factory: Callable = acquire_stream,
                  clock: Optional[Callable[[], float]] = None) -> Session:
    """
    Acquire the detector and camera, bind them to the surface and start tracking.

    Args:
        config: Capture constraints, gaze threshold, debounce window, model
        surface: Capture surface the stream is bound to
        controller: Playback controller driven by the gate
        overlay: Optional overlay renderer
        detector_factory: Builds the landmark source from the config
        stream_factory: Opens a capture stream from the constraints
        clock: Monotonic clock override for the frame loop

    Returns:
        Running Session

    Raises:
        DetectorInitFailed: If the landmark model cannot be loaded
        CaptureUnavailable: If the camera cannot be opened or never reports frames
    """
    if surface.active_session is not None:
        logger.info("Stopping previous session on this surface")
        surface.active_session.stop()

    # Model loading is the slow step; done before the camera light comes on
    detector = detector_factory(config)

    try:
        stream = stream_factory(config.constraints)
    except Exception:
        _release_quietly(detector, "landmark detector")
        raise

    surface.bind(stream)
    if not surface.wait_until_ready(config.ready_timeout):
        surface.detach()
        _release_quietly(stream, "camera stream")
        _release_quietly(detector, "landmark detector")
        raise CaptureUnavailable(
            f"Capture did not report frame dimensions within {config.ready_timeout:.1f}s"
        )

    initial_command = PlaybackCommand.PLAY if controller.is_playing else PlaybackCommand.PAUSE
    loop_kwargs = {'clock': clock} if clock is not None else {}
    loop = FrameLoop(
        detector,
        GazeClassifier.from_config(config),
        # Media that is not playing stays paused until the first LOOKING frame
        HysteresisGate(config.debounce_window, initial_command=initial_command),
        controller,
        overlay=overlay,
        target_fps=config.constraints.frame_rate,
        max_missed_frames=config.max_missed_frames,
        **loop_kwargs,
    )

    session = Session(surface, stream, detector, loop)
    surface.active_session = session
    loop.start(surface)
    logger.info("✓ Tracking session started")
    return session
