"""
Frame Loop Scheduler for VidEye Gaze-Gated Playback

Drives the pipeline once per frame tick:
capture surface -> landmark detector -> gaze classifier -> hysteresis gate
-> playback controller, then hands the frame to the overlay renderer.

Iterations run strictly one after another on a single thread of control, so
the gate sees gaze states in capture order.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .behavior_manager import GazeClassifier, GazeState, HysteresisGate, PlaybackCommand
from .config import CAMERA_FPS, MAX_MISSED_FRAMES
from .detection_layers import LandmarkSet
from .errors import DetectionError, PlaybackRejected
from .utils import TimestampClock

logger = logging.getLogger(__name__)


@dataclass
class FrameResult:
    """Everything one iteration produced."""
    timestamp_ms: int
    landmarks: LandmarkSet
    gaze: GazeState
    distance: Optional[float]
    command: PlaybackCommand
    changed: bool
    pause_pending: bool
    width: int
    height: int
    detection_failed: bool
    processing_time: float


class FrameLoop:
    """
    Cooperative tracking loop with an explicit stop flag.

    The stop flag is checked at the top of every iteration, so once ``stop``
    has been called no further iteration body runs. When stopped from another
    thread, ``stop`` also waits for an in-flight iteration to finish.

    The gate is only touched from the loop's thread; other threads ask for a
    reset with ``request_reset`` and the next iteration applies it. Once the
    surface has delivered a frame, ``max_missed_frames`` consecutive empty
    reads count as a lost stream: playback is paused and the loop ends.
    """

    def __init__(self, detector, classifier: GazeClassifier, gate: HysteresisGate,
                 controller, overlay=None, target_fps: float = CAMERA_FPS,
                 clock: Callable[[], float] = time.monotonic,
                 timestamps: Optional[TimestampClock] = None,
                 max_missed_frames: int = MAX_MISSED_FRAMES):
        """
        Initialize the frame loop.

        Args:
            detector: Landmark source with ``detect(frame, timestamp_ms)``
            classifier: Gaze classifier applied to each LandmarkSet
            gate: Hysteresis gate owned by this loop
            controller: Playback controller with ``play()`` / ``pause()``
            overlay: Optional renderer with ``render(landmarks, width, height, frame, result)``
            target_fps: Frame tick rate used to pace iterations
            clock: Monotonic clock (seconds) for the gate and pacing
            timestamps: Detector timestamp source (strictly increasing ms)
            max_missed_frames: Consecutive empty reads that end the loop
        """
        if target_fps <= 0:
            raise ValueError(f"Target FPS must be positive, got {target_fps}")
        if max_missed_frames < 1:
            raise ValueError(f"Max missed frames must be >= 1, got {max_missed_frames}")

        self.detector = detector
        self.classifier = classifier
        self.gate = gate
        self.controller = controller
        self.overlay = overlay
        self.frame_interval = 1.0 / target_fps
        self.clock = clock
        self.timestamps = timestamps or TimestampClock()
        self.max_missed_frames = max_missed_frames

        # What the controller is currently doing, so the first command only
        # reaches it when it differs
        self.applied_command = (PlaybackCommand.PLAY if controller.is_playing
                                else PlaybackCommand.PAUSE)
        self.last_result: Optional[FrameResult] = None
        self.iterations = 0
        self.detection_failures = 0
        self.error: Optional[BaseException] = None
        self.stop_reason: Optional[str] = None
        self.missed_frames = 0

        self._stop_event = threading.Event()
        self._reset_requested = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self.stopped

    @property
    def reset_pending(self) -> bool:
        return self._reset_requested.is_set()

    # =========================================================================
    # START / STOP
    # =========================================================================

    def start(self, surface) -> None:
        """Run the loop on a dedicated worker thread."""
        if self._thread is not None:
            raise RuntimeError("Frame loop has already been started")
        self._thread = threading.Thread(target=self.run, args=(surface,),
                                        name='videye-frame-loop', daemon=True)
        self._thread.start()
        logger.info("🚀 Frame loop started (%.1f FPS target)", 1.0 / self.frame_interval)

    def run(self, surface) -> None:
        """Run iterations in the calling thread until stopped."""
        try:
            while not self._stop_event.is_set():
                tick_start = self.clock()
                self.step(surface)
                self._wait_for_next_frame(tick_start)
        except Exception as e:
            self.error = e
            self._stop_event.set()
            logger.exception("❌ Error in frame loop: %s", e)
        finally:
            logger.info("Frame loop finished after %d iterations", self.iterations)

    def stop(self) -> None:
        """Cancel the loop; idempotent and safe to call from inside an iteration."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def request_reset(self) -> None:
        """Ask the loop thread to reset the gate before its next frame."""
        self._reset_requested.set()

    def _wait_for_next_frame(self, tick_start: float):
        remaining = self.frame_interval - (self.clock() - tick_start)
        if remaining > 0:
            self._stop_event.wait(remaining)

    # =========================================================================
    # ONE ITERATION
    # =========================================================================

    def step(self, surface) -> Optional[FrameResult]:
        """
        Process a single frame.

        Returns:
            FrameResult, or None when stopped or the surface has no frame yet
        """
        if self._stop_event.is_set():
            return None

        if self._reset_requested.is_set():
            self._reset_requested.clear()
            # Keeps the applied command; only a LOOKING frame may resume playback
            self.gate.reset(self.applied_command)

        frame = surface.read_frame()
        if frame is None or surface.dimensions is None:
            if frame is None and self.iterations:
                self._frame_missed()
            return None
        self.missed_frames = 0

        start_time = time.perf_counter()
        width, height = surface.dimensions
        timestamp_ms = self.timestamps.next_ms()

        landmarks, detection_failed = self._detect(frame, timestamp_ms)

        gaze = self.classifier.classify(landmarks)
        command = self.gate.observe(gaze, self.clock())
        self._apply(command)

        result = FrameResult(
            timestamp_ms=timestamp_ms,
            landmarks=landmarks,
            gaze=gaze,
            distance=self.classifier.alignment_distance(landmarks),
            command=command,
            changed=self.gate.changed,
            pause_pending=self.gate.pause_pending,
            width=width,
            height=height,
            detection_failed=detection_failed,
            processing_time=time.perf_counter() - start_time,
        )

        if self.overlay is not None:
            self.overlay.render(landmarks, width, height, frame, result)

        self.iterations += 1
        self.last_result = result
        return result

    def _frame_missed(self):
        self.missed_frames += 1
        if self.missed_frames < self.max_missed_frames:
            return

        self.stop_reason = f"no frame for {self.missed_frames} consecutive reads"
        logger.warning("❌ Capture stream ended (%s) - pausing playback", self.stop_reason)
        self.gate.reset(PlaybackCommand.PAUSE)
        self._apply(PlaybackCommand.PAUSE)
        self._stop_event.set()

    def _detect(self, frame: np.ndarray, timestamp_ms: int):
        try:
            return self.detector.detect(frame, timestamp_ms), False
        except DetectionError as e:
            self.detection_failures += 1
            logger.warning("⚠ Detection error (treated as no face): %s", e)
            return LandmarkSet.empty(), True

    def _apply(self, command: PlaybackCommand):
        """Send the command to the controller only when it changed."""
        if command is self.applied_command:
            return

        # Marked applied even when rejected; the next change retries
        self.applied_command = command
        try:
            if command is PlaybackCommand.PLAY:
                self.controller.play()
            else:
                self.controller.pause()
        except PlaybackRejected as e:
            logger.warning("⚠ Playback rejected (%s): %s", command.value, e)
