"""
Detection Layers Module for VidEye Gaze-Gated Playback

This module contains the landmark data model and the landmark source:
- LandmarkPoint / LandmarkSet: immutable per-frame landmark containers
- FaceLandmarkDetector: MediaPipe Face Landmarker in VIDEO running mode
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence, Tuple

import cv2
import mediapipe as mp
import numpy as np
from mediapipe.tasks import python as mp_python
from mediapipe.tasks.python import vision

from .config import (
    CANONICAL_LANDMARK_COUNT, MAX_NUM_FACES, MIN_DETECTION_CONFIDENCE,
    MIN_TRACKING_CONFIDENCE, MODEL_ASSET_PATH, MODEL_ASSET_URL,
)
from .errors import DetectionError, DetectorInitFailed
from .utils import ensure_model_asset

logger = logging.getLogger(__name__)

# =============================================================================
# LANDMARK DATA MODEL
# =============================================================================

@dataclass(frozen=True)
class LandmarkPoint:
    """Single facial landmark in normalized image coordinates (z is depth)."""
    x: float
    y: float
    z: float = 0.0


class LandmarkSet:
    """
    Landmarks for one frame: either empty (no face) or one full face mesh.

    Index-addressed with the canonical MediaPipe layout, e.g. 468-471 left
    iris, 473-476 right iris, 4 nose tip, 234/454 face edges.
    """

    __slots__ = ('_points',)

    def __init__(self, points: Iterable[LandmarkPoint] = ()):
        points = tuple(points)
        if points and len(points) < CANONICAL_LANDMARK_COUNT:
            raise ValueError(
                f"Expected an empty set or at least {CANONICAL_LANDMARK_COUNT} "
                f"landmarks, got {len(points)}"
            )
        self._points: Tuple[LandmarkPoint, ...] = points

    @classmethod
    def empty(cls) -> 'LandmarkSet':
        return cls()

    def __len__(self) -> int:
        return len(self._points)

    def __bool__(self) -> bool:
        return bool(self._points)

    def __iter__(self) -> Iterator[LandmarkPoint]:
        return iter(self._points)

    def __getitem__(self, index):
        return self._points[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, LandmarkSet):
            return NotImplemented
        return self._points == other._points

    def __hash__(self) -> int:
        return hash(self._points)

    def __repr__(self) -> str:
        return f"LandmarkSet({len(self._points)} points)"

    def select(self, indices: Sequence[int]) -> Tuple[LandmarkPoint, ...]:
        """Return the points at the given indices, in order."""
        return tuple(self._points[i] for i in indices)

    def as_array(self) -> np.ndarray:
        """Landmarks as an (N, 3) float array."""
        return np.array([(p.x, p.y, p.z) for p in self._points],
                        dtype=np.float64).reshape(-1, 3)


def landmarks_from_result(result) -> LandmarkSet:
    """
    Convert a FaceLandmarker result into a LandmarkSet for the first face.

    Args:
        result: FaceLandmarkerResult (anything with a ``face_landmarks`` list)

    Returns:
        LandmarkSet, empty when no face was detected
    """
    faces = getattr(result, 'face_landmarks', None)
    if not faces:
        return LandmarkSet.empty()

    return LandmarkSet(LandmarkPoint(float(lm.x), float(lm.y), float(lm.z or 0.0))
                       for lm in faces[0])

# =============================================================================
# FACE LANDMARK DETECTOR (MEDIAPIPE TASKS, VIDEO MODE)
# =============================================================================

class FaceLandmarkDetector:
    """
    MediaPipe Face Landmarker wrapped as a per-frame landmark source.

    Runs in VIDEO mode, so every call to ``detect`` must carry a timestamp
    greater than the previous call's.
    """

    def __init__(self, landmarker, model_path: str):
        self._landmarker = landmarker
        self.model_path = model_path

    @classmethod
    def initialize(cls, model_ref: str = MODEL_ASSET_PATH,
                   model_url: str = MODEL_ASSET_URL,
                   min_detection_confidence: float = MIN_DETECTION_CONFIDENCE,
                   min_tracking_confidence: float = MIN_TRACKING_CONFIDENCE) -> 'FaceLandmarkDetector':
        """
        Load the face landmarker model.

        Args:
            model_ref: Local path of the ``.task`` bundle
            model_url: Download location used when ``model_ref`` is missing
            min_detection_confidence: Face detection / presence threshold
            min_tracking_confidence: Landmark tracking threshold

        Returns:
            Ready-to-use detector

        Raises:
            DetectorInitFailed: If the model cannot be downloaded or loaded
        """
        try:
            model_path = ensure_model_asset(model_ref, model_url)
        except (OSError, ValueError) as e:
            raise DetectorInitFailed(f"Could not fetch face landmarker model: {e}") from e

        try:
            options = vision.FaceLandmarkerOptions(
                base_options=mp_python.BaseOptions(model_asset_path=model_path),
                running_mode=vision.RunningMode.VIDEO,
                num_faces=MAX_NUM_FACES,
                min_face_detection_confidence=min_detection_confidence,
                min_face_presence_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
                output_face_blendshapes=False,
            )
            landmarker = vision.FaceLandmarker.create_from_options(options)
        except (RuntimeError, ValueError, OSError) as e:
            raise DetectorInitFailed(f"Failed to initialize face landmarker: {e}") from e

        logger.info("✓ Face landmarker initialized: %s", model_path)
        return cls(landmarker, model_path)

    @property
    def released(self) -> bool:
        return self._landmarker is None

    def detect(self, frame: np.ndarray, timestamp_ms: int) -> LandmarkSet:
        """
        Detect facial landmarks in a BGR frame.

        Raises:
            DetectionError: If the detector is released or MediaPipe fails
        """
        if self._landmarker is None:
            raise DetectionError("Detector has been released")

        try:
            rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
            result = self._landmarker.detect_for_video(image, int(timestamp_ms))
            return landmarks_from_result(result)
        except Exception as e:
            raise DetectionError(f"Landmark detection failed at {timestamp_ms}ms: {e}") from e

    def release(self) -> None:
        """Close the underlying landmarker (idempotent)."""
        landmarker, self._landmarker = self._landmarker, None
        if landmarker is not None:
            landmarker.close()
            logger.info("✓ Face landmarker released")


def create_detector(config) -> FaceLandmarkDetector:
    """Detector factory used by ``start_session``."""
    return FaceLandmarkDetector.initialize(
        model_ref=config.model_path,
        model_url=config.model_url,
        min_detection_confidence=config.min_detection_confidence,
        min_tracking_confidence=config.min_tracking_confidence,
    )
