"""Fakes shared by the test modules."""

import numpy as np

from videye.config import CANONICAL_LANDMARK_COUNT, LEFT_IRIS_IDS, RIGHT_IRIS_IDS
from videye.detection_layers import LandmarkPoint, LandmarkSet
from videye.errors import PlaybackRejected


def make_landmarks(left_y=0.40, right_y=0.40, left_x=0.40, right_x=0.60,
                   count=CANONICAL_LANDMARK_COUNT):
    """Full face mesh with every iris point of each eye at the given position."""
    points = [LandmarkPoint(0.5, 0.5, 0.0)] * count
    for idx in LEFT_IRIS_IDS:
        points[idx] = LandmarkPoint(left_x, left_y, 0.0)
    for idx in RIGHT_IRIS_IDS:
        points[idx] = LandmarkPoint(right_x, right_y, 0.0)
    return LandmarkSet(points)


LOOKING_LANDMARKS = make_landmarks(0.40, 0.35)
NOT_LOOKING_LANDMARKS = make_landmarks(0.40, 0.39)


class FakeClock:
    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeDetector:
    """Returns queued results; an exception instance in the queue is raised."""

    def __init__(self, results=(), default=None):
        self.results = list(results)
        self.default = default if default is not None else LandmarkSet.empty()
        self.timestamps = []
        self.release_count = 0

    def detect(self, frame, timestamp_ms):
        self.timestamps.append(timestamp_ms)
        result = self.results.pop(0) if self.results else self.default
        if isinstance(result, Exception):
            raise result
        return result

    def release(self):
        self.release_count += 1


class FakeStream:
    """Delivers ``frame`` after ``ready_after`` empty reads, for ``frame_budget`` reads."""

    def __init__(self, frame=None, ready_after=0, frame_budget=None):
        self.frame = frame if frame is not None else np.zeros((48, 64, 3), dtype=np.uint8)
        self.ready_after = ready_after
        self.frame_budget = frame_budget
        self.reads = 0
        self.release_count = 0

    def current_frame(self):
        self.reads += 1
        if self.release_count or self.reads <= self.ready_after:
            return None
        if self.frame_budget is not None:
            if self.frame_budget <= 0:
                return None
            self.frame_budget -= 1
        return self.frame

    def release(self):
        self.release_count += 1


class FakeSurface:
    """Minimal capture surface for driving FrameLoop.step directly."""

    def __init__(self, frame=None, dimensions=(64, 48), frame_budget=None):
        self.frame = frame if frame is not None else np.zeros((48, 64, 3), dtype=np.uint8)
        self.dimensions = dimensions
        self.frame_budget = frame_budget
        self.reads = 0

    def read_frame(self):
        self.reads += 1
        if self.dimensions is None:
            return None
        if self.frame_budget is not None:
            if self.frame_budget <= 0:
                return None
            self.frame_budget -= 1
        return self.frame


class FakeController:
    def __init__(self, reject_play=False, playing=False):
        self.calls = []
        self.reject_play = reject_play
        self.is_playing = playing

    def play(self):
        self.calls.append('play')
        if self.reject_play:
            raise PlaybackRejected("autoplay blocked")
        self.is_playing = True

    def pause(self):
        self.calls.append('pause')
        self.is_playing = False


class RecordingOverlay:
    def __init__(self):
        self.calls = []

    def render(self, landmarks, width, height, frame=None, result=None):
        self.calls.append((landmarks, width, height, result))
