"""
Error taxonomy for the VidEye tracking loop.

Session-start failures (CaptureUnavailable, DetectorInitFailed) reach the
caller of ``start_session``. DetectionError and PlaybackRejected are raised by
the collaborators and handled inside the frame loop.
"""


class VidEyeError(RuntimeError):
    """Base class for all VidEye errors."""


class CaptureUnavailable(VidEyeError):
    """Camera denied, missing, or never reported frame dimensions."""


class DetectorInitFailed(VidEyeError):
    """Face landmarker model could not be fetched or loaded."""


class DetectionError(VidEyeError):
    """Landmark detection failed for a single frame."""


class PlaybackRejected(VidEyeError):
    """The controlled media refused a play or pause request."""
