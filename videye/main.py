"""
Main Control Center for VidEye Gaze-Gated Playback

Starts a tracking session on the webcam and pauses the controlled media
whenever the viewer stops looking at the screen.

Usage:
    videye --media lecture.mp4
    videye --keypress              # drive the focused browser tab with 'k'

Controls (tracking window focused):
    'q' - Quit application
    'r' - Reset the hysteresis gate
    's' - Print status summary
"""

import argparse
import logging
import sys
import time
from typing import Optional

import cv2

from .capture import CaptureSurface
from .config import (
    CAMERA_BACKUP_INDEX, CAMERA_FPS, CAMERA_INDEX, CAMERA_RESOLUTION,
    DEBOUNCE_WINDOW_SEC, ENABLE_DEBUG_PRINTS, GAZE_AXIS, GAZE_THRESHOLD,
    MODEL_ASSET_PATH, PLAYBACK_TOGGLE_KEY, PLAYER_WINDOW_NAME,
    TRACKING_WINDOW_NAME, CaptureConstraints, TrackingConfig,
)
from .errors import CaptureUnavailable, DetectorInitFailed
from .overlay import OverlayRenderer
from .playback import KeyPressPlaybackController, PlaybackController, VideoFilePlayer
from .session import Session, start_session
from .utils import setup_logging

logger = logging.getLogger(__name__)


# =============================================================================
# MAIN APPLICATION CLASS
# =============================================================================

class VidEyeApp:
    """
    Host application: owns the display windows and the controlled media,
    and starts/stops the tracking session.
    """

    def __init__(self, config: TrackingConfig, controller: PlaybackController,
                 show_display: bool = True):
        self.config = config
        self.controller = controller
        self.show_display = show_display
        self.surface = CaptureSurface(mirror=config.constraints.mirror)
        self.overlay = OverlayRenderer() if show_display else None
        self.session: Optional[Session] = None

    def start(self) -> Session:
        self.session = start_session(self.config, self.surface, self.controller,
                                     overlay=self.overlay)
        return self.session

    def run(self):
        """Display loop on the main thread; tracking runs on the session's worker."""
        try:
            session = self.start()
            logger.info("Controls: 'q'=quit, 'r'=reset gate, 's'=status")

            while session.running:
                if self.show_display:
                    self._show_frames()
                    key = cv2.waitKey(15) & 0xFF
                else:
                    # No HighGUI window to deliver keys; Ctrl+C quits
                    time.sleep(0.1)
                    key = 0xFF
                if not self._handle_user_input(key):
                    break

            if session.loop.stop_reason:
                logger.info("✅ Tracking ended: %s", session.loop.stop_reason)
        except KeyboardInterrupt:
            logger.info("⏹ Interrupted by user")
        finally:
            self._cleanup()

    def _show_frames(self):
        tracked = self.overlay.latest()
        if tracked is not None:
            cv2.imshow(TRACKING_WINDOW_NAME, tracked)

        if isinstance(self.controller, VideoFilePlayer):
            frame = self.controller.next_frame()
            if frame is not None:
                cv2.imshow(PLAYER_WINDOW_NAME, frame)

    def _handle_user_input(self, key: int) -> bool:
        """
        Handle user keyboard input.

        Returns:
            True to continue running, False to quit
        """
        if key == ord('q'):
            logger.info("👋 Quit requested by user")
            return False

        if key == ord('r'):
            self.session.loop.request_reset()

        elif key == ord('s'):
            self._print_status_summary()

        return True

    def _print_status_summary(self):
        status = self.session.get_status()
        gate = status['gate']
        distance = status['alignment_distance']

        print("\n📊 STATUS SUMMARY:")
        print("=" * 40)
        print(f"Frames: {status['frames']}")
        print(f"Detection failures: {status['detection_failures']}")
        if status['processing_time'] is not None:
            print(f"Processing Time: {status['processing_time'] * 1000:.1f}ms")
        print(f"Gaze: {status['gaze']}")
        print(f"Alignment distance: {distance:.4f}" if distance is not None
              else "Alignment distance: no face")
        print(f"Gate: {gate['state']} ({gate['command']})")
        print(f"Pauses emitted: {gate['pauses_emitted']}, cancelled: {gate['pauses_cancelled']}")
        print(f"Media playing: {self.controller.is_playing}")
        print("=" * 40)

    def _cleanup(self):
        logger.info("🧹 Cleaning up...")
        if self.session is not None:
            self.session.stop()
        if isinstance(self.controller, VideoFilePlayer):
            self.controller.release()
        if self.show_display:
            cv2.destroyAllWindows()
        logger.info("✅ Cleanup complete")


# =============================================================================
# COMMAND LINE
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='videye',
        description="Pause media playback when you look away from the screen.")

    camera = parser.add_argument_group('capture')
    camera.add_argument('--camera', type=int, default=CAMERA_INDEX,
                        help=f"Camera index (default: {CAMERA_INDEX})")
    camera.add_argument('--backup-camera', type=int, default=CAMERA_BACKUP_INDEX,
                        help=f"Camera tried if the primary fails (default: {CAMERA_BACKUP_INDEX})")
    camera.add_argument('--source', default=None,
                        help="Video file to track instead of a live camera")
    camera.add_argument('--width', type=int, default=CAMERA_RESOLUTION[0])
    camera.add_argument('--height', type=int, default=CAMERA_RESOLUTION[1])
    camera.add_argument('--fps', type=float, default=CAMERA_FPS)
    camera.add_argument('--no-mirror', action='store_true',
                        help="Do not flip webcam frames horizontally")

    gaze = parser.add_argument_group('gaze')
    gaze.add_argument('--threshold', type=float, default=GAZE_THRESHOLD,
                      help=f"Iris alignment threshold (default: {GAZE_THRESHOLD})")
    gaze.add_argument('--axis', choices=('x', 'y'), default=GAZE_AXIS,
                      help=f"Axis the iris clusters are compared on (default: {GAZE_AXIS})")
    gaze.add_argument('--debounce', type=float, default=DEBOUNCE_WINDOW_SEC,
                      help=f"Seconds of looking away before pausing (default: {DEBOUNCE_WINDOW_SEC})")
    gaze.add_argument('--model', default=MODEL_ASSET_PATH,
                      help=f"Path to face_landmarker.task (default: {MODEL_ASSET_PATH})")

    media = parser.add_argument_group('playback')
    target = media.add_mutually_exclusive_group(required=True)
    target.add_argument('--media', help="Local video file to play in a window")
    target.add_argument('--keypress', action='store_true',
                        help="Send a toggle key to the focused player instead")
    media.add_argument('--toggle-key', default=PLAYBACK_TOGGLE_KEY,
                       help=f"Key sent in --keypress mode (default: {PLAYBACK_TOGGLE_KEY!r})")
    media.add_argument('--loop-media', action='store_true',
                       help="Restart the media file when it ends")

    parser.add_argument('--no-display', action='store_true',
                        help="Do not open the tracking window")
    parser.add_argument('--debug', action='store_true', default=ENABLE_DEBUG_PRINTS,
                        help="Enable debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> TrackingConfig:
    constraints = CaptureConstraints(
        camera_index=args.camera,
        backup_index=args.backup_camera,
        resolution=(args.width, args.height),
        frame_rate=args.fps,
        source=args.source,
        mirror=not args.no_mirror and args.source is None,
    )
    return TrackingConfig(
        constraints=constraints,
        gaze_threshold=args.threshold,
        debounce_window=args.debounce,
        gaze_axis=args.axis,
        model_path=args.model,
    )


def main(argv=None) -> int:
    """
    Main entry point for VidEye.
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)

    try:
        config = config_from_args(args)
    except ValueError as e:
        logger.error("❌ Invalid configuration: %s", e)
        return 2

    if args.media:
        controller = VideoFilePlayer(args.media, loop=args.loop_media)
    else:
        controller = KeyPressPlaybackController(key=args.toggle_key)

    app = VidEyeApp(config, controller, show_display=not args.no_display)
    try:
        app.run()
    except (CaptureUnavailable, DetectorInitFailed) as e:
        logger.error("❌ Could not start tracking: %s", e)
        return 1

    logger.info("VidEye terminated")
    return 0


if __name__ == "__main__":
    sys.exit(main())
