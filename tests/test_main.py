from types import SimpleNamespace

import pytest

from videye import main as main_module
from videye.behavior_manager import GazeClassifier, GazeState, HysteresisGate
from videye.errors import CaptureUnavailable
from videye.frame_loop import FrameLoop
from videye.main import VidEyeApp, build_parser, config_from_args, main

from helpers import FakeController, FakeDetector


def parse(*argv):
    return build_parser().parse_args(list(argv))


def test_playback_target_is_required():
    with pytest.raises(SystemExit):
        parse()
    with pytest.raises(SystemExit):
        parse('--media', 'a.mp4', '--keypress')


def test_defaults_map_to_config():
    config = config_from_args(parse('--keypress'))
    assert config.gaze_threshold == 0.02
    assert config.debounce_window == 0.3
    assert config.constraints.camera_index == 0
    assert config.constraints.mirror


def test_flags_map_to_config():
    args = parse('--media', 'talk.mp4', '--camera', '2', '--backup-camera', '3',
                 '--width', '1280', '--height', '720', '--fps', '15',
                 '--threshold', '0.05', '--axis', 'x', '--debounce', '0.5',
                 '--model', 'my.task', '--no-mirror')
    config = config_from_args(args)

    assert config.constraints.camera_index == 2
    assert config.constraints.backup_index == 3
    assert config.constraints.resolution == (1280, 720)
    assert config.constraints.frame_rate == 15
    assert not config.constraints.mirror
    assert config.gaze_threshold == 0.05
    assert config.gaze_axis == 'x'
    assert config.debounce_window == 0.5
    assert config.model_path == 'my.task'


def test_video_source_is_never_mirrored():
    config = config_from_args(parse('--keypress', '--source', 'webcam.mp4'))
    assert config.constraints.source == 'webcam.mp4'
    assert not config.constraints.mirror


def test_invalid_config_exit_code():
    assert main(['--keypress', '--debounce', '-1']) == 2


def test_start_failure_exit_code(monkeypatch):
    def failing_start(config, surface, controller, overlay=None):
        raise CaptureUnavailable("camera permission denied")

    monkeypatch.setattr(main_module, 'start_session', failing_start)
    monkeypatch.setattr(main_module, 'KeyPressPlaybackController',
                        lambda key: FakeController())

    assert main(['--keypress', '--no-display']) == 1


def test_user_input_handling():
    app = VidEyeApp(config_from_args(parse('--keypress')), FakeController(),
                    show_display=False)
    assert app._handle_user_input(ord('x'))
    assert not app._handle_user_input(ord('q'))


def test_reset_key_only_requests_reset():
    loop = FrameLoop(FakeDetector(), GazeClassifier(), HysteresisGate(), FakeController())
    app = VidEyeApp(config_from_args(parse('--keypress')), FakeController(),
                    show_display=False)
    app.session = SimpleNamespace(loop=loop)

    loop.gate.observe(GazeState.NOT_LOOKING, 0.0)
    assert app._handle_user_input(ord('r'))

    assert loop.reset_pending
    assert loop.gate.pause_pending
