import pytest

from videye.behavior_manager import (
    GazeClassifier, GazeState, HysteresisGate, PlaybackCommand, classify,
)
from videye.config import TrackingConfig
from videye.detection_layers import LandmarkSet

from helpers import LOOKING_LANDMARKS, NOT_LOOKING_LANDMARKS, make_landmarks

LOOKING = GazeState.LOOKING
NOT_LOOKING = GazeState.NOT_LOOKING
PLAY = PlaybackCommand.PLAY
PAUSE = PlaybackCommand.PAUSE


# =============================================================================
# GAZE CLASSIFIER
# =============================================================================

def test_small_vertical_gap_is_not_looking():
    assert classify(NOT_LOOKING_LANDMARKS, threshold=0.02) is NOT_LOOKING


def test_large_vertical_gap_is_looking():
    assert classify(LOOKING_LANDMARKS, threshold=0.02) is LOOKING


def test_empty_landmarks_fail_closed():
    assert classify(LandmarkSet.empty()) is NOT_LOOKING
    assert GazeClassifier(threshold=0.0).classify(LandmarkSet.empty()) is NOT_LOOKING


def test_gap_equal_to_threshold_counts_as_looking():
    landmarks = make_landmarks(left_y=0.75, right_y=0.5)
    assert GazeClassifier(threshold=0.25).classify(landmarks) is LOOKING


def test_gap_nominally_equal_to_threshold_counts_as_looking():
    # 0.42 - 0.40 is 0.019999999999999962 in floating point
    landmarks = make_landmarks(left_y=0.42, right_y=0.40)
    assert GazeClassifier(threshold=0.02).classify(landmarks) is LOOKING
    assert classify(make_landmarks(left_y=0.419, right_y=0.40), threshold=0.02) is NOT_LOOKING


def test_gap_is_symmetric_between_eyes():
    classifier = GazeClassifier(threshold=0.02)
    assert classifier.classify(make_landmarks(0.35, 0.40)) is LOOKING
    assert classifier.classify(make_landmarks(0.40, 0.35)) is LOOKING


def test_alignment_distance_uses_cluster_means():
    classifier = GazeClassifier()
    assert classifier.alignment_distance(LandmarkSet.empty()) is None
    assert classifier.alignment_distance(make_landmarks(0.75, 0.5)) == pytest.approx(0.25)


def test_horizontal_axis_ignores_vertical_gap():
    classifier = GazeClassifier(threshold=0.1, axis='x')
    level_eyes_far_apart = make_landmarks(left_y=0.4, right_y=0.4, left_x=0.3, right_x=0.7)
    tilted_eyes_close = make_landmarks(left_y=0.2, right_y=0.6, left_x=0.5, right_x=0.52)
    assert classifier.classify(level_eyes_far_apart) is LOOKING
    assert classifier.classify(tilted_eyes_close) is NOT_LOOKING


def test_custom_iris_indices():
    landmarks = make_landmarks(0.40, 0.40)
    # Point 0 sits at the mesh default y=0.5, left iris at y=0.4
    classifier = GazeClassifier(threshold=0.05, left_iris=(0,), right_iris=(468,))
    assert classifier.alignment_distance(landmarks) == pytest.approx(0.1)
    assert classifier.classify(landmarks) is LOOKING


def test_classifier_from_config():
    config = TrackingConfig(gaze_threshold=0.3, gaze_axis='x')
    classifier = GazeClassifier.from_config(config)
    assert classifier.threshold == 0.3
    assert classifier.axis == 'x'


@pytest.mark.parametrize('kwargs', [{'axis': 'z'}, {'threshold': -0.1}, {'left_iris': ()}])
def test_classifier_rejects_bad_parameters(kwargs):
    with pytest.raises(ValueError):
        GazeClassifier(**kwargs)


def test_gaze_state_truthiness():
    assert LOOKING
    assert not NOT_LOOKING


# =============================================================================
# HYSTERESIS GATE
# =============================================================================

def feed(gate, states, start=0.0, step=0.1):
    """Observe states at evenly spaced times; returns (commands, emitted)."""
    commands, emitted = [], []
    for i, state in enumerate(states):
        commands.append(gate.observe(state, start + i * step))
        if gate.changed:
            emitted.append(gate.current_command)
    return commands, emitted


def test_pause_only_after_debounce_window_elapses():
    gate = HysteresisGate(debounce_window=0.25)
    states = [LOOKING, LOOKING, NOT_LOOKING, NOT_LOOKING, NOT_LOOKING, NOT_LOOKING]
    commands, emitted = feed(gate, states, step=0.1)

    # NOT_LOOKING first seen at t=0.2, deadline 0.45, first observed at t=0.5
    assert commands == [PLAY, PLAY, PLAY, PLAY, PLAY, PAUSE]
    assert emitted == [PAUSE]


def test_held_not_looking_scenario():
    gate = HysteresisGate(debounce_window=0.3)
    commands = [gate.observe(LOOKING, 0.0), gate.observe(LOOKING, 0.05),
                gate.observe(NOT_LOOKING, 0.1), gate.observe(NOT_LOOKING, 0.5)]
    assert commands == [PLAY, PLAY, PLAY, PAUSE]


def test_empty_stream_emits_single_pause():
    gate = HysteresisGate(debounce_window=0.3)
    gaze = [classify(LandmarkSet.empty()) for _ in range(10)]
    commands, emitted = feed(gate, gaze, step=0.05)

    assert emitted == [PAUSE]
    assert commands[-1] is PAUSE
    assert gate.pauses_emitted == 1
    assert not gate.pause_pending


def test_isolated_blink_never_pauses():
    gate = HysteresisGate(debounce_window=0.3)
    commands, emitted = feed(gate, [LOOKING, NOT_LOOKING, LOOKING, LOOKING], step=0.1)
    assert PAUSE not in commands
    assert emitted == []
    assert gate.pauses_cancelled == 1


def test_looking_preempts_pending_pause_right_before_deadline():
    gate = HysteresisGate(debounce_window=0.3)
    gate.observe(NOT_LOOKING, 0.0)
    assert gate.observe(LOOKING, 0.299) is PLAY
    # A fresh window starts from the next NOT_LOOKING
    assert gate.observe(NOT_LOOKING, 0.31) is PLAY
    assert gate.observe(NOT_LOOKING, 0.6) is PLAY
    assert gate.observe(NOT_LOOKING, 0.62) is PAUSE


def test_repeated_not_looking_does_not_restart_timer():
    gate = HysteresisGate(debounce_window=0.3)
    gate.observe(NOT_LOOKING, 1.0)
    deadline = gate.pending_pause_deadline
    gate.observe(NOT_LOOKING, 1.1)
    gate.observe(NOT_LOOKING, 1.2)
    assert gate.pending_pause_deadline == deadline == pytest.approx(1.3)


def test_looking_after_pause_emits_play_once():
    gate = HysteresisGate(debounce_window=0.1)
    _, emitted = feed(gate, [NOT_LOOKING, NOT_LOOKING, LOOKING, LOOKING, LOOKING], step=0.1)
    assert emitted == [PAUSE, PLAY]


def test_pause_never_within_window_of_last_looking():
    window = 0.3
    gate = HysteresisGate(debounce_window=window)
    pattern = [LOOKING, NOT_LOOKING, NOT_LOOKING, LOOKING, NOT_LOOKING] + [NOT_LOOKING] * 12
    last_looking = None
    for i, state in enumerate(pattern):
        now = i * 0.04
        if state is LOOKING:
            last_looking = now
        gate.observe(state, now)
        if gate.changed and gate.current_command is PAUSE:
            assert now - last_looking >= window


def test_zero_window_pauses_immediately():
    gate = HysteresisGate(debounce_window=0.0)
    assert gate.observe(NOT_LOOKING, 5.0) is PAUSE
    assert gate.changed


def test_initial_pause_stays_paused_without_viewer():
    gate = HysteresisGate(debounce_window=0.3, initial_command=PAUSE)
    _, emitted = feed(gate, [NOT_LOOKING] * 5)
    assert emitted == []
    assert gate.state == 'STABLE_PAUSE'


def test_state_names_follow_transitions():
    gate = HysteresisGate(debounce_window=0.3)
    assert gate.state == 'STABLE_PLAY'
    gate.observe(NOT_LOOKING, 0.0)
    assert gate.state == 'PENDING_PAUSE'
    gate.observe(NOT_LOOKING, 0.3)
    assert gate.state == 'STABLE_PAUSE'


def test_reset_clears_pending_pause():
    gate = HysteresisGate(debounce_window=0.3)
    gate.observe(NOT_LOOKING, 0.0)
    gate.reset()
    assert not gate.pause_pending
    assert gate.current_command is PLAY
    status = gate.get_status()
    assert status['state'] == 'STABLE_PLAY'
    assert status['command'] == 'PLAY'


def test_negative_window_rejected():
    with pytest.raises(ValueError):
        HysteresisGate(debounce_window=-0.1)
