import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, create_autospec, patch
import sys
import os

import numpy as np

# Add path to source
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pingpong_vision.app.score_app import ScoreApplication
from pingpong_vision.app.sources import (
    CameraFrameSource,
    CameraSetupError,
    HandLandmarkSource,
    LandmarkModelError,
)
from pingpong_vision.detectors.ball_detector import BallCandidate, Frame
from pingpong_vision.detectors.events import Team
from pingpong_vision.detectors.gesture_detectors import GesturePolicy


def thumbs_up_hand():
    points = [(0.5, 0.9)] * 21
    points[1:5] = [(0.45, 0.80), (0.40, 0.70), (0.35, 0.65), (0.20, 0.60)]
    for base, x in ((5, 0.40), (9, 0.50), (13, 0.60), (17, 0.70)):
        points[base:base + 4] = [(x, 0.60), (x, 0.50), (x, 0.58), (x, 0.65)]
    return points


def black_image(height=120, width=160):
    return np.zeros((height, width, 3), dtype=np.uint8)


class TestScoreApplication(unittest.TestCase):
    def setUp(self):
        self.frames = create_autospec(CameraFrameSource, instance=True)
        self.landmarks = create_autospec(HandLandmarkSource, instance=True)
        self.on_point = MagicMock()

    def make_app(self, mode='ball', **kwargs):
        return ScoreApplication(
            mode=mode,
            show_window=False,
            on_point=self.on_point,
            frame_source=self.frames,
            landmark_source=self.landmarks if mode == 'gesture' else None,
            **kwargs
        )

    def test_unknown_mode(self):
        with self.assertRaises(ValueError):
            ScoreApplication(mode='tennis', frame_source=self.frames)

    def test_camera_failure_propagates(self):
        self.frames.open.side_effect = CameraSetupError("no camera")
        app = self.make_app()
        with self.assertRaises(CameraSetupError):
            app.start()
        self.assertFalse(app.is_ready())
        self.assertFalse(app.is_active())

    def test_landmark_model_failure_releases_camera(self):
        self.landmarks.open.side_effect = LandmarkModelError("no model")
        app = self.make_app('gesture')
        with self.assertRaises(LandmarkModelError):
            app.start()
        self.frames.close.assert_called_once()
        self.assertFalse(app.is_ready())

    def test_start_and_stop(self):
        app = self.make_app()
        self.assertTrue(app.start())
        self.assertTrue(app.is_ready())
        self.assertTrue(app.is_active())

        app.detector.process_detection(BallCandidate(10, 10, 0.9, 'orange'), 160, 0)
        app.stop()
        self.assertFalse(app.is_ready())
        self.assertFalse(app.is_active())
        self.assertIsNone(app.detector.current_ball)
        self.frames.close.assert_called_once()

    def test_stop_reports_release_errors(self):
        self.frames.close.side_effect = RuntimeError("device busy")
        app = self.make_app()
        app.start()
        app.stop()
        self.assertFalse(app.is_active())

    def test_tick_requires_start(self):
        app = self.make_app()
        self.assertIsNone(app.tick())
        self.frames.read.assert_not_called()

    def test_tick_without_frame(self):
        self.frames.read.return_value = None
        app = self.make_app()
        app.start()
        self.assertIsNone(app.tick(now=0))
        self.assertIsNone(app.last_image)

    def test_ball_tick_on_empty_frame(self):
        self.frames.read.return_value = black_image()
        app = self.make_app()
        app.start()
        self.assertIsNone(app.tick(now=0))
        self.on_point.assert_not_called()
        self.assertEqual(app.render().shape, (120, 160, 3))

    def test_sensitivity_override(self):
        app = self.make_app(sensitivity=0.9)
        self.assertEqual(app.detector.sensitivity, 0.9)

    def test_gesture_tick_scores(self):
        self.frames.read.return_value = black_image()
        self.landmarks.process.return_value = thumbs_up_hand()
        app = self.make_app('gesture', policy='pose_shape')
        app.start()

        event = app.tick(now=0)
        self.assertEqual(event.team, Team.HOME)
        self.on_point.assert_called_once_with(Team.HOME)
        self.assertTrue(app.visual.is_showing_detection())
        self.assertIsInstance(self.landmarks.process.call_args[0][0], Frame)

    def test_policy_override(self):
        app = self.make_app('gesture', policy='finger_count')
        self.assertIs(app.detector.policy, GesturePolicy.FINGER_COUNT)

    def test_manual_points(self):
        app = self.make_app()
        app.handle_key('h')
        app.handle_key('A')
        self.assertEqual([c.args[0] for c in self.on_point.call_args_list], [Team.HOME, Team.AWAY])
        self.assertEqual(app.visual.status_text(), 'Manual Away Point!')

    def test_manual_point_replaced_handler(self):
        app = self.make_app()
        other = MagicMock()
        app.detector.on_event(other)
        app.manual_point(Team.HOME)
        other.assert_called_once_with(Team.HOME)
        self.on_point.assert_not_called()

    def test_quit_and_zone_keys(self):
        app = self.make_app()
        app.start()
        shown = app.visual.show_zones
        app.handle_key('z')
        self.assertEqual(app.visual.show_zones, not shown)
        app.handle_key('q')
        self.assertFalse(app.is_active())

    def test_run_stops_when_frames_run_out(self):
        self.frames.read.side_effect = [black_image(), None]
        app = self.make_app()
        app.run()
        self.assertEqual(self.frames.read.call_count, 2)
        self.assertFalse(app.is_active())
        self.frames.close.assert_called_once()


class TestCameraFrameSource(unittest.TestCase):
    def make_capture(self, opened=True, first_read=True):
        cap = MagicMock()
        cap.isOpened.return_value = opened
        image = np.zeros((2, 3, 3), dtype=np.uint8)
        image[:, 0] = 255
        cap.read.return_value = (first_read, image)
        cap.get.return_value = 640
        return cap, image

    def test_camera_not_opened(self):
        cap, _ = self.make_capture(opened=False)
        source = CameraFrameSource(capture_factory=lambda idx: cap)
        with self.assertRaises(CameraSetupError):
            source.open()
        cap.release.assert_called_once()
        self.assertFalse(source.is_open)

    def test_camera_without_frames(self):
        cap, _ = self.make_capture(first_read=False)
        source = CameraFrameSource(capture_factory=lambda idx: cap)
        with self.assertRaises(CameraSetupError):
            source.open()

    def test_read_mirrors_image(self):
        cap, image = self.make_capture()
        source = CameraFrameSource(camera_idx=2, capture_factory=MagicMock(return_value=cap))
        source.open()
        source._capture_factory.assert_called_once_with(2)
        np.testing.assert_array_equal(source.read(), image[:, ::-1])
        source.close()
        cap.release.assert_called_once()
        self.assertIsNone(source.read())

    def test_read_without_mirror(self):
        cap, image = self.make_capture()
        source = CameraFrameSource(flip_horizontal=False, capture_factory=lambda idx: cap)
        source.open()
        np.testing.assert_array_equal(source.read(), image)


class TestHandLandmarkSource(unittest.TestCase):
    def test_missing_model_raises(self):
        with patch.dict(sys.modules, {'mediapipe': None}):
            with self.assertRaises(LandmarkModelError):
                HandLandmarkSource().open()

    def test_first_hand_landmarks(self):
        source = HandLandmarkSource()
        hand = SimpleNamespace(landmark=[SimpleNamespace(x=i / 21, y=0.5) for i in range(21)])
        source.hands = MagicMock()
        source.hands.process.return_value = SimpleNamespace(multi_hand_landmarks=[hand])

        points = source.process(Frame(black_image(4, 4)))
        self.assertEqual(len(points), 21)
        self.assertEqual(points[0], (0.0, 0.5))

    def test_no_hand(self):
        source = HandLandmarkSource()
        source.hands = MagicMock()
        source.hands.process.return_value = SimpleNamespace(multi_hand_landmarks=None)
        self.assertIsNone(source.process(Frame(black_image(4, 4))))

    def test_close(self):
        source = HandLandmarkSource()
        hands = MagicMock()
        source.hands = hands
        source.close()
        hands.close.assert_called_once()
        self.assertFalse(source.is_open)


if __name__ == '__main__':
    unittest.main()
