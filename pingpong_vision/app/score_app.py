#!/usr/bin/env python3
"""
pingpong-vision - Camera point detection for table tennis
Main Application

Watches a webcam and reports "point scored for home / away" either from a
tracked ball crossing into a scoring zone or from a referee hand gesture.
Score keeping itself is left to whoever subscribes to the points.
"""

import argparse
import sys
from typing import Callable, Optional

import cv2

from pingpong_vision.app.sources import (
    CameraFrameSource,
    CameraSetupError,
    HandLandmarkSource,
    LandmarkModelError,
)
from pingpong_vision.config.config_manager import config as default_config
from pingpong_vision.detectors.ball_detector import BallDetector, Frame
from pingpong_vision.detectors.events import DetectionEvent, Team
from pingpong_vision.detectors.gesture_detectors import GestureDetector, GesturePolicy
from pingpong_vision.utils.visual_feedback import VisualFeedback


MODES = ('ball', 'gesture')


class ScoreApplication:
    """Main pingpong-vision application controller."""

    def __init__(
        self,
        mode: str = 'ball',
        config=None,
        camera_idx: Optional[int] = None,
        policy: Optional[str] = None,
        sensitivity: Optional[float] = None,
        show_window: Optional[bool] = None,
        on_point: Optional[Callable[[Team], None]] = None,
        frame_source=None,
        landmark_source=None,
    ):
        """
        Initialize the application. Nothing touches the camera until start().

        Args:
            mode: 'ball' or 'gesture'
            config: Config instance (defaults to the global one)
            camera_idx: Camera device index, overrides config
            policy: Gesture policy name, overrides config (gesture mode)
            sensitivity: Ball sensitivity 0..1, overrides config (ball mode)
            show_window: Show the OpenCV preview window, overrides config
            on_point: Called with the scoring Team for every point
            frame_source / landmark_source: injected sources (tests, video files)
        """
        if mode not in MODES:
            raise ValueError(f"mode must be one of {MODES}, got {mode!r}")

        self.mode = mode
        self.config = config if config is not None else default_config
        self.on_point = on_point

        cfg = self.config
        if mode == 'ball':
            self.detector = BallDetector.from_config(cfg)
            if sensitivity is not None:
                self.detector.set_sensitivity(sensitivity)
        else:
            self.detector = GestureDetector.from_config(cfg, policy=policy)
        self.detector.on_event(self._handle_point)

        self.visual = VisualFeedback(cfg, mode=mode)
        self.show_window = show_window if show_window is not None else cfg.get('display', 'show_window', default=True)
        self.window_name = cfg.get('display', 'window_name', default='pingpong-vision')

        if frame_source is None:
            idx = camera_idx if camera_idx is not None else cfg.get('camera', 'index', default=0)
            default_w, default_h = (1280, 720) if mode == 'ball' else (640, 480)
            frame_source = CameraFrameSource(
                camera_idx=idx,
                width=cfg.get('camera', mode, 'width', default=default_w),
                height=cfg.get('camera', mode, 'height', default=default_h),
                flip_horizontal=cfg.get('camera', 'flip_horizontal', default=True),
            )
        self.frame_source = frame_source

        if landmark_source is None and mode == 'gesture':
            landmark_source = HandLandmarkSource(
                max_num_hands=cfg.get('hand_tracking', 'max_num_hands', default=1),
                model_complexity=cfg.get('hand_tracking', 'model_complexity', default=1),
                min_detection_confidence=cfg.get('hand_tracking', 'min_detection_confidence', default=0.5),
                min_tracking_confidence=cfg.get('hand_tracking', 'min_tracking_confidence', default=0.5),
            )
        self.landmark_source = landmark_source

        # Application state
        self.is_initialized = False
        self.is_tracking = False
        self.last_image = None
        self.last_landmarks = None
        self._manual = False

    # Lifecycle

    def start(self) -> bool:
        """
        Open the sources (if needed) and begin tick processing.

        Raises CameraSetupError / LandmarkModelError when setup fails; no retry.
        """
        if not self.is_initialized:
            self._setup()
        self.is_tracking = True
        print(f"✓ {self.mode.capitalize()} tracking started")
        return True

    def _setup(self):
        self.frame_source.open()
        if self.landmark_source is not None:
            try:
                self.landmark_source.open()
            except LandmarkModelError:
                self.frame_source.close()
                raise
        self.is_initialized = True

    def stop(self):
        """Halt processing, release sources and drop transient detector state."""
        self.is_tracking = False
        self.detector.reset()
        self.last_image = None
        self.last_landmarks = None

        for name, source in (('camera', self.frame_source), ('hand tracker', self.landmark_source)):
            if source is None:
                continue
            try:
                source.close()
            except Exception as e:
                print(f"⚠ Error releasing {name}: {e}")

        self.is_initialized = False
        print(f"✓ {self.mode.capitalize()} tracking stopped")

    def is_ready(self) -> bool:
        return self.is_initialized and self.is_tracking

    def is_active(self) -> bool:
        return self.is_tracking

    # Tick processing

    def tick(self, now: Optional[float] = None) -> Optional[DetectionEvent]:
        """Read one frame and run it through the active detector."""
        if not self.is_tracking:
            return None
        image = self.frame_source.read()
        self.last_image = image
        if image is None:
            return None
        return self.process_image(image, now)

    def process_image(self, image, now: Optional[float] = None) -> Optional[DetectionEvent]:
        frame = Frame.from_bgr(image)
        if self.mode == 'ball':
            return self.detector.process_frame(frame, now)

        landmarks = self.landmark_source.process(frame)
        self.last_landmarks = landmarks
        return self.detector.process_landmarks(landmarks, now)

    def _handle_point(self, team: Team):
        gesture = None
        result = self.detector.last_result if self.mode == 'gesture' else None
        if result is not None and result.detected and not self._manual:
            gesture = result.gesture_name
        print(f"🏓 Point for {team.value}" + (f" ({gesture})" if gesture else ""))
        self.visual.handle_event(team, gesture, manual=self._manual)
        if self.on_point is not None:
            self.on_point(team)

    def manual_point(self, team) -> DetectionEvent:
        """Score a point by hand, through the same emitter the detector uses."""
        self._manual = True
        try:
            return self.detector.emitter.emit(team)
        finally:
            self._manual = False

    def handle_key(self, key: str):
        k = key.lower()
        if k == 'q':
            print("\n🛑 Quit requested")
            self.is_tracking = False
        elif k == 'z' and self.mode == 'ball':
            shown = self.visual.toggle_zones()
            print(f"Zones: {'ON' if shown else 'OFF'}")
        elif k == 'h':
            self.manual_point(Team.HOME)
        elif k == 'a':
            self.manual_point(Team.AWAY)

    def render(self):
        if self.last_image is None:
            return None
        frame = self.last_image.copy()
        ball_detector = self.detector if self.mode == 'ball' else None
        return self.visual.render(frame, ball_detector=ball_detector, landmarks=self.last_landmarks)

    def run(self):
        """Main application loop."""
        self.print_controls()
        self.start()
        try:
            while self.is_tracking:
                self.tick()
                if self.last_image is None:
                    print("❌ Failed to read frame")
                    break

                if self.show_window:
                    cv2.imshow(self.window_name, self.render())
                    key = cv2.waitKey(1) & 0xFF
                    if key != 0xFF:
                        self.handle_key(chr(key))
        finally:
            self.stop()
            if self.show_window:
                cv2.destroyAllWindows()

    def print_controls(self):
        """Print control instructions."""
        print("\n" + "=" * 60)
        print("KEYBOARD CONTROLS")
        print("=" * 60)
        print("  Q - Quit")
        print("  H - Manual point for home")
        print("  A - Manual point for away")
        if self.mode == 'ball':
            print("  Z - Toggle scoring zones")
        print("=" * 60)
        if self.mode == 'gesture':
            if self.detector.policy is GesturePolicy.POSE_SHAPE:
                print("  👍 Thumbs up - Home point")
                print("  🖐️ Open palm - Away point")
            else:
                print("  ☝️ One finger - Home point")
                print("  ✌️ Two fingers - Away point")
        else:
            print("  🏓 Fast ball in the left band - Away point")
            print("  🏓 Fast ball in the right band - Home point")
        print("=" * 60 + "\n")


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="pingpong-vision - camera point detection for table tennis"
    )
    parser.add_argument(
        '--mode', choices=MODES, default='ball',
        help='Detection mode (default: ball)'
    )
    parser.add_argument(
        '--camera', type=int, default=None,
        help='Camera device index (default: from config)'
    )
    parser.add_argument(
        '--config', type=str, default=None,
        help='Path to config.json (default: packaged config)'
    )
    parser.add_argument(
        '--policy', choices=[p.value for p in GesturePolicy], default=None,
        help='Gesture policy for gesture mode (default: from config)'
    )
    parser.add_argument(
        '--sensitivity', type=float, default=None,
        help='Ball detection sensitivity 0-1 (default: from config)'
    )
    parser.add_argument(
        '--no-window', action='store_true',
        help='Run headless without the preview window'
    )

    args = parser.parse_args(argv)

    cfg = default_config
    if args.config:
        from pingpong_vision.config.config_manager import Config
        cfg = Config(args.config)

    try:
        app = ScoreApplication(
            mode=args.mode,
            config=cfg,
            camera_idx=args.camera,
            policy=args.policy,
            sensitivity=args.sensitivity,
            show_window=False if args.no_window else None,
        )
        app.run()
    except KeyboardInterrupt:
        print("\n⚠ Interrupted by user")
    except (CameraSetupError, LandmarkModelError) as e:
        print(f"\n{e}")
        print("  Check that a camera is connected and that camera access is permitted.")
        return 1
    except Exception as e:
        print(f"\n❌ Error: {e}")
        import traceback
        traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
