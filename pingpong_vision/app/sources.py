"""
Frame and landmark sources.

These wrap the camera and the MediaPipe hand tracker. They live outside the
detection core: the application pulls one frame per tick from here and hands it
to a detector.
"""

from typing import List, Optional, Tuple

import cv2
import numpy as np

from pingpong_vision.detectors.ball_detector import Frame


class CameraSetupError(RuntimeError):
    """Camera could not be opened or delivered no frame."""


class LandmarkModelError(RuntimeError):
    """MediaPipe Hands could not be created."""


class CameraFrameSource:
    """OpenCV webcam capture returning BGR images."""

    def __init__(self, camera_idx: int = 0, width: int = 1280, height: int = 720,
                 flip_horizontal: bool = True, capture_factory=cv2.VideoCapture):
        self.camera_idx = camera_idx
        self.width = width
        self.height = height
        self.flip_horizontal = flip_horizontal
        self._capture_factory = capture_factory
        self.cap = None

    @property
    def is_open(self) -> bool:
        return self.cap is not None

    def open(self):
        cap = self._capture_factory(self.camera_idx)
        if not cap.isOpened():
            cap.release()
            raise CameraSetupError(f"❌ Could not open camera {self.camera_idx}")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        ok, _ = cap.read()
        if not ok:
            cap.release()
            raise CameraSetupError(f"❌ Camera {self.camera_idx} opened but returned no frame")

        self.cap = cap
        actual_width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        print(f"✓ Camera initialized: {actual_width}x{actual_height}")

    def read(self) -> Optional[np.ndarray]:
        if self.cap is None:
            return None
        ret, frame_bgr = self.cap.read()
        if not ret:
            return None
        if self.flip_horizontal:
            frame_bgr = cv2.flip(frame_bgr, 1)
        return frame_bgr

    def close(self):
        if self.cap is not None:
            cap, self.cap = self.cap, None
            cap.release()


class HandLandmarkSource:
    """MediaPipe Hands tracker yielding the first hand's 21 normalized landmarks."""

    def __init__(self, max_num_hands: int = 1, model_complexity: int = 1,
                 min_detection_confidence: float = 0.5, min_tracking_confidence: float = 0.5):
        self.max_num_hands = max_num_hands
        self.model_complexity = model_complexity
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.hands = None

    @property
    def is_open(self) -> bool:
        return self.hands is not None

    def open(self):
        try:
            import mediapipe as mp

            self.hands = mp.solutions.hands.Hands(
                static_image_mode=False,
                max_num_hands=self.max_num_hands,
                model_complexity=self.model_complexity,
                min_detection_confidence=self.min_detection_confidence,
                min_tracking_confidence=self.min_tracking_confidence,
            )
        except Exception as e:
            raise LandmarkModelError(f"❌ Could not initialize MediaPipe Hands: {e}") from e
        print(f"✓ MediaPipe Hands initialized (max_hands={self.max_num_hands})")

    def process(self, frame: Frame) -> Optional[List[Tuple[float, float]]]:
        if self.hands is None:
            return None
        results = self.hands.process(frame.pixels)
        if not results.multi_hand_landmarks:
            return None
        hand = results.multi_hand_landmarks[0]
        return [(lm.x, lm.y) for lm in hand.landmark]

    def close(self):
        if self.hands is not None:
            hands, self.hands = self.hands, None
            hands.close()


__all__ = [
    'CameraSetupError',
    'LandmarkModelError',
    'CameraFrameSource',
    'HandLandmarkSource',
]
