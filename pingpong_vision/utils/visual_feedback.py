"""
Visual Feedback Overlay for pingpong-vision

Draws scoring zones, the tracked ball and the tracked hand on BGR camera frames,
and keeps a short-lived status line that reacts to detection events. The
detectors never call into this module; the application forwards events to
`handle_event`.
"""

import time
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import cv2

from pingpong_vision.detectors.ball_detector import COLOR_ORANGE, BallCandidate, ScoringZoneConfig
from pingpong_vision.detectors.events import Team
from pingpong_vision.detectors.gesture_detectors import OPEN_PALM, SINGLE, DOUBLE, THUMBS_UP
from pingpong_vision.utils.math_utils import landmarks_to_array, normalized_to_pixels


@dataclass
class UIColors:
    """BGR colors for overlay elements."""
    away_zone = (0, 0, 255)        # Red
    home_zone = (0, 255, 0)        # Green
    dim = (0, 0, 0)
    ball_orange = (0, 102, 255)    # #FF6600
    ball_white = (255, 255, 255)
    velocity = (0, 255, 0)
    hand_connections = (0, 255, 0)
    hand_landmarks = (0, 0, 255)
    text_primary = (255, 255, 255)
    detected = (0, 220, 255)


HAND_CONNECTIONS = [
    # Thumb
    (0, 1), (1, 2), (2, 3), (3, 4),
    # Index
    (0, 5), (5, 6), (6, 7), (7, 8),
    # Middle
    (9, 10), (10, 11), (11, 12),
    # Ring
    (13, 14), (14, 15), (15, 16),
    # Pinky
    (0, 17), (17, 18), (18, 19), (19, 20),
    # Palm
    (5, 9), (9, 13), (13, 17)
]

GESTURE_TEXT = {
    THUMBS_UP: 'Thumbs Up',
    OPEN_PALM: 'Open Palm',
    SINGLE: 'One Finger',
    DOUBLE: 'Two Fingers',
}

IDLE_TEXT = {
    'ball': 'Ball tracking active...',
    'gesture': 'Show gesture to camera',
}


class VisualFeedback:
    """
    Overlay renderer and status line for one camera view.
    """

    def __init__(self, config=None, mode: str = 'ball', clock=time.time):
        self.colors = UIColors()
        self.mode = mode
        self._clock = clock

        if config:
            self.show_zones = config.get('display', 'show_zones', default=True)
            self.status_reset_seconds = config.get('display', 'status_reset_seconds', default=2.0)
        else:
            self.show_zones = True
            self.status_reset_seconds = 2.0

        self.ball_radius = 15
        self.velocity_scale = 3
        self.zone_alpha = 0.2

        self._status_text = None
        self._status_until = 0.0

    # Status line

    @property
    def idle_text(self) -> str:
        return IDLE_TEXT.get(self.mode, '')

    def handle_event(self, team, gesture: Optional[str] = None, manual: bool = False):
        """Show feedback for a scored point; reverts to idle text after a delay."""
        team_name = 'Home' if Team(team) is Team.HOME else 'Away'
        if manual:
            text = f"Manual {team_name} Point!"
        elif gesture is not None:
            label = GESTURE_TEXT.get(gesture, gesture)
            text = f"{label} Detected - {team_name} Point!"
        else:
            text = f"Ball detected in {team_name} zone - Point scored!"
        self._status_text = text
        self._status_until = self._clock() + float(self.status_reset_seconds)

    def status_text(self) -> str:
        if self._status_text is not None and self._clock() < self._status_until:
            return self._status_text
        self._status_text = None
        return self.idle_text

    def is_showing_detection(self) -> bool:
        return self.status_text() != self.idle_text

    def toggle_zones(self) -> bool:
        self.show_zones = not self.show_zones
        return self.show_zones

    # Drawing

    def draw_scoring_zones(self, frame, zones: ScoringZoneConfig):
        h, w = frame.shape[:2]
        left_px = int(w * zones.left_width)
        right_px = int(w * (1 - zones.right_width))

        overlay = frame.copy()
        cv2.rectangle(overlay, (0, 0), (w, h), self.colors.dim, -1)
        cv2.addWeighted(overlay, 0.1, frame, 0.9, 0, frame)

        overlay = frame.copy()
        cv2.rectangle(overlay, (0, 0), (left_px, h), self.colors.away_zone, -1)
        cv2.rectangle(overlay, (right_px, 0), (w, h), self.colors.home_zone, -1)
        cv2.addWeighted(overlay, self.zone_alpha, frame, 1 - self.zone_alpha, 0, frame)

        self._put_centered(frame, 'AWAY', (int(w * zones.left_width / 2), h // 2), 0.8)
        self._put_centered(frame, 'HOME', (int(w * (1 - zones.right_width / 2)), h // 2), 0.8)

        # Dashed centre line
        for y in range(0, h, 20):
            cv2.line(frame, (w // 2, y), (w // 2, min(y + 10, h)), self.colors.text_primary, 2)

    def draw_ball(self, frame, ball: BallCandidate, velocity: Tuple[float, float] = (0.0, 0.0)):
        color = self.colors.ball_orange if ball.color == COLOR_ORANGE else self.colors.ball_white
        center = (int(ball.x), int(ball.y))
        cv2.circle(frame, center, self.ball_radius, color, 3, cv2.LINE_AA)
        self._put_centered(frame, f"{round(ball.confidence * 100)}%", (center[0], center[1] - 25), 0.45, color)

        vx, vy = velocity
        if vx != 0 or vy != 0:
            end = (int(ball.x + vx * self.velocity_scale), int(ball.y + vy * self.velocity_scale))
            cv2.line(frame, center, end, self.colors.velocity, 2, cv2.LINE_AA)

    def draw_hand_landmarks(self, frame, landmarks: Sequence):
        points = normalized_to_pixels(landmarks_to_array(landmarks), frame.shape)
        pixels = [(int(px), int(py)) for px, py in points]

        for start_idx, end_idx in HAND_CONNECTIONS:
            cv2.line(frame, pixels[start_idx], pixels[end_idx], self.colors.hand_connections, 2)
        for px, py in pixels:
            cv2.circle(frame, (px, py), 3, self.colors.hand_landmarks, -1)

    def draw_status(self, frame):
        text = self.status_text()
        color = self.colors.detected if text != self.idle_text else self.colors.text_primary
        cv2.putText(frame, text, (20, frame.shape[0] - 20),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.7, color, 2, cv2.LINE_AA)

    def render(self, frame, ball_detector=None, landmarks=None):
        """Draw everything relevant for the current mode onto `frame` in place."""
        if ball_detector is not None:
            if self.show_zones:
                self.draw_scoring_zones(frame, ball_detector.zones)
            if ball_detector.current_ball is not None:
                self.draw_ball(frame, ball_detector.current_ball, ball_detector.velocity)
        if landmarks is not None:
            self.draw_hand_landmarks(frame, landmarks)
        self.draw_status(frame)
        return frame

    def _put_centered(self, frame, text, center, scale, color=None):
        color = color if color is not None else self.colors.text_primary
        (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, scale, 2)
        cv2.putText(frame, text, (center[0] - tw // 2, center[1] + th // 2),
                    cv2.FONT_HERSHEY_SIMPLEX, scale, color, 2, cv2.LINE_AA)
