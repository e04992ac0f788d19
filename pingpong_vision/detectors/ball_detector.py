"""
Ball tracking detector.

Finds an orange or white table-tennis ball in each frame by color, follows it
between ticks to estimate its velocity, and turns a fast-moving ball inside one
of the side bands of the frame into a point for the team owning that band.
"""

import time
from collections import deque
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from pingpong_vision.detectors.color_classifier import (
    ball_color_mask,
    orange_mask,
    white_mask,
)
from pingpong_vision.detectors.debounce import Debouncer
from pingpong_vision.detectors.events import DetectionEvent, EventEmitter, EventHandler, Team
from pingpong_vision.utils.math_utils import disk_kernel, vector_norm


COLOR_ORANGE = 'orange'
COLOR_WHITE = 'white'


# Data Structures

@dataclass(frozen=True, eq=False)
class Frame:
    """
    One RGB image, shape (height, width, 3), dtype uint8.
    The pixel buffer is copied on construction and made read-only so a tick
    never observes a buffer that the capture side is still writing into.
    """
    pixels: np.ndarray

    def __post_init__(self):
        arr = np.array(self.pixels, dtype=np.uint8, copy=True)
        if arr.ndim != 3 or arr.shape[2] != 3:
            raise ValueError(f"frame must be shaped (height, width, 3), got {arr.shape}")
        arr.setflags(write=False)
        object.__setattr__(self, 'pixels', arr)

    @classmethod
    def from_bgr(cls, image: np.ndarray) -> 'Frame':
        """Build a frame from an OpenCV BGR capture."""
        return cls(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(frozen=True)
class BallCandidate:
    x: int               # pixels
    y: int               # pixels
    confidence: float    # 0..1, share of ball-colored pixels in the patch
    color: str           # COLOR_ORANGE or COLOR_WHITE


@dataclass(frozen=True)
class BallHistoryEntry:
    candidate: BallCandidate
    velocity: Tuple[float, float]   # pixels per tick
    timestamp_ms: float


@dataclass(frozen=True)
class ScoringZoneConfig:
    """
    Fractions of the frame width. The left band scores for the away team, the
    right band for the home team, and whatever remains in between is neutral.

    Widths are not validated: overlapping (left + right > 1) or negative bands
    are accepted as given and `center_width` goes negative accordingly.
    """
    left_width: float = 0.4
    right_width: float = 0.4

    @property
    def center_start(self) -> float:
        return self.left_width

    @property
    def center_width(self) -> float:
        return 1 - self.left_width - self.right_width

    @property
    def home_start(self) -> float:
        return 1 - self.right_width


# Patch scoring and candidate search

def patch_confidence(frame: Frame, x: int, y: int, radius: int = 15) -> float:
    """
    Share of in-bounds pixels within `radius` of (x, y) that are orange or white.

    Returns 0.0 when the disk lies entirely outside the frame.
    """
    x, y, r = int(x), int(y), int(radius)
    x0, x1 = max(0, x - r), min(frame.width, x + r + 1)
    y0, y1 = max(0, y - r), min(frame.height, y + r + 1)
    if x0 >= x1 or y0 >= y1:
        return 0.0

    inside = disk_kernel(r)[y0 - (y - r):y1 - (y - r), x0 - (x - r):x1 - (x - r)] > 0
    total = int(inside.sum())
    if total == 0:
        return 0.0

    matches = int((ball_color_mask(frame.pixels[y0:y1, x0:x1]) & inside).sum())
    return matches / total


def _patch_counts(mask: np.ndarray, radius: int) -> Tuple[np.ndarray, np.ndarray]:
    """Per-pixel (matching, in-bounds) sample counts over a disk of `radius`."""
    kernel = disk_kernel(radius)
    matches = cv2.filter2D(mask.astype(np.float32), -1, kernel, borderType=cv2.BORDER_CONSTANT)
    totals = cv2.filter2D(np.ones(mask.shape, np.float32), -1, kernel, borderType=cv2.BORDER_CONSTANT)
    # filter2D may go through the DFT path for large kernels, counts are integral
    return np.rint(matches), np.rint(totals)


def find_ball_candidates(
    frame: Frame,
    sensitivity: float = 0.7,
    min_radius: int = 8,
    stride: int = 4,
    radius: int = 15,
    max_candidates: int = 3,
) -> List[BallCandidate]:
    """
    Scan the frame interior on a `stride` grid and return up to `max_candidates`
    ball candidates, most confident first.

    A grid position qualifies when its own pixel is orange or white and its
    patch confidence is strictly greater than `sensitivity`. Equal confidences
    keep row-major scan order.
    """
    h, w = frame.height, frame.width
    ys = np.arange(min_radius, h - min_radius, stride)
    xs = np.arange(min_radius, w - min_radius, stride)
    if ys.size == 0 or xs.size == 0:
        return []

    orange = orange_mask(frame.pixels)
    white = white_mask(frame.pixels)
    matching = orange | white
    match_counts, total_counts = _patch_counts(matching, radius)

    grid = np.ix_(ys, xs)
    confidence = match_counts[grid] / np.maximum(total_counts[grid], 1.0)
    accepted = matching[grid] & (confidence > sensitivity)

    candidates = []
    for iy, ix in zip(*np.nonzero(accepted)):
        x, y = int(xs[ix]), int(ys[iy])
        candidates.append(BallCandidate(
            x=x,
            y=y,
            confidence=float(confidence[iy, ix]),
            color=COLOR_ORANGE if orange[y, x] else COLOR_WHITE,
        ))

    candidates.sort(key=lambda c: c.confidence, reverse=True)
    return candidates[:max_candidates]


# Zone mapping

def compute_velocity(current: BallCandidate, previous: Optional[BallCandidate]) -> Optional[Tuple[float, float]]:
    """Displacement since the previous detection, or None when there is none."""
    if previous is None:
        return None
    return (float(current.x - previous.x), float(current.y - previous.y))


def map_zone(normalized_x: float, speed: float, zones: ScoringZoneConfig, min_speed: float = 10.0) -> Optional[Team]:
    """
    Team whose band contains `normalized_x`, provided the ball moves at least
    `min_speed` pixels per tick. Slow (hovering) balls and the neutral band map
    to None.
    """
    if speed < min_speed:
        return None
    if normalized_x <= zones.left_width:
        return Team.AWAY
    if normalized_x >= 1 - zones.right_width:
        return Team.HOME
    return None


class BallDetector:
    """
    Stateful per-session ball detector.

    Owns the rolling ball history, the previous/current ball used for velocity,
    and its own debounce window. `process_frame` runs one tick and returns the
    emitted event, if any.
    """

    def __init__(
        self,
        sensitivity: float = 0.7,
        debounce_ms: float = 1000,
        zones: Optional[ScoringZoneConfig] = None,
        min_speed: float = 10.0,
        min_ball_radius: int = 8,
        scan_stride: int = 4,
        patch_radius: int = 15,
        max_candidates: int = 3,
        max_history: int = 10,
        on_event: Optional[EventHandler] = None,
    ):
        self.sensitivity = sensitivity
        self.zones = zones if zones is not None else ScoringZoneConfig()
        self.min_speed = float(min_speed)
        self.min_ball_radius = int(min_ball_radius)
        self.scan_stride = int(scan_stride)
        self.patch_radius = int(patch_radius)
        self.max_candidates = int(max_candidates)

        self.debouncer = Debouncer(debounce_ms)
        self.emitter = EventEmitter(on_event)

        # Session state
        self.history = deque(maxlen=int(max_history))
        self.current_ball: Optional[BallCandidate] = None
        self.previous_ball: Optional[BallCandidate] = None
        self.velocity: Tuple[float, float] = (0.0, 0.0)
        self.last_candidates: List[BallCandidate] = []

    @classmethod
    def from_config(cls, config=None, on_event: Optional[EventHandler] = None) -> 'BallDetector':
        from pingpong_vision.config.config_manager import config as default_config

        cfg = config if config is not None else default_config
        return cls(
            sensitivity=cfg.get('ball_tracking', 'sensitivity', default=0.7),
            debounce_ms=cfg.get('ball_tracking', 'debounce_ms', default=1000),
            zones=ScoringZoneConfig(
                left_width=cfg.get('ball_tracking', 'zones', 'left_width', default=0.4),
                right_width=cfg.get('ball_tracking', 'zones', 'right_width', default=0.4),
            ),
            min_speed=cfg.get('ball_tracking', 'min_speed', default=10.0),
            min_ball_radius=cfg.get('ball_tracking', 'min_ball_radius', default=8),
            scan_stride=cfg.get('ball_tracking', 'scan_stride', default=4),
            patch_radius=cfg.get('ball_tracking', 'patch_radius', default=15),
            max_candidates=cfg.get('ball_tracking', 'max_candidates', default=3),
            max_history=cfg.get('ball_tracking', 'max_history', default=10),
            on_event=on_event,
        )

    # Configuration

    @property
    def sensitivity(self) -> float:
        return self._sensitivity

    @sensitivity.setter
    def sensitivity(self, value: float):
        self._sensitivity = max(0.0, min(1.0, float(value)))

    def set_sensitivity(self, value: float):
        self.sensitivity = value

    def set_debounce_time(self, window_ms: float):
        self.debouncer.window_ms = window_ms

    def calibrate_zones(self, left_width: float = 0.4, right_width: float = 0.4) -> ScoringZoneConfig:
        self.zones = ScoringZoneConfig(left_width=left_width, right_width=right_width)
        return self.zones

    def on_event(self, handler: Optional[EventHandler]):
        self.emitter.on_event(handler)

    # Tick processing

    def detect(self, frame: Frame) -> List[BallCandidate]:
        return find_ball_candidates(
            frame,
            sensitivity=self._sensitivity,
            min_radius=self.min_ball_radius,
            stride=self.scan_stride,
            radius=self.patch_radius,
            max_candidates=self.max_candidates,
        )

    def process_frame(self, frame: Frame, now: Optional[float] = None) -> Optional[DetectionEvent]:
        """Run one tick. `now` is in milliseconds; defaults to the wall clock."""
        if now is None:
            now = time.time() * 1000.0

        self.last_candidates = self.detect(frame)
        if not self.last_candidates:
            # A miss leaves the tracked ball untouched
            return None

        return self.process_detection(self.last_candidates[0], frame.width, now)

    def process_detection(self, ball: BallCandidate, frame_width: int, now: float) -> Optional[DetectionEvent]:
        """Advance tracking state with the selected candidate and maybe score."""
        self.previous_ball = self.current_ball
        self.current_ball = ball

        event = None
        velocity = compute_velocity(ball, self.previous_ball)
        if velocity is not None:
            self.velocity = velocity
            event = self._check_scoring(ball, velocity, frame_width, now)

        self.history.append(BallHistoryEntry(candidate=ball, velocity=self.velocity, timestamp_ms=now))
        return event

    def _check_scoring(self, ball: BallCandidate, velocity: Tuple[float, float], frame_width: int, now: float) -> Optional[DetectionEvent]:
        team = map_zone(ball.x / frame_width, vector_norm(velocity), self.zones, self.min_speed)
        if team is None:
            return None
        if not self.debouncer.try_fire(now):
            return None
        return self.emitter.emit(team)

    def reset(self):
        """Drop session state. Zones and sensitivity survive."""
        self.history.clear()
        self.current_ball = None
        self.previous_ball = None
        self.velocity = (0.0, 0.0)
        self.last_candidates = []
        self.debouncer.reset()


__all__ = [
    'Frame',
    'BallCandidate',
    'BallHistoryEntry',
    'ScoringZoneConfig',
    'patch_confidence',
    'find_ball_candidates',
    'compute_velocity',
    'map_zone',
    'BallDetector',
    'COLOR_ORANGE',
    'COLOR_WHITE',
]
