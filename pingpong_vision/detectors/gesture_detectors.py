import time
import numpy as np
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from pingpong_vision.detectors.debounce import Debouncer
from pingpong_vision.detectors.events import DetectionEvent, EventEmitter, EventHandler, Team
from pingpong_vision.utils.math_utils import landmarks_to_array


# MediaPipe Hand Landmark indices (for reference)
LANDMARK_NAMES = {
    'WRIST': 0,
    'THUMB_CMC': 1, 'THUMB_MCP': 2, 'THUMB_IP': 3, 'THUMB_TIP': 4,
    'INDEX_MCP': 5, 'INDEX_PIP': 6, 'INDEX_DIP': 7, 'INDEX_TIP': 8,
    'MIDDLE_MCP': 9, 'MIDDLE_PIP': 10, 'MIDDLE_DIP': 11, 'MIDDLE_TIP': 12,
    'RING_MCP': 13, 'RING_PIP': 14, 'RING_DIP': 15, 'RING_TIP': 16,
    'PINKY_MCP': 17, 'PINKY_PIP': 18, 'PINKY_DIP': 19, 'PINKY_TIP': 20,
}
NUM_LANDMARKS = 21

FINGER_NAMES = ('thumb', 'index', 'middle', 'ring', 'pinky')

# (tip, pip, mcp) per finger; the thumb's IP joint stands in for a PIP
FINGER_JOINTS = {
    'thumb': (LANDMARK_NAMES['THUMB_TIP'], LANDMARK_NAMES['THUMB_IP'], LANDMARK_NAMES['THUMB_MCP']),
    'index': (LANDMARK_NAMES['INDEX_TIP'], LANDMARK_NAMES['INDEX_PIP'], LANDMARK_NAMES['INDEX_MCP']),
    'middle': (LANDMARK_NAMES['MIDDLE_TIP'], LANDMARK_NAMES['MIDDLE_PIP'], LANDMARK_NAMES['MIDDLE_MCP']),
    'ring': (LANDMARK_NAMES['RING_TIP'], LANDMARK_NAMES['RING_PIP'], LANDMARK_NAMES['RING_MCP']),
    'pinky': (LANDMARK_NAMES['PINKY_TIP'], LANDMARK_NAMES['PINKY_PIP'], LANDMARK_NAMES['PINKY_MCP']),
}

# Gesture labels
UNKNOWN = 'unknown'
SINGLE = 'single'
DOUBLE = 'double'
THUMBS_UP = 'thumbsUp'
OPEN_PALM = 'openPalm'

DEFAULT_LABEL_TEAMS = {
    THUMBS_UP: Team.HOME,
    OPEN_PALM: Team.AWAY,
    SINGLE: Team.HOME,
    DOUBLE: Team.AWAY,
}


class GesturePolicy(str, Enum):
    """Which classification scheme a deployment uses. The two are never mixed."""
    FINGER_COUNT = 'finger_count'   # single / double
    POSE_SHAPE = 'pose_shape'       # thumbsUp / openPalm


@dataclass
class GestureResult:
    """Result of classifying one hand pose."""
    gesture_name: str
    fingers_extended: List[bool]
    policy: GesturePolicy
    metadata: Dict = field(default_factory=dict)

    @property
    def detected(self) -> bool:
        return self.gesture_name != UNKNOWN


def _as_hand(landmarks) -> np.ndarray:
    norm = landmarks if isinstance(landmarks, np.ndarray) else landmarks_to_array(landmarks)
    if norm.shape != (NUM_LANDMARKS, 2):
        raise ValueError(f"expected {NUM_LANDMARKS} (x, y) landmarks, got array of shape {norm.shape}")
    return norm


def get_fingers_extended(landmarks, threshold: float = 0.05) -> List[bool]:
    """
    Extended state per finger, thumb first.

    The thumb extends sideways, so it is compared on x: its tip must be further
    from the MCP than the IP joint is, by more than `threshold`. The other fingers
    must have their tip above (smaller y) both PIP and MCP by more than `threshold`.
    """
    norm = _as_hand(landmarks)

    tip, ip, mcp = FINGER_JOINTS['thumb']
    thumb_distance = abs(norm[tip][0] - norm[mcp][0])
    thumb_base_distance = abs(norm[ip][0] - norm[mcp][0])
    fingers_extended = [bool(thumb_distance > thumb_base_distance + threshold)]

    for finger in FINGER_NAMES[1:]:
        tip, pip, mcp = FINGER_JOINTS[finger]
        tip_above_pip = (norm[pip][1] - norm[tip][1]) > threshold
        tip_above_mcp = (norm[mcp][1] - norm[tip][1]) > threshold
        fingers_extended.append(bool(tip_above_pip and tip_above_mcp))

    return fingers_extended


def has_clear_extension(landmarks, finger: str, pip_margin: float = 0.08, mcp_margin: float = 0.10) -> bool:
    """Stricter vertical check used to confirm a lone extended finger."""
    norm = _as_hand(landmarks)
    tip, pip, mcp = FINGER_JOINTS[finger]
    return bool((norm[pip][1] - norm[tip][1]) > pip_margin and (norm[mcp][1] - norm[tip][1]) > mcp_margin)


def is_thumbs_up(fingers_extended: Sequence[bool]) -> bool:
    thumb, index, middle, ring, pinky = fingers_extended
    return thumb and not index and not middle and not ring and not pinky


def classify_finger_count(
    fingers_extended: Sequence[bool],
    landmarks=None,
    pip_margin: float = 0.08,
    mcp_margin: float = 0.10,
) -> str:
    """
    Finger-count policy: one finger is 'single', two are 'double', anything else
    is unknown. When landmarks are given, a lone finger must also pass
    `has_clear_extension` so half-curled fingers are not counted.
    """
    count = sum(bool(f) for f in fingers_extended)
    if count == 1:
        if landmarks is not None:
            finger = FINGER_NAMES[[bool(f) for f in fingers_extended].index(True)]
            if not has_clear_extension(landmarks, finger, pip_margin, mcp_margin):
                return UNKNOWN
        return SINGLE
    if count == 2:
        return DOUBLE
    return UNKNOWN


def classify_pose_shape(fingers_extended: Sequence[bool]) -> str:
    """Pose-shape policy: thumb alone is 'thumbsUp', four or more fingers is 'openPalm'."""
    if is_thumbs_up(fingers_extended):
        return THUMBS_UP
    if sum(bool(f) for f in fingers_extended) >= 4:
        return OPEN_PALM
    return UNKNOWN


def classify_gesture(
    landmarks,
    policy: Union[GesturePolicy, str] = GesturePolicy.POSE_SHAPE,
    threshold: float = 0.05,
    pip_margin: float = 0.08,
    mcp_margin: float = 0.10,
) -> GestureResult:
    policy = GesturePolicy(policy)
    norm = _as_hand(landmarks)
    fingers_extended = get_fingers_extended(norm, threshold)

    if policy is GesturePolicy.FINGER_COUNT:
        name = classify_finger_count(fingers_extended, norm, pip_margin, mcp_margin)
    else:
        name = classify_pose_shape(fingers_extended)

    count = sum(fingers_extended)
    if name != UNKNOWN:
        reason = 'gesture_detected'
    elif count == 0:
        reason = 'closed_fist'
    elif policy is GesturePolicy.FINGER_COUNT and count == 1:
        reason = 'finger_not_clearly_extended'
    else:
        reason = 'ambiguous_pose'

    return GestureResult(
        gesture_name=name,
        fingers_extended=fingers_extended,
        policy=policy,
        metadata={'finger_count': count, 'reason': reason},
    )


class GestureDetector:
    """
    Turns hand landmarks into scoring events under one gesture policy.

    Owns its debounce window (3 s by default) and the event emitter; a hand that
    keeps showing the same gesture scores once per window.
    """

    def __init__(
        self,
        policy: Union[GesturePolicy, str] = GesturePolicy.POSE_SHAPE,
        debounce_ms: float = 3000,
        extended_threshold: float = 0.05,
        single_pip_margin: float = 0.08,
        single_mcp_margin: float = 0.10,
        label_teams: Optional[Dict[str, Union[Team, str]]] = None,
        on_event: Optional[EventHandler] = None,
    ):
        self._policy = GesturePolicy(policy)
        self.extended_threshold = float(extended_threshold)
        self.single_pip_margin = float(single_pip_margin)
        self.single_mcp_margin = float(single_mcp_margin)

        teams = dict(DEFAULT_LABEL_TEAMS)
        if label_teams:
            teams.update(label_teams)
        self.label_teams = {label: Team(team) for label, team in teams.items()}

        self.debouncer = Debouncer(debounce_ms)
        self.emitter = EventEmitter(on_event)
        self.last_result: Optional[GestureResult] = None

    @classmethod
    def from_config(cls, config=None, on_event: Optional[EventHandler] = None,
                    policy: Optional[Union[GesturePolicy, str]] = None) -> 'GestureDetector':
        from pingpong_vision.config.config_manager import config as default_config

        cfg = config if config is not None else default_config
        if policy is None:
            policy = cfg.get('gesture_recognition', 'policy', default=GesturePolicy.POSE_SHAPE.value)
        return cls(
            policy=policy,
            debounce_ms=cfg.get('gesture_recognition', 'debounce_ms', default=3000),
            extended_threshold=cfg.get('gesture_recognition', 'extended_threshold', default=0.05),
            single_pip_margin=cfg.get('gesture_recognition', 'single_pip_margin', default=0.08),
            single_mcp_margin=cfg.get('gesture_recognition', 'single_mcp_margin', default=0.10),
            label_teams=cfg.get('gesture_recognition', 'label_teams', default=None),
            on_event=on_event,
        )

    @property
    def policy(self) -> GesturePolicy:
        return self._policy

    def set_debounce_time(self, window_ms: float):
        self.debouncer.window_ms = window_ms

    def on_event(self, handler: Optional[EventHandler]):
        self.emitter.on_event(handler)

    def classify(self, landmarks) -> GestureResult:
        return classify_gesture(
            landmarks,
            self._policy,
            threshold=self.extended_threshold,
            pip_margin=self.single_pip_margin,
            mcp_margin=self.single_mcp_margin,
        )

    def process_landmarks(self, landmarks, now: Optional[float] = None) -> Optional[DetectionEvent]:
        """Run one tick on a hand (or None when no hand was tracked)."""
        if landmarks is None:
            self.last_result = None
            return None
        if now is None:
            now = time.time() * 1000.0

        result = self.classify(landmarks)
        self.last_result = result
        if not result.detected:
            return None

        team = self.label_teams.get(result.gesture_name)
        if team is None:
            return None
        if not self.debouncer.try_fire(now):
            result.metadata['reason'] = 'in_cooldown'
            return None
        return self.emitter.emit(team)

    def reset(self):
        self.last_result = None
        self.debouncer.reset()


__all__ = [
    'LANDMARK_NAMES',
    'FINGER_NAMES',
    'GesturePolicy',
    'GestureResult',
    'get_fingers_extended',
    'has_clear_extension',
    'is_thumbs_up',
    'classify_finger_count',
    'classify_pose_shape',
    'classify_gesture',
    'GestureDetector',
    'UNKNOWN',
    'SINGLE',
    'DOUBLE',
    'THUMBS_UP',
    'OPEN_PALM',
]
