"""
Detection events and the single notification point used by the detectors.

Only the scoring team crosses this boundary. Confidence, history and gesture
labels stay inside the detector that produced them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union


class Team(str, Enum):
    HOME = 'home'
    AWAY = 'away'


@dataclass(frozen=True)
class DetectionEvent:
    """A point scored for one team."""
    team: Team


EventHandler = Callable[[Team], None]


class EventEmitter:
    """
    Holds at most one subscriber. Registering a new handler replaces the old one;
    there is no fan-out and no buffering.
    """

    def __init__(self, handler: Optional[EventHandler] = None):
        self._handler = handler

    def on_event(self, handler: Optional[EventHandler]):
        """Register `handler` (or None to clear). Last registration wins."""
        self._handler = handler

    @property
    def has_handler(self) -> bool:
        return self._handler is not None

    def emit(self, team: Union[Team, str]) -> DetectionEvent:
        # Called synchronously inside the tick that qualified the detection
        event = DetectionEvent(team=Team(team))
        if self._handler is not None:
            self._handler(event.team)
        return event


__all__ = ['Team', 'DetectionEvent', 'EventHandler', 'EventEmitter']
