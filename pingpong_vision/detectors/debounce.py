from dataclasses import dataclass
from typing import Optional


@dataclass
class DebounceState:
    # None until the first emission
    last_emission_ms: Optional[float] = None


class Debouncer:
    """
    Cooldown gate shared by the ball and gesture detectors.

    A qualifying candidate passes only when at least `window_ms` has elapsed since
    the last accepted one. Suppressed candidates are dropped and leave the state
    untouched, so the gate never queues or replays anything.
    """

    def __init__(self, window_ms: float):
        self.window_ms = window_ms
        self.state = DebounceState()

    @property
    def window_ms(self) -> float:
        return self._window_ms

    @window_ms.setter
    def window_ms(self, value: float):
        value = float(value)
        if value < 0:
            raise ValueError(f"debounce window must be >= 0 ms, got {value}")
        self._window_ms = value

    def in_cooldown(self, now_ms: float) -> bool:
        last = self.state.last_emission_ms
        return last is not None and now_ms - last < self._window_ms

    def remaining_ms(self, now_ms: float) -> float:
        last = self.state.last_emission_ms
        if last is None:
            return 0.0
        return max(0.0, self._window_ms - (now_ms - last))

    def try_fire(self, now_ms: float) -> bool:
        """Accept a candidate at `now_ms`, recording the emission time, or refuse it."""
        if self.in_cooldown(now_ms):
            return False
        self.state.last_emission_ms = now_ms
        return True

    def reset(self):
        self.state = DebounceState()


__all__ = ['DebounceState', 'Debouncer']
