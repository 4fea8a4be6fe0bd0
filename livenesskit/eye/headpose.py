from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Literal

Direction = Literal["left", "right"]


@dataclass(frozen=True)
class TurnUpdate:
    turned_left_ever: bool
    turned_right_ever: bool
    last_direction: Optional[Direction] = None
    direction: Optional[Direction] = None   # set on every call where the hold is satisfied
    achieved: bool = False                  # True only when an "ever" flag flipped on this call
    held_ms: float = 0.0


class TurnDetector:
    """
    Yaw threshold + minimum hold. A continuous excursion with |yaw| >= yaw_thr held
    for hold_min_ms assigns a direction; the per-direction "ever" flags only go up.
    """
    def __init__(self, yaw_thr: float = 0.55, hold_min_ms: float = 250):
        self.yaw_thr = yaw_thr
        self.hold_min_ms = hold_min_ms
        self.reset()

    def reset(self):
        self.beyond_since: Optional[float] = None
        self.last_direction: Optional[Direction] = None
        self.turned_left_ever = False
        self.turned_right_ever = False

    def _result(self, **kw) -> TurnUpdate:
        return TurnUpdate(self.turned_left_ever, self.turned_right_ever, self.last_direction, **kw)

    def update(self, now: float, yaw: float) -> TurnUpdate:
        if abs(yaw) < self.yaw_thr:
            self.beyond_since = None
            return self._result()
        if self.beyond_since is None:
            self.beyond_since = now
            return self._result()

        held = now - self.beyond_since
        if held < self.hold_min_ms:
            return self._result(held_ms=held)

        direction: Direction = "right" if yaw > 0 else "left"
        self.last_direction = direction
        if direction == "right":
            achieved = not self.turned_right_ever; self.turned_right_ever = True
        else:
            achieved = not self.turned_left_ever; self.turned_left_ever = True
        return self._result(direction=direction, achieved=achieved, held_ms=held)

    def face_lost(self) -> bool:
        dropped = self.beyond_since is not None
        self.beyond_since = None
        return dropped
