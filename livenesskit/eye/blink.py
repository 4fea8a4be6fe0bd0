from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BlinkUpdate:
    blink_count: int
    blinked: bool = False
    rejected: Optional[str] = None  # "too_short" | "refractory"
    closed_ms: Optional[float] = None


class BlinkDetector:
    """
    Hysteresis blink counter over the smoothed, two-eye averaged EAR.

    Eyes close below `close_thr` and reopen only at `close_thr + open_margin`.
    A closure counts as a blink when it lasted at least `min_close_ms` and the
    previous counted blink is at least `refractory_ms` old.
    """
    def __init__(self, close_thr: float = 0.18, open_margin: float = 0.03,
                 min_close_ms: float = 120, refractory_ms: float = 250):
        self.close_thr = close_thr
        self.open_margin = open_margin
        self.min_close_ms = min_close_ms
        self.refractory_ms = refractory_ms
        self.reset()

    @property
    def open_thr(self) -> float:
        return self.close_thr + self.open_margin

    def reset(self):
        self.is_closed = False
        self.closed_since: Optional[float] = None
        self.last_blink_at: Optional[float] = None
        self.blink_count = 0

    def update(self, now: float, ear_avg: float) -> BlinkUpdate:
        if not self.is_closed:
            if ear_avg < self.close_thr:
                self.is_closed = True; self.closed_since = now
            return BlinkUpdate(self.blink_count)

        if ear_avg < self.open_thr:
            # hysteresis band or still below close threshold
            return BlinkUpdate(self.blink_count)

        closed_ms = now - self.closed_since
        self.is_closed = False; self.closed_since = None
        if closed_ms < self.min_close_ms:
            return BlinkUpdate(self.blink_count, rejected="too_short", closed_ms=closed_ms)
        if self.last_blink_at is not None and (now - self.last_blink_at) < self.refractory_ms:
            return BlinkUpdate(self.blink_count, rejected="refractory", closed_ms=closed_ms)
        self.blink_count += 1
        self.last_blink_at = now
        return BlinkUpdate(self.blink_count, blinked=True, closed_ms=closed_ms)

    def face_lost(self) -> bool:
        """Drop an in-flight closure without credit. Returns True if one was dropped."""
        dropped = self.is_closed
        self.is_closed = False; self.closed_since = None
        return dropped
