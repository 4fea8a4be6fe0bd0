from __future__ import annotations
import math, threading, time
from typing import Any, Callable, Dict, Optional, Union
from ..errors import InsufficientLandmarks
from ..eye.blink import BlinkDetector
from ..eye.geometry import eye_aspect_ratios, yaw_proxy
from ..eye.headpose import TurnDetector
from ..filters.ema import EMA
from ..runtime.events import LivenessEvent, LivenessSnapshot
from .config import LivenessConfig, make_config, revalidate

SnapshotHook = Callable[[LivenessSnapshot], None]
EventHook = Callable[[LivenessEvent], None]

REQUIRED_BLINKS = 2


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def liveness_passed(blink_count: int, turned_left_ever: bool, turned_right_ever: bool) -> bool:
    return blink_count >= REQUIRED_BLINKS and turned_left_ever and turned_right_ever


class LivenessSession:
    """
    Blink + head-turn liveness over a stream of landmark sets.

    Frames arrive one at a time through process_frame() with non-decreasing
    millisecond timestamps. start/reset/stop may come from another thread; an
    internal lock keeps them from interleaving with a frame in flight.
    `passed` latches: once true it stays true until start() or reset().
    """
    def __init__(self, config: Union[LivenessConfig, Dict[str, Any], None] = None,
                 on_snapshot: Optional[SnapshotHook] = None,
                 on_event: Optional[EventHook] = None,
                 clock: Callable[[], float] = _monotonic_ms):
        self.cfg = revalidate(config) if isinstance(config, LivenessConfig) else make_config(**(config or {}))
        self.on_snapshot = on_snapshot
        self.on_event = on_event
        self.clock = clock
        self._lock = threading.RLock()

        c = self.cfg
        self.blink = BlinkDetector(c.ear_close_threshold, c.ear_open_margin,
                                   c.ear_close_min_ms, c.blink_refractory_ms)
        self.turn = TurnDetector(c.yaw_abs_threshold, c.yaw_hold_min_ms)
        self.ear_left = EMA(c.ema_alpha_ear)
        self.ear_right = EMA(c.ema_alpha_ear)
        self.yaw = EMA(c.ema_alpha_yaw)

        self.running = False
        self.started_at: Optional[float] = None
        self._clear()

    def _clear(self):
        self.blink.reset(); self.turn.reset()
        self.ear_left.reset(); self.ear_right.reset(); self.yaw.reset()
        self.passed = False
        self.expired = False
        self.face_present = False
        self.frame_count = 0
        self._last_t: Optional[float] = None

    # -- lifecycle -------------------------------------------------------

    def start(self, now: Optional[float] = None) -> LivenessSnapshot:
        """Reinitialise all state and begin accepting frames. Calling it twice is a full reset."""
        return self._restart("session_start", now)

    def reset(self, now: Optional[float] = None) -> LivenessSnapshot:
        """Same state effect as start(); the frame source is left untouched."""
        return self._restart("session_reset", now)

    def _restart(self, kind: str, now: Optional[float]) -> LivenessSnapshot:
        with self._lock:
            now = self.clock() if now is None else now
            if not math.isfinite(now):
                raise ValueError(f"session start time must be finite, got {now!r}")
            self._clear()
            self.started_at = now
            self.running = True
            self._emit(kind, now)
            return self._publish()

    def stop(self) -> LivenessSnapshot:
        """Discard further frames; accumulated state stays inspectable."""
        with self._lock:
            self.running = False
            self._emit("session_stop", self._last_t if self._last_t is not None else self.clock(),
                       passed=self.passed, blink_count=self.blink.blink_count)
            return self._publish()

    # -- frames ----------------------------------------------------------

    def process_frame(self, landmarks, now: Optional[float] = None) -> LivenessSnapshot:
        """Score one frame. `landmarks` is an (N,2|3) FaceMesh array or None when no face was found."""
        with self._lock:
            if not self.running:
                return self.snapshot()
            now = self.clock() if now is None else now
            if not math.isfinite(now):
                self._emit("frame_dropped", self._last_t if self._last_t is not None else 0.0,
                           reason="timestamp_not_finite")
                return self.snapshot()
            if self._last_t is not None and now < self._last_t:
                self._emit("frame_dropped", now, reason="timestamp_regressed", last=self._last_t)
                return self.snapshot()
            self._last_t = now
            self.frame_count += 1

            if self._window_closed(now):
                return self._publish()

            signals = self._extract(landmarks)
            if signals is None:
                self._face_lost(now)
            else:
                if not self.face_present:
                    self.face_present = True
                    self._emit("face_found", now)
                self._score(now, *signals)
            return self._publish()

    def _extract(self, landmarks):
        if landmarks is None:
            return None
        try:
            left, right = eye_aspect_ratios(landmarks)
            yaw = yaw_proxy(landmarks)
        except InsufficientLandmarks:
            return None
        if not all(math.isfinite(v) for v in (left, right, yaw)):
            return None
        return left, right, yaw

    def _face_lost(self, now: float):
        # smoothed values are kept, only the in-flight timers go
        dropped_closure = self.blink.face_lost()
        dropped_hold = self.turn.face_lost()
        if self.face_present:
            self.face_present = False
            self._emit("face_lost", now, dropped_closure=dropped_closure, dropped_hold=dropped_hold)

    def _score(self, now: float, left: float, right: float, yaw: float):
        ls, rs = self.ear_left(left), self.ear_right(right)
        ys = self.yaw(yaw)

        b = self.blink.update(now, (ls + rs) / 2.0)
        if b.blinked:
            self._emit("blink", now, count=b.blink_count, closed_ms=b.closed_ms)
        elif b.rejected:
            self._emit("blink_rejected", now, reason=b.rejected, closed_ms=b.closed_ms)

        t = self.turn.update(now, ys)
        if t.achieved:
            self._emit("turn", now, direction=t.direction, held_ms=t.held_ms, yaw=ys)

        # decide from what the detectors just returned, not from state read earlier
        self._latch(now, b.blink_count, t.turned_left_ever, t.turned_right_ever)

    def _window_closed(self, now: float) -> bool:
        if self.passed or not self.cfg.enforce_session_window or self.started_at is None:
            return False
        if self.expired:
            return True
        if now - self.started_at > self.cfg.session_window_ms:
            self.expired = True
            self.blink.face_lost(); self.turn.face_lost()
            self._emit("window_expired", now, window_ms=self.cfg.session_window_ms)
            return True
        return False

    # -- decision --------------------------------------------------------

    def _latch(self, now: float, blink_count: int, left: bool, right: bool) -> bool:
        if not self.passed and liveness_passed(blink_count, left, right):
            self.passed = True
            self._emit("passed", now, blink_count=blink_count, elapsed_ms=self._elapsed(now))
            return True
        return False

    def evaluate(self) -> bool:
        """
        Safety net: re-check the pass predicate against committed detector state.
        Only ever upgrades `passed`; safe to call any number of times.
        """
        with self._lock:
            now = self._last_t if self._last_t is not None else self.clock()
            if self._latch(now, self.blink.blink_count, self.turn.turned_left_ever, self.turn.turned_right_ever):
                self._publish()
            return self.passed

    # -- output ----------------------------------------------------------

    def _elapsed(self, now: Optional[float]) -> float:
        if self.started_at is None or now is None:
            return 0.0
        return max(0.0, now - self.started_at)

    def snapshot(self) -> LivenessSnapshot:
        with self._lock:
            return LivenessSnapshot(
                passed=self.passed,
                blink_count=self.blink.blink_count,
                last_direction=self.turn.last_direction,
                turned_left_ever=self.turn.turned_left_ever,
                turned_right_ever=self.turn.turned_right_ever,
                smoothed_left_ear=self.ear_left.value,
                smoothed_right_ear=self.ear_right.value,
                smoothed_yaw=self.yaw.value,
                session_started_at=self.started_at,
                face_present=self.face_present,
                running=self.running,
                expired=self.expired,
                frame_count=self.frame_count,
                elapsed_ms=self._elapsed(self._last_t),
            )

    def _publish(self) -> LivenessSnapshot:
        snap = self.snapshot()
        if self.on_snapshot is not None:
            self.on_snapshot(snap)
        return snap

    def _emit(self, kind: str, ts: float, **extra):
        if self.on_event is not None:
            self.on_event(LivenessEvent(ts=ts, type=kind, extra=extra))
