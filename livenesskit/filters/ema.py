from __future__ import annotations
from typing import Optional


def ema(prev: Optional[float], x: float, alpha: float) -> float:
    """Single-pole low-pass: alpha weights the new sample, first sample passes through."""
    if prev is None:
        return x
    return alpha*x + (1.0-alpha)*prev


class EMA:
    """Stateful wrapper around ema(); one instance per signal per session."""
    def __init__(self, alpha: float = 0.35):
        self.alpha = alpha
        self.value: Optional[float] = None

    def __call__(self, x: float) -> float:
        self.value = ema(self.value, x, self.alpha)
        return self.value

    def reset(self):
        self.value = None
