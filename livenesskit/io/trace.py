from __future__ import annotations
import json, math
import numpy as np
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, TextIO

LIFECYCLE = ("start", "reset", "stop", "evaluate")


@dataclass
class TraceRecord:
    """One JSONL line: a frame (`pts` may be None for "no face") or a lifecycle call."""
    t: Optional[float] = None
    pts: Optional[np.ndarray] = None
    event: Optional[str] = None

    @property
    def is_frame(self) -> bool:
        return self.event is None


def parse_record(line: str, lineno: int = 0) -> TraceRecord:
    try:
        obj = json.loads(line)
    except json.JSONDecodeError as e:
        raise ValueError(f"line {lineno}: invalid JSON ({e.msg})") from e
    if not isinstance(obj, dict):
        raise ValueError(f"line {lineno}: expected an object")
    t = obj.get("t")
    if t is not None:
        try:
            t = float(t)
        except (TypeError, ValueError):
            raise ValueError(f"line {lineno}: timestamp 't' is not a number") from None
        if not math.isfinite(t):
            raise ValueError(f"line {lineno}: timestamp 't' must be finite, got {t!r}")
    if "event" in obj:
        if obj["event"] not in LIFECYCLE:
            raise ValueError(f"line {lineno}: unknown event {obj['event']!r}")
        return TraceRecord(t=t, event=obj["event"])
    if t is None:
        raise ValueError(f"line {lineno}: frame without timestamp 't'")
    pts = obj.get("pts")
    return TraceRecord(t=t, pts=None if pts is None else np.asarray(pts, dtype=np.float32))


def read_trace(path: str|Path) -> Iterator[TraceRecord]:
    with open(path, "r") as f:
        for i, line in enumerate(f, 1):
            if not line.strip(): continue
            yield parse_record(line, i)


class TraceWriter:
    """Append frames to a JSONL trace that `lvk replay` can score offline."""
    def __init__(self, path: str|Path, decimals: int = 5):
        self.path = Path(path)
        self.decimals = decimals
        self._f: Optional[TextIO] = open(self.path, "w")

    def frame(self, t: float, pts: Optional[np.ndarray]):
        row = None if pts is None else np.round(np.asarray(pts, dtype=float)[:, :2], self.decimals).tolist()
        self._write({"t": round(float(t), 3), "pts": row})

    def event(self, name: str, t: Optional[float] = None):
        if name not in LIFECYCLE:
            raise ValueError(f"unknown event {name!r}")
        self._write({"event": name, "t": t})

    def _write(self, obj):
        self._f.write(json.dumps(obj) + "\n")

    def close(self):
        if self._f is not None:
            self._f.close(); self._f = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
