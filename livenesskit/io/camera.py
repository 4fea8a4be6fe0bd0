from __future__ import annotations
import cv2, time
from typing import Iterator, Dict, Any
from ..errors import CameraUnavailable


def frames(camera: int|str=0, width: int=640, height: int=480, mirror: bool=True) -> Iterator[Dict[str,Any]]:
    """Yield {"image": BGR frame, "t": monotonic ms} until the capture runs dry."""
    cap = cv2.VideoCapture(camera)
    if width:  cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    if height: cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    if not cap.isOpened():
        raise CameraUnavailable(f"Cannot open camera {camera!r} (busy, missing or permission denied)")
    try:
        while True:
            ok, frame = cap.read()
            if not ok: break
            if mirror: frame = cv2.flip(frame, 1)
            yield {"image": frame, "t": time.monotonic()*1000.0}
    finally:
        cap.release()
