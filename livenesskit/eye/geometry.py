from __future__ import annotations
import numpy as np
from typing import Sequence, Tuple
from ..errors import InsufficientLandmarks

# MediaPipe FaceMesh indices: (upper lid, lower lid, outer corner, inner corner)
LEFT_EYE = (159, 145, 33, 133)
RIGHT_EYE = (386, 374, 263, 362)

NOSE_TIP = 1
FACE_LEFT = 234   # cheek contour, image-left
FACE_RIGHT = 454  # cheek contour, image-right

REQUIRED = sorted({*LEFT_EYE, *RIGHT_EYE, NOSE_TIP, FACE_LEFT, FACE_RIGHT})

_EPS = 1e-6


def take(pts, idx: Sequence[int]) -> np.ndarray:
    """Return the (len(idx), 2) xy rows of `pts`, failing fast on a malformed set."""
    arr = np.asarray(pts, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] < 2:
        raise InsufficientLandmarks(f"expected (N,2) or (N,3) landmarks, got shape {arr.shape}")
    if arr.shape[0] <= max(idx):
        raise InsufficientLandmarks(f"need index {max(idx)}, landmark set has {arr.shape[0]} points")
    return arr[list(idx), :2]


def ear(pts, eye: Tuple[int,int,int,int] = LEFT_EYE) -> float:
    """Eye aspect ratio = |upper-lower| / |outer-inner|."""
    top, bottom, outer, inner = take(pts, eye)
    horiz = float(np.linalg.norm(outer - inner))
    if horiz <= _EPS:
        raise InsufficientLandmarks("degenerate eye: corners coincide")
    return float(np.linalg.norm(top - bottom)) / horiz


def eye_aspect_ratios(pts) -> Tuple[float, float]:
    return ear(pts, LEFT_EYE), ear(pts, RIGHT_EYE)


def yaw_proxy(pts) -> float:
    """
    Horizontal offset of the nose tip from the cheek midpoint, in half face widths.
    0 is frontal, positive when the nose moves toward image-right, about +-1 at profile.
    """
    nose, left, right = take(pts, (NOSE_TIP, FACE_LEFT, FACE_RIGHT))
    half = abs(right[0] - left[0]) / 2.0
    if half <= _EPS:
        raise InsufficientLandmarks("degenerate face: cheek contour points coincide")
    mid = (left[0] + right[0]) / 2.0
    return float((nose[0] - mid) / half)
