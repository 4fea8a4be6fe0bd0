from __future__ import annotations
import numpy as np
import cv2
from typing import Any, Callable, Dict, Optional, Tuple


def _mediapipe_face_mesh(**opts):
    import mediapipe as mp
    return mp.solutions.face_mesh.FaceMesh(**opts)


class FaceMeshPool:
    """
    Owns loaded FaceMesh graphs, one per option set, until close().
    Pass one pool to every FaceLandmarks that should share a loaded model.
    """
    def __init__(self, factory: Callable[..., Any] = _mediapipe_face_mesh):
        self.factory = factory
        self._meshes: Dict[Tuple, Any] = {}

    def get(self, static_image_mode=False, max_num_faces=1, refine_landmarks=True,
            min_detection_confidence=0.5, min_tracking_confidence=0.5):
        key = (static_image_mode, max_num_faces, refine_landmarks,
               min_detection_confidence, min_tracking_confidence)
        if key not in self._meshes:
            self._meshes[key] = self.factory(static_image_mode=static_image_mode,
                                             max_num_faces=max_num_faces,
                                             refine_landmarks=refine_landmarks,
                                             min_detection_confidence=min_detection_confidence,
                                             min_tracking_confidence=min_tracking_confidence)
        return self._meshes[key]

    def __len__(self):
        return len(self._meshes)

    def close(self):
        for mesh in self._meshes.values():
            close = getattr(mesh, "close", None)
            if close is not None: close()
        self._meshes.clear()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FaceLandmarks:
    """First-face FaceMesh landmarks for a BGR frame, as an (N,2) normalized array, or None."""
    def __init__(self, pool: FaceMeshPool, static_image_mode=False):
        self.mesh = pool.get(static_image_mode=static_image_mode, max_num_faces=1)

    def __call__(self, frame_bgr) -> Optional[np.ndarray]:
        rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        res = self.mesh.process(rgb)
        if not res.multi_face_landmarks: return None
        lms = res.multi_face_landmarks[0]
        return np.array([(lm.x, lm.y) for lm in lms.landmark], dtype=np.float32)
