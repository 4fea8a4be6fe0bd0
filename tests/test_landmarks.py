import numpy as np
from types import SimpleNamespace
from livenesskit.eye.landmarks import FaceMeshPool, FaceLandmarks

class FakeMesh:
    def __init__(self, faces, **opts):
        self.faces = faces; self.opts = opts; self.closed = False
    def process(self, rgb):
        if not self.faces: return SimpleNamespace(multi_face_landmarks=None)
        return SimpleNamespace(multi_face_landmarks=[
            SimpleNamespace(landmark=[SimpleNamespace(x=x, y=y, z=0.0) for x, y in f]) for f in self.faces])
    def close(self):
        self.closed = True

def test_pool_loads_each_option_set_once():
    made = []
    pool = FaceMeshPool(factory=lambda **o: made.append(o) or FakeMesh([], **o))
    a = pool.get(); b = pool.get()
    c = pool.get(static_image_mode=True)
    assert a is b and a is not c
    assert len(made) == 2 and len(pool) == 2
    assert made[0]["max_num_faces"] == 1 and made[0]["refine_landmarks"]

def test_pool_close_releases_meshes():
    with FaceMeshPool(factory=lambda **o: FakeMesh([], **o)) as pool:
        mesh = pool.get()
    assert mesh.closed and len(pool) == 0

def test_first_face_only():
    faces = [[(0.1, 0.2), (0.3, 0.4)], [(0.9, 0.9), (0.8, 0.8)]]
    pool = FaceMeshPool(factory=lambda **o: FakeMesh(faces, **o))
    pts = FaceLandmarks(pool)(np.zeros((4, 4, 3), np.uint8))
    assert pts.shape == (2, 2)
    assert np.allclose(pts, [[0.1, 0.2], [0.3, 0.4]])

def test_no_face_is_none():
    pool = FaceMeshPool(factory=lambda **o: FakeMesh([], **o))
    assert FaceLandmarks(pool)(np.zeros((4, 4, 3), np.uint8)) is None
