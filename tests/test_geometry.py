import numpy as np
import pytest
from livenesskit.errors import InsufficientLandmarks
from livenesskit.eye.geometry import ear, eye_aspect_ratios, yaw_proxy, LEFT_EYE, RIGHT_EYE
from synthetic import face_pts

def test_ear_matches_lid_opening():
    l, r = eye_aspect_ratios(face_pts(ear_l=0.30, ear_r=0.12))
    assert l == pytest.approx(0.30)
    assert r == pytest.approx(0.12)

def test_yaw_sign_and_scale():
    assert yaw_proxy(face_pts(yaw=0.0)) == pytest.approx(0.0)
    assert yaw_proxy(face_pts(yaw=0.7)) == pytest.approx(0.7)
    assert yaw_proxy(face_pts(yaw=-0.7)) == pytest.approx(-0.7)

def test_accepts_xyz_points():
    pts = np.concatenate([face_pts(), np.zeros((478, 1))], axis=1)
    assert ear(pts, LEFT_EYE) == pytest.approx(0.30)

def test_too_few_points():
    with pytest.raises(InsufficientLandmarks):
        ear(face_pts()[:100], RIGHT_EYE)

def test_wrong_shape():
    with pytest.raises(InsufficientLandmarks):
        yaw_proxy(np.zeros(478))

def test_degenerate_eye():
    pts = face_pts()
    pts[133] = pts[33]
    with pytest.raises(InsufficientLandmarks):
        ear(pts, LEFT_EYE)

def test_insufficient_is_value_error():
    with pytest.raises(ValueError):
        yaw_proxy([[0.1, 0.2]])
