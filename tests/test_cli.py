import json
from typer.testing import CliRunner
from livenesskit.cli import app
from livenesskit.io.trace import TraceWriter
from synthetic import face_pts

runner = CliRunner()

def write_passing_trace(path):
    t = 0
    with TraceWriter(path) as w:
        w.event("start", 0)
        def hold(ms, **face):
            nonlocal t
            end = t + ms
            while t < end:
                w.frame(t, face_pts(**face)); t += 20
        hold(400, ear_l=0.30)
        for _ in range(2):
            hold(300, ear_l=0.10); hold(500, ear_l=0.30)
        hold(600, ear_l=0.30, yaw=0.8); hold(600, ear_l=0.30)
        hold(600, ear_l=0.30, yaw=-0.8); hold(200, ear_l=0.30)

def test_replay_passing_trace(tmp_path):
    p = tmp_path / "pass.jsonl"; write_passing_trace(p)
    res = runner.invoke(app, ["replay", str(p), "--quiet"])
    assert res.exit_code == 0, res.output
    final = json.loads(res.output.strip().splitlines()[-1])
    assert final["passed"] and final["blink_count"] == 2

def test_replay_without_actions_fails(tmp_path):
    p = tmp_path / "idle.jsonl"
    with TraceWriter(p) as w:
        for i in range(50): w.frame(i*20, face_pts())
    res = runner.invoke(app, ["replay", str(p), "--quiet"])
    assert res.exit_code == 1
    assert json.loads(res.output.strip().splitlines()[-1])["passed"] is False

def test_replay_reset_line_clears_progress(tmp_path):
    p = tmp_path / "reset.jsonl"; write_passing_trace(p)
    with open(p, "a") as f:
        f.write(json.dumps({"event": "reset", "t": 99999}) + "\n")
    res = runner.invoke(app, ["replay", str(p), "--quiet"])
    assert res.exit_code == 1

def test_replay_bad_trace(tmp_path):
    p = tmp_path / "bad.jsonl"; p.write_text("garbage\n")
    assert runner.invoke(app, ["replay", str(p)]).exit_code == 2

def test_config_command(tmp_path):
    p = tmp_path / "c.yaml"; p.write_text("yaw_abs_threshold: 0.6\n")
    res = runner.invoke(app, ["config", "--config", str(p)])
    assert res.exit_code == 0
    assert "yaw_abs_threshold: 0.6" in res.output

def test_invalid_config_exit_code(tmp_path):
    p = tmp_path / "c.yaml"; p.write_text("ema_alpha_ear: 3\n")
    assert runner.invoke(app, ["config", "--config", str(p)]).exit_code == 2

def test_replay_threshold_override_changes_outcome(tmp_path):
    p = tmp_path / "pass.jsonl"; write_passing_trace(p)
    assert runner.invoke(app, ["replay", str(p), "--quiet"]).exit_code == 0
    res = runner.invoke(app, ["replay", str(p), "--quiet", "--yaw-hold-min-ms", "5000"])
    assert res.exit_code == 1
    final = json.loads(res.output.strip().splitlines()[-1])
    assert final["blink_count"] == 2 and not final["turned_left_ever"]

def test_replay_invalid_override(tmp_path):
    p = tmp_path / "pass.jsonl"; write_passing_trace(p)
    assert runner.invoke(app, ["replay", str(p), "--ema-alpha-ear", "2"]).exit_code == 2

def test_replay_nan_timestamp_rejected(tmp_path):
    p = tmp_path / "nan.jsonl"
    p.write_text('{"t": 0, "pts": null}\n{"t": NaN, "pts": null}\n')
    assert runner.invoke(app, ["replay", str(p)]).exit_code == 2

class NoFaces:
    def __init__(self, pool): pass
    def __call__(self, image): return None

def test_run_reports_unopenable_camera(monkeypatch):
    import livenesskit.io.camera as camera
    import livenesskit.eye.landmarks as landmarks
    from livenesskit.errors import CameraUnavailable
    def no_camera(*a, **kw):
        raise CameraUnavailable("Cannot open camera 7")
        yield
    monkeypatch.setattr(camera, "frames", no_camera)
    monkeypatch.setattr(landmarks, "FaceLandmarks", NoFaces)
    res = runner.invoke(app, ["run", "--camera", "7"])
    assert res.exit_code == 2
    assert "Camera error" in res.output

def test_run_interrupt_still_evaluates(monkeypatch):
    import numpy as np
    import livenesskit.io.camera as camera
    import livenesskit.eye.landmarks as landmarks
    from livenesskit.fuse.state import LivenessSession
    def one_frame_then_ctrl_c(*a, **kw):
        yield {"image": np.zeros((4, 4, 3), np.uint8), "t": 0.0}
        raise KeyboardInterrupt
    calls = []
    evaluate = LivenessSession.evaluate
    def tracked(self):
        calls.append(self.running)
        return evaluate(self)
    monkeypatch.setattr(camera, "frames", one_frame_then_ctrl_c)
    monkeypatch.setattr(landmarks, "FaceLandmarks", NoFaces)
    monkeypatch.setattr(LivenessSession, "evaluate", tracked)
    res = runner.invoke(app, ["run"])
    assert res.exit_code == 0, res.output
    assert calls == [True]
