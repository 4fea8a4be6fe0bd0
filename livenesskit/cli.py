from __future__ import annotations
import typer, asyncio
from rich.console import Console
from rich.table import Table
from typing import Optional
from .errors import CameraUnavailable, InvalidConfig
from .fuse.config import LivenessConfig, resolve_config, dump_config
from .fuse.state import LivenessSession
from .runtime.events import LivenessEvent, LivenessSnapshot, ws_broadcast

app = typer.Typer(add_completion=False, help="livenesskit CLI (lvk): blink + head-turn liveness")
err = Console(stderr=True)

_STYLE = {"blink": "cyan", "turn": "magenta", "passed": "bold green", "face_lost": "yellow",
          "window_expired": "red", "blink_rejected": "dim"}


def _config(config: Optional[str], **overrides) -> LivenessConfig:
    try:
        return resolve_config(config, **overrides)
    except InvalidConfig as e:
        err.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(code=2)


def _tuning(help: str):
    return typer.Option(None, help=help)


def _event_printer(verbose: bool):
    def show(ev: LivenessEvent):
        if not verbose and ev.type in ("blink_rejected", "frame_dropped"):
            return
        style = _STYLE.get(ev.type, "white")
        extra = " ".join(f"{k}={v:.1f}" if isinstance(v, float) else f"{k}={v}" for k, v in ev.extra.items())
        err.print(f"[{style}]{ev.type}[/{style}] t={ev.ts:.0f}ms {extra}")
    return show


def _summary(snap: LivenessSnapshot):
    tbl = Table(title="Liveness", show_header=False)
    tbl.add_row("passed", "[green]true[/green]" if snap.passed else "[yellow]false[/yellow]")
    tbl.add_row("blink_count", str(snap.blink_count))
    tbl.add_row("last_direction", snap.last_direction or "-")
    tbl.add_row("turned left / right", f"{snap.turned_left_ever} / {snap.turned_right_ever}")
    tbl.add_row("frames", str(snap.frame_count))
    tbl.add_row("elapsed", f"{snap.elapsed_ms/1000:.1f}s")
    if snap.expired: tbl.add_row("session window", "[red]expired[/red]")
    err.print(tbl)


@app.command()
def run(config: Optional[str] = typer.Option(None, help="YAML file with LivenessConfig fields"),
        camera: int = 0, width: int = 640, height: int = 480,
        mirror: bool = typer.Option(True, help="Flip frames horizontally like a front camera preview"),
        ws: Optional[str] = typer.Option(None, help="Broadcast snapshots over WebSocket at host:port"),
        record: Optional[str] = typer.Option(None, help="Write a JSONL trace for `lvk replay`"),
        exit_on_pass: bool = typer.Option(False, help="Stop as soon as liveness passes"),
        verbose: bool = False,
        ear_close_threshold: Optional[float] = _tuning("EAR below which the eyes count as closed"),
        ear_open_margin: Optional[float] = _tuning("EAR margin above the close threshold to reopen"),
        ear_close_min_ms: Optional[float] = _tuning("Shortest closure that counts as a blink"),
        blink_refractory_ms: Optional[float] = _tuning("Minimum gap between counted blinks"),
        yaw_abs_threshold: Optional[float] = _tuning("Yaw proxy magnitude that counts as turned"),
        yaw_hold_min_ms: Optional[float] = _tuning("How long a turn must be held"),
        ema_alpha_ear: Optional[float] = _tuning("Smoothing weight of new EAR samples"),
        ema_alpha_yaw: Optional[float] = _tuning("Smoothing weight of new yaw samples"),
        session_window_ms: Optional[float] = _tuning("Session window length"),
        enforce_window: Optional[bool] = typer.Option(None, help="Stop scoring after session_window_ms")):
    """
    Score the live camera stream and print one JSON snapshot per frame.
    """
    from .io.camera import frames
    from .io.trace import TraceWriter
    from .eye.landmarks import FaceLandmarks, FaceMeshPool

    cfg = _config(config, ear_close_threshold=ear_close_threshold, ear_open_margin=ear_open_margin,
                  ear_close_min_ms=ear_close_min_ms, blink_refractory_ms=blink_refractory_ms,
                  yaw_abs_threshold=yaw_abs_threshold, yaw_hold_min_ms=yaw_hold_min_ms,
                  ema_alpha_ear=ema_alpha_ear, ema_alpha_yaw=ema_alpha_yaw,
                  session_window_ms=session_window_ms, enforce_session_window=enforce_window)
    queue: "asyncio.Queue[str]" = asyncio.Queue()
    session = LivenessSession(cfg, on_event=_event_printer(verbose))
    writer = TraceWriter(record) if record else None

    async def producer(pool: FaceMeshPool):
        faces = FaceLandmarks(pool)
        started = False
        for f in frames(camera, width, height, mirror):
            if not started:
                session.start(f["t"]); started = True
                if writer: writer.event("start", f["t"])
            pts = faces(f["image"])
            if writer: writer.frame(f["t"], pts)
            snap = session.process_frame(pts, f["t"])
            line = snap.model_dump_json()
            typer.echo(line)
            if ws: await queue.put(line)
            await asyncio.sleep(0)
            if exit_on_pass and snap.passed:
                break
        session.evaluate()
        session.stop()

    async def main(pool: FaceMeshPool):
        if ws:
            host, _, port = ws.rpartition(":")
            bcast = asyncio.create_task(ws_broadcast(queue, host or "0.0.0.0", int(port)))
            try:
                await producer(pool)
            finally:
                bcast.cancel()
        else:
            await producer(pool)

    try:
        with FaceMeshPool() as pool:
            asyncio.run(main(pool))
    except CameraUnavailable as e:
        err.print(f"[red]Camera error:[/red] {e}")
        raise typer.Exit(code=2)
    except ImportError as e:
        err.print(f"[red]Landmark model unavailable:[/red] {e} (install with `pip install livenesskit\\[mediapipe]`)")
        raise typer.Exit(code=2)
    except KeyboardInterrupt:
        session.evaluate()
        session.stop()
    finally:
        if writer: writer.close()
    _summary(session.snapshot())


@app.command()
def replay(trace: str = typer.Argument(..., help="JSONL trace recorded with `lvk run --record`"),
           config: Optional[str] = typer.Option(None, help="YAML file with LivenessConfig fields"),
           quiet: bool = typer.Option(False, help="Only print the final snapshot"),
           verbose: bool = False,
           ear_close_threshold: Optional[float] = _tuning("EAR below which the eyes count as closed"),
           ear_open_margin: Optional[float] = _tuning("EAR margin above the close threshold to reopen"),
           ear_close_min_ms: Optional[float] = _tuning("Shortest closure that counts as a blink"),
           blink_refractory_ms: Optional[float] = _tuning("Minimum gap between counted blinks"),
           yaw_abs_threshold: Optional[float] = _tuning("Yaw proxy magnitude that counts as turned"),
           yaw_hold_min_ms: Optional[float] = _tuning("How long a turn must be held"),
           ema_alpha_ear: Optional[float] = _tuning("Smoothing weight of new EAR samples"),
           ema_alpha_yaw: Optional[float] = _tuning("Smoothing weight of new yaw samples"),
           session_window_ms: Optional[float] = _tuning("Session window length"),
           enforce_window: Optional[bool] = typer.Option(None, help="Stop scoring after session_window_ms")):
    """
    Score a recorded trace offline. Exit code 0 when liveness passed, 1 otherwise.
    """
    from .io.trace import read_trace

    cfg = _config(config, ear_close_threshold=ear_close_threshold, ear_open_margin=ear_open_margin,
                  ear_close_min_ms=ear_close_min_ms, blink_refractory_ms=blink_refractory_ms,
                  yaw_abs_threshold=yaw_abs_threshold, yaw_hold_min_ms=yaw_hold_min_ms,
                  ema_alpha_ear=ema_alpha_ear, ema_alpha_yaw=ema_alpha_yaw,
                  session_window_ms=session_window_ms, enforce_session_window=enforce_window)
    session = LivenessSession(cfg, on_event=None if quiet else _event_printer(verbose))
    started = False
    try:
        for rec in read_trace(trace):
            if rec.event in ("start", "reset"):
                getattr(session, rec.event)(rec.t); started = True
                continue
            if rec.event == "stop":
                session.stop(); continue
            if rec.event == "evaluate":
                session.evaluate(); continue
            if not started:
                session.start(rec.t); started = True
            snap = session.process_frame(rec.pts, rec.t)
            if not quiet:
                typer.echo(snap.model_dump_json())
    except (OSError, ValueError) as e:
        err.print(f"[red]Cannot replay {trace}:[/red] {e}")
        raise typer.Exit(code=2)
    session.evaluate()
    final = session.snapshot()
    if quiet:
        typer.echo(final.model_dump_json())
    else:
        _summary(final)
    raise typer.Exit(code=0 if final.passed else 1)


@app.command("config")
def show_config(config: Optional[str] = typer.Option(None, help="YAML file with LivenessConfig fields")):
    """
    Print the effective configuration as YAML.
    """
    typer.echo(dump_config(_config(config)), nl=False)


if __name__ == "__main__":
    app()
