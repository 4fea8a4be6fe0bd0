from __future__ import annotations
import asyncio
import websockets
from pydantic import BaseModel, ConfigDict
from typing import Optional, Literal, Dict, Any

EventType = Literal[
    "session_start", "session_reset", "session_stop",
    "face_found", "face_lost",
    "blink", "blink_rejected", "turn",
    "passed", "window_expired", "frame_dropped",
]


class LivenessSnapshot(BaseModel):
    """Externally observable session state after one frame or lifecycle call."""
    model_config = ConfigDict(frozen=True)

    passed: bool = False
    blink_count: int = 0
    last_direction: Optional[Literal["left", "right"]] = None
    turned_left_ever: bool = False
    turned_right_ever: bool = False
    smoothed_left_ear: Optional[float] = None
    smoothed_right_ear: Optional[float] = None
    smoothed_yaw: Optional[float] = None
    session_started_at: Optional[float] = None
    face_present: bool = False
    running: bool = False
    expired: bool = False
    frame_count: int = 0
    elapsed_ms: float = 0.0


class LivenessEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    ts: float
    type: EventType
    extra: Dict[str, Any] = {}


async def ws_broadcast(queue: "asyncio.Queue[str]", host="0.0.0.0", port=8765):
    """Serve a WebSocket endpoint and fan every queued message out to all connected clients."""
    clients = set()

    async def handler(websocket):
        clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            clients.discard(websocket)

    async with websockets.serve(handler, host, port):
        while True:
            msg = await queue.get()
            websockets.broadcast(clients, msg)
