from __future__ import annotations
import asyncio
import json
from typing import List, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from lungecoach.common.events import EventType
from lungecoach.counter.session import LungeSessionManager

app = FastAPI()


class LandmarkIn(BaseModel):
    x: float
    y: float
    z: float = 0.0


class LandmarkMessage(BaseModel):
    type: str = Field("landmarks", description="Message kind; only 'landmarks' is handled")
    landmarks: List[LandmarkIn] = Field(default_factory=list)


MANAGER = LungeSessionManager()


def ACTIVE_MANAGER() -> LungeSessionManager:
    return MANAGER


_PENDING: Set[asyncio.Task] = set()
# server event loop, recorded from inside a handler; the camera thread schedules onto it
_LOOP: Optional[asyncio.AbstractEventLoop] = None


def _remember_loop():
    global _LOOP
    _LOOP = asyncio.get_running_loop()


# let the manager emit events to all WS clients
def _sink(ev: dict):
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None
    if loop is None:
        # camera thread
        if _LOOP is not None and not _LOOP.is_closed():
            asyncio.run_coroutine_threadsafe(broadcast(ev), _LOOP)
        return
    task = loop.create_task(broadcast(ev))
    _PENDING.add(task)
    task.add_done_callback(_PENDING.discard)


MANAGER.set_event_sink(_sink)


@app.get("/sessions/current")
async def current():
    m = ACTIVE_MANAGER()
    st = m.status()
    return JSONResponse({
        "state": "running" if st.state == "running" else "idle",
        "session_id": m.active_id,
        "left": st.left,
        "right": st.right,
        "quality": st.quality,
        "mirror": getattr(m.active_cfg, "mirror", None),
        "web_mode": m.web_mode,
    })


@app.post("/counter/start")
async def start(mirror: bool = False, camera: int = 0):
    _remember_loop()
    m = ACTIVE_MANAGER()
    sid, status = m.start(mirror=mirror, camera_index=camera)
    return {"session_id": sid, "status": status}


@app.post("/counter/pause")
async def pause():
    return {"session_id": ACTIVE_MANAGER().pause(), "status": "paused"}


@app.post("/counter/resume")
async def resume():
    return {"session_id": ACTIVE_MANAGER().resume(), "status": "resumed"}


@app.post("/counter/stop")
async def stop():
    m = ACTIVE_MANAGER()
    final = m.stop(m.active_id)
    return JSONResponse({
        "stopped": True,
        "session_id": final.session_id,
        "left": final.left,
        "right": final.right,
        "total_reps": final.total_reps,
    })


@app.websocket("/ws/landmarks")
async def ws_landmarks(ws: WebSocket):
    _remember_loop()
    await ws.accept()
    WS_CLIENTS.add(ws)
    ACTIVE_MANAGER().set_web_mode(True)
    await broadcast({"type": EventType.TRACE.value, "msg": "ws: client connected"})
    try:
        while True:
            raw = await ws.receive_text()
            try:
                msg = LandmarkMessage.model_validate(json.loads(raw))
            except (json.JSONDecodeError, ValidationError) as exc:
                await broadcast({"type": EventType.TRACE.value, "msg": f"ws: dropped invalid message ({exc.__class__.__name__})"})
                continue
            if msg.type != "landmarks":
                continue
            ACTIVE_MANAGER().push_landmarks(msg.landmarks)
    except WebSocketDisconnect:
        pass
    finally:
        WS_CLIENTS.discard(ws)
        if not WS_CLIENTS:
            ACTIVE_MANAGER().set_web_mode(False)
        await broadcast({"type": EventType.TRACE.value, "msg": "ws closed"})


WS_CLIENTS: Set[WebSocket] = set()


async def broadcast(obj: dict):
    dead = []
    for ws in list(WS_CLIENTS):
        try:
            await ws.send_text(json.dumps(obj))
        except (RuntimeError, WebSocketDisconnect):
            dead.append(ws)
    for d in dead:
        WS_CLIENTS.discard(d)
