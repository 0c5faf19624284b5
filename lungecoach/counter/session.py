from __future__ import annotations
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from lungecoach.common.events import EventType, RepCompleted, SessionEvent
from lungecoach.counter.detector import LungeConfig
from lungecoach.counter.web_pipeline import WebLandmarkPipeline


@dataclass
class SessionStatus:
    session_id: str
    state: str
    left: int
    right: int
    quality: str


@dataclass
class FinalSummary:
    session_id: str
    left: int
    right: int

    @property
    def total_reps(self) -> int:
        return self.left + self.right


class LungeSessionManager:
    """Owns at most one active pipeline; every start gets a fresh detector."""

    def __init__(self):
        self.active_id: Optional[str] = None
        self.active_pipeline = None
        self.active_cfg: Optional[LungeConfig] = None
        self.web_mode: bool = False           # browser is feeding landmarks
        self._event_sink: Optional[Callable[[dict], None]] = None

    def set_event_sink(self, sink: Callable[[dict], None]):
        self._event_sink = sink

    def _emit(self, payload: dict):
        if self._event_sink is not None:
            self._event_sink(payload)

    def _emit_debug(self, ev):
        """Forward detector/pipeline traces to the sink; non-dicts become trace lines."""
        if isinstance(ev, dict):
            self._emit(ev)
        else:
            self._emit({"type": EventType.TRACE.value, "msg": str(ev)})

    def _session_event(self, kind: EventType):
        left, right = self.counts()
        self._emit(SessionEvent(kind, self.active_id or "", time.time(), left, right).to_dict())

    def _on_rep(self, rep: RepCompleted):
        payload = rep.to_dict()
        payload["session_id"] = self.active_id
        self._emit(payload)

    def _on_error(self, msg: str):
        # Called from pipeline thread on error
        self.active_pipeline = None
        self.active_cfg = None
        self.active_id = None
        self._emit({"type": EventType.TRACE.value, "msg": f"pipeline error: {msg}"})

    @property
    def detector(self):
        # single read: _on_error may clear it from the camera thread
        pipe = self.active_pipeline
        if pipe is None:
            return None
        return pipe.detector

    def counts(self):
        det = self.detector
        if det is None:
            return 0, 0
        return det.left_count, det.right_count

    def start(self, mirror: bool = False, camera_index: int = 0, show_window: bool = False):
        # stop existing session if any
        if self.active_pipeline is not None:
            self.stop(self.active_id)

        sid = str(uuid.uuid4())
        self.active_id = sid
        cfg = LungeConfig(mirror=mirror)
        self.active_cfg = cfg

        if self.web_mode:
            pipe = WebLandmarkPipeline(cfg, on_rep=self._on_rep, debug_cb=self._emit_debug)
        else:
            # camera stack is only needed for native capture
            from lungecoach.counter.pipeline import PosePipeline
            pipe = PosePipeline(
                cfg,
                on_rep=self._on_rep,
                camera_index=camera_index,
                show_window=show_window,
                on_error=self._on_error,
                debug_cb=self._emit_debug,
            )

        self.active_pipeline = pipe
        pipe.start()
        self._session_event(EventType.SESSION_STARTED)
        return sid, "started lunges"

    def push_landmarks(self, landmarks) -> Optional[RepCompleted]:
        if isinstance(self.active_pipeline, WebLandmarkPipeline):
            return self.active_pipeline.push_landmarks(landmarks)
        return None

    def pause(self, session_id: Optional[str] = None) -> str:
        if self.active_pipeline is None:
            return self.active_id or ""
        self.active_pipeline.pause()
        self._session_event(EventType.SESSION_PAUSED)
        return self.active_id or ""

    def resume(self, session_id: Optional[str] = None) -> str:
        if self.active_pipeline is None:
            return self.active_id or ""
        self.active_pipeline.resume()
        self._session_event(EventType.SESSION_RESUMED)
        return self.active_id or ""

    def stop(self, session_id: Optional[str] = None) -> FinalSummary:
        sid = self.active_id or ""
        left, right = self.counts()
        if self.active_pipeline is not None:
            self.active_pipeline.stop()
            self.active_pipeline.join(timeout=1.0)
            self._session_event(EventType.SESSION_STOPPED)
        self.active_pipeline = None
        self.active_cfg = None
        self.active_id = None
        return FinalSummary(session_id=sid, left=left, right=right)

    def status(self, session_id: Optional[str] = None) -> SessionStatus:
        left, right = self.counts()
        det = self.detector
        return SessionStatus(
            session_id=self.active_id or "",
            state=("running" if self.active_pipeline else "stopped"),
            left=left,
            right=right,
            quality=det.quality.value if det is not None else "unset",
        )

    # Enable/disable web mode (called by WS on connect/disconnect)
    def set_web_mode(self, active: bool):
        self.web_mode = bool(active)
