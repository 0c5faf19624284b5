from __future__ import annotations
from typing import Callable, Optional, Sequence

from lungecoach.common.events import EventType, RepCompleted
from lungecoach.counter.detector import LungeConfig, LungeRepDetector


class WebLandmarkPipeline:
    """
    A minimal 'pipeline' that consumes landmarks produced by a pose model running in the browser.
    No camera, no threads. Just call push_landmarks(landmarks).
    """
    def __init__(
        self,
        cfg: LungeConfig,
        on_rep: Callable[[RepCompleted], None],
        debug_cb: Optional[Callable[[dict], None]] = None,
    ):
        self.cfg = cfg
        self.on_rep = on_rep
        self.debug_cb = debug_cb
        self.detector = LungeRepDetector(cfg, debug_cb=debug_cb)
        self._running = True

    # keep for API parity with PosePipeline
    def start(self):
        self._running = True

    def stop(self):
        self._running = False

    def pause(self):
        self._running = False

    def resume(self):
        self._running = True

    def join(self, timeout: Optional[float] = None):
        return

    def push_landmarks(self, landmarks: Sequence) -> Optional[RepCompleted]:
        """Feed one frame of landmarks (objects with .x/.y/.z)."""
        if not self._running:
            return None
        rep = self.detector.step(landmarks)
        if rep is None:
            return None
        if self.debug_cb:
            self.debug_cb({"type": EventType.TRACE.value, "msg": f"rep++ ({rep.leg.value}, {rep.quality.value})"})
        self.on_rep(rep)
        return rep
