from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import time


class EventType(str, Enum):
    SESSION_STARTED = "session_started"
    SESSION_PAUSED = "session_paused"
    SESSION_RESUMED = "session_resumed"
    SESSION_STOPPED = "session_stopped"
    PHASE = "phase"
    BOTTOM = "bottom"
    SKIP = "skip"
    REP = "rep"
    TRACE = "trace"


class Leg(str, Enum):
    LEFT = "left"
    RIGHT = "right"


class QualityLabel(str, Enum):
    UNSET = "unset"
    PERFECT = "perfect"
    ALMOST_PERFECT = "almost_perfect"

    @property
    def display(self) -> str:
        # overlay text
        return _QUALITY_TEXT[self]


_QUALITY_TEXT = {
    QualityLabel.UNSET: "",
    QualityLabel.PERFECT: "Perfect ^_^",
    QualityLabel.ALMOST_PERFECT: "Almost Perfect :D",
}


@dataclass(frozen=True)
class RepCompleted:
    leg: Leg
    quality: QualityLabel
    left_count: int
    right_count: int
    ts: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "type": EventType.REP.value,
            "leg": self.leg.value,
            "quality": self.quality.value,
            "left": self.left_count,
            "right": self.right_count,
            "ts": self.ts,
        }


@dataclass
class SessionEvent:
    type: EventType
    session_id: str
    ts: float
    left: int = 0
    right: int = 0

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "session_id": self.session_id,
            "ts": self.ts,
            "left": self.left,
            "right": self.right,
        }
