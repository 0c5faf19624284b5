from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

from lungecoach.common.events import EventType, Leg, QualityLabel, RepCompleted
from lungecoach.counter.pose_core import angle_3pt, knee_depth


class DetectorStateError(RuntimeError):
    """Raised when the detector reaches a phase its own transitions cannot produce."""


@dataclass(frozen=True)
class JointIndex:
    hip: int
    knee: int
    ankle: int


# MediaPipe Pose landmark indices
LEFT_LEG = JointIndex(hip=23, knee=25, ankle=27)
RIGHT_LEG = JointIndex(hip=24, knee=26, ankle=28)


@dataclass
class LungeConfig:
    # Straight-leg band (deg), both legs, inclusive
    standing_min: float = 155.0
    standing_max: float = 180.0
    # Front knee band at the bottom (deg), inclusive
    bottom_angle_min: float = 80.0
    bottom_angle_max: float = 100.0
    # Front knee.y - hip.y (normalized), strict less-than
    bottom_depth_max: float = 0.055
    perfect_depth_max: float = 0.04
    # Front camera: the image is mirrored so sides are swapped
    mirror: bool = False

    def legs(self) -> Tuple[JointIndex, JointIndex]:
        """Return (left, right) joint indices for this camera orientation."""
        if self.mirror:
            return RIGHT_LEG, LEFT_LEG
        return LEFT_LEG, RIGHT_LEG

    @property
    def min_landmarks(self) -> int:
        left, right = self.legs()
        return max(left.hip, left.knee, left.ankle, right.hip, right.knee, right.ankle) + 1


class Phase(str, Enum):
    IDLE = "IDLE"
    STARTED = "STARTED"
    BOTTOM = "BOTTOM"


@dataclass(frozen=True)
class PendingRep:
    front_leg_is_left: bool
    quality: QualityLabel

    @property
    def leg(self) -> Leg:
        return Leg.LEFT if self.front_leg_is_left else Leg.RIGHT


@dataclass(frozen=True)
class FrameMetrics:
    """Per-frame measurements the state machine runs on.

    Angles are None when the joint vectors were degenerate for this frame.
    """
    left_angle: Optional[float]
    right_angle: Optional[float]
    left_knee_y: float
    right_knee_y: float
    left_depth: float
    right_depth: float

    @property
    def front_is_left(self) -> bool:
        # higher knee (smaller y) is the front leg; ties go right
        return self.left_knee_y < self.right_knee_y

    def front(self) -> Tuple[bool, Optional[float], float]:
        if self.front_is_left:
            return True, self.left_angle, self.left_depth
        return False, self.right_angle, self.right_depth


def measure(landmarks: Sequence, cfg: LungeConfig) -> Optional[FrameMetrics]:
    """Compute FrameMetrics from one person's landmark list; None if the frame is too short."""
    if landmarks is None or len(landmarks) < cfg.min_landmarks:
        return None
    left, right = cfg.legs()
    lh, lk, la = landmarks[left.hip], landmarks[left.knee], landmarks[left.ankle]
    rh, rk, ra = landmarks[right.hip], landmarks[right.knee], landmarks[right.ankle]
    return FrameMetrics(
        left_angle=angle_3pt(la, lk, lh),
        right_angle=angle_3pt(ra, rk, rh),
        left_knee_y=float(lk.y),
        right_knee_y=float(rk.y),
        left_depth=knee_depth(lk, lh),
        right_depth=knee_depth(rk, rh),
    )


def classify_quality(depth: float, threshold: float = 0.04) -> QualityLabel:
    return QualityLabel.PERFECT if depth < threshold else QualityLabel.ALMOST_PERFECT


def _in_band(value: Optional[float], lo: float, hi: float) -> bool:
    return value is not None and lo <= value <= hi


class LegCounters:
    """Completed reps per leg. Only ever goes up."""

    def __init__(self):
        self._left = 0
        self._right = 0

    @property
    def left(self) -> int:
        return self._left

    @property
    def right(self) -> int:
        return self._right

    def record(self, leg: Leg) -> None:
        if leg is Leg.LEFT:
            self._left += 1
        else:
            self._right += 1


class LungeRepDetector:
    """
    Lunge rep detector for one tracked person:
      IDLE → STARTED (both legs straight) → BOTTOM (front knee ~90° or knee near hip height)
      → IDLE (both legs straight again, rep++ for the front leg)
    No time-outs: a phase holds until its posture is observed.
    """
    def __init__(self, cfg: Optional[LungeConfig] = None, debug_cb: Optional[Callable[[dict], None]] = None):
        self.cfg = cfg or LungeConfig()
        self._dbg = debug_cb or (lambda *_: None)
        self.counters = LegCounters()
        self._phase = Phase.IDLE
        self._pending: Optional[PendingRep] = None
        self._quality = QualityLabel.UNSET

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def pending(self) -> Optional[PendingRep]:
        return self._pending

    @property
    def quality(self) -> QualityLabel:
        return self._quality

    @property
    def left_count(self) -> int:
        return self.counters.left

    @property
    def right_count(self) -> int:
        return self.counters.right

    def _enter_state(self, new_phase: Phase):
        if new_phase != self._phase:
            old = self._phase
            self._phase = new_phase
            self._dbg({"type": EventType.PHASE.value, "from": old.value, "to": new_phase.value})

    def _both_standing(self, m: FrameMetrics) -> bool:
        if m.left_angle is None or m.right_angle is None:
            self._dbg({"type": EventType.SKIP.value, "reason": "degenerate_geometry", "phase": self._phase.value})
            return False
        lo, hi = self.cfg.standing_min, self.cfg.standing_max
        return _in_band(m.left_angle, lo, hi) and _in_band(m.right_angle, lo, hi)

    def step(self, landmarks: Sequence) -> Optional[RepCompleted]:
        """Feed one frame of landmarks; returns the completed rep, if any."""
        metrics = measure(landmarks, self.cfg)
        if metrics is None:
            n = 0 if landmarks is None else len(landmarks)
            self._dbg({"type": EventType.SKIP.value, "reason": "malformed_frame", "landmarks": n})
            return None
        return self.advance(metrics)

    def advance(self, m: FrameMetrics) -> Optional[RepCompleted]:
        if self._phase is Phase.IDLE:
            if self._both_standing(m):
                self._enter_state(Phase.STARTED)
        elif self._phase is Phase.STARTED:
            self._check_bottom(m)
        elif self._phase is Phase.BOTTOM:
            if self._both_standing(m):
                return self._complete()
        return None

    def _check_bottom(self, m: FrameMetrics):
        cfg = self.cfg
        is_left, angle, depth = m.front()
        if angle is None:
            # collapsed front leg: its depth is meaningless too
            self._dbg({"type": EventType.SKIP.value, "reason": "degenerate_geometry", "phase": self._phase.value})
            return
        by_angle = _in_band(angle, cfg.bottom_angle_min, cfg.bottom_angle_max)
        by_depth = depth < cfg.bottom_depth_max
        if not (by_angle or by_depth):
            return

        quality = classify_quality(depth, cfg.perfect_depth_max)
        self._pending = PendingRep(front_leg_is_left=is_left, quality=quality)
        self._quality = quality
        self._enter_state(Phase.BOTTOM)
        self._dbg({
            "type": EventType.BOTTOM.value,
            "leg": self._pending.leg.value,
            "knee_angle": angle,
            "depth": depth,
            "quality": quality.value,
            "by_angle": by_angle,
            "by_depth": by_depth,
        })

    def _complete(self) -> RepCompleted:
        pending = self._pending
        if pending is None:
            raise DetectorStateError("BOTTOM phase reached without a recorded front leg")
        self.counters.record(pending.leg)
        self._pending = None
        self._enter_state(Phase.IDLE)
        return RepCompleted(
            leg=pending.leg,
            quality=pending.quality,
            left_count=self.counters.left,
            right_count=self.counters.right,
        )
