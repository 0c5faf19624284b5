"""Offline replay of recorded landmark streams.

Each line of a replay file is one frame for one person::

    {"landmarks": [{"x": 0.51, "y": 0.43, "z": -0.02, "visibility": 0.98}, ...]}

Extra keys (visibility, timestamp, frame_index) are ignored. Blank lines are skipped.
"""

from __future__ import annotations
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional

from lungecoach.common.events import RepCompleted
from lungecoach.counter.detector import LungeConfig, LungeRepDetector
from lungecoach.counter.pose_core import Landmark


@dataclass
class ReplaySummary:
    frames: int
    left: int
    right: int
    quality: str
    reps: List[RepCompleted] = field(default_factory=list)


def _landmarks_from_obj(obj: dict) -> List[Landmark]:
    return [Landmark(x=float(lm["x"]), y=float(lm["y"]), z=float(lm.get("z", 0.0))) for lm in obj["landmarks"]]


def load_frames(path: Path) -> Iterator[List[Landmark]]:
    """Read landmark frames from a JSONL replay file."""
    with Path(path).open("r", encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            if not line.strip():
                continue
            try:
                yield _landmarks_from_obj(json.loads(line))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
                raise ValueError(f"{path}:{lineno}: invalid landmark frame ({exc})") from exc


def run_frames(
    frames: Iterable,
    cfg: Optional[LungeConfig] = None,
    on_rep: Optional[Callable[[RepCompleted], None]] = None,
    debug_cb: Optional[Callable[[dict], None]] = None,
) -> ReplaySummary:
    """Push frames through a fresh detector in order and summarize the outcome."""
    detector = LungeRepDetector(cfg, debug_cb=debug_cb)
    reps: List[RepCompleted] = []
    n = 0
    for landmarks in frames:
        n += 1
        rep = detector.step(landmarks)
        if rep is not None:
            reps.append(rep)
            if on_rep is not None:
                on_rep(rep)
    return ReplaySummary(
        frames=n,
        left=detector.left_count,
        right=detector.right_count,
        quality=detector.quality.value,
        reps=reps,
    )
