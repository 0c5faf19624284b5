from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

# Vectors shorter than this are treated as coincident landmarks
EPSILON = 1e-6


@dataclass(frozen=True)
class Landmark:
    """Normalized joint coordinate (x,y relative to image size, y down; z relative depth)."""
    x: float
    y: float
    z: float = 0.0


# Utility math

def vector(a, b) -> np.ndarray:
    """Return a - b for any two objects exposing .x/.y/.z."""
    return np.array([a.x - b.x, a.y - b.y, a.z - b.z], dtype=float)


def angle_3pt(a, b, c) -> Optional[float]:
    """Return angle ABC in degrees with B as vertex, or None if degenerate."""
    v1 = vector(a, b)
    v2 = vector(c, b)
    if not (np.all(np.isfinite(v1)) and np.all(np.isfinite(v2))):
        return None
    n1 = float(np.linalg.norm(v1))
    n2 = float(np.linalg.norm(v2))
    if n1 < EPSILON or n2 < EPSILON:
        return None
    cos = float(np.dot(v1, v2)) / (n1 * n2)
    cos = max(-1.0, min(1.0, cos))
    return math.degrees(math.acos(cos))


def knee_depth(knee, hip) -> float:
    """Vertical knee-to-hip offset; smaller means the knee sits higher relative to the hip."""
    return float(knee.y - hip.y)
