from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Tuple

LOWEST_HZ = 65.41  # C2
HIGHEST_HZ = 1975.53  # B6


@dataclass(frozen=True)
class TimelinePoint:
    time_s: float
    pitches: Dict[str, Optional[float]] = field(default_factory=dict)


class PitchTimeline:
    """Rolling window of recent pitches, one entry per voiced frame."""

    def __init__(self, max_points: int = 200):
        if max_points <= 0:
            raise ValueError("max_points must be positive")
        self.max_points = max_points
        self._points: Deque[TimelinePoint] = deque(maxlen=max_points)

    def __len__(self) -> int:
        return len(self._points)

    @property
    def points(self) -> List[TimelinePoint]:
        return list(self._points)

    def add(self, time_s: float, pitches: Dict[str, Optional[float]]) -> bool:
        if all(hz is None for hz in pitches.values()):
            return False
        self._points.append(TimelinePoint(time_s, dict(pitches)))
        return True

    def series(self, source: str) -> List[Tuple[float, float]]:
        result: List[Tuple[float, float]] = []
        for point in self._points:
            hz = point.pitches.get(source)
            if hz is not None:
                result.append((point.time_s, hz))
        return result

    def clear(self) -> None:
        self._points.clear()


def frequency_to_position(hz: Optional[float], low: float = LOWEST_HZ, high: float = HIGHEST_HZ) -> Optional[float]:
    if hz is None or hz <= 0:
        return None
    position = (math.log2(hz) - math.log2(low)) / (math.log2(high) - math.log2(low))
    return min(1.0, max(0.0, position))


def pitch_bar(hz: Optional[float], width: int = 24) -> str:
    """Text meter with a marker at the pitch's place between C2 and B6."""
    position = frequency_to_position(hz)
    if position is None:
        return "." * width
    slot = min(width - 1, int(position * width))
    return "." * slot + "|" + "." * (width - slot - 1)
