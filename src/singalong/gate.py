from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from .dsp import rms

LEVEL_FULL_SCALE = 0.1


@dataclass(frozen=True)
class GateReading:
    rms: float
    level: float
    threshold: float
    is_open: bool


def level_percent(value: float, full_scale: float = LEVEL_FULL_SCALE) -> float:
    return min(100.0, value / full_scale * 100.0)


class SignalGate:
    """RMS noise gate with one threshold per input source."""

    def __init__(self, thresholds: Optional[Dict[str, float]] = None, default_threshold: float = 0.008):
        self.default_threshold = default_threshold
        self.thresholds: Dict[str, float] = {}
        for source, value in (thresholds or {}).items():
            self.set_threshold(source, value)

    def threshold_for(self, source: str) -> float:
        return self.thresholds.get(source, self.default_threshold)

    def set_threshold(self, source: str, value: float) -> None:
        if value < 0:
            raise ValueError(f"RMS threshold must be >= 0, got {value}")
        self.thresholds[source] = float(value)

    def evaluate(self, frame: np.ndarray, source: str) -> GateReading:
        value = rms(frame)
        threshold = self.threshold_for(source)
        return GateReading(
            rms=value,
            level=level_percent(value),
            threshold=threshold,
            is_open=value >= threshold,
        )
