from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Optional, Tuple

import numpy as np

from .compare import MatchResult, compare
from .config import MonitorConfig, SourceConfig, VocalBand
from .dsp import validate_block, vocal_filter
from .gate import GateReading, SignalGate
from .notes import NoteResult, frequency_to_note
from .pitch import PitchEstimate, PitchEstimator
from .timeline import PitchTimeline

logger = logging.getLogger(__name__)

# Each source maps to (samples, sample_rate) for one frame.
FrameBlocks = Dict[str, Tuple[np.ndarray, float]]


class MonitorState(Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class SourceReading:
    source: str
    gate: GateReading
    estimate: PitchEstimate
    note: Optional[NoteResult]

    @property
    def hz(self) -> Optional[float]:
        return self.estimate.hz


@dataclass
class FrameResult:
    time_s: float
    readings: Dict[str, SourceReading]
    match: MatchResult


class SourcePipeline:
    def __init__(self, name: str, gate: SignalGate, estimator: PitchEstimator, band: VocalBand):
        self.name = name
        self.gate = gate
        self.estimator = estimator
        self.band = band

    @classmethod
    def from_config(cls, config: SourceConfig) -> "SourcePipeline":
        gate = SignalGate({config.name: config.rms_threshold})
        return cls(config.name, gate, PitchEstimator(config.detection, config.band), config.band)

    def process(self, frame: np.ndarray, sample_rate: float) -> SourceReading:
        x = validate_block(frame, sample_rate, self.estimator.config.window_size)
        reading = self.gate.evaluate(x, self.name)
        if not reading.is_open:
            logger.debug("%s: gate closed (rms=%.5f < %.5f)", self.name, reading.rms, reading.threshold)
            return SourceReading(self.name, reading, PitchEstimate(None, 0.0), None)

        if self.band.enabled:
            x = vocal_filter(x, sample_rate, self.band.low_hz, self.band.high_hz)
        estimate = self.estimator.estimate(x, sample_rate)
        return SourceReading(self.name, reading, estimate, frequency_to_note(estimate.hz))


class PitchMonitor:
    """Start/stop state machine driving one analysis step per frame."""

    def __init__(self, config: Optional[MonitorConfig] = None):
        self.config = config or MonitorConfig()
        self.pipelines: Dict[str, SourcePipeline] = {
            name: SourcePipeline.from_config(source) for name, source in self.config.sources.items()
        }
        self.timeline = PitchTimeline(self.config.timeline.max_points)
        self.state = MonitorState.IDLE

    @property
    def running(self) -> bool:
        return self.state is MonitorState.RUNNING

    def start(self) -> None:
        if self.running:
            return
        self.timeline.clear()
        self.state = MonitorState.RUNNING
        logger.info("Monitoring started (%s)", ", ".join(self.pipelines))

    def stop(self) -> None:
        if not self.running:
            return
        self.state = MonitorState.IDLE
        logger.info("Monitoring stopped")

    def step(self, blocks: FrameBlocks, time_s: float = 0.0) -> Optional[FrameResult]:
        if not self.running:
            return None

        readings: Dict[str, SourceReading] = {}
        for name, (frame, sample_rate) in blocks.items():
            pipeline = self.pipelines.get(name)
            if pipeline is None:
                raise KeyError(f"No pipeline configured for source {name!r}")
            readings[name] = pipeline.process(frame, sample_rate)

        singer = readings.get(self.config.singer)
        reference = readings.get(self.config.reference)
        match = compare(
            singer.hz if singer else None,
            reference.hz if reference else None,
            self.config.comparator,
        )
        self.timeline.add(time_s, {name: reading.hz for name, reading in readings.items()})
        return FrameResult(time_s, readings, match)

    def run(
        self,
        frames: Iterable[Tuple[float, FrameBlocks]],
        on_frame: Optional[Callable[[FrameResult], None]] = None,
    ) -> int:
        """Process frames until they run out or the monitor is stopped."""
        self.start()
        processed = 0
        for time_s, blocks in frames:
            if not self.running:
                break
            result = self.step(blocks, time_s)
            if result is None:
                break
            processed += 1
            if on_frame is not None:
                on_frame(result)
        self.stop()
        return processed
