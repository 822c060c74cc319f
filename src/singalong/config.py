from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union


class Algorithm(str, Enum):
    AUTOCORRELATION = "autocorrelation"
    YIN = "yin"
    SPECTRAL = "spectral"
    LAYERED = "layered"


ALGORITHMS = tuple(algorithm.value for algorithm in Algorithm)


@dataclass
class AudioConfig:
    sample_rate: int = 44100
    window_size: int = 4096
    channels: int = 1
    fps: float = 60.0


@dataclass
class DetectionConfig:
    algorithm: Union[str, Algorithm] = Algorithm.YIN
    min_freq: float = 60.0
    max_freq: float = 2000.0
    corr_threshold: float = 0.9
    yin_threshold: float = 0.15
    spectral_floor_db: float = -60.0
    smooth_radius: int = 3
    window_size: Optional[int] = None

    def __post_init__(self) -> None:
        try:
            self.algorithm = Algorithm(self.algorithm)
        except ValueError:
            raise ValueError(f"Unknown algorithm {self.algorithm!r}, expected one of {', '.join(ALGORITHMS)}") from None
        if not 0 < self.min_freq < self.max_freq:
            raise ValueError("Frequency range must satisfy 0 < min_freq < max_freq")


@dataclass
class VocalBand:
    low_hz: float = 80.0
    high_hz: float = 1000.0
    enabled: bool = False

    def __post_init__(self) -> None:
        self.set_band(self.low_hz, self.high_hz)

    def set_band(self, low_hz: float, high_hz: float) -> None:
        if not 0 < low_hz < high_hz:
            raise ValueError(f"Invalid vocal band {low_hz}-{high_hz} Hz")
        self.low_hz = float(low_hz)
        self.high_hz = float(high_hz)

    def check(self, sample_rate: float) -> None:
        """Raise ValueError when the band cannot be filtered at this sample rate."""
        if self.low_hz >= 0.99 * sample_rate / 2.0:
            raise ValueError(f"Vocal band starts at {self.low_hz} Hz, above the usable range for {sample_rate} Hz audio")


@dataclass
class SourceConfig:
    name: str
    rms_threshold: float
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    band: VocalBand = field(default_factory=VocalBand)


@dataclass
class ComparatorConfig:
    perfect_cents: float = 10.0
    close_cents: float = 30.0
    tolerance_cents: float = 100.0


@dataclass
class TimelineConfig:
    max_points: int = 200


def default_sources() -> Dict[str, SourceConfig]:
    # Microphones carry room noise; captured media audio is much cleaner.
    return {
        "mic": SourceConfig(name="mic", rms_threshold=0.008),
        "reference": SourceConfig(
            name="reference",
            rms_threshold=0.0005,
            detection=DetectionConfig(algorithm=Algorithm.LAYERED),
        ),
    }


@dataclass
class MonitorConfig:
    sources: Dict[str, SourceConfig] = field(default_factory=default_sources)
    comparator: ComparatorConfig = field(default_factory=ComparatorConfig)
    timeline: TimelineConfig = field(default_factory=TimelineConfig)
    singer: str = "mic"
    reference: str = "reference"

    @classmethod
    def from_json(cls, path: Path) -> "MonitorConfig":
        data = json.loads(path.read_text(encoding="utf-8"))
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MonitorConfig":
        config = cls()
        for name, raw in data.get("sources", {}).items():
            base = config.sources.get(name) or SourceConfig(name=name, rms_threshold=0.008)
            detection = _overlay(base.detection, raw.get("detection", {}))
            band = _overlay(base.band, raw.get("band", {}))
            config.sources[name] = SourceConfig(
                name=name,
                rms_threshold=float(raw.get("rms_threshold", base.rms_threshold)),
                detection=detection,
                band=band,
            )
        config.comparator = _overlay(config.comparator, data.get("comparator", {}))
        config.timeline = _overlay(config.timeline, data.get("timeline", {}))
        config.singer = data.get("singer", config.singer)
        config.reference = data.get("reference", config.reference)
        return config


def _overlay(base: Any, values: Dict[str, Any]) -> Any:
    known = set(base.__dataclass_fields__)
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown {type(base).__name__} keys: {', '.join(sorted(unknown))}")
    merged = {name: getattr(base, name) for name in known}
    merged.update(values)
    return type(base)(**merged)
