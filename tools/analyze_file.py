#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Iterator, Optional, Tuple

import numpy as np
import soundfile as sf

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from singalong.config import ALGORITHMS, MonitorConfig  # noqa: E402
from singalong.monitor import FrameBlocks, FrameResult, PitchMonitor  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run an audio file through the pitch pipeline.")
    parser.add_argument("audio", type=Path, help="Audio file (the singer)")
    parser.add_argument("--reference", type=Path, help="Second file to compare against")
    parser.add_argument("--window", type=int, default=4096, help="Analysis window in samples")
    parser.add_argument("--hop", type=int, default=1024, help="Samples between frames")
    parser.add_argument("--algorithm", choices=ALGORITHMS, default="yin")
    parser.add_argument("--threshold", type=float, default=0.008, help="RMS gate for both files")
    return parser.parse_args()


def load_mono(path: Path) -> Tuple[np.ndarray, float]:
    data, sample_rate = sf.read(str(path), dtype="float32", always_2d=True)
    return data.mean(axis=1), float(sample_rate)


def iter_frames(
    audio: Tuple[np.ndarray, float],
    reference: Optional[Tuple[np.ndarray, float]],
    window: int,
    hop: int,
) -> Iterator[Tuple[float, FrameBlocks]]:
    samples, sample_rate = audio
    for start in range(0, len(samples) - window + 1, hop):
        time_s = start / sample_rate
        blocks: FrameBlocks = {"mic": (samples[start : start + window], sample_rate)}
        if reference is not None:
            ref_samples, ref_rate = reference
            ref_start = int(time_s * ref_rate)
            ref_block = ref_samples[ref_start : ref_start + window]
            if len(ref_block) == window:
                blocks["reference"] = (ref_block, ref_rate)
        yield time_s, blocks


def print_frame(result: FrameResult) -> None:
    columns = [f"{result.time_s:8.3f}"]
    for name in ("mic", "reference"):
        reading = result.readings.get(name)
        if reading is None:
            continue
        if reading.note is None:
            columns.append(f"{'--':<4} {'':>8} {'':>4}")
        else:
            columns.append(f"{reading.note.label:<4} {reading.hz:8.2f} {reading.note.cents:+4d}")
    if result.match.percent is not None:
        columns.append(f"{result.match.percent:5.1f}% {result.match.tier.value}")
    print("  ".join(columns))


def main() -> int:
    args = parse_args()
    config = MonitorConfig()
    for source in config.sources.values():
        source.rms_threshold = args.threshold
    config.sources["mic"].detection.algorithm = args.algorithm

    audio = load_mono(args.audio)
    reference = load_mono(args.reference) if args.reference else None

    monitor = PitchMonitor(config)
    count = monitor.run(iter_frames(audio, reference, args.window, args.hop), print_frame)
    voiced = len(monitor.timeline)
    print(f"\n{count} frames, {voiced} with pitch (last {monitor.timeline.max_points} kept)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
