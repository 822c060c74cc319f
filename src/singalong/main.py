from __future__ import annotations

import argparse
import logging
import queue
import time
from collections import Counter
from pathlib import Path
from typing import Dict, Optional, Protocol

import numpy as np
import sounddevice as sd
import soundfile as sf

from .compare import MatchTier
from .config import ALGORITHMS, AudioConfig, MonitorConfig
from .dsp import RollingWindow
from .errors import MalformedBlockError
from .monitor import FrameBlocks, FrameResult, PitchMonitor
from .notes import frequency_to_note
from .timeline import PitchTimeline, pitch_bar

logger = logging.getLogger(__name__)


class Reference(Protocol):
    sample_rate: float

    def start(self) -> None: ...

    def window(self, elapsed_s: float, size: int) -> Optional[np.ndarray]: ...

    def stop(self) -> None: ...


class FileReference:
    def __init__(self, path: Path):
        data, sample_rate = sf.read(str(path), dtype="float32", always_2d=True)
        self.samples = data.mean(axis=1)
        self.sample_rate = float(sample_rate)
        self.duration_s = len(self.samples) / self.sample_rate

    def start(self) -> None:
        sd.play(self.samples, int(self.sample_rate))

    def window(self, elapsed_s: float, size: int) -> Optional[np.ndarray]:
        end = int(elapsed_s * self.sample_rate)
        if end > len(self.samples):
            return None
        if end < size:
            return np.concatenate((np.zeros(size - end, dtype=np.float32), self.samples[:end]))
        return self.samples[end - size : end]

    def stop(self) -> None:
        sd.stop()


class ToneReference:
    def __init__(self, hz: float, sample_rate: float, amplitude: float = 0.3):
        self.hz = hz
        self.sample_rate = sample_rate
        self.amplitude = amplitude

    def start(self) -> None:
        pass

    def window(self, elapsed_s: float, size: int) -> Optional[np.ndarray]:
        t = elapsed_s + np.arange(size) / self.sample_rate
        return (self.amplitude * np.sin(2 * np.pi * self.hz * t)).astype(np.float32)

    def stop(self) -> None:
        pass


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sing along pitch trainer")
    parser.add_argument("--device", help="Audio input device (index or name)")
    parser.add_argument("--samplerate", type=int, default=44100, help="Microphone sample rate")
    parser.add_argument("--window", type=int, default=4096, help="Analysis window in samples")
    parser.add_argument("--algorithm", choices=ALGORITHMS, help="Pitch algorithm for the microphone")
    parser.add_argument("--reference", type=Path, help="Audio file to sing along with")
    parser.add_argument("--reference-hz", type=float, help="Fixed reference tone instead of a file")
    parser.add_argument("--mic-threshold", type=float, help="RMS gate for the microphone")
    parser.add_argument("--reference-threshold", type=float, help="RMS gate for the reference")
    parser.add_argument("--band", nargs=2, type=float, metavar=("LOW", "HIGH"), help="Vocal band in Hz")
    parser.add_argument("--vocal-filter", action="store_true", help="Band-pass the reference to the vocal band")
    parser.add_argument("--config", type=Path, help="JSON file with monitor settings")
    parser.add_argument("--duration", type=float, default=0.0, help="Stop after N seconds (0 = until Ctrl+C)")
    parser.add_argument("--fps", type=float, default=60.0, help="Analysis frames per second")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> MonitorConfig:
    config = MonitorConfig.from_json(args.config) if args.config else MonitorConfig()
    mic = config.sources[config.singer]
    reference = config.sources[config.reference]
    if args.algorithm:
        mic.detection.algorithm = args.algorithm
    if args.mic_threshold is not None:
        mic.rms_threshold = args.mic_threshold
    if args.reference_threshold is not None:
        reference.rms_threshold = args.reference_threshold
    if args.band:
        for source in (mic, reference):
            source.band.set_band(*args.band)
    if args.vocal_filter:
        reference.band.enabled = True
    return config


def _check_bands(config: MonitorConfig, sample_rates: Dict[str, float]) -> None:
    for name, sample_rate in sample_rates.items():
        band = config.sources[name].band
        if band.enabled:
            band.check(sample_rate)


def _open_reference(args: argparse.Namespace) -> Optional[Reference]:
    if args.reference:
        return FileReference(args.reference)
    if args.reference_hz:
        return ToneReference(args.reference_hz, args.samplerate)
    return None


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    audio_cfg = AudioConfig(sample_rate=args.samplerate, window_size=args.window, fps=args.fps)
    monitor = PitchMonitor(build_config(args))
    reference = _open_reference(args)
    rates = {monitor.config.singer: float(audio_cfg.sample_rate)}
    if reference is not None:
        rates[monitor.config.reference] = reference.sample_rate
    try:
        _check_bands(monitor.config, rates)
    except ValueError as exc:
        logger.error("%s", exc)
        return 1
    window = RollingWindow(audio_cfg.window_size)
    tiers: Counter = Counter()

    audio_queue: "queue.Queue[np.ndarray]" = queue.Queue()

    def audio_callback(indata: np.ndarray, frames: int, time_info, status) -> None:
        if status:
            logger.warning("Input stream status: %s", status)
        audio_queue.put(indata[:, 0].copy())

    stream = sd.InputStream(
        channels=audio_cfg.channels,
        samplerate=audio_cfg.sample_rate,
        blocksize=audio_cfg.window_size // 4,
        device=int(args.device) if args.device and args.device.isdigit() else args.device,
        callback=audio_callback,
    )

    def frames():
        started = time.perf_counter()
        period = 1.0 / audio_cfg.fps
        while True:
            elapsed = time.perf_counter() - started
            if args.duration and elapsed >= args.duration:
                return
            while not audio_queue.empty():
                window.push(audio_queue.get())
            blocks: FrameBlocks = {}
            if window.ready:
                blocks[monitor.config.singer] = (window.samples.copy(), float(audio_cfg.sample_rate))
            if reference is not None:
                ref_block = reference.window(elapsed, audio_cfg.window_size)
                if ref_block is None:
                    logger.info("Reference finished")
                    return
                blocks[monitor.config.reference] = (ref_block, reference.sample_rate)
            yield elapsed, blocks
            time.sleep(max(0.0, period - (time.perf_counter() - started - elapsed)))

    def on_frame(result: FrameResult) -> None:
        tiers[result.match.tier] += 1
        print(_format_frame(result, monitor.config.singer, monitor.config.reference), flush=True)

    try:
        with stream:
            if reference is not None:
                reference.start()
            monitor.run(frames(), on_frame)
    except KeyboardInterrupt:
        monitor.stop()
    except MalformedBlockError as exc:
        logger.error("Bad audio block: %s", exc)
        return 1
    except ValueError as exc:
        logger.error("Cannot analyse audio: %s", exc)
        return 1
    finally:
        if reference is not None:
            reference.stop()

    _print_final(tiers, monitor.timeline, monitor.config.singer, monitor.config.reference)
    return 0


def _format_frame(result: FrameResult, singer: str, reference: str) -> str:
    parts = []
    for name in (singer, reference):
        reading = result.readings.get(name)
        if reading is None:
            continue
        if reading.note is None:
            parts.append(f"{name}: --      ({reading.gate.level:3.0f}%)")
        else:
            note = reading.note
            parts.append(
                f"{name}: {note.label:<4} {note.cents:+3d}c {reading.hz:7.1f} Hz [{pitch_bar(reading.hz)}] ({reading.gate.level:3.0f}%)"
            )
    match = result.match
    if match.percent is not None:
        hint = f" {match.hint.value} {match.semitones:.1f} st" if match.hint.value else ""
        parts.append(f"match {match.percent:5.1f}% {match.tier.value}{hint}")
    elif reference in result.readings:
        parts.append(match.tier.value)
    return f"{result.time_s:7.2f}s  " + "  |  ".join(parts)


def _print_final(tiers: Counter, timeline: PitchTimeline, singer: str, reference: str) -> None:
    total = sum(tiers.values())
    print("")
    print("Session summary:")
    print(f"  Frames:  {total}")
    print(f"  Perfect: {tiers[MatchTier.PERFECT]}")
    print(f"  Close:   {tiers[MatchTier.CLOSE]}")
    print(f"  Off:     {tiers[MatchTier.NO_MATCH]}")
    for name in (singer, reference):
        series = timeline.series(name)
        if not series:
            continue
        median = float(np.median([hz for _, hz in series]))
        note = frequency_to_note(median)
        label = note.label if note is not None else "--"
        print(f"  Recent {name}: {len(series)} voiced frames around {label} ({median:.1f} Hz)")


if __name__ == "__main__":
    raise SystemExit(main())
