from __future__ import annotations

import math
import numbers
from typing import Optional

import numpy as np
from scipy.signal import butter, sosfiltfilt

from .errors import MalformedBlockError


def rms(frame: np.ndarray) -> float:
    if frame.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(frame.astype(np.float64) ** 2)))


def midi_to_hz(midi: float) -> float:
    return 440.0 * (2.0 ** ((midi - 69.0) / 12.0))


def validate_block(frame: np.ndarray, sample_rate: float, expected_length: Optional[int] = None) -> np.ndarray:
    """Return the block as float64, or raise MalformedBlockError."""
    if not isinstance(sample_rate, numbers.Real) or not math.isfinite(sample_rate) or sample_rate <= 0:
        raise MalformedBlockError(f"Sample rate must be a positive number, got {sample_rate!r}")

    x = np.asarray(frame)
    if x.ndim != 1:
        raise MalformedBlockError(f"Expected a mono 1-D block, got shape {x.shape}")
    if x.size == 0:
        raise MalformedBlockError("Empty audio block")
    if expected_length is not None and x.size != expected_length:
        raise MalformedBlockError(f"Expected {expected_length} samples, got {x.size}")
    if not np.issubdtype(x.dtype, np.number):
        raise MalformedBlockError(f"Samples must be numeric, got dtype {x.dtype}")

    x = x.astype(np.float64)
    if not np.all(np.isfinite(x)):
        raise MalformedBlockError("Block contains NaN or infinite samples")
    return x


def parabolic_shift(y0: float, y1: float, y2: float) -> float:
    """Vertex offset of the parabola through (-1, y0), (0, y1), (1, y2)."""
    denom = y0 - 2.0 * y1 + y2
    if abs(denom) < 1e-12:
        return 0.0
    shift = (y0 - y2) / (2.0 * denom)
    # A vertex further than one step away means the points are not around an extremum.
    if abs(shift) > 1.0:
        return 0.0
    return shift


def magnitude_spectrum_db(frame: np.ndarray) -> np.ndarray:
    """Half spectrum (N // 2 bins) in dB, a full-scale sine peaking near 0 dB."""
    x = frame.astype(np.float64)
    window = np.hanning(len(x))
    spectrum = np.abs(np.fft.rfft(x * window))[: len(x) // 2]
    magnitude = spectrum * 2.0 / np.sum(window)
    return 20.0 * np.log10(np.maximum(magnitude, 1e-12))


def vocal_filter(frame: np.ndarray, sample_rate: float, low_hz: float, high_hz: float, order: int = 2) -> np.ndarray:
    nyquist = sample_rate / 2.0
    high_hz = min(high_hz, nyquist * 0.99)
    if not 0 < low_hz < high_hz:
        raise ValueError(f"Invalid filter band {low_hz}-{high_hz} Hz for sample rate {sample_rate}")
    sos = butter(order, [low_hz, high_hz], btype="bandpass", fs=sample_rate, output="sos")
    return sosfiltfilt(sos, frame.astype(np.float64))


class RollingWindow:
    """Keeps the most recent ``size`` samples of a stream."""

    def __init__(self, size: int):
        self.size = size
        self.samples = np.zeros(size, dtype=np.float32)
        self.filled = 0

    def push(self, block: np.ndarray) -> None:
        block = block[-self.size :]
        n = len(block)
        if n == 0:
            return
        self.samples = np.roll(self.samples, -n)
        self.samples[-n:] = block
        self.filled = min(self.size, self.filled + n)

    @property
    def ready(self) -> bool:
        return self.filled >= self.size
