from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from .config import Algorithm, DetectionConfig, VocalBand
from .dsp import magnitude_spectrum_db, parabolic_shift, validate_block

logger = logging.getLogger(__name__)

DEFAULT_MIN_FREQ = 60.0
DEFAULT_MAX_FREQ = 2000.0


@dataclass
class PitchEstimate:
    hz: Optional[float]
    confidence: float
    algorithm: Optional[str] = None

    @property
    def detected(self) -> bool:
        return self.hz is not None


def _in_range(hz: float, min_freq: float, max_freq: float) -> bool:
    return math.isfinite(hz) and min_freq <= hz <= max_freq


def _refine(values: np.ndarray, index: int) -> float:
    if index <= 0 or index >= len(values) - 1:
        return float(index)
    return index + parabolic_shift(values[index - 1], values[index], values[index + 1])


def autocorrelate(
    frame: np.ndarray,
    sample_rate: float,
    threshold: float = 0.9,
    min_freq: float = DEFAULT_MIN_FREQ,
    max_freq: float = DEFAULT_MAX_FREQ,
) -> PitchEstimate:
    x = frame.astype(np.float64)
    half = len(x) // 2
    if half < 3:
        return PitchEstimate(None, 0.0, "autocorrelation")

    # Lags past sample_rate / min_freq can only yield out-of-range pitches.
    max_lags = min(half, int(math.ceil(sample_rate / min_freq)) + 2)
    head = x[:half]
    corr = np.empty(max_lags)
    for lag in range(max_lags):
        corr[lag] = 1.0 - np.sum(np.abs(head - x[lag : lag + half])) / half

    # First qualifying peak: a rising lag above threshold starts it, the first fall ends it.
    best_lag = -1
    best_corr = 0.0
    for lag in range(1, max_lags):
        value = corr[lag]
        if value > threshold and value > corr[lag - 1]:
            if value > best_corr:
                best_corr = float(value)
                best_lag = lag
        elif best_lag > 0:
            break

    if best_lag <= 0:
        return PitchEstimate(None, best_corr, "autocorrelation")

    lag = _refine(corr, best_lag)
    hz = sample_rate / lag if lag > 0 else math.inf
    if not _in_range(hz, min_freq, max_freq):
        return PitchEstimate(None, best_corr, "autocorrelation")
    return PitchEstimate(hz, best_corr, "autocorrelation")


def cumulative_mean_normalized_difference(frame: np.ndarray) -> np.ndarray:
    x = frame.astype(np.float64)
    half = len(x) // 2
    size = 2 * len(x)

    # d(tau) = sum((x[i] - x[i + tau]) ** 2) expanded into two energies and a cross term.
    energy = np.concatenate(([0.0], np.cumsum(x * x)))
    head_energy = energy[half]
    lagged_energy = energy[half : 2 * half] - energy[:half]
    cross = np.fft.irfft(np.fft.rfft(x, size) * np.conj(np.fft.rfft(x[:half], size)), size)[:half]
    diff = np.maximum(head_energy + lagged_energy - 2.0 * cross, 0.0)

    cmnd = np.ones(half)
    running = np.cumsum(diff[1:])
    taus = np.arange(1, half)
    with np.errstate(divide="ignore", invalid="ignore"):
        cmnd[1:] = np.where(running > 0, diff[1:] * taus / running, 1.0)
    return cmnd


def yin(
    frame: np.ndarray,
    sample_rate: float,
    threshold: float = 0.15,
    min_freq: float = DEFAULT_MIN_FREQ,
    max_freq: float = DEFAULT_MAX_FREQ,
) -> PitchEstimate:
    half = len(frame) // 2
    if half < 3:
        return PitchEstimate(None, 0.0, "yin")

    cmnd = cumulative_mean_normalized_difference(frame)
    tau = 2
    while tau < half:
        if cmnd[tau] < threshold:
            while tau + 1 < half and cmnd[tau + 1] < cmnd[tau]:
                tau += 1
            break
        tau += 1

    if tau >= half:
        return PitchEstimate(None, 0.0, "yin")

    confidence = float(min(1.0, max(0.0, 1.0 - cmnd[tau])))
    period = _refine(cmnd, tau)
    hz = sample_rate / period if period > 0 else math.inf
    if not _in_range(hz, min_freq, max_freq):
        return PitchEstimate(None, confidence, "yin")
    return PitchEstimate(hz, confidence, "yin")


def spectral_peak(
    spectrum_db: np.ndarray,
    sample_rate: float,
    low_hz: float = 80.0,
    high_hz: float = 1000.0,
    floor_db: float = -60.0,
    smooth_radius: int = 3,
) -> PitchEstimate:
    bins = len(spectrum_db)
    if bins < 3:
        return PitchEstimate(None, 0.0, "spectral")

    bin_width = sample_rate / (2.0 * bins)
    min_bin = max(1, int(low_hz // bin_width))
    max_bin = min(bins - 1, int(high_hz // bin_width))
    if max_bin - min_bin < 3:
        return PitchEstimate(None, 0.0, "spectral")

    # Smooth over the whole spectrum so bins at the band edges see full neighbourhoods.
    radius = max(0, min(smooth_radius, (bins - 1) // 2))
    kernel = np.ones(2 * radius + 1)
    counts = np.convolve(np.ones(bins), kernel, mode="same")
    smoothed = np.convolve(spectrum_db, kernel, mode="same") / counts

    peak = min_bin + int(np.argmax(smoothed[min_bin:max_bin]))
    peak_db = float(smoothed[peak])
    if peak_db <= floor_db:
        return PitchEstimate(None, 0.0, "spectral")

    confidence = min(1.0, (peak_db - floor_db) / -floor_db) if floor_db < 0 else 1.0
    hz = _refine(smoothed, peak) * bin_width
    if not _in_range(hz, low_hz, high_hz):
        return PitchEstimate(None, confidence, "spectral")
    return PitchEstimate(hz, confidence, "spectral")


class PitchEstimator:
    """Configurable front end over the three detection algorithms.

    ``layered`` runs YIN first, then autocorrelation, then spectral peak
    picking, and returns the first one that finds a pitch. It suits mixed
    material such as a song with backing instruments.
    """

    def __init__(self, config: DetectionConfig, band: Optional[VocalBand] = None):
        self.config = config
        self.band = band or VocalBand()
        self._algorithms: Dict[Algorithm, Callable[[np.ndarray, float], PitchEstimate]] = {
            Algorithm.AUTOCORRELATION: self._autocorrelation,
            Algorithm.YIN: self._yin,
            Algorithm.SPECTRAL: self._spectral,
            Algorithm.LAYERED: self._layered,
        }

    def estimate(self, frame: np.ndarray, sample_rate: float) -> PitchEstimate:
        x = validate_block(frame, sample_rate, self.config.window_size)
        estimate = self._algorithms[Algorithm(self.config.algorithm)](x, sample_rate)
        logger.debug("%s: hz=%s confidence=%.3f", estimate.algorithm, estimate.hz, estimate.confidence)
        return estimate

    def _autocorrelation(self, x: np.ndarray, sample_rate: float) -> PitchEstimate:
        cfg = self.config
        return autocorrelate(x, sample_rate, cfg.corr_threshold, cfg.min_freq, cfg.max_freq)

    def _yin(self, x: np.ndarray, sample_rate: float) -> PitchEstimate:
        cfg = self.config
        return yin(x, sample_rate, cfg.yin_threshold, cfg.min_freq, cfg.max_freq)

    def _spectral(self, x: np.ndarray, sample_rate: float) -> PitchEstimate:
        cfg = self.config
        low = max(self.band.low_hz, cfg.min_freq)
        high = min(self.band.high_hz, cfg.max_freq)
        return spectral_peak(
            magnitude_spectrum_db(x),
            sample_rate,
            low_hz=low,
            high_hz=high,
            floor_db=cfg.spectral_floor_db,
            smooth_radius=cfg.smooth_radius,
        )

    def _layered(self, x: np.ndarray, sample_rate: float) -> PitchEstimate:
        estimate = PitchEstimate(None, 0.0, "layered")
        for step in (self._yin, self._autocorrelation, self._spectral):
            estimate = step(x, sample_rate)
            if estimate.detected:
                break
        return estimate
