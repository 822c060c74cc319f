from __future__ import annotations

import numpy as np
import pytest

from singalong.dsp import (
    RollingWindow,
    magnitude_spectrum_db,
    midi_to_hz,
    parabolic_shift,
    rms,
    vocal_filter,
)


def test_parabolic_shift_finds_vertex() -> None:
    # y = -(x - 0.25)^2 sampled at -1, 0, 1
    y = [-(x - 0.25) ** 2 for x in (-1, 0, 1)]

    assert parabolic_shift(*y) == pytest.approx(0.25)


def test_parabolic_shift_for_minimum() -> None:
    y = [(x + 0.4) ** 2 for x in (-1, 0, 1)]

    assert parabolic_shift(*y) == pytest.approx(-0.4)


def test_parabolic_shift_flat_is_zero() -> None:
    assert parabolic_shift(1.0, 1.0, 1.0) == 0.0


def test_rms_empty() -> None:
    assert rms(np.array([])) == 0.0


def test_midi_conversions() -> None:
    assert midi_to_hz(81.0) == pytest.approx(880.0)


def test_spectrum_peak_near_zero_db(sine) -> None:
    spectrum = magnitude_spectrum_db(sine(441.0, amplitude=1.0))

    assert len(spectrum) == 2048
    assert spectrum.max() == pytest.approx(0.0, abs=1.5)


def _center_rms(x: np.ndarray) -> float:
    quarter = len(x) // 4
    return rms(x[quarter:-quarter])


def test_vocal_filter_removes_rumble(sine) -> None:
    rumble = sine(30.0, size=16384)

    filtered = vocal_filter(rumble, 44100, 80.0, 1000.0)

    assert _center_rms(filtered) < 0.2 * _center_rms(rumble)


def test_vocal_filter_keeps_voice(sine) -> None:
    voice = sine(300.0, size=16384)

    filtered = vocal_filter(voice, 44100, 80.0, 1000.0)

    assert _center_rms(filtered) > 0.8 * _center_rms(voice)


def test_vocal_filter_rejects_bad_band(sine) -> None:
    with pytest.raises(ValueError):
        vocal_filter(sine(300.0), 44100, 1000.0, 80.0)


def test_rolling_window_keeps_latest_samples() -> None:
    window = RollingWindow(4)
    window.push(np.array([1.0, 2.0, 3.0]))
    assert not window.ready

    window.push(np.array([4.0, 5.0]))

    assert window.ready
    assert window.samples.tolist() == [2.0, 3.0, 4.0, 5.0]


def test_rolling_window_ignores_empty_block() -> None:
    window = RollingWindow(4)
    window.push(np.array([1.0, 2.0, 3.0, 4.0]))

    window.push(np.array([], dtype=np.float32))

    assert window.samples.tolist() == [1.0, 2.0, 3.0, 4.0]
    assert window.filled == 4
