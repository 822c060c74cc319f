from __future__ import annotations

import numpy as np
import pytest

from singalong.gate import SignalGate, level_percent


def test_silence_closes_gate() -> None:
    gate = SignalGate({"mic": 0.008})

    reading = gate.evaluate(np.zeros(4096), "mic")

    assert not reading.is_open
    assert reading.rms == 0.0
    assert reading.level == 0.0


def test_thresholds_are_per_source(sine) -> None:
    gate = SignalGate({"mic": 0.01, "reference": 0.0005})
    quiet = sine(440.0, amplitude=0.004)  # rms ~0.0028

    assert not gate.evaluate(quiet, "mic").is_open
    assert gate.evaluate(quiet, "reference").is_open


def test_unknown_source_uses_default(sine) -> None:
    gate = SignalGate(default_threshold=0.5)

    reading = gate.evaluate(sine(440.0, amplitude=0.5), "line")

    assert reading.threshold == 0.5
    assert not reading.is_open


def test_rms_of_sine(sine) -> None:
    reading = SignalGate().evaluate(sine(441.0, amplitude=0.5), "mic")

    assert reading.rms == pytest.approx(0.5 / np.sqrt(2), rel=1e-2)
    assert reading.is_open


def test_threshold_can_change_at_runtime(sine) -> None:
    gate = SignalGate({"mic": 0.001})
    frame = sine(440.0, amplitude=0.01)
    assert gate.evaluate(frame, "mic").is_open

    gate.set_threshold("mic", 0.05)

    assert not gate.evaluate(frame, "mic").is_open


def test_negative_threshold_rejected() -> None:
    with pytest.raises(ValueError):
        SignalGate({"mic": -0.1})


def test_level_percent_saturates() -> None:
    assert level_percent(0.05) == pytest.approx(50.0)
    assert level_percent(0.5) == 100.0
