from __future__ import annotations

import numpy as np
import pytest


def make_sine(freq: float, sample_rate: int = 44100, size: int = 4096, amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(size) / sample_rate
    return amplitude * np.sin(2 * np.pi * freq * t)


@pytest.fixture
def sine():
    return make_sine
