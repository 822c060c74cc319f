from __future__ import annotations

import pytest

from singalong.timeline import HIGHEST_HZ, LOWEST_HZ, PitchTimeline, frequency_to_position, pitch_bar


def test_unvoiced_frames_are_skipped() -> None:
    timeline = PitchTimeline()

    assert not timeline.add(0.0, {"mic": None, "reference": None})
    assert timeline.add(0.1, {"mic": 220.0, "reference": None})
    assert len(timeline) == 1


def test_oldest_points_drop_off() -> None:
    timeline = PitchTimeline(max_points=3)
    for i in range(5):
        timeline.add(i * 0.1, {"mic": 200.0 + i})

    assert [p.pitches["mic"] for p in timeline.points] == [202.0, 203.0, 204.0]


def test_series_per_source() -> None:
    timeline = PitchTimeline()
    timeline.add(0.0, {"mic": 220.0, "reference": 440.0})
    timeline.add(0.1, {"mic": None, "reference": 441.0})

    assert timeline.series("mic") == [(0.0, 220.0)]
    assert timeline.series("reference") == [(0.0, 440.0), (0.1, 441.0)]


def test_clear() -> None:
    timeline = PitchTimeline()
    timeline.add(0.0, {"mic": 220.0})
    timeline.clear()

    assert timeline.points == []


def test_invalid_size() -> None:
    with pytest.raises(ValueError):
        PitchTimeline(max_points=0)


def test_position_is_log_scaled() -> None:
    assert frequency_to_position(LOWEST_HZ) == pytest.approx(0.0)
    assert frequency_to_position(HIGHEST_HZ) == pytest.approx(1.0)
    middle = (LOWEST_HZ * HIGHEST_HZ) ** 0.5
    assert frequency_to_position(middle) == pytest.approx(0.5)


def test_position_is_clipped() -> None:
    assert frequency_to_position(20.0) == 0.0
    assert frequency_to_position(5000.0) == 1.0
    assert frequency_to_position(None) is None


def test_pitch_bar_marks_position() -> None:
    assert pitch_bar(LOWEST_HZ, width=10) == "|........."
    assert pitch_bar(HIGHEST_HZ, width=10) == ".........|"
    assert pitch_bar(LOWEST_HZ * (HIGHEST_HZ / LOWEST_HZ) ** 0.55, width=10).index("|") == 5
    assert pitch_bar(None, width=10) == ".........."
