from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .dsp import midi_to_hz

NOTE_NAMES = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")
A4_HZ = 440.0
# C0 sits 4.75 octaves (57 semitones) below A4.
C0_HZ = A4_HZ * 2.0 ** -4.75


@dataclass(frozen=True)
class NoteResult:
    name: str
    octave: int
    cents: int
    hz: float

    @property
    def label(self) -> str:
        return f"{self.name}{self.octave}"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def frequency_to_note(hz: Optional[float]) -> Optional[NoteResult]:
    if hz is None or not math.isfinite(hz) or hz <= 0:
        return None
    half_steps = 12.0 * math.log2(hz / C0_HZ)
    semitone = _round_half_up(half_steps)
    return NoteResult(
        name=NOTE_NAMES[semitone % 12],
        octave=semitone // 12,
        cents=_round_half_up((half_steps - semitone) * 100.0),
        hz=hz,
    )


def note_to_frequency(name: str, octave: int) -> float:
    try:
        index = NOTE_NAMES.index(name)
    except ValueError:
        raise ValueError(f"Unknown note name {name!r}") from None
    return midi_to_hz(12 * (octave + 1) + index)
