from __future__ import annotations

import pytest

from singalong.notes import NOTE_NAMES, NoteResult, frequency_to_note, note_to_frequency


def test_a440_is_exact() -> None:
    note = frequency_to_note(440.0)

    assert note == NoteResult(name="A", octave=4, cents=0, hz=440.0)
    assert note.label == "A4"


@pytest.mark.parametrize("octave", range(2, 7))
@pytest.mark.parametrize("name", NOTE_NAMES)
def test_equal_tempered_round_trip(name, octave) -> None:
    note = frequency_to_note(note_to_frequency(name, octave))

    assert (note.name, note.octave) == (name, octave)
    assert abs(note.cents) <= 1


def test_middle_c() -> None:
    note = frequency_to_note(261.63)

    assert note.label == "C4"
    assert note.cents == 0


def test_cents_sign_follows_detuning() -> None:
    sharp = frequency_to_note(440.0 * 2 ** (20 / 1200))
    flat = frequency_to_note(440.0 * 2 ** (-20 / 1200))

    assert (sharp.label, sharp.cents) == ("A4", 20)
    assert (flat.label, flat.cents) == ("A4", -20)


def test_quarter_tone_rounds_up_to_next_semitone() -> None:
    note = frequency_to_note(440.0 * 2 ** (60 / 1200))

    assert note.label == "A#4"
    assert note.cents == -40


def test_b_rolls_over_into_next_octave() -> None:
    note = frequency_to_note(note_to_frequency("B", 3) * 2 ** (70 / 1200))

    assert note.label == "C4"
    assert note.cents == -30


def test_frequencies_below_c0_stay_in_the_table() -> None:
    note = frequency_to_note(10.0)

    assert note.name in NOTE_NAMES
    assert note.octave == -1


@pytest.mark.parametrize("hz", [None, 0.0, -440.0, float("nan"), float("inf")])
def test_no_note_for_missing_pitch(hz) -> None:
    assert frequency_to_note(hz) is None


def test_unknown_note_name() -> None:
    with pytest.raises(ValueError):
        note_to_frequency("H", 4)
