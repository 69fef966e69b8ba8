"""PULSE Timing Tests — tick/second conversion, pitch and transport notation."""

import math

import pytest

from pulse.grid.timing import (
    db_to_gain,
    gain_to_db,
    midi_note_to_frequency,
    pattern_length_ticks,
    seconds_to_ticks,
    subdivision_to_seconds,
    ticks_to_seconds,
)


# ── Ticks ↔ Seconds ──────────────────────────────────────


def test_one_quarter_at_120_is_half_a_second():
    assert ticks_to_seconds(96, 120, 96) == pytest.approx(0.5)


def test_zero_ticks_is_exactly_zero():
    """No floating residue at the origin."""
    assert ticks_to_seconds(0, 137.5, 480) == 0.0


def test_ticks_to_seconds_is_linear():
    one = ticks_to_seconds(37, 93, 96)
    assert ticks_to_seconds(37 * 11, 93, 96) == pytest.approx(one * 11)


def test_seconds_to_ticks_round_trip():
    for ticks in (0, 1, 95, 96, 384, 10_000):
        assert seconds_to_ticks(ticks_to_seconds(ticks, 128, 96), 128, 96) == ticks


def test_seconds_to_ticks_rounds_to_nearest():
    # 0.4992 ticks → 0, 0.5208 ticks → 1
    assert seconds_to_ticks(0.0026, 120, 96) == 0
    assert seconds_to_ticks(0.0027125, 120, 96) == 1


@pytest.mark.parametrize("bpm,ppq", [(0, 96), (-120, 96), (120, 0)])
def test_non_positive_tempo_rejected(bpm, ppq):
    with pytest.raises(ValueError):
        ticks_to_seconds(96, bpm, ppq)
    with pytest.raises(ValueError):
        seconds_to_ticks(1.0, bpm, ppq)


# ── Pitch ────────────────────────────────────────────────


def test_midi_note_to_frequency():
    assert midi_note_to_frequency(69) == pytest.approx(440.0)
    assert midi_note_to_frequency(81) == pytest.approx(880.0)
    assert midi_note_to_frequency(60) == pytest.approx(261.6255653, rel=1e-9)


# ── Notation ─────────────────────────────────────────────


@pytest.mark.parametrize(
    "notation,expected",
    [
        ("4n", 0.5),
        ("8n", 0.25),
        ("16n", 0.125),
        ("8t", 0.25 * 2 / 3),
        ("8n.", 0.375),
        ("1m", 2.0),
        ("2m", 4.0),
    ],
)
def test_subdivision_to_seconds_at_120(notation, expected):
    assert subdivision_to_seconds(notation, 120) == pytest.approx(expected)


@pytest.mark.parametrize("notation", ["", "8x", "n8", "0n", "4nn"])
def test_bad_subdivision_rejected(notation):
    with pytest.raises(ValueError):
        subdivision_to_seconds(notation, 120)


def test_pattern_length_ticks():
    from pulse.grid.project import Pattern

    assert pattern_length_ticks(Pattern(id="p", length_in_steps=16, steps_per_beat=4), 96) == 384
    assert pattern_length_ticks(Pattern(id="p", length_in_steps=12, steps_per_beat=3), 480) == 1920
    assert pattern_length_ticks(Pattern(id="p", length_in_steps=16, steps_per_beat=0), 96) == 0.0


# ── Gain ─────────────────────────────────────────────────


def test_gain_db_conversions():
    assert gain_to_db(1.0) == 0.0
    assert gain_to_db(0.5) == pytest.approx(-6.0206, abs=1e-4)
    assert gain_to_db(0.0) == -math.inf
    assert db_to_gain(-math.inf) == 0.0
    assert db_to_gain(gain_to_db(0.37)) == pytest.approx(0.37)
