"""PULSE musical time — ticks, seconds, pitches and transport notation.

Pure helpers shared by every layer. A tick is 1/PPQ of a quarter note;
seconds depend only on tempo, so the conversions never accumulate drift.
"""

from __future__ import annotations

import math
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pulse.grid.project import Pattern

DEFAULT_PPQ = 96
DEFAULT_BPM = 120.0
DEFAULT_STEPS_PER_BEAT = 4

_NOTATION_RE = re.compile(r"^(\d+)([ntm])(\.?)$")


def _check_tempo(bpm: float, ppq: int) -> None:
    if bpm <= 0:
        msg = f"bpm must be > 0, got {bpm}"
        raise ValueError(msg)
    if ppq <= 0:
        msg = f"ppq must be > 0, got {ppq}"
        raise ValueError(msg)


def ticks_to_seconds(ticks: float, bpm: float, ppq: int = DEFAULT_PPQ) -> float:
    """Convert a tick position or length to seconds."""
    _check_tempo(bpm, ppq)
    return (ticks / ppq) * (60.0 / bpm)


def seconds_to_ticks(seconds: float, bpm: float, ppq: int = DEFAULT_PPQ) -> int:
    """Convert seconds to the nearest whole tick."""
    _check_tempo(bpm, ppq)
    return int(round(seconds * bpm * ppq / 60.0))


def midi_note_to_frequency(note: float) -> float:
    """Equal-tempered frequency in Hz (A4 = MIDI 69 = 440 Hz)."""
    return 440.0 * 2.0 ** ((note - 69) / 12.0)


def pattern_length_ticks(pattern: Pattern, ppq: int = DEFAULT_PPQ) -> float:
    """Musical length of one pattern repetition in ticks."""
    if pattern.steps_per_beat <= 0 or pattern.length_in_steps <= 0:
        return 0.0
    return (pattern.length_in_steps / pattern.steps_per_beat) * ppq


def subdivision_to_seconds(notation: str, bpm: float) -> float:
    """Resolve transport notation like ``16n``, ``8t`` or ``4n.`` to seconds.

    ``Nn`` is 1/N of a whole note, ``Nt`` its triplet (2/3), a trailing dot
    makes it dotted (1.5x) and ``Nm`` counts 4/4 measures.
    """
    match = _NOTATION_RE.match(notation.strip())
    if match is None:
        msg = f"Unknown subdivision: {notation!r}"
        raise ValueError(msg)
    value, unit, dotted = int(match.group(1)), match.group(2), match.group(3)
    if value <= 0:
        msg = f"Subdivision must be positive: {notation!r}"
        raise ValueError(msg)
    if bpm <= 0:
        msg = f"bpm must be > 0, got {bpm}"
        raise ValueError(msg)

    quarter = 60.0 / bpm
    if unit == "m":
        seconds = value * 4 * quarter
    else:
        seconds = 4 * quarter / value
        if unit == "t":
            seconds *= 2.0 / 3.0
    if dotted:
        seconds *= 1.5
    return seconds


def gain_to_db(gain: float) -> float:
    """Linear amplitude to decibels (silence maps to -inf)."""
    if gain <= 0:
        return -math.inf
    return 20.0 * math.log10(gain)


def db_to_gain(db: float) -> float:
    """Decibels to linear amplitude."""
    if db == -math.inf:
        return 0.0
    return float(10 ** (db / 20.0))
