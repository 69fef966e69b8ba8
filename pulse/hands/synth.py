"""PULSE Synthesis — Oscillators, envelopes and the voices channels play through.

Pure numpy/scipy implementation. A voice is a source node in the offline
graph: triggers are collected first, then the whole timeline is rendered in
one pass when the graph is pulled.

Voices:
    - SynthVoice: oscillator → resonant low-pass → ADSR (synth channels)
    - MembraneVoice: pitch-dropping sine kick (fallback for everything else)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

import numpy as np
import structlog

from pulse.grid.project import Channel, SynthSettings
from pulse.grid.timing import db_to_gain, gain_to_db
from pulse.hands.effects import apply_biquad, biquad_coefficients
from pulse.hands.nodes import AudioArray, AudioNode

if TYPE_CHECKING:
    from pulse.hands.nodes import OfflineContext

logger = structlog.get_logger()


# ── Data Types ───────────────────────────────────────────


@dataclass
class ADSREnvelope:
    """Attack-Decay-Sustain-Release envelope."""

    attack_s: float = 0.01
    decay_s: float = 0.1
    sustain: float = 0.7  # 0-1 level
    release_s: float = 0.3

    def generate(self, hold_s: float, sr: int = 44100) -> AudioArray:
        """Envelope for a note held ``hold_s`` seconds, release tail included."""
        n_hold = max(0, int(round(hold_s * sr)))
        n_release = max(1, int(round(self.release_s * sr)))

        # Zero-length segments still need a strictly increasing time axis
        attack = max(self.attack_s, 1.0 / sr)
        decay = max(self.decay_s, 1.0 / sr)
        sustain = float(np.clip(self.sustain, 0.0, 1.0))

        t = np.arange(n_hold, dtype=np.float64) / sr
        held = np.interp(t, [0.0, attack, attack + decay], [0.0, 1.0, sustain])

        # Release starts from wherever the envelope was at note-off
        level = float(held[-1]) if n_hold else 0.0
        release = level * (1.0 - np.arange(1, n_release + 1, dtype=np.float64) / n_release)
        return np.concatenate([held, release])


@dataclass(frozen=True)
class NoteEvent:
    """One attack+release scheduled on a voice."""

    time: float  # seconds from render start
    frequency_hz: float
    duration: float  # seconds held before release
    velocity: float  # 0-1


# ── Oscillator Core ──────────────────────────────────────


def _osc_sine(phase: AudioArray) -> AudioArray:
    return np.sin(2 * np.pi * phase)


def _osc_saw(phase: AudioArray) -> AudioArray:
    return 2.0 * (phase % 1.0) - 1.0


def _osc_square(phase: AudioArray) -> AudioArray:
    return np.where(phase % 1.0 < 0.5, 1.0, -1.0)


def _osc_triangle(phase: AudioArray) -> AudioArray:
    return 2.0 * np.abs(2.0 * (phase % 1.0) - 1.0) - 1.0


_OSC_MAP: dict[str, Callable[[AudioArray], AudioArray]] = {
    "sine": _osc_sine,
    "sawtooth": _osc_saw,
    "square": _osc_square,
    "triangle": _osc_triangle,
}


# ── Voices ───────────────────────────────────────────────


class Voice(AudioNode, ABC):
    """Polyphonic source node: renders every scheduled note into one buffer."""

    kind = "voice"

    def __init__(self, context: OfflineContext, volume_db: float = 0.0, name: str = "") -> None:
        super().__init__(context, name)
        self.volume_db = volume_db
        self.events: list[NoteEvent] = []

    def trigger_attack_release(
        self,
        frequency_hz: float,
        duration: float,
        time: float,
        velocity: float = 1.0,
    ) -> None:
        """Queue a note: attack at ``time``, release after ``duration`` seconds."""
        self.events.append(
            NoteEvent(
                time=time,
                frequency_hz=frequency_hz,
                duration=max(0.0, duration),
                velocity=float(np.clip(velocity, 0.0, 1.0)),
            )
        )

    @abstractmethod
    def render_note(self, event: NoteEvent) -> AudioArray:
        """Mono samples for one note, starting at its attack."""

    def process(self, block: AudioArray) -> AudioArray:
        sr = self.context.sample_rate
        frames = self.context.frames
        mono = np.zeros(frames, dtype=np.float64)

        for event in self.events:
            start = int(round(event.time * sr))
            if start >= frames or event.velocity <= 0.0:
                continue
            note = self.render_note(event)
            end = min(frames, start + len(note))
            mono[start:end] += note[: end - start]

        mono *= db_to_gain(self.volume_db)
        return block + np.repeat(mono[:, None], self.context.channels, axis=1)

    def dispose(self) -> None:
        super().dispose()
        self.events = []


class SynthVoice(Voice):
    """Subtractive voice configured from a channel's synth settings."""

    kind = "synth"

    def __init__(
        self,
        context: OfflineContext,
        settings: SynthSettings,
        volume_db: float = 0.0,
        name: str = "",
    ) -> None:
        super().__init__(context, volume_db, name)
        self.settings = settings
        self.envelope = ADSREnvelope(
            attack_s=settings.attack,
            decay_s=settings.decay,
            sustain=settings.sustain,
            release_s=settings.release,
        )
        self._osc = _OSC_MAP.get(settings.oscillator_type, _osc_sine)
        self._filter = self._filter_coefficients()

    def _filter_coefficients(self) -> tuple[float, float, float, float, float] | None:
        sr = self.context.sample_rate
        cutoff = self.settings.filter_cutoff
        # An open filter is skipped rather than run at the Nyquist edge
        if cutoff <= 0 or cutoff >= sr * 0.45:
            return None
        q = max(0.1, self.settings.filter_resonance)
        return biquad_coefficients("lowpass", cutoff, sr, q)

    def render_note(self, event: NoteEvent) -> AudioArray:
        sr = self.context.sample_rate
        env = self.envelope.generate(event.duration, sr)
        t = np.arange(len(env), dtype=np.float64) / sr
        audio = self._osc(event.frequency_hz * t)
        if self._filter is not None:
            audio = apply_biquad(audio, self._filter)
        return audio * env * event.velocity


class MembraneVoice(Voice):
    """Kick-drum style voice: a sine whose pitch falls ``octaves`` over ``pitch_decay``."""

    kind = "membrane"

    def __init__(
        self,
        context: OfflineContext,
        volume_db: float = 0.0,
        name: str = "",
        pitch_decay: float = 0.05,
        octaves: float = 10.0,
        envelope: ADSREnvelope | None = None,
    ) -> None:
        super().__init__(context, volume_db, name)
        self.pitch_decay = pitch_decay
        self.octaves = octaves
        self.envelope = envelope or ADSREnvelope(
            attack_s=0.001, decay_s=0.4, sustain=0.01, release_s=1.4
        )

    def render_note(self, event: NoteEvent) -> AudioArray:
        sr = self.context.sample_rate
        env = self.envelope.generate(event.duration, sr)
        t = np.arange(len(env), dtype=np.float64) / sr

        # Exponential sweep from freq * octaves down to freq
        start_hz = event.frequency_hz * self.octaves
        ramp = np.clip(t / max(self.pitch_decay, 1.0 / sr), 0.0, 1.0)
        freq = start_hz * (event.frequency_hz / start_hz) ** ramp
        phase = np.cumsum(freq) / sr
        return _osc_sine(phase) * env * event.velocity


def create_voice(context: OfflineContext, channel: Channel) -> Voice:
    """Instantiate the generator a channel plays through."""
    volume_db = gain_to_db(channel.volume)
    name = channel.name or channel.id
    if channel.type == "synth" and channel.synth_settings is not None:
        return SynthVoice(context, channel.synth_settings, volume_db=volume_db, name=name)
    return MembraneVoice(context, volume_db=volume_db, name=name)
