"""PULSE project model — the immutable snapshot a render consumes.

Mirrors the studio's JSON document (camelCase keys) as frozen dataclasses.
Sequences are tuples, so a parsed ``Project`` cannot change while a render
is reading it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pulse.grid.timing import DEFAULT_BPM, DEFAULT_PPQ, DEFAULT_STEPS_PER_BEAT

EffectType = Literal["eq", "compressor", "reverb", "delay"]
OscillatorType = Literal["sine", "square", "sawtooth", "triangle"]

MASTER_TRACK_INDEX = 0


# ── Instruments ──────────────────────────────────────────


@dataclass(frozen=True)
class SynthSettings:
    """Oscillator, ADSR and filter settings of a synth channel."""

    oscillator_type: OscillatorType = "sawtooth"
    attack: float = 0.01
    decay: float = 0.1
    sustain: float = 0.7
    release: float = 0.3
    filter_cutoff: float = 5000.0
    filter_resonance: float = 1.0

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> SynthSettings:
        return cls(
            oscillator_type=d.get("oscillatorType", "sawtooth"),
            attack=float(d.get("attack", 0.01)),
            decay=float(d.get("decay", 0.1)),
            sustain=float(d.get("sustain", 0.7)),
            release=float(d.get("release", 0.3)),
            filter_cutoff=float(d.get("filterCutoff", 5000.0)),
            filter_resonance=float(d.get("filterResonance", 1.0)),
        )


@dataclass(frozen=True)
class Channel:
    """An instrument in the channel rack, routed to one mixer track."""

    id: str
    type: str = "synth"  # "synth" | "sampler" | anything else
    name: str = ""
    volume: float = 1.0  # Linear gain
    synth_settings: SynthSettings | None = None
    mixer_track_id: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Channel:
        synth = d.get("synthSettings")
        track_id = d.get("mixerTrackId")
        return cls(
            id=str(d["id"]),
            type=str(d.get("type", "synth")),
            name=str(d.get("name", "")),
            volume=float(d.get("volume", 1.0)),
            synth_settings=SynthSettings.from_dict(synth) if synth else None,
            mixer_track_id=str(track_id) if track_id is not None else None,
        )


# ── Patterns ─────────────────────────────────────────────


@dataclass(frozen=True)
class StepEvent:
    """A hit in the step sequencer."""

    channel_id: str
    step: int
    velocity: int = 100  # 0-127, 0 = off
    pitch: int | None = None  # Stored with the project, not played by the step sequencer

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> StepEvent:
        pitch = d.get("pitch")
        return cls(
            channel_id=str(d["channelId"]),
            step=int(d["step"]),
            velocity=int(d.get("velocity", 100)),
            pitch=int(pitch) if pitch is not None else None,
        )


@dataclass(frozen=True)
class Note:
    """A piano-roll note, positioned in ticks relative to its pattern."""

    pitch: int
    start_tick: int
    duration_tick: int
    velocity: int = 100
    channel_id: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Note:
        channel_id = d.get("channelId")
        return cls(
            pitch=int(d["pitch"]),
            start_tick=int(d["startTick"]),
            duration_tick=int(d["durationTick"]),
            velocity=int(d.get("velocity", 100)),
            channel_id=str(channel_id) if channel_id is not None else None,
        )


@dataclass(frozen=True)
class Pattern:
    """A reusable block of step events and piano-roll notes."""

    id: str
    name: str = ""
    length_in_steps: int = 16
    steps_per_beat: int = DEFAULT_STEPS_PER_BEAT
    step_events: tuple[StepEvent, ...] = ()
    notes: tuple[Note, ...] = ()

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Pattern:
        return cls(
            id=str(d["id"]),
            name=str(d.get("name", "")),
            length_in_steps=int(d.get("lengthInSteps", 16)),
            steps_per_beat=int(d.get("stepsPerBeat", DEFAULT_STEPS_PER_BEAT)),
            step_events=tuple(StepEvent.from_dict(e) for e in d.get("stepEvents", [])),
            notes=tuple(Note.from_dict(n) for n in d.get("notes", [])),
        )


# ── Playlist ─────────────────────────────────────────────


@dataclass(frozen=True)
class Clip:
    """A placement of a pattern (or audio asset) on the timeline."""

    id: str
    start_tick: int
    duration_tick: int
    pattern_id: str | None = None
    type: str = "pattern"  # "pattern" | "audio"
    mute: bool = False

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Clip:
        pattern_id = d.get("patternId")
        return cls(
            id=str(d.get("id", "")),
            start_tick=int(d.get("startTick", 0)),
            duration_tick=int(d.get("durationTick", 0)),
            pattern_id=str(pattern_id) if pattern_id is not None else None,
            type=str(d.get("type", "pattern")),
            mute=bool(d.get("mute", False)),
        )


@dataclass(frozen=True)
class Playlist:
    clips: tuple[Clip, ...] = ()

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Playlist:
        return cls(clips=tuple(Clip.from_dict(c) for c in d.get("clips", [])))


# ── Mixer ────────────────────────────────────────────────


@dataclass(frozen=True)
class EQParams:
    """3-band EQ: gains in dB, crossovers in Hz."""

    low_gain: float = 0.0
    mid_gain: float = 0.0
    high_gain: float = 0.0
    low_freq: float = 200.0
    high_freq: float = 3000.0


@dataclass(frozen=True)
class CompressorParams:
    threshold: float = -24.0  # dB
    ratio: float = 4.0
    attack: float = 0.003  # seconds
    release: float = 0.25  # seconds
    makeup_gain: float = 0.0  # dB


@dataclass(frozen=True)
class ReverbParams:
    decay: float = 2.0  # seconds
    pre_delay: float = 0.01  # seconds
    wet: float = 0.3


@dataclass(frozen=True)
class DelayParams:
    time: float = 0.25  # seconds
    feedback: float = 0.4
    wet: float = 0.3
    sync: str | None = None  # Transport notation ("8n", "8t", ...) overrides time


EffectParams = EQParams | CompressorParams | ReverbParams | DelayParams

_PARAM_KEYS: dict[str, tuple[type, dict[str, str]]] = {
    "eq": (
        EQParams,
        {
            "lowGain": "low_gain",
            "midGain": "mid_gain",
            "highGain": "high_gain",
            "lowFreq": "low_freq",
            "highFreq": "high_freq",
        },
    ),
    "compressor": (
        CompressorParams,
        {
            "threshold": "threshold",
            "ratio": "ratio",
            "attack": "attack",
            "release": "release",
            "makeupGain": "makeup_gain",
        },
    ),
    "reverb": (ReverbParams, {"decay": "decay", "preDelay": "pre_delay", "wet": "wet"}),
    "delay": (DelayParams, {"time": "time", "feedback": "feedback", "wet": "wet"}),
}


@dataclass(frozen=True)
class Effect:
    """An insert effect on a mixer track."""

    type: str
    params: EffectParams | None = None  # None for types this engine cannot build
    enabled: bool = True
    id: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Effect:
        etype = str(d["type"])
        raw = d.get("params") or {}
        params: EffectParams | None = None
        if etype in _PARAM_KEYS:
            params_cls, keys = _PARAM_KEYS[etype]
            kwargs: dict[str, Any] = {
                attr: float(raw[key]) for key, attr in keys.items() if key in raw
            }
            if etype == "delay" and raw.get("sync"):
                kwargs["sync"] = str(raw["sync"])
            params = params_cls(**kwargs)
        return cls(
            type=etype,
            params=params,
            enabled=bool(d.get("enabled", True)),
            id=str(d.get("id", "")),
        )


@dataclass(frozen=True)
class MixerTrack:
    """A mixer strip: gain → pan → ordered inserts."""

    id: str
    index: int
    name: str = ""
    volume: float = 1.0  # Linear gain
    pan: float = 0.0  # -1 (left) to +1 (right)
    inserts: tuple[Effect, ...] = ()

    @property
    def is_master(self) -> bool:
        return self.index == MASTER_TRACK_INDEX

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> MixerTrack:
        return cls(
            id=str(d["id"]),
            index=int(d["index"]),
            name=str(d.get("name", "")),
            volume=float(d.get("volume", 1.0)),
            pan=float(d.get("pan", 0.0)),
            inserts=tuple(Effect.from_dict(e) for e in d.get("inserts", [])),
        )


@dataclass(frozen=True)
class Mixer:
    tracks: tuple[MixerTrack, ...] = ()
    master_volume: float = 1.0

    @property
    def master(self) -> MixerTrack | None:
        return next((t for t in self.tracks if t.is_master), None)

    def track(self, track_id: str) -> MixerTrack | None:
        return next((t for t in self.tracks if t.id == track_id), None)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Mixer:
        return cls(
            tracks=tuple(MixerTrack.from_dict(t) for t in d.get("tracks", [])),
            master_volume=float(d.get("masterVolume", 1.0)),
        )


# ── Project ──────────────────────────────────────────────


@dataclass(frozen=True)
class TimeSignature:
    numerator: int = 4
    denominator: int = 4


@dataclass(frozen=True)
class Project:
    """Complete render input: tempo, instruments, patterns, timeline, mixer."""

    bpm: float = DEFAULT_BPM
    ppq: int = DEFAULT_PPQ
    time_signature: TimeSignature = field(default_factory=TimeSignature)
    channels: tuple[Channel, ...] = ()
    patterns: tuple[Pattern, ...] = ()
    playlist: Playlist = field(default_factory=Playlist)
    mixer: Mixer = field(default_factory=Mixer)
    id: str = ""
    name: str = ""

    def pattern(self, pattern_id: str | None) -> Pattern | None:
        return next((p for p in self.patterns if p.id == pattern_id), None)

    def channel(self, channel_id: str | None) -> Channel | None:
        return next((c for c in self.channels if c.id == channel_id), None)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Project:
        """Parse the studio's JSON project document."""
        ts = d.get("timeSignature") or {}
        return cls(
            bpm=float(d.get("bpm", DEFAULT_BPM)),
            ppq=int(d.get("ppq", DEFAULT_PPQ)),
            time_signature=TimeSignature(
                numerator=int(ts.get("numerator", 4)),
                denominator=int(ts.get("denominator", 4)),
            ),
            channels=tuple(Channel.from_dict(c) for c in d.get("channels", [])),
            patterns=tuple(Pattern.from_dict(p) for p in d.get("patterns", [])),
            playlist=Playlist.from_dict(d.get("playlist") or {}),
            mixer=Mixer.from_dict(d.get("mixer") or {}),
            id=str(d.get("id", "")),
            name=str(d.get("name", "")),
        )


def validate_project(project: Project) -> list[str]:
    """Return the structural problems that make a project unrenderable.

    Dangling references (unknown pattern, channel or mixer track) are not
    reported here; the renderer skips them.
    """
    errors: list[str] = []
    if project.bpm <= 0:
        errors.append(f"BPM must be > 0, got {project.bpm}")
    if project.ppq <= 0:
        errors.append(f"PPQ must be > 0, got {project.ppq}")
    if project.time_signature.numerator <= 0:
        errors.append(
            f"Time signature numerator must be > 0, got {project.time_signature.numerator}"
        )
    if project.mixer.master_volume < 0:
        errors.append(f"Master volume must be >= 0, got {project.mixer.master_volume}")
    for clip in project.playlist.clips:
        if clip.duration_tick < 0:
            errors.append(f"Clip {clip.id or '?'}: duration must be >= 0, got {clip.duration_tick}")
    return errors
