"""PULSE Event Scheduler — expands playlist clips into absolute-time note triggers.

Every time is computed from ticks before the offline pass starts; nothing
here looks at audio. A clip longer than its pattern repeats the pattern,
and anything that would start at or after the clip's end is dropped.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Literal

import structlog

from pulse.grid.project import Clip, Pattern, Project
from pulse.grid.timing import (
    midi_note_to_frequency,
    pattern_length_ticks,
    subdivision_to_seconds,
    ticks_to_seconds,
)

if TYPE_CHECKING:
    from pulse.hands.synth import Voice

logger = structlog.get_logger()

# The step sequencer plays one fixed pitch per channel
SAMPLER_REFERENCE_PITCH = 60
DEFAULT_REFERENCE_PITCH = 36
STEP_LENGTH = "16n"


@dataclass(frozen=True)
class Trigger:
    """An attack+release instruction for one channel's voice."""

    time: float  # seconds from render start
    channel_id: str
    frequency_hz: float
    duration: float  # seconds
    velocity: float  # 0-1
    source: Literal["step", "note"] = "step"


# ── Planning ─────────────────────────────────────────────


def _repeat_times(clip_start: float, clip_end: float, offset: float, pattern_s: float, repeats: int) -> list[float]:
    times: list[float] = []
    for i in range(repeats):
        time = clip_start + offset + i * pattern_s
        if time >= clip_end:
            break
        times.append(time)
    return times


def plan_clip(clip: Clip, pattern: Pattern, project: Project) -> list[Trigger]:
    """Expand one clip of ``pattern`` into triggers, repeating to fill the clip."""
    bpm, ppq = project.bpm, project.ppq
    clip_start = ticks_to_seconds(clip.start_tick, bpm, ppq)
    clip_duration = ticks_to_seconds(clip.duration_tick, bpm, ppq)
    pattern_s = ticks_to_seconds(pattern_length_ticks(pattern, ppq), bpm, ppq)
    if pattern_s <= 0.0:
        logger.debug("scheduler.empty_pattern", pattern_id=pattern.id, clip_id=clip.id)
        return []

    clip_end = clip_start + clip_duration
    repeats = math.ceil(clip_duration / pattern_s)
    step_s = subdivision_to_seconds(STEP_LENGTH, bpm)
    triggers: list[Trigger] = []

    for event in pattern.step_events:
        channel = project.channel(event.channel_id)
        if channel is None:
            logger.debug("scheduler.unknown_channel", channel_id=event.channel_id, pattern_id=pattern.id)
            continue
        if event.velocity <= 0:
            continue
        # Legacy: the step's own pitch is ignored, every hit plays the channel's reference pitch
        pitch = SAMPLER_REFERENCE_PITCH if channel.type == "sampler" else DEFAULT_REFERENCE_PITCH

        offset = ticks_to_seconds((event.step / pattern.steps_per_beat) * ppq, bpm, ppq)
        for time in _repeat_times(clip_start, clip_end, offset, pattern_s, repeats):
            triggers.append(
                Trigger(
                    time=time,
                    channel_id=channel.id,
                    frequency_hz=midi_note_to_frequency(pitch),
                    duration=step_s,
                    velocity=event.velocity / 127,
                    source="step",
                )
            )

    for note in pattern.notes:
        # Notes without a channel fall back to the first channel (legacy data)
        if note.channel_id is not None:
            channel = project.channel(note.channel_id)
        else:
            channel = project.channels[0] if project.channels else None
        if channel is None:
            logger.debug("scheduler.unknown_channel", channel_id=note.channel_id, pattern_id=pattern.id)
            continue

        offset = ticks_to_seconds(note.start_tick, bpm, ppq)
        duration = ticks_to_seconds(note.duration_tick, bpm, ppq)
        for time in _repeat_times(clip_start, clip_end, offset, pattern_s, repeats):
            triggers.append(
                Trigger(
                    time=time,
                    channel_id=channel.id,
                    frequency_hz=midi_note_to_frequency(note.pitch),
                    duration=duration,
                    velocity=note.velocity / 127,
                    source="note",
                )
            )

    return triggers


def plan_project(project: Project) -> list[Trigger]:
    """Triggers for every audible pattern clip, ordered by time."""
    triggers: list[Trigger] = []
    for clip in project.playlist.clips:
        if clip.mute or clip.type != "pattern":
            continue
        pattern = project.pattern(clip.pattern_id)
        if pattern is None:
            logger.debug("scheduler.unknown_pattern", pattern_id=clip.pattern_id, clip_id=clip.id)
            continue
        triggers.extend(plan_clip(clip, pattern, project))
    triggers.sort(key=lambda t: t.time)
    return triggers


# ── Transport ────────────────────────────────────────────


class OfflineTransport:
    """Non-realtime transport: collects timed callbacks and fires them in order."""

    def __init__(self, bpm: float) -> None:
        self.bpm = bpm
        self.started = False
        self._events: list[tuple[float, int, Callable[[float], None]]] = []

    def to_seconds(self, notation: str) -> float:
        return subdivision_to_seconds(notation, self.bpm)

    def schedule(self, callback: Callable[[float], None], time: float) -> int:
        """Register ``callback(time)``; returns the event id."""
        event_id = len(self._events)
        self._events.append((time, event_id, callback))
        return event_id

    def start(self) -> int:
        """Fire every scheduled callback in time order; returns how many ran."""
        self.started = True
        for time, _, callback in sorted(self._events, key=lambda e: (e[0], e[1])):
            callback(time)
        return len(self._events)


def schedule_project(
    project: Project,
    voices: dict[str, Voice],
    transport: OfflineTransport,
) -> list[Trigger]:
    """Schedule every trigger whose channel has a voice; returns what was scheduled."""
    scheduled: list[Trigger] = []
    skipped = 0
    for trigger in plan_project(project):
        voice = voices.get(trigger.channel_id)
        if voice is None:
            skipped += 1
            continue

        def fire(time: float, voice: Voice = voice, trigger: Trigger = trigger) -> None:
            voice.trigger_attack_release(trigger.frequency_hz, trigger.duration, time, trigger.velocity)

        transport.schedule(fire, trigger.time)
        scheduled.append(trigger)

    logger.info("scheduler.scheduled", triggers=len(scheduled), skipped=skipped)
    return scheduled
