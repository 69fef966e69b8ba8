"""PULSE Render Orchestrator — project snapshot in, WAV bytes out.

One call runs four phases against a backend's offline pass:

    preparing  (0, 10)  backend check, validation, duration
    rendering  (50)     mixing graph → voice pool → scheduled triggers
    encoding   (80)     16-bit PCM WAV
    complete   (100)

Any failure reports an ``error`` event and raises ``RenderError`` carrying
the phase it happened in. Nothing is shared between calls: every render
builds a fresh graph inside its own context, and the progress sink is a
per-call argument.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal

import numpy as np
import structlog

from pulse.config import Settings, settings as default_settings
from pulse.console.backend import AudioBackend, NumpyBackend, RenderSession
from pulse.console.graph import build_mixing_graph
from pulse.console.scheduler import schedule_project
from pulse.console.voice_pool import build_voice_pool
from pulse.console.wav import encode_wav
from pulse.errors import BackendUnavailableError, RenderError
from pulse.grid.arrangement import calculate_duration_ticks
from pulse.grid.project import Project, validate_project
from pulse.grid.timing import gain_to_db, ticks_to_seconds
from pulse.hands.nodes import AudioArray

logger = structlog.get_logger()

RenderPhase = Literal["preparing", "rendering", "encoding", "complete", "error"]


@dataclass(frozen=True)
class RenderProgress:
    """One progress notification."""

    phase: RenderPhase
    progress: int  # 0-100, milestone not sample-accurate
    message: str


ProgressSink = Callable[[RenderProgress], None]


@dataclass
class RenderResult:
    """Encoded output plus the raw buffer it came from."""

    wav: bytes
    buffer: AudioArray
    duration_seconds: float
    sample_rate: int
    channels: int
    track_id: str | None = None

    @property
    def peak(self) -> float:
        return float(np.max(np.abs(self.buffer))) if self.buffer.size else 0.0


class OfflineRenderer:
    """Renders whole projects, or single mixer tracks, through an audio backend."""

    def __init__(self, backend: AudioBackend | None = None, settings: Settings | None = None) -> None:
        self.settings = settings or default_settings
        self.backend = backend or NumpyBackend(self.settings.sample_rate, self.settings.channels)

    def duration_seconds(self, project: Project) -> float:
        """Timeline length plus the effects tail."""
        ticks = calculate_duration_ticks(project, self.settings.min_bars)
        return ticks_to_seconds(ticks, project.bpm, project.ppq) + self.settings.tail_seconds

    def render(
        self,
        project: Project,
        *,
        only_track_id: str | None = None,
        on_progress: ProgressSink | None = None,
    ) -> RenderResult:
        """Render ``project`` (or just ``only_track_id``) to WAV."""

        def report(phase: RenderPhase, progress: int, message: str) -> None:
            if on_progress is not None:
                on_progress(RenderProgress(phase=phase, progress=progress, message=message))

        stem = only_track_id is not None
        phase: RenderPhase = "preparing"
        log = logger.bind(project_id=project.id, track_id=only_track_id, backend=self.backend.name)

        try:
            report("preparing", 0, "Preparing stem render..." if stem else "Preparing to render...")
            if not self.backend.is_available():
                msg = f"Audio backend {self.backend.name!r} is not available"
                raise BackendUnavailableError(msg)

            problems = validate_project(project)
            if problems:
                msg = "Invalid project: " + "; ".join(problems)
                raise ValueError(msg)

            duration_s = self.duration_seconds(project)
            report("preparing", 10, f"Rendering {round(duration_s)} seconds of audio...")
            log.info("render.phase", phase=phase, duration_s=round(duration_s, 3))

            def build(session: RenderSession) -> None:
                if not stem:
                    session.destination.volume_db = gain_to_db(project.mixer.master_volume)
                graph = build_mixing_graph(session, project.mixer, isolate_track_id=only_track_id)
                voices = build_voice_pool(session, project.channels, graph)
                schedule_project(project, voices, session.transport)
                session.transport.start()
                report("rendering", 50, "Rendering stem..." if stem else "Rendering audio...")

            phase = "rendering"
            buffer = self.backend.offline(build, duration_s, bpm=project.bpm)
            log.info("render.phase", phase=phase, frames=len(buffer))

            phase = "encoding"
            report("encoding", 80, "Encoding WAV file...")
            wav = encode_wav(buffer, self.backend.sample_rate)
            log.info("render.phase", phase=phase, bytes=len(wav))
        except Exception as e:
            message = str(e) or type(e).__name__
            log.error("render.failed", phase=phase, error=message)
            try:
                report("error", 0, f"Render failed: {message}")
            except Exception as sink_error:
                log.warning("render.progress_sink_failed", phase="error", error=str(sink_error))
            raise RenderError(phase, message) from e

        report("complete", 100, "Render complete!")
        return RenderResult(
            wav=wav,
            buffer=buffer,
            duration_seconds=len(buffer) / self.backend.sample_rate,
            sample_rate=self.backend.sample_rate,
            channels=buffer.shape[1] if buffer.ndim == 2 else 1,
            track_id=only_track_id,
        )

    def render_stems(
        self,
        project: Project,
        *,
        on_progress: ProgressSink | None = None,
    ) -> dict[str, RenderResult]:
        """Render every non-master mixer track in isolation, one after another."""
        stems: dict[str, RenderResult] = {}
        for track in project.mixer.tracks:
            if track.is_master:
                continue
            stems[track.id] = self.render(project, only_track_id=track.id, on_progress=on_progress)
        logger.info("render.stems_done", project_id=project.id, stems=len(stems))
        return stems
