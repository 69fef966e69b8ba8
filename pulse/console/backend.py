"""PULSE audio backend — the capability a renderer is constructed with.

The renderer never reaches for a global audio library. It is handed a
backend that can check its own availability and run one offline pass,
during which a build callback gets a ``RenderSession`` with node factories
bound to that pass's context and transport.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

import structlog

from pulse.config import settings
from pulse.console.scheduler import OfflineTransport
from pulse.grid.project import Channel, Effect
from pulse.hands.effects import create_effect
from pulse.hands.nodes import AudioArray, AudioNode, Destination, Gain, OfflineContext, Panner
from pulse.hands.synth import Voice, create_voice

logger = structlog.get_logger()


@dataclass
class RenderSession:
    """Factories and timing for one offline pass."""

    context: OfflineContext
    transport: OfflineTransport

    @property
    def destination(self) -> Destination:
        return self.context.destination

    @property
    def bpm(self) -> float:
        return self.transport.bpm

    def create_gain(self, volume_db: float = 0.0, name: str = "") -> Gain:
        return Gain(self.context, volume_db, name=name)

    def create_panner(self, pan: float = 0.0, name: str = "") -> Panner:
        return Panner(self.context, pan, name=name)

    def create_voice(self, channel: Channel) -> Voice:
        return create_voice(self.context, channel)

    def create_effect(self, effect: Effect) -> AudioNode | None:
        return create_effect(self.context, effect, self.bpm)


BuildCallback = Callable[[RenderSession], None]


class AudioBackend(Protocol):
    """What the renderer needs from an audio engine."""

    name: str
    sample_rate: int
    channels: int

    def is_available(self) -> bool: ...

    def offline(self, build: BuildCallback, duration_s: float, *, bpm: float) -> AudioArray: ...


class NumpyBackend:
    """Offline rendering on numpy buffers with scipy DSP."""

    name = "numpy"

    def __init__(self, sample_rate: int | None = None, channels: int | None = None) -> None:
        self.sample_rate = sample_rate or settings.sample_rate
        self.channels = channels or settings.channels

    def is_available(self) -> bool:
        """scipy is imported lazily by the DSP code, so probe for it up front."""
        try:
            import scipy.signal  # noqa: F401
        except ImportError:
            return False
        return True

    def offline(self, build: BuildCallback, duration_s: float, *, bpm: float) -> AudioArray:
        """Run ``build`` against a fresh context, then render ``duration_s`` seconds."""
        frames = max(0, int(round(duration_s * self.sample_rate)))
        context = OfflineContext(self.sample_rate, frames, self.channels)
        session = RenderSession(context=context, transport=OfflineTransport(bpm))
        try:
            build(session)
            buffer = context.render()
        finally:
            context.dispose()
        logger.debug("backend.offline_done", backend=self.name, frames=frames, sr=self.sample_rate)
        return buffer
