"""PULSE signal nodes — the offline audio graph.

Every node belongs to one ``OfflineContext``. A node's output is the sum of
its inputs passed through ``process``; rendering pulls the destination,
which recursively pulls everything connected upstream. Nodes that are not
connected to the destination are never evaluated, so they stay silent.

Buffers are ``(frames, channels)`` float64 arrays covering the whole render.
"""

from __future__ import annotations

import math

import numpy as np
import numpy.typing as npt
import structlog

from pulse.errors import GraphError
from pulse.grid.timing import db_to_gain

logger = structlog.get_logger()

# ── Type Aliases ────────────────────────────────────────────
AudioArray = npt.NDArray[np.float64]


class AudioNode:
    """Base node: connect / disconnect / dispose plus a buffer transform."""

    kind = "node"

    def __init__(self, context: OfflineContext, name: str = "") -> None:
        self.context = context
        self.name = name or self.kind
        self.inputs: list[AudioNode] = []
        self.outputs: list[AudioNode] = []
        self.disposed = False
        context.register(self)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"

    def connect(self, destination: AudioNode) -> AudioNode:
        """Route this node's output into ``destination``; returns it for chaining."""
        if self.disposed or destination.disposed:
            msg = f"Cannot connect disposed node: {self!r} -> {destination!r}"
            raise GraphError(msg)
        if destination.context is not self.context:
            msg = f"Cannot connect nodes from different render contexts: {self!r} -> {destination!r}"
            raise GraphError(msg)
        if destination not in self.outputs:
            self.outputs.append(destination)
            destination.inputs.append(self)
        return destination

    def disconnect(self) -> None:
        """Remove every outgoing connection."""
        for dst in self.outputs:
            dst.inputs = [n for n in dst.inputs if n is not self]
        self.outputs = []

    def dispose(self) -> None:
        """Disconnect in both directions and release buffers."""
        if self.disposed:
            return
        self.disconnect()
        for src in list(self.inputs):
            src.outputs = [n for n in src.outputs if n is not self]
        self.inputs = []
        self.disposed = True

    def process(self, block: AudioArray) -> AudioArray:
        """Transform the summed input. Identity by default."""
        return block


class Gain(AudioNode):
    """Volume stage. Level is kept in dB, like a fader."""

    kind = "gain"

    def __init__(self, context: OfflineContext, volume_db: float = 0.0, name: str = "") -> None:
        super().__init__(context, name)
        self.volume_db = volume_db

    @property
    def gain(self) -> float:
        """Linear gain from dB volume."""
        return db_to_gain(self.volume_db)

    def process(self, block: AudioArray) -> AudioArray:
        return block * self.gain


class Panner(AudioNode):
    """Equal-power stereo panner (-1 left … +1 right), unity at center."""

    kind = "pan"

    def __init__(self, context: OfflineContext, pan: float = 0.0, name: str = "") -> None:
        super().__init__(context, name)
        self.pan = float(np.clip(pan, -1.0, 1.0))

    def process(self, block: AudioArray) -> AudioArray:
        if block.shape[1] != 2 or self.pan == 0.0:
            return block
        left, right = block[:, 0], block[:, 1]
        out = np.empty_like(block)
        if self.pan < 0:
            x = (self.pan + 1.0) * math.pi / 2
            out[:, 0] = left + right * math.cos(x)
            out[:, 1] = right * math.sin(x)
        else:
            x = self.pan * math.pi / 2
            out[:, 0] = left * math.cos(x)
            out[:, 1] = right + left * math.sin(x)
        return out


class Destination(Gain):
    """Final output of a context. Its volume is the master volume."""

    kind = "destination"


class OfflineContext:
    """Owns the nodes of one render and evaluates the graph once."""

    def __init__(self, sample_rate: int, frames: int, channels: int = 2) -> None:
        if sample_rate <= 0 or frames < 0 or channels <= 0:
            msg = f"Invalid render context: sr={sample_rate}, frames={frames}, channels={channels}"
            raise ValueError(msg)
        self.sample_rate = sample_rate
        self.frames = frames
        self.channels = channels
        self.nodes: list[AudioNode] = []
        self.destination = Destination(self, name="destination")

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate

    def register(self, node: AudioNode) -> None:
        self.nodes.append(node)

    def silence(self) -> AudioArray:
        return np.zeros((self.frames, self.channels), dtype=np.float64)

    def render(self) -> AudioArray:
        """Pull the destination and return the mixed buffer."""
        cache: dict[int, AudioArray] = {}
        visiting: set[int] = set()

        def pull(node: AudioNode) -> AudioArray:
            key = id(node)
            if key in cache:
                return cache[key]
            if key in visiting:
                msg = f"Cycle in signal graph at {node!r}"
                raise GraphError(msg)
            visiting.add(key)
            mixed = self.silence()
            for src in node.inputs:
                mixed += pull(src)
            out = node.process(mixed)
            visiting.discard(key)
            cache[key] = out
            return out

        buffer = pull(self.destination)
        logger.debug(
            "context.rendered",
            nodes=len(self.nodes),
            evaluated=len(cache),
            frames=self.frames,
        )
        return buffer

    def dispose(self) -> None:
        """Tear down every node created in this context."""
        for node in self.nodes:
            node.dispose()
        self.nodes = []
