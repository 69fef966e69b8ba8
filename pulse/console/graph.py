"""PULSE Mixing Graph — per-track strips and their routing.

Each mixer track becomes gain → pan → enabled inserts (declared order).
Regular tracks feed the master strip (index 0), the master feeds the
destination. When isolating a track for a stem, only that strip reaches the
destination and every other non-master strip is never built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from pulse.grid.project import Mixer, MixerTrack
from pulse.grid.timing import gain_to_db
from pulse.hands.nodes import AudioNode, Gain, Panner

if TYPE_CHECKING:
    from pulse.console.backend import RenderSession

logger = structlog.get_logger()


@dataclass
class TrackChain:
    """The built strip of one mixer track."""

    track: MixerTrack
    gain: Gain
    panner: Panner
    inserts: list[AudioNode] = field(default_factory=list)

    @property
    def entry(self) -> AudioNode:
        """Where voices and child tracks connect."""
        return self.gain

    @property
    def exit(self) -> AudioNode:
        return self.inserts[-1] if self.inserts else self.panner

    def nodes(self) -> list[AudioNode]:
        return [self.gain, self.panner, *self.inserts]

    def dispose(self) -> None:
        for node in self.nodes():
            node.dispose()


@dataclass
class MixingGraph:
    """All strips built for one render, keyed by track id."""

    chains: dict[str, TrackChain] = field(default_factory=dict)
    master: TrackChain | None = None
    isolate_track_id: str | None = None

    def entry_for(self, track_id: str | None) -> AudioNode | None:
        chain = self.chains.get(track_id) if track_id is not None else None
        return chain.entry if chain else None

    def dispose(self) -> None:
        for chain in self.chains.values():
            chain.dispose()
        self.chains = {}
        self.master = None


def build_track_chain(session: RenderSession, track: MixerTrack) -> TrackChain:
    """Gain → pan → each enabled insert, wired in series."""
    label = track.name or track.id
    gain = session.create_gain(gain_to_db(track.volume), name=f"{label}:gain")
    panner = session.create_panner(track.pan, name=f"{label}:pan")
    gain.connect(panner)

    chain = TrackChain(track=track, gain=gain, panner=panner)
    tail: AudioNode = panner
    for effect in track.inserts:
        if not effect.enabled:
            continue
        node = session.create_effect(effect)
        if node is None:
            logger.warning("graph.insert_skipped", track_id=track.id, type=effect.type)
            continue
        tail = tail.connect(node)
        chain.inserts.append(node)
    return chain


def build_mixing_graph(
    session: RenderSession,
    mixer: Mixer,
    *,
    isolate_track_id: str | None = None,
) -> MixingGraph:
    """Build and route every strip that takes part in this render."""
    graph = MixingGraph(isolate_track_id=isolate_track_id)

    for track in mixer.tracks:
        if isolate_track_id is not None and track.id != isolate_track_id and not track.is_master:
            continue
        chain = build_track_chain(session, track)
        graph.chains[track.id] = chain
        if track.is_master and graph.master is None:
            graph.master = chain

    destination = session.destination
    if isolate_track_id is not None:
        target = graph.chains.get(isolate_track_id)
        if target is None:
            logger.warning("graph.isolate_unknown_track", track_id=isolate_track_id)
        else:
            target.exit.connect(destination)
    else:
        for chain in graph.chains.values():
            if chain is graph.master:
                chain.exit.connect(destination)
            elif graph.master is not None:
                chain.exit.connect(graph.master.entry)
            else:
                chain.exit.connect(destination)

    logger.info(
        "graph.built",
        tracks=len(graph.chains),
        inserts=sum(len(c.inserts) for c in graph.chains.values()),
        master=graph.master.track.id if graph.master else None,
        isolate=isolate_track_id,
    )
    return graph
