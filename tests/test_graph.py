"""PULSE Graph Tests — node wiring rules, mixer strips, routing and the voice pool."""

import numpy as np
import pytest

from pulse.console.graph import build_mixing_graph
from pulse.console.voice_pool import build_voice_pool
from pulse.errors import GraphError
from pulse.hands.effects import Compressor, EQ3, FeedbackDelay, Reverb
from pulse.hands.nodes import Gain, OfflineContext, Panner
from pulse.hands.synth import MembraneVoice, SynthVoice


# ── Node rules ───────────────────────────────────────────


def test_connect_across_contexts_rejected():
    a = OfflineContext(8000, 10)
    b = OfflineContext(8000, 10)
    with pytest.raises(GraphError):
        Gain(a).connect(b.destination)


def test_connect_after_dispose_rejected():
    ctx = OfflineContext(8000, 10)
    node = Gain(ctx)
    node.dispose()
    with pytest.raises(GraphError):
        node.connect(ctx.destination)


def test_cycle_detected_on_render():
    ctx = OfflineContext(8000, 10)
    a, b = Gain(ctx), Gain(ctx)
    a.connect(b).connect(a)
    b.connect(ctx.destination)
    with pytest.raises(GraphError):
        ctx.render()


def test_unconnected_nodes_are_silent():
    ctx = OfflineContext(8000, 100)
    voice = MembraneVoice(ctx)
    voice.trigger_attack_release(55.0, 0.01, 0.0)
    assert not np.any(ctx.render())


def test_panner_equal_power():
    ctx = OfflineContext(8000, 4)
    block = np.ones((4, 2))
    assert np.allclose(Panner(ctx, 0.0).process(block), block)
    hard_right = Panner(ctx, 1.0).process(block)
    assert np.allclose(hard_right[:, 0], 0.0, atol=1e-12)
    assert np.allclose(hard_right[:, 1], 2.0)


def test_gain_in_db():
    ctx = OfflineContext(8000, 4)
    assert Gain(ctx, -6.0206).gain == pytest.approx(0.5, rel=1e-4)
    assert Gain(ctx, float("-inf")).gain == 0.0


# ── Mixing graph ─────────────────────────────────────────


def test_chain_order_and_disabled_inserts_absent(session, studio_project):
    graph = build_mixing_graph(session, studio_project.mixer)
    drums = graph.chains["trk-drums"]
    synth = graph.chains["trk-synth"]

    # The disabled compressor never becomes a node
    assert [type(n) for n in drums.inserts] == [EQ3]
    assert not any(isinstance(n, Compressor) for n in session.context.nodes)
    assert [type(n) for n in synth.inserts] == [FeedbackDelay, Reverb]

    assert drums.gain.outputs == [drums.panner]
    assert drums.panner.outputs == [drums.inserts[0]]
    assert synth.inserts[0].outputs == [synth.inserts[1]]
    assert synth.panner.pan == -0.5
    assert synth.gain.gain == pytest.approx(0.8)


def test_tracks_route_to_master_and_master_to_destination(session, studio_project):
    graph = build_mixing_graph(session, studio_project.mixer)
    master = graph.master
    assert master.track.id == "trk-master"
    assert master.exit.outputs == [session.destination]
    for track_id in ("trk-drums", "trk-synth"):
        assert graph.chains[track_id].exit.outputs == [master.entry]


def test_without_master_tracks_go_straight_out(session):
    from pulse.grid.project import Mixer, MixerTrack

    mixer = Mixer(tracks=(MixerTrack(id="a", index=1), MixerTrack(id="b", index=2)))
    graph = build_mixing_graph(session, mixer)
    assert graph.master is None
    assert graph.chains["a"].exit.outputs == [session.destination]
    assert graph.chains["b"].exit.outputs == [session.destination]


def test_isolation_builds_target_and_master_only(session, studio_project):
    graph = build_mixing_graph(session, studio_project.mixer, isolate_track_id="trk-drums")
    assert set(graph.chains) == {"trk-master", "trk-drums"}
    assert graph.chains["trk-drums"].exit.outputs == [session.destination]
    # Master is built but never reaches the output
    assert session.destination.inputs == [graph.chains["trk-drums"].exit]


def test_unknown_isolation_target_leaves_output_unconnected(session, studio_project):
    graph = build_mixing_graph(session, studio_project.mixer, isolate_track_id="nope")
    assert "nope" not in graph.chains
    assert session.destination.inputs == []


def test_delay_sync_follows_tempo(session):
    from pulse.grid.project import DelayParams, Effect

    node = session.create_effect(Effect(type="delay", params=DelayParams(sync="8t", time=0.9)))
    assert node.delay_time == pytest.approx(0.25 * 2 / 3)
    plain = session.create_effect(Effect(type="delay", params=DelayParams(time=0.3)))
    assert plain.delay_time == pytest.approx(0.3)


def test_unsupported_insert_skipped(session):
    from pulse.grid.project import Effect, Mixer, MixerTrack

    track = MixerTrack(id="m", index=0, inserts=(Effect(type="chorus"), Effect(type="eq", params=None)))
    graph = build_mixing_graph(session, Mixer(tracks=(track,)))
    assert graph.chains["m"].inserts == []
    assert graph.chains["m"].exit is graph.chains["m"].panner


def test_dispose_tears_down_every_strip(session, studio_project):
    graph = build_mixing_graph(session, studio_project.mixer)
    nodes = [n for c in graph.chains.values() for n in c.nodes()]
    graph.dispose()
    assert graph.chains == {}
    assert all(n.disposed for n in nodes)


# ── Voice pool ───────────────────────────────────────────


def test_voice_pool_one_voice_per_routed_channel(session, studio_project):
    graph = build_mixing_graph(session, studio_project.mixer)
    voices = build_voice_pool(session, studio_project.channels, graph)

    assert set(voices) == {"ch-kick", "ch-lead"}
    assert isinstance(voices["ch-kick"], MembraneVoice)
    assert isinstance(voices["ch-lead"], SynthVoice)
    assert voices["ch-lead"].volume_db == pytest.approx(-6.0206, abs=1e-4)
    assert voices["ch-kick"].outputs == [graph.chains["trk-drums"].entry]


def test_stem_isolation_pool_holds_only_target_channels(session, studio_project):
    """Isolating the drum track instantiates only the drum track's channels."""
    graph = build_mixing_graph(session, studio_project.mixer, isolate_track_id="trk-drums")
    voices = build_voice_pool(session, studio_project.channels, graph)

    assert set(voices) == {"ch-kick"}
    assert not any(isinstance(n, SynthVoice) for n in session.context.nodes)


def test_channel_with_unknown_track_gets_no_voice(session):
    from pulse.grid.project import Channel, Mixer, MixerTrack

    graph = build_mixing_graph(session, Mixer(tracks=(MixerTrack(id="m", index=0),)))
    voices = build_voice_pool(
        session,
        [Channel(id="a", mixer_track_id="m"), Channel(id="b", mixer_track_id="gone"), Channel(id="c")],
        graph,
    )
    assert set(voices) == {"a"}
