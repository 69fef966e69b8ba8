"""PULSE Voice Pool — one generator per channel that has somewhere to play."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from pulse.grid.project import Channel

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pulse.console.backend import RenderSession
    from pulse.console.graph import MixingGraph
    from pulse.hands.synth import Voice

logger = structlog.get_logger()


def build_voice_pool(
    session: RenderSession,
    channels: Iterable[Channel],
    graph: MixingGraph,
) -> dict[str, Voice]:
    """Create and connect a voice for each channel whose mixer track was built.

    Channels routed to a track that is missing, or filtered out by stem
    isolation, get no voice at all, which is what keeps them silent.
    """
    voices: dict[str, Voice] = {}
    for channel in channels:
        entry = graph.entry_for(channel.mixer_track_id)
        if entry is None:
            logger.debug(
                "voice_pool.channel_skipped",
                channel_id=channel.id,
                mixer_track_id=channel.mixer_track_id,
            )
            continue
        if channel.id in voices:
            logger.debug("voice_pool.duplicate_channel", channel_id=channel.id)
            continue
        voice = session.create_voice(channel)
        voice.connect(entry)
        voices[channel.id] = voice

    logger.info("voice_pool.built", voices=len(voices))
    return voices
