"""Shared fixtures — small studio projects rendered at a low sample rate."""

from __future__ import annotations

import copy
from typing import Any

import pytest

TEST_SR = 8000

MASTER_ID = "trk-master"
DRUMS_ID = "trk-drums"
SYNTH_ID = "trk-synth"


def studio_dict() -> dict[str, Any]:
    """Kick on a drum bus, saw lead on a synth bus, both into master."""
    return {
        "id": "proj-1",
        "name": "Test Beat",
        "bpm": 120,
        "ppq": 96,
        "timeSignature": {"numerator": 4, "denominator": 4},
        "channels": [
            {"id": "ch-kick", "type": "drum", "name": "Kick", "volume": 1.0, "mixerTrackId": DRUMS_ID},
            {
                "id": "ch-lead",
                "type": "synth",
                "name": "Lead",
                "volume": 0.5,
                "mixerTrackId": SYNTH_ID,
                "synthSettings": {
                    "oscillatorType": "sawtooth",
                    "attack": 0.01,
                    "decay": 0.1,
                    "sustain": 0.6,
                    "release": 0.2,
                },
            },
        ],
        "patterns": [
            {
                "id": "pat-1",
                "name": "Main",
                "lengthInSteps": 16,
                "stepsPerBeat": 4,
                "stepEvents": [
                    {"channelId": "ch-kick", "step": 0, "velocity": 127},
                    {"channelId": "ch-kick", "step": 8, "velocity": 100},
                ],
                "notes": [
                    {"pitch": 60, "startTick": 0, "durationTick": 96, "velocity": 100, "channelId": "ch-lead"},
                ],
            }
        ],
        "playlist": {
            "clips": [
                {"id": "clip-1", "type": "pattern", "patternId": "pat-1", "startTick": 0, "durationTick": 384},
            ]
        },
        "mixer": {
            "masterVolume": 1.0,
            "tracks": [
                {"id": MASTER_ID, "index": 0, "name": "Master", "volume": 1.0, "pan": 0.0, "inserts": []},
                {
                    "id": DRUMS_ID,
                    "index": 1,
                    "name": "Drums",
                    "volume": 1.0,
                    "pan": 0.0,
                    "inserts": [
                        {"id": "fx-comp", "type": "compressor", "enabled": False, "params": {}},
                        {"id": "fx-eq", "type": "eq", "enabled": True, "params": {"lowGain": 3}},
                    ],
                },
                {
                    "id": SYNTH_ID,
                    "index": 2,
                    "name": "Synth",
                    "volume": 0.8,
                    "pan": -0.5,
                    "inserts": [
                        {"id": "fx-delay", "type": "delay", "enabled": True, "params": {"sync": "8n", "wet": 0.2}},
                        {"id": "fx-verb", "type": "reverb", "enabled": True, "params": {"decay": 0.5, "wet": 0.2}},
                    ],
                },
            ],
        },
    }


def kick_dict() -> dict[str, Any]:
    """A single kick on the master track, one hit at step 0, one bar clip."""
    return {
        "bpm": 120,
        "ppq": 96,
        "channels": [{"id": "ch-kick", "type": "drum", "mixerTrackId": MASTER_ID}],
        "patterns": [
            {
                "id": "pat-kick",
                "lengthInSteps": 16,
                "stepsPerBeat": 4,
                "stepEvents": [{"channelId": "ch-kick", "step": 0, "velocity": 127}],
            }
        ],
        "playlist": {"clips": [{"id": "c1", "patternId": "pat-kick", "startTick": 0, "durationTick": 96 * 4}]},
        "mixer": {"tracks": [{"id": MASTER_ID, "index": 0, "name": "Master"}]},
    }


@pytest.fixture
def studio_raw() -> dict[str, Any]:
    return copy.deepcopy(studio_dict())


@pytest.fixture
def studio_project():
    from pulse.grid.project import Project

    return Project.from_dict(studio_dict())


@pytest.fixture
def kick_project():
    from pulse.grid.project import Project

    return Project.from_dict(kick_dict())


@pytest.fixture
def renderer():
    from pulse.console.backend import NumpyBackend
    from pulse.console.renderer import OfflineRenderer

    return OfflineRenderer(backend=NumpyBackend(sample_rate=TEST_SR, channels=2))


@pytest.fixture
def session():
    """A bare render session over one second of silence."""
    from pulse.console.backend import RenderSession
    from pulse.console.scheduler import OfflineTransport
    from pulse.hands.nodes import OfflineContext

    context = OfflineContext(TEST_SR, TEST_SR, 2)
    yield RenderSession(context=context, transport=OfflineTransport(120.0))
    context.dispose()
