"""PULSE Project Model Tests — JSON parsing, defaults, validation, duration."""

import dataclasses

import pytest

from pulse.grid.arrangement import calculate_duration_ticks
from pulse.grid.project import (
    CompressorParams,
    DelayParams,
    EQParams,
    Project,
    ReverbParams,
    validate_project,
)


# ── Parsing ──────────────────────────────────────────────


def test_from_dict_reads_camel_case(studio_project):
    p = studio_project
    assert p.bpm == 120 and p.ppq == 96
    assert [c.id for c in p.channels] == ["ch-kick", "ch-lead"]
    assert p.channel("ch-lead").synth_settings.oscillator_type == "sawtooth"
    assert p.channel("ch-lead").mixer_track_id == "trk-synth"
    assert p.pattern("pat-1").step_events[1].step == 8
    assert p.pattern("pat-1").notes[0].channel_id == "ch-lead"
    assert p.mixer.master.id == "trk-master"
    assert p.mixer.track("trk-drums").inserts[0].enabled is False


def test_missing_fields_take_studio_defaults():
    p = Project.from_dict({"channels": [{"id": "c"}], "mixer": {"tracks": [{"id": "m", "index": 0}]}})
    assert p.bpm == 120.0
    assert p.ppq == 96
    assert (p.time_signature.numerator, p.time_signature.denominator) == (4, 4)
    assert p.mixer.master_volume == 1.0
    assert p.channels[0].volume == 1.0
    assert p.mixer.tracks[0].pan == 0.0


def test_numeric_ids_normalized_to_strings():
    """Channel → track references match however the document spells ids."""
    p = Project.from_dict(
        {"channels": [{"id": 7, "mixerTrackId": 1}], "mixer": {"tracks": [{"id": 1, "index": 0}]}}
    )
    assert p.channels[0].id == "7"
    assert p.channels[0].mixer_track_id == "1"
    assert p.mixer.track(p.channels[0].mixer_track_id) is p.mixer.tracks[0]


def test_effect_params_parse_with_defaults(studio_project):
    drums = studio_project.mixer.track("trk-drums")
    synth = studio_project.mixer.track("trk-synth")

    assert drums.inserts[0].params == CompressorParams()
    assert drums.inserts[1].params == EQParams(low_gain=3.0)
    assert synth.inserts[0].params == DelayParams(sync="8n", wet=0.2)
    assert synth.inserts[1].params == ReverbParams(decay=0.5, wet=0.2)


def test_unknown_effect_type_has_no_params():
    p = Project.from_dict(
        {"mixer": {"tracks": [{"id": "m", "index": 0, "inserts": [{"type": "chorus", "params": {"rate": 2}}]}]}}
    )
    assert p.mixer.tracks[0].inserts[0].type == "chorus"
    assert p.mixer.tracks[0].inserts[0].params is None


def test_project_is_immutable(studio_project):
    """A render reads a frozen snapshot."""
    with pytest.raises(dataclasses.FrozenInstanceError):
        studio_project.bpm = 90
    assert isinstance(studio_project.channels, tuple)


def test_missing_required_key_raises():
    with pytest.raises(KeyError):
        Project.from_dict({"channels": [{"name": "no id"}]})


# ── Validation ───────────────────────────────────────────


def test_valid_project_has_no_problems(studio_project):
    assert validate_project(studio_project) == []


def test_validation_reports_structural_problems():
    p = Project.from_dict(
        {
            "bpm": 0,
            "ppq": -1,
            "timeSignature": {"numerator": 0},
            "playlist": {"clips": [{"id": "bad", "patternId": "x", "startTick": 0, "durationTick": -5}]},
            "mixer": {"masterVolume": -0.1},
        }
    )
    problems = validate_project(p)
    assert len(problems) == 5
    assert any("BPM" in e for e in problems)
    assert any("bad" in e for e in problems)


def test_dangling_references_are_not_validation_errors():
    p = Project.from_dict({"playlist": {"clips": [{"id": "c", "patternId": "ghost", "durationTick": 96}]}})
    assert validate_project(p) == []


# ── Duration ─────────────────────────────────────────────


def test_duration_floor_is_four_bars(kick_project):
    """A one-bar clip still renders the four-bar minimum."""
    assert calculate_duration_ticks(kick_project) == 96 * 4 * 4


def test_duration_follows_last_clip_end():
    p = Project.from_dict(
        {
            "playlist": {
                "clips": [
                    {"id": "a", "startTick": 0, "durationTick": 384},
                    {"id": "b", "startTick": 3000, "durationTick": 500},
                ]
            }
        }
    )
    assert calculate_duration_ticks(p) == 3500


def test_muted_clips_still_count():
    p = Project.from_dict({"playlist": {"clips": [{"id": "m", "startTick": 2000, "durationTick": 384, "mute": True}]}})
    assert calculate_duration_ticks(p) == 2384


def test_duration_floor_respects_meter():
    p = Project.from_dict({"ppq": 480, "timeSignature": {"numerator": 3, "denominator": 4}})
    assert calculate_duration_ticks(p, min_bars=2) == 480 * 3 * 2
