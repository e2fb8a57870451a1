"""Tests for session statistics, the delta clock and config loading."""

import pytest

from posepuppet.constants import MAX_DELTA_TIME
from posepuppet.core.clock import DeltaClock
from posepuppet.core.config_loader import load_rig_config, validate_rig_config
from posepuppet.core.state import SessionStats


def test_stats_counts():
    stats = SessionStats()
    stats.record_valid(0.7)
    stats.record_invalid("no pose")
    stats.record_invalid("no pose")
    assert stats.frame_count == 3
    assert stats.valid_frames == 1
    assert stats.invalid_frames == 2
    assert stats.invalid_reasons == {"no pose": 2}
    assert stats.last_confidence == 0.7
    assert stats.valid_ratio == pytest.approx(1 / 3)


def test_stats_fps_smoothing():
    stats = SessionStats()
    stats.record_delta(0.1)
    assert stats.fps == pytest.approx(10.0)
    stats.record_delta(0.05)
    assert 10.0 < stats.fps < 20.0
    stats.record_delta(0.0)
    assert 10.0 < stats.fps < 20.0


def test_stats_reset():
    stats = SessionStats()
    stats.record_invalid("x")
    stats.reset()
    assert stats.frame_count == 0
    assert stats.invalid_reasons == {}
    assert stats.valid_ratio == 0.0


def test_delta_clock_clamped():
    clock = DeltaClock()
    dt = clock.get_delta()
    assert 0.0 <= dt <= MAX_DELTA_TIME


def test_rig_config_topology():
    config = load_rig_config()
    assert len(config["bodyBones"]) == 12
    assert len(config["faceBones"]) == 68
    assert config["faceReference"] == ["leftJaw2", "rightJaw2"]
    assert config["boneGroups"]["face"] == "faceBones"


def test_delta_clock_remaining():
    clock = DeltaClock()
    assert clock.remaining(None) == 0.0
    assert 0.0 < clock.remaining(1.0) <= 1.0
    assert clock.remaining(1e9) == 0.0


def test_delta_clock_counts_frames():
    clock = DeltaClock()
    clock.get_delta()
    clock.get_delta()
    assert clock.frames == 2
    assert clock.elapsed >= 0.0
    clock.reset()
    assert clock.frames == 0


def test_validate_rig_config_rejects_unknown_group_member():
    config = {"bodyBones": [["a", "b"]], "boneGroups": {"g": ["a-c"]}}
    with pytest.raises(ValueError, match="a-c"):
        validate_rig_config(config)


def test_validate_rig_config_rejects_bad_pairs():
    with pytest.raises(ValueError):
        validate_rig_config({"bodyBones": [["a", "b", "c"]]})
    with pytest.raises(ValueError):
        validate_rig_config({"noseBone": ["nose3"]})


def test_validate_rig_config_accepts_list_aliases():
    config = {"faceBones": [["a", "b"]], "boneGroups": {"face": "faceBones"}}
    assert validate_rig_config(config) is config
