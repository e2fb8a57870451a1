"""Tests for the puppet session and frame driver."""

import asyncio
import logging

import numpy as np
import pytest

from posepuppet.coordination.frame_driver import FrameDriver
from posepuppet.coordination.session import PuppetSession
from posepuppet.core.events import EventType
from posepuppet.estimation.pose import flip_pose
from posepuppet.estimation.recording import PoseRecording, ReplayEstimator


@pytest.fixture
def recording(pose_factory, face_factory):
    rec = PoseRecording()
    rec.append(pose_factory(), face_factory())
    rec.append(pose_factory(offset=(10.0, 10.0)), face_factory(offset=(10.0, 10.0)))
    rec.append(pose_factory(score=0.05), face_factory())
    return rec


@pytest.fixture
def session(illustration, recording):
    replay = ReplayEstimator(recording)
    return PuppetSession(replay, replay, illustration, flip_pose=False)


def _collect(session, event_type):
    received = []
    session.events.subscribe(event_type, lambda **kw: received.append(kw))
    return received


def test_step_returns_render_paths(session):
    driver = FrameDriver(session)
    paths = asyncio.run(driver.step(0))
    assert paths is not None
    assert {p.name for p in paths} == {"torso", "rightArm", "head", "brim"}
    assert session.stats.valid_frames == 1


def test_run_publishes_events_and_counts(session):
    updated = _collect(session, EventType.FRAME_UPDATED)
    invalid = _collect(session, EventType.FRAME_INVALID)
    data = _collect(session, EventType.SKELETON_DATA)
    stopped = _collect(session, EventType.DRIVER_STOPPED)

    driver = FrameDriver(session)
    count = asyncio.run(driver.run(range(4)))

    assert count == 4
    assert [e["frame_index"] for e in updated] == [0, 1]
    assert [(e["frame_index"], e["reason"]) for e in invalid] == [
        (2, "skeleton rejected frame"),
        (3, "no pose"),
    ]
    # Frame 3 has no pose, so nothing is sent to peers.
    assert len(data) == 3
    assert stopped == [{"frames": 4}]
    assert session.stats.frame_count == 4
    assert session.stats.valid_frames == 2
    assert session.stats.invalid_frames == 2
    assert not driver.running


def test_second_frame_translated(session):
    driver = FrameDriver(session)
    first = {p.name: p for p in asyncio.run(driver.step(0))}
    second = {p.name: p for p in asyncio.run(driver.step(1))}
    # Body keypoints fuse with the first frame, halving the (10, 10) move;
    # a reliable face is taken as is.
    expected = {"torso": (5, 5), "rightArm": (5, 5), "head": (10, 10), "brim": (10, 10)}
    for name, shift in expected.items():
        for sa, sb in zip(first[name].segments, second[name].segments):
            np.testing.assert_array_almost_equal(np.subtract(sb.point, sa.point), shift, decimal=6)


def test_invalid_frame_returns_none(session):
    driver = FrameDriver(session)
    asyncio.run(driver.step(0))
    assert asyncio.run(driver.step(2)) is None
    assert session.illustration.render_paths() is None


def test_missing_face_logs_warning(illustration, pose_factory, caplog):
    rec = PoseRecording()
    rec.append(pose_factory(), None)
    replay = ReplayEstimator(rec)
    session = PuppetSession(replay, replay, illustration, flip_pose=False)
    with caplog.at_level(logging.WARNING, logger="posepuppet.coordination.frame_driver"):
        paths = asyncio.run(FrameDriver(session).step(0))
    assert paths is not None
    assert "No face detected" in caplog.text
    assert session.stats.faces_missing == 1


def test_flip_pose_undoes_mirroring(illustration, pose_factory, face_factory):
    mirrored = pose_factory()
    flip_pose(mirrored)
    rec = PoseRecording()
    rec.append(mirrored, face_factory())
    replay = ReplayEstimator(rec)
    session = PuppetSession(replay, replay, illustration, flip_pose=True)
    paths = asyncio.run(FrameDriver(session).step(0))
    torso = next(p for p in paths if p.name == "torso")
    np.testing.assert_array_almost_equal(torso.segments[1].point, (170, 320))


def test_max_frames(session):
    driver = FrameDriver(session)
    assert asyncio.run(driver.run(range(4), max_frames=2)) == 2
    assert session.stats.frame_count == 2


def test_stop_after_current_cycle(session):
    driver = FrameDriver(session)
    session.events.subscribe(EventType.FRAME_UPDATED, lambda **kw: driver.stop())
    assert asyncio.run(driver.run(range(4))) == 1


def test_run_with_infinite_source_until_stopped(session):
    driver = FrameDriver(session)

    def frames():
        while True:
            yield 0

    session.events.subscribe(
        EventType.FRAME_UPDATED,
        lambda **kw: driver.stop() if kw["frame_index"] == 2 else None,
    )
    assert asyncio.run(driver.run(frames())) == 3


def _svg_with_rig(rest_keypoints):
    circles = "".join(
        f'<circle id="{name}" cx="{x}" cy="{y}" r="2"/>' for name, (x, y) in rest_keypoints.items()
    )
    return (
        '<svg xmlns="http://www.w3.org/2000/svg" width="400" height="800">'
        f'<g id="skeleton">{circles}</g>'
        '<g id="illustration"><rect id="torso" x="170" y="320" width="60" height="150"/></g>'
        "</svg>"
    )


def test_session_from_svg(tmp_path, rest_keypoints, recording):
    path = tmp_path / "puppet.svg"
    path.write_text(_svg_with_rig(rest_keypoints), encoding="utf-8")
    replay = ReplayEstimator(recording)
    session = PuppetSession.from_svg(path, replay, replay, flip_pose=False)
    assert session.illustration.stats.paths == 1
    paths = asyncio.run(FrameDriver(session).step(0))
    np.testing.assert_array_almost_equal(paths[0].segments[1].point, (170, 320))


def test_peer_session_is_independent(session, recording):
    replay = ReplayEstimator(recording)
    peer = session.peer(replay, replay)
    assert peer.illustration is not session.illustration
    assert peer.events is not session.events
    asyncio.run(FrameDriver(peer).step(1))
    assert peer.illustration.skeleton.is_valid
    assert not session.illustration.skeleton.is_valid


def test_run_paced_to_target_fps(session):
    driver = FrameDriver(session)
    assert asyncio.run(driver.run(range(2), target_fps=50.0)) == 2
    assert 0.0 < session.stats.fps <= 60.0
