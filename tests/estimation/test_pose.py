"""Tests for pose/face estimate helpers."""

import numpy as np

from posepuppet.estimation.pose import (
    FaceFrame,
    FacePrediction,
    Keypoint,
    Pose,
    flip_face,
    flip_pose,
    to_face_frame,
)
from posepuppet.rig.keypoints import (
    FACE_PART_INDEX,
    FACE_PART_NAMES,
    match_part_name,
    mirrored_name,
)


def _mesh(n=468):
    # Each vertex encodes its own index so reordering is easy to check.
    return np.stack([np.arange(n, dtype=np.float64), np.arange(n, dtype=np.float64) * 2], axis=1)


def test_pose_find_and_copy():
    pose = Pose([Keypoint("leftHip", (1, 2), 0.5)], 0.7)
    assert pose.find("leftHip").score == 0.5
    assert pose.find("rightHip") is None
    clone = pose.copy()
    clone.keypoints[0].position[0] = 99
    assert pose.keypoints[0].position[0] == 1


def test_flip_pose_swaps_sides():
    pose = Pose([Keypoint("leftHip", (1, 2), 0.5), Keypoint("nose", (0, 0), 0.5)], 0.7)
    flip_pose(pose)
    assert [kp.part for kp in pose.keypoints] == ["rightHip", "nose"]


def test_mirrored_name():
    assert mirrored_name("leftEar") == "rightEar"
    assert mirrored_name("rightJaw2") == "leftJaw2"
    assert mirrored_name("jawMid") == "jawMid"


def test_match_part_name_prefix():
    assert match_part_name("leftHip_marker") == "leftHip"
    assert match_part_name("nose4-copy") == "nose4"
    assert match_part_name("hatBrim") is None
    assert match_part_name(None) is None


def test_to_face_frame_picks_named_vertices():
    frame = to_face_frame(FacePrediction(_mesh(), 0.9))
    assert len(frame) == len(FACE_PART_NAMES)
    assert frame.confidence == 0.9
    i = FACE_PART_NAMES.index("leftJaw2")
    np.testing.assert_array_equal(frame.keypoint(i), [356, 712])


def test_to_face_frame_drops_depth():
    mesh = np.concatenate([_mesh(), np.ones((468, 1))], axis=1)
    frame = to_face_frame(FacePrediction(mesh, 0.9))
    assert frame.positions.shape == (len(FACE_PART_NAMES), 2)


def test_flip_face_swaps_mirrored_vertices():
    prediction = FacePrediction(_mesh(), 0.9)
    flip_face(prediction)
    left, right = FACE_PART_INDEX["leftJaw2"], FACE_PART_INDEX["rightJaw2"]
    np.testing.assert_array_equal(prediction.scaled_mesh[left], [right, right * 2])
    np.testing.assert_array_equal(prediction.scaled_mesh[right], [left, left * 2])
    mid = FACE_PART_INDEX["jawMid"]
    np.testing.assert_array_equal(prediction.scaled_mesh[mid], [mid, mid * 2])


def test_face_frame_keypoint_past_end():
    frame = FaceFrame(np.zeros((3, 2)), 1.0)
    assert frame.keypoint(2) is not None
    assert frame.keypoint(3) is None
