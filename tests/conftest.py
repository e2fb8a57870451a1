"""Shared synthetic rig used across the test suite.

The rig is the bundled ``rig.json`` topology with hand-placed body keypoints
and face keypoints spread on rings around (200, 200).  Knees and ankles sit
exactly where the skeleton synthesizes them from the hips, so a pose that
repeats the rest positions reproduces the rest geometry.
"""

import math

import numpy as np
import pytest

from posepuppet.estimation.pose import FaceFrame, Keypoint, Pose
from posepuppet.loaders.vector_tree import (
    PathSegment,
    VectorGroup,
    VectorPath,
    ellipse_path,
    rect_path,
)
from posepuppet.rig.keypoints import FACE_PART_NAMES
from posepuppet.rig.skeleton import Skeleton
from posepuppet.skinning.illustration import PoseIllustration

BODY_POSITIONS = {
    "rightShoulder": (140.0, 300.0),
    "leftShoulder": (260.0, 300.0),
    "rightElbow": (100.0, 400.0),
    "rightWrist": (80.0, 500.0),
    "leftElbow": (300.0, 400.0),
    "leftWrist": (320.0, 500.0),
    "rightHip": (160.0, 500.0),
    "leftHip": (240.0, 500.0),
    "rightKnee": (160.0, 600.0),
    "rightAnkle": (160.0, 700.0),
    "leftKnee": (240.0, 600.0),
    "leftAnkle": (240.0, 700.0),
}

EAR_POSITIONS = {
    "leftEar": (250.0, 200.0),
    "rightEar": (150.0, 200.0),
}

FACE_CENTER = (200.0, 200.0)


def face_positions() -> dict[str, tuple[float, float]]:
    n = len(FACE_PART_NAMES)
    out = {}
    for i, name in enumerate(FACE_PART_NAMES):
        angle = 2.0 * math.pi * i / n
        radius = 20.0 + (i % 3) * 15.0
        out[name] = (
            FACE_CENTER[0] + radius * math.cos(angle),
            FACE_CENTER[1] + radius * math.sin(angle),
        )
    return out


FACE_POSITIONS = face_positions()
REST_KEYPOINTS = {**BODY_POSITIONS, **FACE_POSITIONS}

POSE_PARTS = [
    "leftHip", "leftWrist", "leftElbow", "leftShoulder",
    "rightHip", "rightWrist", "rightElbow", "rightShoulder",
]


def make_pose(offset=(0.0, 0.0), score: float = 0.9, part_score: float = 0.9,
              skip: tuple[str, ...] = ()) -> Pose:
    dx, dy = offset
    keypoints = []
    for name in POSE_PARTS:
        if name in skip:
            continue
        x, y = BODY_POSITIONS[name]
        keypoints.append(Keypoint(name, (x + dx, y + dy), part_score))
    for name, (x, y) in EAR_POSITIONS.items():
        if name in skip:
            continue
        keypoints.append(Keypoint(name, (x + dx, y + dy), part_score))
    return Pose(keypoints, score)


def make_face_frame(offset=(0.0, 0.0), confidence: float = 0.95) -> FaceFrame:
    positions = np.array([FACE_POSITIONS[name] for name in FACE_PART_NAMES], dtype=np.float64)
    return FaceFrame(positions + np.asarray(offset, dtype=np.float64), confidence)


def marker(name: str, position) -> VectorPath:
    path = ellipse_path(position[0], position[1], 2.0, 2.0)
    path.name = name
    return path


def make_asset() -> VectorGroup:
    """Character asset: skeleton markers, body and face artwork, one prop group."""
    root = VectorGroup(name="character")
    skeleton = root.add(VectorGroup(name="skeleton"))
    for name, pos in REST_KEYPOINTS.items():
        skeleton.add(marker(name, pos))

    art = root.add(VectorGroup(name="illustration"))
    torso = rect_path(170.0, 320.0, 60.0, 150.0, fill="#3366cc")
    torso.name = "torso"
    art.add(torso)
    arm = VectorPath(
        name="rightArm",
        segments=[
            PathSegment((130.0, 320.0), None, (-10.0, 25.0)),
            PathSegment((100.0, 400.0), (10.0, -25.0), (-10.0, 25.0)),
            PathSegment((85.0, 490.0), (5.0, -25.0), None),
        ],
        stroke="#000000",
        stroke_width=4.0,
    )
    art.add(arm)
    head = ellipse_path(200.0, 200.0, 45.0, 55.0, fill="#ffe0c0")
    head.name = "head"
    art.add(head)

    # Prop that follows the crown of the head through secondary bones.
    hat = art.add(VectorGroup(name="hat"))
    hat.add(marker("topMid_hat", np.add(FACE_POSITIONS["topMid"], (0.0, -30.0))))
    hat.add(marker("rightTop0_hat", np.add(FACE_POSITIONS["rightTop0"], (0.0, -30.0))))
    brim = rect_path(180.0, 150.0, 40.0, 10.0, fill="#222222")
    brim.name = "brim"
    hat.add(brim)
    return root


@pytest.fixture
def rest_keypoints():
    return dict(REST_KEYPOINTS)


@pytest.fixture
def skeleton():
    return Skeleton(REST_KEYPOINTS)


@pytest.fixture
def asset():
    return make_asset()


@pytest.fixture
def illustration(asset):
    return PoseIllustration(Skeleton.from_vector_tree(asset), asset)


@pytest.fixture
def pose():
    return make_pose()


@pytest.fixture
def face_frame():
    return make_face_frame()


@pytest.fixture
def pose_factory():
    return make_pose


@pytest.fixture
def face_factory():
    return make_face_frame


@pytest.fixture
def asset_factory():
    return make_asset
