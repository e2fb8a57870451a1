"""Pose and face estimates as consumed by the skeleton.

The estimators themselves are black boxes; anything implementing the
``PoseEstimator`` / ``FaceEstimator`` protocols can drive a session.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import numpy as np

from posepuppet.core.math_utils import Vec2, as_vec2
from posepuppet.rig.keypoints import FACE_PART_INDEX, FACE_PART_NAMES, mirrored_name


@dataclass
class Keypoint:
    part: str
    position: Vec2
    score: float

    def __post_init__(self):
        self.position = as_vec2(self.position)


@dataclass
class Pose:
    keypoints: list[Keypoint] = field(default_factory=list)
    score: float = 0.0

    def find(self, part: str) -> Optional[Keypoint]:
        for kp in self.keypoints:
            if kp.part == part:
                return kp
        return None

    def copy(self) -> "Pose":
        return Pose(
            [Keypoint(kp.part, kp.position.copy(), kp.score) for kp in self.keypoints],
            self.score,
        )


@dataclass
class FacePrediction:
    """Raw face-mesh output: (N, 2) or (N, 3) vertices plus one confidence."""
    scaled_mesh: np.ndarray
    face_in_view_confidence: float

    def __post_init__(self):
        self.scaled_mesh = np.asarray(self.scaled_mesh, dtype=np.float64)


@dataclass
class FaceFrame:
    """Face keypoints in ``FACE_PART_NAMES`` order."""
    positions: np.ndarray  # (len(FACE_PART_NAMES), 2)
    confidence: float

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=np.float64).reshape(-1, 2)

    def __len__(self) -> int:
        return len(self.positions)

    def keypoint(self, i: int) -> Optional[Vec2]:
        if i >= len(self.positions):
            return None
        return self.positions[i].copy()


class PoseEstimator(Protocol):
    async def estimate_poses(self, frame: Any) -> list[Pose]:
        """Return pose estimates for ``frame``, best first."""
        ...


class FaceEstimator(Protocol):
    async def estimate_faces(self, frame: Any) -> list[FacePrediction]:
        """Return face predictions for ``frame``; only the first is used."""
        ...


def flip_pose(pose: Pose) -> None:
    """Swap left/right part names in place to undo a mirrored camera."""
    for kp in pose.keypoints:
        kp.part = mirrored_name(kp.part)


def flip_face(face: FacePrediction) -> None:
    """Swap left/right landmark vertices in place."""
    mesh = face.scaled_mesh
    for name, index in FACE_PART_INDEX.items():
        if not name.startswith("left"):
            continue
        other = FACE_PART_INDEX.get(mirrored_name(name))
        if other is None:
            continue
        mesh[[index, other]] = mesh[[other, index]]


def to_face_frame(face: FacePrediction) -> FaceFrame:
    """Extract the named face keypoints from a full face-mesh prediction."""
    indices = [FACE_PART_INDEX[name] for name in FACE_PART_NAMES]
    positions = face.scaled_mesh[indices, :2]
    return FaceFrame(positions, face.face_in_view_confidence)
