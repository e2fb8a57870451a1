"""Recorded pose/face frames and a replay estimator.

A recording is a list of (pose, face) frames that can be re-framed
(bounding box, translate, resize) before being replayed through a session
in place of live estimators.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from posepuppet.core.math_utils import Vec2, gaussian
from posepuppet.estimation.pose import FaceFrame, FacePrediction, Pose
from posepuppet.rig.keypoints import FACE_PART_INDEX, FACE_PART_NAMES


@dataclass
class RecordedFrame:
    pose: Pose
    face: Optional[FaceFrame] = None


@dataclass
class PoseRecording:
    frames: list[RecordedFrame] = field(default_factory=list)

    def append(self, pose: Pose, face: Optional[FaceFrame] = None) -> None:
        self.frames.append(RecordedFrame(pose.copy(), face))

    def __len__(self) -> int:
        return len(self.frames)

    def _all_points(self) -> np.ndarray:
        pts = []
        for frame in self.frames:
            pts.extend(kp.position for kp in frame.pose.keypoints)
            if frame.face is not None:
                pts.extend(frame.face.positions)
        if not pts:
            return np.zeros((0, 2), dtype=np.float64)
        return np.array(pts, dtype=np.float64)

    def bounding_box(self) -> tuple[float, float, float, float]:
        """(min_x, max_x, min_y, max_y) over every keypoint of every frame."""
        pts = self._all_points()
        if len(pts) == 0:
            return 0.0, 0.0, 0.0, 0.0
        lo = pts.min(axis=0)
        hi = pts.max(axis=0)
        return float(lo[0]), float(hi[0]), float(lo[1]), float(hi[1])

    def translate(self, dx: float, dy: float) -> None:
        d = np.array([dx, dy], dtype=np.float64)
        for frame in self.frames:
            for kp in frame.pose.keypoints:
                kp.position = kp.position + d
            if frame.face is not None:
                frame.face.positions = frame.face.positions + d

    def resize(self, origin: Vec2, sx: float, sy: float) -> None:
        """Scale every keypoint about ``origin``."""
        o = np.asarray(origin, dtype=np.float64)
        s = np.array([sx, sy], dtype=np.float64)
        for frame in self.frames:
            for kp in frame.pose.keypoints:
                kp.position = o + (kp.position - o) * s
            if frame.face is not None:
                frame.face.positions = o + (frame.face.positions - o) * s


def jitter_pose(pose: Pose, variance: float, rng: Optional[np.random.Generator] = None) -> Pose:
    """Copy of ``pose`` with Gaussian noise added to every keypoint."""
    noisy = pose.copy()
    for kp in noisy.keypoints:
        kp.position = kp.position + np.array(
            [gaussian(0.0, variance, rng), gaussian(0.0, variance, rng)],
        )
    return noisy


def face_prediction_from_frame(face: FaceFrame, mesh_size: int = 468) -> FacePrediction:
    """Expand a compact face frame back into a sparse face-mesh prediction."""
    mesh = np.zeros((mesh_size, 2), dtype=np.float64)
    for i, name in enumerate(FACE_PART_NAMES):
        if i < len(face.positions):
            mesh[FACE_PART_INDEX[name]] = face.positions[i]
    return FacePrediction(mesh, face.confidence)


class ReplayEstimator:
    """Pose and face oracle that plays back a recording.

    The ``frame`` argument of each call is the frame index.
    """

    def __init__(self, recording: PoseRecording):
        self.recording = recording

    def _frame(self, frame: Any) -> Optional[RecordedFrame]:
        index = int(frame)
        if 0 <= index < len(self.recording.frames):
            return self.recording.frames[index]
        return None

    async def estimate_poses(self, frame: Any) -> list[Pose]:
        recorded = self._frame(frame)
        return [recorded.pose.copy()] if recorded is not None else []

    async def estimate_faces(self, frame: Any) -> list[FacePrediction]:
        recorded = self._frame(frame)
        if recorded is None or recorded.face is None:
            return []
        return [face_prediction_from_frame(recorded.face)]
