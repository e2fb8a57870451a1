"""Full-body skeleton driven by pose and face keypoints.

Owns the bone graph (body, face and secondary bones), fuses each frame's
pose and face estimates into ``parts`` and refreshes every bone from them.

Per-frame update (``update``):
  1. Gate on overall pose confidence
  2. Confidence-weighted fusion of tracked body parts with the previous frame
  3. Leg keypoints synthesized at fixed offsets below the hips
  4. Ears required (they anchor face inference)
  5. Face landmarks taken directly, or inferred from the ears when the face
     estimate is missing or unreliable
  6. Bone refresh (positions, confidence, midpoint)
  7. Secondary bones follow their parent bone and the nose tip
  8. Face/body scale relative to bind-time bone lengths
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from posepuppet.constants import (
    ANKLE_OFFSET,
    INFERRED_FACE_SCORE,
    KNEE_OFFSET,
    LENGTH_EPSILON,
    MIN_FACE_SCORE,
    MIN_POSE_SCORE,
    SKELETON_PREFIX,
)
from posepuppet.core.config_loader import load_rig_config
from posepuppet.core.math_utils import (
    LocalFrameTransform,
    Vec2,
    as_vec2,
    distance_to_segment,
    local_frame_transform,
    vec2,
)
from posepuppet.estimation.pose import FaceFrame, Pose
from posepuppet.loaders.vector_tree import VectorGroup
from posepuppet.rig.bone import BODY, FACE, Bone, BonePoint, MissingKeypointError, PointTransform
from posepuppet.rig.keypoints import FACE_PART_NAMES, POSE_PART_NAMES

logger = logging.getLogger(__name__)


class SkeletonNotFoundError(ValueError):
    """The character asset has no ``skeleton`` group."""


@dataclass
class Part:
    position: Vec2
    score: float


class Skeleton:
    """Bone graph plus the latest fused keypoint state.

    Parameters
    ----------
    keypoints : dict
        Bind-time keypoint positions by part name.
    config : dict or None
        Rig topology; defaults to the bundled ``rig.json``.
    """

    def __init__(self, keypoints: dict[str, Vec2], config: Optional[dict] = None):
        self.config = config if config is not None else load_rig_config()
        self.keypoints: dict[str, BonePoint] = {
            name: BonePoint(name=name, position=as_vec2(pos))
            for name, pos in keypoints.items()
        }

        self.face_bones = [self._make_bone(a, b, FACE) for a, b in self.config.get("faceBones", [])]
        self.body_bones = [self._make_bone(a, b, BODY) for a, b in self.config.get("bodyBones", [])]
        self.bones: list[Bone] = self.face_bones + self.body_bones
        for i, bone in enumerate(self.bones):
            bone.index = i
        self.secondary_bones: list[Bone] = []
        self._bone_by_name = {bone.name: bone for bone in self.bones}

        self.bone_groups: dict[str, list[Bone]] = {}
        for group_name, members in self.config.get("boneGroups", {}).items():
            if members == "faceBones":
                self.bone_groups[group_name] = list(self.face_bones)
            elif members == "bodyBones":
                self.bone_groups[group_name] = list(self.body_bones)
            else:
                self.bone_groups[group_name] = [self._bone_by_name[n] for n in members]

        self.parts: dict[str, Part] = {}
        self.is_valid: bool = False
        self.body_len0 = self.total_bone_length(self.body_bones)
        self.face_len0 = self.total_bone_length(self.face_bones)
        self.current_body_scale: Optional[float] = None
        self.current_face_scale: Optional[float] = None

        self.left_ear_to_face: Optional[LocalFrameTransform] = None
        self.right_ear_to_face: Optional[LocalFrameTransform] = None

        ref = self.config.get("faceReference")
        if ref and self.face_bones:
            ref0 = self._require(ref[0], FACE).position
            ref1 = self._require(ref[1], FACE).position
            for bone in self.face_bones:
                for kp in (bone.kp0, bone.kp1):
                    kp.base_inference = local_frame_transform(ref0, ref1, kp.position)
        self.ear_names = tuple(self.config.get("earReference", ("leftEar", "rightEar")))

        self.nose_bone: Optional[Bone] = None
        nose = self.config.get("noseBone")
        if nose:
            self.nose_bone = self._bone_by_name.get(f"{nose[0]}-{nose[1]}")

        logger.info(
            "Skeleton built: %d body bones, %d face bones",
            len(self.body_bones), len(self.face_bones),
        )

    # ── Construction ──

    @classmethod
    def from_vector_tree(cls, root: VectorGroup, config: Optional[dict] = None) -> "Skeleton":
        """Read keypoints from the first item named with the ``skeleton`` prefix.

        Each keypoint is the bounds centre of the first descendant whose name
        starts with the part name.
        """
        group = root.find_first_with_prefix(SKELETON_PREFIX)
        if not isinstance(group, VectorGroup):
            raise SkeletonNotFoundError(
                "Skeleton not found! The asset needs a group called 'skeleton'"
            )
        config = config if config is not None else load_rig_config()
        names: list[str] = []
        for key in ("bodyBones", "faceBones"):
            for pair in config.get(key, []):
                names.extend(n for n in pair if n not in names)
        keypoints = {}
        for name in names:
            item = group.find_first_with_prefix(name)
            if item is not None:
                keypoints[name] = item.bounds_center()
        return cls(keypoints, config)

    def _require(self, name: str, kind: str) -> BonePoint:
        kp = self.keypoints.get(name)
        if kp is None:
            raise MissingKeypointError(name, kind)
        return kp

    def _make_bone(self, name0: str, name1: str, kind: str) -> Bone:
        return Bone(self._require(name0, kind), self._require(name1, kind), kind)

    def add_secondary_bone(self, kp0: BonePoint, kp1: BonePoint, parent: Bone) -> Bone:
        """Register an auxiliary bone that follows ``parent``."""
        bone = Bone(kp0, kp1, parent.kind, parent_index=self.index_of(parent))
        bone.index = len(self.bones) + len(self.secondary_bones)
        self.secondary_bones.append(bone)
        return bone

    # ── Lookup ──

    def bone(self, name: str) -> Bone:
        return self._bone_by_name[name]

    def bone_at(self, index: int) -> Bone:
        """Index into ``bones`` followed by ``secondary_bones``."""
        n = len(self.bones)
        return self.bones[index] if index < n else self.secondary_bones[index - n]

    def index_of(self, bone: Bone) -> int:
        """Inverse of ``bone_at``."""
        i = bone.index
        if i is not None and 0 <= i < len(self.bones) + len(self.secondary_bones):
            if self.bone_at(i) is bone:
                return i
        raise ValueError(f"Bone {bone.name} is not part of this skeleton")

    def scale_for(self, bone: Bone) -> float:
        scale = self.current_face_scale if bone.is_face else self.current_body_scale
        return 1.0 if scale is None else scale

    def reconstruct(self, bone: Bone, transform: PointTransform) -> Vec2:
        return bone.apply_transform(transform, self.scale_for(bone))

    @property
    def nose_tip(self) -> Optional[BonePoint]:
        return self.nose_bone.kp1 if self.nose_bone is not None else None

    def find_bone_group(self, point: Vec2) -> list[Bone]:
        """Bones of every group nearest to ``point`` (ties all included)."""
        min_distances: dict[str, float] = {}
        for group_name, group in self.bone_groups.items():
            d = np.inf
            for bone in group:
                d = min(d, distance_to_segment(bone.kp0.position, bone.kp1.position, point))
            min_distances[group_name] = d
        if not min_distances:
            return []
        nearest = min(min_distances.values())
        selected: list[Bone] = []
        for group_name, d in min_distances.items():
            if d <= nearest:
                selected.extend(self.bone_groups[group_name])
        return selected

    @staticmethod
    def total_bone_length(bones: list[Bone]) -> float:
        return float(sum(bone.current_length() for bone in bones))

    # ── Per-frame update ──

    def update(self, pose: Pose, face: Optional[FaceFrame]) -> bool:
        if pose is None or pose.score < MIN_POSE_SCORE:
            logger.debug("Pose rejected (score below %.2f)", MIN_POSE_SCORE)
            self.is_valid = False
            return False

        self.is_valid = self._update_pose_parts(pose)
        if not self.is_valid:
            return False
        self.is_valid = self._update_face_parts(face)
        if not self.is_valid:
            return False

        for bone in self.bones:
            part0 = self.parts.get(bone.kp0.name)
            part1 = self.parts.get(bone.kp1.name)
            if part0 is None or part1 is None:
                missing = bone.kp0.name if part0 is None else bone.kp1.name
                logger.debug("Frame invalid: no position for '%s'", missing)
                self.is_valid = False
                return False
            bone.refresh(part0.position, part1.position, part0.score, part1.score)

        self._update_secondary_bones()

        self.current_face_scale = self._scale(self.face_bones, self.face_len0)
        self.current_body_scale = self._scale(self.body_bones, self.body_len0)
        self.is_valid = True
        return True

    def _scale(self, bones: list[Bone], len0: float) -> float:
        if len0 < LENGTH_EPSILON:
            return 1.0
        return self.total_bone_length(bones) / len0

    def _update_pose_parts(self, pose: Pose) -> bool:
        # Blend old and new observations using their scores as weights.
        for name in POSE_PART_NAMES:
            kp = pose.find(name)
            if kp is None:
                continue
            new_part = Part(kp.position.copy(), float(kp.score))
            old_part = self.parts.get(name)
            if old_part is None:
                self.parts[name] = new_part
                continue
            total = old_part.score + new_part.score
            if total <= 0.0:
                self.parts[name] = new_part
                continue
            w0 = old_part.score / total
            w1 = new_part.score / total
            self.parts[name] = Part(
                old_part.position * w0 + new_part.position * w1,
                old_part.score * w0 + new_part.score * w1,
            )

        for side in ("left", "right"):
            hip = self.parts.get(f"{side}Hip")
            if hip is None:
                continue
            self.parts[f"{side}Knee"] = Part(hip.position + vec2(0.0, KNEE_OFFSET), hip.score)
            self.parts[f"{side}Ankle"] = Part(
                hip.position + vec2(0.0, KNEE_OFFSET + ANKLE_OFFSET), hip.score,
            )

        left_ear, right_ear = self.ear_names
        if left_ear not in self.parts or right_ear not in self.parts:
            logger.debug("Frame invalid: ears not tracked")
            return False
        return True

    def _update_face_parts(self, face: Optional[FaceFrame]) -> bool:
        left_ear, right_ear = self.ear_names
        pos_left_ear = self.parts[left_ear].position
        pos_right_ear = self.parts[right_ear].position

        if face is not None and len(face) and face.confidence > MIN_FACE_SCORE:
            for i, name in enumerate(FACE_PART_NAMES):
                pos = face.keypoint(i)
                if pos is None:
                    continue
                self.parts[name] = Part(pos, float(face.confidence))
            # Remember where the face sits relative to the pose ears so it
            # can be inferred once face tracking is lost.
            ref = self.config.get("faceReference")
            if ref and ref[0] in self.parts and ref[1] in self.parts:
                self.left_ear_to_face = local_frame_transform(
                    pos_left_ear, pos_right_ear, self.parts[ref[0]].position,
                )
                self.right_ear_to_face = local_frame_transform(
                    pos_left_ear, pos_right_ear, self.parts[ref[1]].position,
                )
            return True

        # No reliable face: infer face keypoints from the pose ears.
        if self.left_ear_to_face is not None:
            face_left = self.left_ear_to_face.reconstruct(pos_left_ear, pos_right_ear)
        else:
            face_left = pos_left_ear
        if self.right_ear_to_face is not None:
            face_right = self.right_ear_to_face.reconstruct(pos_left_ear, pos_right_ear)
        else:
            face_right = pos_right_ear
        self.current_face_scale = self.current_body_scale
        for bone in self.face_bones:
            for kp in (bone.kp0, bone.kp1):
                if kp.base_inference is not None:
                    position = kp.base_inference.reconstruct(face_left, face_right)
                else:
                    position = kp.current_position.copy()
                self.parts[kp.name] = Part(position, INFERRED_FACE_SCORE)
        return True

    def _update_secondary_bones(self) -> None:
        nose = self.nose_tip
        if nose is None:
            return
        nose_pos = nose.current_position
        for bone in self.secondary_bones:
            parent = self.bone_at(bone.parent_index)
            for kp, parent_kp in ((bone.kp0, parent.kp0), (bone.kp1, parent.kp1)):
                if kp.transform is not None:
                    kp.current_position = kp.transform.reconstruct(
                        parent_kp.current_position, nose_pos,
                    )
            bone.confidence = parent.confidence
            bone.midpoint = (bone.kp0.current_position + bone.kp1.current_position) / 2.0
