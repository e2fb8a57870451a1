"""Linear blend skinning of a vector illustration onto a skeleton.

Bind time (once per asset):
  every anchor and handle of every path is bound to a weighted set of
  nearby bones.  Weights fall off as 1/d^2 from the bone segment and are
  normalized to sum to 1.  Handles that are collinear with each other reuse
  the anchor's weights so smooth curves stay smooth.

Per frame:
  each bound point is reconstructed as the weighted sum of the positions
  proposed by its bones (``Bone.apply_transform``).
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional

import numpy as np

from posepuppet.constants import (
    ILLUSTRATION_PREFIX,
    MIN_CONFIDENCE_PATH_SCORE,
    WEIGHT_DISTANCE_EPSILON,
)
from posepuppet.core.math_utils import RGB, Vec2, distance_to_segment, is_collinear, local_frame_transform
from posepuppet.estimation.pose import FaceFrame, Pose
from posepuppet.loaders.vector_tree import VectorGroup, VectorPath
from posepuppet.rig.bone import Bone, BonePoint, PointTransform
from posepuppet.rig.keypoints import match_part_name
from posepuppet.rig.skeleton import Skeleton

logger = logging.getLogger(__name__)


@dataclass
class Weight:
    bone: Bone
    value: float


@dataclass(frozen=True)
class BoneSkin:
    """One bone's influence on a control point."""
    bone_index: int
    weight: float
    transform: PointTransform


@dataclass
class Skinning:
    """Bone bindings and positions of one control point (anchor or handle)."""
    bindings: dict[str, BoneSkin]
    position: Vec2
    current_position: Vec2

    @property
    def is_fixed(self) -> bool:
        return not self.bindings

    def weight_map(self) -> dict[str, float]:
        return {name: skin.weight for name, skin in self.bindings.items()}


@dataclass
class SkinnedSegment:
    point: Skinning
    handle_in: Optional[Skinning] = None
    handle_out: Optional[Skinning] = None


@dataclass
class SkinnedPath:
    segments: list[SkinnedSegment]
    closed: bool = False
    fill: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: float = 1.0
    name: Optional[str] = None
    confidence: Optional[float] = None


@dataclass(frozen=True)
class RenderSegment:
    point: tuple[float, float]
    handle_in: Optional[tuple[float, float]]   # relative to point
    handle_out: Optional[tuple[float, float]]  # relative to point


@dataclass(frozen=True)
class RenderPath:
    """Deformed path ready for a drawing backend."""
    segments: tuple[RenderSegment, ...]
    closed: bool
    fill: Optional[str]
    stroke: Optional[str]
    stroke_width: float
    confidence: float = 0.0
    name: Optional[str] = None

    def iter_curves(self) -> Iterator[tuple[Vec2, Vec2, Vec2, Vec2]]:
        """Yield cubic curves (p0, c1, c2, p1) in drawing order."""
        segs = self.segments
        count = len(segs) if self.closed else len(segs) - 1
        for i in range(max(count, 0)):
            a = segs[i]
            b = segs[(i + 1) % len(segs)]
            p0 = np.array(a.point, dtype=np.float64)
            p1 = np.array(b.point, dtype=np.float64)
            c1 = p0 + np.array(a.handle_out or (0.0, 0.0), dtype=np.float64)
            c2 = p1 + np.array(b.handle_in or (0.0, 0.0), dtype=np.float64)
            yield p0, c1, c2, p1


@dataclass
class BindStats:
    paths: int = 0
    points: int = 0
    fixed_points: int = 0
    shared_handle_weights: int = 0
    groups: int = 0
    skipped_groups: list[str] = field(default_factory=list)


def _pt(v: Vec2) -> tuple[float, float]:
    return float(v[0]), float(v[1])


class PoseIllustration:
    """A vector illustration skinned to a ``Skeleton``.

    Parameters
    ----------
    skeleton : Skeleton
        Owned exclusively by this illustration.
    root : VectorGroup
        The loaded asset.  Items whose parent is named with the
        ``illustration`` prefix are bound.
    influence_radius : float or None
        Bones farther than this from a point do not influence it.  ``None``
        means every candidate bone has some influence.
    """

    def __init__(
        self,
        skeleton: Skeleton,
        root: Optional[VectorGroup] = None,
        influence_radius: Optional[float] = None,
    ):
        self.skeleton = skeleton
        self.influence_radius = influence_radius
        self.skinned_paths: list[SkinnedPath] = []
        self.stats = BindStats()
        self.pose: Optional[Pose] = None
        self.face: Optional[FaceFrame] = None

        if root is not None:
            for parent, item in root.walk():
                if not (parent.name and parent.name.startswith(ILLUSTRATION_PREFIX)):
                    continue
                if isinstance(item, VectorGroup) and item.compound:
                    for path in item.children:
                        if isinstance(path, VectorPath):
                            self.bind_path_to_bones(path)
                elif isinstance(item, VectorGroup):
                    self.bind_group(item)
                elif isinstance(item, VectorPath):
                    self.bind_path_to_bones(item)
            logger.info(
                "Bound %d paths (%d points, %d fixed) and %d auxiliary groups",
                self.stats.paths, self.stats.points, self.stats.fixed_points,
                self.stats.groups,
            )

    # ── Bind time ──

    def bind_group(self, group: VectorGroup) -> list[Bone]:
        """Bind an auxiliary group to secondary bones derived from its markers.

        Descendants named after keypoints mark where the group's own copy of
        those keypoints sits; each skeleton bone whose two endpoints are both
        marked gets a secondary bone that follows it.  Returns the new bones.
        """
        paths: list[VectorPath] = []
        markers: dict[str, BonePoint] = {}
        for item in group.items():
            part_name = match_part_name(item.name)
            if part_name:
                markers[part_name] = BonePoint(name=part_name, position=item.bounds_center())
            elif isinstance(item, VectorPath):
                paths.append(item)

        skeleton = self.skeleton
        parent_bones = [
            bone for bone in skeleton.bones
            if bone.kp0.name in markers and bone.kp1.name in markers
        ]
        nose = skeleton.nose_tip
        if not parent_bones or nose is None:
            self.stats.skipped_groups.append(group.name or "")
            logger.debug("Group %r has no complete bone markers, skipped", group.name)
            return []

        secondary: list[Bone] = []
        for parent in parent_bones:
            # Each secondary bone gets its own keypoint copies.
            kp0 = copy.deepcopy(markers[parent.kp0.name])
            kp1 = copy.deepcopy(markers[parent.kp1.name])
            kp0.transform = local_frame_transform(parent.kp0.position, nose.position, kp0.position)
            kp1.transform = local_frame_transform(parent.kp1.position, nose.position, kp1.position)
            secondary.append(skeleton.add_secondary_bone(kp0, kp1, parent))

        self.stats.groups += 1
        for path in paths:
            self.bind_path_to_bones(path, secondary)
        return secondary

    def get_weights(self, point: Vec2, bones: list[Bone]) -> dict[str, Weight]:
        """Normalized 1/d^2 weights of ``bones`` for ``point``, largest first."""
        raw: list[Weight] = []
        for bone in bones:
            d = distance_to_segment(bone.kp0.position, bone.kp1.position, point)
            if self.influence_radius is not None and d > self.influence_radius:
                continue
            d = max(d, WEIGHT_DISTANCE_EPSILON)
            raw.append(Weight(bone, 1.0 / (d * d)))

        raw.sort(key=lambda w: w.value, reverse=True)
        total = sum(w.value for w in raw)
        if total <= 0.0 or not np.isfinite(total):
            # Outside every bone's influence zone.
            return {}
        return {w.bone.name: Weight(w.bone, w.value / total) for w in raw}

    def get_skinning(self, point: Vec2, weights: dict[str, Weight]) -> Skinning:
        bindings = {
            name: BoneSkin(
                self.skeleton.index_of(w.bone), w.value, w.bone.get_point_transform(point),
            )
            for name, w in weights.items()
        }
        self.stats.points += 1
        if not bindings:
            self.stats.fixed_points += 1
        return Skinning(bindings, point.copy(), point.copy())

    def bind_path_to_bones(
        self,
        path: VectorPath,
        selected_bones: Optional[list[Bone]] = None,
    ) -> SkinnedPath:
        """Bind every segment of ``path``.

        With ``selected_bones`` the path binds to exactly those bones;
        otherwise each anchor picks the nearest bone group.
        """
        segments: list[SkinnedSegment] = []
        for seg in path.segments:
            collinear = is_collinear(seg.handle_in, seg.handle_out)
            bones = selected_bones if selected_bones is not None else self.skeleton.find_bone_group(seg.point)
            weights_p = self.get_weights(seg.point, bones)
            skinned = SkinnedSegment(point=self.get_skinning(seg.point, weights_p))
            # Handles are bound in world space.
            if seg.handle_in is not None:
                p_in = seg.point + seg.handle_in
                w_in = weights_p if collinear else self.get_weights(p_in, bones)
                skinned.handle_in = self.get_skinning(p_in, w_in)
            if seg.handle_out is not None:
                p_out = seg.point + seg.handle_out
                w_out = weights_p if collinear else self.get_weights(p_out, bones)
                skinned.handle_out = self.get_skinning(p_out, w_out)
            if collinear:
                self.stats.shared_handle_weights += 1
            segments.append(skinned)

        skinned_path = SkinnedPath(
            segments=segments,
            closed=path.closed,
            fill=path.fill,
            stroke=path.stroke,
            stroke_width=path.stroke_width,
            name=path.name,
        )
        self.skinned_paths.append(skinned_path)
        self.stats.paths += 1
        return skinned_path

    # ── Per frame ──

    def current_position(self, skinning: Skinning) -> Vec2:
        if not skinning.bindings:
            return skinning.position.copy()
        position = np.zeros(2, dtype=np.float64)
        for skin in skinning.bindings.values():
            bone = self.skeleton.bone_at(skin.bone_index)
            position += self.skeleton.reconstruct(bone, skin.transform) * skin.weight
        return position

    def confidence_of(self, skinning: Skinning) -> float:
        total = 0.0
        for skin in skinning.bindings.values():
            total += (self.skeleton.bone_at(skin.bone_index).confidence or 0.0) * skin.weight
        return total

    def update_skeleton(self, pose: Pose, face: Optional[FaceFrame]) -> bool:
        """Feed one frame; returns False (geometry untouched) if it is invalid."""
        self.pose = pose
        self.face = face
        if not self.skeleton.update(pose, face):
            return False

        for path in self.skinned_paths:
            confidence = 0.0
            for seg in path.segments:
                confidence += self.confidence_of(seg.point)
                seg.point.current_position = self.current_position(seg.point)
                if seg.handle_in is not None:
                    seg.handle_in.current_position = self.current_position(seg.handle_in)
                if seg.handle_out is not None:
                    seg.handle_out.current_position = self.current_position(seg.handle_out)
            path.confidence = confidence / (len(path.segments) or 1)
        return True

    def render_paths(self) -> Optional[list[RenderPath]]:
        """Current deformed geometry, or None while the skeleton is invalid."""
        if not self.skeleton.is_valid:
            return None
        out = []
        for path in self.skinned_paths:
            segments = []
            for seg in path.segments:
                p = seg.point.current_position
                h_in = _pt(seg.handle_in.current_position - p) if seg.handle_in is not None else None
                h_out = _pt(seg.handle_out.current_position - p) if seg.handle_out is not None else None
                segments.append(RenderSegment(_pt(p), h_in, h_out))
            out.append(RenderPath(
                segments=tuple(segments),
                closed=path.closed,
                fill=path.fill,
                stroke=path.stroke,
                stroke_width=path.stroke_width,
                confidence=path.confidence or 0.0,
                name=path.name,
            ))
        return out

    # ── Diagnostics ──

    def skinning_color(self, skinning: Skinning) -> RGB:
        """Bone colours blended by weight."""
        r = g = b = 0.0
        for skin in skinning.bindings.values():
            cr, cg, cb = self.skeleton.bone_at(skin.bone_index).color
            r += skin.weight * cr
            g += skin.weight * cg
            b += skin.weight * cb
        return r, g, b

    def low_confidence_paths(self, threshold: float = MIN_CONFIDENCE_PATH_SCORE) -> list[SkinnedPath]:
        return [
            p for p in self.skinned_paths
            if p.confidence is not None and p.confidence < threshold
        ]

    def copy_for_peer(self) -> "PoseIllustration":
        """Independent copy with its own skeleton and positions."""
        return copy.deepcopy(self)


def bind_illustration(root: VectorGroup, **kwargs) -> PoseIllustration:
    """Build the skeleton and skinned illustration from one loaded asset."""
    skeleton = Skeleton.from_vector_tree(root)
    return PoseIllustration(skeleton, root, **kwargs)
