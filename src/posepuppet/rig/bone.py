"""Bones: rigid segments between two named keypoints."""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from posepuppet.constants import LENGTH_EPSILON, SATURATION_BOOST
from posepuppet.core.math_utils import (
    RGB,
    LocalFrameTransform,
    Vec2,
    boost_saturation,
    closest_point_on_segment,
    color_from_string_hash,
    length,
    lerp_vec2,
    perpendicular,
    segment_fraction,
)

BODY = "body"
FACE = "face"


class MissingKeypointError(ValueError):
    """A bone endpoint could not be found in the character asset."""

    def __init__(self, name: str, kind: str = ""):
        self.name = name
        self.kind = kind
        detail = f" when constructing a {kind} bone" if kind else ""
        super().__init__(f"Missing keypoint '{name}'{detail}")


@dataclass(eq=False)
class BonePoint:
    """A named anchor with its bind-time and latest positions."""
    name: str
    position: Vec2
    current_position: Optional[Vec2] = None
    # Face keypoints: rule relative to the jaw corners, used when face
    # tracking is lost.
    base_inference: Optional[LocalFrameTransform] = None
    # Secondary keypoints: rule relative to (parent endpoint, nose tip).
    transform: Optional[LocalFrameTransform] = None

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64)
        if self.current_position is None:
            self.current_position = self.position.copy()


@dataclass(frozen=True)
class PointTransform:
    """How a point relates to a bone at bind time.

    ``anchor_fraction`` locates the closest point on the bone (0 at kp0,
    1 at kp1); ``offset`` is the displacement from that anchor expressed as
    (along the bone, along its normal).
    """
    offset: tuple[float, float]
    anchor_fraction: float


@dataclass(eq=False)
class Bone:
    kp0: BonePoint
    kp1: BonePoint
    kind: str = BODY
    parent_index: Optional[int] = None  # secondary bones only
    confidence: float = 0.0
    midpoint: Optional[Vec2] = None
    name: str = field(init=False)
    color: RGB = field(init=False)
    # Position in the owning skeleton, assigned on registration.
    index: Optional[int] = field(default=None, init=False)

    def __post_init__(self):
        self.name = f"{self.kp0.name}-{self.kp1.name}"
        self.color = boost_saturation(color_from_string_hash(self.name), SATURATION_BOOST)
        if self.midpoint is None:
            self.midpoint = (self.kp0.position + self.kp1.position) / 2.0

    @property
    def is_face(self) -> bool:
        return self.kind == FACE

    def rest_length(self) -> float:
        return length(self.kp1.position - self.kp0.position)

    def current_length(self) -> float:
        return length(self.kp1.current_position - self.kp0.current_position)

    def _basis(self, p0: Vec2, p1: Vec2) -> Optional[tuple[Vec2, Vec2]]:
        d = p1 - p0
        n = length(d)
        if n < LENGTH_EPSILON:
            return None
        direction = d / n
        return direction, perpendicular(direction)

    def get_point_transform(self, p: Vec2) -> PointTransform:
        """Capture ``p`` relative to the closest point on this bone at rest."""
        p0, p1 = self.kp0.position, self.kp1.position
        basis = self._basis(p0, p1)
        if basis is None:
            # Coincident endpoints: anchor at kp0, world axes as the basis.
            v = p - p0
            return PointTransform((float(v[0]), float(v[1])), 0.0)
        direction, normal = basis
        closest = closest_point_on_segment(p0, p1, p)
        v = p - closest
        return PointTransform(
            (float(np.dot(v, direction)), float(np.dot(v, normal))),
            segment_fraction(p0, p1, p),
        )

    def anchor(self, transform: PointTransform) -> Vec2:
        return lerp_vec2(
            self.kp0.current_position, self.kp1.current_position,
            transform.anchor_fraction,
        )

    def apply_transform(self, transform: PointTransform, scale: Optional[float] = None) -> Vec2:
        """Reconstruct a bound point from this bone's current endpoints.

        ``scale`` multiplies the stored offset; the skeleton passes its face
        or body scale here.  A bone whose current endpoints coincide has no
        direction, so the anchor itself is returned.
        """
        if scale is None:
            scale = 1.0
        anchor = self.anchor(transform)
        basis = self._basis(self.kp0.current_position, self.kp1.current_position)
        if basis is None:
            return anchor
        direction, normal = basis
        along, across = transform.offset
        return anchor + direction * (along * scale) + normal * (across * scale)

    def refresh(self, pos0: Vec2, pos1: Vec2, score0: float, score1: float) -> None:
        self.kp0.current_position = pos0
        self.kp1.current_position = pos1
        self.confidence = (score0 + score1) / 2.0
        self.midpoint = (pos0 + pos1) / 2.0
