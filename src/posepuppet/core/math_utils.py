"""NumPy-backed 2D math utilities for bones and skinning.

Vectors are plain numpy float64 arrays of shape (2,).  Coordinates follow
the canvas convention used by vector illustrations: x grows to the right
and y grows downward, so ``perpendicular`` (a +90 degree rotation) turns a
rightward direction into a downward one.
"""

import colorsys
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from posepuppet.constants import COLLINEAR_THRESHOLD, LENGTH_EPSILON

# Type aliases
Vec2 = NDArray[np.float64]
RGB = tuple[float, float, float]


def vec2(x: float = 0.0, y: float = 0.0) -> Vec2:
    return np.array([x, y], dtype=np.float64)


def as_vec2(p) -> Vec2:
    """Coerce a point-like value (sequence, array, complex) to a Vec2."""
    if isinstance(p, complex):
        return vec2(p.real, p.imag)
    return np.asarray(p, dtype=np.float64).reshape(2).copy()


def length(v: Vec2) -> float:
    return float(np.hypot(v[0], v[1]))


def distance(a: Vec2, b: Vec2) -> float:
    return float(np.hypot(a[0] - b[0], a[1] - b[1]))


def normalize(v: Vec2) -> Vec2:
    n = length(v)
    if n < LENGTH_EPSILON:
        return np.zeros(2, dtype=np.float64)
    return v / n


def rotate(v: Vec2, angle_rad: float) -> Vec2:
    c, s = math.cos(angle_rad), math.sin(angle_rad)
    return np.array([c * v[0] - s * v[1], s * v[0] + c * v[1]], dtype=np.float64)


def perpendicular(v: Vec2) -> Vec2:
    """Rotate by +90 degrees (exact, no trig round-off)."""
    return np.array([-v[1], v[0]], dtype=np.float64)


def lerp_vec2(a: Vec2, b: Vec2, t: float) -> Vec2:
    return a * (1.0 - t) + b * t


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def closest_point_on_segment(a: Vec2, b: Vec2, p: Vec2) -> Vec2:
    """Project ``p`` onto segment [a, b], clamped to its endpoints."""
    d = b - a
    dd = float(np.dot(d, d))
    if dd < LENGTH_EPSILON:
        return a.copy()
    t = float(np.dot(p - a, d)) / dd
    if t >= 1.0:
        return b.copy()
    if t <= 0.0:
        return a.copy()
    return a + d * t


def segment_fraction(a: Vec2, b: Vec2, p: Vec2) -> float:
    """Parametric position (0..1) of the projection of ``p`` on [a, b]."""
    d = b - a
    dd = float(np.dot(d, d))
    if dd < LENGTH_EPSILON:
        return 0.0
    return clamp(float(np.dot(p - a, d)) / dd, 0.0, 1.0)


def distance_to_segment(a: Vec2, b: Vec2, p: Vec2) -> float:
    return distance(closest_point_on_segment(a, b, p), p)


@dataclass(frozen=True)
class LocalFrameTransform:
    """A point's coordinates in the frame spanned by two reference points.

    ``along`` and ``across`` are the point's offsets from the first
    reference point, measured along the reference direction and its normal.
    ``ref_length`` is the reference distance at capture time; offsets are
    rescaled by ``|b_new - a_new| / ref_length`` on reconstruction.

    A zero ``ref_length`` means the capture frame was degenerate; the
    offsets are then plain world-axis offsets and are reapplied unscaled.
    """
    along: float
    across: float
    ref_length: float

    def reconstruct(self, a_new: Vec2, b_new: Vec2) -> Vec2:
        d = b_new - a_new
        new_len = length(d)
        if new_len < LENGTH_EPSILON:
            return np.array(a_new, dtype=np.float64)
        if self.ref_length < LENGTH_EPSILON:
            return a_new + vec2(self.along, self.across)
        scale = new_len / self.ref_length
        direction = d / new_len
        normal = perpendicular(direction)
        return a_new + direction * (self.along * scale) + normal * (self.across * scale)


def local_frame_transform(a: Vec2, b: Vec2, p: Vec2) -> LocalFrameTransform:
    """Capture ``p`` relative to the frame defined by ``a`` -> ``b``."""
    d = b - a
    ref_length = length(d)
    v = p - a
    if ref_length < LENGTH_EPSILON:
        return LocalFrameTransform(float(v[0]), float(v[1]), 0.0)
    direction = d / ref_length
    normal = perpendicular(direction)
    return LocalFrameTransform(
        float(np.dot(v, direction)), float(np.dot(v, normal)), ref_length,
    )


def is_collinear(
    v0: Optional[Vec2],
    v1: Optional[Vec2],
    threshold: float = COLLINEAR_THRESHOLD,
) -> bool:
    """True when the angle between v0 and v1 is within threshold of 0 or 180 degrees."""
    if v0 is None or v1 is None:
        return False
    n0 = normalize(v0)
    n1 = normalize(v1)
    return abs(float(np.dot(n0, n1))) > 1.0 - threshold


def gaussian(
    mean: float,
    variance: float,
    rng: Optional[np.random.Generator] = None,
) -> float:
    """Box-Muller sample scaled by ``variance`` around ``mean``."""
    rng = rng if rng is not None else np.random.default_rng()
    u = 0.0
    v = 0.0
    while u == 0.0:
        u = float(rng.random())
    while v == 0.0:
        v = float(rng.random())
    value = math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)
    return value * variance + mean


def color_from_string_hash(text: str) -> RGB:
    """Deterministic RGB colour (0..1 floats) from a 32-bit string hash."""
    h = 0
    for ch in text:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    # Reinterpret as signed 32-bit, matching the usual string hashCode
    if h & 0x80000000:
        h -= 1 << 32
    r = h & 255
    g = (h >> 8) & 255
    b = (h >> 16) & 255
    return r / 255.0, g / 255.0, b / 255.0


def boost_saturation(rgb: RGB, amount: float) -> RGB:
    hue, sat, val = colorsys.rgb_to_hsv(*rgb)
    return colorsys.hsv_to_rgb(hue, clamp(sat + amount, 0.0, 1.0), val)
