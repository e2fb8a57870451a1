"""In-memory vector illustration tree: named groups and Bezier paths.

Segments follow the usual vector-editor layout: an anchor ``point`` with
``handle_in`` / ``handle_out`` stored *relative* to that anchor.  A missing
handle (``None``) means the adjacent curve is straight at that end.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

import numpy as np

from posepuppet.core.math_utils import Vec2, as_vec2

# Bezier circle approximation constant
KAPPA = 0.5522847498307936


@dataclass
class PathSegment:
    point: Vec2
    handle_in: Optional[Vec2] = None
    handle_out: Optional[Vec2] = None

    def __post_init__(self):
        self.point = as_vec2(self.point)
        if self.handle_in is not None:
            self.handle_in = as_vec2(self.handle_in)
        if self.handle_out is not None:
            self.handle_out = as_vec2(self.handle_out)


@dataclass
class VectorPath:
    name: Optional[str] = None
    segments: list[PathSegment] = field(default_factory=list)
    closed: bool = False
    fill: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: float = 1.0
    # "path" for authored paths, otherwise the source shape tag (circle, rect...)
    source: str = "path"

    @property
    def is_shape(self) -> bool:
        return self.source != "path"

    def anchor_points(self) -> np.ndarray:
        if not self.segments:
            return np.zeros((0, 2), dtype=np.float64)
        return np.array([s.point for s in self.segments], dtype=np.float64)

    def bounds(self) -> tuple[Vec2, Vec2]:
        pts = self.anchor_points()
        if len(pts) == 0:
            zero = np.zeros(2, dtype=np.float64)
            return zero, zero.copy()
        return pts.min(axis=0), pts.max(axis=0)

    def bounds_center(self) -> Vec2:
        lo, hi = self.bounds()
        return (lo + hi) / 2.0


@dataclass
class VectorGroup:
    name: Optional[str] = None
    children: list["VectorItem"] = field(default_factory=list)
    # Subpaths of one compound source path rather than a drawing layer.
    compound: bool = False

    def add(self, item: "VectorItem") -> "VectorItem":
        self.children.append(item)
        return item

    def walk(self) -> Iterator[tuple["VectorGroup", "VectorItem"]]:
        """Yield (parent, item) pairs depth-first, parents before children."""
        for child in self.children:
            yield self, child
            if isinstance(child, VectorGroup):
                yield from child.walk()

    def items(self) -> list["VectorItem"]:
        return [item for _, item in self.walk()]

    def find_first_with_prefix(self, prefix: str) -> Optional["VectorItem"]:
        for item in self.items():
            if item.name and item.name.startswith(prefix):
                return item
        return None

    def bounds(self) -> tuple[Vec2, Vec2]:
        pts = [
            item.anchor_points() for item in self.items()
            if isinstance(item, VectorPath) and item.segments
        ]
        if not pts:
            zero = np.zeros(2, dtype=np.float64)
            return zero, zero.copy()
        allp = np.concatenate(pts, axis=0)
        return allp.min(axis=0), allp.max(axis=0)

    def bounds_center(self) -> Vec2:
        lo, hi = self.bounds()
        return (lo + hi) / 2.0


VectorItem = Union[VectorGroup, VectorPath]


def ellipse_path(cx: float, cy: float, rx: float, ry: float, **style) -> VectorPath:
    """Closed four-segment Bezier ellipse, starting at the leftmost point."""
    kx, ky = rx * KAPPA, ry * KAPPA
    segments = [
        PathSegment((cx - rx, cy), (0.0, ky), (0.0, -ky)),
        PathSegment((cx, cy - ry), (-kx, 0.0), (kx, 0.0)),
        PathSegment((cx + rx, cy), (0.0, -ky), (0.0, ky)),
        PathSegment((cx, cy + ry), (kx, 0.0), (-kx, 0.0)),
    ]
    return VectorPath(segments=segments, closed=True, **style)


def rect_path(x: float, y: float, w: float, h: float, **style) -> VectorPath:
    segments = [
        PathSegment((x, y + h)),
        PathSegment((x, y)),
        PathSegment((x + w, y)),
        PathSegment((x + w, y + h)),
    ]
    return VectorPath(segments=segments, closed=True, **style)


def polyline_path(points, closed: bool = False, **style) -> VectorPath:
    return VectorPath(segments=[PathSegment(p) for p in points], closed=closed, **style)
