"""SVG document → VectorGroup tree.

Groups keep their ``id`` as the item name (vector editors export layer
names that way).  Path data is parsed with ``svg.path``; basic shapes
(circle, ellipse, rect, line, polyline, polygon) are converted to Bezier
paths.  ``transform`` attributes are flattened into the coordinates and
fill/stroke styles are inherited down the tree.
"""

import logging
import math
import re
from pathlib import Path
from typing import Optional
from xml.dom import minidom
from xml.parsers.expat import ExpatError

import numpy as np
from numpy.typing import NDArray
from svg.path import Arc, Close, CubicBezier, Line, Move, QuadraticBezier, parse_path

from posepuppet.core.math_utils import Vec2, vec2
from posepuppet.loaders.vector_tree import (
    PathSegment,
    VectorGroup,
    VectorPath,
    ellipse_path,
    polyline_path,
    rect_path,
)

logger = logging.getLogger(__name__)

Mat3 = NDArray[np.float64]

ARC_SAMPLES = 8  # line segments per elliptical arc
_CLOSE_EPS = 1e-6

_TRANSFORM_RE = re.compile(r"(matrix|translate|scale|rotate|skewX|skewY)\s*\(([^)]*)\)")
_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


def parse_transform(text: Optional[str]) -> Mat3:
    """Parse an SVG ``transform`` attribute into a 3x3 affine matrix."""
    m = np.eye(3, dtype=np.float64)
    if not text:
        return m
    for kind, args in _TRANSFORM_RE.findall(text):
        v = [float(a) for a in _NUMBER_RE.findall(args)]
        t = np.eye(3, dtype=np.float64)
        if kind == "matrix" and len(v) == 6:
            t[0, :] = [v[0], v[2], v[4]]
            t[1, :] = [v[1], v[3], v[5]]
        elif kind == "translate" and v:
            t[0, 2] = v[0]
            t[1, 2] = v[1] if len(v) > 1 else 0.0
        elif kind == "scale" and v:
            t[0, 0] = v[0]
            t[1, 1] = v[1] if len(v) > 1 else v[0]
        elif kind == "rotate" and v:
            a = math.radians(v[0])
            c, s = math.cos(a), math.sin(a)
            r = np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])
            if len(v) == 3:
                cx, cy = v[1], v[2]
                pre = np.array([[1.0, 0.0, cx], [0.0, 1.0, cy], [0.0, 0.0, 1.0]])
                post = np.array([[1.0, 0.0, -cx], [0.0, 1.0, -cy], [0.0, 0.0, 1.0]])
                r = pre @ r @ post
            t = r
        elif kind == "skewX" and v:
            t[0, 1] = math.tan(math.radians(v[0]))
        elif kind == "skewY" and v:
            t[1, 0] = math.tan(math.radians(v[0]))
        m = m @ t
    return m


def apply_transform(m: Mat3, path: VectorPath) -> VectorPath:
    """Transform anchors (affine) and handles (linear part only) in place."""
    if np.allclose(m, np.eye(3)):
        return path
    lin = m[:2, :2]
    off = m[:2, 2]
    for seg in path.segments:
        seg.point = lin @ seg.point + off
        if seg.handle_in is not None:
            seg.handle_in = lin @ seg.handle_in
        if seg.handle_out is not None:
            seg.handle_out = lin @ seg.handle_out
    width_scale = math.sqrt(abs(np.linalg.det(lin)))
    path.stroke_width *= width_scale
    return path


def _c(z: complex) -> Vec2:
    return vec2(z.real, z.imag)


def _finish(segments: list[PathSegment], closed: bool) -> list[PathSegment]:
    # A closing point that repeats the start merges into the first segment.
    if closed and len(segments) > 1:
        first, last = segments[0], segments[-1]
        if np.allclose(first.point, last.point, atol=_CLOSE_EPS):
            first.handle_in = last.handle_in
            segments.pop()
    return segments


def path_data_to_subpaths(d: str) -> list[tuple[list[PathSegment], bool]]:
    """Convert SVG path data to (segments, closed) pairs, one per subpath."""
    subpaths: list[tuple[list[PathSegment], bool]] = []
    segments: list[PathSegment] = []
    closed = False

    def flush():
        nonlocal segments, closed
        if segments:
            subpaths.append((_finish(segments, closed), closed))
        segments = []
        closed = False

    def ensure_start(z: complex):
        if not segments:
            segments.append(PathSegment(_c(z)))

    for element in parse_path(d):
        if isinstance(element, Move):
            flush()
            segments.append(PathSegment(_c(element.end)))
        elif isinstance(element, Close):
            ensure_start(element.start)
            closed = True
            flush()
        elif isinstance(element, Line):
            ensure_start(element.start)
            segments.append(PathSegment(_c(element.end)))
        elif isinstance(element, CubicBezier):
            ensure_start(element.start)
            segments[-1].handle_out = _c(element.control1 - element.start)
            segments.append(PathSegment(_c(element.end), handle_in=_c(element.control2 - element.end)))
        elif isinstance(element, QuadraticBezier):
            ensure_start(element.start)
            c1 = element.start + (element.control - element.start) * (2.0 / 3.0)
            c2 = element.end + (element.control - element.end) * (2.0 / 3.0)
            segments[-1].handle_out = _c(c1 - element.start)
            segments.append(PathSegment(_c(element.end), handle_in=_c(c2 - element.end)))
        elif isinstance(element, Arc):
            ensure_start(element.start)
            for i in range(1, ARC_SAMPLES + 1):
                segments.append(PathSegment(_c(element.point(i / ARC_SAMPLES))))
        else:
            logger.debug("Unsupported path element %s ignored", type(element).__name__)
    flush()
    return subpaths


def _parse_style(element) -> dict[str, str]:
    style: dict[str, str] = {}
    for key in ("fill", "stroke", "stroke-width"):
        if element.hasAttribute(key):
            style[key] = element.getAttribute(key).strip()
    if element.hasAttribute("style"):
        for decl in element.getAttribute("style").split(";"):
            if ":" in decl:
                k, v = decl.split(":", 1)
                k = k.strip()
                if k in ("fill", "stroke", "stroke-width"):
                    style[k] = v.strip()
    return style


def _style_kwargs(style: dict[str, str]) -> dict:
    def color(value: Optional[str]) -> Optional[str]:
        if value is None or value == "none":
            return None
        return value

    width_text = style.get("stroke-width", "1")
    match = _NUMBER_RE.search(width_text)
    return {
        "fill": color(style.get("fill", "black")),
        "stroke": color(style.get("stroke")),
        "stroke_width": float(match.group()) if match else 1.0,
    }


def _float(element, name: str, default: float = 0.0) -> float:
    if not element.hasAttribute(name):
        return default
    match = _NUMBER_RE.search(element.getAttribute(name))
    return float(match.group()) if match else default


def _item_name(element) -> Optional[str]:
    for attr in ("id", "inkscape:label", "data-name"):
        if element.hasAttribute(attr):
            return element.getAttribute(attr)
    return None


def _points_attr(element) -> list[tuple[float, float]]:
    nums = [float(n) for n in _NUMBER_RE.findall(element.getAttribute("points"))]
    return list(zip(nums[0::2], nums[1::2]))


def _shape_to_paths(element, tag: str, style: dict) -> list[VectorPath]:
    kw = _style_kwargs(style)
    if tag == "path":
        return [
            VectorPath(segments=segs, closed=closed, **kw)
            for segs, closed in path_data_to_subpaths(element.getAttribute("d"))
        ]
    if tag == "circle":
        r = _float(element, "r")
        return [ellipse_path(_float(element, "cx"), _float(element, "cy"), r, r, **kw)]
    if tag == "ellipse":
        return [ellipse_path(
            _float(element, "cx"), _float(element, "cy"),
            _float(element, "rx"), _float(element, "ry"), **kw,
        )]
    if tag == "rect":
        return [rect_path(
            _float(element, "x"), _float(element, "y"),
            _float(element, "width"), _float(element, "height"), **kw,
        )]
    if tag == "line":
        pts = [
            (_float(element, "x1"), _float(element, "y1")),
            (_float(element, "x2"), _float(element, "y2")),
        ]
        return [polyline_path(pts, **kw)]
    if tag in ("polyline", "polygon"):
        return [polyline_path(_points_attr(element), closed=(tag == "polygon"), **kw)]
    return []


_SHAPE_TAGS = {"path", "circle", "ellipse", "rect", "line", "polyline", "polygon"}


def _convert(element, parent: VectorGroup, matrix: Mat3, style: dict) -> None:
    for child in element.childNodes:
        if child.nodeType != child.ELEMENT_NODE:
            continue
        tag = child.tagName.split(":")[-1]
        if tag in ("defs", "style", "title", "desc", "metadata", "clipPath", "mask"):
            continue
        child_matrix = matrix @ parse_transform(child.getAttribute("transform"))
        child_style = {**style, **_parse_style(child)}
        name = _item_name(child)
        if tag in ("g", "svg", "a", "switch"):
            group = parent.add(VectorGroup(name=name))
            _convert(child, group, child_matrix, child_style)
        elif tag in _SHAPE_TAGS:
            paths = _shape_to_paths(child, tag, child_style)
            for path in paths:
                path.name = name
                path.source = tag
                apply_transform(child_matrix, path)
            if len(paths) == 1:
                parent.add(paths[0])
            elif paths:
                # Compound path: keep subpaths together under the item's name
                compound = parent.add(VectorGroup(name=name, compound=True))
                for path in paths:
                    compound.add(path)


def parse_svg(text: str) -> VectorGroup:
    """Parse an SVG document string into a VectorGroup tree."""
    try:
        doc = minidom.parseString(text)
    except ExpatError as e:
        raise ValueError(f"Invalid SVG: {e}") from e
    svg = doc.documentElement
    if svg.tagName.split(":")[-1] != "svg":
        raise ValueError(f"Invalid SVG: root element is <{svg.tagName}>")
    root = VectorGroup(name=_item_name(svg))
    _convert(svg, root, parse_transform(svg.getAttribute("transform")), _parse_style(svg))
    doc.unlink()
    return root


def load_svg(path: Path) -> VectorGroup:
    """Load an SVG file from disk."""
    logger.info("Importing svg %s", path)
    with open(path, encoding="utf-8") as f:
        return parse_svg(f.read())
