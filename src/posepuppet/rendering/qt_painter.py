"""QPainter drawing of deformed illustrations.

Paths are drawn in skeleton space under a single painter transform that
applies the output framing (``OUTPUT_OFFSET`` then ``OUTPUT_SCALE``).  The
debug overlay draws each bone in its diagnostic colour, each binding as a
line whose width is its weight, and each skinned anchor and handle in its
weight-blended colour.
"""

from __future__ import annotations

from typing import Optional, Sequence

from PySide6.QtCore import QPointF, Qt
from PySide6.QtGui import QBrush, QColor, QImage, QPainter, QPainterPath, QPen

from posepuppet.constants import OUTPUT_OFFSET, OUTPUT_SCALE
from posepuppet.core.math_utils import RGB
from posepuppet.skinning.illustration import PoseIllustration, RenderPath


def _qcolor(rgb: RGB, alpha: int = 255) -> QColor:
    r, g, b = rgb
    return QColor(int(r * 255), int(g * 255), int(b * 255), alpha)


def _color_or_none(text: Optional[str]) -> Optional[QColor]:
    if not text:
        return None
    color = QColor(text)
    return color if color.isValid() else None


def build_painter_path(path: RenderPath) -> QPainterPath:
    """QPainterPath of one deformed path (cubic segments)."""
    qpath = QPainterPath()
    if not path.segments:
        return qpath
    x, y = path.segments[0].point
    qpath.moveTo(QPointF(x, y))
    for _, c1, c2, p1 in path.iter_curves():
        qpath.cubicTo(
            QPointF(c1[0], c1[1]), QPointF(c2[0], c2[1]), QPointF(p1[0], p1[1]),
        )
    if path.closed:
        qpath.closeSubpath()
    return qpath


def _apply_framing(painter: QPainter, scale: float, offset: tuple[float, float]) -> None:
    painter.translate(offset[0], offset[1])
    painter.scale(scale, scale)


def draw_illustration(
    painter: QPainter,
    paths: Sequence[RenderPath],
    scale: float = OUTPUT_SCALE,
    offset: tuple[float, float] = OUTPUT_OFFSET,
) -> int:
    """Draw ``paths`` with their own fill and stroke; returns paths drawn."""
    painter.save()
    _apply_framing(painter, scale, offset)
    drawn = 0
    for path in paths:
        if not path.segments:
            continue
        qpath = build_painter_path(path)
        fill = _color_or_none(path.fill)
        stroke = _color_or_none(path.stroke)
        painter.setBrush(QBrush(fill) if fill is not None else Qt.BrushStyle.NoBrush)
        if stroke is not None:
            pen = QPen(stroke)
            pen.setWidthF(path.stroke_width)
            painter.setPen(pen)
        else:
            painter.setPen(Qt.PenStyle.NoPen)
        painter.drawPath(qpath)
        drawn += 1
    painter.restore()
    return drawn


def _dot(painter: QPainter, p, radius: float) -> None:
    painter.drawEllipse(QPointF(p[0], p[1]), radius, radius)


def draw_debug_overlay(
    painter: QPainter,
    illustration: PoseIllustration,
    scale: float = OUTPUT_SCALE,
    offset: tuple[float, float] = OUTPUT_OFFSET,
    point_radius: float = 3.0,
    labels: bool = False,
) -> None:
    """Draw the skeleton and the skinning of every control point.

    Bones are drawn in their diagnostic colours.  Each binding of an anchor
    gets a line from the bone's anchor to the point, as wide as its weight.
    Anchors and handles are dots in their weight-blended colour, joined to
    their anchor by a thin line.  With ``labels`` every keypoint is named.
    """
    skeleton = illustration.skeleton
    if not skeleton.is_valid:
        return
    painter.save()
    _apply_framing(painter, scale, offset)

    for bone in skeleton.bones + skeleton.secondary_bones:
        pen = QPen(_qcolor(bone.color))
        pen.setWidthF(2.0)
        painter.setPen(pen)
        a = bone.kp0.current_position
        b = bone.kp1.current_position
        painter.drawLine(QPointF(a[0], a[1]), QPointF(b[0], b[1]))

    for path in illustration.skinned_paths:
        for seg in path.segments:
            p = seg.point.current_position
            for skin in seg.point.bindings.values():
                bone = skeleton.bone_at(skin.bone_index)
                a = bone.anchor(skin.transform)
                pen = QPen(_qcolor(bone.color, 160))
                pen.setWidthF(max(0.5, 3.0 * skin.weight))
                painter.setPen(pen)
                painter.drawLine(QPointF(a[0], a[1]), QPointF(p[0], p[1]))

            color = _qcolor(illustration.skinning_color(seg.point))
            for handle in (seg.handle_in, seg.handle_out):
                if handle is None:
                    continue
                h = handle.current_position
                painter.setPen(QPen(color))
                painter.drawLine(QPointF(p[0], p[1]), QPointF(h[0], h[1]))
                painter.setPen(Qt.PenStyle.NoPen)
                painter.setBrush(QBrush(_qcolor(illustration.skinning_color(handle))))
                _dot(painter, h, point_radius * 0.6)
            painter.setPen(Qt.PenStyle.NoPen)
            painter.setBrush(QBrush(color))
            _dot(painter, p, point_radius)

    if labels:
        painter.setPen(QPen(QColor("black")))
        for kp in skeleton.keypoints.values():
            if kp.current_position is None:
                continue
            x, y = kp.current_position
            painter.drawText(QPointF(x + point_radius, y - point_radius), kp.name)

    painter.restore()


def render_to_image(
    paths: Sequence[RenderPath],
    width: int,
    height: int,
    background: Optional[str] = "white",
    illustration: Optional[PoseIllustration] = None,
    scale: float = OUTPUT_SCALE,
    offset: tuple[float, float] = OUTPUT_OFFSET,
    labels: bool = False,
) -> QImage:
    """Rasterize deformed paths into a new ARGB image.

    Passing ``illustration`` adds the debug overlay on top; ``labels`` also
    names its keypoints.
    """
    image = QImage(width, height, QImage.Format.Format_ARGB32)
    bg = _color_or_none(background)
    image.fill(bg if bg is not None else QColor(0, 0, 0, 0))
    painter = QPainter(image)
    try:
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        draw_illustration(painter, paths, scale, offset)
        if illustration is not None:
            draw_debug_overlay(painter, illustration, scale, offset, labels=labels)
    finally:
        painter.end()
    return image
