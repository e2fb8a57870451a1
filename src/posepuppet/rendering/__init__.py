"""Rendering subsystem -- QPainter drawing of deformed illustrations."""

from posepuppet.rendering.qt_painter import (
    build_painter_path,
    draw_debug_overlay,
    draw_illustration,
    render_to_image,
)

__all__ = [
    "build_painter_path",
    "draw_debug_overlay",
    "draw_illustration",
    "render_to_image",
]
