"""Export deformed illustration geometry as an SVG document.

Headless counterpart of the Qt renderer: each ``RenderPath`` becomes one
``<path>`` element whose data is a chain of cubic curves.  Output framing
(scale and offset) is applied through a single group transform so the
path coordinates stay in skeleton space.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence
from xml.sax.saxutils import quoteattr

from posepuppet.constants import OUTPUT_OFFSET, OUTPUT_SCALE
from posepuppet.skinning.illustration import RenderPath

logger = logging.getLogger(__name__)


def _fmt(v: float) -> str:
    text = f"{v:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def path_data(path: RenderPath) -> str:
    """SVG ``d`` attribute for one render path."""
    if not path.segments:
        return ""
    first = path.segments[0].point
    parts = [f"M{_fmt(first[0])},{_fmt(first[1])}"]
    for _, c1, c2, p1 in path.iter_curves():
        parts.append(
            f"C{_fmt(c1[0])},{_fmt(c1[1])} {_fmt(c2[0])},{_fmt(c2[1])} {_fmt(p1[0])},{_fmt(p1[1])}"
        )
    if path.closed:
        parts.append("Z")
    return " ".join(parts)


def _path_element(path: RenderPath) -> str:
    attrs = [f"d={quoteattr(path_data(path))}"]
    attrs.append(f"fill={quoteattr(path.fill or 'none')}")
    if path.stroke:
        attrs.append(f"stroke={quoteattr(path.stroke)}")
        attrs.append(f'stroke-width="{_fmt(path.stroke_width)}"')
    if path.name:
        attrs.append(f"id={quoteattr(path.name)}")
    return f"<path {' '.join(attrs)}/>"


def to_svg(
    paths: Sequence[RenderPath],
    width: int = 640,
    height: int = 480,
    scale: float = OUTPUT_SCALE,
    offset: tuple[float, float] = OUTPUT_OFFSET,
    background: Optional[str] = None,
) -> str:
    """Build an SVG document string from deformed paths."""
    lines = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" '
        f'viewBox="0 0 {width} {height}">'
    ]
    if background:
        lines.append(f'<rect width="100%" height="100%" fill={quoteattr(background)}/>')
    lines.append(
        f'<g transform="translate({_fmt(offset[0])},{_fmt(offset[1])}) scale({_fmt(scale)})">'
    )
    for path in paths:
        if len(path.segments) == 0:
            continue
        lines.append(_path_element(path))
    lines.append("</g>")
    lines.append("</svg>")
    return "\n".join(lines)


def export_svg(paths: Sequence[RenderPath], path: str | Path, **kwargs) -> int:
    """Write deformed paths to an SVG file.

    Returns the number of paths written.
    """
    path = Path(path)
    text = to_svg(paths, **kwargs)
    path.write_text(text, encoding="utf-8")
    count = sum(1 for p in paths if len(p.segments))
    logger.info("Exported %d paths to %s", count, path)
    return count
