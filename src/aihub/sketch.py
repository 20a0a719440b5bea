"""Rasterize freehand strokes to PNG and decode base64 images back."""

from __future__ import annotations

import base64
import binascii
import io
import logging
from collections.abc import Sequence

from PIL import Image, ImageDraw

from .config import SKETCH_STROKE_WIDTH
from .models import LineSegment, Point, Stroke

logger = logging.getLogger(__name__)


def strokes_from_points(drags: Sequence[Sequence[Sequence[float]]]) -> list[Stroke]:
    """Turn drag point sequences into strokes of consecutive segments.

    Each drag is a list of ``[x, y]`` points; a single-point drag becomes a
    zero-length segment so taps still leave a dot.
    """
    strokes: list[Stroke] = []
    for drag in drags:
        points = [Point(x=p[0], y=p[1]) for p in drag]
        if not points:
            continue
        if len(points) == 1:
            points = points * 2
        segments = [LineSegment(start=a, end=b) for a, b in zip(points, points[1:])]
        strokes.append(Stroke(segments=segments))
    return strokes


def rasterize(strokes: Sequence[Stroke], width: int, height: int) -> str:
    """Draw strokes black on white and return the PNG as unwrapped base64.

    Returns an empty string when the canvas has no size yet.
    """
    if width <= 0 or height <= 0:
        return ""

    image = Image.new("RGB", (width, height), "white")
    draw = ImageDraw.Draw(image)
    radius = SKETCH_STROKE_WIDTH / 2

    for stroke in strokes:
        for seg in stroke.segments:
            start = (seg.start.x, seg.start.y)
            end = (seg.end.x, seg.end.y)
            draw.line([start, end], fill="black", width=SKETCH_STROKE_WIDTH)
            # Round caps
            for x, y in (start, end):
                draw.ellipse([x - radius, y - radius, x + radius, y + radius], fill="black")

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def decode(encoded: str) -> Image.Image | None:
    """Decode base64 (or a ``data:`` URI) into an image; None if it is not one."""
    if not encoded:
        return None
    if encoded.startswith("data:"):
        encoded = encoded.split(",", 1)[-1]

    try:
        raw = base64.b64decode(encoded)
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (binascii.Error, ValueError, OSError, SyntaxError) as e:
        logger.debug("Could not decode image: %s", e)
        return None
    return image
