"""Tests for sketch rasterization and image decoding."""

from __future__ import annotations

import base64

import pytest

from aihub import sketch
from aihub.models import LineSegment, Point, Stroke


def _stroke(*points: tuple[float, float]) -> Stroke:
    return sketch.strokes_from_points([list(points)])[0]


def test_rasterize_then_decode_keeps_size():
    strokes = [_stroke((10, 10), (50, 50), (90, 20))]

    encoded = sketch.rasterize(strokes, 100, 100)
    image = sketch.decode(encoded)

    assert image is not None
    assert image.size == (100, 100)
    assert image.format == "PNG"


def test_rasterize_draws_black_on_white():
    strokes = [_stroke((10, 50), (90, 50))]

    image = sketch.decode(sketch.rasterize(strokes, 100, 100)).convert("RGB")

    assert image.getpixel((50, 50)) == (0, 0, 0)
    assert image.getpixel((50, 5)) == (255, 255, 255)


def test_rasterize_ignores_segment_color_and_width():
    seg = LineSegment(start=Point(x=20, y=20), end=Point(x=80, y=20), color="#ff0000", width=1.0)

    image = sketch.decode(sketch.rasterize([Stroke(segments=[seg])], 100, 100)).convert("RGB")

    assert image.getpixel((50, 20)) == (0, 0, 0)
    # 10px wide line reaches a few pixels off-axis
    assert image.getpixel((50, 23)) == (0, 0, 0)


def test_rounded_caps_extend_past_endpoints():
    image = sketch.decode(sketch.rasterize([_stroke((30, 50), (70, 50))], 100, 100)).convert("RGB")
    assert image.getpixel((27, 50)) == (0, 0, 0)
    assert image.getpixel((20, 50)) == (255, 255, 255)


def test_rasterize_output_is_unwrapped_base64():
    encoded = sketch.rasterize([_stroke((0, 0), (99, 99))], 100, 100)
    assert "\n" not in encoded
    assert base64.b64decode(encoded).startswith(b"\x89PNG")


@pytest.mark.parametrize("width,height", [(0, 0), (0, 100), (100, 0), (-5, 10)])
def test_rasterize_unmeasured_canvas_is_empty(width: int, height: int):
    assert sketch.rasterize([_stroke((1, 1), (2, 2))], width, height) == ""


def test_rasterize_empty_strokes_zero_canvas():
    assert sketch.rasterize([], 0, 0) == ""


def test_rasterize_no_strokes_is_blank_canvas():
    image = sketch.decode(sketch.rasterize([], 20, 20)).convert("RGB")
    assert image.getcolors() == [(400, (255, 255, 255))]


@pytest.mark.parametrize("bad", ["", "not base64 at all!!", "AAAA", base64.b64encode(b"hello").decode(), "abc"])
def test_decode_malformed_returns_none(bad: str):
    assert sketch.decode(bad) is None


def test_decode_accepts_data_uri():
    encoded = sketch.rasterize([_stroke((1, 1), (5, 5))], 10, 10)
    image = sketch.decode(f"data:image/png;base64,{encoded}")
    assert image is not None
    assert image.size == (10, 10)


def test_strokes_from_points():
    strokes = sketch.strokes_from_points([[[0, 0], [1, 1], [2, 3]], [], [[5, 5]]])

    assert len(strokes) == 2
    assert [(s.start.x, s.end.y) for s in strokes[0].segments] == [(0, 1), (1, 3)]
    # A tap becomes a zero-length segment
    assert strokes[1].segments[0].start == strokes[1].segments[0].end


def test_decode_broken_png_returns_none(monkeypatch: pytest.MonkeyPatch):
    class _BrokenPng:
        def load(self):
            raise SyntaxError("broken PNG file (chunk b'\\xc0Z\\xc4\\xda')")

    monkeypatch.setattr(sketch.Image, "open", lambda fp: _BrokenPng())

    assert sketch.decode(sketch.rasterize([_stroke((1, 1), (5, 5))], 10, 10)) is None

