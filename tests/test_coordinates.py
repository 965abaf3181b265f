from dataclasses import astuple

import pytest

from modules.editor.models.geometry import Point, Rect, Size
from modules.editor.services.coordinates import (
    clamp,
    normalize_rotation,
    rotate_fraction_point,
    rotate_fraction_rect,
    to_fraction,
    to_pixel,
    unrotate_fraction_point,
)


def test_to_fraction_center_of_canvas():
    assert to_fraction(Point(400, 300), Size(800, 600)) == Point(0.5, 0.5)


def test_to_pixel_scales_every_component():
    rect = to_pixel(Rect(0.1, 0.2, 0.5, 0.25), Size(1000, 400))
    assert astuple(rect) == pytest.approx((100, 80, 500, 100))


@pytest.mark.parametrize("canvas", [Size(0, 600), Size(800, 0), Size(-1, 10)])
def test_rejects_empty_canvas(canvas):
    with pytest.raises(ValueError):
        to_fraction(Point(1, 1), canvas)
    with pytest.raises(ValueError):
        to_pixel(Rect(0, 0, 0.1, 0.1), canvas)


def test_clamp_keeps_rect_inside_page():
    assert astuple(clamp(Rect(0.95, 0.98, 0.15, 0.05))) == pytest.approx((0.85, 0.95, 0.15, 0.05))


def test_clamp_moves_negative_origin_to_zero():
    assert clamp(Rect(-0.2, -0.1, 0.3, 0.3)) == Rect(0.0, 0.0, 0.3, 0.3)


def test_clamp_reduces_size_before_origin():
    rect = clamp(Rect(0.5, -0.5, 1.5, 2.0))
    assert rect == Rect(0.0, 0.0, 1.0, 1.0)


def test_clamp_leaves_valid_rect_untouched():
    rect = Rect(0.1, 0.1, 0.2, 0.05)
    assert clamp(rect) == rect


@pytest.mark.parametrize("rotation,expected", [(0, 0), (90, 90), (-90, 270), (450, 90), (360, 0)])
def test_normalize_rotation(rotation, expected):
    assert normalize_rotation(rotation) == expected


def test_normalize_rotation_rejects_odd_angles():
    with pytest.raises(ValueError):
        normalize_rotation(45)


@pytest.mark.parametrize("rotation", [0, 90, 180, 270])
def test_unrotate_inverts_rotate(rotation):
    point = Point(0.2, 0.7)
    back = unrotate_fraction_point(rotate_fraction_point(point, rotation), rotation)
    assert (back.x, back.y) == pytest.approx((point.x, point.y))


def test_rotate_rect_quarter_turn():
    # top-left corner of a portrait page ends up top-right once turned clockwise
    rect = rotate_fraction_rect(Rect(0.0, 0.0, 0.2, 0.1), 90)
    assert astuple(rect) == pytest.approx((0.9, 0.0, 0.1, 0.2))


def test_rotate_rect_half_turn():
    rect = rotate_fraction_rect(Rect(0.1, 0.1, 0.2, 0.05), 180)
    assert astuple(rect) == pytest.approx((0.7, 0.85, 0.2, 0.05))
