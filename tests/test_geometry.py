"""
Tests for gravity, offset and scale resolution.

Run with: python -m pytest tests/test_geometry.py -v
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from imgwm.core.geometry import (
    resolve_offset,
    resolve_placement,
    resolve_tile_gap,
    round_to_even,
    scale_dimension,
    split_padding,
)
from imgwm.core.options import GravityOptions, GravityType


def test_round_to_even():
    assert round_to_even(20.0) == 20
    assert round_to_even(21.0) == 22
    assert round_to_even(19.2) == 20
    assert round_to_even(350) == 350
    assert round_to_even(-3) == -4
    assert round_to_even(-1) == -2
    assert round_to_even(0.4) == 0
    assert round_to_even(-0.4) == 0


def test_round_to_even_is_symmetric():
    for value in (1, 3, 5, 7.5, 19.2, 801):
        assert round_to_even(-value) == -round_to_even(value)


def test_negative_absolute_offset_rounds_away_from_zero():
    assert resolve_offset(100, -3, 1.0) == -4
    assert resolve_offset(100, 3, 1.0) == 4


def test_relative_offset_uses_target_size():
    for width in (1, 99, 100, 640, 801):
        for x in (-0.9, -0.5, -0.1, 0.0, 0.1, 0.33, 0.5, 0.99):
            offset = resolve_offset(width, x, 2.0)
            assert offset == round_to_even(x * width)
            assert offset % 2 == 0


def test_absolute_offset_ignores_target_size():
    assert resolve_offset(100, 10, 2.0) == 20
    assert resolve_offset(5000, 10, 2.0) == 20
    assert resolve_offset(100, -1.0, 3.0) == round_to_even(-3.0)
    assert resolve_offset(100, 1.0, 1.5) == 2


def test_split_padding_sums_to_offset():
    for offset in range(-25, 26):
        first, second = split_padding(offset)
        assert first + second == offset
        assert first == int(offset / 2)


def test_split_padding_truncates_toward_zero():
    assert split_padding(3) == (1, 2)
    assert split_padding(-3) == (-1, -2)
    assert split_padding(-1) == (0, -1)


def test_scale_dimension_is_even_or_one():
    for size in (1, 2, 3, 99, 600, 801):
        for scale in (0.001, 0.1, 0.25, 0.5, 1.0, 1.7):
            value = scale_dimension(size, scale)
            assert value == max(round_to_even(size * scale), 1)
            assert value == 1 or value % 2 == 0


def test_center_placement():
    left, top = resolve_placement(800, 600, 100, 50, GravityOptions(), 1.0)
    assert (left, top) == (350, 276)
    assert left % 2 == 0 and top % 2 == 0

    assert resolve_placement(801, 600, 100, 50, GravityOptions(), 1.0) == (350, 276)


def test_corner_placement_offsets_point_inward():
    nw = GravityOptions(GravityType.NORTH_WEST, 10, 10)
    se = GravityOptions(GravityType.SOUTH_EAST, 10, 10)

    assert resolve_placement(800, 600, 100, 50, nw, 1.0) == (10, 10)
    assert resolve_placement(800, 600, 100, 50, se, 1.0) == (690, 540)
    assert resolve_placement(800, 600, 100, 50, se, 2.0) == (680, 530)


def test_edge_placement():
    north = GravityOptions(GravityType.NORTH)
    east = GravityOptions(GravityType.EAST)

    assert resolve_placement(800, 600, 100, 50, north, 1.0) == (350, 0)
    assert resolve_placement(800, 600, 100, 50, east, 1.0) == (700, 276)


def test_focus_point_centres_overlay_on_point():
    fp = GravityOptions(GravityType.FOCUS_POINT, 0.25, 0.5)
    assert resolve_placement(800, 600, 100, 50, fp, 1.0) == (150, 275)


def test_overflow_clamping():
    far_east = GravityOptions(GravityType.EAST, -1000, 0)

    left, _ = resolve_placement(800, 600, 100, 50, far_east, 1.0, allow_overflow=True)
    assert left == 799

    left, _ = resolve_placement(800, 600, 100, 50, far_east, 1.0, allow_overflow=False)
    assert left == 700


def test_tile_gap():
    gravity = GravityOptions(GravityType.CENTER, 10, 0.1)
    padding = resolve_tile_gap(200, 100, gravity, 2.0)

    assert padding.enabled
    assert (padding.left, padding.right) == (10, 10)
    assert (padding.top, padding.bottom) == (5, 5)


def test_tile_gap_ignores_gravity_anchor():
    a = resolve_tile_gap(200, 100, GravityOptions(GravityType.SOUTH_EAST, 6, 4), 1.0)
    b = resolve_tile_gap(200, 100, GravityOptions(GravityType.NORTH_WEST, 6, 4), 1.0)
    assert a == b
