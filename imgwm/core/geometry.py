"""
Geometry Resolver
=================
Turns gravity, offsets and scale factors into pixel positions and sizes.

Technical Notes:
- Every derived offset and scaled dimension is rounded to an EVEN pixel
  count so later 2:1 operations (frame halving, padding split) never
  produce half-pixel seams
- Offsets with |value| >= 1.0 are absolute pixels multiplied by the
  offset scale (device pixel ratio); smaller values are fractions of the
  target dimension
- Placement and tile-gap resolution share `resolve_offset`, but are kept
  as separate entry points
"""

import logging
import math
from typing import Tuple

from .options import GravityOptions, GravityType, PaddingOptions

logger = logging.getLogger(__name__)

_NORTH = (GravityType.NORTH, GravityType.NORTH_EAST, GravityType.NORTH_WEST)
_SOUTH = (GravityType.SOUTH, GravityType.SOUTH_EAST, GravityType.SOUTH_WEST)
_EAST = (GravityType.EAST, GravityType.NORTH_EAST, GravityType.SOUTH_EAST)
_WEST = (GravityType.WEST, GravityType.NORTH_WEST, GravityType.SOUTH_WEST)


def round_to_even(value: float) -> int:
    """Round to the nearest even integer (halfway values round away from zero)."""
    return 2 * int(math.copysign(math.floor(abs(value) / 2 + 0.5), value))


def scale_to_even(size: int, scale: float) -> int:
    return round_to_even(size * scale)


def scale_dimension(size: int, scale: float) -> int:
    """Scale a dimension, keeping it even and never below 1 pixel."""
    return max(scale_to_even(size, scale), 1)


def split_padding(offset: int) -> Tuple[int, int]:
    """
    Split an offset into two insets that always sum to the offset.

    Returns:
        (first, second) where first is half the offset truncated toward zero.
    """
    first = int(offset / 2)
    return first, offset - first


def resolve_offset(size: int, value: float, offset_scale: float) -> int:
    """
    Resolve a single gravity offset to pixels.

    Args:
        size: Target dimension along this axis.
        value: Gravity offset; absolute if |value| >= 1.0, else relative.
        offset_scale: Multiplier for absolute offsets.
    """
    if abs(value) >= 1.0:
        return round_to_even(value * offset_scale)
    return scale_to_even(size, value)


def resolve_placement(
        width: int,
        height: int,
        inner_width: int,
        inner_height: int,
        gravity: GravityOptions,
        offset_scale: float,
        allow_overflow: bool = True
) -> Tuple[int, int]:
    """
    Compute where an overlay of `inner_*` size goes inside a `width` x `height` area.

    Edge gravities measure the offset inward from that edge. With
    `allow_overflow` the overlay may hang over the edges but keeps at least
    one pixel inside; otherwise it is clamped fully inside the area.

    Returns:
        (left, top) pixel offsets of the overlay's top-left corner.
    """
    if gravity.type == GravityType.FOCUS_POINT:
        left = scale_to_even(width, gravity.x) - inner_width // 2
        top = scale_to_even(height, gravity.y) - inner_height // 2
    else:
        off_x = resolve_offset(width, gravity.x, offset_scale)
        off_y = resolve_offset(height, gravity.y, offset_scale)

        left = round_to_even((width - inner_width) / 2) + off_x
        top = round_to_even((height - inner_height) / 2) + off_y

        if gravity.type in _NORTH:
            top = off_y
        if gravity.type in _EAST:
            left = width - inner_width - off_x
        if gravity.type in _SOUTH:
            top = height - inner_height - off_y
        if gravity.type in _WEST:
            left = off_x

    if allow_overflow:
        min_x, max_x = -inner_width + 1, width - 1
        min_y, max_y = -inner_height + 1, height - 1
    else:
        min_x, max_x = 0, width - inner_width
        min_y, max_y = 0, height - inner_height

    left = max(min_x, min(left, max_x))
    top = max(min_y, min(top, max_y))

    return left, top


def resolve_tile_gap(
        width: int,
        height: int,
        gravity: GravityOptions,
        offset_scale: float
) -> PaddingOptions:
    """
    Interpret gravity offsets as the gap between replicated tiles.

    The gap on each axis is split evenly around the tile so neighbouring
    tiles end up exactly one gap apart.
    """
    gap_x = resolve_offset(width, gravity.x, offset_scale)
    gap_y = resolve_offset(height, gravity.y, offset_scale)

    left, right = split_padding(gap_x)
    top, bottom = split_padding(gap_y)

    logger.debug("Tile gap %dx%d resolved to padding l=%d r=%d t=%d b=%d",
                 gap_x, gap_y, left, right, top, bottom)

    return PaddingOptions(enabled=True, top=top, right=right, bottom=bottom, left=left)
