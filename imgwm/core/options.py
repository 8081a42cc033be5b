"""
Processing Options
==================
Plain configuration dataclasses consumed by the geometry resolver,
the transform pipeline and the watermark compositor.

Option parsing from requests happens outside this package; callers
construct these objects directly.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class GravityType(Enum):
    """Anchor used to place an overlay inside a target area."""
    CENTER = "ce"
    NORTH = "no"
    SOUTH = "so"
    EAST = "ea"
    WEST = "we"
    NORTH_EAST = "noea"
    NORTH_WEST = "nowe"
    SOUTH_EAST = "soea"
    SOUTH_WEST = "sowe"
    FOCUS_POINT = "fp"


class ResizeType(Enum):
    """How the source is fitted into the requested width and height."""
    FIT = "fit"
    FILL = "fill"
    FORCE = "force"


class ImageType(Enum):
    """Image formats understood by the engine, keyed by Pillow format name."""
    JPEG = "JPEG"
    PNG = "PNG"
    GIF = "GIF"
    WEBP = "WEBP"
    TIFF = "TIFF"
    BMP = "BMP"

    @classmethod
    def from_pillow(cls, name: Optional[str]) -> Optional["ImageType"]:
        """Map a Pillow `Image.format` value to an ImageType, or None."""
        if not name:
            return None
        try:
            return cls(name.upper())
        except ValueError:
            return None

    @property
    def supports_animation(self) -> bool:
        return self in (ImageType.GIF, ImageType.WEBP)

    @property
    def supports_alpha(self) -> bool:
        return self not in (ImageType.JPEG, ImageType.BMP)


@dataclass
class GravityOptions:
    """
    Gravity anchor plus offsets.

    Offsets with an absolute value of 1.0 or more are pixels (scaled by the
    device pixel ratio); smaller values are fractions of the target size.
    For FOCUS_POINT, x and y are the point's relative coordinates.
    """
    type: GravityType = GravityType.CENTER
    x: float = 0.0
    y: float = 0.0


@dataclass
class PaddingOptions:
    """Four-sided canvas extension in pixels."""
    enabled: bool = False
    top: int = 0
    right: int = 0
    bottom: int = 0
    left: int = 0


@dataclass
class WatermarkOptions:
    """Per-request watermark settings."""
    enabled: bool = False
    opacity: float = 1.0  # 0.0-1.0
    scale: float = 0.0  # 0 keeps the watermark's own size
    replicate: bool = False
    gravity: GravityOptions = field(default_factory=GravityOptions)


@dataclass
class ProcessingOptions:
    """Subset of request processing options used by this package."""
    width: int = 0
    height: int = 0
    dpr: float = 1.0
    resizing_type: ResizeType = ResizeType.FIT
    enlarge: bool = False
    auto_rotate: bool = True
    format: Optional[ImageType] = None
    padding: PaddingOptions = field(default_factory=PaddingOptions)
    watermark: WatermarkOptions = field(default_factory=WatermarkOptions)


def new_processing_options() -> ProcessingOptions:
    """Create processing options populated with defaults."""
    return ProcessingOptions()
