"""
Transform Pipeline
==================
An ordered list of stage functions applied to a WorkingImage.

Each stage has the signature:

    stage(ctx: PipelineContext, img: WorkingImage,
          po: ProcessingOptions, image_data: Optional[ImageData]) -> None

and either mutates `img` or raises. The first failure aborts the run.
`PipelineContext` carries values computed by earlier stages (source size,
orientation, scale factors) to later ones and is created fresh per run.

The same stages serve the watermark (see `watermark_pipeline`) and the
host-image resize path in `processing`.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple

from .. import config
from ..errors import TransformError, WatermarkError
from .engine import WorkingImage
from .geometry import resolve_placement
from .imagedata import ImageData
from .options import GravityOptions, ImageType, ProcessingOptions, ResizeType

logger = logging.getLogger(__name__)

# EXIF orientation -> (clockwise angle, mirror after rotation)
_ORIENTATIONS = {
    1: (0, False),
    2: (0, True),
    3: (180, False),
    4: (180, True),
    5: (90, True),
    6: (90, False),
    7: (270, True),
    8: (270, False),
}


@dataclass
class PipelineContext:
    """Values shared between the stages of a single pipeline run."""
    image_type: Optional[ImageType] = None
    src_width: int = 0
    src_height: int = 0
    angle: int = 0
    flip: bool = False
    wscale: float = 1.0
    hscale: float = 1.0
    dpr_scale: float = 1.0
    target_width: int = 0
    target_height: int = 0
    icc_imported: bool = False


Stage = Callable[[PipelineContext, WorkingImage, ProcessingOptions, Optional[ImageData]], None]


class Pipeline:
    """An ordered, reusable sequence of transform stages."""

    def __init__(self, *stages: Stage):
        self._stages: Tuple[Stage, ...] = stages

    @property
    def stages(self) -> Tuple[Stage, ...]:
        return self._stages

    def without(self, *excluded: Stage) -> "Pipeline":
        """Return a copy of this pipeline with the given stages removed."""
        return Pipeline(*(s for s in self._stages if s not in excluded))

    def __iter__(self) -> Iterable[Stage]:
        return iter(self._stages)

    def __len__(self) -> int:
        return len(self._stages)

    def run(
            self,
            img: WorkingImage,
            po: ProcessingOptions,
            image_data: Optional[ImageData] = None,
            ctx: Optional[PipelineContext] = None
    ) -> PipelineContext:
        """
        Run every stage in order, stopping at the first failure.

        Returns:
            The context populated by the stages.

        Raises:
            WatermarkError: The first error raised by a stage. Unexpected
                            Pillow errors are wrapped in TransformError.
        """
        if ctx is None:
            ctx = PipelineContext()

        for stage in self._stages:
            name = getattr(stage, "__name__", repr(stage))
            logger.debug("Running stage %s", name)
            try:
                stage(ctx, img, po, image_data)
            except WatermarkError:
                raise
            except (OSError, ValueError) as e:
                raise TransformError(f"Stage {name} failed: {e}") from e

        return ctx


def calc_scale(width: int, height: int, po: ProcessingOptions) -> Tuple[float, float]:
    """
    Compute horizontal and vertical scale factors for the requested size.

    Args:
        width: Source width (after orientation is taken into account).
        height: Source height.
        po: Processing options with target size, resizing type and DPR.
    """
    wshrink = width / po.width if po.width else 1.0
    hshrink = height / po.height if po.height else 1.0

    if wshrink != 1.0 or hshrink != 1.0:
        if not po.width:
            wshrink = hshrink
        elif not po.height:
            hshrink = wshrink
        elif po.resizing_type == ResizeType.FIT:
            wshrink = hshrink = max(wshrink, hshrink)
        elif po.resizing_type == ResizeType.FILL:
            wshrink = hshrink = min(wshrink, hshrink)

    if not po.enlarge:
        if wshrink < 1:
            hshrink /= wshrink
            wshrink = 1.0
        if hshrink < 1:
            wshrink /= hshrink
            hshrink = 1.0

    wshrink /= po.dpr
    hshrink /= po.dpr

    # Never shrink below a single pixel
    wshrink = min(wshrink, float(width))
    hshrink = min(hshrink, float(height))

    return 1.0 / wshrink, 1.0 / hshrink


def _jpeg_shrink(scale: float) -> int:
    shrink = int(1.0 / scale)
    if shrink >= 8:
        return 8
    if shrink >= 4:
        return 4
    if shrink >= 2:
        return 2
    return 1


# ===== Stages =====

def prepare(ctx: PipelineContext, img: WorkingImage, po: ProcessingOptions,
            image_data: Optional[ImageData]) -> None:
    """Read source geometry and orientation, and compute the scale factors."""
    ctx.image_type = image_data.type if image_data is not None else po.format
    ctx.src_width = img.width()
    ctx.src_height = img.frame_height()
    ctx.dpr_scale = po.dpr

    if po.auto_rotate:
        ctx.angle, ctx.flip = _ORIENTATIONS[img.orientation()]

    width, height = ctx.src_width, ctx.src_height
    if ctx.angle in (90, 270):
        width, height = height, width

    wscale, hscale = calc_scale(width, height, po)

    # Scales are applied before rotation, so map them back to source axes
    if ctx.angle in (90, 270):
        wscale, hscale = hscale, wscale

    ctx.wscale, ctx.hscale = wscale, hscale
    ctx.target_width = round(po.width * po.dpr)
    ctx.target_height = round(po.height * po.dpr)


def scale_on_load(ctx: PipelineContext, img: WorkingImage, po: ProcessingOptions,
                  image_data: Optional[ImageData]) -> None:
    """Reload a JPEG with decode-time downscaling when heavy shrinking is needed."""
    prescale = max(ctx.wscale, ctx.hscale)
    if (image_data is None or config.DISABLE_SHRINK_ON_LOAD or prescale >= 1
            or image_data.type != ImageType.JPEG or img.frames_count() > 1):
        return

    shrink = _jpeg_shrink(prescale)
    if shrink == 1:
        return

    img.load(image_data, shrink=shrink, pages=1)

    new_width, new_height = img.width(), img.height()
    logger.debug("Shrink-on-load %d: %dx%d -> %dx%d",
                 shrink, ctx.src_width, ctx.src_height, new_width, new_height)

    ctx.wscale *= ctx.src_width / new_width
    ctx.hscale *= ctx.src_height / new_height

    if new_width == round(new_width * ctx.wscale):
        ctx.wscale = 1.0
    if new_height == round(new_height * ctx.hscale):
        ctx.hscale = 1.0


def import_colour_profile(ctx: PipelineContext, img: WorkingImage, po: ProcessingOptions,
                          image_data: Optional[ImageData]) -> None:
    if ctx.icc_imported:
        return
    img.import_colour_profile()
    ctx.icc_imported = True


def scale(ctx: PipelineContext, img: WorkingImage, po: ProcessingOptions,
          image_data: Optional[ImageData]) -> None:
    if ctx.wscale == 1.0 and ctx.hscale == 1.0:
        return
    img.resize(ctx.wscale, ctx.hscale)


def rotate_and_flip(ctx: PipelineContext, img: WorkingImage, po: ProcessingOptions,
                    image_data: Optional[ImageData]) -> None:
    if ctx.angle == 0 and not ctx.flip:
        return
    img.rotate(ctx.angle)
    if ctx.flip:
        img.flip()
    img.reset_orientation()


def crop_to_result(ctx: PipelineContext, img: WorkingImage, po: ProcessingOptions,
                   image_data: Optional[ImageData]) -> None:
    """Trim the overflow left by FILL resizing to the exact target size."""
    if po.resizing_type != ResizeType.FILL or not ctx.target_width or not ctx.target_height:
        return

    width = min(ctx.target_width, img.width())
    height = min(ctx.target_height, img.height())
    if width == img.width() and height == img.height():
        return

    left, top = resolve_placement(
        img.width(), img.height(), width, height, GravityOptions(), ctx.dpr_scale,
        allow_overflow=False
    )
    img.crop(left, top, width, height)


def padding(ctx: PipelineContext, img: WorkingImage, po: ProcessingOptions,
            image_data: Optional[ImageData]) -> None:
    """Extend the canvas by the configured insets (scaled by DPR)."""
    if not po.padding.enabled:
        return

    top, right, bottom, left = (
        max(0, round(value * ctx.dpr_scale))
        for value in (po.padding.top, po.padding.right, po.padding.bottom, po.padding.left)
    )
    if not (top or right or bottom or left):
        return

    img.embed(img.width() + left + right, img.height() + top + bottom, left, top)


watermark_pipeline = Pipeline(
    prepare,
    scale_on_load,
    import_colour_profile,
    scale,
    rotate_and_flip,
    padding,
)
