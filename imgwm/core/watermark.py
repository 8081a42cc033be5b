"""
Watermark Compositor
====================
Prepares the configured watermark image and blends it onto a host image.

Workflow:
1. prepare_watermark: load the watermark (single frame), resize it through
   the transform pipeline, pad it by the tile gap when replicating, copy it
   to memory when it will be read more than once, tile it across one frame
   and strip its metadata
2. apply_watermark: normalize the host colour space, then blend the
   prepared watermark onto every frame of the host
3. watermark: pipeline stage that applies the process-wide watermark when
   the request enables it

Technical Notes:
- Animated hosts are vertically stacked frames; the watermark is prepared
  once against the frame size and reused for every frame
- A replicated watermark on an animated host is tiled over the whole
  canvas and blended in a single pass instead of once per frame
- Any engine error aborts the call; the host is never left with a partial
  watermark from this module's own retry or fallback logic
"""

import logging
from typing import Optional

from .. import config
from .engine import WorkingImage
from .geometry import resolve_placement, resolve_tile_gap, scale_dimension
from .imagedata import ImageData, get_watermark
from .options import ProcessingOptions, ResizeType, WatermarkOptions, new_processing_options
from .pipeline import PipelineContext, watermark_pipeline

logger = logging.getLogger(__name__)


def prepare_watermark(
        wm: WorkingImage,
        wm_data: ImageData,
        opts: WatermarkOptions,
        img_width: int,
        img_height: int,
        offset_scale: float,
        frames_count: int
) -> None:
    """
    Load and transform the watermark into `wm`, ready to be blended.

    Args:
        wm: Empty working image that receives the watermark.
        wm_data: Encoded watermark source.
        opts: Request watermark options.
        img_width: Host width.
        img_height: Host frame height.
        offset_scale: Multiplier for absolute gravity offsets (DPR).
        frames_count: Number of host frames the watermark will be blended on.

    Raises:
        WatermarkError: LoadError, TransformError or ReplicationError from
                        the engine.
    """
    wm.load(wm_data, shrink=1, pages=1)

    po = new_processing_options()
    po.resizing_type = ResizeType.FIT
    po.dpr = 1.0
    po.enlarge = True
    po.format = wm_data.type

    if opts.scale > 0:
        po.width = scale_dimension(img_width, opts.scale)
        po.height = scale_dimension(img_height, opts.scale)

    if opts.replicate:
        po.padding = resolve_tile_gap(img_width, img_height, opts.gravity, offset_scale)

    watermark_pipeline.run(wm, po, wm_data)

    # Tiling and per-frame blending read the watermark several times
    if opts.replicate or frames_count > 1:
        wm.copy_memory()

    if opts.replicate:
        wm.replicate(img_width, img_height)

    # Watermark headers must not end up in the host
    wm.strip_all()

    logger.debug("Prepared watermark %dx%d for %dx%d frame (replicate=%s, frames=%d)",
                 wm.width(), wm.height(), img_width, img_height, opts.replicate, frames_count)


def apply_watermark(
        img: WorkingImage,
        wm_data: ImageData,
        opts: WatermarkOptions,
        offset_scale: float,
        frames_count: int
) -> None:
    """
    Blend the watermark onto every frame of `img` in place.

    Args:
        img: Host image; `frames_count` frames stacked vertically.
        wm_data: Encoded watermark source.
        opts: Request watermark options.
        offset_scale: Multiplier for absolute gravity offsets (DPR).
        frames_count: Number of stacked frames in `img`.

    Raises:
        WatermarkError: The first engine error encountered.
    """
    with WorkingImage() as wm:
        width = img.width()
        height = img.height()
        frame_height = height // frames_count

        prepare_watermark(wm, wm_data, opts, width, frame_height, offset_scale, frames_count)

        if not img.colour_profile_imported():
            img.import_colour_profile()

        img.rgb_colourspace()

        opacity = opts.opacity * config.WATERMARK_OPACITY

        # Replicated watermark on an animated image: tile the frame-sized
        # watermark over all frames and blend once
        if opts.replicate and frames_count > 1:
            wm.replicate(width, height)
            logger.debug("Blending replicated watermark over %d frames in one pass", frames_count)
            img.apply_watermark(wm, 0, 0, opacity)
            return

        left, top = 0, 0

        if not opts.replicate:
            left, top = resolve_placement(
                width, frame_height, wm.width(), wm.height(), opts.gravity, offset_scale, True
            )

        for _ in range(frames_count):
            img.apply_watermark(wm, left, top, opacity)
            top += frame_height


def watermark(ctx: PipelineContext, img: WorkingImage, po: ProcessingOptions,
              image_data: Optional[ImageData]) -> None:
    """Pipeline stage: apply the configured watermark if the request asks for one."""
    wm_data = get_watermark()
    if not po.watermark.enabled or wm_data is None:
        return

    apply_watermark(img, wm_data, po.watermark, ctx.dpr_scale, 1)
