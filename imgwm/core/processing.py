"""
Host Image Processing
=====================
The main resize path. Shares its stages with the watermark pipeline and
ends with the watermark stage.

Animated images are split into frames, each frame goes through the
pipeline without the watermark stage, the frames are stacked back and the
watermark is applied once across all of them.
"""

import logging

from .engine import WorkingImage
from .imagedata import ImageData, get_watermark
from .options import ProcessingOptions
from .pipeline import (
    Pipeline,
    crop_to_result,
    import_colour_profile,
    padding,
    prepare,
    rotate_and_flip,
    scale,
    scale_on_load,
)
from .watermark import apply_watermark, watermark

logger = logging.getLogger(__name__)

main_pipeline = Pipeline(
    prepare,
    scale_on_load,
    import_colour_profile,
    scale,
    rotate_and_flip,
    crop_to_result,
    padding,
    watermark,
)

# Per-frame pipeline for animations; the watermark is applied afterwards
frame_pipeline = main_pipeline.without(watermark)


def _transform_animated(img: WorkingImage, po: ProcessingOptions) -> WorkingImage:
    frames_count = img.frames_count()
    frames = img.extract_frames()

    try:
        for frame in frames:
            frame_pipeline.run(frame, po, None)
        animated = WorkingImage.join(frames, like=img)
    finally:
        for frame in frames:
            frame.clear()

    try:
        wm_data = get_watermark()
        if po.watermark.enabled and wm_data is not None:
            apply_watermark(animated, wm_data, po.watermark, po.dpr, frames_count)
    except Exception:
        animated.clear()
        raise

    return animated


def process_image(image_data: ImageData, po: ProcessingOptions) -> WorkingImage:
    """
    Decode and transform a host image.

    Args:
        image_data: Encoded host image.
        po: Processing options, including watermark options.

    Returns:
        The processed image. The caller owns it and must clear() it.

    Raises:
        WatermarkError: The first error raised while processing.
    """
    img = WorkingImage()
    try:
        pages = -1 if image_data.type.supports_animation else 1
        img.load(image_data, pages=pages)

        if img.frames_count() > 1:
            logger.debug("Processing animated %s with %d frames",
                         image_data.type.value, img.frames_count())
            animated = _transform_animated(img, po)
            img.clear()
            return animated

        main_pipeline.run(img, po, image_data)
        return img

    except Exception:
        img.clear()
        raise
