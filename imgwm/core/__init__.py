"""
Core Module - Watermark Placement and Compositing
=================================================
This module contains no UI dependencies.

Components:
- engine: Pillow-backed working image
- geometry: gravity, offset and scale resolution
- pipeline: ordered transform stages shared by watermark and host images
- watermark: watermark preparation, compositing and the pipeline stage
- processing: host image resize path
"""

from .engine import WorkingImage
from .imagedata import ImageData, get_watermark, init_watermark, set_watermark
from .options import (
    GravityOptions, GravityType, ImageType, PaddingOptions,
    ProcessingOptions, ResizeType, WatermarkOptions, new_processing_options
)
from .pipeline import Pipeline, PipelineContext, watermark_pipeline
from .processing import main_pipeline, process_image
from .watermark import apply_watermark, prepare_watermark, watermark

__all__ = [
    "WorkingImage",
    "ImageData",
    "get_watermark",
    "init_watermark",
    "set_watermark",
    "GravityOptions",
    "GravityType",
    "ImageType",
    "PaddingOptions",
    "ProcessingOptions",
    "ResizeType",
    "WatermarkOptions",
    "new_processing_options",
    "Pipeline",
    "PipelineContext",
    "watermark_pipeline",
    "main_pipeline",
    "process_image",
    "apply_watermark",
    "prepare_watermark",
    "watermark",
]
