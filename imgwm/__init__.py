"""
imgwm - Watermark Placement and Compositing
===========================================
Prepares a watermark image, places it by gravity, and blends it onto
still or animated host images.

Modules:
    - core: Engine, geometry, transform pipeline and compositor
    - workers: QThread workers for batch processing
    - config: Process-wide configuration
    - errors: Error taxonomy

Usage:
    from imgwm.core import ImageData, process_image, new_processing_options
    from imgwm.workers import ProcessWorker, BatchConfig
"""

__version__ = "1.0.0"
__app_name__ = "imgwm"

from .core import (
    ImageData,
    WorkingImage,
    apply_watermark,
    new_processing_options,
    prepare_watermark,
    process_image,
)
from .errors import (
    BlendError,
    ConfigError,
    LoadError,
    ReplicationError,
    TransformError,
    WatermarkError,
)

__all__ = [
    "__version__",
    "__app_name__",

    # Core
    "ImageData",
    "WorkingImage",
    "apply_watermark",
    "new_processing_options",
    "prepare_watermark",
    "process_image",

    # Errors
    "WatermarkError",
    "LoadError",
    "TransformError",
    "ReplicationError",
    "BlendError",
    "ConfigError",
]
