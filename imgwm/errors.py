"""
Error Taxonomy
==============
Every failure raised by the watermarking core derives from WatermarkError.

- LoadError: watermark or host bytes cannot be decoded
- TransformError: a pipeline stage failed (resize, colour, rotation, padding)
- ReplicationError: tiling failed
- BlendError: compositing failed
- ConfigError: invalid process configuration
"""


class WatermarkError(Exception):
    """Base class for watermarking failures."""
    pass


class LoadError(WatermarkError):
    """Raised when image bytes cannot be decoded."""
    pass


class TransformError(WatermarkError):
    """Raised when a transform pipeline stage fails."""
    pass


class ReplicationError(WatermarkError):
    """Raised when a watermark cannot be tiled across a canvas."""
    pass


class BlendError(WatermarkError):
    """Raised when a watermark cannot be composited onto an image."""
    pass


class ConfigError(WatermarkError, ValueError):
    """Raised when configuration values are out of range."""
    pass
